"""Course repository layer."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.courses.models import Course


class CoursesRepository:
    """DB access methods for courses."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_active_courses(self) -> list[Course]:
        stmt = select(Course).where(Course.is_active.is_(True)).order_by(Course.name.asc())
        return (await self.session.scalars(stmt)).all()

    async def get_course_by_id(self, course_id: int) -> Course | None:
        stmt = select(Course).where(Course.id == course_id)
        return await self.session.scalar(stmt)

    async def create_course(
        self,
        name: str,
        description: str | None,
        fee: Decimal,
        duration: str | None,
    ) -> Course:
        course = Course(
            name=name,
            description=description,
            fee=fee,
            duration=duration,
            is_active=True,
        )
        self.session.add(course)
        await self.session.flush()
        return course

    async def update_course(self, course: Course, **changes) -> Course:
        for key, value in changes.items():
            if value is not None:
                setattr(course, key, value)
        await self.session.flush()
        return course
