"""Course catalogue business logic layer."""

from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.modules.courses.models import Course
from app.modules.courses.repository import CoursesRepository
from app.modules.courses.schemas import CourseCreate, CourseUpdate
from app.shared.exceptions import AppException, InternalException, InvalidException, NotFoundException

logger = logging.getLogger(__name__)


class CoursesService:
    """Course domain service."""

    def __init__(self, session: AsyncSession, repository: CoursesRepository) -> None:
        self.session = session
        self.repository = repository

    async def list_courses(self) -> list[Course]:
        return await self.repository.list_active_courses()

    async def get_course(self, course_id: int) -> Course:
        course = await self.repository.get_course_by_id(course_id)
        if course is None:
            raise NotFoundException("Course not found")
        return course

    async def create_course(self, payload: CourseCreate) -> Course:
        try:
            course = await self.repository.create_course(
                name=payload.name,
                description=payload.description,
                fee=payload.fee,
                duration=payload.duration,
            )
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Creating course %s failed", payload.name)
            raise InternalException("Failed to create course") from exc
        logger.info("Course %s created: %s", course.id, course.name)
        return course

    async def update_course(self, course_id: int, payload: CourseUpdate) -> Course:
        """Apply the provided fields; deactivating hides the course from listings."""
        changes = payload.model_dump(exclude_none=True)
        if not changes:
            raise InvalidException("No course fields to update")
        try:
            course = await self.get_course(course_id)
            course = await self.repository.update_course(course, **changes)
            await self.session.commit()
        except AppException:
            await self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Updating course %s failed", course_id)
            raise InternalException("Failed to update course") from exc
        logger.info("Course %s updated: %s", course_id, ", ".join(sorted(changes)))
        return course


async def get_courses_service(session: AsyncSession = Depends(get_db_session)) -> CoursesService:
    """Dependency provider for courses service."""
    return CoursesService(session, CoursesRepository(session))
