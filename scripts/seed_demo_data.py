"""Seed idempotent demo counselors and courses for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.modules.counselors.models import Counselor
from app.modules.courses.models import Course

DEMO_COUNSELORS = (
    # name, email, phone, max_capacity, is_referral_enabled
    ("Asha Rao", "asha.rao@admissions.dev", "+919800000001", 10, True),
    ("Vikram Shah", "vikram.shah@admissions.dev", "+919800000002", 10, True),
    ("Meera Nair", "meera.nair@admissions.dev", "+919800000003", 5, False),
)

DEMO_COURSES = (
    # name, description, fee, duration
    ("Full Stack Development", "Web applications end to end.", Decimal("45000.00"), "6 months"),
    ("Data Science", "Statistics, Python and machine learning.", Decimal("52000.00"), "6 months"),
    ("Cloud Engineering", "Infrastructure and deployment automation.", Decimal("38000.00"), "4 months"),
)


@dataclass(slots=True)
class SeedStats:
    counselors_created: int = 0
    counselors_updated: int = 0
    courses_created: int = 0
    courses_updated: int = 0


async def _ensure_counselors(session: AsyncSession, stats: SeedStats) -> None:
    for name, email, phone, capacity, referral in DEMO_COUNSELORS:
        counselor = await session.scalar(select(Counselor).where(Counselor.email == email))
        if counselor is None:
            session.add(
                Counselor(
                    name=name,
                    email=email,
                    phone=phone,
                    assigned_count=0,
                    max_capacity=capacity,
                    is_referral_enabled=referral,
                ),
            )
            stats.counselors_created += 1
            continue

        counselor.name = name
        counselor.phone = phone
        counselor.max_capacity = max(capacity, counselor.assigned_count)
        counselor.is_referral_enabled = referral
        stats.counselors_updated += 1
    await session.flush()


async def _ensure_courses(session: AsyncSession, stats: SeedStats) -> None:
    for name, description, fee, duration in DEMO_COURSES:
        course = await session.scalar(select(Course).where(Course.name == name))
        if course is None:
            session.add(
                Course(
                    name=name,
                    description=description,
                    fee=fee,
                    duration=duration,
                    is_active=True,
                ),
            )
            stats.courses_created += 1
            continue

        course.description = description
        course.fee = fee
        course.duration = duration
        course.is_active = True
        stats.courses_updated += 1
    await session.flush()


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            await _ensure_counselors(session, stats)
            await _ensure_courses(session, stats)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Seed idempotent demo data for the admissions service (counselors, courses).",
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Counselors created: {stats.counselors_created}")
    print(f"- Counselors updated: {stats.counselors_updated}")
    print(f"- Courses created: {stats.courses_created}")
    print(f"- Courses updated: {stats.courses_updated}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
