"""Courses API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.modules.courses.schemas import CourseCreate, CourseRead, CourseUpdate
from app.modules.courses.service import CoursesService, get_courses_service
from app.shared.responses import Envelope, success

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("", response_model=Envelope[list[CourseRead]])
async def list_courses(
    service: CoursesService = Depends(get_courses_service),
) -> Envelope[list[CourseRead]]:
    """List active courses."""
    courses = await service.list_courses()
    return success([CourseRead.model_validate(item) for item in courses], "Courses retrieved")


@router.post("", response_model=Envelope[CourseRead], status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseCreate,
    service: CoursesService = Depends(get_courses_service),
) -> Envelope[CourseRead]:
    """Create a course."""
    course = await service.create_course(payload)
    return success(CourseRead.model_validate(course), "Course created successfully")


@router.get("/{course_id}", response_model=Envelope[CourseRead])
async def get_course(
    course_id: int,
    service: CoursesService = Depends(get_courses_service),
) -> Envelope[CourseRead]:
    """Return one course."""
    course = await service.get_course(course_id)
    return success(CourseRead.model_validate(course), "Course retrieved")


@router.put("/{course_id}", response_model=Envelope[CourseRead])
async def update_course(
    course_id: int,
    payload: CourseUpdate,
    service: CoursesService = Depends(get_courses_service),
) -> Envelope[CourseRead]:
    """Update a course."""
    course = await service.update_course(course_id, payload)
    return success(CourseRead.model_validate(course), "Course updated successfully")
