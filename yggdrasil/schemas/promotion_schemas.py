# yggdrasil/schemas/promotion_schemas.py
"""Pydantic schemas for promotions (student cohorts)."""
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.promotion import Promotion, PromotionStatus, MIN_CAPACITY, MAX_CAPACITY
from ..utils.datetime_utils import isoformat


class PromotionBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    coordinator_id: Optional[UUID] = None
    capacity: int = Field(default=30, ge=MIN_CAPACITY, le=MAX_CAPACITY)


class PromotionCreate(PromotionBase):
    code: str = Field(..., min_length=1, max_length=20)
    start_year: int = Field(..., ge=1900, le=2200)
    end_year: int = Field(..., ge=1900, le=2200)
    students: List[UUID] = Field(default_factory=list)
    courses: List[UUID] = Field(default_factory=list)

    @field_validator('code')
    @classmethod
    def normalize_code(cls, v):
        v = v.strip().upper()
        if not v.isascii() or not v.isalnum():
            raise ValueError('Promotion code must be alphanumeric')
        return v

    @model_validator(mode='after')
    def validate_years(self):
        if self.end_year <= self.start_year:
            raise ValueError('End year must be after start year')
        if len(set(self.students)) > self.capacity:
            raise ValueError('Number of students exceeds promotion capacity')
        return self


class PromotionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    coordinator_id: Optional[UUID] = None
    capacity: Optional[int] = Field(default=None, ge=MIN_CAPACITY, le=MAX_CAPACITY)
    start_year: Optional[int] = Field(default=None, ge=1900, le=2200)
    end_year: Optional[int] = Field(default=None, ge=1900, le=2200)


class PromotionStatusUpdate(BaseModel):
    status: PromotionStatus


class StudentEnrollment(BaseModel):
    student_id: UUID


class CourseLink(BaseModel):
    course_id: UUID


def promotion_to_dict(promotion: Promotion) -> dict:
    return {
        "id": str(promotion.id),
        "name": promotion.name,
        "code": promotion.code,
        "description": promotion.description,
        "start_year": promotion.start_year,
        "end_year": promotion.end_year,
        "coordinator_id": str(promotion.coordinator_id) if promotion.coordinator_id else None,
        "status": promotion.status.value,
        "capacity": promotion.capacity,
        "students": [str(student_id) for student_id in promotion.student_ids],
        "courses": [str(course_id) for course_id in promotion.course_ids],
        "enrollment_count": promotion.enrollment_count,
        "available_spots": promotion.available_spots,
        "created_at": isoformat(promotion.created_at),
        "updated_at": isoformat(promotion.updated_at),
    }
