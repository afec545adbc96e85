from sqlalchemy import Column, String, Integer, ForeignKey, Enum, Uuid, Text, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from .base import Base
import enum


class PromotionStatus(enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    SUSPENDED = "suspended"


ALLOWED_PROMOTION_TRANSITIONS = {
    PromotionStatus.ACTIVE: {PromotionStatus.SUSPENDED, PromotionStatus.COMPLETED},
    PromotionStatus.SUSPENDED: {PromotionStatus.ACTIVE, PromotionStatus.COMPLETED},
    PromotionStatus.COMPLETED: set(),
}

MIN_CAPACITY = 1
MAX_CAPACITY = 100


class Promotion(Base):
    __tablename__ = "promotions"

    name = Column(String(200), nullable=False)
    code = Column(String(20), nullable=False, unique=True, index=True)
    description = Column(Text)
    start_year = Column(Integer, nullable=False)
    end_year = Column(Integer, nullable=False)
    coordinator_id = Column(Uuid, index=True)
    status = Column(Enum(PromotionStatus), default=PromotionStatus.ACTIVE, nullable=False, index=True)
    capacity = Column(Integer, default=30, nullable=False)

    students = relationship(
        "PromotionStudent",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PromotionStudent.created_at",
    )
    courses = relationship(
        "PromotionCourse",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PromotionCourse.created_at",
    )

    __table_args__ = (
        CheckConstraint("end_year > start_year", name="ck_promotion_years"),
        CheckConstraint(f"capacity >= {MIN_CAPACITY} AND capacity <= {MAX_CAPACITY}", name="ck_promotion_capacity"),
    )

    @property
    def student_ids(self) -> list:
        return [link.student_id for link in self.students]

    @property
    def course_ids(self) -> list:
        return [link.course_id for link in self.courses]

    @property
    def enrollment_count(self) -> int:
        return len(self.students)

    @property
    def available_spots(self) -> int:
        return max(0, self.capacity - self.enrollment_count)

    def is_student_enrolled(self, student_id) -> bool:
        return student_id in self.student_ids

    def add_student(self, student_id) -> bool:
        """Enroll a student; no-op when already enrolled or at capacity."""
        if self.is_student_enrolled(student_id) or self.enrollment_count >= self.capacity:
            return False
        self.students.append(PromotionStudent(student_id=student_id))
        return True

    def remove_student(self, student_id) -> bool:
        for link in self.students:
            if link.student_id == student_id:
                self.students.remove(link)
                return True
        return False

    def add_course(self, course_id) -> bool:
        if course_id in self.course_ids:
            return False
        self.courses.append(PromotionCourse(course_id=course_id))
        return True

    def remove_course(self, course_id) -> bool:
        for link in self.courses:
            if link.course_id == course_id:
                self.courses.remove(link)
                return True
        return False


class PromotionStudent(Base):
    __tablename__ = "promotion_students"

    promotion_id = Column(Uuid, ForeignKey("promotions.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("promotion_id", "student_id", name="uq_promotion_student"),
    )


class PromotionCourse(Base):
    __tablename__ = "promotion_courses"

    promotion_id = Column(Uuid, ForeignKey("promotions.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Uuid, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("promotion_id", "course_id", name="uq_promotion_course"),
    )
