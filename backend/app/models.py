"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Students and courses are linked many-to-many through
`StudentCourseLink`.
"""

from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, timezone
from typing import List


class StudentCourseLink(SQLModel, table=True):
    """Enrollment of a student in a course.

    The composite primary key keeps a student from being linked to the
    same course twice.
    """
    student_id: Optional[int] = Field(default=None, foreign_key='student.id', primary_key=True)
    course_id: Optional[int] = Field(default=None, foreign_key='course.id', primary_key=True)


class Student(SQLModel, table=True):
    """A registered student, also the login identity.

    Fields:
    - `username`: unique login name, also the subject of issued tokens
    - `password_hash`: hashed password string (never store plaintext)
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    enrolled_courses: List['Course'] = Relationship(back_populates='students', link_model=StudentCourseLink)


class Course(SQLModel, table=True):
    """A course students can enroll in."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    students: List[Student] = Relationship(back_populates='enrolled_courses', link_model=StudentCourseLink)
