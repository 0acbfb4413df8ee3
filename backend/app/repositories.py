"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (students,
courses). Repositories return SQLModel objects and perform
commits/refreshes where appropriate.
"""

from typing import List, Optional
from sqlmodel import Session, select
from . import models


class StudentRepository:
    """CRUD operations for `Student` objects."""
    def __init__(self, session: Session):
        self.session = session

    def save(self, student: models.Student) -> models.Student:
        """Persist a new or modified student and return the managed instance."""
        self.session.add(student)
        self.session.commit()
        self.session.refresh(student)
        return student

    def get_by_username(self, username: str) -> Optional[models.Student]:
        """Return a `Student` by username or `None` if not found."""
        stmt = select(models.Student).where(models.Student.username == username)
        return self.session.exec(stmt).first()

    def get(self, student_id: int) -> Optional[models.Student]:
        """Get a `Student` by primary key."""
        return self.session.get(models.Student, student_id)

    def list_all(self) -> List[models.Student]:
        stmt = select(models.Student).order_by(models.Student.id)
        return self.session.exec(stmt).all()

    def delete(self, student_id: int) -> bool:
        """Delete a student and their enrollment links.

        Returns False when no such student exists.
        """
        student = self.get(student_id)
        if not student:
            return False
        self.session.delete(student)
        self.session.commit()
        return True

    def is_enrolled(self, student_id: int, course_id: int) -> bool:
        """Return True if the student is already linked to the course."""
        return self.session.get(models.StudentCourseLink, (student_id, course_id)) is not None


class CourseRepository:
    """CRUD operations for `Course` objects."""
    def __init__(self, session: Session):
        self.session = session

    def save(self, course: models.Course) -> models.Course:
        self.session.add(course)
        self.session.commit()
        self.session.refresh(course)
        return course

    def get(self, course_id: int) -> Optional[models.Course]:
        """Fetch a course by id."""
        return self.session.get(models.Course, course_id)

    def list_all(self) -> List[models.Course]:
        """Return every course ordered by id."""
        stmt = select(models.Course).order_by(models.Course.id)
        return self.session.exec(stmt).all()

    def delete(self, course: models.Course) -> None:
        """Delete a course; its enrollment links go with it."""
        self.session.delete(course)
        self.session.commit()
