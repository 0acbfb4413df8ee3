"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
password hashing and token signing. Services are intentionally thin:
they perform validation, execute domain logic and persist aggregates via
repositories. Missing records are reported with `NotFoundError` so the
controllers can map them to HTTP 404.
"""

from datetime import datetime, timedelta, timezone
import logging
from passlib.context import CryptContext
import jwt
from typing import List, Optional
from . import models, repositories
from sqlmodel import Session
from sqlalchemy.exc import IntegrityError
from .config import settings

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MSG_USER_ADDED = "User Added Successfully"
MSG_USER_EXISTS = "User already Registered"

logger = logging.getLogger("app.services")


class NotFoundError(LookupError):
    """Raised when a student or course id does not resolve to a record."""


class TokenService:
    """Issue and check signed bearer tokens bound to a username.

    Tokens carry `sub` (the username), `iat` and `exp`. Nothing about a
    token is stored server side; every check re-decodes it.
    """
    def __init__(self, secret: str = None, algorithm: str = None, expire_minutes: int = None):
        self.secret = secret or settings.JWT_SECRET
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.expire_minutes = settings.JWT_EXPIRE_MINUTES if expire_minutes is None else expire_minutes

    def issue(self, username: str) -> str:
        """Return a signed token whose subject is `username`."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": username,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=self.expire_minutes)).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def extract_subject(self, token: str) -> Optional[str]:
        """Read the subject without verifying signature or expiry.

        Only used to find the identity to validate against; returns
        `None` for anything that does not decode.
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError:
            return None
        sub = payload.get("sub")
        return sub if isinstance(sub, str) and sub else None

    def validate(self, token: str, student: models.Student) -> bool:
        """Return True if `token` is correctly signed, unexpired and issued to `student`."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm], options={"require": ["sub", "exp"]})
        except jwt.ExpiredSignatureError:
            logger.info("token expired for subject %s", student.username)
            return False
        except jwt.PyJWTError:
            return False
        return payload.get("sub") == student.username


class AuthService:
    """Registration and credential exchange."""
    def __init__(self, session: Session, tokens: TokenService = None):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)
        self.tokens = tokens or TokenService()

    def register(self, username: str, password: str, email: Optional[str] = None) -> str:
        """Create a student with a hashed password.

        Registering a taken username is not an error: the existing record
        is left alone and a distinguishing message is returned instead.
        """
        if self.student_repo.get_by_username(username):
            return MSG_USER_EXISTS
        student = models.Student(username=username, password_hash=PWD_CTX.hash(password), email=email)
        try:
            self.student_repo.save(student)
        except IntegrityError:
            # a concurrent registration took the username after the lookup
            self.session.rollback()
            logger.info("registration raced for username %s", username)
            return MSG_USER_EXISTS
        logger.info("registered student %s (id=%s)", student.username, student.id)
        return MSG_USER_ADDED

    def check_credentials(self, username: str, password: str) -> Optional[models.Student]:
        """Return the student if the password matches, otherwise `None`."""
        student = self.student_repo.get_by_username(username)
        if not student:
            return None
        if not PWD_CTX.verify(password, student.password_hash):
            return None
        return student

    def generate_token(self, username: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed token on success.

        Returns `None` if authentication fails.
        """
        student = self.check_credentials(username, password)
        if not student:
            return None
        return self.tokens.issue(student.username)


class StudentService:
    """Student profile operations and enrollment."""
    def __init__(self, session: Session):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)
        self.course_repo = repositories.CourseRepository(session)

    def list_students(self) -> List[models.Student]:
        return self.student_repo.list_all()

    def get_student(self, student_id: int) -> Optional[models.Student]:
        return self.student_repo.get(student_id)

    def delete_student(self, student_id: int) -> None:
        if self.student_repo.delete(student_id):
            logger.info("deleted student id=%s", student_id)

    def update_student(self, student_id: int, username: str, email: Optional[str], password: Optional[str]) -> models.Student:
        """Overwrite username and email; re-hash the password only when it changed.

        A password equal to the stored hash is treated as "unchanged" so
        clients may echo back what they read.
        """
        student = self.student_repo.get(student_id)
        if not student:
            raise NotFoundError("Student not found")
        student.username = username
        student.email = email
        if password and password != student.password_hash:
            student.password_hash = PWD_CTX.hash(password)
        return self.student_repo.save(student)

    def enroll(self, student_id: int, course_id: int) -> models.Student:
        """Link a student to a course.

        Enrolling twice in the same course leaves a single link.
        """
        student = self.student_repo.get(student_id)
        if not student:
            raise NotFoundError("Student not found")
        course = self.course_repo.get(course_id)
        if not course:
            raise NotFoundError("Course not found")
        if self.student_repo.is_enrolled(student_id, course_id):
            return student
        student.enrolled_courses.append(course)
        logger.info("enrolled student id=%s in course id=%s", student_id, course_id)
        return self.student_repo.save(student)


class CourseService:
    """Course CRUD with typed not-found errors."""
    def __init__(self, session: Session):
        self.session = session
        self.course_repo = repositories.CourseRepository(session)

    def create_course(self, name: str) -> models.Course:
        return self.course_repo.save(models.Course(name=name))

    def list_courses(self) -> List[models.Course]:
        return self.course_repo.list_all()

    def get_course(self, course_id: int) -> models.Course:
        """Return the course or raise `NotFoundError`."""
        course = self.course_repo.get(course_id)
        if not course:
            raise NotFoundError("Course not found")
        return course

    def rename_course(self, course_id: int, name: str) -> models.Course:
        course = self.get_course(course_id)
        course.name = name
        return self.course_repo.save(course)

    def delete_course(self, course_id: int) -> None:
        course = self.get_course(course_id)
        self.course_repo.delete(course)
        logger.info("deleted course id=%s", course_id)
