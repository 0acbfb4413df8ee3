"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and make sure password
hashes never leave the service.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class StudentIn(BaseModel):
    """Payload for registration and profile updates.

    `id` is only meaningful on update, where it names the record to
    change (defaults to the caller's own record).
    """
    id: Optional[int] = None
    username: str = Field(min_length=1)
    password: Optional[str] = None
    email: Optional[str] = None


class TokenRequest(BaseModel):
    """Credentials exchanged for a bearer token."""
    username: str
    password: str


class CourseIn(BaseModel):
    """Course create/update payload."""
    name: str = Field(min_length=1)


class CourseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class StudentOut(BaseModel):
    """Public view of a student with the courses they are enrolled in."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: Optional[str] = None
    enrolled_courses: List[CourseOut] = []
