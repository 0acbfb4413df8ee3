"""Authentication gate and FastAPI security dependency.

Every protected request is authenticated from scratch: the bearer token
is taken from the `Authorization` header, its subject is resolved to a
current `Student` record, and only then is the token's signature,
expiry and subject checked against that record. There is no session
state.

`AuthGate` never raises; any failure yields `None`/False. The
dependency `get_current_student` turns a failure into HTTP 403 and hands
the resolved identity to the handler explicitly.
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, Security
from fastapi.security import APIKeyHeader
from sqlmodel import Session
from .database import get_session
from .services import TokenService
from . import models, repositories

BEARER_PREFIX = "Bearer "
AUTH_FAILED_DETAIL = "Invalid token or authentication failed."

# raw header value; the literal "Bearer " prefix is checked by AuthGate
authorization_header = APIKeyHeader(name="Authorization", auto_error=False)

logger = logging.getLogger("app.auth")


class AuthGate:
    """Resolve a raw `Authorization` header value to an authenticated student."""
    def __init__(self, session: Session, tokens: TokenService = None):
        self.student_repo = repositories.StudentRepository(session)
        self.tokens = tokens or TokenService()

    def resolve(self, raw_header: Optional[str]) -> Optional[models.Student]:
        if not raw_header or not raw_header.startswith(BEARER_PREFIX):
            logger.info("auth rejected: missing or non-bearer authorization header")
            return None
        token = raw_header[len(BEARER_PREFIX):].strip()
        if not token:
            logger.info("auth rejected: empty bearer token")
            return None
        username = self.tokens.extract_subject(token)
        if not username:
            logger.info("auth rejected: token has no readable subject")
            return None
        student = self.student_repo.get_by_username(username)
        if not student:
            logger.info("auth rejected: unknown subject %s", username)
            return None
        if not self.tokens.validate(token, student):
            logger.info("auth rejected: token failed validation for %s", username)
            return None
        return student

    def authenticate(self, raw_header: Optional[str]) -> bool:
        """Return True if the header carries a valid token for a known student."""
        return self.resolve(raw_header) is not None


def get_current_student(
    authorization: Optional[str] = Security(authorization_header),
    db: Session = Depends(get_session),
) -> models.Student:
    """FastAPI dependency that returns the authenticated student.

    Raises HTTPException(403) for any authentication issue, including a
    missing header.
    """
    student = AuthGate(db).resolve(authorization)
    if student is None:
        raise HTTPException(status_code=403, detail=AUTH_FAILED_DETAIL)
    return student
