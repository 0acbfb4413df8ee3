"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the student/course management
backend. Controllers are intentionally thin: they authenticate through
`get_current_student`, delegate to services, and map results to status
codes.

Endpoints implemented:
- POST /api/addNewUser
- POST /api/generateToken
- GET /api/getAllUsers
- GET /api/getUser/{id}
- DELETE /api/deleteUser/{id}
- PUT /api/update
- POST /api/enroll
- GET /api/getCourse
- GET /api/getCourse/{id}
- PUT /api/updateCourse/{id}
- DELETE /api/deleteCourse/{id}
- POST /api/students/{student_id}/courses/{course_id}
- GET /health
"""

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
from typing import List, Optional
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services, models
from .auth import get_current_student
from .schemas import StudentIn, StudentOut, TokenRequest, CourseIn, CourseOut
from .config import settings

app = FastAPI(title="Student Course Management API")
logger = logging.getLogger("app.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

OWN_PROFILE_ONLY = "You can only update your own profile."

# Allow simple browser testing from file:// or localhost frontends
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


def _request_log_line(request: Request, req_id: str, started: float, status_code: Optional[int] = None) -> str:
    """Render one JSON access-log record for an /api request."""
    record = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }
    if status_code is not None:
        record["status_code"] = status_code
    return json.dumps(record, ensure_ascii=True)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Tag every response with X-Request-ID and log /api requests."""
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    logged = request.url.path.startswith("/api")
    try:
        response = await call_next(request)
    except Exception:
        if logged:
            logger.exception("request_failed %s", _request_log_line(request, req_id, started))
        raise
    response.headers["X-Request-ID"] = req_id
    if logged:
        logger.info("request_done %s", _request_log_line(request, req_id, started, response.status_code))
    return response


def _not_found(e: services.NotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


@app.post('/api/addNewUser', response_class=PlainTextResponse)
def add_new_user(payload: StudentIn, db: Session = Depends(get_session)):
    """Register a new student; no token required.

    A taken username answers 200 with "User already Registered" and
    leaves the existing record untouched.
    """
    if not payload.password:
        raise HTTPException(status_code=422, detail='password required')
    return services.AuthService(db).register(payload.username, payload.password, payload.email)


@app.post('/api/generateToken', response_class=PlainTextResponse)
def generate_token(payload: TokenRequest, db: Session = Depends(get_session)):
    """Exchange username/password for a bearer token (plain text)."""
    token = services.AuthService(db).generate_token(payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return token


@app.get('/api/getAllUsers', response_model=List[StudentOut])
def get_all_users(db: Session = Depends(get_session), current: models.Student = Depends(get_current_student)):
    return [StudentOut.model_validate(s) for s in services.StudentService(db).list_students()]


@app.get('/api/getUser/{student_id}', response_model=Optional[StudentOut])
def get_user(student_id: int, db: Session = Depends(get_session), current: models.Student = Depends(get_current_student)):
    """Return one student, or `null` when the id is unknown."""
    student = services.StudentService(db).get_student(student_id)
    if not student:
        return None
    return StudentOut.model_validate(student)


@app.delete('/api/deleteUser/{student_id}', status_code=204)
def delete_user(student_id: int, db: Session = Depends(get_session), current: models.Student = Depends(get_current_student)):
    services.StudentService(db).delete_student(student_id)
    return Response(status_code=204)


@app.put('/api/update', response_class=PlainTextResponse)
def update_user(payload: StudentIn, db: Session = Depends(get_session), current: models.Student = Depends(get_current_student)):
    """Update the caller's own profile.

    Both the payload username and the target record (payload `id`,
    defaulting to the caller) must belong to the authenticated student.
    """
    target_id = payload.id if payload.id is not None else current.id
    if payload.username != current.username or target_id != current.id:
        logger.info("update rejected: %s tried to update record id=%s as %s", current.username, target_id, payload.username)
        raise HTTPException(status_code=403, detail=OWN_PROFILE_ONLY)
    try:
        services.StudentService(db).update_student(target_id, payload.username, payload.email, payload.password)
    except services.NotFoundError as e:
        raise _not_found(e)
    return "User updated successfully."


@app.post('/api/enroll', response_class=PlainTextResponse)
def enroll_in_course(payload: CourseIn, db: Session = Depends(get_session), current: models.Student = Depends(get_current_student)):
    """Create a course."""
    services.CourseService(db).create_course(payload.name)
    return "Enrolled in course successfully."


@app.get('/api/getCourse', response_model=List[CourseOut])
def get_all_courses(db: Session = Depends(get_session)):
    """List all courses (public catalog read)."""
    return [CourseOut.model_validate(c) for c in services.CourseService(db).list_courses()]


@app.get('/api/getCourse/{course_id}', response_model=CourseOut)
def get_course(course_id: int, db: Session = Depends(get_session), current: models.Student = Depends(get_current_student)):
    try:
        course = services.CourseService(db).get_course(course_id)
    except services.NotFoundError as e:
        raise _not_found(e)
    return CourseOut.model_validate(course)


@app.put('/api/updateCourse/{course_id}', response_model=CourseOut)
def update_course(course_id: int, payload: CourseIn, db: Session = Depends(get_session), current: models.Student = Depends(get_current_student)):
    try:
        course = services.CourseService(db).rename_course(course_id, payload.name)
    except services.NotFoundError as e:
        raise _not_found(e)
    return CourseOut.model_validate(course)


@app.delete('/api/deleteCourse/{course_id}', status_code=204)
def delete_course(course_id: int, db: Session = Depends(get_session), current: models.Student = Depends(get_current_student)):
    try:
        services.CourseService(db).delete_course(course_id)
    except services.NotFoundError as e:
        raise _not_found(e)
    return Response(status_code=204)


@app.post('/api/students/{student_id}/courses/{course_id}', response_class=PlainTextResponse)
def enroll_student_to_course(student_id: int, course_id: int, db: Session = Depends(get_session), current: models.Student = Depends(get_current_student)):
    """Link an existing student to an existing course (idempotent)."""
    try:
        services.StudentService(db).enroll(student_id, course_id)
    except services.NotFoundError as e:
        raise _not_found(e)
    return "Student enrolled in course successfully."


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
