"""FastAPI-based RFID student lookup service.
Run with: python fastapi_service.py --host 0.0.0.0 --port 5001
     or:  uvicorn fastapi_service:create_app --factory --port 5001

Endpoints:
GET  /health -> {status: ok}
GET  /student/{rfid}                          -> student or 404 (legacy client path)
GET  /api/student/rfid/{rfid}                 -> student or 404
GET  /api/student/enrollment/{enrollment}     -> student or 404
GET  /api/student/course/{course}             -> [student] or 404 when empty
GET  /api/student/course/{course}/enrollment/{enrollment} -> student or 404
GET  /api/courses                             -> [course]
POST /api/course                              -> 201 course | 400
POST /api/student                             -> 201 student | 400
PUT  /api/student/{rfid}                      -> updated student | 404

Every error body is {"error": "<message>"}.
"""
from __future__ import annotations
import argparse
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from starlette.exceptions import HTTPException as StarletteHTTPException

import db
from app_logging import get_logger
from config import Settings, load_settings

log = get_logger('fastapi_service')

REQUIRED_STUDENT_FIELDS = ('rfidUID', 'name', 'enrollmentNumber', 'course', 'year', 'status')


class Student(BaseModel):
    rfidUID: str
    name: str
    enrollmentNumber: str
    course: str
    year: str
    status: str


class Course(BaseModel):
    name: str
    description: str | None = None


class StudentIn(BaseModel):
    # numeric years and tags arrive as strings
    model_config = ConfigDict(coerce_numbers_to_str=True)

    rfidUID: str | None = None
    name: str | None = None
    enrollmentNumber: str | None = None
    course: str | None = None
    year: str | None = None
    status: str | None = None


class StudentUpdate(StudentIn):
    pass


class CourseIn(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str | None = None
    description: str | None = None


def get_store(request: Request) -> db.StudentStore:
    return request.app.state.store


async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={'error': str(exc.detail)})


async def _validation_error(request: Request, exc: RequestValidationError):
    log.warning('Rejected malformed request %s %s: %s', request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={'error': 'Invalid request body'})


async def health(store: db.StudentStore = Depends(get_store)):
    try:
        store.ping()
        return {'status': 'ok'}
    except Exception as e:
        return {'status': 'error', 'detail': str(e)}


async def root():
    return {
        'service': 'rfid-student',
        'endpoints': [
            '/health', '/student/{rfidUID}', '/api/student/rfid/{rfidUID}',
            '/api/student/enrollment/{enrollmentNumber}', '/api/student/course/{course}',
            '/api/student/course/{course}/enrollment/{enrollmentNumber}',
            '/api/courses', '/api/course', '/api/student',
        ],
    }


async def get_student_by_rfid(rfid_uid: str, store: db.StudentStore = Depends(get_store)):
    log.debug(f'Lookup RFID {rfid_uid}')
    try:
        rec = store.get_student(rfid_uid)
    except Exception:
        log.exception('Error fetching student details rfid=%s', rfid_uid)
        raise HTTPException(status_code=500, detail='Failed to fetch student details')
    if not rec:
        log.warning(f'RFID {rfid_uid} not found')
        raise HTTPException(status_code=404, detail='Student not found')
    log.info(f'RFID {rfid_uid} served')
    return rec


async def get_student_by_enrollment(enrollment_number: str, store: db.StudentStore = Depends(get_store)):
    try:
        rec = store.find_student(enrollmentNumber=enrollment_number)
    except Exception:
        log.exception('Error fetching student details enrollment=%s', enrollment_number)
        raise HTTPException(status_code=500, detail='Failed to fetch student details')
    if not rec:
        raise HTTPException(status_code=404, detail='Student not found')
    return rec


async def get_students_by_course(course: str, store: db.StudentStore = Depends(get_store)):
    try:
        recs = store.find_students(course=course)
    except Exception:
        log.exception('Error fetching course details course=%s', course)
        raise HTTPException(status_code=500, detail='Failed to fetch course details')
    if not recs:
        raise HTTPException(status_code=404, detail='No students found for this course')
    return recs


async def get_student_by_course_enrollment(course: str, enrollment_number: str,
                                           store: db.StudentStore = Depends(get_store)):
    try:
        rec = store.find_student(course=course, enrollmentNumber=enrollment_number)
    except Exception:
        log.exception('Error fetching student details course=%s enrollment=%s', course, enrollment_number)
        raise HTTPException(status_code=500, detail='Failed to fetch student details')
    if not rec:
        raise HTTPException(status_code=404, detail='Student not found for the given course and enrollment number')
    return rec


async def list_courses(store: db.StudentStore = Depends(get_store)):
    try:
        return store.list_courses()
    except Exception:
        log.exception('Error fetching courses')
        raise HTTPException(status_code=500, detail='Failed to fetch courses')


async def create_course(body: CourseIn | None = None, store: db.StudentStore = Depends(get_store)):
    if body is None:
        body = CourseIn()
    if not body.name:
        raise HTTPException(status_code=400, detail='Course name is required')
    try:
        rec = store.insert_course({'name': body.name, 'description': body.description})
    except Exception:
        log.exception('Error creating course name=%s', body.name)
        raise HTTPException(status_code=500, detail='Failed to create course')
    log.info('Course created name=%s', body.name)
    return rec


async def create_student(body: StudentIn | None = None, store: db.StudentStore = Depends(get_store)):
    if body is None:
        body = StudentIn()
    fields = body.model_dump()
    if not all(fields.get(k) for k in REQUIRED_STUDENT_FIELDS):
        raise HTTPException(status_code=400, detail='All fields are required')
    try:
        rec = store.insert_student(fields)
    except Exception:
        log.exception('Error adding student rfid=%s', body.rfidUID)
        raise HTTPException(status_code=500, detail='Failed to add student')
    log.info('Student created rfid=%s', body.rfidUID)
    return rec


async def update_student(rfid_uid: str, body: StudentUpdate | None = None,
                         store: db.StudentStore = Depends(get_store)):
    # an absent body is an empty update
    if body is None:
        body = StudentUpdate()
    changes = body.model_dump(exclude_unset=True)
    try:
        rec = store.update_student(rfid_uid, changes)
    except Exception:
        log.exception('Error updating student rfid=%s', rfid_uid)
        raise HTTPException(status_code=500, detail='Failed to update student')
    if not rec:
        raise HTTPException(status_code=404, detail='Student not found')
    log.info('Student updated rfid=%s fields=%s', rfid_uid, sorted(changes))
    return rec


def create_app(store: db.StudentStore | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the app around an explicitly supplied store handle.

    When no store is given one is opened at settings.db_path.
    """
    settings = settings or load_settings()
    if store is None:
        store = db.open_store(settings.db_path)

    app = FastAPI(title='RFID Student Lookup API', version='0.1.0')
    app.state.store = store
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)

    app.add_api_route('/health', health, methods=['GET'])
    app.add_api_route('/', root, methods=['GET'])
    app.add_api_route('/student/{rfid_uid}', get_student_by_rfid, methods=['GET'], response_model=Student)
    app.add_api_route('/api/student/rfid/{rfid_uid}', get_student_by_rfid, methods=['GET'], response_model=Student)
    app.add_api_route('/api/student/enrollment/{enrollment_number}', get_student_by_enrollment,
                      methods=['GET'], response_model=Student)
    app.add_api_route('/api/student/course/{course}', get_students_by_course,
                      methods=['GET'], response_model=List[Student])
    app.add_api_route('/api/student/course/{course}/enrollment/{enrollment_number}',
                      get_student_by_course_enrollment, methods=['GET'], response_model=Student)
    app.add_api_route('/api/courses', list_courses, methods=['GET'], response_model=List[Course])
    app.add_api_route('/api/course', create_course, methods=['POST'], status_code=201, response_model=Course)
    app.add_api_route('/api/student', create_student, methods=['POST'], status_code=201, response_model=Student)
    app.add_api_route('/api/student/{rfid_uid}', update_student, methods=['PUT'], response_model=Student)
    log.info('Starting fastapi_service store=%s', store.db_path)
    return app


def main(argv: Optional[list] = None):
    import uvicorn

    ap = argparse.ArgumentParser(description='RFID student lookup HTTP service')
    ap.add_argument('--host', default='127.0.0.1')
    ap.add_argument('--port', type=int, default=5001)
    ap.add_argument('--db', help='SQLite path (overrides STUDENT_DB_PATH / config file)')
    args = ap.parse_args(argv)
    settings = load_settings()
    if args.db:
        settings.db_path = args.db
    app = create_app(settings=settings)
    print(f'RFID student service listening on http://{args.host}:{args.port}')
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == '__main__':
    main()
