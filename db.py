"""SQLite-backed store for student and course records keyed by RFID.

Tables:
- students: one row per card holder, rfid_uid is unique
- courses: course catalogue (name is not unique)

Student.course is a free string; nothing ties it to courses.name.

API returns and accepts plain dicts using the wire field names
(rfidUID, enrollmentNumber, ...). Column mapping is handled here.
Absence is reported as None / [] and never raised.
"""
from __future__ import annotations
import sqlite3, datetime, pathlib, threading
from typing import Any, Dict, List, Optional

from app_logging import get_logger

log = get_logger('db')

STATUSES = ('Current Student', 'Passing Student', 'Alumni', 'Dropped Student')

# wire name -> column
STUDENT_FIELDS = {
    'rfidUID': 'rfid_uid',
    'name': 'name',
    'enrollmentNumber': 'enrollment_number',
    'course': 'course',
    'year': 'year',
    'status': 'status',
}
COURSE_FIELDS = {'name': 'name', 'description': 'description'}

DDL = [
    """CREATE TABLE IF NOT EXISTS students (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        rfid_uid TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        enrollment_number TEXT NOT NULL,
        course TEXT NOT NULL,
        year TEXT NOT NULL,
        status TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS courses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT,
        updated_at TEXT NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_students_enrollment ON students(enrollment_number)",
    "CREATE INDEX IF NOT EXISTS idx_students_course ON students(course, enrollment_number)",
]


class StoreError(Exception):
    """Store could not complete the operation (connectivity, query, constraint)."""


class DuplicateKeyError(StoreError):
    pass


class ValidationError(StoreError):
    pass


def utcnow() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec='seconds').replace('+00:00', 'Z')


def _student_row(row: sqlite3.Row) -> Dict[str, Any]:
    return {wire: row[col] for wire, col in STUDENT_FIELDS.items()}


def _course_row(row: sqlite3.Row) -> Dict[str, Any]:
    return {wire: row[col] for wire, col in COURSE_FIELDS.items()}


def validate_student(fields: Dict[str, Any], partial: bool = False) -> None:
    """Raise ValidationError for null/empty required fields or a bad status."""
    for wire in STUDENT_FIELDS:
        if wire not in fields:
            if partial:
                continue
            raise ValidationError(f'{wire} is required')
        value = fields[wire]
        if value is None or value == '':
            raise ValidationError(f'{wire} is required')
        if not isinstance(value, str):
            raise ValidationError(f'{wire} must be a string')
    if 'status' in fields and fields['status'] not in STATUSES:
        raise ValidationError(f"`{fields['status']}` is not a valid status")


class StudentStore:
    """Explicitly constructed store handle; pass one to each consumer.

    A single connection is shared behind a re-entrant lock so every
    operation is atomic with respect to the others. Use ':memory:' for a
    throwaway store (tests, demos).
    """

    def __init__(self, db_path: str | pathlib.Path = ':memory:'):
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        try:
            if self.db_path != ':memory:':
                pathlib.Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f'cannot open store at {self.db_path}: {e}') from e
        self._conn.row_factory = sqlite3.Row
        self.init()
        log.info('Store ready path=%s', self.db_path)

    def init(self) -> None:
        with self._lock:
            try:
                cur = self._conn.cursor()
                for stmt in DDL:
                    cur.execute(stmt)
                self._conn.commit()
            except sqlite3.Error as e:
                raise StoreError(f'schema init failed: {e}') from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ---------------- internal helpers ----------------
    def _query(self, sql: str, params=()) -> List[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(str(e)) from e

    def _write(self, sql: str, params=()) -> sqlite3.Cursor:
        with self._lock:
            try:
                cur = self._conn.execute(sql, params)
                self._conn.commit()
                return cur
            except sqlite3.IntegrityError as e:
                self._conn.rollback()
                if 'UNIQUE' in str(e):
                    raise DuplicateKeyError(str(e)) from e
                raise ValidationError(str(e)) from e
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StoreError(str(e)) from e

    def ping(self) -> bool:
        self._query('SELECT 1')
        return True

    # ---------------- students ----------------
    def get_student(self, rfid_uid: str) -> Optional[Dict[str, Any]]:
        rows = self._query('SELECT * FROM students WHERE rfid_uid=?', (rfid_uid,))
        return _student_row(rows[0]) if rows else None

    def find_student(self, **criteria: str) -> Optional[Dict[str, Any]]:
        """First student matching every wire-named criterion, or None."""
        rows = self.find_students(limit=1, **criteria)
        return rows[0] if rows else None

    def find_students(self, limit: int | None = None, **criteria: str) -> List[Dict[str, Any]]:
        unknown = set(criteria) - set(STUDENT_FIELDS)
        if unknown:
            raise StoreError(f'unknown student field(s): {sorted(unknown)}')
        where = ' AND '.join(f'{STUDENT_FIELDS[k]}=?' for k in criteria) or '1=1'
        sql = f'SELECT * FROM students WHERE {where} ORDER BY id'
        params = list(criteria.values())
        if limit is not None:
            sql += ' LIMIT ?'
            params.append(limit)
        return [_student_row(r) for r in self._query(sql, params)]

    def insert_student(self, rec: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: rec.get(k) for k in STUDENT_FIELDS}
        validate_student(fields)
        cols = list(STUDENT_FIELDS.values()) + ['updated_at']
        values = [fields[k] for k in STUDENT_FIELDS] + [utcnow()]
        placeholders = ','.join(['?'] * len(cols))
        self._write(f"INSERT INTO students ({','.join(cols)}) VALUES ({placeholders})", values)
        log.debug('Inserted student rfid=%s', fields['rfidUID'])
        return fields

    def update_student(self, rfid_uid: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply a partial update; returns the post-update record or None if absent.

        Unknown keys are ignored. Changing rfidUID is allowed but still bound
        by the uniqueness constraint.
        """
        changes = {k: v for k, v in changes.items() if k in STUDENT_FIELDS}
        validate_student(changes, partial=True)
        with self._lock:
            if not changes:
                return self.get_student(rfid_uid)
            assignments = ','.join(f'{STUDENT_FIELDS[k]}=?' for k in changes)
            params = list(changes.values()) + [utcnow(), rfid_uid]
            cur = self._write(f'UPDATE students SET {assignments}, updated_at=? WHERE rfid_uid=?', params)
            if cur.rowcount == 0:
                return None
            return self.get_student(changes.get('rfidUID', rfid_uid))

    def upsert_student(self, rec: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: rec.get(k) for k in STUDENT_FIELDS}
        validate_student(fields)
        cols = list(STUDENT_FIELDS.values()) + ['updated_at']
        values = [fields[k] for k in STUDENT_FIELDS] + [utcnow()]
        placeholders = ','.join(['?'] * len(cols))
        update_clause = ','.join([f'{c}=excluded.{c}' for c in cols[1:]])
        sql = (f"INSERT INTO students ({','.join(cols)}) VALUES ({placeholders}) "
               f"ON CONFLICT(rfid_uid) DO UPDATE SET {update_clause}")
        self._write(sql, values)
        return fields

    # ---------------- courses ----------------
    def list_courses(self) -> List[Dict[str, Any]]:
        return [_course_row(r) for r in self._query('SELECT * FROM courses ORDER BY id')]

    def insert_course(self, rec: Dict[str, Any]) -> Dict[str, Any]:
        name = rec.get('name')
        if not name:
            raise ValidationError('name is required')
        description = rec.get('description')
        self._write('INSERT INTO courses (name, description, updated_at) VALUES (?,?,?)', (name, description, utcnow()))
        log.debug('Inserted course name=%s', name)
        return {'name': name, 'description': description}


def open_store(db_path: str | pathlib.Path | None = None) -> StudentStore:
    if db_path is None:
        from config import load_settings
        db_path = load_settings().db_path
    return StudentStore(db_path)


__all__ = [
    'STATUSES', 'StoreError', 'DuplicateKeyError', 'ValidationError',
    'StudentStore', 'open_store', 'validate_student',
]
