"""Bulk import of student and course exports into the lookup store.

Workflow expectation:
1. Export CSVs (students.csv, courses.csv) into an exports/ directory.
2. Run: python etl_students.py --exports ./exports [--db students.sqlite]
3. Rows are upserted by rfidUID, so re-running is idempotent for students.

Column names are matched loosely (RFID/UID/rfidUID, Enrollment/EnrollmentNumber, ...).
"""
from __future__ import annotations
import argparse, csv, pathlib
from typing import Any, Dict, Iterator, Optional

import db
from app_logging import get_logger

log = get_logger('etl_students')

EXPECTED_FILES = {
    'students': 'students.csv',
    'courses': 'courses.csv',
}

STUDENT_COLUMNS = {
    'rfidUID': ('rfidUID', 'RFID', 'UID', 'Tag'),
    'name': ('name', 'Name'),
    'enrollmentNumber': ('enrollmentNumber', 'EnrollmentNumber', 'Enrollment', 'Enrollment No'),
    'course': ('course', 'Course'),
    'year': ('year', 'Year'),
    'status': ('status', 'Status'),
}


def load_csv(path: pathlib.Path) -> Iterator[Dict[str, Any]]:
    with path.open('r', newline='', encoding='utf-8-sig') as f:
        reader = csv.DictReader(f)
        for row in reader:
            yield {k.strip(): (v.strip() if isinstance(v, str) else v) for k, v in row.items() if k}


def _pick(row: Dict[str, Any], names) -> Optional[str]:
    for n in names:
        if row.get(n):
            return row[n]
    return None


def etl(exports_dir: pathlib.Path, store: db.StudentStore) -> Dict[str, int]:
    if not exports_dir.exists():
        raise SystemExit(f"Exports directory not found: {exports_dir}")
    stats = {'students': 0, 'courses': 0, 'skipped': 0}

    students_path = exports_dir / EXPECTED_FILES['students']
    if students_path.exists():
        for lineno, row in enumerate(load_csv(students_path), start=2):
            rec = {field: _pick(row, names) for field, names in STUDENT_COLUMNS.items()}
            try:
                store.upsert_student(rec)
                stats['students'] += 1
            except db.ValidationError as e:
                stats['skipped'] += 1
                log.warning('Skipping %s line %d: %s', students_path.name, lineno, e)

    courses_path = exports_dir / EXPECTED_FILES['courses']
    if courses_path.exists():
        known = {c['name'] for c in store.list_courses()}
        for lineno, row in enumerate(load_csv(courses_path), start=2):
            name = _pick(row, ('name', 'Name', 'Course'))
            if not name:
                stats['skipped'] += 1
                log.warning('Skipping %s line %d: no course name', courses_path.name, lineno)
                continue
            if name in known:
                continue
            store.insert_course({'name': name, 'description': _pick(row, ('description', 'Description'))})
            known.add(name)
            stats['courses'] += 1
    log.info('ETL complete dir=%s stats=%s', exports_dir, stats)
    return stats


def main(argv=None):
    p = argparse.ArgumentParser()
    p.add_argument('--exports', type=pathlib.Path, default=pathlib.Path('exports'), help='Directory holding exported CSVs')
    p.add_argument('--db', help='SQLite path (overrides STUDENT_DB_PATH / config file)')
    args = p.parse_args(argv)
    with db.open_store(args.db) as store:
        stats = etl(args.exports, store)
    print(f"ETL complete. students={stats['students']} courses={stats['courses']} skipped={stats['skipped']}")


if __name__ == '__main__':
    main()
