import pytest

from etl_students import etl


def _write(path, text):
    path.write_text(text, encoding="utf-8")


def test_etl_loads_students_and_courses(tmp_path, store):
    _write(tmp_path / "students.csv",
           "RFID,Name,Enrollment,Course,Year,Status\n"
           "A1,Jane,E100,CS,2025,Current Student\n"
           "B2,Bob,E200,CS,2024,Graduated\n"
           ",Nobody,E300,CS,2024,Alumni\n")
    _write(tmp_path / "courses.csv",
           "Name,Description\n"
           "CS,Computer Science\n"
           "Math,\n"
           ",orphan\n")
    stats = etl(tmp_path, store)
    assert stats == {"students": 1, "courses": 2, "skipped": 3}
    assert store.get_student("A1")["enrollmentNumber"] == "E100"
    assert store.get_student("B2") is None
    assert [c["name"] for c in store.list_courses()] == ["CS", "Math"]


def test_etl_rerun_is_idempotent(tmp_path, store):
    _write(tmp_path / "students.csv",
           "rfidUID,name,enrollmentNumber,course,year,status\n"
           "A1,Jane,E100,CS,2025,Current Student\n")
    _write(tmp_path / "courses.csv", "name,description\nCS,Computer Science\n")
    etl(tmp_path, store)
    _write(tmp_path / "students.csv",
           "rfidUID,name,enrollmentNumber,course,year,status\n"
           "A1,Jane,E100,CS,2026,Alumni\n")
    stats = etl(tmp_path, store)
    assert stats["courses"] == 0
    assert store.find_students() == [
        {"rfidUID": "A1", "name": "Jane", "enrollmentNumber": "E100", "course": "CS", "year": "2026", "status": "Alumni"}
    ]
    assert len(store.list_courses()) == 1


def test_etl_missing_dir(tmp_path, store):
    with pytest.raises(SystemExit):
        etl(tmp_path / "nope", store)
