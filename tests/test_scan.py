import io
from unittest.mock import MagicMock, patch

import pytest

import scan
from rfid_reader import ReaderForm

JANE = {"rfidUID": "A1", "name": "Jane", "enrollmentNumber": "E100", "course": "CS", "year": "2025", "status": "Current Student"}


def _response(status, payload):
    r = MagicMock()
    r.status_code = status
    r.json.return_value = payload
    return r


def test_single_tag_lookup(capsys, monkeypatch):
    monkeypatch.delenv("API_URL", raising=False)
    with patch("rfid_reader.requests.get", return_value=_response(200, JANE)) as get:
        rc = scan.main(["--api", "http://api:5001/", "--tag", " A1 "])
    assert rc == 0
    assert get.call_args[0][0] == "http://api:5001/api/student/rfid/A1"
    out = capsys.readouterr().out
    assert "Name: Jane" in out


def test_single_tag_not_found(capsys):
    with patch("rfid_reader.requests.get", return_value=_response(404, {"error": "Student not found"})):
        rc = scan.main(["--api", "http://api", "--tag", "ZZ"])
    assert rc == 1
    assert "Student not found" in capsys.readouterr().out


def test_scan_lines_looks_up_each_tag(capsys):
    seen = []
    form = ReaderForm(lookup=lambda tag: seen.append(tag) or {**JANE, "rfidUID": tag})
    count = scan.scan_lines(form, io.StringIO("A1\n\n  B2\r\n"))
    assert count == 2
    assert seen == ["A1", "B2"]
    assert capsys.readouterr().out.count("Student Details") == 2


@pytest.mark.parametrize("tag", ["x-9", "1212", "ABAB"])
def test_tag_is_looked_up_verbatim(tag):
    with patch("rfid_reader.requests.get", return_value=_response(200, {**JANE, "rfidUID": tag})) as get:
        assert scan.main(["--api", "http://api", "--tag", tag]) == 0
    assert get.call_args[0][0] == f"http://api/api/student/rfid/{tag}"


def test_stdin_lines_keep_punctuation_and_repeats():
    seen = []
    form = ReaderForm(lookup=lambda tag: seen.append(tag) or JANE)
    scan.scan_lines(form, io.StringIO("x-9\r\n1212\n"))
    assert seen == ["x-9", "1212"]
