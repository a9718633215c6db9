"""Scan form: capture a tag, look it up over HTTP, hold the outcome for display.

The form is toolkit-agnostic. A UI (or scan.py) feeds it events:

    form = ReaderForm(api_url='http://127.0.0.1:5001')
    form.start_scan()
    form.on_input('04A1B2C3\\n')   # reader typing into the focused field
    print('\\n'.join(form.render()))

Lookups are numbered from a monotonic counter; only the newest ticket may
write the result, so a slow older lookup never overwrites a newer scan.
"""
from __future__ import annotations
import threading
import urllib.parse as up
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from app_logging import get_logger

log = get_logger('rfid.reader')

IDLE = 'idle'
SCANNING = 'scanning'

NOT_FOUND_MSG = 'Student not found'
FETCH_FAILED_MSG = 'Failed to fetch student details'
EMPTY_TAG_MSG = 'Please scan an ID card.'

DETAIL_LABELS = (
    ('name', 'Name'),
    ('enrollmentNumber', 'Enrollment Number'),
    ('course', 'Course'),
    ('year', 'Year'),
    ('status', 'Status'),
)


class StudentNotFound(Exception):
    pass


class LookupFailed(Exception):
    pass


def lookup_student(tag: str, api_url: str, timeout: float = 1.5,
                   session: requests.Session | None = None) -> Dict[str, Any]:
    """GET the student for tag; raises StudentNotFound on 404, LookupFailed otherwise."""
    http = session or requests
    url = f"{api_url.rstrip('/')}/api/student/rfid/{up.quote(tag, safe='')}"
    try:
        r = http.get(url, timeout=timeout)
    except requests.RequestException as e:
        log.debug('HTTP lookup failed for %s: %s', tag, e)
        raise LookupFailed(str(e)) from e
    if r.status_code == 404:
        log.info('RFID %s not found via HTTP', tag)
        raise StudentNotFound(tag)
    if r.status_code != 200:
        log.warning('RFID %s lookup status=%s', tag, r.status_code)
        raise LookupFailed(f'HTTP {r.status_code}')
    try:
        data = r.json()
    except ValueError as e:
        raise LookupFailed(f'bad JSON: {e}') from e
    if not isinstance(data, dict):
        raise LookupFailed('unexpected payload')
    log.debug('RFID %s fetched via HTTP', tag)
    return data


@dataclass(frozen=True)
class Result:
    kind: str = 'none'  # none | record | error
    record: Optional[Dict[str, Any]] = None
    message: Optional[str] = None

    @classmethod
    def found(cls, record: Dict[str, Any]) -> 'Result':
        return cls('record', record=record)

    @classmethod
    def error(cls, message: str) -> 'Result':
        return cls('error', message=message)


NO_RESULT = Result()


class ReaderForm:
    def __init__(self, api_url: str = 'http://127.0.0.1:5001', timeout: float = 1.5,
                 auto_submit_len: int | None = None,
                 lookup: Callable[[str], Dict[str, Any]] | None = None):
        self.api_url = api_url
        self.timeout = timeout
        self.auto_submit_len = auto_submit_len
        self._lookup = lookup or (lambda tag: lookup_student(tag, self.api_url, self.timeout))
        self._lock = threading.Lock()
        self._seq = 0
        self.scan_state = IDLE
        self.current_tag = ''
        self.result: Result = NO_RESULT
        self.loading = False

    # ---------------- events ----------------
    def start_scan(self) -> None:
        with self._lock:
            self._seq += 1  # anything still in flight is now stale
            self.scan_state = SCANNING
            self.current_tag = ''
            self.result = NO_RESULT
            self.loading = False
        log.debug('Scan started')

    def stop_scan(self) -> None:
        with self._lock:
            self.scan_state = IDLE

    def set_tag(self, value: str) -> None:
        """Replace the tag outright (manual entry)."""
        with self._lock:
            self.current_tag = value.strip()

    def on_input(self, text: str) -> Optional[Result]:
        """Feed typed characters; returns the lookup result if input triggered one.

        Ignored unless scanning. Enter submits; so does reaching auto_submit_len.
        """
        if self.scan_state != SCANNING:
            return None
        for ch in text:
            if ch in '\r\n':
                if self.current_tag:
                    return self.fetch()
                continue
            self.current_tag += ch
            if self.auto_submit_len and len(self.current_tag) >= self.auto_submit_len:
                return self.fetch()
        return None

    @property
    def can_fetch(self) -> bool:
        return bool(self.current_tag)

    def fetch(self) -> Result:
        """Look up the current tag. Usable whether or not a scan is active."""
        with self._lock:
            tag = self.current_tag
            self._seq += 1
            if not tag:
                # supersedes any lookup still in flight
                self.result = Result.error(EMPTY_TAG_MSG)
                self.loading = False
                return self.result
            ticket = self._seq
            self.loading = True
        try:
            outcome = Result.found(self._lookup(tag))
        except StudentNotFound:
            outcome = Result.error(NOT_FOUND_MSG)
        except Exception as e:
            log.error('Error fetching student details for %s: %s', tag, e)
            outcome = Result.error(FETCH_FAILED_MSG)
        self._finish(ticket, outcome)
        return outcome

    def _finish(self, ticket: int, outcome: Result) -> None:
        with self._lock:
            if ticket != self._seq:
                log.debug('Dropping stale lookup result ticket=%d latest=%d', ticket, self._seq)
                return
            self.result = outcome
            self.loading = False
            self.scan_state = IDLE
            self.current_tag = ''

    # ---------------- display ----------------
    def render(self) -> List[str]:
        lines = [f'RFID UID: {self.current_tag}' if self.current_tag else 'Waiting for scan...']
        if self.scan_state == SCANNING:
            lines.append('Scanning...')
        if self.loading:
            lines.append('Loading...')
        if self.result.kind == 'error':
            lines.append(self.result.message or '')
        elif self.result.kind == 'record':
            rec = self.result.record or {}
            lines.append('Student Details')
            for key, label in DETAIL_LABELS:
                lines.append(f'{label}: {rec.get(key, "")}')
        return lines


__all__ = ['ReaderForm', 'Result', 'lookup_student', 'StudentNotFound', 'LookupFailed',
           'IDLE', 'SCANNING', 'NOT_FOUND_MSG', 'FETCH_FAILED_MSG', 'EMPTY_TAG_MSG']
