"""RFID tag input helpers.

Readers show up either as a keyboard wedge (tag typed into the focused
field, terminated by Enter) or as a USB/TTL serial device emitting one
line per scan. Both paths end up as a cleaned tag string.
"""
from __future__ import annotations
import time
from typing import Iterator, Optional

from app_logging import get_logger

log = get_logger('rfid.input')

DEDUP_WINDOW = 1.0  # seconds
MAX_LINE_LEN = 512


def clean_tag(raw: bytes | str, tag_len: Optional[int] = None) -> str:
    """Reduce a raw reader line to its tag.

    - Keep only ASCII 0-9, A-Z, a-z.
    - A block repeated back to back (reader double-send) collapses to one.
    - With tag_len set, longer sequences are truncated to tag_len.
    """
    if isinstance(raw, str):
        raw = raw.encode('utf-8', errors='ignore')
    stripped = raw.strip(b'\r\n\x00')
    tag = ''.join(chr(c) for c in stripped if (48 <= c <= 57) or (65 <= c <= 90) or (97 <= c <= 122))
    if tag_len:
        if len(tag) > tag_len:
            log.debug('Truncating tag %r to %d chars', tag, tag_len)
            tag = tag[:tag_len]
        return tag
    half = len(tag) // 2
    if half and len(tag) % 2 == 0 and tag[:half] == tag[half:]:
        log.debug('Collapsed duplicate block %r', tag)
        tag = tag[:half]
    return tag


def detect_port() -> Optional[str]:
    """Return the first plausible serial port for an RFID USB TTL adapter."""
    from serial.tools import list_ports

    ports = list(list_ports.comports())
    if not ports:
        return None
    for p in ports:
        desc = f"{p.description} {p.hwid}".lower()
        if any(k in desc for k in ("usb", "ttl", "rfid", "cp210", "ch34", "ftdi", "acm")):
            return p.device
    return ports[0].device


def serial_tags(port: str, baud: int = 9600, tag_len: Optional[int] = None,
                timeout: float = 0.2, stop_event=None) -> Iterator[str]:
    """Yield cleaned tags read line by line from a serial reader.

    The same tag seen again within DEDUP_WINDOW seconds is suppressed.
    Stops when stop_event (threading/multiprocessing Event) is set.
    """
    import serial

    log.info('Opening serial port port=%s baud=%s', port, baud)
    ser = serial.Serial(port=port, baudrate=baud, timeout=timeout)
    last_tag: str | None = None
    last_tag_time = 0.0
    try:
        while stop_event is None or not stop_event.is_set():
            raw = ser.readline()
            if not raw:
                continue
            if len(raw) > MAX_LINE_LEN:
                log.warning('Discarding oversized line len=%d', len(raw))
                continue
            tag = clean_tag(raw, tag_len)
            if not tag:
                log.debug('No tag in line %r', raw)
                continue
            if tag_len and len(tag) < tag_len:
                log.debug('Short tag %r ignored (expected %d chars)', tag, tag_len)
                continue
            now = time.time()
            if tag == last_tag and (now - last_tag_time) < DEDUP_WINDOW:
                log.debug('Duplicate tag suppressed tag=%s dt=%.3f', tag, now - last_tag_time)
                continue
            last_tag, last_tag_time = tag, now
            log.info('RFID scanned %s', tag)
            yield tag
    finally:
        ser.close()
        log.info('Serial reader closed port=%s', port)


__all__ = ['clean_tag', 'detect_port', 'serial_tags']
