import threading
from unittest.mock import MagicMock, patch

import pytest

from rfid_input import clean_tag, detect_port, serial_tags


@pytest.mark.parametrize("raw, expected", [
    (b"04A1B2C3\r\n", "04A1B2C3"),
    (b"\x0204A1-B2C3\x03\r\n", "04A1B2C3"),
    ("  abc123  ", "abc123"),
    (b"ABCDABCD", "ABCD"),
    (b"\xf4\xff\r\n", ""),
])
def test_clean_tag(raw, expected):
    assert clean_tag(raw) == expected


def test_clean_tag_truncates_to_length():
    assert clean_tag(b"0123456789ABCDEF0123\r\n", tag_len=15) == "0123456789ABCDE"
    assert clean_tag(b"0123", tag_len=15) == "0123"


def _port(device, description, hwid=""):
    p = MagicMock()
    p.device, p.description, p.hwid = device, description, hwid
    return p


def test_detect_port_prefers_usb_adapter():
    ports = [_port("/dev/ttyS0", "Serial"), _port("/dev/ttyUSB0", "CP2102 USB to UART")]
    with patch("serial.tools.list_ports.comports", return_value=ports):
        assert detect_port() == "/dev/ttyUSB0"


def test_detect_port_none_available():
    with patch("serial.tools.list_ports.comports", return_value=[]):
        assert detect_port() is None


def test_serial_tags_cleans_and_dedups():
    stop = threading.Event()
    lines = [b"04A1B2C3\r\n", b"04A1B2C3\r\n", b"", b"noise!\r\n", b"99ZZ\r\n", b"SHORT\r\n"]

    def readline():
        if lines:
            return lines.pop(0)
        stop.set()
        return b""

    fake = MagicMock()
    fake.readline.side_effect = readline
    with patch("serial.Serial", return_value=fake) as ctor:
        tags = list(serial_tags("COM5", 9600, stop_event=stop))
    ctor.assert_called_once_with(port="COM5", baudrate=9600, timeout=0.2)
    assert tags == ["04A1B2C3", "noise", "99ZZ", "SHORT"]
    fake.close.assert_called_once()


def test_serial_tags_skips_short_tags_when_length_known():
    stop = threading.Event()
    lines = [b"SHORT\r\n", b"0123456789ABCDE\r\n"]

    def readline():
        if lines:
            return lines.pop(0)
        stop.set()
        return b""

    fake = MagicMock()
    fake.readline.side_effect = readline
    with patch("serial.Serial", return_value=fake):
        assert list(serial_tags("COM5", tag_len=15, stop_event=stop)) == ["0123456789ABCDE"]
