"""Central logging setup with rotating file handler.

Usage:
    from app_logging import get_logger
    log = get_logger(__name__)
    log.info("message")

Log file: $LOG_DIR/app.log (default logs/app.log, rotates at ~5MB, keeps 5 backups)
"""
from __future__ import annotations
import logging, logging.handlers, os, pathlib

LOG_DIR = pathlib.Path(os.getenv('LOG_DIR', 'logs'))
LOG_DIR.mkdir(parents=True, exist_ok=True)
LOG_PATH = LOG_DIR / 'app.log'

_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'
_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
_PREFIX = 'rfidstudent'

_root = logging.getLogger(_PREFIX)
if not _root.handlers:
    _root.setLevel(_LEVEL)
    _handler = logging.handlers.RotatingFileHandler(LOG_PATH, maxBytes=5_000_000, backupCount=5, encoding='utf-8')
    _handler.setFormatter(logging.Formatter(_FORMAT))
    _root.addHandler(_handler)
    # Also echo to stdout for dev
    stream = logging.StreamHandler()
    stream.setFormatter(logging.Formatter(_FORMAT))
    _root.addHandler(stream)


def get_logger(name: str | None = None) -> logging.Logger:
    if name and name.startswith(_PREFIX + '.'):
        return logging.getLogger(name)
    if name:
        return logging.getLogger(f'{_PREFIX}.{name}')
    return _root
