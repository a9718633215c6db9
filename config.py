"""Runtime settings for the lookup service and scan client.

Resolution order (later wins):
  1. built-in defaults below
  2. YAML file: $RFID_STUDENT_CONFIG or ./rfid_student.yaml (if present)
  3. environment variables

Example rfid_student.yaml:

    db_path: data/students.sqlite
    api_url: http://192.168.70.62:5001
    cors_origins: [http://localhost:8081]
    rfid:
      port: COM5
      baud: 9600
      tag_len: 10
"""
from __future__ import annotations
import os, pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app_logging import get_logger

log = get_logger('config')

CONFIG_FILE = pathlib.Path('rfid_student.yaml')
DEFAULT_DB_PATH = pathlib.Path(__file__).parent / 'students.sqlite'


@dataclass
class Settings:
    db_path: str = str(DEFAULT_DB_PATH)
    api_url: str = 'http://127.0.0.1:5001'
    api_timeout: float = 1.5
    cors_origins: List[str] = field(default_factory=lambda: ['*'])
    rfid_port: Optional[str] = None
    rfid_baud: int = 9600
    tag_len: Optional[int] = None


def _split_origins(value) -> List[str]:
    if isinstance(value, str):
        return [o.strip() for o in value.split(',') if o.strip()]
    return [str(o).strip() for o in (value or []) if str(o).strip()]


def load_yaml(path: pathlib.Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    from ruamel.yaml import YAML
    data = YAML(typ='safe').load(path.read_text(encoding='utf-8')) or {}
    if not isinstance(data, dict):
        log.warning('Ignoring config file %s (top level is not a mapping)', path)
        return {}
    log.debug('Loaded config file %s', path)
    return data


def load_settings(path: pathlib.Path | None = None, environ=None) -> Settings:
    env = os.environ if environ is None else environ
    cfg_path = path or pathlib.Path(env.get('RFID_STUDENT_CONFIG') or CONFIG_FILE)
    data = load_yaml(cfg_path)
    rfid_cfg = data.get('rfid') or {}

    s = Settings()
    if data.get('db_path'):
        s.db_path = str(data['db_path'])
    if data.get('api_url'):
        s.api_url = str(data['api_url'])
    if data.get('api_timeout') is not None:
        s.api_timeout = float(data['api_timeout'])
    if data.get('cors_origins'):
        s.cors_origins = _split_origins(data['cors_origins'])
    if rfid_cfg.get('port'):
        s.rfid_port = str(rfid_cfg['port']).strip()
    if rfid_cfg.get('baud'):
        s.rfid_baud = int(rfid_cfg['baud'])
    if rfid_cfg.get('tag_len'):
        s.tag_len = int(rfid_cfg['tag_len'])

    if env.get('STUDENT_DB_PATH'):
        s.db_path = env['STUDENT_DB_PATH']
    if env.get('API_URL'):
        s.api_url = env['API_URL']
    if env.get('API_TIMEOUT'):
        s.api_timeout = float(env['API_TIMEOUT'])
    if env.get('CORS_ORIGINS'):
        s.cors_origins = _split_origins(env['CORS_ORIGINS'])
    if env.get('RFID_PORT'):
        s.rfid_port = env['RFID_PORT'].strip()
    if env.get('RFID_BAUD'):
        s.rfid_baud = int(env['RFID_BAUD'])
    if env.get('TAG_LEN'):
        s.tag_len = int(env['TAG_LEN'])
    s.api_url = s.api_url.rstrip('/')
    return s


__all__ = ['Settings', 'load_settings']
