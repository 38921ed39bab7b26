"""Configuration, API key storage and the log helper."""
from __future__ import annotations
import os
import json
import time
from typing import Any, Dict, Optional

HOME = os.path.expanduser('~')
CONFIG_PATH = os.environ.get('INTELX_CONFIG') or os.path.join(HOME, '.intelx_cli.json')
LOG_PATH = os.environ.get('INTELX_LOG') or os.path.join(HOME, '.intelx_cli.log')

DEFAULT_BASE_URL = 'https://2.intelx.io'


# Logging helper
def log(msg: str) -> None:
    ts = time.strftime('%Y-%m-%d %H:%M:%S')
    try:
        with open(LOG_PATH, 'a', encoding='utf-8') as f:
            f.write(f"[{ts}] {msg}\n")
    except OSError:
        pass


class Config:
    """Settings loaded once at start-up and handed to whoever needs them.

    The API key and base URL come from the environment first (INTELX_KEY,
    INTELX_API_BASE) and fall back to the JSON file at ``path``.
    """

    def __init__(self, path: str = CONFIG_PATH, api_key: Optional[str] = None,
                 base_url: str = DEFAULT_BASE_URL):
        self.path = path
        self.api_key = api_key
        self.base_url = base_url

    @classmethod
    def load(cls, path: Optional[str] = None) -> 'Config':
        path = path or CONFIG_PATH
        data: Dict[str, Any] = {}
        try:
            if os.path.exists(path):
                with open(path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
        except (OSError, ValueError) as e:
            log(f'Failed to load config: {e}')
            data = {}
        api_key = os.environ.get('INTELX_KEY') or data.get('api_key') or None
        base_url = os.environ.get('INTELX_API_BASE') or data.get('base_url') or DEFAULT_BASE_URL
        return cls(path=path, api_key=api_key, base_url=base_url)

    def set_api_key(self, api_key: str) -> None:
        api_key = (api_key or '').strip()
        if not api_key:
            raise ValueError('API key is required')
        self.api_key = api_key
        self.save()

    def save(self) -> None:
        cfg = {'api_key': self.api_key, 'base_url': self.base_url}
        try:
            os.makedirs(os.path.dirname(self.path) or '.', exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(cfg, f, indent=2)
        except OSError as e:
            log(f'Failed to save config: {e}')
            raise
