"""Configuration persistence for the support chat session core.

This module stores host configuration on disk so a widget host can survive
restarts.

Stored fields:
- storage_dir: Directory holding the durable widget storage database.
- storage_password: Secret the durable storage key is derived from.
- greeting_language: Which greeting variant to show ("est" or "eng").
- error_message: Text shown when rating or feedback submission fails.
- end_user_url / end_user_os: Technical data sent with chat init.
- log_level: Level passed to logging setup.
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional


_LOCK = threading.Lock()

GREETING_LANGUAGES = ("est", "eng")
DEFAULT_ERROR_MESSAGE = "Something went wrong. Please try again."


def _config_file_path() -> Path:
    """Resolve config file path.

    Test harnesses can override via:
    - SUPPORT_CHAT_CONFIG_FILE: full path to config.json
    - SUPPORT_CHAT_CONFIG_DIR: directory containing config.json
    """

    file_env = os.environ.get("SUPPORT_CHAT_CONFIG_FILE")
    if file_env:
        return Path(file_env)

    dir_env = os.environ.get("SUPPORT_CHAT_CONFIG_DIR")
    if dir_env:
        return Path(dir_env) / "config.json"

    return Path.home() / ".support_chat" / "config.json"


@dataclass
class AppConfig:
    storage_dir: Optional[str] = None
    storage_password: str = "support_chat_default_key"
    greeting_language: str = "est"
    error_message: str = DEFAULT_ERROR_MESSAGE
    end_user_url: str = ""
    end_user_os: str = ""
    log_level: str = "INFO"

    def resolved_storage_dir(self) -> Path:
        if self.storage_dir:
            return Path(self.storage_dir)
        return _config_file_path().parent / "storage"


def load_config() -> AppConfig:
    with _LOCK:
        try:
            cfg_file = _config_file_path()
            if not cfg_file.exists():
                return AppConfig()
            data = json.loads(cfg_file.read_text(encoding="utf-8"))
            defaults = AppConfig()
            language = data.get("greeting_language", defaults.greeting_language)
            if language not in GREETING_LANGUAGES:
                language = defaults.greeting_language
            return AppConfig(
                storage_dir=data.get("storage_dir"),
                storage_password=data.get("storage_password")
                or defaults.storage_password,
                greeting_language=language,
                error_message=data.get("error_message") or defaults.error_message,
                end_user_url=data.get("end_user_url", ""),
                end_user_os=data.get("end_user_os", ""),
                log_level=data.get("log_level") or defaults.log_level,
            )
        except Exception:
            return AppConfig()


def save_config(cfg: AppConfig) -> None:
    with _LOCK:
        cfg_file = _config_file_path()
        cfg_file.parent.mkdir(parents=True, exist_ok=True)
        cfg_file.write_text(
            json.dumps(asdict(cfg), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )


def set_storage_dir(path: Optional[str]) -> AppConfig:
    cfg = load_config()
    cfg.storage_dir = path
    save_config(cfg)
    return cfg


def set_greeting_language(language: str) -> AppConfig:
    if language not in GREETING_LANGUAGES:
        raise ValueError(f"Unsupported greeting language: {language}")
    cfg = load_config()
    cfg.greeting_language = language
    save_config(cfg)
    return cfg
