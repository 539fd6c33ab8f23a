"""Panel credentials and local preferences.

Credentials come from ``PTERO_URL`` / ``PTERO_KEY``, with the process
environment layered over a ``.env`` file. Preferences (currently just the
editor used by the file manager) live in ``config.json``.
"""
from __future__ import annotations

import os
import pathlib
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, Final

import orjson
from dotenv import dotenv_values, set_key
from loguru import logger

ENV_PATH: Final = pathlib.Path(os.getenv("PTERO_ENV", ".env"))
CONFIG_PATH: Final = pathlib.Path(os.getenv("PTERO_CONFIG", "config.json"))

EDITORS: Final = ("nano", "vim", "nvim", "acode")
DEFAULT_CONFIG: Final = dict(editor="nano")


@dataclass(slots=True)
class Credentials:
    panelUrl: str = ""
    apiKey: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.panelUrl and self.apiKey)


def loadCredentials(envPath: pathlib.Path = ENV_PATH) -> Credentials:
    found = {**dotenv_values(envPath), **os.environ}
    return Credentials(panelUrl=found.get("PTERO_URL") or "", apiKey=found.get("PTERO_KEY") or "")


def saveCredentials(creds: Credentials, envPath: pathlib.Path = ENV_PATH) -> None:
    envPath.touch(exist_ok=True)
    set_key(envPath, "PTERO_URL", creds.panelUrl)
    set_key(envPath, "PTERO_KEY", creds.apiKey)

    # visible to anything else reading the environment this run
    os.environ["PTERO_URL"] = creds.panelUrl
    os.environ["PTERO_KEY"] = creds.apiKey

    logger.info("Configuration saved to {}", envPath)


def validatePanelUrl(value: str) -> bool | str:
    """questionary validator: True, or the reason the URL is unusable."""
    try:
        url = urllib.parse.urlsplit(value.strip())
    except ValueError:
        return "Please enter a valid URL."

    if url.scheme not in {"http", "https"} or not url.netloc:
        return "Please enter a valid HTTP/HTTPS URL."

    return True


def panelOrigin(value: str) -> str:
    """Reduce any panel URL (``https://panel.example.com/server/abc``) to its origin."""
    url = urllib.parse.urlsplit(value.strip())
    return f"{url.scheme}://{url.netloc}"


def validateApiKey(value: str) -> bool | str:
    return True if value and value.strip() else "API Key cannot be empty."


@dataclass(slots=True)
class AppConfig:
    """Local preferences; keys we don't know about are kept on save."""

    path: pathlib.Path = CONFIG_PATH
    values: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_CONFIG))

    @property
    def editor(self) -> str:
        return self.values.get("editor") or DEFAULT_CONFIG["editor"]

    @editor.setter
    def editor(self, val: str) -> None:
        self.values["editor"] = val


def loadConfig(path: pathlib.Path = CONFIG_PATH) -> AppConfig:
    """Read ``config.json``, creating it with defaults on first run."""
    if not path.exists():
        config = AppConfig(path)
        saveConfig(config)
        return config

    try:
        values = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as e:
        logger.error("[{}] Unreadable config ({}), using defaults", path, e)
        values = {}

    if not isinstance(values, dict):
        values = {}

    return AppConfig(path, {**DEFAULT_CONFIG, **values})


def saveConfig(config: AppConfig) -> None:
    config.path.write_bytes(orjson.dumps(config.values, option=orjson.OPT_INDENT_2))
