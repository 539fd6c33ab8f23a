"""Shared helpers for the interactive menus."""

from __future__ import annotations

import posixpath
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd
import questionary
from loguru import logger
from questionary import Choice, Separator


@dataclass
class Q:
    """Self-asking prompt: a select menu when choices are given, else free text."""

    name: str = ""
    msg: str = ""
    choices: Sequence[str | Choice | Separator] | None = None
    value: str = field(default_factory=str)
    validate: Any = None

    def __post_init__(self):
        # Allow flexiblity with assigning msg/name if they are just the same
        if not self.msg:
            self.msg = self.name

        if not self.name:
            self.name = self.msg

    def ask(self, **kwargs):
        """Prompt user based on types provided."""
        if self.choices:
            return questionary.select(
                message=self.msg,
                choices=self.choices,
                use_indicator=True,
                use_arrow_keys=True,
                use_jk_keys=False,
                **kwargs,
            ).ask_async()

        extra = dict(validate=self.validate) if self.validate else {}
        return questionary.text(self.msg, default=self.value, **extra, **kwargs).ask_async()


@dataclass
class CB:
    """Self-asking multi-select."""

    name: str = ""
    msg: str = ""
    choices: Sequence[Choice] | None = None

    def __post_init__(self):
        if not self.msg:
            self.msg = self.name

        if not self.name:
            self.name = self.msg

    def ask(self, **kwargs):
        return questionary.checkbox(
            message=self.msg,
            choices=self.choices or [],
            use_jk_keys=False,
            **kwargs,
        ).ask_async()


@dataclass
class YN:
    """Self-asking yes/no confirmation."""

    name: str = ""
    msg: str = ""
    default: bool = False

    def __post_init__(self):
        if not self.msg:
            self.msg = self.name

        if not self.name:
            self.name = self.msg

    def ask(self, **kwargs):
        return questionary.confirm(self.msg, default=self.default, **kwargs).ask_async()


def printFrame(df: pd.DataFrame, header: str | None = None) -> None:
    """Log a DataFrame as an aligned text table."""
    if df.empty:
        return

    table = df.to_string(index=False)
    if header:
        logger.info("{}\n{}", header, table)
    else:
        logger.info("\n{}", table)


def joinRemote(*parts: str) -> str:
    """Join remote (always POSIX) path parts and normalize the result."""
    return posixpath.normpath(posixpath.join("/", *parts))


def parentRemote(path: str) -> str:
    return posixpath.dirname(path.rstrip("/")) or "/"


def fmtsize(size: int) -> str:
    val = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if val < 1024 or unit == "GB":
            return f"{val:,.0f} {unit}" if unit == "B" else f"{val:,.2f} {unit}"

        val /= 1024

    raise AssertionError("unreachable")
