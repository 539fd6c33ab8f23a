"""Console wire frames: classify what the daemon sends, encode what we send.

Every structured frame is a JSON object shaped like::

    {"event": "console output", "args": ["[12:00:01] Done (3.2s)!\\n"]}

The daemon also pushes plain text before its framing starts (boot banners,
install output on some eggs), so anything that doesn't decode to a frame
object is passed through as raw console text instead of being dropped.
"""
from __future__ import annotations

import dataclasses
import enum
import json
import platform
import types
from typing import Any, Final

ourjson: types.ModuleType
# Only use orjson under CPython, else use default json (because `json` under pypy is faster than orjson)
if platform.python_implementation() == "CPython":
    import orjson

    ourjson = orjson
else:
    ourjson = json

# inbound
EVENT_STATUS: Final = "status"
EVENT_CONSOLE_OUTPUT: Final = "console output"

# outbound
EVENT_AUTH: Final = "auth"
EVENT_SEND_COMMAND: Final = "send command"


class FrameKind(enum.Enum):
    # heartbeat / power state chatter, never shown
    STATUS = "status"
    # text the server process printed
    CONSOLE_OUTPUT = "console output"
    # well-formed frame we have no use for (stats, token expiring, ...)
    IGNORED = "ignored"
    # not a frame at all, show it verbatim
    RAW = "raw"


@dataclasses.dataclass(frozen=True, slots=True)
class InboundFrame:
    kind: FrameKind
    text: str | None = None

    @property
    def printable(self) -> bool:
        return self.text is not None and self.kind in {FrameKind.CONSOLE_OUTPUT, FrameKind.RAW}


def rawText(raw: str | bytes) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")

    return raw


def decodeFrame(raw: str | bytes) -> dict[str, Any] | None:
    """Return the frame object, or None if ``raw`` isn't a frame."""
    try:
        got = ourjson.loads(raw)
    except (ValueError, TypeError):
        return None

    if not isinstance(got, dict) or not isinstance(got.get("event"), str):
        return None

    return got


def classifyFrame(raw: str | bytes) -> InboundFrame:
    """Classify one inbound message.

    Precedence: status frames are discarded, console output frames yield
    their single text argument, other well-formed frames are ignored, and
    anything unparseable is console text as-is.
    """
    frame = decodeFrame(raw)
    if frame is None:
        return InboundFrame(FrameKind.RAW, rawText(raw))

    event = frame["event"]
    if event == EVENT_STATUS:
        return InboundFrame(FrameKind.STATUS)

    if event == EVENT_CONSOLE_OUTPUT:
        args = frame.get("args")
        if not isinstance(args, list) or not args:
            return InboundFrame(FrameKind.IGNORED)

        text = args[0]
        return InboundFrame(FrameKind.CONSOLE_OUTPUT, text if isinstance(text, str) else str(text))

    return InboundFrame(FrameKind.IGNORED)


def encodeFrame(event: str, *args: str) -> str:
    payload = ourjson.dumps({"event": event, "args": list(args)})

    # orjson gives bytes, json gives str; websocket text frames need str
    if isinstance(payload, bytes):
        return payload.decode()

    return payload


def authFrame(token: str) -> str:
    return encodeFrame(EVENT_AUTH, token)


def commandFrame(text: str) -> str:
    return encodeFrame(EVENT_SEND_COMMAND, text)
