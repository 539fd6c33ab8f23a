"""Error taxonomy for panel requests and console sessions."""
from __future__ import annotations


class PteroError(Exception):
    """Base class for everything pterocli raises on purpose."""


class PanelError(PteroError):
    """A panel API request failed.

    ``detail`` is the human-readable reason the panel gave us (its
    ``errors[0].detail`` field) or the transport error text when the
    panel was never reached.
    """

    def __init__(self, detail: str, status: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status = status


class UpstreamUnavailable(PteroError):
    """Console credentials could not be fetched, so no session can start."""


class TransportError(PteroError):
    """The console socket failed after (or while) connecting."""


class ConnectionClosed(PteroError):
    """Attempted to send on a console socket that is not open."""
