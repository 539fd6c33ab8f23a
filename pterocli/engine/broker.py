"""Fetches the one-time console descriptor for a server."""
from __future__ import annotations

from loguru import logger

from pterocli.engine.errors import PanelError, UpstreamUnavailable
from pterocli.engine.panel import PanelClient
from pterocli.engine.session import SessionDescriptor


class TokenBroker:
    """Stateless: each call is one panel request for a fresh socket URL and token."""

    def __init__(self, panel: PanelClient):
        self.panel = panel

    async def acquireDescriptor(self, serverId: str) -> SessionDescriptor:
        try:
            got = await self.panel.websocket(serverId)
            descriptor = SessionDescriptor(endpointUri=got["socket"], accessToken=got["token"])
        except PanelError as e:
            raise UpstreamUnavailable(e.detail) from e
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamUnavailable(f"Malformed console credentials: {e}") from e

        logger.debug("[{}] Got console descriptor for {}", serverId, descriptor.endpointUri)
        return descriptor
