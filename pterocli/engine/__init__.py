"""pterocli engine layer: panel access and the console session, no menus.

Everything here is testable without a terminal attached. Modules use
``from __future__ import annotations`` and modern typing.

Modules
-------
session
    Console value types.
    - ``SessionDescriptor``: one-time socket URL + access token
    - ``ConnectionState``: Connecting / Authenticating / Active / Closing / Closed / Errored
    - ``SessionResult``: how a session ended

protocol
    Wire frames (``{"event": ..., "args": [...]}``).
    - ``classifyFrame``: status (dropped), console output, ignored, or raw text
    - ``authFrame`` / ``commandFrame``: outbound encoders

connection
    - ``DuplexConnection``: one websocket exposed as an event stream plus send/close

coalescer
    - ``OutputCoalescer``: trailing-debounce buffer that draws output in one write

terminal
    - ``PromptTerminal``: draws output above a live prompt_toolkit prompt

reader
    - ``InputLineReader``: operator prompt loop, ``!exit`` handling

console
    - ``ConsoleSession``: the controller; owns state, socket, and teardown

broker
    - ``TokenBroker``: fetches the console descriptor for a server

panel
    Client API over httpx.
    - ``PanelClient``: servers, resources, power, and file operations
    - ``ServerSummary``, ``FileEntry``, ``DirectoryListing``

resources
    - ``ServerResources``, ``formatUptime``, ``formatUsage``, ``statusRows``

config
    - ``Credentials`` (.env / environment), ``AppConfig`` (config.json)

errors
    - ``PanelError``, ``UpstreamUnavailable``, ``TransportError``, ``ConnectionClosed``
"""

from pterocli.engine.console import ConsoleSession
from pterocli.engine.errors import ConnectionClosed, PanelError, TransportError, UpstreamUnavailable
from pterocli.engine.panel import PanelClient
from pterocli.engine.session import ConnectionState, SessionDescriptor, SessionResult

__all__ = [
    "ConsoleSession",
    "ConnectionClosed",
    "PanelError",
    "TransportError",
    "UpstreamUnavailable",
    "PanelClient",
    "ConnectionState",
    "SessionDescriptor",
    "SessionResult",
]
