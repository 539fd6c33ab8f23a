"""Server resource snapshot and its human-readable formatting."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final

MB: Final = 1024 * 1024

# state -> prompt_toolkit style for the status row
STATE_STYLES: Final = {
    "running": "ansigreen bold",
    "offline": "ansired bold",
    "starting": "ansiyellow bold",
    "stopping": "ansiyellow bold",
}


@dataclass(frozen=True, slots=True)
class ServerResources:
    state: str
    uptimeMs: int = 0
    cpu: float = 0.0
    memoryBytes: int = 0
    diskBytes: int = 0

    # panel limits are in MB; 0 / None means unlimited or unknown
    memoryLimitMb: int | None = None
    diskLimitMb: int | None = None

    @classmethod
    def fromAttributes(cls, attrs: dict[str, Any]) -> ServerResources:
        res = attrs.get("resources") or {}
        limits = attrs.get("limits") or {}
        return cls(
            state=attrs.get("current_state", "unknown"),
            uptimeMs=int(res.get("uptime") or 0),
            cpu=float(res.get("cpu_absolute") or 0.0),
            memoryBytes=int(res.get("memory_bytes") or 0),
            diskBytes=int(res.get("disk_bytes") or 0),
            memoryLimitMb=limits.get("memory"),
            diskLimitMb=limits.get("disk"),
        )

    @property
    def offline(self) -> bool:
        return self.state == "offline"


def formatUptime(uptimeMs: int) -> str:
    """Render uptime like ``2d 3h 4m 5s``, dropping zero units (seconds always shown)."""
    if uptimeMs <= 0:
        return "N/A"

    total = uptimeMs // 1000
    days, total = divmod(total, 24 * 3600)
    hours, total = divmod(total, 3600)
    minutes, seconds = divmod(total, 60)

    parts = [f"{days}d" if days else "", f"{hours}h" if hours else "", f"{minutes}m" if minutes else ""]
    return " ".join([p for p in parts if p] + [f"{seconds}s"])


def formatUsage(usedBytes: int, limitMb: int | None) -> str:
    """Render ``123.45 MB / 1024 MB (12.06%)``; unknown limits print N/A and 0%."""
    limitBytes = (limitMb or 0) * MB
    pct = (usedBytes / limitBytes) * 100 if limitBytes > 0 else 0
    return f"{usedBytes / MB:.2f} MB / {limitMb or 'N/A'} MB ({pct:.2f}%)"


def statusRows(res: ServerResources) -> list[tuple[str, str]]:
    """Metric/value rows for the status table (offline servers only show state)."""
    rows = [("Status", res.state)]
    if res.offline:
        return rows

    rows += [
        ("Uptime", formatUptime(res.uptimeMs)),
        ("CPU", f"{res.cpu:.2f}%"),
        ("RAM", formatUsage(res.memoryBytes, res.memoryLimitMb)),
        ("Disk", formatUsage(res.diskBytes, res.diskLimitMb)),
    ]

    return rows
