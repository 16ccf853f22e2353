from __future__ import annotations
from dataclasses import dataclass
from typing import Any

PENDING = "pending"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"
FAILED = "failed"

TERMINAL_STATUSES = (COMPLETED, FAILED)


@dataclass(frozen=True)
class ScrobbleProgress:
    current: int = 0
    total: int = 0
    success: int = 0
    failed: int = 0
    ignored: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScrobbleProgress":
        return cls(**{k: int(data.get(k) or 0) for k in ("current", "total", "success", "failed", "ignored")})

    def to_dict(self) -> dict[str, int]:
        return {
            "current": self.current,
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "ignored": self.ignored,
        }


@dataclass(frozen=True)
class SessionStatus:
    """One poll response for a scrobble session."""
    session_id: str
    status: str
    progress: ScrobbleProgress | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_dict(cls, session_id: str, data: dict[str, Any]) -> "SessionStatus":
        progress = data.get("progress")
        return cls(
            session_id=data.get("sessionId") or session_id,
            status=data.get("status") or PENDING,
            progress=ScrobbleProgress.from_dict(progress) if progress else None,
            error=data.get("error") or None,
        )


@dataclass(frozen=True)
class ScrobbleResult:
    """Frozen outcome of a session that reached a terminal status."""
    session_id: str
    status: str
    success: int
    failed: int
    ignored: int
    errors: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status == COMPLETED
