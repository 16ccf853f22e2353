"""
Webhook notifications for finished scrobble sessions.

One JSON POST per session outcome to NOTIFY_WEBHOOK_URL:

    {"level": "WARNING", "title": "...", "album": "Pink", "status": "failed",
     "success": 3, "failed": 1, "ignored": 0, "errors": ["..."]}

Outcomes below NOTIFY_MIN_LEVEL are dropped. Delivery is best-effort.
"""

from __future__ import annotations
import logging
import os
from typing import Any

import requests

from recordscrobbler.session import FAILED, ScrobbleResult

log = logging.getLogger("notifier")

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}


def outcome_level(result: ScrobbleResult | None) -> str:
    if result is None:
        return "ERROR"
    return "INFO" if result.ok else "WARNING"


class Notifier:
    def __init__(self, webhook_url: str | None, min_level: str = "WARNING", app_tag: str = "Record Scrobbler",
                 timeout: float = 5):
        self.webhook_url = (webhook_url or "").strip() or None
        self.min_level = _LEVELS.get(min_level.upper(), _LEVELS["WARNING"])
        self.app_tag = app_tag
        self.timeout = timeout

    def enabled_for(self, level: str) -> bool:
        return bool(self.webhook_url) and _LEVELS.get(level, _LEVELS["WARNING"]) >= self.min_level

    def session_finished(self, album: str, result: ScrobbleResult | None, error: str | None = None) -> bool:
        """Report one session outcome; True when a notification was delivered."""
        level = outcome_level(result)
        if not self.enabled_for(level):
            return False

        event: dict[str, Any] = {"level": level, "album": album}
        if result is None:
            # transport failure: no counts to report
            event.update(title=f"{self.app_tag}: Scrobble failed", status=FAILED,
                         errors=[error or "Unknown error"])
        else:
            event.update(
                title=f"{self.app_tag}: " + ("Scrobbled" if result.ok else "Scrobble finished with errors"),
                status=result.status,
                session_id=result.session_id,
                success=result.success,
                failed=result.failed,
                ignored=result.ignored,
                errors=list(result.errors),
            )
        return self._post(event)

    def _post(self, event: dict[str, Any]) -> bool:
        try:
            resp = requests.post(self.webhook_url, json=event, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            log.debug("Notification send failed: %s", e)
            return False
        return True


def from_env() -> Notifier:
    return Notifier(
        webhook_url=os.getenv("NOTIFY_WEBHOOK_URL"),
        min_level=os.getenv("NOTIFY_MIN_LEVEL", "WARNING"),
        app_tag=os.getenv("APP_TAG", "Record Scrobbler"),
    )
