"""
Low-speed alerts.

After a test completes, ``LowSpeedAlerter.check`` sends one notification if
the download speed fell below the configured threshold.  Delivery itself is
someone else's job (any object with ``notify(title, body)``).

Asking the user for notification permission is rate limited: at most one
request per ``PERMISSION_REQUEST_INTERVAL``.  Individual notifications are
not rate limited.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol

from .constants import DEFAULT_LOW_SPEED_THRESHOLD, PERMISSION_REQUEST_INTERVAL

logger = logging.getLogger(__name__)

ALERT_TITLE = "Slow Internet Detected"


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LowSpeedAlerter:
    def __init__(
        self,
        notifier: Notifier,
        threshold: float = DEFAULT_LOW_SPEED_THRESHOLD,
        enabled: bool = False,
        authorized: bool = False,
        request_permission: Optional[Callable[[], bool]] = None,
        last_request: Optional[datetime] = None,
        on_request: Optional[Callable[[datetime, bool], None]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.notifier = notifier
        self.threshold = threshold
        self.enabled = enabled
        self.authorized = authorized
        self.request_permission = request_permission
        self.last_request = last_request
        self.on_request = on_request
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        notifier: Notifier,
        request_permission: Optional[Callable[[], bool]] = None,
        on_request: Optional[Callable[[datetime, bool], None]] = None,
    ) -> LowSpeedAlerter:
        raw = config.get("last_permission_request")
        last = None
        if raw:
            try:
                last = datetime.fromisoformat(raw)
            except (TypeError, ValueError):
                logger.warning("Ignoring bad last_permission_request %r", raw)
        return cls(
            notifier=notifier,
            threshold=float(config.get("low_speed_threshold", DEFAULT_LOW_SPEED_THRESHOLD)),
            enabled=bool(config.get("low_speed_notifications", False)),
            authorized=bool(config.get("notifications_enabled", False)),
            request_permission=request_permission,
            last_request=last,
            on_request=on_request,
        )

    # -- Permission ---------------------------------------------------------

    def ensure_permission(self) -> bool:
        """True if notifications may be sent, asking at most once per interval."""
        if self.authorized:
            return True
        if self.request_permission is None:
            return False

        now = self._clock()
        if self.last_request is not None:
            if self.last_request.tzinfo is None:
                self.last_request = self.last_request.replace(tzinfo=timezone.utc)
            if (now - self.last_request).total_seconds() < PERMISSION_REQUEST_INTERVAL:
                logger.debug("Notification permission asked recently, not asking again")
                return False

        try:
            granted = bool(self.request_permission())
        except Exception as exc:  # treated as a refusal
            logger.error("Notification permission request failed: %s", exc)
            granted = False

        self.last_request = now
        self.authorized = granted
        logger.info("Notification permission granted: %s", granted)
        if self.on_request:
            self.on_request(now, granted)
        return granted

    # -- Alert --------------------------------------------------------------

    def check(self, result) -> bool:  # noqa: ANN001 (SpeedTestResult)
        """Notify if *result* is below the threshold.  Returns True if sent."""
        if not self.enabled or result.download_speed >= self.threshold:
            return False
        if not self.ensure_permission():
            return False

        body = (
            f"Your internet speed ({result.download_speed:.1f} Mbps) is below "
            f"your threshold of {self.threshold:.1f} Mbps."
        )
        try:
            self.notifier.notify(ALERT_TITLE, body)
        except Exception as exc:  # fire-and-forget
            logger.error("Failed to send low speed notification: %s", exc)
            return False

        logger.info("Low speed notification sent")
        return True
