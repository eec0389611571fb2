"""The single status banner shown above the upsell block."""

from __future__ import annotations

import structlog

from upsell_checkout.models import Status

logger = structlog.get_logger(__name__)


class StatusBanner:
    """Holds at most one active :class:`Status`.

    Every call to :meth:`show` replaces whatever was showing before.
    """

    def __init__(self) -> None:
        self._current: Status | None = None

    @property
    def current(self) -> Status | None:
        return self._current

    def show(self, status: Status) -> Status:
        self._current = status
        logger.debug(
            "status_shown",
            severity=status.severity.value,
            message=status.message,
        )
        return status

    def clear(self) -> None:
        self._current = None
