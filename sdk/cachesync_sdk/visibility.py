"""
Foreground/background resynchronization controller.

Observes the host's visibility notifications and triggers a full resync
when the application comes back to the foreground after being hidden.
Time spent in the background is unbounded, so incremental invalidation
cannot be trusted to have caught everything that changed meanwhile.

State machine:
    FOREGROUND --hide--> BACKGROUNDED
    BACKGROUNDED --show--> FOREGROUND (+ resync unless suppressed)
    FOREGROUND --show--> FOREGROUND (no-op)
    BACKGROUNDED --hide--> BACKGROUNDED (no-op)

Suppression (checked on BACKGROUNDED -> FOREGROUND only):
    - Current location contains an excluded location
    - The UI reports an open overlay/modal

Invariants:
    - State is owned by one controller instance; no module-level flags
    - Notifications are handled in delivery order, no debouncing
    - Exactly one host registration between start() and dispose()
    - Resyncs are never cancelled once scheduled
"""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol, Set, runtime_checkable

from .config import VisibilityConfig

logger = logging.getLogger(__name__)

VisibilityCallback = Callable[[bool], None]
Resync = Callable[[], Awaitable[object]]


class VisibilityState(Enum):
    FOREGROUND = "foreground"
    BACKGROUNDED = "backgrounded"


@runtime_checkable
class HostEnvironment(Protocol):
    """Visibility signals from the host (browser tab, desktop window, ...)."""

    @abstractmethod
    def subscribe(self, callback: VisibilityCallback) -> None:
        """Register `callback(hidden)` for visibility changes."""
        ...

    @abstractmethod
    def unsubscribe(self, callback: VisibilityCallback) -> None:
        """Remove a callback registered with subscribe()."""
        ...

    @abstractmethod
    def has_open_overlay(self) -> bool:
        """Whether a modal/overlay is currently open."""
        ...


@runtime_checkable
class NavigationContext(Protocol):
    """Read access to the current logical location."""

    @abstractmethod
    def current_location(self) -> str:
        ...


class VisibilityController:
    """Triggers a full resync when the app returns to the foreground.

    Example:
        >>> controller = VisibilityController(host, navigation, coordinator.full_resync)
        >>> async with controller:
        ...     ...  # host delivers hide/show notifications
    """

    def __init__(
        self,
        host: HostEnvironment,
        navigation: NavigationContext,
        resync: Resync,
        config: Optional[VisibilityConfig] = None,
    ) -> None:
        """Initialize the controller (not yet registered with the host).

        Args:
            host: Source of visibility notifications and overlay state
            navigation: Source of the current location
            resync: Coroutine factory performing the full resync
            config: Exclusion list and enable flag
        """
        self._host = host
        self._navigation = navigation
        self._resync = resync
        self._config = config or VisibilityConfig()
        self._state = VisibilityState.FOREGROUND
        self._subscribed = False
        self._pending: Set[asyncio.Task] = set()
        self.resync_count = 0

    @property
    def state(self) -> VisibilityState:
        return self._state

    @property
    def is_foreground(self) -> bool:
        return self._state is VisibilityState.FOREGROUND

    @property
    def was_backgrounded(self) -> bool:
        return self._state is VisibilityState.BACKGROUNDED

    @property
    def active(self) -> bool:
        """Whether the controller is registered with the host."""
        return self._subscribed

    def start(self) -> None:
        """Register with the host. Calling twice registers once."""
        if self._subscribed:
            return
        self._state = VisibilityState.FOREGROUND
        self._host.subscribe(self.on_visibility_change)
        self._subscribed = True
        logger.debug("VisibilityController started")

    def dispose(self) -> None:
        """Release the host registration. Safe to call repeatedly."""
        if not self._subscribed:
            return
        self._subscribed = False
        self._host.unsubscribe(self.on_visibility_change)
        logger.debug("VisibilityController disposed")

    def __enter__(self) -> VisibilityController:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.dispose()

    async def __aenter__(self) -> VisibilityController:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.dispose()

    def on_visibility_change(self, hidden: bool) -> bool:
        """Handle one host notification.

        Must be called on the event loop thread; resyncs are scheduled as
        tasks on the running loop.

        Args:
            hidden: True when the application left the foreground

        Returns:
            True if a resync was scheduled
        """
        if hidden:
            if self._state is VisibilityState.FOREGROUND:
                self._state = VisibilityState.BACKGROUNDED
            return False

        if self._state is VisibilityState.FOREGROUND:
            return False

        self._state = VisibilityState.FOREGROUND

        reason = self._suppression_reason()
        if reason is not None:
            logger.debug(f"Resync on focus suppressed: {reason}")
            return False

        self._schedule_resync()
        return True

    def _suppression_reason(self) -> Optional[str]:
        if not self._config.resync_on_focus:
            return "disabled"

        location = self._navigation.current_location()
        for excluded in self._config.excluded_locations:
            if excluded and excluded in location:
                return f"excluded location {location}"

        if self._host.has_open_overlay():
            return "overlay open"

        return None

    def _schedule_resync(self) -> None:
        task = asyncio.get_running_loop().create_task(self._run_resync())
        self.resync_count += 1
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.info("Application returned to foreground, resyncing")

    async def _run_resync(self) -> None:
        try:
            await self._resync()
        except Exception as e:
            logger.error(f"Resync after focus failed: {e}")

    async def wait_idle(self) -> None:
        """Wait for every scheduled resync to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
