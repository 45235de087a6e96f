"""
Gesture handling for the owner's renter rows.

Dragging a row right marks the month paid, dragging it left marks it
unpaid. Taps open the meter photo view (single) or the monthly breakdown
(double). Nothing here does I/O; the backend call is passed in.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from livenzo.rent.transitions import ACTION_PAID, ACTION_UNPAID

logger = logging.getLogger(__name__)

DIRECTION_LEFT = 'left'
DIRECTION_RIGHT = 'right'

TAP_OPEN_PHOTOS = 'open_photos'
TAP_OPEN_DETAIL = 'open_detail'

_ACTION_FOR_DIRECTION = {
    DIRECTION_RIGHT: ACTION_PAID,
    DIRECTION_LEFT: ACTION_UNPAID,
}


@dataclass(frozen=True)
class SwipeIntent:
    """A released drag strong enough to request a status change."""
    direction: str
    action: str
    offset: float
    velocity: float


@dataclass(frozen=True)
class SwipeOutcome:
    """Result of one drag on a row, after the backend call settled."""
    triggered: bool
    intent: Optional[SwipeIntent] = None
    success: bool = False
    ignored: bool = False
    error: Optional[str] = None


class SwipeGestureInterpreter:
    """Maps horizontal drag offsets (px) and release velocity (px/s) to intents."""

    def __init__(self, hint_threshold=50, trigger_offset=100, trigger_velocity=500):
        self.hint_threshold = float(hint_threshold)
        self.trigger_offset = float(trigger_offset)
        self.trigger_velocity = float(trigger_velocity)

    @classmethod
    def from_config(cls, config):
        return cls(
            hint_threshold=config.get('SWIPE_HINT_THRESHOLD', 50),
            trigger_offset=config.get('SWIPE_TRIGGER_OFFSET', 100),
            trigger_velocity=config.get('SWIPE_TRIGGER_VELOCITY', 500),
        )

    def hint(self, offset) -> Optional[str]:
        """Direction to highlight while dragging, or None below the threshold."""
        offset = float(offset)
        if abs(offset) > self.hint_threshold:
            return DIRECTION_RIGHT if offset > 0 else DIRECTION_LEFT
        return None

    def should_trigger(self, offset, velocity) -> bool:
        return abs(float(offset)) > self.trigger_offset or abs(float(velocity)) > self.trigger_velocity

    def release(self, offset, velocity=0) -> Optional[SwipeIntent]:
        """
        Interpret a released drag.

        Returns a SwipeIntent when either the offset or the velocity passes
        its threshold, otherwise None (the row springs back).
        """
        offset = float(offset)
        velocity = float(velocity or 0)
        if not self.should_trigger(offset, velocity):
            return None

        # Offset sign decides; a pure flick with no travel uses the velocity
        sign = offset if offset != 0 else velocity
        direction = DIRECTION_RIGHT if sign > 0 else DIRECTION_LEFT
        return SwipeIntent(
            direction=direction,
            action=_ACTION_FOR_DIRECTION[direction],
            offset=offset,
            velocity=velocity,
        )


class SwipeRowController:
    """
    Drag state of a single renter row.

    Holds the confirmed status plus an optimistic override shown while the
    backend call is in flight. New drags are ignored until that call settles.
    """

    def __init__(self, status, interpreter: Optional[SwipeGestureInterpreter] = None):
        self.status = status
        self.interpreter = interpreter or SwipeGestureInterpreter()
        self.override = None
        self.in_flight = False
        self.dragging = False
        self.hint = None

    @property
    def display_status(self):
        return self.override if self.override is not None else self.status

    def drag_start(self) -> bool:
        if self.in_flight:
            return False
        self.dragging = True
        self.hint = None
        return True

    def drag_move(self, offset) -> Optional[str]:
        if not self.dragging:
            return None
        self.hint = self.interpreter.hint(offset)
        return self.hint

    def drag_end(self, offset, velocity=0) -> Optional[SwipeIntent]:
        """Finish the drag; a triggered intent puts the row in flight."""
        if not self.dragging:
            return None
        self.dragging = False
        self.hint = None

        intent = self.interpreter.release(offset, velocity)
        if intent is None:
            return None

        self.in_flight = True
        self.override = intent.action
        return intent

    def settle(self, success: bool, confirmed_status=None):
        """Commit or revert the optimistic override."""
        if success:
            self.status = confirmed_status or self.override or self.status
        self.override = None
        self.in_flight = False

    def perform(self, offset, velocity, submit: Callable[[str], Optional[str]]) -> SwipeOutcome:
        """
        Run a complete drag and the backend call for it.

        `submit` receives the requested action and returns the confirmed
        status (or None to accept the requested one). Any error it raises is
        reported in the outcome and the row reverts to its previous status.
        """
        if not self.drag_start():
            return SwipeOutcome(triggered=False, ignored=True)

        intent = self.drag_end(offset, velocity)
        if intent is None:
            return SwipeOutcome(triggered=False)

        try:
            confirmed = submit(intent.action)
        except Exception as e:
            logger.warning(f"[RENT] Swipe '{intent.action}' failed, reverting to '{self.status}': {e}")
            self.settle(False)
            return SwipeOutcome(triggered=True, intent=intent, success=False, error=str(e))

        self.settle(True, confirmed)
        return SwipeOutcome(triggered=True, intent=intent, success=True)


class TapRecognizer:
    """
    Single vs double tap on a row.

    A second tap inside the window opens the detail view. A lone tap is
    only resolved once the window has passed (see poll()), and opens the
    photo view when the row has meter photos. Taps during a drag are dropped.
    """

    def __init__(self, window_ms=300, clock: Callable[[], float] = time.monotonic):
        self.window = window_ms / 1000.0
        self.clock = clock
        self._pending_at = None
        self._pending_has_photos = False

    @property
    def pending(self) -> bool:
        return self._pending_at is not None

    def tap(self, has_photos: bool, dragging: bool = False) -> Optional[str]:
        """
        Register a tap.

        Returns TAP_OPEN_DETAIL for a double tap. If an earlier single tap
        had already expired it is resolved here and its result returned.
        """
        if dragging:
            self.reset()
            return None

        now = self.clock()
        if self._pending_at is not None:
            if now - self._pending_at <= self.window:
                self.reset()
                return TAP_OPEN_DETAIL
            expired = self.poll(now)
            self._start(now, has_photos)
            return expired

        self._start(now, has_photos)
        return None

    def poll(self, now=None) -> Optional[str]:
        """Resolve a pending single tap once the double-tap window elapsed."""
        if self._pending_at is None:
            return None
        now = self.clock() if now is None else now
        if now - self._pending_at <= self.window:
            return None
        has_photos = self._pending_has_photos
        self.reset()
        return TAP_OPEN_PHOTOS if has_photos else None

    def reset(self):
        self._pending_at = None
        self._pending_has_photos = False

    def _start(self, now, has_photos):
        self._pending_at = now
        self._pending_has_photos = bool(has_photos)
