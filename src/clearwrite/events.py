"""Event bus used to publish overlay and correction updates to consumers.

The overlay core never talks to a sidebar or toolbar directly. It publishes
events on an :class:`EventBus` and whoever renders findings subscribes.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    Callable,
    Generic,
    TypeVar,
    TYPE_CHECKING,
)
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

    from .overlay.engine import OverlayState, SummaryItem

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events published on the bus."""

    pass


# =============================================================================
# Overlay events
# =============================================================================


@dataclass(slots=True)
class FindingsReplaced(Event):
    """Emitted when a check cycle hands a new finding set to the overlay.

    Attributes:
        document_id: The document the findings belong to.
        finding_count: Number of findings received (before bounds filtering).
    """

    document_id: str
    finding_count: int


@dataclass(slots=True)
class SummaryUpdated(Event):
    """Emitted every time the overlay recomputes its annotations.

    Attributes:
        document_id: The document the overlay is attached to.
        version_id: Document version the annotations were computed against.
        items: Summary items in ascending structural order.
        state: Overlay state after the recomputation.
    """

    document_id: str
    version_id: int
    items: tuple["SummaryItem", ...]
    state: "OverlayState"


# =============================================================================
# Correction events
# =============================================================================


@dataclass(slots=True)
class CorrectionApplied(Event):
    """Emitted after a finding's range was replaced in the document."""

    finding_id: str
    replacement: str
    structural_from: int
    structural_to: int


@dataclass(slots=True)
class CorrectionSkipped(Event):
    """Emitted when a correction could not be resolved against the live overlay."""

    finding_id: str
    reason: str


# =============================================================================
# Check cycle events
# =============================================================================


@dataclass(slots=True)
class CheckStarted(Event):
    """Emitted when a grammar check cycle begins."""

    document_id: str
    version_id: int
    characters: int


@dataclass(slots=True)
class CheckCompleted(Event):
    """Emitted when a grammar check cycle has applied its findings."""

    document_id: str
    version_id: int
    finding_count: int
    elapsed_ms: float


_QUIET_EVENT_TYPES: set[type] = {SummaryUpdated}


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Handlers that are bound methods are held through weak references so an
    abandoned subscriber does not stay alive because of the bus. Plain
    functions and lambdas are held strongly.

    Thread Safety:
        Not thread-safe. Publish and subscribe from the event loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``."""
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                return

    def publish(self, event: E) -> None:
        """Deliver ``event`` to its handlers in registration order.

        A handler that raises is logged and the remaining handlers still run.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if handlers is None:
            if not is_quiet:
                logger.debug("No handlers for event type %s", event_type.__name__)
            return

        if not is_quiet:
            logger.debug(
                "Publishing %s to %d handler(s)",
                event_type.__name__,
                len(handlers),
            )

        dead_indices: list[int] = []
        for i, handler_ref in enumerate(list(handlers)):
            handler = handler_ref.resolve()
            if handler is None:
                dead_indices.append(i)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for i in reversed(dead_indices):
            handlers.pop(i)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "FindingsReplaced",
    "SummaryUpdated",
    "CorrectionApplied",
    "CorrectionSkipped",
    "CheckStarted",
    "CheckCompleted",
]
