"""
Event normalization and built-in event names.

Architecture:
- Normalizes loosely-typed caller input into one canonical envelope
- Tags every envelope with its origin (external or internally raised)
- Owns the naming scheme of engine-generated events

Design Patterns:
- Value Object: Immutable event envelope
- Factory Method: Envelope creation from names, mappings or envelopes

Responsibilities:
1. Event Normalization
   - Bare event names
   - Mappings carrying a "type" key
   - Existing envelopes (re-tagged when raised internally)

2. Built-in Events
   - Initialization event
   - Delayed ("after") events
   - Done events for final states and invoked services
   - Error events for invoked services

Dependencies:
- types.py: Reserved names and EventOrigin
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Union

from statechart.core.types import (
    BUILTIN_PREFIX,
    DONE_INVOKE_PREFIX,
    DONE_STATE_PREFIX,
    ERROR_PLATFORM_PREFIX,
    EventOrigin,
)


@dataclass(frozen=True)
class EventEnvelope:
    """Canonical representation of an event threaded through the engine.

    Class Invariants:
    1. Name is always a string
    2. Data always contains the "type" key equal to the name
    3. Envelopes are never mutated after creation
    """
    name: str
    data: Dict[str, Any] = field(default_factory=dict, compare=False)
    origin: EventOrigin = EventOrigin.EXTERNAL

    @property
    def type(self) -> str:
        """Alias of the event name."""
        return self.name

    def as_internal(self) -> "EventEnvelope":
        """Return a copy of this envelope tagged as internally raised."""
        return replace(self, origin=EventOrigin.INTERNAL)


EventLike = Union[str, Mapping[str, Any], EventEnvelope]


def to_event_envelope(
    event: EventLike, origin: EventOrigin = EventOrigin.EXTERNAL
) -> EventEnvelope:
    """Normalize an event into an EventEnvelope.

    Args:
        event: Event name, mapping with a "type" key, or an envelope
        origin: Origin to tag a newly created envelope with

    Returns:
        The canonical envelope. Existing envelopes are returned unchanged.

    Raises:
        ValueError: If a mapping has no string "type"
        TypeError: If the event is of an unsupported type
    """
    if isinstance(event, EventEnvelope):
        return event

    if isinstance(event, str):
        return EventEnvelope(name=event, data={"type": event}, origin=origin)

    if isinstance(event, Mapping):
        name = event.get("type")
        if not isinstance(name, str):
            raise ValueError("Event mapping must carry a string 'type'")
        return EventEnvelope(name=name, data=dict(event), origin=origin)

    raise TypeError(f"Unsupported event type: {type(event).__name__}")


def is_builtin_event(name: str) -> bool:
    """Check whether an event name is generated by the engine itself."""
    return name.startswith(
        (BUILTIN_PREFIX, DONE_STATE_PREFIX, DONE_INVOKE_PREFIX, ERROR_PLATFORM_PREFIX)
    )


def after_event(delay: Any, node_id: str) -> str:
    """Name of the event sent when a delayed transition of a node expires."""
    return f"{BUILTIN_PREFIX}after({delay})#{node_id}"


def done_state_event(node_id: str) -> str:
    """Name of the event raised when a compound or parallel node completes."""
    return f"{DONE_STATE_PREFIX}{node_id}"


def done_invoke_event(invoke_id: str) -> str:
    """Name of the event an interpreter sends when an invoked service completes."""
    return f"{DONE_INVOKE_PREFIX}{invoke_id}"


def error_platform_event(invoke_id: str) -> str:
    """Name of the event an interpreter sends when an invoked service fails."""
    return f"{ERROR_PLATFORM_PREFIX}{invoke_id}"
