"""
Action descriptors and action creators.

Architecture:
- Represents every action as an inert, tagged descriptor
- Normalizes declarative action input (name, callable, list) into tuples
- Provides creators for the engine's built-in descriptors
- Leaves execution to an external collaborator (see runtime.executor)

Design Patterns:
- Command Pattern: Descriptors encapsulate an action to run later
- Factory Method: Built-in action creators
- Value Object: Descriptors are immutable

Responsibilities:
1. Action Normalization
   - Single item, ordered sequence or bare reference
   - Inline callables vs. names resolved through a registry
   - Mapping-style action objects carrying a "type"

2. Built-in Descriptors
   - assign: context update, applied during the transition
   - raise: internal event, processed within the macrostep
   - send / cancel: delayed event scheduling for the run loop
   - start / stop: activities and invoked services

Dependencies:
- types.py: ActionKind and reserved prefixes
- event.py: Event normalization for raise/send
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from statechart.core.event import EventEnvelope, EventLike, to_event_envelope
from statechart.core.types import BUILTIN_PREFIX, ActionKind, EventOrigin


ASSIGN = BUILTIN_PREFIX + "assign"
RAISE = BUILTIN_PREFIX + "raise"
SEND = BUILTIN_PREFIX + "send"
CANCEL = BUILTIN_PREFIX + "cancel"
START = BUILTIN_PREFIX + "start"
STOP = BUILTIN_PREFIX + "stop"

# Descriptors consumed while computing a transition, never emitted
CONSUMED_ACTION_TYPES = frozenset({ASSIGN, RAISE})


@dataclass(frozen=True)
class ActionDescriptor:
    """An inert description of an action to execute.

    The descriptor is a tagged variant: INLINE descriptors carry their own
    callable in ``exec``, BY_NAME descriptors are looked up by ``type`` in the
    actions registry at execution time, BUILTIN descriptors are interpreted by
    the engine (assign, raise) or by the run loop (send, cancel, start, stop).

    Class Invariants:
    1. INLINE descriptors always carry a callable
    2. BY_NAME and BUILTIN descriptors never do
    3. Descriptors are never mutated after creation
    """
    type: str
    kind: ActionKind = ActionKind.BY_NAME
    exec: Optional[Callable[..., Any]] = field(default=None, compare=False)
    params: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.type, str) or not self.type:
            raise ValueError("Action type must be a non-empty string")
        if self.kind is ActionKind.INLINE and not callable(self.exec):
            raise ValueError("Inline actions must carry a callable")


ActionLike = Union[str, Callable[..., Any], Mapping[str, Any], ActionDescriptor]


def to_action_descriptor(action: ActionLike) -> ActionDescriptor:
    """Convert a single declarative action into a descriptor.

    Args:
        action: Descriptor, action name, callable or mapping with a "type"

    Returns:
        The normalized descriptor

    Raises:
        TypeError: If the action cannot be interpreted
    """
    if isinstance(action, ActionDescriptor):
        return action

    if isinstance(action, str):
        return ActionDescriptor(type=action, kind=ActionKind.BY_NAME)

    if isinstance(action, Mapping):
        params = dict(action)
        action_type = params.pop("type", None)
        if not isinstance(action_type, str):
            raise TypeError("Action mappings must carry a string 'type'")
        return ActionDescriptor(type=action_type, kind=ActionKind.BY_NAME, params=params)

    if callable(action):
        name = getattr(action, "__name__", None) or "inline"
        return ActionDescriptor(type=name, kind=ActionKind.INLINE, exec=action)

    raise TypeError(f"Unsupported action: {action!r}")


def to_action_list(actions: Union[None, ActionLike, Iterable[ActionLike]]) -> Tuple[ActionDescriptor, ...]:
    """Normalize a single action, a sequence or nothing into a descriptor tuple."""
    if actions is None:
        return ()
    if isinstance(actions, (str, Mapping, ActionDescriptor)) or callable(actions):
        return (to_action_descriptor(actions),)
    return tuple(to_action_descriptor(action) for action in actions)


def assign(assignment: Union[Callable[[Any, EventEnvelope], Mapping[str, Any]], Mapping[str, Any]]) -> ActionDescriptor:
    """Create an assign descriptor.

    Args:
        assignment: Either a callable ``(context, event) -> partial mapping``
            or a mapping of keys to values / ``(context, event)`` callables

    Returns:
        Descriptor applied to the context while the transition is computed
    """
    if not callable(assignment) and not isinstance(assignment, Mapping):
        raise TypeError("Assignment must be a callable or a mapping")
    return ActionDescriptor(type=ASSIGN, kind=ActionKind.BUILTIN, params={"assignment": assignment})


def raise_event(event: EventLike) -> ActionDescriptor:
    """Create a descriptor that raises an internal event within the macrostep."""
    envelope = to_event_envelope(event, origin=EventOrigin.INTERNAL).as_internal()
    return ActionDescriptor(type=RAISE, kind=ActionKind.BUILTIN, params={"event": envelope})


def send(event: EventLike, delay: Any = None, id: Optional[str] = None) -> ActionDescriptor:
    """Create a descriptor asking the run loop to send an event, optionally delayed.

    Args:
        event: Event to send back to the machine
        delay: Milliseconds or the name of a delay in the delays registry
        id: Identifier used to cancel the send; defaults to the event name
    """
    envelope = to_event_envelope(event)
    return ActionDescriptor(
        type=SEND,
        kind=ActionKind.BUILTIN,
        params={"event": envelope, "delay": delay, "id": id or envelope.name},
    )


def cancel(send_id: str) -> ActionDescriptor:
    """Create a descriptor cancelling a pending delayed send."""
    return ActionDescriptor(type=CANCEL, kind=ActionKind.BUILTIN, params={"id": send_id})


def start(activity_id: str, src: Any = None, kind: str = "activity") -> ActionDescriptor:
    """Create a descriptor starting an activity or invoked service."""
    return ActionDescriptor(
        type=START,
        kind=ActionKind.BUILTIN,
        params={"id": activity_id, "src": src if src is not None else activity_id, "kind": kind},
    )


def stop(activity_id: str, kind: str = "activity") -> ActionDescriptor:
    """Create a descriptor stopping an activity or invoked service."""
    return ActionDescriptor(type=STOP, kind=ActionKind.BUILTIN, params={"id": activity_id, "kind": kind})


def apply_assign(descriptor: ActionDescriptor, context: Any, event: EventEnvelope) -> Dict[str, Any]:
    """Compute the context produced by an assign descriptor.

    The given context is never mutated; a new mapping is returned with the
    assigned keys replaced.

    Raises:
        TypeError: If the context is not a mapping or the assignment does not
            produce one
    """
    if context is None:
        base: Dict[str, Any] = {}
    elif isinstance(context, Mapping):
        base = dict(context)
    else:
        raise TypeError("assign requires a mapping context")

    assignment = descriptor.params["assignment"]
    if callable(assignment):
        updates = assignment(context, event)
        if not isinstance(updates, Mapping):
            raise TypeError("Assignment callables must return a mapping")
        base.update(updates)
        return base

    for key, value in assignment.items():
        base[key] = value(context, event) if callable(value) else value
    return base
