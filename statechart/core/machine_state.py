"""
Machine state snapshots.

A MachineState is the immutable result of computing the initial state or
applying an event: the active configuration in both of its views
(configuration and state value), the context, the ordered action
descriptors produced by the macrostep and the currently enabled events.
Every call to Machine.transition() returns a new, independent instance.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple

from statechart.core.action import ActionDescriptor
from statechart.core.configuration import configuration_ids, matches_state
from statechart.core.event import EventEnvelope
from statechart.core.state import StateNode
from statechart.core.transition import Transition
from statechart.core.types import STATE_DELIMITER, StateValue


@dataclass(frozen=True)
class MachineState:
    """Immutable snapshot of a statechart after a macrostep.

    Class Invariants:
    1. ``configuration`` and ``value`` describe the same set of active nodes
    2. ``configuration`` is legal (ancestor-closed, parallel-complete) and
       sorted by document order
    3. ``context`` is never mutated after the state is created
    4. ``actions`` only contains descriptors for the run loop; assign and
       raise descriptors have already been applied
    """
    value: StateValue
    context: Any
    configuration: Tuple[StateNode, ...]
    event: EventEnvelope
    actions: Tuple[ActionDescriptor, ...] = ()
    next_events: FrozenSet[str] = frozenset()
    done: bool = False
    history_value: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    changed: Optional[bool] = None
    transitions: Tuple[Transition, ...] = field(default=(), compare=False)
    delimiter: str = field(default=STATE_DELIMITER, compare=False, repr=False)

    @property
    def state_ids(self) -> Tuple[str, ...]:
        """Get the ids of the active nodes, in document order."""
        return configuration_ids(self.configuration)

    def matches(self, parent_value: StateValue) -> bool:
        """Check whether this state is in ``parent_value`` or one of its descendants.

        Args:
            parent_value: Key, delimited path or nested state value

        Returns:
            True if the state value matches
        """
        return matches_state(parent_value, self.value, self.delimiter)

    def can(self, event_name: str) -> bool:
        """Check whether any active node declares a transition for an event."""
        return event_name in self.next_events
