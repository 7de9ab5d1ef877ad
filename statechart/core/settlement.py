"""
Microstep application and macrostep settlement.

Architecture:
- Applies one optimal transition set to a configuration (a microstep)
- Chains eventless transitions and internally raised events until the
  configuration settles (a macrostep)
- Produces new MachineState instances; never mutates its inputs

Design Patterns:
- Template Method: exit -> transition actions -> entry, in that order
- Memento Pattern: History recorded on exit, restored on entry
- Command Pattern: Actions emitted as inert descriptors

Responsibilities:
1. Microsteps
   - Exit set (deepest first) and their exit actions
   - Transition actions in selection order
   - Entry set (shallowest first) and their entry actions
   - History recording before the exit
   - Done events when a final node completes its parent
   - Context assignment and internal event queueing

2. Settlement
   - Eventless transitions against the resulting configuration
   - Internally raised events, once no eventless transition is enabled
   - Non-convergence detection

Cross-cutting:
- Errors are raised before any result is built, so callers never see a
  partially applied macrostep

Dependencies:
- selector.py: Selection and exit/entry sets
- configuration.py: State values, final states, history records
- machine_state.py: Result objects
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Sequence, Tuple

from statechart.core.action import ASSIGN, RAISE, ActionDescriptor, apply_assign, raise_event
from statechart.core.configuration import (
    configuration_ids,
    get_next_events,
    get_state_value,
    is_in_final_state,
    record_history,
)
from statechart.core.definition import Definition
from statechart.core.errors import InfiniteMicrostepError
from statechart.core.event import EventEnvelope, done_state_event
from statechart.core.machine_state import MachineState
from statechart.core.selector import (
    compute_entry_set,
    compute_exit_set,
    compute_initial_entry_set,
    select_transitions,
)
from statechart.core.state import StateNode
from statechart.core.transition import Transition

logger = logging.getLogger(__name__)

# Upper bound on microsteps of one macrostep; raised events may otherwise
# feed each other forever without repeating a configuration
MAX_MICROSTEPS = 10000

Guards = Optional[Mapping[str, Callable[..., bool]]]


class _Macrostep:
    """Mutable accumulator for one macrostep; discarded once the result is built."""

    def __init__(
        self,
        definition: Definition,
        configuration: Sequence[StateNode],
        context: Any,
        history_value: Mapping[str, Tuple[str, ...]],
    ) -> None:
        self.definition = definition
        self.configuration: Tuple[StateNode, ...] = tuple(sorted(configuration))
        self.context = context
        self.history_value: Dict[str, Tuple[str, ...]] = dict(history_value)
        self.actions: List[ActionDescriptor] = []
        self.transitions: List[Transition] = []
        self.internal_queue: Deque[EventEnvelope] = deque()
        self.microsteps = 0

    def apply(self, transitions: Sequence[Transition], event: EventEnvelope) -> None:
        """Apply one microstep: exit, transition actions, entry."""
        definition = self.definition
        exit_set = compute_exit_set(definition, self.configuration, transitions)

        for node in exit_set:
            for child in node.children:
                if child.is_history:
                    self.history_value[child.id] = record_history(definition, self.configuration, node, child)

        entry_set = compute_entry_set(definition, transitions, self.history_value)

        remaining = set(self.configuration) - set(exit_set)
        configuration = tuple(sorted(remaining | set(entry_set)))

        descriptors: List[ActionDescriptor] = []
        for node in exit_set:
            descriptors.extend(node.exit)
        for transition in transitions:
            descriptors.extend(transition.actions)
        descriptors.extend(self._entry_actions(entry_set, configuration))

        self._run(descriptors, event)
        self.configuration = configuration
        self.transitions.extend(transitions)
        self._count()

        logger.debug(
            f"Microstep on '{event.name or '(always)'}': exited {configuration_ids(exit_set)}, "
            f"entered {configuration_ids(entry_set)}"
        )

    def enter_initial(self, event: EventEnvelope) -> None:
        """Enter the default configuration of the machine, root included."""
        entry_set = compute_initial_entry_set(self.definition)
        configuration = tuple(entry_set)
        self._run(self._entry_actions(entry_set, configuration), event)
        self.configuration = configuration
        self._count()

    def _entry_actions(
        self, entry_set: Sequence[StateNode], configuration: Sequence[StateNode]
    ) -> List[ActionDescriptor]:
        definition = self.definition
        descriptors: List[ActionDescriptor] = []
        for node in entry_set:
            descriptors.extend(node.entry)
            if not node.is_final:
                continue
            parent = definition.parent_of(node)
            if parent is None or parent == definition.root:
                continue
            descriptors.append(raise_event(done_state_event(parent.id)))
            grandparent = definition.parent_of(parent)
            if (
                grandparent is not None
                and grandparent.is_parallel
                and grandparent != definition.root
                and is_in_final_state(definition, configuration, grandparent)
            ):
                descriptors.append(raise_event(done_state_event(grandparent.id)))
        return descriptors

    def _run(self, descriptors: Sequence[ActionDescriptor], event: EventEnvelope) -> None:
        # assign and raise are consumed here; everything else is emitted
        for descriptor in descriptors:
            if descriptor.type == ASSIGN:
                self.context = apply_assign(descriptor, self.context, event)
            elif descriptor.type == RAISE:
                self.internal_queue.append(descriptor.params["event"])
            else:
                self.actions.append(descriptor)

    def _count(self) -> None:
        self.microsteps += 1
        if self.microsteps > MAX_MICROSTEPS:
            raise InfiniteMicrostepError(
                f"Macrostep on machine '{self.definition.id}' exceeded {MAX_MICROSTEPS} microsteps"
            )

    def settle(self, event: EventEnvelope, guards: Guards) -> None:
        """Fire eventless transitions and raised events until none is enabled.

        Raises:
            InfiniteMicrostepError: If eventless transitions revisit a
                configuration (with an identical context) within one pass
        """
        definition = self.definition
        current = event
        visited: List[Tuple[Tuple[StateNode, ...], Any]] = [(self.configuration, self.context)]

        while True:
            enabled = select_transitions(
                definition, self.configuration, self.context, current, guards, eventless=True
            )
            if enabled:
                self.apply(enabled, current)
                snapshot = (self.configuration, self.context)
                if snapshot in visited:
                    raise InfiniteMicrostepError(
                        f"Eventless transitions of machine '{definition.id}' do not converge: "
                        f"configuration {configuration_ids(self.configuration)} was reached twice"
                    )
                visited.append(snapshot)
                continue

            if not self.internal_queue:
                return

            current = self.internal_queue.popleft()
            enabled = select_transitions(definition, self.configuration, self.context, current, guards)
            if enabled:
                self.apply(enabled, current)
            # Each internal event starts a new settlement pass
            visited = [(self.configuration, self.context)]

    def result(self, event: EventEnvelope, changed: Optional[bool]) -> MachineState:
        definition = self.definition
        return MachineState(
            value=get_state_value(definition, self.configuration),
            context=self.context,
            configuration=self.configuration,
            event=event,
            actions=tuple(self.actions),
            next_events=get_next_events(self.configuration),
            done=is_in_final_state(definition, self.configuration, definition.root),
            history_value=self.history_value,
            changed=changed,
            transitions=tuple(self.transitions),
            delimiter=definition.delimiter,
        )


def initial_macrostep(definition: Definition, context: Any, event: EventEnvelope, guards: Guards = None) -> MachineState:
    """Compute the initial state: enter the default configuration, then settle."""
    step = _Macrostep(definition, (), context, {})
    step.enter_initial(event)
    step.settle(event, guards)
    return step.result(event, changed=None)


def macrostep(definition: Definition, state: MachineState, event: EventEnvelope, guards: Guards = None) -> MachineState:
    """Apply an external event to a state and settle the result.

    Args:
        definition: Compiled definition
        state: Current machine state
        event: Normalized external event
        guards: Registry resolving named guards

    Returns:
        The new machine state. When no transition is enabled the result has
        the same configuration, value and context, no actions and
        ``changed=False``.
    """
    enabled = select_transitions(definition, state.configuration, state.context, event, guards)
    if not enabled:
        logger.debug(f"No transition enabled for '{event.name}' in {state.state_ids}")
        return MachineState(
            value=state.value,
            context=state.context,
            configuration=state.configuration,
            event=event,
            actions=(),
            next_events=state.next_events,
            done=state.done,
            history_value=dict(state.history_value),
            changed=False,
            transitions=(),
            delimiter=definition.delimiter,
        )

    step = _Macrostep(definition, state.configuration, state.context, state.history_value)
    step.apply(enabled, event)
    step.settle(event, guards)
    return step.result(event, changed=True)
