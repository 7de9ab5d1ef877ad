"""
Machine facade: the public entry point of the engine.

Architecture:
- Compiles a definition once and shares it between clones
- Owns the option registries and the default context
- Derives the initial state
- Normalizes caller input (state values, events) at the boundary
- Delegates selection and settlement to the core modules

Design Patterns:
- Facade Pattern: One object in front of builder, resolver, selector and
  settlement loop
- Prototype Pattern: with_config()/with_context() clones sharing the
  compiled definition

Responsibilities:
1. Construction
   - Definition compilation
   - Option registries
   - Default context (definition context, shallowly overridden)

2. Transitions
   - Promotion of bare state values to machine states
   - Event normalization and origin tagging
   - Illegal and rejected event checks
   - Pure transition(state, event) -> MachineState

3. Introspection
   - Initial state
   - Node lookup by id
   - Accepted events and state ids
   - Re-resolution of persisted states

Cross-cutting:
- transition() never mutates the machine, the definition or its inputs;
  concurrent calls need no locking
- Errors are raised before any result is built

Dependencies:
- definition.py: Compilation
- configuration.py: State value resolution
- settlement.py: Initial and regular macrosteps
- options.py: Registries
"""

import logging
from dataclasses import replace
from typing import Any, Mapping, Optional, Tuple, Union

from statechart.core.configuration import (
    get_next_events,
    get_state_value,
    is_in_final_state,
    resolve_state_value,
)
from statechart.core.definition import Definition
from statechart.core.errors import ConfigurationError, IllegalEventError, RejectedEventError
from statechart.core.event import EventLike, is_builtin_event, to_event_envelope
from statechart.core.machine_state import MachineState
from statechart.core.options import MachineOptions
from statechart.core.settlement import initial_macrostep, macrostep
from statechart.core.state import StateNode
from statechart.core.types import INIT_EVENT, NULL_EVENT, WILDCARD, EventOrigin, StateValue

logger = logging.getLogger(__name__)


def resolve_context(context: Any, partial: Optional[Mapping[str, Any]]) -> Any:
    """Shallowly merge a partial context over a context.

    Only the top level of keys is merged. A non-mapping context is
    replaced by the partial context.
    """
    if partial is None:
        return context
    if isinstance(context, Mapping):
        return {**context, **partial}
    return dict(partial)


class Machine:
    """A compiled statechart with its options and default context.

    Class Invariants:
    1. The compiled definition is never modified and may be shared by
       several machines
    2. The default context is never mutated
    3. transition() is a pure function of (state, event)

    Threading/Concurrency Guarantees:
    1. All lookup tables are built at construction
    2. No method mutates shared data, so concurrent use is safe without locks
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        options: Union[None, MachineOptions, Mapping[str, Any]] = None,
    ) -> None:
        """Compile a definition into a machine.

        Args:
            config: Declarative definition mapping
            options: Registries of named actions, guards, services,
                activities and delays, and an optional context override

        Raises:
            ConfigurationError: If the definition is malformed
            ValueError: If the options are malformed
        """
        self._definition = Definition.compile(config)
        self._options = MachineOptions.coerce(options)
        self._context = resolve_context(self._definition.context, self._options.context)

    @classmethod
    def _clone(cls, definition: Definition, options: MachineOptions, context: Any) -> "Machine":
        machine = cls.__new__(cls)
        machine._definition = definition
        machine._options = options
        machine._context = context
        return machine

    @property
    def definition(self) -> Definition:
        """Get the compiled definition."""
        return self._definition

    @property
    def root(self) -> StateNode:
        return self._definition.root

    @property
    def id(self) -> str:
        return self._definition.id

    @property
    def key(self) -> str:
        return self._definition.root.key

    @property
    def version(self) -> Optional[str]:
        return self._definition.version

    @property
    def strict(self) -> bool:
        return self._definition.strict

    @property
    def delimiter(self) -> str:
        return self._definition.delimiter

    @property
    def options(self) -> MachineOptions:
        return self._options

    @property
    def context(self) -> Any:
        """Get the default context of new states."""
        return self._context

    @property
    def events(self) -> Tuple[str, ...]:
        """Get the sorted names of every event the machine accepts."""
        return tuple(sorted(self._definition.events))

    @property
    def state_ids(self) -> Tuple[str, ...]:
        return self._definition.state_ids

    def with_config(self, options: Union[MachineOptions, Mapping[str, Any]]) -> "Machine":
        """Clone this machine with merged options.

        Args:
            options: Options merged per category over the current ones; a
                context in the options is merged shallowly over the current
                default context

        Returns:
            A new machine sharing the compiled definition
        """
        override = MachineOptions.coerce(options)
        merged = self._options.merge(replace(override, context=None))
        context = resolve_context(self._context, override.context)
        return Machine._clone(self._definition, replace(merged, context=context), context)

    def with_context(self, context: Mapping[str, Any]) -> "Machine":
        """Clone this machine with a shallowly overridden default context.

        Args:
            context: Keys replacing those of the current default context
                (one level deep, never a recursive merge)

        Returns:
            A new machine sharing the compiled definition
        """
        merged = resolve_context(self._context, context)
        return Machine._clone(self._definition, replace(self._options, context=merged), merged)

    def get_state_node_by_id(self, state_id: str) -> StateNode:
        """Look up a node by its absolute id.

        Raises:
            StateNotFoundError: If no node carries that id
        """
        return self._definition.get_node_by_id(state_id)

    @property
    def initial_state(self) -> MachineState:
        """The initial state, including the entry actions of every entered node.

        Raises:
            ConfigurationError: If the root is an atomic node
        """
        root = self._definition.root
        if root.is_atomic:
            raise ConfigurationError(f"Cannot retrieve initial state from simple state '{root.id}'")
        init = to_event_envelope(INIT_EVENT, origin=EventOrigin.INTERNAL)
        return initial_macrostep(self._definition, self._context, init, self._options.guards)

    def state_from(
        self,
        value: StateValue,
        context: Any = None,
        history_value: Optional[Mapping[str, Tuple[str, ...]]] = None,
    ) -> MachineState:
        """Build a machine state from persisted, plain data.

        Args:
            value: State value (possibly partial)
            context: Context to resume with; the default context if None
            history_value: Recorded history, by history node id

        Raises:
            StateNotFoundError: If the value names an unknown node
        """
        configuration = resolve_state_value(self._definition, value)
        return MachineState(
            value=get_state_value(self._definition, configuration),
            context=self._context if context is None else context,
            configuration=configuration,
            event=to_event_envelope(INIT_EVENT, origin=EventOrigin.INTERNAL),
            next_events=get_next_events(configuration),
            done=is_in_final_state(self._definition, configuration, self._definition.root),
            history_value={key: tuple(ids) for key, ids in (history_value or {}).items()},
            delimiter=self._definition.delimiter,
        )

    def resolve_state(self, state: MachineState) -> MachineState:
        """Re-derive the configuration, value and enabled events of a state.

        Useful for states rebuilt from persisted data or produced by another
        version of the machine.
        """
        configuration = resolve_state_value(self._definition, state.value)
        return replace(
            state,
            value=get_state_value(self._definition, configuration),
            configuration=configuration,
            next_events=get_next_events(configuration),
            done=is_in_final_state(self._definition, configuration, self._definition.root),
            delimiter=self._definition.delimiter,
        )

    def transition(self, state: Union[None, MachineState, StateValue], event: EventLike) -> MachineState:
        """Determine the next state for a state and an event.

        Args:
            state: Current machine state, a bare state value (promoted with
                the default context) or None for the initial state
            event: Event name, mapping with a "type" key, or envelope

        Returns:
            A new machine state

        Raises:
            IllegalEventError: If the event is the wildcard or eventless name
            RejectedEventError: If a strict machine does not accept the event
            InfiniteMicrostepError: If eventless transitions do not converge
            StateNotFoundError: If a bare state value names an unknown node
        """
        envelope = to_event_envelope(event)
        name = envelope.name

        if name in (WILDCARD, NULL_EVENT):
            raise IllegalEventError(f"An event cannot have the reserved type '{name}'")

        if self.strict and name not in self._definition.events and not is_builtin_event(name):
            raise RejectedEventError(f"Machine '{self.id}' does not accept event '{name}'")

        if state is None:
            current = self.initial_state
        elif isinstance(state, MachineState):
            current = state
        else:
            current = self.state_from(state)

        logger.debug(f"Machine '{self.id}' transition from {current.value!r} on '{name}'")
        return macrostep(self._definition, current, envelope, self._options.guards)

    def __repr__(self) -> str:
        return f"Machine({self.id!r})"
