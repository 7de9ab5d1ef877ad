"""
Action execution for machine states.

Architecture:
- Runs the action descriptors of a MachineState in order
- Resolves by-name descriptors through an explicit registry
- Hands built-in descriptors (send, cancel, start, stop) to the run loop

Design Patterns:
- Command Pattern: Descriptors executed long after they were produced
- Registry Pattern: Names resolved through MachineOptions
- Strategy Pattern: Pluggable dispatcher for built-in descriptors

Responsibilities:
1. Execution
   - Inline callables called with (context, event)
   - Named implementations looked up in the actions registry and
     called with (context, event, params)
   - Missing implementations logged and skipped
   - Built-ins forwarded to the dispatcher

2. Delays
   - Numeric delays passed through
   - Named delays resolved through the delays registry

Cross-cutting:
- The executor never feeds events back into the machine; that is the run
  loop's job
- Errors raised by action implementations propagate to the caller

Dependencies:
- core/action.py: Descriptor types
- core/options.py: Registries
- core/machine_state.py: Executed states
"""

import logging
from typing import Any, Callable, List, Optional, Union

from statechart.core.action import ActionDescriptor
from statechart.core.event import EventEnvelope
from statechart.core.machine_state import MachineState
from statechart.core.options import MachineOptions
from statechart.core.types import ActionKind

logger = logging.getLogger(__name__)

Dispatcher = Callable[[ActionDescriptor, Any, EventEnvelope], Any]


class ActionExecutor:
    """Executes the side effects described by a machine state.

    Class Invariants:
    1. Descriptors are executed in the order they were produced
    2. The machine state and its context are never modified
    3. Built-in descriptors are never executed by the executor itself
    """

    def __init__(
        self,
        options: Union[None, MachineOptions, dict] = None,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        """Initialize an executor.

        Args:
            options: Registries resolving named actions and delays
            dispatcher: Callback receiving built-in descriptors, with the
                context and event, for the external run loop
        """
        self._options = MachineOptions.coerce(options)
        self._dispatcher = dispatcher

    @property
    def options(self) -> MachineOptions:
        return self._options

    def execute(self, state: MachineState) -> List[Any]:
        """Execute every action descriptor of a state.

        Args:
            state: Result of Machine.transition() or Machine.initial_state

        Returns:
            The return value of each executed descriptor, in order; skipped
            descriptors contribute None
        """
        return [self.execute_action(action, state.context, state.event) for action in state.actions]

    def execute_action(self, descriptor: ActionDescriptor, context: Any, event: EventEnvelope) -> Any:
        """Execute a single descriptor.

        Raises:
            Exception: Whatever the action implementation raises
        """
        if descriptor.kind == ActionKind.INLINE:
            return descriptor.exec(context, event)

        if descriptor.kind == ActionKind.BUILTIN:
            if self._dispatcher is None:
                logger.debug(f"No dispatcher for built-in action '{descriptor.type}'; skipped")
                return None
            return self._dispatcher(descriptor, context, event)

        implementation = self._options.actions.get(descriptor.type)
        if implementation is None:
            logger.warning(f"No implementation for action '{descriptor.type}'; skipped")
            return None
        return implementation(context, event, dict(descriptor.params))

    def resolve_delay(self, delay: Any, context: Any = None, event: Optional[EventEnvelope] = None) -> Optional[float]:
        """Resolve the delay of a send descriptor to milliseconds.

        Args:
            delay: Milliseconds, or the name of a registered delay
            context: Context passed to callable delays
            event: Event passed to callable delays

        Returns:
            The delay in milliseconds, or None for an immediate send

        Raises:
            KeyError: If a named delay is not registered
            ValueError: If the delay does not resolve to a non-negative number
        """
        if delay is None:
            return None

        value = delay
        if isinstance(delay, str):
            if delay in self._options.delays:
                value = self._options.delays[delay]
            else:
                try:
                    value = float(delay)
                except ValueError:
                    raise KeyError(f"No delay registered under '{delay}'") from None

        if callable(value):
            value = value(context, event)

        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ValueError(f"Delay {delay!r} must resolve to a non-negative number")
        return value
