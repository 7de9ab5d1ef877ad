"""
Transition definitions and guard evaluation.

Architecture:
- Represents one declared transition of a state node
- Evaluates guard conditions against (context, event)
- Leaves selection and conflict resolution to selector.py

Design Patterns:
- Command Pattern: Transitions carry their actions as descriptors
- Strategy Pattern: Inline vs. named guard predicates
- Composite Pattern: Guard composition with &, | and ~

Responsibilities:
1. Transition Data
   - Event matcher (literal, wildcard or eventless)
   - Resolved target nodes, in declaration order
   - Transition actions
   - Internal/external flag and declaration order

2. Guard Conditions
   - Inline predicates
   - Predicates looked up by name in the guards registry
   - Boolean composition

Dependencies:
- action.py: Transition action descriptors
- errors.py: Missing guard implementations
- state.py: Source and target nodes (type hints only)
"""

from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Tuple, Union

from statechart.core.action import ActionDescriptor
from statechart.core.errors import ConfigurationError
from statechart.core.types import NULL_EVENT, WILDCARD

if TYPE_CHECKING:
    from statechart.core.event import EventEnvelope
    from statechart.core.state import StateNode


class GuardCondition:
    """Represents a guard condition for a transition.

    GuardCondition wraps either an inline predicate or the name of a
    predicate registered in the machine's guards option, and implements
    composable boolean logic over both.

    Class Invariants:
    1. Must be deterministic
    2. Must be side-effect free
    3. Must compose properly

    Design Patterns:
    - Strategy: Implements evaluation logic
    - Composite: Enables condition composition
    """

    def __init__(
        self,
        condition: Union[str, Callable[[Any, "EventEnvelope"], bool]],
        name: Optional[str] = None,
    ) -> None:
        """Initialize a GuardCondition instance.

        Args:
            condition: Predicate taking (context, event), or a registered guard name
            name: Optional display name; defaults to the guard name or the
                predicate's __name__

        Raises:
            ValueError: If condition is neither a non-empty string nor callable
        """
        if isinstance(condition, str):
            if not condition:
                raise ValueError("Guard name must be a non-empty string")
            self._name = condition
            self._condition: Optional[Callable[..., bool]] = None
        elif callable(condition):
            self._name = name or getattr(condition, "__name__", None) or "inline"
            self._condition = condition
        else:
            raise ValueError("Guard must be a name or a callable")

    @property
    def name(self) -> str:
        """Get the guard name."""
        return self._name

    @property
    def is_named(self) -> bool:
        """Check whether this guard is resolved through the guards registry."""
        return self._condition is None

    def evaluate(
        self,
        context: Any,
        event: "EventEnvelope",
        guards: Optional[Mapping[str, Callable[..., bool]]] = None,
    ) -> bool:
        """Evaluate the guard condition.

        Args:
            context: Current context
            event: Event being processed
            guards: Registry used to resolve named guards

        Returns:
            True if condition is satisfied, False otherwise

        Raises:
            ConfigurationError: If a named guard has no implementation
        """
        condition = self._condition
        if condition is None:
            condition = (guards or {}).get(self._name)
            if condition is None:
                raise ConfigurationError(f"Unable to evaluate guard '{self._name}': no implementation")
        return bool(condition(context, event))

    def __and__(self, other: "GuardCondition") -> "GuardCondition":
        """Compose two guards with AND logic.

        Args:
            other: Another guard condition

        Returns:
            New guard that is true only if both are true
        """
        return _CompositeGuard(
            lambda context, event, guards: self.evaluate(context, event, guards)
            and other.evaluate(context, event, guards),
            name=f"({self.name} & {other.name})",
        )

    def __or__(self, other: "GuardCondition") -> "GuardCondition":
        """Compose two guards with OR logic.

        Args:
            other: Another guard condition

        Returns:
            New guard that is true if either is true
        """
        return _CompositeGuard(
            lambda context, event, guards: self.evaluate(context, event, guards)
            or other.evaluate(context, event, guards),
            name=f"({self.name} | {other.name})",
        )

    def __invert__(self) -> "GuardCondition":
        """Negate the guard condition.

        Returns:
            New guard that is true when original is false
        """
        return _CompositeGuard(
            lambda context, event, guards: not self.evaluate(context, event, guards),
            name=f"~{self.name}",
        )

    def __repr__(self) -> str:
        return f"GuardCondition({self._name!r})"


class _CompositeGuard(GuardCondition):
    """Guard built from other guards; forwards the registry to its operands."""

    def evaluate(
        self,
        context: Any,
        event: "EventEnvelope",
        guards: Optional[Mapping[str, Callable[..., bool]]] = None,
    ) -> bool:
        return bool(self._condition(context, event, guards))


def to_guard(guard: Union[None, str, Callable[..., bool], GuardCondition]) -> Optional[GuardCondition]:
    """Normalize a declarative guard into a GuardCondition (or None)."""
    if guard is None or isinstance(guard, GuardCondition):
        return guard
    return GuardCondition(guard)


class Transition:
    """Represents a declared transition of a state node.

    Transitions are created by the definition builder once every node of
    the tree exists, so their targets are resolved node references.

    Class Invariants:
    1. Source and targets belong to the same definition
    2. A transition without targets is targetless and always internal
    3. Declaration order is unique within a definition
    4. Transitions are never modified after the definition is compiled
    """

    def __init__(
        self,
        source: "StateNode",
        event: str,
        targets: Tuple["StateNode", ...] = (),
        guard: Optional[GuardCondition] = None,
        actions: Tuple[ActionDescriptor, ...] = (),
        internal: bool = False,
        order: int = 0,
    ) -> None:
        """Initialize a Transition instance.

        Args:
            source: Node declaring the transition
            event: Event matcher (literal name, wildcard or eventless)
            targets: Resolved target nodes
            guard: Optional guard condition
            actions: Transition action descriptors
            internal: Whether child targets are entered without exiting the source
            order: Declaration order within the definition

        Raises:
            ValueError: If any parameters are invalid
        """
        if source is None:
            raise ValueError("Source state must be provided")
        if not isinstance(event, str):
            raise ValueError("Transition event must be a string")

        self._source = source
        self._event = event
        self._targets = tuple(targets)
        self._guard = guard
        self._actions = tuple(actions)
        self._internal = internal or not self._targets
        self._order = order

    @property
    def source(self) -> "StateNode":
        """Get the source node."""
        return self._source

    @property
    def event(self) -> str:
        """Get the event matcher."""
        return self._event

    @property
    def targets(self) -> Tuple["StateNode", ...]:
        """Get the resolved target nodes."""
        return self._targets

    @property
    def guard(self) -> Optional[GuardCondition]:
        """Get the guard condition."""
        return self._guard

    @property
    def actions(self) -> Tuple[ActionDescriptor, ...]:
        """Get the transition action descriptors."""
        return self._actions

    @property
    def internal(self) -> bool:
        """Check whether the transition is internal."""
        return self._internal

    @property
    def order(self) -> int:
        """Get the declaration order."""
        return self._order

    @property
    def is_targetless(self) -> bool:
        """Check whether the transition has no targets."""
        return not self._targets

    @property
    def is_eventless(self) -> bool:
        """Check whether the transition is an eventless ("always") transition."""
        return self._event == NULL_EVENT

    @property
    def is_wildcard(self) -> bool:
        """Check whether the transition matches any event."""
        return self._event == WILDCARD

    def is_enabled(
        self,
        context: Any,
        event: "EventEnvelope",
        guards: Optional[Mapping[str, Callable[..., bool]]] = None,
    ) -> bool:
        """Evaluate the guard against (context, event).

        Returns:
            True if there is no guard or the guard holds
        """
        if self._guard is None:
            return True
        return self._guard.evaluate(context, event, guards)

    def __repr__(self) -> str:
        targets = ", ".join(target.id for target in self._targets)
        return f"Transition({self._source.id!r} --{self._event or '(always)'}--> [{targets}])"
