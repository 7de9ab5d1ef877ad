"""
State node definitions.

Architecture:
- Implements the immutable static node of a compiled statechart
- Holds ordered children, the per-event transition table and normalized
  entry/exit actions
- Is created and owned by the definition builder (definition.py)
- Is referenced, never copied, by configurations and machine states

Design Patterns:
- Composite Pattern: Hierarchical node structure
- Flyweight Pattern: Nodes are shared by every MachineState

Responsibilities:
1. Node Identity
   - Unique id within the definition
   - Key within the parent
   - Path of keys from the root
   - Document order index

2. Node Structure
   - Kind (atomic, compound, parallel, history, final)
   - Ordered children
   - Default initial child
   - History kind and default history targets

3. Node Behavior
   - Entry/exit action descriptors
   - Transition table keyed by event matcher

Cross-cutting:
- Ancestor walks go through the stored path; nodes hold no parent
  references
- Nodes are never modified after the definition is compiled

Dependencies:
- types.py: StateNodeKind, HistoryKind
- action.py: Action descriptors
- transition.py: Transition table entries
"""

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from statechart.core.action import ActionDescriptor
from statechart.core.types import NULL_EVENT, WILDCARD, HistoryKind, StateNodeKind

if TYPE_CHECKING:
    from statechart.core.transition import Transition


class StateNode:
    """Represents one node of a compiled statechart definition.

    Class Invariants:
    1. A node's id is unique within its definition
    2. A node's kind and path never change after compilation
    3. Compound nodes always name an existing initial child
    4. Parallel nodes always have at least one region
    5. History nodes never have children
    6. Document order is a pre-order index: parents precede children and
       siblings follow declaration order
    """

    def __init__(
        self,
        node_id: str,
        key: str,
        path: Tuple[str, ...],
        kind: StateNodeKind,
        order: int,
        children: Tuple["StateNode", ...] = (),
        initial: Optional[str] = None,
        entry: Tuple[ActionDescriptor, ...] = (),
        exit: Tuple[ActionDescriptor, ...] = (),
        history: Optional[HistoryKind] = None,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Initialize a StateNode instance.

        Args:
            node_id: Unique identifier within the definition
            key: Key of the node within its parent
            path: Keys from the root to this node
            kind: Node kind
            order: Document order index
            children: Ordered child nodes
            initial: Key of the default initial child (compound nodes)
            entry: Entry action descriptors
            exit: Exit action descriptors
            history: History kind (history nodes)
            meta: Arbitrary metadata carried through unchanged

        Raises:
            ValueError: If any parameters are invalid
        """
        if not node_id or not isinstance(node_id, str):
            raise ValueError("State node ID must be a non-empty string")

        if not isinstance(kind, StateNodeKind):
            raise ValueError("State node kind must be a StateNodeKind enum value")

        self._id = node_id
        self._key = key
        self._path = tuple(path)
        self._kind = kind
        self._order = order
        self._children = tuple(children)
        self._child_map = {child.key: child for child in self._children}
        self._initial = initial
        self._entry = tuple(entry)
        self._exit = tuple(exit)
        self._history = history
        self._meta = MappingProxyType(dict(meta)) if meta else MappingProxyType({})
        self._transitions: Mapping[str, Tuple["Transition", ...]] = MappingProxyType({})
        self._history_targets: Tuple["StateNode", ...] = ()

    def __hash__(self) -> int:
        return hash(self._id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StateNode):
            return NotImplemented
        return self._id == other._id

    def __lt__(self, other: "StateNode") -> bool:
        return self._order < other._order

    def __repr__(self) -> str:
        return f"StateNode({self._id!r}, {self._kind.value})"

    @property
    def id(self) -> str:
        """Get the node ID."""
        return self._id

    @property
    def key(self) -> str:
        """Get the node key within its parent."""
        return self._key

    @property
    def path(self) -> Tuple[str, ...]:
        """Get the keys from the root to this node."""
        return self._path

    @property
    def depth(self) -> int:
        """Get the number of ancestors of this node."""
        return len(self._path)

    @property
    def kind(self) -> StateNodeKind:
        """Get the node kind."""
        return self._kind

    @property
    def order(self) -> int:
        """Get the document order index."""
        return self._order

    @property
    def children(self) -> Tuple["StateNode", ...]:
        """Get the ordered child nodes."""
        return self._children

    @property
    def initial(self) -> Optional[str]:
        """Get the key of the default initial child."""
        return self._initial

    @property
    def initial_child(self) -> Optional["StateNode"]:
        """Get the default initial child node."""
        if self._initial is None:
            return None
        return self._child_map.get(self._initial)

    @property
    def entry(self) -> Tuple[ActionDescriptor, ...]:
        """Get the entry action descriptors."""
        return self._entry

    @property
    def exit(self) -> Tuple[ActionDescriptor, ...]:
        """Get the exit action descriptors."""
        return self._exit

    @property
    def history(self) -> Optional[HistoryKind]:
        """Get the history kind of a history node."""
        return self._history

    @property
    def history_targets(self) -> Tuple["StateNode", ...]:
        """Get the default targets of a history node with no recorded history."""
        return self._history_targets

    @property
    def meta(self) -> Mapping[str, Any]:
        """Get the node metadata."""
        return self._meta

    @property
    def transitions(self) -> Mapping[str, Tuple["Transition", ...]]:
        """Get the transition table keyed by event matcher."""
        return self._transitions

    @property
    def events(self) -> Tuple[str, ...]:
        """Get the event names this node declares transitions for.

        The eventless and wildcard matchers are not event names and are
        excluded.
        """
        return tuple(name for name in self._transitions if name not in (NULL_EVENT, WILDCARD))

    @property
    def is_atomic(self) -> bool:
        """Check if the node is a leaf of the configuration (atomic or final)."""
        return self._kind in (StateNodeKind.ATOMIC, StateNodeKind.FINAL)

    @property
    def is_compound(self) -> bool:
        return self._kind is StateNodeKind.COMPOUND

    @property
    def is_parallel(self) -> bool:
        return self._kind is StateNodeKind.PARALLEL

    @property
    def is_history(self) -> bool:
        return self._kind is StateNodeKind.HISTORY

    @property
    def is_final(self) -> bool:
        return self._kind is StateNodeKind.FINAL

    def child(self, key: str) -> Optional["StateNode"]:
        """Get a direct child by key."""
        return self._child_map.get(key)

    def candidates(self, event_name: str) -> Tuple["Transition", ...]:
        """Get the transitions that may fire for an event, in selection order.

        Literal matches come first, followed by wildcard transitions. The
        eventless pseudo-event only matches eventless transitions.

        Args:
            event_name: Name of the event being processed

        Returns:
            Candidate transitions in the order they must be tried
        """
        literal = self._transitions.get(event_name, ())
        if event_name == NULL_EVENT:
            return literal
        return literal + self._transitions.get(WILDCARD, ())

    def _bind(
        self,
        transitions: Dict[str, Tuple["Transition", ...]],
        history_targets: Tuple["StateNode", ...] = (),
    ) -> None:
        # Called once by the definition builder after every node exists
        self._transitions = MappingProxyType(dict(transitions))
        self._history_targets = tuple(history_targets)
