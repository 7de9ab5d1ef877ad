"""
Configuration resolution and state value conversion.

Architecture:
- Maps state values (possibly partial) to legal configurations
- Maps configurations back to nested state values
- Completes configurations with default initial chains
- Answers final-state and state-matching questions

Design Patterns:
- Interpreter Pattern: State values are interpreted against the tree
- Visitor Pattern: Recursive traversal of compound/parallel nodes

Responsibilities:
1. Legality
   - Ancestor closure: every active node's ancestors are active
   - Parallel completeness: every region of an active parallel node has
     exactly one active chain
   - Minimality: only default chains are added

2. Conversion
   - StateValue -> configuration (string paths, nested mappings, ids)
   - Configuration -> StateValue

3. Queries
   - Final-state detection for compound and parallel nodes
   - Enabled event names of a configuration
   - State value matching

Dependencies:
- definition.py: Node lookup and ancestor walks
- state.py: Node structure
"""

from typing import Any, Collection, FrozenSet, Iterable, List, Mapping, Set, Tuple, Union

from statechart.core.definition import Definition
from statechart.core.errors import StateNotFoundError
from statechart.core.state import StateNode
from statechart.core.types import STATE_DELIMITER, STATE_IDENTIFIER, HistoryKind, StateValue

Configuration = Tuple[StateNode, ...]


def get_configuration(definition: Definition, nodes: Iterable[StateNode]) -> Configuration:
    """Expand a set of nodes into the minimal legal configuration containing them.

    Args:
        definition: Compiled definition the nodes belong to
        nodes: Nodes that must be active (typically leaves)

    Returns:
        Active nodes in document order

    Raises:
        StateNotFoundError: If two children of one compound node are requested
    """
    active: Set[StateNode] = {definition.root}
    for node in nodes:
        if node.is_history:
            continue
        active.add(node)
        active.update(definition.ancestors(node))

    pending = sorted(active)
    while pending:
        node = pending.pop()
        if node.is_compound:
            selected = [child for child in node.children if child in active]
            if len(selected) > 1:
                keys = ", ".join(child.key for child in selected)
                raise StateNotFoundError(f"Compound state '{node.id}' cannot have several active children ({keys})")
            if not selected:
                child = node.initial_child
                active.add(child)
                pending.append(child)
        elif node.is_parallel:
            for child in node.children:
                if not child.is_history and child not in active:
                    active.add(child)
                    pending.append(child)

    return tuple(sorted(active))


def get_state_nodes(definition: Definition, value: StateValue) -> List[StateNode]:
    """Get the nodes explicitly named by a state value.

    Args:
        definition: Compiled definition
        value: Key, delimited path, ``#id`` reference or nested mapping

    Returns:
        Named nodes, without default completion

    Raises:
        StateNotFoundError: If the value names an unknown node
        TypeError: If the value is neither a string nor a mapping
    """
    named: List[StateNode] = []
    _collect(definition, definition.root, value, named)
    return named


def _collect(definition: Definition, node: StateNode, value: Any, named: List[StateNode]) -> None:
    if isinstance(value, str):
        if value.startswith(STATE_IDENTIFIER):
            target = definition.get_node_by_id(value)
        else:
            target = node
            for key in value.split(definition.delimiter):
                target = _child(target, key)
        named.append(target)
        return

    if isinstance(value, Mapping):
        if not value:
            named.append(node)
            return
        for key, sub_value in value.items():
            child = _child(node, key)
            if sub_value is None:
                named.append(child)
            else:
                _collect(definition, child, sub_value, named)
        return

    raise TypeError(f"Invalid state value {value!r}")


def _child(node: StateNode, key: str) -> StateNode:
    child = node.child(key)
    if child is None or child.is_history:
        raise StateNotFoundError(f"Child state '{key}' does not exist on '{node.id}'")
    return child


def resolve_state_value(definition: Definition, value: Union[StateValue, Collection[StateNode]]) -> Configuration:
    """Resolve a state value, or an existing configuration, to a legal configuration.

    Unspecified descendants are filled from their default initial chains;
    regions of a parallel node that the value omits are filled from their
    own defaults, never left inactive.
    """
    if isinstance(value, (str, Mapping)):
        return get_configuration(definition, get_state_nodes(definition, value))
    return get_configuration(definition, value)


def get_state_value(definition: Definition, configuration: Iterable[StateNode]) -> StateValue:
    """Convert a configuration to its nested state value.

    A compound node whose active child is a leaf maps to the child's key; any
    other active child maps to ``{child key: nested value}``; a parallel
    node maps every region key to its nested value.
    """
    active = set(configuration)
    return _value_of(definition.root, active)


def _value_of(node: StateNode, active: Set[StateNode]) -> StateValue:
    children = [child for child in node.children if child in active]
    if node.is_compound and children:
        child = children[0]
        if not child.children:
            return child.key
        return {child.key: _value_of(child, active)}
    if node.is_parallel:
        return {child.key: _value_of(child, active) for child in children}
    return {}


def is_in_final_state(definition: Definition, configuration: Collection[StateNode], node: StateNode) -> bool:
    """Check whether a compound or parallel node has completed.

    A compound node completes when its active child is final; a parallel
    node completes when every region has completed.
    """
    if node.is_compound:
        return any(child.is_final and child in configuration for child in node.children)
    if node.is_parallel:
        return all(
            is_in_final_state(definition, configuration, child)
            for child in node.children
            if not child.is_history
        )
    return False


def get_next_events(configuration: Iterable[StateNode]) -> FrozenSet[str]:
    """Get the event names any active node declares transitions for."""
    return frozenset(name for node in configuration for name in node.events)


def to_state_value(value: StateValue, delimiter: str = STATE_DELIMITER) -> StateValue:
    """Expand a delimited string path into its nested state value.

    ``"a.b.c"`` becomes ``{"a": {"b": "c"}}``; mappings and plain keys are
    returned unchanged.
    """
    if isinstance(value, Mapping):
        return value
    if not isinstance(value, str):
        raise TypeError(f"Invalid state value {value!r}")
    keys = value.split(delimiter)
    result: StateValue = keys[-1]
    for key in reversed(keys[:-1]):
        result = {key: result}
    return result


def matches_state(parent_value: StateValue, child_value: StateValue, delimiter: str = STATE_DELIMITER) -> bool:
    """Check whether ``child_value`` is, or is a descendant of, ``parent_value``.

    Args:
        parent_value: The (possibly partial) state value to test for
        child_value: A complete state value

    Returns:
        True if every key path of the parent value is active in the child
    """
    parent = to_state_value(parent_value, delimiter)
    child = to_state_value(child_value, delimiter)

    if isinstance(child, str):
        return isinstance(parent, str) and parent == child

    if isinstance(parent, str):
        return parent in child

    for key, sub_value in parent.items():
        if key not in child:
            return False
        if not matches_state(sub_value, child[key], delimiter):
            return False
    return True


def configuration_ids(configuration: Iterable[StateNode]) -> Tuple[str, ...]:
    """Get the serialisable ids of a configuration, in document order."""
    return tuple(node.id for node in sorted(configuration))


def record_history(
    definition: Definition, configuration: Collection[StateNode], parent: StateNode, history: StateNode
) -> Tuple[str, ...]:
    """Compute the ids a history node records when its parent is exited.

    Deep history records the active leaves below the parent; shallow history
    records the active direct children.
    """
    if history.history is HistoryKind.DEEP:
        recorded = [
            node for node in configuration
            if node.is_atomic and definition.is_descendant(node, parent)
        ]
    else:
        recorded = [node for node in parent.children if node in configuration]
    return configuration_ids(recorded)
