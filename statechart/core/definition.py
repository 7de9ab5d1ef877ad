"""
Definition compilation and the static node index.

Architecture:
- Compiles a declarative, nested mapping into an immutable tree of
  StateNode objects
- Assigns paths, ids and the document-order index
- Normalizes entry/exit/transition actions into descriptor tuples
- Resolves every transition target to a node reference
- Builds the id and path lookup tables eagerly, once

Design Patterns:
- Builder Pattern: Two-pass construction (nodes, then transitions)
- Flyweight Pattern: One compiled definition shared by every machine
  clone and every machine state
- Registry Pattern: Id and path lookup tables

Responsibilities:
1. Structure
   - Kind inference and validation
   - Default initial children
   - History nodes and their default targets
   - Pre-order document order

2. Behavior
   - Entry/exit actions, including activity, service and delayed-event
     descriptors
   - Transition tables for "on", "always", "after" and invoke done/error
     events

3. Lookup
   - Absolute id lookup
   - Path lookup and ancestor walks
   - The set of accepted event names (strict mode)

Cross-cutting:
- Every structural problem raises ConfigurationError at compile time
- The compiled definition is never modified, so it is safe to share
  between threads without locking

Dependencies:
- state.py: Node objects
- transition.py: Transition objects and guards
- action.py: Action normalization and creators
- event.py: Built-in event names
"""

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from statechart.core.action import ActionDescriptor, cancel, send, start, stop, to_action_list
from statechart.core.errors import ConfigurationError, StateNotFoundError
from statechart.core.event import after_event, done_invoke_event, error_platform_event
from statechart.core.state import StateNode
from statechart.core.transition import Transition, to_guard
from statechart.core.types import (
    DEFAULT_MACHINE_ID,
    NULL_EVENT,
    STATE_DELIMITER,
    STATE_IDENTIFIER,
    HistoryKind,
    StateNodeKind,
)

logger = logging.getLogger(__name__)


class Definition:
    """An immutable, compiled statechart definition.

    Class Invariants:
    1. Node ids are unique
    2. Every transition target is a node of this definition
    3. ``nodes`` is sorted by document order and ``nodes[i].order == i``
    4. Lookup tables are built once and never modified
    """

    def __init__(
        self,
        root: StateNode,
        nodes: Sequence[StateNode],
        config: Mapping[str, Any],
        strict: bool = False,
        delimiter: str = STATE_DELIMITER,
        version: Optional[str] = None,
        context: Any = None,
    ) -> None:
        self._root = root
        self._nodes = tuple(nodes)
        self._config = config
        self._strict = strict
        self._delimiter = delimiter
        self._version = version
        self._context = context
        self._by_id = {node.id: node for node in self._nodes}
        self._by_path = {node.path: node for node in self._nodes}
        self._events: FrozenSet[str] = frozenset(
            name for node in self._nodes for name in node.events
        )

    @classmethod
    def compile(cls, config: Mapping[str, Any]) -> "Definition":
        """Compile a declarative definition.

        Args:
            config: Nested definition mapping

        Returns:
            The compiled definition

        Raises:
            ConfigurationError: If the definition is malformed
        """
        return _DefinitionBuilder(config).build()

    @property
    def root(self) -> StateNode:
        """Get the root node."""
        return self._root

    @property
    def id(self) -> str:
        """Get the root id."""
        return self._root.id

    @property
    def nodes(self) -> Tuple[StateNode, ...]:
        """Get every node in document order."""
        return self._nodes

    @property
    def config(self) -> Mapping[str, Any]:
        """Get the raw definition this was compiled from."""
        return self._config

    @property
    def strict(self) -> bool:
        return self._strict

    @property
    def delimiter(self) -> str:
        return self._delimiter

    @property
    def version(self) -> Optional[str]:
        return self._version

    @property
    def context(self) -> Any:
        """Get the default context declared by the definition."""
        return self._context

    @property
    def events(self) -> FrozenSet[str]:
        """Get every event name some node declares a transition for."""
        return self._events

    @property
    def state_ids(self) -> Tuple[str, ...]:
        """Get every node id in document order."""
        return tuple(node.id for node in self._nodes)

    def get_node_by_id(self, node_id: str) -> StateNode:
        """Look up a node by its absolute id.

        Args:
            node_id: Node id, with or without the leading id sigil

        Returns:
            The node carrying that id

        Raises:
            StateNotFoundError: If no node carries that id
        """
        if node_id.startswith(STATE_IDENTIFIER):
            node_id = node_id[len(STATE_IDENTIFIER):]
        try:
            return self._by_id[node_id]
        except KeyError:
            raise StateNotFoundError(f"Child state node '#{node_id}' does not exist on machine '{self.id}'") from None

    def get_node_by_path(self, path: Sequence[str]) -> StateNode:
        """Look up a node by its key path from the root.

        Raises:
            StateNotFoundError: If the path does not name a node
        """
        try:
            return self._by_path[tuple(path)]
        except KeyError:
            raise StateNotFoundError(
                f"State path '{self._delimiter.join(path)}' does not exist on machine '{self.id}'"
            ) from None

    def parent_of(self, node: StateNode) -> Optional[StateNode]:
        """Get the parent of a node, or None for the root."""
        if not node.path:
            return None
        return self._by_path[node.path[:-1]]

    def ancestors(self, node: StateNode) -> List[StateNode]:
        """Get the proper ancestors of a node, innermost first."""
        path = node.path
        return [self._by_path[path[:i]] for i in range(len(path) - 1, -1, -1)]

    @staticmethod
    def is_descendant(node: StateNode, ancestor: StateNode) -> bool:
        """Check whether ``node`` is a proper descendant of ``ancestor``."""
        depth = len(ancestor.path)
        return len(node.path) > depth and node.path[:depth] == ancestor.path


class _DefinitionBuilder:
    """Two-pass compiler from a definition mapping to a Definition.

    The first pass creates every node (pre-order, so document order is
    assigned before children are visited); the second pass resolves
    transition targets, which may point anywhere in the tree.
    """

    def __init__(self, config: Mapping[str, Any]) -> None:
        if not isinstance(config, Mapping):
            raise ConfigurationError("Machine definition must be a mapping")
        self._config = config
        self._delimiter = config.get("delimiter") or STATE_DELIMITER
        if not isinstance(self._delimiter, str):
            raise ConfigurationError("Delimiter must be a string")
        self._machine_id = config.get("id") or DEFAULT_MACHINE_ID
        self._machine_key = config.get("key") or self._machine_id
        self._order = 0
        self._nodes: List[StateNode] = []
        self._by_id: Dict[str, StateNode] = {}
        self._node_configs: Dict[str, Mapping[str, Any]] = {}
        # Transitions derived from "after"/"invoke", keyed by node id
        self._extra_transitions: Dict[str, List[Tuple[str, Any]]] = {}

    def build(self) -> Definition:
        root = self._build_node(self._config, self._machine_key, (), is_root=True)
        self._nodes.sort(key=lambda node: node.order)
        definition = Definition(
            root=root,
            nodes=self._nodes,
            config=self._config,
            strict=bool(self._config.get("strict", False)),
            delimiter=self._delimiter,
            version=self._config.get("version"),
            context=self._config.get("context"),
        )

        transition_order = 0
        for node in definition.nodes:
            table: Dict[str, List[Transition]] = {}
            for event, raw in self._transition_specs(node):
                for spec in _normalize_transition_config(raw, node.id, event):
                    transition = self._build_transition(definition, node, event, spec, transition_order)
                    transition_order += 1
                    table.setdefault(event, []).append(transition)
            history_targets = self._history_targets(definition, node) if node.is_history else ()
            node._bind({event: tuple(items) for event, items in table.items()}, history_targets)

        logger.debug(
            f"Compiled definition '{definition.id}' with {len(definition.nodes)} nodes "
            f"and {transition_order} transitions"
        )
        return definition

    # -- pass 1: nodes -----------------------------------------------------

    def _build_node(
        self, config: Optional[Mapping[str, Any]], key: str, path: Tuple[str, ...], is_root: bool = False
    ) -> StateNode:
        if config is None:
            config = {}
        if not isinstance(config, Mapping):
            raise ConfigurationError(f"State '{key}' must be defined by a mapping")

        if is_root:
            node_id = self._machine_id
        else:
            node_id = config.get("id") or self._delimiter.join((self._machine_key,) + path)
        if node_id in self._by_id or node_id in self._node_configs:
            raise ConfigurationError(f"Duplicate state id '{node_id}'")
        self._node_configs[node_id] = config

        kind = _infer_kind(config, node_id)
        states = config.get("states") or {}
        if not isinstance(states, Mapping):
            raise ConfigurationError(f"'states' of state '{node_id}' must be a mapping")
        _validate_structure(kind, config, states, node_id, is_root)

        # Pre-order: the node takes its index before any child is visited
        order = self._order
        self._order += 1
        children = tuple(
            self._build_node(child_config, child_key, path + (child_key,))
            for child_key, child_config in states.items()
        )

        history = None
        if kind is StateNodeKind.HISTORY:
            history = _history_kind(config.get("history", HistoryKind.SHALLOW.value), node_id)

        entry, exit_ = self._node_actions(config, node_id)
        node = StateNode(
            node_id=node_id,
            key=key,
            path=path,
            kind=kind,
            order=order,
            children=children,
            initial=_initial_key(config, states) if kind is StateNodeKind.COMPOUND else None,
            entry=entry,
            exit=exit_,
            history=history,
            meta=config.get("meta"),
        )
        self._by_id[node_id] = node
        self._nodes.append(node)
        return node

    def _node_actions(
        self, config: Mapping[str, Any], node_id: str
    ) -> Tuple[Tuple[ActionDescriptor, ...], Tuple[ActionDescriptor, ...]]:
        """Fold declared entry/exit actions with activity, service and delay descriptors."""
        entry: List[ActionDescriptor] = list(_actions(config.get("entry"), node_id))
        exit_: List[ActionDescriptor] = []
        extra: List[Tuple[str, Any]] = []

        activities = []
        for activity in _as_list(config.get("activities")):
            if isinstance(activity, str):
                activities.append((activity, activity))
            elif callable(activity):
                activities.append((getattr(activity, "__name__", "activity"), activity))
            else:
                raise ConfigurationError(f"Invalid activity {activity!r} on state '{node_id}'")
        entry.extend(start(activity_id, src) for activity_id, src in activities)

        invocations = []
        for index, invoke in enumerate(_as_list(config.get("invoke"))):
            if isinstance(invoke, str) or callable(invoke):
                invoke = {"src": invoke}
            if not isinstance(invoke, Mapping):
                raise ConfigurationError(f"Invalid invoke definition on state '{node_id}'")
            invoke_id = invoke.get("id") or f"{node_id}:invocation[{index}]"
            invocations.append(invoke_id)
            entry.append(start(invoke_id, invoke.get("src", invoke_id), kind="service"))
            if "onDone" in invoke:
                extra.append((done_invoke_event(invoke_id), invoke["onDone"]))
            if "onError" in invoke:
                extra.append((error_platform_event(invoke_id), invoke["onError"]))

        after = config.get("after") or {}
        if not isinstance(after, Mapping):
            raise ConfigurationError(f"'after' of state '{node_id}' must be a mapping")
        delayed = []
        for delay, raw in after.items():
            event = after_event(delay, node_id)
            delayed.append(event)
            entry.append(send(event, delay=delay, id=event))
            extra.append((event, raw))

        exit_.extend(cancel(event) for event in delayed)
        exit_.extend(stop(invoke_id, kind="service") for invoke_id in invocations)
        exit_.extend(stop(activity_id) for activity_id, _ in activities)
        exit_.extend(_actions(config.get("exit"), node_id))

        self._extra_transitions[node_id] = extra
        return tuple(entry), tuple(exit_)

    # -- pass 2: transitions -----------------------------------------------

    def _transition_specs(self, node: StateNode) -> Iterable[Tuple[str, Any]]:
        """Yield (event matcher, raw transition config) pairs in declaration order."""
        config = self._node_configs[node.id]
        on = config.get("on") or {}
        if not isinstance(on, Mapping):
            raise ConfigurationError(f"'on' of state '{node.id}' must be a mapping")
        for event, raw in on.items():
            if not isinstance(event, str):
                raise ConfigurationError(f"Event names must be strings (state '{node.id}')")
            yield event, raw
        if "always" in config:
            yield NULL_EVENT, config["always"]
        yield from self._extra_transitions.get(node.id, ())

    def _build_transition(
        self,
        definition: Definition,
        source: StateNode,
        event: str,
        spec: Mapping[str, Any],
        order: int,
    ) -> Transition:
        raw_targets = _as_list(spec.get("target"))
        for target in raw_targets:
            if not isinstance(target, str):
                raise ConfigurationError(f"Invalid transition target {target!r} on state '{source.id}'")
        targets = tuple(self._resolve_target(definition, source, target) for target in raw_targets)

        internal = spec.get("internal")
        if internal is None:
            internal = not raw_targets or any(target.startswith(self._delimiter) for target in raw_targets)

        try:
            guard = to_guard(spec.get("guard"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid guard on state '{source.id}': {e}") from e

        return Transition(
            source=source,
            event=event,
            targets=targets,
            guard=guard,
            actions=_actions(spec.get("actions"), source.id),
            internal=bool(internal),
            order=order,
        )

    def _resolve_target(self, definition: Definition, source: StateNode, target: str) -> StateNode:
        """Resolve a target reference relative to a source node.

        ``#id`` (optionally followed by a delimited child path) is an
        absolute id lookup; a leading delimiter addresses the source's own
        children; anything else addresses the source's siblings.
        """
        delimiter = self._delimiter
        try:
            if target.startswith(STATE_IDENTIFIER):
                reference = target[len(STATE_IDENTIFIER):]
                if reference in self._by_id:
                    return self._by_id[reference]
                head, *rest = reference.split(delimiter)
                return _descend(definition.get_node_by_id(head), rest)
            if target.startswith(delimiter):
                return _descend(source, target[len(delimiter):].split(delimiter))
            base = definition.parent_of(source) or source
            return _descend(base, target.split(delimiter))
        except StateNotFoundError:
            raise ConfigurationError(f"Invalid transition target '{target}' on state '{source.id}'") from None

    def _history_targets(self, definition: Definition, node: StateNode) -> Tuple[StateNode, ...]:
        parent = definition.parent_of(node)
        raw = self._node_configs[node.id].get("target")
        if raw is not None:
            return tuple(self._resolve_target(definition, node, target) for target in _as_list(raw))
        if parent.is_compound:
            return (parent.initial_child,)
        return tuple(child for child in parent.children if not child.is_history)


def _infer_kind(config: Mapping[str, Any], node_id: str) -> StateNodeKind:
    declared = config.get("type")
    if declared is not None:
        try:
            return StateNodeKind(declared)
        except ValueError:
            raise ConfigurationError(f"Invalid type '{declared}' on state '{node_id}'") from None
    if "history" in config:
        return StateNodeKind.HISTORY
    if config.get("states"):
        return StateNodeKind.COMPOUND
    return StateNodeKind.ATOMIC


def _validate_structure(
    kind: StateNodeKind, config: Mapping[str, Any], states: Mapping[str, Any], node_id: str, is_root: bool
) -> None:
    if kind is StateNodeKind.COMPOUND:
        if not states:
            raise ConfigurationError(f"Compound state '{node_id}' has no child states")
        initial = _initial_key(config, states)
        if initial is None:
            raise ConfigurationError(f"Compound state '{node_id}' has no initial state")
        if initial not in states:
            raise ConfigurationError(f"Initial state '{initial}' not found on '{node_id}'")
        if _is_history_config(states[initial]):
            raise ConfigurationError(f"Initial state of '{node_id}' cannot be a history state")
    elif kind is StateNodeKind.PARALLEL:
        if not any(not _is_history_config(child) for child in states.values()):
            raise ConfigurationError(f"Parallel state '{node_id}' has no regions")
    elif states:
        raise ConfigurationError(f"State '{node_id}' of type '{kind.value}' cannot have child states")

    if kind is StateNodeKind.HISTORY and is_root:
        raise ConfigurationError("The root of a machine cannot be a history state")


def _is_history_config(config: Any) -> bool:
    return isinstance(config, Mapping) and (
        config.get("type") == StateNodeKind.HISTORY.value or ("history" in config and "type" not in config)
    )


def _initial_key(config: Mapping[str, Any], states: Mapping[str, Any]) -> Optional[str]:
    """Get the declared initial child, defaulting to the first non-history child."""
    initial = config.get("initial")
    if initial is not None:
        return initial
    return next((key for key, child in states.items() if not _is_history_config(child)), None)


def _history_kind(value: Any, node_id: str) -> HistoryKind:
    if value is True:
        return HistoryKind.SHALLOW
    try:
        return HistoryKind(value)
    except ValueError:
        raise ConfigurationError(f"Invalid history kind '{value}' on state '{node_id}'") from None


def _descend(node: StateNode, keys: Sequence[str]) -> StateNode:
    for key in keys:
        if not key:
            continue
        child = node.child(key)
        if child is None:
            raise StateNotFoundError(f"Child state '{key}' does not exist on '{node.id}'")
        node = child
    return node


def _actions(value: Any, node_id: str) -> Tuple[ActionDescriptor, ...]:
    try:
        return to_action_list(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid action on state '{node_id}': {e}") from e


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _normalize_transition_config(raw: Any, node_id: str, event: str) -> List[Mapping[str, Any]]:
    """Normalize the accepted transition forms into a list of mappings.

    Accepted forms: a target string, None (targetless), a mapping with
    ``target``/``guard``/``actions``/``internal``, or an ordered list of those.
    """
    items = raw if isinstance(raw, (list, tuple)) else [raw]
    specs: List[Mapping[str, Any]] = []
    for item in items:
        if item is None:
            specs.append({})
        elif isinstance(item, str):
            specs.append({"target": item})
        elif isinstance(item, Mapping):
            specs.append(item)
        else:
            raise ConfigurationError(f"Invalid transition for event '{event}' on state '{node_id}'")
    return specs
