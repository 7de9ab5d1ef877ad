"""
Transition selection and exit/entry set computation.

Architecture:
- Finds the enabled transitions of a configuration for an event
- Resolves conflicts between transitions of nested and parallel nodes
- Computes transition domains (least common compound ancestors)
- Computes the globally ordered exit and entry sets of a microstep

Design Patterns:
- Chain of Responsibility: Innermost node first, then its ancestors
- Strategy Pattern: Literal, wildcard and eventless matchers

Responsibilities:
1. Selection
   - Innermost-wins along every ancestor chain
   - Declaration order among candidates of one node
   - Literal matches before wildcard matches
   - Guards evaluated once per node and call

2. Conflict Resolution
   - Transitions with intersecting exit sets conflict
   - A descendant source preempts an ancestor source
   - Otherwise the earlier transition in document order wins
   - Transitions of independent parallel regions fire together

3. Exit/Entry Sets
   - Exit: active descendants of the domain, deepest first
   - Entry: nodes below the domain down to every target, shallowest
     first, completed with default initial chains, parallel regions and
     recorded history

Algorithms:
- Pre-order document order gives a total order on nodes; sorting by it
  yields parents-before-children for entry and, reversed,
  children-before-parents for exit

Dependencies:
- definition.py: Ancestor walks
- transition.py: Candidate transitions and guards
"""

import logging
from typing import Any, Callable, Collection, Dict, Iterable, List, Mapping, Optional, Set

from statechart.core.definition import Definition
from statechart.core.event import EventEnvelope
from statechart.core.state import StateNode
from statechart.core.transition import Transition
from statechart.core.types import NULL_EVENT

logger = logging.getLogger(__name__)

HistoryValue = Mapping[str, Collection[str]]


def select_transitions(
    definition: Definition,
    configuration: Collection[StateNode],
    context: Any,
    event: EventEnvelope,
    guards: Optional[Mapping[str, Callable[..., bool]]] = None,
    eventless: bool = False,
) -> List[Transition]:
    """Select the optimal enabled transition set of a configuration.

    Args:
        definition: Compiled definition
        configuration: Active nodes
        context: Current context, passed to guards
        event: Event being processed, passed to guards
        guards: Registry resolving named guards
        eventless: Select eventless transitions instead of matching the
            event name

    Returns:
        Non-conflicting enabled transitions in document order
    """
    event_name = NULL_EVENT if eventless else event.name
    decided: Dict[StateNode, Optional[Transition]] = {}
    enabled: List[Transition] = []

    for leaf in sorted(node for node in configuration if node.is_atomic):
        for node in [leaf] + definition.ancestors(leaf):
            if node not in decided:
                decided[node] = _first_enabled(node, event_name, context, event, guards)
            transition = decided[node]
            if transition is not None:
                if transition not in enabled:
                    enabled.append(transition)
                break

    return remove_conflicting_transitions(definition, configuration, enabled)


def _first_enabled(
    node: StateNode,
    event_name: str,
    context: Any,
    event: EventEnvelope,
    guards: Optional[Mapping[str, Callable[..., bool]]],
) -> Optional[Transition]:
    for candidate in node.candidates(event_name):
        if candidate.is_enabled(context, event, guards):
            return candidate
    return None


def remove_conflicting_transitions(
    definition: Definition, configuration: Collection[StateNode], transitions: Iterable[Transition]
) -> List[Transition]:
    """Drop transitions whose exit sets intersect an already selected one.

    A transition whose source is a descendant of a conflicting transition's
    source replaces it; otherwise the transition selected first (lower
    document order) is kept.
    """
    filtered: List[Transition] = []
    exit_sets: Dict[Transition, Set[StateNode]] = {}

    for candidate in transitions:
        exit_sets[candidate] = set(compute_exit_set(definition, configuration, [candidate]))
        preempted = False
        replaced: List[Transition] = []
        for selected in filtered:
            if exit_sets[candidate] & exit_sets[selected]:
                if definition.is_descendant(candidate.source, selected.source):
                    replaced.append(selected)
                else:
                    preempted = True
                    break
        if preempted:
            logger.debug(f"{candidate!r} preempted by an earlier conflicting transition")
            continue
        for selected in replaced:
            filtered.remove(selected)
        filtered.append(candidate)

    return filtered


def find_lcca(definition: Definition, source: StateNode, targets: Iterable[StateNode]) -> Optional[StateNode]:
    """Find the least common compound (or parallel) ancestor of a source and its targets.

    Only proper ancestors of the source are considered, so an external
    self-transition exits and re-enters its source. The root is never
    exited, so it bounds its own transitions to its descendants.

    Returns:
        The ancestor, or None when a target is the root itself
    """
    targets = list(targets)
    if source == definition.root:
        if all(definition.is_descendant(target, source) for target in targets):
            return source
        return None
    for ancestor in definition.ancestors(source):
        if not (ancestor.is_compound or ancestor.is_parallel):
            continue
        if all(definition.is_descendant(target, ancestor) for target in targets):
            return ancestor
    return None


def get_transition_domain(definition: Definition, transition: Transition) -> Optional[StateNode]:
    """Get the node bounding a transition's exit and entry sets.

    An internal transition whose targets all lie below its (non-atomic)
    source is bounded by the source itself; any other transition is
    bounded by the least common compound ancestor.
    """
    source = transition.source
    if (
        transition.internal
        and not source.is_atomic
        and all(definition.is_descendant(target, source) for target in transition.targets)
    ):
        return source
    return find_lcca(definition, source, transition.targets)


def compute_exit_set(
    definition: Definition, configuration: Collection[StateNode], transitions: Iterable[Transition]
) -> List[StateNode]:
    """Compute the nodes exited by a set of transitions.

    Returns:
        Nodes to exit, deepest first (reverse document order)
    """
    exiting: Set[StateNode] = set()
    for transition in transitions:
        if transition.is_targetless:
            continue
        domain = get_transition_domain(definition, transition)
        for node in configuration:
            if domain is None or definition.is_descendant(node, domain):
                exiting.add(node)
    return sorted(exiting, reverse=True)


def compute_entry_set(
    definition: Definition, transitions: Iterable[Transition], history_value: Optional[HistoryValue] = None
) -> List[StateNode]:
    """Compute the nodes entered by a set of transitions.

    Args:
        definition: Compiled definition
        transitions: Transitions firing in one microstep
        history_value: Recorded history, by history node id

    Returns:
        Nodes to enter, shallowest first (document order)
    """
    plan = _EntryPlan(definition, history_value or {})
    for transition in transitions:
        if transition.is_targetless:
            continue
        domain = get_transition_domain(definition, transition)
        for target in transition.targets:
            plan.add_descendants(target)
        for target in transition.targets:
            for effective in plan.effective_targets(target):
                plan.add_ancestors(effective, domain)
        if domain is not None and domain.is_parallel:
            plan.complete_regions(domain)
    return sorted(plan.nodes)


def compute_initial_entry_set(definition: Definition) -> List[StateNode]:
    """Compute the nodes entered when a machine starts, root included."""
    plan = _EntryPlan(definition, {})
    plan.add_descendants(definition.root)
    return sorted(plan.nodes)


class _EntryPlan:
    """Accumulates the entry set of one microstep."""

    def __init__(self, definition: Definition, history_value: HistoryValue) -> None:
        self._definition = definition
        self._history_value = history_value
        self.nodes: Set[StateNode] = set()

    def effective_targets(self, target: StateNode) -> List[StateNode]:
        """Replace a history target by the nodes it restores."""
        if not target.is_history:
            return [target]
        recorded = self._history_value.get(target.id)
        if recorded:
            return [self._definition.get_node_by_id(node_id) for node_id in recorded]
        return list(target.history_targets)

    def add_descendants(self, node: StateNode) -> None:
        if node.is_history:
            parent = self._definition.parent_of(node)
            restored = self.effective_targets(node)
            for target in restored:
                self.add_descendants(target)
            for target in restored:
                self.add_ancestors(target, parent)
            return

        self.nodes.add(node)
        if node.is_compound:
            self.add_descendants(node.initial_child)
        elif node.is_parallel:
            self.complete_regions(node)

    def add_ancestors(self, node: StateNode, boundary: Optional[StateNode]) -> None:
        for ancestor in self._definition.ancestors(node):
            if boundary is not None and ancestor == boundary:
                break
            self.nodes.add(ancestor)
            if ancestor.is_parallel:
                self.complete_regions(ancestor)

    def complete_regions(self, node: StateNode) -> None:
        for region in node.children:
            if region.is_history or self._covers(region):
                continue
            self.add_descendants(region)

    def _covers(self, region: StateNode) -> bool:
        return any(
            entered == region or self._definition.is_descendant(entered, region)
            for entered in self.nodes
        )
