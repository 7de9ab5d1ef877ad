"""
Core package providing the statechart engine.

Architecture:
- Compiles declarative definitions into an immutable node index
- Resolves state values to legal configurations and back
- Selects enabled transitions and settles macrosteps
- Exposes everything through the Machine facade

Design Patterns:
- Composite Pattern for the node hierarchy
- Builder Pattern for definition compilation
- Command Pattern for action descriptors
- Facade Pattern for the machine

Cross-cutting:
- Pure functions of (state, event); no shared mutable state
- Errors raised before any partial result is built
- DEBUG logging of compilation and microsteps
"""

# Import order matters to avoid circular dependencies
from .types import StateNodeKind, HistoryKind, ActionKind, EventOrigin
from .errors import (
    StatechartError,
    ConfigurationError,
    StateNotFoundError,
    TransitionError,
    IllegalEventError,
    RejectedEventError,
    InfiniteMicrostepError,
)
from .event import EventEnvelope, to_event_envelope
from .action import ActionDescriptor, assign, raise_event, send, cancel, start, stop
from .transition import GuardCondition, Transition
from .state import StateNode
from .definition import Definition
from .machine_state import MachineState
from .options import MachineOptions
from .machine import Machine

__all__ = [
    # Enums
    "StateNodeKind",
    "HistoryKind",
    "ActionKind",
    "EventOrigin",
    # Errors
    "StatechartError",
    "ConfigurationError",
    "StateNotFoundError",
    "TransitionError",
    "IllegalEventError",
    "RejectedEventError",
    "InfiniteMicrostepError",
    # Events and actions
    "EventEnvelope",
    "to_event_envelope",
    "ActionDescriptor",
    "assign",
    "raise_event",
    "send",
    "cancel",
    "start",
    "stop",
    # Static structure
    "GuardCondition",
    "Transition",
    "StateNode",
    "Definition",
    # Runtime values
    "MachineState",
    "MachineOptions",
    "Machine",
]
