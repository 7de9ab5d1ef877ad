"""statechart: deterministic statechart interpretation engine

This package computes the next state of a hierarchical, parallel statechart
for an event, following SCXML-style run-to-completion semantics.

Responsibilities:
    - Definition compilation and validation
    - State value resolution
    - Transition selection and conflict resolution
    - Eventless and internal event settlement
    - History, final states and done events
    - Action descriptors for an external run loop

Interactions:
    - Client code through the Machine facade
    - Run loops through MachineState.actions and ActionExecutor
    - Logging system for diagnostics

Cross-cutting Concerns:
    Thread Safety:
        - Compiled definitions are immutable
        - transition() is a pure function; no locks are needed

    Error Handling:
        - Structured error hierarchy rooted at StatechartError
        - Errors raised before any result is built

    Logging:
        - One logger per module, no handlers installed
        - DEBUG for compilation and microsteps
"""

from .core import (
    ActionDescriptor,
    ConfigurationError,
    Definition,
    EventEnvelope,
    IllegalEventError,
    InfiniteMicrostepError,
    Machine,
    MachineOptions,
    MachineState,
    RejectedEventError,
    StatechartError,
    StateNode,
    StateNotFoundError,
    TransitionError,
    assign,
    cancel,
    raise_event,
    send,
    start,
    stop,
)
from .runtime import ActionExecutor

__version__ = "0.1.0"

__all__ = [
    "Machine",
    "MachineOptions",
    "MachineState",
    "Definition",
    "StateNode",
    "EventEnvelope",
    "ActionDescriptor",
    "ActionExecutor",
    "assign",
    "raise_event",
    "send",
    "cancel",
    "start",
    "stop",
    "StatechartError",
    "ConfigurationError",
    "StateNotFoundError",
    "TransitionError",
    "IllegalEventError",
    "RejectedEventError",
    "InfiniteMicrostepError",
]
