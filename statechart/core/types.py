"""
Type definitions, enums and reserved names for the statechart engine.

This module contains shared type definitions used across the engine. It
breaks circular dependencies between the definition, selection and facade
modules and is the single place where reserved event names live.

Design:
- No runtime dependencies on other modules
- Only contains type definitions, enums and constants
- Used by every other core module
- Provides type hints for static analysis
"""

from enum import Enum, auto
from typing import Any, Callable, Dict, Mapping, Union


class StateNodeKind(Enum):
    """Defines the different kinds of nodes in a statechart definition.

    Used to drive default-initial resolution, completion of parallel
    regions and the legality checks of the definition builder.
    """
    ATOMIC = "atomic"        # Leaf node with no children
    COMPOUND = "compound"    # Exactly one child active at a time
    PARALLEL = "parallel"    # Every child (region) active at once
    HISTORY = "history"      # Pseudo node restoring a recorded configuration
    FINAL = "final"          # Leaf node completing its parent


class HistoryKind(Enum):
    """Defines how much of a configuration a history node records."""
    SHALLOW = "shallow"  # Direct children only
    DEEP = "deep"        # Full active descendant chain


class ActionKind(Enum):
    """Tags an action descriptor with how it is resolved at execution time."""
    INLINE = auto()    # Carries its own callable
    BY_NAME = auto()   # Resolved through the options registry
    BUILTIN = auto()   # Engine-defined descriptor (assign, raise, send, ...)


class EventOrigin(Enum):
    """Where an event envelope came from."""
    EXTERNAL = auto()  # Supplied by the caller of transition()
    INTERNAL = auto()  # Raised by the engine during a macrostep


# Reserved matcher names
WILDCARD = "*"
NULL_EVENT = ""

# Sigil marking an absolute id reference in a transition target
STATE_IDENTIFIER = "#"

# Default delimiter for composite state value keys
STATE_DELIMITER = "."

DEFAULT_MACHINE_ID = "(machine)"

# Built-in event name prefixes, accepted by strict machines
BUILTIN_PREFIX = "statechart."
DONE_STATE_PREFIX = "done.state."
DONE_INVOKE_PREFIX = "done.invoke."
ERROR_PLATFORM_PREFIX = "error.platform."
INIT_EVENT = BUILTIN_PREFIX + "init"

# Type aliases for common types
StateValue = Union[str, Dict[str, Any]]
Context = Any
GuardPredicate = Callable[[Context, Any], bool]
ActionFunction = Callable[[Context, Any], Any]
DefinitionConfig = Mapping[str, Any]
