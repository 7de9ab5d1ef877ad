"""
Error hierarchy for the statechart engine.

Every error the engine raises derives from StatechartError so callers can
catch engine failures with a single clause. Construction-time problems are
ConfigurationError; everything raised by transition() is a TransitionError.
"""


class StatechartError(Exception):
    """
    Base exception class for errors within the statechart library.
    """


class ConfigurationError(StatechartError):
    """
    Raised when a definition is malformed: a compound node with no
    possible initial child, an unresolvable transition target, a parallel
    node with no regions, or an initial state requested from an atomic root.
    """


class StateNotFoundError(StatechartError, LookupError):
    """
    Raised when a requested state id or state value key does not exist in
    the definition, or when a state value names no legal configuration.
    """


class TransitionError(StatechartError):
    """
    Raised when an event cannot be applied to a state.
    """


class IllegalEventError(TransitionError):
    """
    Raised when a reserved matcher name (the wildcard or the eventless
    pseudo-event) is dispatched as a literal event.
    """


class RejectedEventError(TransitionError):
    """
    Raised by a strict machine for an event that no node accepts.
    """


class InfiniteMicrostepError(TransitionError):
    """
    Raised when eventless settlement revisits a configuration, which means
    the definition loops forever.
    """
