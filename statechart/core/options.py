"""
Machine options: the name -> implementation registries.

Actions, services, activities and delays are only resolved when an
external run loop executes the descriptors of a MachineState; guards are
resolved while transitions are selected.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Mapping, Optional, Union

OPTION_CATEGORIES = ("actions", "guards", "services", "activities", "delays")


@dataclass(frozen=True)
class MachineOptions:
    """Registries of named implementations for a machine.

    Class Invariants:
    1. Every category is a mapping from name to implementation
    2. Options are never mutated; merge() returns a new instance
    """
    actions: Dict[str, Callable[..., Any]] = field(default_factory=dict)
    guards: Dict[str, Callable[..., bool]] = field(default_factory=dict)
    services: Dict[str, Any] = field(default_factory=dict)
    activities: Dict[str, Any] = field(default_factory=dict)
    delays: Dict[str, Union[int, float, Callable[..., Any]]] = field(default_factory=dict)
    context: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        for category in OPTION_CATEGORIES:
            value = getattr(self, category)
            if value is None:
                object.__setattr__(self, category, {})
            elif not isinstance(value, Mapping):
                raise ValueError(f"Option '{category}' must be a mapping of names to implementations")
            else:
                object.__setattr__(self, category, dict(value))

    @classmethod
    def coerce(cls, options: Union[None, "MachineOptions", Mapping[str, Any]]) -> "MachineOptions":
        """Build options from None, an options instance or a plain mapping.

        Raises:
            ValueError: If the mapping has unknown keys
        """
        if options is None:
            return cls()
        if isinstance(options, MachineOptions):
            return options
        if not isinstance(options, Mapping):
            raise ValueError("Options must be a mapping or a MachineOptions instance")
        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise ValueError(f"Unknown option categories: {', '.join(sorted(unknown))}")
        return cls(**options)

    def merge(self, other: Union[None, "MachineOptions", Mapping[str, Any]]) -> "MachineOptions":
        """Merge another set of options over this one.

        Each category is merged at the mapping level: names present in
        ``other`` replace existing entries, names absent are kept. A context
        in ``other`` is merged shallowly over this one.
        """
        other = MachineOptions.coerce(other)
        merged = {
            category: {**getattr(self, category), **getattr(other, category)}
            for category in OPTION_CATEGORIES
        }
        if other.context is None:
            context = self.context
        elif self.context is None:
            context = dict(other.context)
        else:
            context = {**self.context, **other.context}
        return MachineOptions(context=context, **merged)
