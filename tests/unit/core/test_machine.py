"""Unit tests for the Machine facade.

Tests construction, the initial state, transition() input handling,
introspection and the clone operations.
"""

import unittest

from statechart.core.errors import (
    ConfigurationError,
    IllegalEventError,
    RejectedEventError,
    StateNotFoundError,
)
from statechart.core.event import EventEnvelope
from statechart.core.machine import Machine, resolve_context
from statechart.core.machine_state import MachineState
from statechart.core.options import MachineOptions
from statechart.core.types import EventOrigin
from tests.utils import light_definition


class TestMachineConstruction(unittest.TestCase):
    """Test cases for Machine construction and properties."""

    def setUp(self):
        self.machine = Machine(light_definition())

    def test_properties(self):
        self.assertEqual(self.machine.id, "light")
        self.assertEqual(self.machine.key, "light")
        self.assertFalse(self.machine.strict)
        self.assertEqual(self.machine.delimiter, ".")
        self.assertIsNone(self.machine.version)
        self.assertEqual(self.machine.events, ("PED_COUNTDOWN", "TIMER"))
        self.assertEqual(self.machine.state_ids[0], "light")
        self.assertIs(self.machine.root, self.machine.definition.root)
        self.assertEqual(repr(self.machine), "Machine('light')")

    def test_options_coerced(self):
        machine = Machine(light_definition(), {"actions": {"enterGreen": print}})
        self.assertIsInstance(machine.options, MachineOptions)
        self.assertIs(machine.options.actions["enterGreen"], print)
        with self.assertRaises(ValueError):
            Machine(light_definition(), {"bogus": {}})

    def test_context_override(self):
        """Test that option contexts shallowly override the definition context."""
        config = dict(light_definition(), context={"a": 1, "b": 2})
        machine = Machine(config, {"context": {"b": 3}})
        self.assertEqual(machine.context, {"a": 1, "b": 3})
        self.assertEqual(config["context"], {"a": 1, "b": 2})

    def test_invalid_definition(self):
        with self.assertRaises(ConfigurationError):
            Machine({"states": {"a": {}}})

    def test_resolve_context(self):
        self.assertEqual(resolve_context({"a": 1}, None), {"a": 1})
        self.assertEqual(resolve_context(None, {"a": 1}), {"a": 1})
        self.assertEqual(resolve_context({"a": 1, "b": 2}, {"b": 3}), {"a": 1, "b": 3})


class TestInitialState(unittest.TestCase):
    """Test cases for Machine.initial_state."""

    def test_initial_state(self):
        """Test the initial state.

        Verifies:
        1. Default initial chain is entered
        2. Entry actions are collected
        3. The event is the internal init event
        """
        state = Machine(light_definition()).initial_state
        self.assertEqual(state.value, "green")
        self.assertEqual(state.state_ids, ("light", "light.green"))
        self.assertEqual([action.type for action in state.actions], ["enterGreen"])
        self.assertEqual(state.event.name, "statechart.init")
        self.assertEqual(state.event.origin, EventOrigin.INTERNAL)
        self.assertEqual(state.next_events, frozenset({"TIMER"}))

    def test_atomic_root(self):
        with self.assertRaises(ConfigurationError):
            Machine({"id": "leaf"}).initial_state


class TestTransition(unittest.TestCase):
    """Test cases for Machine.transition."""

    def setUp(self):
        self.machine = Machine(light_definition())

    def test_event_forms(self):
        """Test that names, mappings and envelopes are all accepted."""
        initial = self.machine.initial_state
        for event in ("TIMER", {"type": "TIMER", "source": "test"}, EventEnvelope("TIMER")):
            self.assertEqual(self.machine.transition(initial, event).value, "yellow")

    def test_payload_preserved(self):
        state = self.machine.transition("green", {"type": "TIMER", "source": "test"})
        self.assertEqual(state.event.data, {"type": "TIMER", "source": "test"})

    def test_state_value_promotion(self):
        """Test bare state values as the current state."""
        self.assertEqual(self.machine.transition("yellow", "TIMER").value, {"red": "walk"})
        self.assertEqual(self.machine.transition({"red": "wait"}, "PED_COUNTDOWN").value, {"red": "stop"})
        self.assertEqual(self.machine.transition("red.walk", "PED_COUNTDOWN").value, {"red": "wait"})

    def test_none_state_is_initial(self):
        self.assertEqual(self.machine.transition(None, "TIMER").value, "yellow")

    def test_unknown_state_value(self):
        with self.assertRaises(StateNotFoundError):
            self.machine.transition("blue", "TIMER")

    def test_reserved_names(self):
        for name in ("*", ""):
            with self.assertRaises(IllegalEventError):
                self.machine.transition("green", name)
            with self.assertRaises(IllegalEventError):
                self.machine.transition("green", {"type": name})

    def test_strict(self):
        """Test strict mode.

        Verifies:
        1. Unknown events are rejected
        2. Declared events are accepted
        3. Built-in events are accepted
        4. The first child is the default initial state
        """
        machine = Machine({"strict": True, "states": {"a": {"on": {"GO": "b"}}, "b": {}}})
        with self.assertRaises(RejectedEventError):
            machine.transition("a", {"type": "STOP"})
        self.assertEqual(machine.transition("a", {"type": "GO"}).value, "b")
        self.assertFalse(machine.transition("a", "done.state.x").changed)
        self.assertEqual(machine.initial_state.value, "a")

    def test_non_strict_no_op(self):
        state = self.machine.transition("green", "STOP")
        self.assertEqual(state.value, "green")
        self.assertFalse(state.changed)
        self.assertEqual(state.actions, ())


class TestIntrospection(unittest.TestCase):
    """Test cases for node lookup and state re-resolution."""

    def setUp(self):
        self.machine = Machine(dict(light_definition(), context={"cars": 0}))

    def test_get_state_node_by_id(self):
        self.assertEqual(self.machine.get_state_node_by_id("light.red.walk").key, "walk")
        self.assertEqual(self.machine.get_state_node_by_id("#light.red").key, "red")
        with self.assertRaises(StateNotFoundError):
            self.machine.get_state_node_by_id("light.blue")

    def test_state_from(self):
        state = self.machine.state_from("red", {"cars": 3})
        self.assertIsInstance(state, MachineState)
        self.assertEqual(state.value, {"red": "walk"})
        self.assertEqual(state.context, {"cars": 3})
        self.assertEqual(self.machine.state_from("green").context, {"cars": 0})

    def test_resolve_state(self):
        """Test that a partial value is completed and the rest is kept."""
        state = self.machine.state_from("red", {"cars": 3})
        partial = MachineState(
            value={"red": "wait"},
            context=state.context,
            configuration=(),
            event=state.event,
        )
        resolved = self.machine.resolve_state(partial)
        self.assertEqual(resolved.state_ids, ("light", "light.red", "light.red.wait"))
        self.assertEqual(resolved.next_events, frozenset({"PED_COUNTDOWN", "TIMER"}))
        self.assertEqual(resolved.context, {"cars": 3})


class TestClones(unittest.TestCase):
    """Test cases for with_config and with_context."""

    def setUp(self):
        self.machine = Machine(
            dict(light_definition(), context={"a": 1, "b": {"c": 2}}),
            {"actions": {"enterGreen": print}},
        )

    def test_with_context(self):
        clone = self.machine.with_context({"b": {"d": 3}})
        self.assertEqual(clone.context, {"a": 1, "b": {"d": 3}})
        self.assertEqual(self.machine.context, {"a": 1, "b": {"c": 2}})
        self.assertIs(clone.definition, self.machine.definition)
        self.assertEqual(clone.initial_state.context, {"a": 1, "b": {"d": 3}})

    def test_with_config(self):
        """Test option merging.

        Verifies:
        1. Existing registries survive
        2. New registries are added
        3. The definition is shared
        """
        clone = self.machine.with_config({"guards": {"ok": lambda context, event: True}})
        self.assertIs(clone.options.actions["enterGreen"], print)
        self.assertIn("ok", clone.options.guards)
        self.assertNotIn("ok", self.machine.options.guards)
        self.assertIs(clone.definition, self.machine.definition)
        self.assertEqual(clone.context, self.machine.context)

    def test_with_config_context(self):
        clone = self.machine.with_config({"context": {"a": 5}})
        self.assertEqual(clone.context, {"a": 5, "b": {"c": 2}})


if __name__ == "__main__":
    unittest.main()
