"""Unit tests for MachineOptions."""

import unittest

from statechart.core.options import MachineOptions


def notify(context, event):
    return None


def other(context, event):
    return None


class TestMachineOptions(unittest.TestCase):
    """Test cases for option registries."""

    def test_defaults(self):
        options = MachineOptions()
        self.assertEqual(options.actions, {})
        self.assertEqual(options.guards, {})
        self.assertEqual(options.services, {})
        self.assertEqual(options.activities, {})
        self.assertEqual(options.delays, {})
        self.assertIsNone(options.context)

    def test_coerce(self):
        """Test coercion of None, instances and mappings.

        Verifies:
        1. None gives empty registries
        2. Instances are returned unchanged
        3. Mappings are validated
        """
        self.assertEqual(MachineOptions.coerce(None), MachineOptions())
        options = MachineOptions(actions={"notify": notify})
        self.assertIs(MachineOptions.coerce(options), options)
        self.assertEqual(MachineOptions.coerce({"actions": {"notify": notify}}).actions, {"notify": notify})
        with self.assertRaises(ValueError):
            MachineOptions.coerce({"handlers": {}})
        with self.assertRaises(ValueError):
            MachineOptions.coerce(["actions"])

    def test_invalid_category(self):
        with self.assertRaises(ValueError):
            MachineOptions(actions=[notify])

    def test_registries_are_copied(self):
        actions = {"notify": notify}
        options = MachineOptions(actions=actions)
        actions["other"] = other
        self.assertNotIn("other", options.actions)

    def test_merge(self):
        """Test per-category merge.

        Verifies:
        1. Names in the override replace existing names
        2. Names absent from the override are kept
        3. Contexts merge shallowly
        """
        base = MachineOptions(actions={"notify": notify}, delays={"slow": 5000}, context={"a": 1, "b": {"c": 2}})
        merged = base.merge({"actions": {"other": other}, "delays": {"slow": 100}, "context": {"b": {"d": 3}}})
        self.assertEqual(merged.actions, {"notify": notify, "other": other})
        self.assertEqual(merged.delays, {"slow": 100})
        self.assertEqual(merged.context, {"a": 1, "b": {"d": 3}})
        self.assertEqual(base.delays, {"slow": 5000})

    def test_merge_contexts(self):
        self.assertEqual(MachineOptions().merge({"context": {"a": 1}}).context, {"a": 1})
        self.assertEqual(MachineOptions(context={"a": 1}).merge(None).context, {"a": 1})


if __name__ == "__main__":
    unittest.main()
