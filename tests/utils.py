"""Shared definitions and assertions for the statechart test suite."""

from statechart.core.action import assign, raise_event


def light_definition():
    """Traffic light with a nested pedestrian signal."""
    return {
        "id": "light",
        "initial": "green",
        "states": {
            "green": {"entry": "enterGreen", "exit": "exitGreen", "on": {"TIMER": "yellow"}},
            "yellow": {"on": {"TIMER": "red"}},
            "red": {
                "initial": "walk",
                "entry": "enterRed",
                "exit": "exitRed",
                "states": {
                    "walk": {"entry": "enterWalk", "exit": "exitWalk", "on": {"PED_COUNTDOWN": "wait"}},
                    "wait": {"on": {"PED_COUNTDOWN": "stop"}},
                    "stop": {"type": "final"},
                },
                "on": {"TIMER": "green"},
            },
        },
    }


def parallel_definition():
    """Parallel root with two independent regions."""
    return {
        "id": "pair",
        "type": "parallel",
        "states": {
            "X": {"initial": "x1", "states": {"x1": {"on": {"E": "x2"}}, "x2": {"on": {"BACK": "x1"}}}},
            "Y": {"initial": "y1", "states": {"y1": {"on": {"E": "y2"}}, "y2": {}}},
        },
    }


def history_definition():
    """Player remembering where it was when powered off."""
    return {
        "id": "player",
        "initial": "off",
        "states": {
            "off": {"on": {"POWER": "powered.hist", "DEEP_POWER": "powered.deep"}},
            "powered": {
                "initial": "playing",
                "states": {
                    "playing": {
                        "initial": "normal",
                        "states": {"normal": {"on": {"FAST": "fast"}}, "fast": {"on": {"SLOW": "normal"}}},
                        "on": {"PAUSE": "paused"},
                    },
                    "paused": {"on": {"PLAY": "playing"}},
                    "hist": {"history": "shallow"},
                    "deep": {"history": "deep"},
                },
                "on": {"POWER": "off"},
            },
        },
    }


def job_definition():
    """Nested compound node completing through a final child."""
    return {
        "id": "job",
        "initial": "work",
        "states": {
            "work": {
                "initial": "step1",
                "states": {"step1": {"on": {"NEXT": "step2"}}, "step2": {"type": "final"}},
                "on": {"done.state.job.work": "complete"},
            },
            "complete": {"type": "final"},
        },
    }


def upload_definition():
    """Parallel node completing once every region is final."""
    return {
        "id": "upload",
        "initial": "busy",
        "states": {
            "busy": {
                "type": "parallel",
                "states": {
                    "a": {"initial": "pending", "states": {"pending": {"on": {"A_OK": "ok"}}, "ok": {"type": "final"}}},
                    "b": {"initial": "pending", "states": {"pending": {"on": {"B_OK": "ok"}}, "ok": {"type": "final"}}},
                },
                "on": {"done.state.upload.busy": "finished"},
            },
            "finished": {"type": "final"},
        },
    }


def counter_definition():
    """Targetless transitions assigning context and raising internal events."""
    return {
        "id": "counter",
        "initial": "active",
        "context": {"count": 0},
        "states": {
            "active": {
                "on": {
                    "INC": {"actions": [assign(lambda context, event: {"count": context["count"] + 1})]},
                    "RESET": {"actions": [assign({"count": 0}), raise_event("RESET_DONE")]},
                    "RESET_DONE": {"actions": "logReset"},
                }
            }
        },
    }


def eventless_definition():
    """Eventless chain a -> b -> c reached from an initial node."""
    return {
        "id": "chain",
        "initial": "start",
        "states": {
            "start": {"on": {"GO": "a"}},
            "a": {"always": "b"},
            "b": {"always": "c", "entry": "enterB"},
            "c": {},
        },
    }


def assert_legal(definition, configuration):
    """Assert ancestor closure and parallel completeness of a configuration."""
    active = set(configuration)
    assert definition.root in active
    for node in active:
        assert not node.is_history
        for ancestor in definition.ancestors(node):
            assert ancestor in active, f"{ancestor.id} missing above {node.id}"
        children = [child for child in node.children if child in active]
        if node.is_compound:
            assert len(children) == 1, f"{node.id} has {len(children)} active children"
        elif node.is_parallel:
            regions = [child for child in node.children if not child.is_history]
            assert children == regions, f"{node.id} is missing regions"
    assert list(configuration) == sorted(configuration)
