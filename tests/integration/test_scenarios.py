"""End-to-end scenarios driving machines through the public API."""

import pytest

from statechart.core.action import CANCEL, SEND, START, STOP
from statechart.core.errors import ConfigurationError, InfiniteMicrostepError
from statechart.core.machine import Machine
from statechart.runtime.executor import ActionExecutor

TOAST = {"id": "toast", "initial": "visible", "states": {"visible": {"after": {"3000": "hidden"}}, "hidden": {}}}

FETCH = {
    "id": "fetch",
    "initial": "loading",
    "states": {
        "loading": {"invoke": {"id": "fetchUser", "src": "loadUser", "onDone": "success", "onError": "failure"}},
        "success": {"type": "final"},
        "failure": {"on": {"RETRY": "loading"}},
    },
}

PAYMENT = {
    "id": "payment",
    "initial": "idle",
    "context": {"balance": 5},
    "states": {
        "idle": {"on": {"PAY": [{"target": "paid", "guard": "hasFunds"}, {"target": "declined"}]}},
        "paid": {"type": "final"},
        "declined": {"on": {"PAY": "idle"}},
    },
}


def has_funds(context, event):
    return context["balance"] >= event.data.get("price", 0)


def test_light_cycle(light_machine):
    state = light_machine.initial_state
    values = []
    for event in ["TIMER", "TIMER", "PED_COUNTDOWN", "PED_COUNTDOWN", "TIMER"]:
        state = light_machine.transition(state, event)
        values.append(state.value)
    assert values == ["yellow", {"red": "walk"}, {"red": "wait"}, {"red": "stop"}, "green"]


def test_nested_final_does_not_finish_machine(light_machine):
    state = light_machine.transition({"red": "wait"}, "PED_COUNTDOWN")
    assert state.value == {"red": "stop"}
    assert state.done is False


def test_history_restoration(history_machine):
    """Shallow history restores the child, deep history the whole chain."""
    state = history_machine.transition(history_machine.initial_state, "POWER")
    assert state.value == {"powered": {"playing": "normal"}}

    state = history_machine.transition(state, "FAST")
    assert state.value == {"powered": {"playing": "fast"}}

    off = history_machine.transition(state, "POWER")
    assert off.value == "off"
    assert off.history_value == {
        "player.powered.hist": ("player.powered.playing",),
        "player.powered.deep": ("player.powered.playing.fast",),
    }

    assert history_machine.transition(off, "POWER").value == {"powered": {"playing": "normal"}}
    assert history_machine.transition(off, "DEEP_POWER").value == {"powered": {"playing": "fast"}}


def test_history_records_paused_child(history_machine):
    state = history_machine.transition("off", "POWER")
    state = history_machine.transition(state, "PAUSE")
    off = history_machine.transition(state, "POWER")
    assert history_machine.transition(off, "POWER").value == {"powered": "paused"}


def test_history_without_record_uses_default(history_machine):
    assert history_machine.transition("off", "DEEP_POWER").value == {"powered": {"playing": "normal"}}


def test_done_flag_on_top_level_final(job_machine):
    state = job_machine.transition(job_machine.initial_state, "NEXT")
    assert state.value == "complete"
    assert state.done is True


def test_parallel_done_event(upload_machine):
    state = upload_machine.transition(upload_machine.initial_state, "A_OK")
    assert state.value == {"busy": {"a": "ok", "b": "pending"}}
    state = upload_machine.transition(state, "B_OK")
    assert state.value == "finished"
    assert state.done is True


def test_delayed_transition_descriptors():
    machine = Machine(TOAST)
    initial = machine.initial_state
    [scheduled] = initial.actions
    assert scheduled.type == SEND
    assert scheduled.params["delay"] == "3000"
    event_name = scheduled.params["event"].name
    assert event_name == "statechart.after(3000)#toast.visible"

    hidden = machine.transition(initial, scheduled.params["event"])
    assert hidden.value == "hidden"
    [cancelled] = hidden.actions
    assert cancelled.type == CANCEL
    assert cancelled.params["id"] == event_name


def test_run_loop_reinjects_sent_events(dispatcher):
    """A minimal run loop feeding sent events back into the machine."""
    machine = Machine(TOAST)
    executor = ActionExecutor(machine.options, dispatcher)
    state = machine.initial_state
    executor.execute(state)

    descriptor, context, event = dispatcher.call_args[0]
    assert executor.resolve_delay(descriptor.params["delay"], context, event) == 3000
    assert machine.transition(state, descriptor.params["event"]).value == "hidden"


def test_invoke_descriptors():
    machine = Machine(FETCH)
    initial = machine.initial_state
    [started] = initial.actions
    assert started.type == START
    assert started.params == {"id": "fetchUser", "src": "loadUser", "kind": "service"}

    success = machine.transition(initial, {"type": "done.invoke.fetchUser", "data": {"name": "Ada"}})
    assert success.value == "success"
    assert success.done is True
    [stopped] = success.actions
    assert stopped.type == STOP
    assert stopped.params == {"id": "fetchUser", "kind": "service"}

    failure = machine.transition(initial, "error.platform.fetchUser")
    assert failure.value == "failure"
    retried = machine.transition(failure, "RETRY")
    assert [action.type for action in retried.actions] == [START]


def test_guards_resolved_through_options():
    machine = Machine(PAYMENT, {"guards": {"hasFunds": has_funds}})
    assert machine.transition("idle", {"type": "PAY", "price": 3}).value == "paid"
    assert machine.transition("idle", {"type": "PAY", "price": 10}).value == "declined"
    rich = machine.with_context({"balance": 100})
    assert rich.transition("idle", {"type": "PAY", "price": 10}).value == "paid"


def test_missing_guard_implementation():
    machine = Machine(PAYMENT)
    with pytest.raises(ConfigurationError):
        machine.transition("idle", "PAY")
    assert machine.with_config({"guards": {"hasFunds": has_funds}}).transition("idle", "PAY").value == "paid"


def test_wildcard_fallback():
    machine = Machine({"initial": "a", "states": {"a": {"on": {"*": "c", "KNOWN": "b"}}, "b": {}, "c": {}}})
    assert machine.transition("a", "KNOWN").value == "b"
    assert machine.transition("a", "ANYTHING").value == "c"


def test_context_assignment_and_raised_events(counter_machine):
    state = counter_machine.initial_state
    for _ in range(3):
        state = counter_machine.transition(state, "INC")
    assert state.context == {"count": 3}
    assert state.value == "active"
    assert state.changed is True

    reset = counter_machine.transition(state, "RESET")
    assert reset.context == {"count": 0}
    assert [action.type for action in reset.actions] == ["logReset"]
    assert state.context == {"count": 3}


def test_internal_transition_keeps_parent_active():
    machine = Machine(
        {
            "initial": "form",
            "states": {
                "form": {
                    "entry": "openForm",
                    "exit": "closeForm",
                    "initial": "editing",
                    "states": {"editing": {}, "reviewing": {}},
                    "on": {"REVIEW": ".reviewing", "RESTART": "form"},
                }
            },
        }
    )
    reviewing = machine.transition("form", "REVIEW")
    assert reviewing.value == {"form": "reviewing"}
    assert reviewing.actions == ()

    restarted = machine.transition(reviewing, "RESTART")
    assert restarted.value == {"form": "editing"}
    assert [action.type for action in restarted.actions] == ["closeForm", "openForm"]


def test_root_transition_keeps_root_active():
    """Transitions declared on the root never exit the root itself."""
    machine = Machine(
        {
            "id": "app",
            "entry": "rootIn",
            "exit": "rootOut",
            "activities": ["heartbeat"],
            "initial": "a",
            "states": {"a": {"on": {"NEXT": "b"}}, "b": {"entry": "enterB", "exit": "exitB"}},
            "on": {"RESET": "a"},
        }
    )
    state = machine.transition("b", "RESET")
    assert state.value == "a"
    assert [action.type for action in state.actions] == ["exitB"]
    assert machine.transition("a", "RESET").actions == ()


def test_custom_delimiter():
    machine = Machine(
        {"id": "m", "delimiter": "/", "initial": "a", "states": {"a": {"initial": "x", "states": {"x": {}, "y": {}}}}}
    )
    state = machine.transition("a/y", "NOPE")
    assert state.value == {"a": "y"}
    assert state.matches("a/y")
    assert state.state_ids == ("m", "m/a", "m/a/y")


def test_infinite_eventless_loop_at_start():
    machine = Machine({"initial": "a", "states": {"a": {"always": "b"}, "b": {"always": "a"}}})
    with pytest.raises(InfiniteMicrostepError):
        machine.initial_state
