import threading

import pytest

from drivers.lifecycle import (
    TRANSITIONS,
    LifecycleState,
    LifecycleStateMachine,
    Transition,
    TransitionResult,
    available_transitions,
)


def _ok(_):
    return TransitionResult.SUCCESS


def _machine(overrides=None):
    callbacks = {transition: _ok for transition in Transition}
    callbacks.update(overrides or {})
    return LifecycleStateMachine(callbacks, name="test")


def test_initial_state_is_unconfigured():
    assert _machine().state is LifecycleState.UNCONFIGURED


def test_full_cycle_follows_transition_table():
    machine = _machine()
    steps = [
        (Transition.CONFIGURE, LifecycleState.INACTIVE),
        (Transition.ACTIVATE, LifecycleState.ACTIVE),
        (Transition.DEACTIVATE, LifecycleState.INACTIVE),
        (Transition.CLEANUP, LifecycleState.UNCONFIGURED),
        (Transition.CONFIGURE, LifecycleState.INACTIVE),
        (Transition.SHUTDOWN, LifecycleState.FINALIZED),
    ]
    for transition, expected in steps:
        assert machine.trigger(transition) is TransitionResult.SUCCESS
        assert machine.state is expected


@pytest.mark.parametrize(
    "transition",
    [Transition.ACTIVATE, Transition.DEACTIVATE, Transition.CLEANUP],
)
def test_invalid_transition_from_unconfigured_is_rejected_without_callback(transition):
    calls = []
    machine = _machine({transition: lambda previous: calls.append(previous) or TransitionResult.SUCCESS})

    assert machine.trigger(transition) is TransitionResult.REJECTED
    assert machine.state is LifecycleState.UNCONFIGURED
    assert calls == []


def test_finalized_is_terminal():
    machine = _machine()
    machine.trigger(Transition.SHUTDOWN)
    for transition in Transition:
        assert machine.trigger(transition) is TransitionResult.REJECTED
    assert machine.state is LifecycleState.FINALIZED
    assert available_transitions(LifecycleState.FINALIZED) == ()


def test_shutdown_reachable_from_every_primary_state():
    for state in (LifecycleState.UNCONFIGURED, LifecycleState.INACTIVE, LifecycleState.ACTIVE):
        assert TRANSITIONS[(state, Transition.SHUTDOWN)][0] is LifecycleState.FINALIZED


def test_configure_failure_stays_unconfigured():
    machine = _machine({Transition.CONFIGURE: lambda _: TransitionResult.FAILURE})

    assert machine.trigger(Transition.CONFIGURE) is TransitionResult.FAILURE
    assert machine.state is LifecycleState.UNCONFIGURED
    assert machine.trigger(Transition.ACTIVATE) is TransitionResult.REJECTED


def test_callback_exception_becomes_failure(caplog):
    def _boom(_):
        raise RuntimeError("socket exploded")

    machine = _machine({Transition.CONFIGURE: _boom})

    assert machine.trigger(Transition.CONFIGURE) is TransitionResult.FAILURE
    assert machine.state is LifecycleState.UNCONFIGURED
    assert "socket exploded" in caplog.text


def test_callback_receives_previous_state():
    seen = []
    machine = _machine({Transition.SHUTDOWN: lambda previous: seen.append(previous) or TransitionResult.SUCCESS})
    machine.trigger(Transition.CONFIGURE)
    machine.trigger(Transition.ACTIVATE)
    machine.trigger(Transition.SHUTDOWN)
    assert seen == [LifecycleState.ACTIVE]


def test_observer_sees_every_attempt():
    events = []
    machine = LifecycleStateMachine(
        {},
        observer=lambda transition, result, previous, current: events.append(
            (transition, result, previous, current)
        ),
    )
    machine.trigger(Transition.ACTIVATE)
    machine.trigger(Transition.CONFIGURE)

    assert events == [
        (Transition.ACTIVATE, TransitionResult.REJECTED, LifecycleState.UNCONFIGURED, LifecycleState.UNCONFIGURED),
        (Transition.CONFIGURE, TransitionResult.SUCCESS, LifecycleState.UNCONFIGURED, LifecycleState.INACTIVE),
    ]


def test_observer_errors_do_not_escape():
    def _observer(*_):
        raise ValueError("observer broke")

    machine = LifecycleStateMachine({}, observer=_observer)
    assert machine.trigger(Transition.CONFIGURE) is TransitionResult.SUCCESS
    assert machine.state is LifecycleState.INACTIVE


def test_guard_blocks_state_commit_until_released():
    machine = _machine()
    machine.trigger(Transition.CONFIGURE)
    machine.trigger(Transition.ACTIVATE)
    finished = threading.Event()

    def _deactivate():
        machine.trigger(Transition.DEACTIVATE)
        finished.set()

    with machine.guard(LifecycleState.ACTIVE) as active:
        assert active
        worker = threading.Thread(target=_deactivate)
        worker.start()
        assert not finished.wait(0.1)
        assert machine.state is LifecycleState.ACTIVE
    worker.join(timeout=1.0)
    assert finished.is_set()
    assert machine.state is LifecycleState.INACTIVE
