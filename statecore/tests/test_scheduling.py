"""
Queued dispatch, dispatch-later and the schedulers behind them.
"""

import asyncio

import pytest

from statecore import AsyncioScheduler, ManualScheduler, Store
from statecore.core.errors import HandlerNotFound, InvalidEventError


def _store():
    sched = ManualScheduler()
    store = Store(initial_state={"log": []}, scheduler=sched)
    store.reg_event_db("append", lambda db, ev: {"log": db["log"] + [ev[1]]})
    return store, sched


def test_manual_scheduler_orders_by_due_then_fifo():
    sched = ManualScheduler()
    order = []
    sched.call_later(20, lambda: order.append("late"))
    sched.call_later(10, lambda: order.append("early-1"))
    sched.call_soon(lambda: order.append("soon"))
    sched.call_later(10, lambda: order.append("early-2"))

    assert sched.run_pending() == 1
    assert order == ["soon"]

    assert sched.advance(15) == 2
    assert order == ["soon", "early-1", "early-2"]
    assert sched.now() == 15

    sched.advance(5)
    assert order[-1] == "late"
    assert sched.pending() == 0


def test_manual_scheduler_times_nested_tasks_from_their_start():
    sched = ManualScheduler()
    fired = []

    def first():
        fired.append(("first", sched.now()))
        sched.call_later(10, lambda: fired.append(("second", sched.now())))

    sched.call_later(10, first)
    sched.advance(100)

    assert fired == [("first", 10), ("second", 20)]
    assert sched.now() == 100


def test_manual_scheduler_rejects_negative_delays():
    sched = ManualScheduler()
    with pytest.raises(ValueError):
        sched.call_later(-1, lambda: None)
    with pytest.raises(ValueError):
        sched.advance(-5)


def test_run_all_guards_against_endless_rescheduling():
    sched = ManualScheduler()

    def again():
        sched.call_later(1, again)

    sched.call_soon(again)
    with pytest.raises(RuntimeError):
        sched.run_all(max_tasks=50)


def test_dispatch_is_queued_and_fifo():
    store, sched = _store()

    store.dispatch(["append", 1])
    store.dispatch(["append", 2])
    store.dispatch(["append", 3])

    assert store.state == {"log": []}
    sched.run_pending()
    assert store.state == {"log": [1, 2, 3]}


def test_dispatch_validates_event_shape_immediately():
    store, sched = _store()
    with pytest.raises(InvalidEventError):
        store.dispatch([])
    with pytest.raises(InvalidEventError):
        store.dispatch("append")
    assert sched.pending() == 0


def test_queued_missing_handler_surfaces_from_scheduler():
    store, sched = _store()
    store.dispatch(["ghost"])
    with pytest.raises(HandlerNotFound):
        sched.run_pending()


def test_dispatch_later_does_not_block():
    """The step returns without waiting; E2 runs only once the delay elapsed."""
    store, sched = _store()
    store.reg_event_fx(
        "start",
        lambda cofx, ev: {
            "db": {"log": ["start"]},
            "dispatch-later": {"ms": 1000, "dispatch": ["append", "later"]},
        },
    )

    store.dispatch_sync(["start"])

    assert store.state == {"log": ["start"]}
    assert sched.pending() == 1

    sched.advance(999)
    assert store.state == {"log": ["start"]}

    sched.advance(1)
    assert store.state == {"log": ["start", "later"]}


def test_dispatch_later_does_not_delay_sibling_effects():
    store, sched = _store()
    calls = []
    store.reg_fx("rec", calls.append)
    store.reg_event_fx(
        "go",
        lambda cofx, ev: {
            "dispatch-later": {"ms": 50, "dispatch": ["append", "x"]},
            "rec": "sibling",
        },
    )

    store.dispatch_sync(["go"])

    assert calls == ["sibling"]
    assert store.state == {"log": []}


def test_dispatch_later_inside_fx_and_as_list():
    store, sched = _store()
    store.reg_event_fx(
        "go",
        lambda cofx, ev: {
            "fx": [
                ["dispatch-later", {"ms": 30, "dispatch": ["append", "b"]}],
                ["dispatch-later", [{"ms": 10, "dispatch": ["append", "a"]}, None]],
            ]
        },
    )

    store.dispatch_sync(["go"])
    sched.run_all()

    assert store.state == {"log": ["a", "b"]}
    assert sched.now() == 30


def test_dispatch_later_races_with_queued_dispatches_by_due_time():
    store, sched = _store()
    store.reg_event_fx(
        "go",
        lambda cofx, ev: {"dispatch-later": {"ms": 0, "dispatch": ["append", "delayed"]}},
    )

    store.dispatch(["go"])
    store.dispatch(["append", "queued"])
    sched.run_pending()

    assert store.state == {"log": ["queued", "delayed"]}


@pytest.mark.parametrize(
    "payload",
    [
        {"ms": 10},
        {"ms": -1, "dispatch": ["append", 1]},
        {"ms": "soon", "dispatch": ["append", 1]},
        "append",
        {"ms": 10, "dispatch": []},
    ],
)
def test_malformed_dispatch_later(payload):
    store, sched = _store()
    store.reg_event_fx("go", lambda cofx, ev: {"dispatch-later": payload})
    with pytest.raises(InvalidEventError):
        store.dispatch_sync(["go"])
    assert sched.pending() == 0


def test_asyncio_scheduler_runs_dispatch_later():
    async def scenario():
        store = Store(initial_state={"log": []}, scheduler=AsyncioScheduler())
        store.reg_event_db("append", lambda db, ev: {"log": db["log"] + [ev[1]]})
        store.reg_event_fx(
            "go",
            lambda cofx, ev: {"dispatch-later": {"ms": 20, "dispatch": ["append", "later"]}},
        )

        store.dispatch(["append", "soon"])
        store.dispatch_sync(["go"])
        assert store.state == {"log": []}

        await asyncio.sleep(0)
        assert store.state == {"log": ["soon"]}

        await asyncio.sleep(0.1)
        return store.state

    assert asyncio.run(scenario()) == {"log": ["soon", "later"]}


def test_fractional_delay_rounds_up():
    """A 0.9ms delay is not due at time 0; it fires once the clock reaches 1ms."""
    store, sched = _store()
    store.reg_event_fx(
        "go",
        lambda cofx, ev: {"dispatch-later": {"ms": 0.9, "dispatch": ["append", "later"]}},
    )

    store.dispatch_sync(["go"])
    assert sched.run_pending() == 0
    assert store.state == {"log": []}

    sched.advance(1)
    assert store.state == {"log": ["later"]}
