"""
Tests for dispatch_async: awaiting async event and effect handlers.
"""

import asyncio

import pytest

from statecore import AsyncioScheduler, Store
from statecore.core.errors import InvalidEventError


def test_async_db_handler_commits_awaited_value():
    store = Store(initial_state={"n": 0})

    async def load(db, event):
        await asyncio.sleep(0)
        return {"n": db["n"] + event[1]}

    store.reg_event_db("load", load)
    asyncio.run(store.dispatch_async(["load", 5]))

    assert store.state == {"n": 5}
    assert store.history[-1].committed is True


def test_async_effect_finishes_before_next_effect():
    """Each async effect completes before the following effect starts."""
    store = Store()
    calls = []

    async def save(payload):
        calls.append(("save-start", payload))
        await asyncio.sleep(0.01)
        calls.append(("save-done", payload))

    store.reg_fx("save", save)
    store.reg_fx("log", lambda p: calls.append(("log", p)))
    store.reg_event_fx("go", lambda cofx, ev: {"fx": [["save", 1], ["log", 2], ["save", 3]]})

    asyncio.run(store.dispatch_async(["go"]))

    assert calls == [
        ("save-start", 1),
        ("save-done", 1),
        ("log", 2),
        ("save-start", 3),
        ("save-done", 3),
    ]


def test_async_nested_dispatch_is_depth_first():
    store = Store(initial_state={"n": 0})
    observed = []

    async def inc(db, event):
        await asyncio.sleep(0)
        return {"n": db["n"] + 1}

    store.reg_event_db("inc", inc)
    store.reg_fx("seen", lambda p: observed.append(store.state["n"]))
    store.reg_event_fx("outer", lambda cofx, ev: {"fx": [["dispatch", ["inc"]], ["seen", None]]})

    asyncio.run(store.dispatch_async(["outer"]))

    assert observed == [1]
    assert [(r.event[0], r.depth) for r in store.history] == [("outer", 0), ("inc", 1)]


def test_dispatch_async_runs_plain_handlers():
    store = Store(initial_state={"n": 1})
    store.reg_event_db("double", lambda db, ev: {"n": db["n"] * 2})

    asyncio.run(store.dispatch_async(["double"]))

    assert store.state == {"n": 2}


def test_async_effect_error_aborts_rest():
    store = Store()
    calls = []

    async def fail(payload):
        raise RuntimeError("upstream down")

    store.reg_fx("fail", fail)
    store.reg_fx("log", calls.append)
    store.reg_event_fx("go", lambda cofx, ev: {"db": {"ok": True}, "fail": None, "log": "after"})

    with pytest.raises(RuntimeError, match="upstream down"):
        asyncio.run(store.dispatch_async(["go"]))

    assert store.state == {"ok": True}
    assert calls == []


def test_delayed_dispatch_from_async_step_awaits_handlers():
    async def scenario():
        store = Store(initial_state={"log": []}, scheduler=AsyncioScheduler())

        async def append(db, event):
            await asyncio.sleep(0)
            return {"log": db["log"] + [event[1]]}

        store.reg_event_db("append", append)
        store.reg_event_fx(
            "go",
            lambda cofx, ev: {"dispatch-later": {"ms": 10, "dispatch": ["append", "later"]}},
        )

        await store.dispatch_async(["go"])
        assert store.state == {"log": []}

        await asyncio.sleep(0.1)
        return store.state

    assert asyncio.run(scenario()) == {"log": ["later"]}


def test_sync_dispatch_rejects_async_event_handler():
    store = Store(initial_state={"n": 0})

    async def load(db, event):
        return {"n": 1}

    store.reg_event_db("load", load)

    with pytest.raises(InvalidEventError, match="dispatch_async"):
        store.dispatch_sync(["load"])

    assert store.state == {"n": 0}
    assert store.cell.version == 0
    assert store.history == []


def test_sync_dispatch_rejects_async_effect():
    store = Store()
    calls = []

    async def save(payload):
        calls.append(payload)

    store.reg_fx("save", save)
    store.reg_fx("log", calls.append)
    store.reg_event_fx("go", lambda cofx, ev: {"db": {"saved": False}, "save": 1, "log": 2})

    with pytest.raises(InvalidEventError, match="dispatch_async"):
        store.dispatch_sync(["go"])

    assert store.state == {"saved": False}
    assert calls == []
