"""
Configuration, logging setup and metrics helpers.
"""

import json
import logging

import pytest
from prometheus_client import REGISTRY

from statecore import Store
from statecore import metrics
from statecore.config import StoreConfig
from statecore.core.errors import HandlerNotFound
from statecore.logging_config import TraceIDFilter, get_logger, setup_logging


def test_config_defaults():
    cfg = StoreConfig.from_env({})
    assert cfg == StoreConfig(history_size=100, metrics_enabled=False, metrics_port=8080)


def test_config_from_env():
    cfg = StoreConfig.from_env(
        {
            "STATECORE_HISTORY_SIZE": "5",
            "STATECORE_METRICS_ENABLED": "True",
            "STATECORE_METRICS_PORT": "9100",
        }
    )
    assert cfg.history_size == 5
    assert cfg.metrics_enabled is True
    assert cfg.metrics_port == 9100


def test_config_rejects_negative_history():
    with pytest.raises(ValueError):
        StoreConfig.from_env({"STATECORE_HISTORY_SIZE": "-1"})


def test_store_from_env(monkeypatch):
    monkeypatch.setenv("STATECORE_HISTORY_SIZE", "2")
    monkeypatch.delenv("STATECORE_METRICS_ENABLED", raising=False)
    store = Store.from_env(initial_state={})
    assert store.config.history_size == 2


def test_trace_id_filter_fills_missing_field():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    assert TraceIDFilter().filter(record) is True
    assert record.trace_id == "N/A"


def test_get_logger_carries_trace_id():
    adapter = get_logger("statecore.test", trace_id="todos/add")
    assert adapter.extra == {"trace_id": "todos/add"}
    assert get_logger("statecore.test").extra == {"trace_id": "N/A"}


def test_setup_logging_json(capsys):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(level="debug", fmt="json")
        get_logger("statecore.test", trace_id="ev-1").info("hello")
        line = capsys.readouterr().err.strip().splitlines()[-1]
        data = json.loads(line)
        assert data["message"] == "hello"
        assert data["trace_id"] == "ev-1"
        assert data["level"] == "INFO"
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_setup_logging_text(capsys):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(level="INFO", fmt="text")
        logging.getLogger("statecore.test").warning("plain")
        err = capsys.readouterr().err
        assert "plain [trace_id=N/A]" in err
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_metrics_track_dispatches_and_effects():
    metrics.init_metrics()
    metrics.init_metrics()  # idempotent
    assert metrics.metrics_enabled()

    store = Store(initial_state={"n": 0})
    store.reg_fx("m-log", lambda p: None)
    store.reg_event_fx("m-go", lambda cofx, ev: {"db": {"n": 1}, "m-log": 1})

    before = _sample("statecore_dispatches_total", event_id="m-go", kind="fx")
    store.dispatch_sync(["m-go"])

    assert _sample("statecore_dispatches_total", event_id="m-go", kind="fx") == before + 1
    assert _sample("statecore_effects_total", effect_id="m-log") >= 1

    with pytest.raises(HandlerNotFound):
        store.dispatch_sync(["m-missing"])
    assert _sample("statecore_dispatch_failures_total", error="HandlerNotFound") >= 1


def test_start_metrics_server_disabled_is_noop():
    metrics.start_metrics_server(enabled=False, port=0)
