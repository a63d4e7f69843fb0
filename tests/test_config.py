# tests/test_config.py
import logging

import pytest

from occurrence_sync.core import config
from occurrence_sync.core.logging_config import configure_logging
from occurrence_sync.services import graph_client, occurrence_expander
from occurrence_sync.services.appointment_store import GraphAppointmentStore


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """
    Clear cached settings and shared instances around each test.
    """
    monkeypatch.setattr(graph_client, "_graph_client_instance", None)
    monkeypatch.setattr(occurrence_expander, "_occurrence_expander_instance", None)
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


def _set_graph_env(monkeypatch):
    monkeypatch.setenv("GRAPH_TENANT_ID", "tenant-123")
    monkeypatch.setenv("GRAPH_CLIENT_ID", "client-123")
    monkeypatch.setenv("GRAPH_CLIENT_SECRET", "secret-xyz")
    monkeypatch.setenv("GRAPH_TIMEOUT_SECONDS", "2.5")


def test_settings_read_from_environment(monkeypatch):
    _set_graph_env(monkeypatch)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    settings = config.get_settings()

    assert settings.GRAPH_TENANT_ID == "tenant-123"
    assert settings.GRAPH_TIMEOUT_SECONDS == 2.5
    assert settings.LOG_LEVEL == "DEBUG"
    assert config.get_settings() is settings


def test_shared_expander_uses_graph_store(monkeypatch):
    _set_graph_env(monkeypatch)
    monkeypatch.setenv("GRAPH_USER_ID", "org@test.com")

    expander = occurrence_expander.get_occurrence_expander()

    assert isinstance(expander.store, GraphAppointmentStore)
    assert expander.store.user_id == "org@test.com"
    assert occurrence_expander.get_occurrence_expander() is expander


def test_shared_expander_requires_user_id(monkeypatch):
    _set_graph_env(monkeypatch)
    monkeypatch.delenv("GRAPH_USER_ID", raising=False)

    with pytest.raises(ValueError):
        occurrence_expander.get_occurrence_expander()


def test_shared_graph_client_requires_credentials(monkeypatch):
    for name in ("GRAPH_TENANT_ID", "GRAPH_CLIENT_ID", "GRAPH_CLIENT_SECRET"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(graph_client.GraphClientError):
        graph_client.get_graph_client()


def test_configure_logging_sets_levels():
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging("debug")
        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.DEBUG

        configure_logging("warning")
        assert root.level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.setLevel(previous)


def test_configure_logging_falls_back_to_info_for_unknown_level():
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging("chatty")
        assert root.level == logging.INFO
    finally:
        root.setLevel(previous)
