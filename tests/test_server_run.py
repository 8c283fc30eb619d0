"""Tests for the uvicorn runner."""

from __future__ import annotations

import asyncio

import pytest

from slipscan.config import Settings
from slipscan.server import run


class FakeServer:
    def __init__(self, config) -> None:
        self.config = config
        self.should_exit = False
        self.ran = False
        self.served = False

    def run(self) -> None:
        self.ran = True

    async def serve(self) -> None:
        self.served = True
        while not self.should_exit:
            await asyncio.sleep(0.01)


@pytest.fixture()
def servers(monkeypatch) -> list[FakeServer]:
    created: list[FakeServer] = []

    def factory(config):
        server = FakeServer(config)
        created.append(server)
        return server

    monkeypatch.setattr(run.uvicorn, "Server", factory)
    return created


def test_config_uses_settings():
    config = run.build_server_config(Settings(server_host="0.0.0.0", server_port=9001))

    assert config.app == run.APP_FACTORY
    assert config.factory
    assert config.host == "0.0.0.0"
    assert config.port == 9001
    assert not config.reload


def test_reload_with_duration_is_rejected():
    with pytest.raises(SystemExit):
        run.build_server_config(Settings(server_reload=True, server_duration=1.0))


def test_main_reads_environment(monkeypatch, servers):
    monkeypatch.setenv("SLIPSCAN_SERVER_HOST", "0.0.0.0")
    monkeypatch.setenv("SLIPSCAN_SERVER_PORT", "8123")

    run.main()

    assert servers[0].ran
    assert servers[0].config.host == "0.0.0.0"
    assert servers[0].config.port == 8123


def test_main_stops_after_duration(servers):
    run.main(Settings(server_duration=0.05))

    assert servers[0].served
    assert servers[0].should_exit
    assert not servers[0].ran


def test_main_reload_delegates_to_uvicorn_run(monkeypatch, servers):
    calls: list[dict] = []
    monkeypatch.setattr(run.uvicorn, "run", lambda app, **kwargs: calls.append({"app": app, **kwargs}))

    run.main(Settings(server_reload=True, server_port=8200))

    assert servers == []
    assert calls[0]["app"] == run.APP_FACTORY
    assert calls[0]["reload"] is True
    assert calls[0]["port"] == 8200
