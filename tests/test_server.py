"""
Tests for application startup, the middleware chain and the command line entry points.
"""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from edu.rit.csh.pings.app.cli import invoke
from edu.rit.csh.pings.app.config import DatabaseAppKey, HttpSessionAppKey
from edu.rit.csh.pings.app.metrics import MetricsClient, NoOpMetricsClient
from edu.rit.csh.pings.app.server import create_app
from edu.rit.csh.pings.app.util.__main__ import realMain
from edu.rit.csh.pings.model.database import DatabaseUnavailable

DATABASE_URL = "postgresql://pings:password@db/pings"


@pytest.fixture
def clean_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in (
        "HOST",
        "PORT",
        "DATABASE_URL",
        "EXTERNAL_URL",
        "TELEGRAF_HOST",
        "DEBUG",
        "LOGGING_CONFIG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def root_log_level():
    root = logging.getLogger()
    level = root.level
    yield root
    root.setLevel(level)


class TestStartup:
    async def test_unreachable_database_fails_before_listening(
        self, settings, session_key, static_bundle
    ):
        app = create_app(
            settings,
            session_key,
            static_bundle=static_bundle,
            metrics_client=NoOpMetricsClient(),
        )
        engine = MagicMock()
        engine.dispose = AsyncMock()

        runner = web.AppRunner(app)
        with patch(
            "edu.rit.csh.pings.app.server.create_database_engine",
            return_value=engine,
        ) as create_engine, patch(
            "edu.rit.csh.pings.app.server.check_database",
            AsyncMock(side_effect=DatabaseUnavailable("refused")),
        ):
            with pytest.raises(DatabaseUnavailable):
                await runner.setup()

        create_engine.assert_called_once_with(
            str(settings.database_url), settings.database_pool_size
        )
        engine.dispose.assert_awaited_once()
        assert DatabaseAppKey not in app
        assert runner.sites == set()

    async def test_resources_are_released(self, app, mock_engine):
        runner = web.AppRunner(app)
        await runner.setup()
        http_session = app[HttpSessionAppKey]
        assert not http_session.closed

        await runner.cleanup()

        assert http_session.closed
        # An injected engine belongs to the caller.
        mock_engine.dispose.assert_not_awaited()


class TestMiddleware:
    async def test_requests_are_logged(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="edu.rit.csh.pings.app.server"):
            await client.get("/api/ping")
            await client.get("/nonexistent-file.xyz")

        assert '"GET /api/ping" 200' in caplog.text
        assert '"GET /nonexistent-file.xyz" 404' in caplog.text

    async def test_http_errors_are_logged_with_their_status(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="edu.rit.csh.pings.app.server"):
            await client.get("/api/me")

        assert '"GET /api/me" 401' in caplog.text

    async def test_request_metrics(
        self, settings, session_key, mock_engine, static_bundle
    ):
        metrics_client = MagicMock(spec=MetricsClient)
        app = create_app(
            settings,
            session_key,
            engine=mock_engine,
            static_bundle=static_bundle,
            metrics_client=metrics_client,
        )
        async with TestClient(TestServer(app)) as client:
            await client.get("/api/ping")
            await client.get("/assets/app.js")

        count_tags = [
            call.kwargs["tag_dict"]
            for call in metrics_client.increment.call_args_list
            if call.args[0] == "pings.server.request.count"
        ]
        assert {"path": "/api/ping", "method": "GET", "status": 200} in count_tags
        assert {"path": "static", "method": "GET", "status": 200} in count_tags
        assert metrics_client.timer.call_count == 2


class TestCli:
    def test_missing_database_url_exits(self, clean_environment):
        with patch("edu.rit.csh.pings.app.cli.web.run_app") as run_app:
            with pytest.raises(SystemExit) as exit_info:
                invoke()

        assert exit_info.value.code == 1
        run_app.assert_not_called()

    def test_invalid_port_falls_back(self, clean_environment, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", DATABASE_URL)
        monkeypatch.setenv("PORT", "abc")
        calls = []

        def fake_run_app(app, **kwargs):
            app.close()
            calls.append(kwargs)

        with patch("edu.rit.csh.pings.app.cli.web.run_app", fake_run_app):
            invoke()

        assert calls[0]["host"] == "127.0.0.1"
        assert calls[0]["port"] == 8080

    def test_host_and_port(self, clean_environment, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", DATABASE_URL)
        monkeypatch.setenv("HOST", "0.0.0.0")
        monkeypatch.setenv("PORT", "9000")
        calls = []

        def fake_run_app(app, **kwargs):
            app.close()
            calls.append(kwargs)

        with patch("edu.rit.csh.pings.app.cli.web.run_app", fake_run_app):
            invoke()

        assert calls[0]["host"] == "0.0.0.0"
        assert calls[0]["port"] == 9000

    @pytest.mark.parametrize(
        "debug,expected_level",
        [("true", logging.DEBUG), ("1", logging.DEBUG), ("false", logging.INFO)],
    )
    def test_debug_setting_controls_log_level(
        self, clean_environment, monkeypatch, root_log_level, debug, expected_level
    ):
        monkeypatch.setenv("DATABASE_URL", DATABASE_URL)
        monkeypatch.setenv("DEBUG", debug)

        def fake_run_app(app, **kwargs):
            app.close()

        with patch("edu.rit.csh.pings.app.cli.web.run_app", fake_run_app):
            invoke()

        assert root_log_level.level == expected_level

    def test_debug_from_dotenv(self, clean_environment, tmp_path, root_log_level):
        (tmp_path / ".env").write_text(f"DATABASE_URL={DATABASE_URL}\nDEBUG=true\n")

        def fake_run_app(app, **kwargs):
            app.close()

        with patch("edu.rit.csh.pings.app.cli.web.run_app", fake_run_app):
            invoke()

        assert root_log_level.level == logging.DEBUG


class TestCheckDb:
    async def test_reachable(self, clean_environment, monkeypatch, capsys):
        monkeypatch.setenv("DATABASE_URL", DATABASE_URL)
        monkeypatch.setattr("sys.argv", ["pings-util", "check-db"])
        engine = MagicMock()
        engine.dispose = AsyncMock()

        with patch(
            "edu.rit.csh.pings.app.util.__main__.create_database_engine",
            return_value=engine,
        ), patch(
            "edu.rit.csh.pings.app.util.__main__.check_database", AsyncMock()
        ):
            assert await realMain() == 0

        assert "Database OK" in capsys.readouterr().out
        engine.dispose.assert_awaited_once()

    async def test_unreachable(self, clean_environment, monkeypatch, capsys):
        monkeypatch.setenv("DATABASE_URL", DATABASE_URL)
        monkeypatch.setattr("sys.argv", ["pings-util", "check-db"])
        engine = MagicMock()
        engine.dispose = AsyncMock()

        with patch(
            "edu.rit.csh.pings.app.util.__main__.create_database_engine",
            return_value=engine,
        ), patch(
            "edu.rit.csh.pings.app.util.__main__.check_database",
            AsyncMock(side_effect=DatabaseUnavailable("refused")),
        ):
            assert await realMain() == 1

        assert "refused" in capsys.readouterr().err
        engine.dispose.assert_awaited_once()

    async def test_missing_configuration(self, clean_environment, monkeypatch):
        monkeypatch.setattr("sys.argv", ["pings-util", "check-db"])
        assert await realMain() == 1
