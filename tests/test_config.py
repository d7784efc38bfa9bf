"""Tests for environment-driven configuration and warning/error reporting."""

import logging

from depflow import config
from depflow.config import Config, reset_config
from depflow.errors import handle_error, warn


class TestConfig:
    def test_defaults(self):
        c = Config.from_env({})
        assert c.production is False
        assert c.async_flush is True
        assert c.max_update_count == 100

    def test_from_env(self):
        c = Config.from_env(
            {
                "DEPFLOW_ENV": "Production",
                "DEPFLOW_ASYNC": "off",
                "DEPFLOW_MAX_UPDATE_COUNT": "7",
            }
        )
        assert c.production is True
        assert c.async_flush is False
        assert c.max_update_count == 7

    def test_reset_updates_in_place(self):
        same = config
        config.silent = True
        reset_config({"DEPFLOW_ASYNC": "0"})
        assert config is same
        assert config.silent is False
        assert config.async_flush is False


class TestReporting:
    def test_warn_logs(self, caplog):
        with caplog.at_level(logging.WARNING, logger="depflow.errors"):
            warn("careful")
        assert "careful" in caplog.text

    def test_silent_suppresses_warnings(self, caplog):
        config.silent = True
        warn("careful")
        assert "careful" not in caplog.text

    def test_error_handler_receives_context(self):
        seen = []
        config.error_handler = lambda exc, ctx, info: seen.append((exc, ctx, info))
        exc = ValueError("x")
        handle_error(exc, "ctx", "somewhere")
        assert seen == [(exc, "ctx", "somewhere")]

    def test_failing_error_handler_is_logged(self, caplog):
        def handler(exc, ctx, info):
            raise RuntimeError("handler broke")

        config.error_handler = handler
        handle_error(ValueError("original"), None, "somewhere")
        assert "handler broke" in caplog.text
        assert "original" in caplog.text
