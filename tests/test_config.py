"""Tests for configuration loading."""

import argparse

import pytest

from ideaflow.cli import load_config
from ideaflow.config import Config


class TestConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("IDEAFLOW_BASE_URL", raising=False)
        config = Config()

        assert config.backend.base_url == "http://localhost:36156"
        assert config.backend.lists.idea_trail == "innovative_idea_trail"
        assert config.gateway.max_retries == 3
        assert config.gateway.retry_base_delay == 1.0
        assert config.gateway.rate_limit_delay == 0.1
        assert config.gateway.token_cache_seconds == 0
        assert config.workflow.reconcile_delay_seconds == 1.0

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("IDEAFLOW_BASE_URL", "https://intranet/sites/x")
        monkeypatch.setenv("IDEAFLOW_TIMEOUT", "12.5")
        monkeypatch.setenv("IDEAFLOW_LOG_LEVEL", "DEBUG")

        config = Config()

        assert config.backend.base_url == "https://intranet/sites/x"
        assert config.backend.timeout == 12.5
        assert config.logging.level == "DEBUG"

    def test_from_dict(self):
        config = Config.from_dict({
            "backend": {
                "base_url": "https://intranet/sites/x",
                "headers": {"Cookie": "FedAuth=abc"},
                "lists": {"ideas": "ideas_v2"},
            },
            "gateway": {"retry_client_errors": False},
            "workflow": {"approver_group": "Reviewers"},
        })

        assert config.backend.lists.ideas == "ideas_v2"
        assert config.backend.lists.tasks == "ino_ideas_tasks"
        assert config.backend.headers == {"Cookie": "FedAuth=abc"}
        assert config.gateway.retry_client_errors is False
        assert config.workflow.approver_group == "Reviewers"

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "ideaflow.yaml"
        path.write_text(
            "backend:\n"
            "  base_url: https://intranet/sites/y\n"
            "gateway:\n"
            "  token_cache_seconds: 300\n"
        )

        config = Config.from_yaml(str(path))

        assert config.backend.base_url == "https://intranet/sites/y"
        assert config.gateway.token_cache_seconds == 300

    def test_from_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert Config.from_yaml(str(path)).gateway.max_retries == 3

    def test_from_json(self, tmp_path):
        path = tmp_path / "ideaflow.json"
        path.write_text('{"workflow": {"reconcile_delay_seconds": 2.5}}')

        assert Config.from_json(str(path)).workflow.reconcile_delay_seconds == 2.5

    def test_unknown_key_is_rejected(self):
        with pytest.raises(TypeError):
            Config.from_dict({"gateway": {"retries": 5}})


class TestCliOverrides:
    def test_command_line_wins(self, tmp_path):
        path = tmp_path / "ideaflow.yaml"
        path.write_text("backend:\n  base_url: https://from-file\n")
        args = argparse.Namespace(
            config=str(path),
            base_url="https://from-cli",
            header=["Cookie: FedAuth=abc", "X-Proxy:  on "],
            log_level="WARNING",
        )

        config = load_config(args)

        assert config.backend.base_url == "https://from-cli"
        assert config.backend.headers == {"Cookie": "FedAuth=abc", "X-Proxy": "on"}
        assert config.logging.level == "WARNING"
