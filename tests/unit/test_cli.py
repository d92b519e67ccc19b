"""Unit tests for the command line."""

import json

import pytest

from feedpage import cli
from feedpage.config import get_config
from feedpage.core.state import StateStore
from feedpage.exceptions import CycleError
from feedpage.models import DigestItem, DigestNode


class FakeScheduler:
    def __init__(self, state):
        self.state = state

    def run_once(self):
        return self.state


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """No config/config.yaml from the working tree."""
    monkeypatch.chdir(tmp_path)


class TestParser:
    """Tests for argument parsing."""

    def test_serve_arguments(self):
        args = cli._build_parser().parse_args(["--opml-url", "https://x/list.opml", "serve", "--port", "9000"])

        assert args.command == "serve"
        assert args.port == 9000
        assert args.host is None
        assert args.opml_url == "https://x/list.opml"

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            cli._build_parser().parse_args([])


class TestRunOnce:
    """Tests for the run-once command."""

    def test_prints_digest(self, monkeypatch, capsys):
        state = StateStore().publish(
            [DigestNode("Tech", (DigestItem(title="Hello", link="https://example.com/1"),))], {}
        )
        monkeypatch.setattr(cli, "create_scheduler", lambda config: FakeScheduler(state))

        exit_code = cli.main(["--opml-url", "https://example.com/list.opml", "run-once"])

        assert exit_code == 0
        assert get_config().opml_url == "https://example.com/list.opml"
        data = json.loads(capsys.readouterr().out)
        assert data["feeds"][0]["items"][0]["title"] == "Hello"
        assert data["name"] == "FeedPage"

    def test_failed_cycle_exit_code(self, monkeypatch, capsys):
        state = StateStore().record_failure(CycleError("No OPML address configured", stage="opml"))
        monkeypatch.setattr(cli, "create_scheduler", lambda config: FakeScheduler(state))

        assert cli.main(["run-once"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["lastError"]["type"] == "CycleError"
