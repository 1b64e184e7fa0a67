"""CLI tests for termagent -- exercises every command via Click's CliRunner.

Each test points ``--db`` at a file-backed database under tmp_path, since
the CLI opens its own store (separate from the SDK setup here). Commands
that talk to a model get a scripted client through ``_build_client``.
"""

from __future__ import annotations

import logging

import pytest
from click.testing import CliRunner

from termagent.cli import cli
from termagent.llm.protocols import TextDelta
from termagent.models.messages import Message, Role, ToolCall
from termagent.storage.sqlite import SqliteSessionStore
from tests.conftest import FakeSummaryClient, make_conversation, text_round, tool_round

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner():
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def db(tmp_path) -> str:
    return str(tmp_path / "cli.db")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "TERMAGENT_DB",
        "TERMAGENT_PROVIDER",
        "TERMAGENT_MODEL",
        "TERMAGENT_CONTEXT_WINDOW",
        "TERMAGENT_OPENAI_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class _ScriptedClient(FakeSummaryClient):
    """Model client for CLI runs: scripted stream rounds plus a fixed summary."""

    def __init__(self, rounds=(), **kwargs) -> None:
        super().__init__(**kwargs)
        self.rounds = list(rounds)
        self.requests = []

    def stream(self, request):
        self.requests.append(request)
        yield from self.rounds.pop(0)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def _use_client(monkeypatch, client: _ScriptedClient) -> _ScriptedClient:
    monkeypatch.setattr("termagent.cli._build_client", lambda settings: client)
    return client


def _seed(db: str, session_id: str, messages: list[Message]) -> None:
    with SqliteSessionStore(db_path=db) as store:
        store.save(session_id, messages)


def _load(db: str, session_id: str) -> list[Message] | None:
    with SqliteSessionStore(db_path=db) as store:
        return store.load(session_id)


def _compacted_history() -> list[Message]:
    return [
        Message(role=Role.USER, content="ancient question", sequence_time=1.0, condense_parent="c1"),
        Message(
            role=Role.USER,
            content="Summary text",
            sequence_time=1.5,
            is_summary=True,
            condense_id="c1",
        ),
        Message(role=Role.USER, content="recent question", sequence_time=2.0),
        Message(role=Role.ASSISTANT, content="recent answer", sequence_time=3.0),
    ]


# ---------------------------------------------------------------------------
# sessions
# ---------------------------------------------------------------------------


class TestSessionsCommand:
    def test_no_sessions(self, runner, db):
        result = runner.invoke(cli, ["--db", db, "sessions"])
        assert result.exit_code == 0, result.output
        assert "No sessions." in result.output

    def test_lists_sessions(self, runner, db):
        _seed(db, "alpha", make_conversation(2))
        _seed(db, "beta", make_conversation(5))
        result = runner.invoke(cli, ["--db", db, "sessions"])
        assert result.exit_code == 0, result.output
        assert "alpha" in result.output
        assert "5 messages" in result.output
        assert result.output.index("alpha") < result.output.index("beta")

    def test_delete(self, runner, db):
        _seed(db, "alpha", make_conversation(2))
        result = runner.invoke(cli, ["--db", db, "sessions", "--delete", "alpha"])
        assert result.exit_code == 0, result.output
        assert "Deleted session" in result.output
        assert _load(db, "alpha") is None

    def test_delete_unknown(self, runner, db):
        result = runner.invoke(cli, ["--db", db, "sessions", "--delete", "ghost"])
        assert result.exit_code == 1
        assert "Session not found: ghost" in result.output

    def test_db_from_env(self, runner, db, monkeypatch):
        _seed(db, "alpha", make_conversation(2))
        monkeypatch.setenv("TERMAGENT_DB", db)
        result = runner.invoke(cli, ["sessions"])
        assert "alpha" in result.output


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


class TestHistoryCommand:
    def test_effective_history(self, runner, db):
        _seed(db, "s", _compacted_history())
        result = runner.invoke(cli, ["--db", db, "history", "s"])
        assert result.exit_code == 0, result.output
        assert "Summary text" in result.output
        assert "recent answer" in result.output
        assert "ancient question" not in result.output

    def test_all_includes_subsumed(self, runner, db):
        _seed(db, "s", _compacted_history())
        result = runner.invoke(cli, ["--db", db, "history", "s", "--all"])
        assert result.exit_code == 0, result.output
        assert "ancient question" in result.output
        assert "condensed->c1" in result.output

    def test_empty_session(self, runner, db):
        _seed(db, "s", [])
        result = runner.invoke(cli, ["--db", db, "history", "s"])
        assert result.exit_code == 0
        assert "No messages." in result.output

    def test_unknown_session(self, runner, db):
        result = runner.invoke(cli, ["--db", db, "history", "ghost"])
        assert result.exit_code == 1
        assert "Session not found: ghost" in result.output


# ---------------------------------------------------------------------------
# budget
# ---------------------------------------------------------------------------


class TestBudgetCommand:
    def test_low_usage(self, runner, db):
        _seed(db, "s", make_conversation(4))
        result = runner.invoke(cli, ["--db", db, "budget", "s"])
        assert result.exit_code == 0, result.output
        assert "Usage:" in result.output
        assert "urgency low" in result.output
        assert "Due stages: none" in result.output

    def test_window_from_env(self, runner, db, monkeypatch):
        _seed(db, "s", make_conversation(10, chars=360))
        monkeypatch.setenv("TERMAGENT_CONTEXT_WINDOW", "1200")
        result = runner.invoke(cli, ["--db", db, "budget", "s"])
        assert result.exit_code == 0, result.output
        assert "reserved 600" in result.output
        assert "compact" in result.output

    def test_bad_window_is_reported(self, runner, db, monkeypatch):
        _seed(db, "s", make_conversation(2))
        monkeypatch.setenv("TERMAGENT_CONTEXT_WINDOW", "lots")
        result = runner.invoke(cli, ["--db", db, "budget", "s"])
        assert result.exit_code == 1
        assert "TERMAGENT_CONTEXT_WINDOW" in result.output

    def test_unknown_session(self, runner, db):
        result = runner.invoke(cli, ["--db", db, "budget", "ghost"])
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_new_session(self, runner, db, monkeypatch):
        client = _use_client(monkeypatch, _ScriptedClient([text_round("All done.")]))
        result = runner.invoke(cli, ["--db", db, "run", "say hi", "--session", "s1"])

        assert result.exit_code == 0, result.output
        assert "All done." in result.output
        assert "Session: s1" in result.output
        assert [m.content for m in _load(db, "s1")] == ["say hi", "All done."]
        assert client.requests[0].model == "gpt-4o-mini"

    def test_continues_session(self, runner, db, monkeypatch):
        _seed(db, "s1", [Message.user("earlier"), Message.assistant("noted")])
        client = _use_client(monkeypatch, _ScriptedClient([[TextDelta(text="Done.")]]))
        result = runner.invoke(
            cli, ["--db", db, "run", "again", "--session", "s1", "--model", "m-x"]
        )

        assert result.exit_code == 0, result.output
        sent = [m.content for m in client.requests[0].messages[1:]]
        assert sent == ["earlier", "noted", "again"]
        assert client.requests[0].model == "m-x"
        assert len(_load(db, "s1")) == 4

    def test_tool_calls_with_yes(self, runner, db, monkeypatch):
        command = ToolCall(id="c1", name="run_command", input={"command": "echo hi"})
        done = ToolCall(id="c2", name="task_complete", input={"summary": "Said hi."})
        _use_client(monkeypatch, _ScriptedClient([tool_round(command), tool_round(done)]))
        result = runner.invoke(cli, ["--db", db, "run", "greet", "--session", "s1", "--yes"])

        assert result.exit_code == 0, result.output
        assert "run_command" in result.output
        assert "task_complete" in result.output
        roles = [m.role for m in _load(db, "s1")]
        assert roles == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT, Role.TOOL]

    def test_rejected_without_yes(self, runner, db, monkeypatch):
        command = ToolCall(id="c1", name="run_command", input={"command": "rm -rf /tmp/x"})
        done = ToolCall(id="c2", name="task_complete", input={"summary": "Gave up."})
        _use_client(monkeypatch, _ScriptedClient([tool_round(command), tool_round(done)]))
        result = runner.invoke(
            cli, ["--db", db, "run", "clean", "--session", "s1"], input="n\n"
        )

        assert result.exit_code == 0, result.output
        assert "Rejected by user" in result.output
        tool_message = _load(db, "s1")[2]
        assert tool_message.tool_results[0].is_error

    def test_max_rounds(self, runner, db, monkeypatch):
        client = _use_client(monkeypatch, _ScriptedClient([text_round("Let me check")]))
        result = runner.invoke(
            cli, ["--db", db, "run", "look", "--session", "s1", "--max-rounds", "1"]
        )
        assert result.exit_code == 0, result.output
        assert "max_rounds" in result.output
        assert len(client.requests) == 1


# ---------------------------------------------------------------------------
# compact
# ---------------------------------------------------------------------------


class TestCompactCommand:
    def test_forced_compaction(self, runner, db, monkeypatch):
        _seed(db, "s", make_conversation(10))
        client = _use_client(monkeypatch, _ScriptedClient(summary="They talked."))
        result = runner.invoke(cli, ["--db", db, "compact", "s"])

        assert result.exit_code == 0, result.output
        assert "Compacted 7 message(s)" in result.output
        assert len(client.calls) == 1
        stored = _load(db, "s")
        assert sum(1 for m in stored if m.is_summary) == 1
        assert sum(1 for m in stored if m.condense_parent) == 7

    def test_if_needed_is_noop_for_small_sessions(self, runner, db, monkeypatch):
        _seed(db, "s", make_conversation(4))
        client = _use_client(monkeypatch, _ScriptedClient())
        result = runner.invoke(cli, ["--db", db, "compact", "s", "--if-needed"])

        assert result.exit_code == 0, result.output
        assert "Nothing to manage." in result.output
        assert client.calls == []

    def test_summary_failure_reported(self, runner, db, monkeypatch):
        _seed(db, "s", make_conversation(10))
        _use_client(monkeypatch, _ScriptedClient(error=RuntimeError("model offline")))
        result = runner.invoke(cli, ["--db", db, "compact", "s"])

        assert result.exit_code == 0, result.output
        assert "Compaction failed" in result.output
        assert "model offline" in result.output

    def test_unknown_session(self, runner, db, monkeypatch):
        _use_client(monkeypatch, _ScriptedClient())
        result = runner.invoke(cli, ["--db", db, "compact", "ghost"])
        assert result.exit_code == 1
        assert "Session not found: ghost" in result.output
