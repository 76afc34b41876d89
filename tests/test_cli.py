import json
import tempfile
from datetime import date, timedelta

from typer.testing import CliRunner

from taskflow import cli
from taskflow.cli import app
from taskflow.persistence import DB_ENV_VAR, DEFAULT_DB_FILE

runner = CliRunner()


def _prepare(monkeypatch, d):
    monkeypatch.chdir(d)
    monkeypatch.delenv(DB_ENV_VAR, raising=False)
    monkeypatch.setattr(cli.console, "width", 200)


def _added_id(result):
    assert result.exit_code == 0, result.stdout
    return result.stdout.strip().splitlines()[0].split(" as ")[-1]


def test_add_list_and_show(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)

        tid = _added_id(runner.invoke(app, ["add", "Groceries", "-P", "high", "-t", "errands", "--desc", "milk and eggs"]))
        runner.invoke(app, ["add", "Laundry"])

        result = runner.invoke(app, ["list"])
        assert result.exit_code == 0
        assert "Groceries" in result.stdout
        assert "Laundry" in result.stdout
        assert "2 task(s)" in result.stdout

        result = runner.invoke(app, ["list", "-q", "EGGS"])
        assert "Groceries" in result.stdout
        assert "Laundry" not in result.stdout

        result = runner.invoke(app, ["show", tid])
        assert result.exit_code == 0
        assert "Groceries" in result.stdout
        assert "high" in result.stdout
        assert "errands" in result.stdout
        assert "Inbox" in result.stdout

        with open(DEFAULT_DB_FILE) as f:
            data = json.load(f)
        assert data["projects"][0]["id"] == "inbox"
        assert len(data["projects"][0]["tasks"]) == 2


def test_done_hides_task_from_master_list(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)
        tid = _added_id(runner.invoke(app, ["add", "Taxes"]))

        result = runner.invoke(app, ["done", tid])
        assert result.exit_code == 0
        assert f"Completed {tid}" in result.stdout

        assert "No tasks found." in runner.invoke(app, ["list"]).stdout
        assert "Taxes" in runner.invoke(app, ["list", "--all"]).stdout
        assert "Taxes" in runner.invoke(app, ["list", "--view", "completed"]).stdout


def test_unknown_task_exits_with_error(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)
        result = runner.invoke(app, ["show", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.stdout


def test_invalid_priority_is_reported(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)
        result = runner.invoke(app, ["add", "Thing", "-P", "critical"])
        assert result.exit_code == 1
        assert "Invalid priority" in result.stdout


def test_dependencies_and_cycle_rejection(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)
        a = _added_id(runner.invoke(app, ["add", "Paint"]))
        b = _added_id(runner.invoke(app, ["add", "Sand"]))

        result = runner.invoke(app, ["dep", "add", a, b])
        assert result.exit_code == 0
        assert "BLOCKED" in runner.invoke(app, ["list"]).stdout

        result = runner.invoke(app, ["dep", "add", b, a])
        assert result.exit_code == 1
        assert "cycle" in result.stdout

        result = runner.invoke(app, ["order"])
        assert result.stdout.index("Sand") < result.stdout.index("Paint")

        result = runner.invoke(app, ["done", b])
        assert "Unblocked" in result.stdout
        assert "Paint" in result.stdout


def test_add_with_blocked_by(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)
        a = _added_id(runner.invoke(app, ["add", "Foundation"]))
        b = _added_id(runner.invoke(app, ["add", "Walls", "-b", a]))
        result = runner.invoke(app, ["show", b])
        assert f"Blocked by: {a}" in result.stdout

        result = runner.invoke(app, ["add", "Roof", "-b", "missing"])
        assert result.exit_code == 1


def test_projects_and_move(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)
        result = runner.invoke(app, ["project", "add", "Garden"])
        assert result.exit_code == 0

        tid = _added_id(runner.invoke(app, ["add", "Weeding"]))
        result = runner.invoke(app, ["move", tid, "garden"])
        assert result.exit_code == 0
        assert "Moved" in result.stdout

        result = runner.invoke(app, ["list", "-p", "Garden"])
        assert "Weeding" in result.stdout

        result = runner.invoke(app, ["project", "list"])
        assert "Garden" in result.stdout

        result = runner.invoke(app, ["project", "delete", "inbox"])
        assert result.exit_code == 1
        assert "Inbox cannot be deleted" in result.stdout

        result = runner.invoke(app, ["add", "Mulch", "-p", "Orchard"])
        assert result.exit_code == 1


def test_focus_shows_todays_work(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)
        today = date.today().isoformat()
        runner.invoke(app, ["add", "Dentist", "--due", today])
        runner.invoke(app, ["add", "Someday", "--due", (date.today() + timedelta(days=30)).isoformat()])

        result = runner.invoke(app, ["focus"])
        assert result.exit_code == 0
        assert "Dentist" in result.stdout
        assert "Someday" not in result.stdout

        result = runner.invoke(app, ["focus", "--mode", "top-scored"])
        assert "Score" in result.stdout


def test_timeline_and_reschedule(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)
        today = date.today()
        tid = _added_id(runner.invoke(app, ["add", "Standup", "--at", "09:15", "-e", "15"]))

        result = runner.invoke(app, ["timeline"])
        assert "09:15-09:30" in result.stdout
        assert "Standup" in result.stdout

        tomorrow = (today + timedelta(days=1)).isoformat()
        result = runner.invoke(app, ["reschedule", tid, tomorrow])
        assert result.exit_code == 0
        assert "snoozed 1x" in result.stdout
        assert "No time-slotted tasks" in runner.invoke(app, ["timeline"]).stdout


def test_roll_moves_stale_dates(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)
        last_week = (date.today() - timedelta(days=7)).isoformat()
        runner.invoke(app, ["add", "Old chore", "--due", last_week])
        result = runner.invoke(app, ["roll"])
        assert "Rolled 1 task(s)" in result.stdout
        assert "Nothing to roll forward." in runner.invoke(app, ["roll"]).stdout


def test_tags_and_categories(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)
        runner.invoke(app, ["add", "Call", "-t", "phone"])
        result = runner.invoke(app, ["tag", "list"])
        assert "phone" in result.stdout
        assert "(1)" in result.stdout

        assert runner.invoke(app, ["tag", "delete", "phone"]).exit_code == 0
        assert "No tags." in runner.invoke(app, ["tag", "list"]).stdout

        result = runner.invoke(app, ["category", "add", "Personal"])
        assert result.exit_code == 0
        assert "Personal" in runner.invoke(app, ["category", "list"]).stdout


def test_db_option_selects_file(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        _prepare(monkeypatch, d)
        result = runner.invoke(app, ["--db", "other.json", "add", "Elsewhere"])
        assert result.exit_code == 0
        with open("other.json") as f:
            assert "Elsewhere" in f.read()
        assert "No tasks found." in runner.invoke(app, ["list"]).stdout
