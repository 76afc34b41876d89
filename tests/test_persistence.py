from datetime import date

import pytest

from taskflow.models import PersistenceError, Project, Subtask, Tag, Task, Workspace
from taskflow.persistence import DB_ENV_VAR, DEFAULT_DB_FILE, Store, default_db_path


def test_missing_file_loads_empty_workspace(tmp_path):
    ws = Store(tmp_path / "none.json").load()
    assert ws.projects == []
    assert ws.tags == []


def test_save_then_load_round_trip(tmp_path):
    inbox = Project.inbox()
    inbox.tasks.append(
        Task(
            id="a1",
            name="Call bank",
            due_date=date(2024, 5, 1),
            tags=["t1"],
            subtasks=[Subtask(id="s1", name="Find number")],
        )
    )
    ws = Workspace(projects=[inbox], tags=[Tag(id="t1", name="phone")])
    store = Store(tmp_path / "data.json")
    store.save(ws)

    loaded = store.load()
    assert loaded.to_dict() == ws.to_dict()
    assert not (tmp_path / "data.json.tmp").exists()


def test_save_creates_parent_directories(tmp_path):
    store = Store(tmp_path / "nested" / "dir" / "data.json")
    store.save(Workspace())
    assert store.db_path.exists()


def test_corrupt_file_loads_empty_and_is_left_alone(tmp_path, caplog):
    path = tmp_path / "data.json"
    path.write_text("{not json")
    ws = Store(path).load()
    assert ws.projects == []
    assert path.read_text() == "{not json"
    assert "Could not load" in caplog.text


def test_invalid_enum_in_file_loads_empty(tmp_path):
    path = tmp_path / "data.json"
    path.write_text('{"projects": [{"id": "p", "name": "P", "status": "archived"}]}')
    assert Store(path).load().projects == []


def test_unwritable_target_raises_persistence_error(tmp_path):
    # a directory where the file should be makes the final rename fail
    target = tmp_path / "data.json"
    target.mkdir()
    (target / "keep").write_text("x")
    with pytest.raises(PersistenceError):
        Store(target).save(Workspace())


def test_default_db_path_honours_env(monkeypatch, tmp_path):
    monkeypatch.delenv(DB_ENV_VAR, raising=False)
    assert str(default_db_path()) == DEFAULT_DB_FILE
    monkeypatch.setenv(DB_ENV_VAR, str(tmp_path / "x.json"))
    assert default_db_path() == tmp_path / "x.json"
    assert Store().db_path == tmp_path / "x.json"
