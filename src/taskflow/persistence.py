"""JSON file persistence for the workspace."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Protocol

from taskflow.models import PersistenceError, Workspace

DEFAULT_DB_FILE = "taskflow_data.json"
DB_ENV_VAR = "TASKFLOW_DB"

logger = logging.getLogger(__name__)


class Persistence(Protocol):
    """What the service needs from a storage backend."""

    def load(self) -> Workspace: ...

    def save(self, workspace: Workspace) -> None: ...


def default_db_path() -> Path:
    return Path(os.environ.get(DB_ENV_VAR) or DEFAULT_DB_FILE)


class Store:
    """Reads and writes the workspace database (JSON file)."""

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = Path(db_path) if db_path is not None else default_db_path()

    def load(self) -> Workspace:
        """Return the stored workspace, or an empty one if there is none.

        A file that cannot be read or parsed is reported and treated as
        empty; it is left on disk untouched until the next save.
        """
        if not self.db_path.exists():
            return Workspace()

        try:
            raw = json.loads(self.db_path.read_text(encoding="utf-8"))
            return Workspace.from_dict(raw)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Could not load %s (%s); starting with an empty workspace", self.db_path, e)
            return Workspace()

    def save(self, workspace: Workspace) -> None:
        """Persist the workspace to disk. Raises PersistenceError on failure."""
        payload = json.dumps(workspace.to_dict(), indent=2)
        tmp_path = self.db_path.with_name(self.db_path.name + ".tmp")
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.db_path)
        except OSError as e:
            raise PersistenceError(f"Could not write {self.db_path}: {e}") from e
