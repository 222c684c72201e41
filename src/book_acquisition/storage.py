"""
Persistence of budget settings and workflow state.

The engine never loads or saves anything itself. Callers hold a StateStore
and pass the loaded values into each engine call.
"""

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from .budget import default_budget_settings
from .models import BudgetSettings
from .workflow import WorkflowState

SETTINGS_KEY = "budget_settings"
WORKFLOW_KEY = "workflow"

SCHEMA = """
CREATE TABLE IF NOT EXISTS acquisition_state (
    key TEXT PRIMARY KEY,
    value_json TEXT NOT NULL,
    updated_ts TEXT NOT NULL
)
"""


class StateStore(Protocol):
    """Load/save capability for caller-owned state."""

    def load_settings(self) -> BudgetSettings: ...

    def save_settings(self, settings: BudgetSettings) -> None: ...

    def load_workflow(self) -> WorkflowState: ...

    def save_workflow(self, state: WorkflowState) -> None: ...


class SqliteStateStore:
    """StateStore backed by a single key/value table in SQLite."""

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute(SCHEMA)
        return conn

    def _get(self, key: str) -> dict | None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT value_json FROM acquisition_state WHERE key = ?",
                (key,),
            ).fetchone()
            return json.loads(row["value_json"]) if row else None
        finally:
            conn.close()

    def _put(self, key: str, value: dict) -> None:
        now = datetime.now(UTC).isoformat()
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO acquisition_state (key, value_json, updated_ts)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value_json = excluded.value_json,
                    updated_ts = excluded.updated_ts
                """,
                (key, json.dumps(value, ensure_ascii=False), now),
            )
            conn.commit()
        finally:
            conn.close()

    def load_settings(self) -> BudgetSettings:
        """Stored settings, or the defaults when nothing is saved yet."""
        data = self._get(SETTINGS_KEY)
        if data is None:
            return default_budget_settings()
        return BudgetSettings.from_dict(data)

    def save_settings(self, settings: BudgetSettings) -> None:
        self._put(SETTINGS_KEY, settings.to_dict())

    def load_workflow(self) -> WorkflowState:
        data = self._get(WORKFLOW_KEY)
        if data is None:
            return WorkflowState()
        return WorkflowState.from_dict(data)

    def save_workflow(self, state: WorkflowState) -> None:
        self._put(WORKFLOW_KEY, state.to_dict())
