"""SQLite storage layer for scored scenario runs.

Runs are append-only: a run row and its child rows (skills, regressions,
verification steps) are written in one transaction and never updated.
The database file and schema are created on first write; reads against a
store that does not exist yet return empty results. WAL journaling lets
readers proceed while a write is committing.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from sortie.models.result import RegressionResult, Run, VerifyResult

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    scenario        TEXT NOT NULL,
    session_id      TEXT NOT NULL,
    git_commit      TEXT,
    started_at      TEXT NOT NULL,
    duration_sec    INTEGER,
    total_turns     INTEGER,
    azd_up_attempts INTEGER,
    bicep_edits     INTEGER,
    delegated       BOOLEAN,
    deployed        BOOLEAN,
    score           REAL,
    passed          BOOLEAN
);
CREATE INDEX IF NOT EXISTS idx_runs_scenario ON runs (scenario, started_at);

CREATE TABLE IF NOT EXISTS run_skills (
    run_id   INTEGER REFERENCES runs(id),
    skill    TEXT NOT NULL,
    invoked  BOOLEAN NOT NULL DEFAULT 0,
    PRIMARY KEY (run_id, skill)
);

CREATE TABLE IF NOT EXISTS run_regressions (
    run_id       INTEGER REFERENCES runs(id),
    name         TEXT NOT NULL,
    occurrences  INTEGER,
    max_allowed  INTEGER,
    passed       BOOLEAN,
    PRIMARY KEY (run_id, name)
);

CREATE TABLE IF NOT EXISTS run_verification (
    run_id  INTEGER REFERENCES runs(id),
    step    TEXT NOT NULL,
    passed  BOOLEAN NOT NULL,
    error   TEXT,
    PRIMARY KEY (run_id, step)
);
"""

_RUN_COLUMNS = (
    "id, scenario, session_id, git_commit, started_at, duration_sec, total_turns, "
    "azd_up_attempts, bicep_edits, delegated, deployed, score, passed"
)


class StoreError(Exception):
    """Raised when a results store operation fails.

    Attributes:
        operation: Name of the failed operation (e.g. 'insert run').
    """

    def __init__(self, operation: str, cause: Exception) -> None:
        self.operation = operation
        super().__init__(f"{operation}: {cause}")


def _timestamp(value: datetime) -> str:
    """Canonical UTC text form; sorts chronologically as a string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class ResultsStore:
    """Persist and query Run records in a SQLite database.

    Args:
        path: Database file location. Parent directories are created on
            first write.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._initialized = False

    def exists(self) -> bool:
        return self.path.exists()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _connect_for_write(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        if not self._initialized:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)
            self._initialized = True
        return conn

    # -- writes ---------------------------------------------------------

    def _insert(self, conn: sqlite3.Connection, run: Run) -> int:
        cursor = conn.execute(
            """
            INSERT INTO runs (scenario, session_id, git_commit, started_at, duration_sec,
                total_turns, azd_up_attempts, bicep_edits, delegated, deployed, score, passed)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                run.scenario,
                run.session_id,
                run.git_commit,
                _timestamp(run.started_at),
                run.duration_sec,
                run.total_turns,
                run.azd_up_attempts,
                run.bicep_edits,
                run.delegated,
                run.deployed,
                run.score,
                run.passed,
            ),
        )
        run_id = cursor.lastrowid
        conn.executemany(
            "INSERT INTO run_skills (run_id, skill, invoked) VALUES (?, ?, ?)",
            [(run_id, skill, invoked) for skill, invoked in run.skills.items()],
        )
        conn.executemany(
            """
            INSERT INTO run_regressions (run_id, name, occurrences, max_allowed, passed)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (run_id, name, reg.occurrences, reg.max_allowed, reg.passed)
                for name, reg in run.regressions.items()
            ],
        )
        conn.executemany(
            "INSERT INTO run_verification (run_id, step, passed, error) VALUES (?, ?, ?, ?)",
            [
                (run_id, step, result.passed, result.error)
                for step, result in run.verification.items()
            ],
        )
        return run_id

    def insert_run(self, run: Run) -> int:
        """Save a run and its child rows atomically.

        Returns:
            The store-assigned run id.

        Raises:
            StoreError: If the transaction fails; nothing is written.
        """
        try:
            with closing(self._connect_for_write()) as conn, conn:
                run_id = self._insert(conn, run)
        except sqlite3.Error as e:
            raise StoreError("insert run", e) from e
        logger.debug("Stored run %d for %s", run_id, run.scenario)
        return run_id

    # -- reads ----------------------------------------------------------

    def _select_runs(
        self,
        conn: sqlite3.Connection,
        scenario: str,
        limit: int | None,
    ) -> list[sqlite3.Row]:
        rows = conn.execute(
            f"""
            SELECT {_RUN_COLUMNS} FROM runs
            WHERE ? = '' OR scenario = ?
            ORDER BY started_at DESC, id DESC
            LIMIT ?
            """,
            (scenario, scenario, -1 if limit is None else limit),
        ).fetchall()
        rows.reverse()
        return rows

    @staticmethod
    def _row_to_fields(row: sqlite3.Row) -> dict[str, Any]:
        return {
            "scenario": row["scenario"],
            "session_id": row["session_id"],
            "git_commit": row["git_commit"],
            "started_at": datetime.fromisoformat(row["started_at"]),
            "duration_sec": row["duration_sec"] or 0,
            "total_turns": row["total_turns"] or 0,
            "azd_up_attempts": row["azd_up_attempts"] or 0,
            "bicep_edits": row["bicep_edits"] or 0,
            "delegated": bool(row["delegated"]),
            "deployed": bool(row["deployed"]),
            "score": row["score"] or 0.0,
            "passed": bool(row["passed"]),
        }

    def list_runs(self, scenario: str = "", limit: int | None = None) -> list[Run]:
        """List runs oldest-first, keeping only the newest ``limit`` rows.

        Args:
            scenario: Scenario name to filter by; empty lists all scenarios.
            limit: Maximum number of runs to return; None returns all.
        """
        if not self.exists():
            return []
        try:
            with closing(self._connect()) as conn:
                rows = self._select_runs(conn, scenario, limit)
        except sqlite3.Error as e:
            raise StoreError("list runs", e) from e
        return [Run(**self._row_to_fields(row)) for row in rows]

    def list_runs_with_details(
        self,
        scenario: str = "",
        limit: int | None = None,
    ) -> list[Run]:
        """Same as list_runs, with skills, regressions and verification filled in."""
        if not self.exists():
            return []
        runs: list[Run] = []
        try:
            with closing(self._connect()) as conn:
                for row in self._select_runs(conn, scenario, limit):
                    runs.append(Run(**self._row_to_fields(row), **self._details(conn, row["id"])))
        except sqlite3.Error as e:
            raise StoreError("list runs with details", e) from e
        return runs

    @staticmethod
    def _details(conn: sqlite3.Connection, run_id: int) -> dict[str, Any]:
        skills = {
            row["skill"]: bool(row["invoked"])
            for row in conn.execute(
                "SELECT skill, invoked FROM run_skills WHERE run_id = ? ORDER BY rowid",
                (run_id,),
            )
        }
        regressions = {
            row["name"]: RegressionResult(
                occurrences=row["occurrences"] or 0,
                max_allowed=row["max_allowed"] or 0,
                passed=bool(row["passed"]),
            )
            for row in conn.execute(
                """
                SELECT name, occurrences, max_allowed, passed FROM run_regressions
                WHERE run_id = ? ORDER BY rowid
                """,
                (run_id,),
            )
        }
        verification = {
            row["step"]: VerifyResult(passed=bool(row["passed"]), error=row["error"] or "")
            for row in conn.execute(
                "SELECT step, passed, error FROM run_verification WHERE run_id = ? ORDER BY rowid",
                (run_id,),
            )
        }
        return {"skills": skills, "regressions": regressions, "verification": verification}

    def list_scenarios(self) -> list[str]:
        """Distinct scenario names with at least one run, sorted."""
        if not self.exists():
            return []
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute("SELECT DISTINCT scenario FROM runs ORDER BY scenario")
                return [row["scenario"] for row in rows]
        except sqlite3.Error as e:
            raise StoreError("list scenarios", e) from e

    def count_runs(self, scenario: str = "") -> int:
        if not self.exists():
            return 0
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    "SELECT COUNT(*) FROM runs WHERE ? = '' OR scenario = ?",
                    (scenario, scenario),
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError("count runs", e) from e
        return row[0]

    # -- portable export ------------------------------------------------

    def export_json(self, path: Path | str) -> int:
        """Write every run with details to a JSON array.

        Returns:
            The number of runs written.
        """
        runs = self.list_runs_with_details()
        data = [run.model_dump(mode="json", exclude_none=True) for run in runs]
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write: write to .tmp then rename
        tmp = out.with_name(out.name + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(out)
        return len(runs)

    def import_json(self, path: Path | str) -> int:
        """Import runs from an exported JSON array.

        Runs whose (scenario, session_id, started_at) already exist are
        skipped, so importing the same document twice adds nothing.

        Returns:
            The number of runs inserted.

        Raises:
            StoreError: If the document is malformed or the transaction
                fails; nothing is imported in that case.
        """
        content = Path(path).read_text(encoding="utf-8")
        try:
            records = json.loads(content)
            if not isinstance(records, list):
                raise ValueError("expected a JSON array of runs")
            runs = [Run.model_validate(record) for record in records]
        except (ValueError, ValidationError) as e:
            raise StoreError("import runs", e) from e

        imported = 0
        try:
            with closing(self._connect_for_write()) as conn, conn:
                for run in runs:
                    exists = conn.execute(
                        """
                        SELECT 1 FROM runs
                        WHERE scenario = ? AND session_id = ? AND started_at = ?
                        """,
                        (run.scenario, run.session_id, _timestamp(run.started_at)),
                    ).fetchone()
                    if exists:
                        continue
                    self._insert(conn, run)
                    imported += 1
        except sqlite3.Error as e:
            raise StoreError("import runs", e) from e
        logger.info("Imported %d of %d runs from %s", imported, len(runs), path)
        return imported
