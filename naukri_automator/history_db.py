import json
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional


SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS runs (
  run_id TEXT PRIMARY KEY,
  section TEXT NOT NULL,
  started_at TEXT NOT NULL,
  finished_at TEXT,
  end_reason TEXT,
  applied_count INTEGER NOT NULL DEFAULT 0,
  settings_json TEXT
);

CREATE INDEX IF NOT EXISTS idx_runs_started ON runs(started_at);

-- One row per job id ever applied to; the primary key keeps history deduplicated.
CREATE TABLE IF NOT EXISTS applied_jobs (
  job_id TEXT PRIMARY KEY,
  run_id TEXT NOT NULL,
  section TEXT NOT NULL,
  applied_at TEXT NOT NULL,
  FOREIGN KEY (run_id) REFERENCES runs(run_id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_applied_run ON applied_jobs(run_id);
CREATE INDEX IF NOT EXISTS idx_applied_time ON applied_jobs(applied_at);
"""


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)
    conn.commit()


def start_run(conn: sqlite3.Connection, *, section: str, settings: Optional[Dict[str, Any]] = None) -> str:
    run_id = uuid.uuid4().hex
    conn.execute(
        "INSERT INTO runs (run_id, section, started_at, settings_json) VALUES (?, ?, ?, ?)",
        (run_id, (section or "").strip(), _now_iso(), json.dumps(settings or {}, ensure_ascii=False, sort_keys=True)),
    )
    conn.commit()
    return run_id


def record_applied(conn: sqlite3.Connection, *, run_id: str, section: str, job_ids: Iterable[str]) -> int:
    """Insert new ids; ids already in history are ignored. Returns how many were new."""
    inserted = 0
    now = _now_iso()
    for jid in job_ids:
        jid = str(jid or "").strip()
        if not jid:
            continue
        cur = conn.execute(
            "INSERT OR IGNORE INTO applied_jobs (job_id, run_id, section, applied_at) VALUES (?, ?, ?, ?)",
            (jid, run_id, (section or "").strip(), now),
        )
        inserted += cur.rowcount or 0
    conn.commit()
    return inserted


def finish_run(conn: sqlite3.Connection, *, run_id: str, end_reason: str, applied_count: int) -> None:
    conn.execute(
        "UPDATE runs SET finished_at = ?, end_reason = ?, applied_count = ? WHERE run_id = ?",
        (_now_iso(), end_reason, int(applied_count), run_id),
    )
    conn.commit()


def load_prior_ids(conn: sqlite3.Connection) -> List[str]:
    rows = conn.execute("SELECT job_id FROM applied_jobs ORDER BY applied_at ASC, job_id ASC").fetchall()
    return [str(r["job_id"]) for r in rows]


def list_applied(conn: sqlite3.Connection, *, limit: int = 200) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT job_id, run_id, section, applied_at
        FROM applied_jobs
        ORDER BY applied_at DESC, job_id ASC
        LIMIT ?
        """,
        (max(1, int(limit)),),
    ).fetchall()
    return [dict(r) for r in rows]


def run_stats(conn: sqlite3.Connection) -> Dict[str, Any]:
    runs = conn.execute("SELECT COUNT(*) AS c FROM runs").fetchone()["c"]
    applied = conn.execute("SELECT COUNT(*) AS c FROM applied_jobs").fetchone()["c"]
    by_reason = conn.execute(
        """
        SELECT COALESCE(end_reason, 'unfinished') AS reason, COUNT(*) AS c
        FROM runs
        GROUP BY reason
        ORDER BY c DESC
        """
    ).fetchall()
    return {
        "runs": int(runs),
        "applied": int(applied),
        "end_reasons": {str(r["reason"]): int(r["c"]) for r in by_reason},
    }
