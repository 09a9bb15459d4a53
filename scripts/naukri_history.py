import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from naukri_automator.config import DEFAULT_CONFIG_PATH, cfg_get, load_config_or_empty, resolve_path  # noqa: E402
from naukri_automator.history_db import connect as db_connect  # noqa: E402
from naukri_automator.history_db import finish_run, init_db, list_applied, load_prior_ids, record_applied, run_stats, start_run  # noqa: E402
from naukri_automator.progress import extract_result  # noqa: E402


def main() -> int:
    ap = argparse.ArgumentParser(description="Inspect or update the local applied-jobs history")
    ap.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Config YAML")
    ap.add_argument("--db", default="", help="Override history DB path")
    ap.add_argument("--limit", type=int, default=50, help="Rows to show")
    ap.add_argument("--export-ids", action="store_true", help="Print every stored job id, one per line")
    ap.add_argument(
        "--import-stream",
        default="",
        help="Saved narration stream (text file); its APPLIED_JOB_IDS line is merged into history",
    )
    ap.add_argument("--section", default="", help="Section label recorded with --import-stream")
    args = ap.parse_args()

    cfg = load_config_or_empty(resolve_path(ROOT, args.config))
    db_path = resolve_path(ROOT, str(cfg_get(cfg, "history.db_path", "data/out/history.sqlite")))
    if args.db.strip():
        db_path = resolve_path(ROOT, args.db.strip())

    conn = db_connect(db_path)
    try:
        init_db(conn)

        if args.import_stream.strip():
            p = resolve_path(ROOT, args.import_stream.strip())
            if not p.exists():
                print(f"[naukri-history] stream file not found: {p}")
                return 1
            ids = extract_result(p.read_text(encoding="utf-8", errors="replace"))
            run_id = start_run(conn, section=args.section, settings={"imported_from": str(p)})
            added = record_applied(conn, run_id=run_id, section=args.section, job_ids=ids)
            finish_run(conn, run_id=run_id, end_reason="imported", applied_count=added)
            print(f"[naukri-history] imported {added} new ids ({len(ids)} in stream)")
            return 0

        if args.export_ids:
            for jid in load_prior_ids(conn):
                print(jid)
            return 0

        print(json.dumps(run_stats(conn), ensure_ascii=False, indent=2))
        for row in list_applied(conn, limit=args.limit):
            print(f"{row['applied_at']}  {row['job_id']}  {row['section']}")
        return 0
    finally:
        conn.close()


if __name__ == "__main__":
    raise SystemExit(main())
