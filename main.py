import argparse
import asyncio
import os
from pathlib import Path
from typing import List, Optional

from naukri_automator.browser import provider_from_config
from naukri_automator.config import DEFAULT_CONFIG_PATH, cfg_get, load_config_or_empty, load_env_file, resolve_path
from naukri_automator.errors import EXIT_ERROR, EXIT_INTERRUPTED, EXIT_OK, EXIT_TIMEOUT, exit_code_for
from naukri_automator.history_db import connect as db_connect
from naukri_automator.history_db import finish_run, init_db, load_prior_ids, record_applied, start_run
from naukri_automator.mission import MissionLoop
from naukri_automator.models import MissionRequest, RunSettings
from naukri_automator.progress import ProgressLog
from naukri_automator.site import Timeouts

ROOT = Path(__file__).resolve().parent


def _record_partial(conn, run_id: str, section: str, loop: Optional[MissionLoop], end_reason: str) -> None:
    if conn is None or not run_id or loop is None:
        return
    ids = list(loop.applied.session_ids)
    record_applied(conn, run_id=run_id, section=section, job_ids=ids)
    finish_run(conn, run_id=run_id, end_reason=end_reason, applied_count=len(ids))
    print(f"[naukri-apply] recorded {len(ids)} applied ids ({end_reason})")


def _read_ids_file(path: Path) -> List[str]:
    if not path.exists():
        print(f"[naukri-apply] prior ids file not found: {path}")
        return []
    out: List[str] = []
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        jid = line.strip()
        if jid and not jid.startswith("#"):
            out.append(jid)
    return out


async def run(args: argparse.Namespace) -> int:
    load_env_file(ROOT / ".env")

    cfg = load_config_or_empty(resolve_path(ROOT, args.config))

    cookie = (args.cookie or os.getenv("NAUKRI_COOKIE") or "").strip()
    if not cookie:
        print("[naukri-apply] missing session cookie (--cookie or NAUKRI_COOKIE)")
        return EXIT_ERROR

    try:
        settings = RunSettings(
            batch_size=args.batch_size if args.batch_size else int(cfg_get(cfg, "run.batch_size", 5)),
            stealth_mode=bool(cfg_get(cfg, "run.stealth_mode", True)) and not args.no_stealth,
        )
    except ValueError as e:
        print(f"[naukri-apply] {e}")
        return EXIT_ERROR

    prior_ids: List[str] = []
    if args.prior_ids_file.strip():
        prior_ids.extend(_read_ids_file(resolve_path(ROOT, args.prior_ids_file.strip())))

    conn = None
    run_id = ""
    if not args.no_history:
        db_path = resolve_path(ROOT, str(cfg_get(cfg, "history.db_path", "data/out/history.sqlite")))
        if args.db.strip():
            db_path = resolve_path(ROOT, args.db.strip())
        conn = db_connect(db_path)
        init_db(conn)
        prior_ids.extend(load_prior_ids(conn))
        print(f"[naukri-apply] history db={db_path} prior={len(prior_ids)}")

    request = MissionRequest(
        credential=cookie,
        section_label=args.section,
        prior_ids=list(dict.fromkeys(prior_ids)),
        settings=settings,
    )
    timeouts = Timeouts.from_config(cfg)
    loop = None
    try:
        provider = provider_from_config(cfg, timeouts=timeouts, root=ROOT)
        loop = MissionLoop(request, provider=provider, log=ProgressLog(), timeouts=timeouts, cfg=cfg, root=ROOT)
        if conn is not None:
            run_id = start_run(
                conn,
                section=request.section_label,
                settings={"batch_size": settings.batch_size, "stealth_mode": settings.stealth_mode},
            )
        result = await loop.run()
        print(f"[naukri-apply] done: applied={result.applied_count} batches={result.cycles} end={result.end_reason}")
        if conn is not None:
            record_applied(conn, run_id=run_id, section=request.section_label, job_ids=result.session_ids)
            finish_run(conn, run_id=run_id, end_reason=result.end_reason, applied_count=result.applied_count)
        return EXIT_OK
    except asyncio.CancelledError:
        # Hard timeout or Ctrl-C: batches already confirmed must still reach history.
        _record_partial(conn, run_id, request.section_label, loop, "error:cancelled")
        raise
    except Exception as e:
        print(f"[naukri-apply] error: {type(e).__name__}: {e}")
        _record_partial(conn, run_id, request.section_label, loop, f"error:{type(e).__name__}")
        return exit_code_for(e)
    finally:
        if conn is not None:
            conn.close()


def main() -> int:
    ap = argparse.ArgumentParser(description="Naukri batch apply (Playwright)")
    ap.add_argument("--config", default=DEFAULT_CONFIG_PATH, help=f"Config YAML (default: {DEFAULT_CONFIG_PATH})")
    ap.add_argument("--section", required=True, help="Tab label to work through, e.g. 'Preferences'")
    ap.add_argument("--cookie", default="", help="nauk_at session cookie (default: NAUKRI_COOKIE env)")
    ap.add_argument("--batch-size", type=int, default=0, help="Jobs per batch, 1..10 (default: run.batch_size from config)")
    ap.add_argument("--no-stealth", action="store_true", help="Fixed short delay between selections instead of jitter")
    ap.add_argument("--prior-ids-file", default="", help="Extra already-applied job ids, one per line")
    ap.add_argument("--db", default="", help="Override history DB path")
    ap.add_argument("--no-history", action="store_true", help="Do not read or write the local history DB")
    ap.add_argument("--timeout-seconds", type=int, default=3600, help="Overall timeout")
    args = ap.parse_args()

    try:
        return asyncio.run(asyncio.wait_for(run(args), timeout=args.timeout_seconds))
    except asyncio.TimeoutError:
        print("[naukri-apply] hard timeout hit; exiting.")
        return EXIT_TIMEOUT
    except KeyboardInterrupt:
        print("[naukri-apply] interrupted.")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    raise SystemExit(main())
