import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from naukri_automator.browser import provider_from_config  # noqa: E402
from naukri_automator.config import DEFAULT_CONFIG_PATH, load_config_or_empty, load_env_file, resolve_path  # noqa: E402
from naukri_automator.errors import EXIT_ERROR, EXIT_OK, EXIT_TIMEOUT, exit_code_for  # noqa: E402
from naukri_automator.sections import get_sections  # noqa: E402
from naukri_automator.site import Timeouts  # noqa: E402


def _log(message: str) -> None:
    print(f"[naukri-sections] {message}", flush=True)


async def run(args: argparse.Namespace) -> int:
    load_env_file(ROOT / ".env")
    cfg = load_config_or_empty(resolve_path(ROOT, args.config))

    cookie = (args.cookie or os.getenv("NAUKRI_COOKIE") or "").strip()
    if not cookie:
        _log("missing session cookie (--cookie or NAUKRI_COOKIE)")
        return EXIT_ERROR

    timeouts = Timeouts.from_config(cfg)
    try:
        provider = provider_from_config(cfg, timeouts=timeouts, root=ROOT)
        sections = await get_sections(provider, cookie, timeouts=timeouts, log=_log)
    except Exception as e:
        _log(f"error: {type(e).__name__}: {e}")
        return exit_code_for(e)

    if args.json:
        print(json.dumps([s.as_row() for s in sections], ensure_ascii=False, indent=2))
    else:
        for s in sections:
            print(f"{s.name}\t{s.count}")
    return EXIT_OK


def main() -> int:
    ap = argparse.ArgumentParser(description="List Naukri Recommended Jobs sections with posting counts")
    ap.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Config YAML")
    ap.add_argument("--cookie", default="", help="nauk_at session cookie (default: NAUKRI_COOKIE env)")
    ap.add_argument("--json", action="store_true", help="Print JSON instead of tab-separated lines")
    ap.add_argument("--timeout-seconds", type=int, default=180, help="Overall timeout")
    args = ap.parse_args()

    try:
        return asyncio.run(asyncio.wait_for(run(args), timeout=args.timeout_seconds))
    except asyncio.TimeoutError:
        _log("hard timeout hit; exiting.")
        return EXIT_TIMEOUT


if __name__ == "__main__":
    raise SystemExit(main())
