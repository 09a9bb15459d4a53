import argparse
import sys
from functools import partial
from http.server import ThreadingHTTPServer
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from naukri_automator.api import ApiHandler  # noqa: E402
from naukri_automator.browser import provider_from_config  # noqa: E402
from naukri_automator.config import DEFAULT_CONFIG_PATH, cfg_get, load_config_or_empty, load_env_file, resolve_path  # noqa: E402
from naukri_automator.site import Timeouts  # noqa: E402


def main() -> int:
    ap = argparse.ArgumentParser(description="HTTP API for Naukri batch apply (streamed narration)")
    ap.add_argument("--config", default=DEFAULT_CONFIG_PATH, help=f"Config YAML (default: {DEFAULT_CONFIG_PATH})")
    ap.add_argument("--db", default="", help="Override history DB path (default: history.db_path from config)")
    ap.add_argument("--no-history", action="store_true", help="Do not record runs in the history DB")
    ap.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    ap.add_argument("--port", type=int, default=8788, help="Bind port (default: 8788)")
    args = ap.parse_args()

    load_env_file(ROOT / ".env")
    cfg = load_config_or_empty(resolve_path(ROOT, args.config))

    db_path = None
    if not args.no_history:
        db_path = resolve_path(ROOT, str(cfg_get(cfg, "history.db_path", "data/out/history.sqlite")))
        if args.db.strip():
            db_path = resolve_path(ROOT, args.db.strip())

    timeouts = Timeouts.from_config(cfg)
    provider = provider_from_config(cfg, timeouts=timeouts, root=ROOT)

    handler = partial(ApiHandler, provider=provider, cfg=cfg, root=ROOT, db_path=db_path)
    httpd = ThreadingHTTPServer((args.host, args.port), handler)
    httpd.daemon_threads = True

    print(f"[naukri-api] provider={provider.name} db={db_path or '-'}")
    print(f"[naukri-api] serving http://{args.host}:{args.port}/")
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        print("[naukri-api] stopping...")
    finally:
        httpd.server_close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
