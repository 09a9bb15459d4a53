import asyncio
import json
from http.server import BaseHTTPRequestHandler
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from .browser import BrowserProvider
from .errors import AuthenticationError
from .history_db import connect as db_connect
from .history_db import finish_run, init_db, list_applied, load_prior_ids, record_applied, run_stats, start_run
from .mission import MissionLoop
from .models import MissionRequest, MissionResult
from .progress import ProgressLog
from .sections import get_sections


def _int(v: Optional[str], default: int) -> int:
    try:
        return int(v) if v is not None else default
    except Exception:
        return default


def run_automation(
    payload: Dict[str, Any],
    *,
    provider: BrowserProvider,
    write_line: Callable[[str], None],
    cfg: Optional[Dict[str, Any]] = None,
    root: Optional[Path] = None,
    db_path: Optional[Path] = None,
) -> Optional[MissionResult]:
    """
    Body of POST /api/start-automation once the payload is known to be valid.

    Streams narration through `write_line`; errors are reported in-stream
    (the engine emits the FATAL line) rather than as an HTTP status, since
    headers have already been sent.
    """
    request = MissionRequest.from_payload(payload)
    log = ProgressLog(write_line)

    conn = None
    run_id = ""
    if db_path is not None:
        conn = db_connect(db_path)
        init_db(conn)
        stored = load_prior_ids(conn)
        if stored:
            merged = list(dict.fromkeys(request.prior_ids + stored))
            request.prior_ids = merged
        run_id = start_run(
            conn,
            section=request.section_label,
            settings={"batch_size": request.settings.batch_size, "stealth_mode": request.settings.stealth_mode},
        )

    result: Optional[MissionResult] = None
    try:
        loop = MissionLoop(request, provider=provider, log=log, cfg=cfg, root=root)
        try:
            result = asyncio.run(loop.run())
        except Exception as e:
            print(f"[naukri-api] automation error: {type(e).__name__}: {e}")
            partial = list(loop.applied.session_ids)
            if conn is not None:
                record_applied(conn, run_id=run_id, section=request.section_label, job_ids=partial)
                finish_run(conn, run_id=run_id, end_reason=f"error:{type(e).__name__}", applied_count=len(partial))
            # Callers without a server-side DB only learn about earlier batches from the stream.
            if partial:
                log.result(partial)
            return None

        if conn is not None:
            record_applied(conn, run_id=run_id, section=request.section_label, job_ids=result.session_ids)
            finish_run(conn, run_id=run_id, end_reason=result.end_reason, applied_count=result.applied_count)

        log.complete()
        if result.session_ids:
            log.result(result.session_ids)
        return result
    finally:
        if conn is not None:
            conn.close()


def fetch_sections(
    payload: Dict[str, Any],
    *,
    provider: BrowserProvider,
) -> Tuple[int, Any]:
    cookie = str((payload or {}).get("cookie") or "").strip()
    if not cookie:
        return (400, {"error": "Missing cookie"})
    try:
        sections = asyncio.run(get_sections(provider, cookie))
    except AuthenticationError as e:
        return (401, {"error": str(e)})
    except Exception as e:
        print(f"[naukri-api] failed to get sections: {type(e).__name__}: {e}")
        return (500, {"error": "An internal server error occurred", "details": str(e)})
    return (200, [s.as_row() for s in sections])


class ApiHandler(BaseHTTPRequestHandler):
    def __init__(
        self,
        *args: Any,
        provider: BrowserProvider,
        cfg: Dict[str, Any],
        root: Path,
        db_path: Optional[Path],
        **kwargs: Any,
    ) -> None:
        self._provider = provider
        self._cfg = cfg
        self._root = root
        self._db_path = db_path
        super().__init__(*args, **kwargs)

    def _send_json(self, obj: Any, status: int = 200) -> None:
        data = json.dumps(obj, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _read_json(self) -> Dict[str, Any]:
        try:
            length = int(self.headers.get("Content-Length", "0") or "0")
        except Exception:
            length = 0
        if length <= 0:
            return {}
        raw = self.rfile.read(length).decode("utf-8", errors="replace")
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        return data

    def _write_line(self, line: str) -> None:
        self.wfile.write((line + "\n").encode("utf-8", errors="replace"))
        self.wfile.flush()

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        path = parsed.path.rstrip("/") or "/"
        qs = parse_qs(parsed.query)

        if path == "/api/health":
            self._send_json({"ok": True, "provider": self._provider.name, "db": str(self._db_path or "")})
            return
        if path == "/api/history":
            self._handle_history(qs)
            return
        self._send_json({"error": "Not found"}, status=404)

    def do_POST(self) -> None:  # noqa: N802
        path = urlparse(self.path).path.rstrip("/")
        try:
            payload = self._read_json()
        except ValueError as e:
            self._send_json({"error": f"Invalid JSON body: {e}"}, status=400)
            return

        if path == "/api/start-automation":
            self._handle_start(payload)
            return
        if path == "/api/get-sections":
            status, body = fetch_sections(payload, provider=self._provider)
            self._send_json(body, status=status)
            return
        self._send_json({"error": "Unsupported POST route"}, status=404)

    def _handle_start(self, payload: Dict[str, Any]) -> None:
        try:
            MissionRequest.from_payload(payload)
        except ValueError as e:
            self._send_json({"error": str(e)}, status=400)
            return

        self.send_response(200)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Connection", "close")
        self.end_headers()
        try:
            run_automation(
                payload,
                provider=self._provider,
                write_line=self._write_line,
                cfg=self._cfg,
                root=self._root,
                db_path=self._db_path,
            )
        except (BrokenPipeError, ConnectionResetError):
            print("[naukri-api] client disconnected; mission aborted.")

    def _handle_history(self, qs: Dict[str, List[str]]) -> None:
        if self._db_path is None or not self._db_path.exists():
            self._send_json({"applied": [], "stats": {"runs": 0, "applied": 0, "end_reasons": {}}})
            return
        limit = max(1, min(1000, _int(qs.get("limit", [None])[0], 200)))
        conn = db_connect(self._db_path)
        try:
            init_db(conn)
            self._send_json({"applied": list_applied(conn, limit=limit), "stats": run_stats(conn)})
        finally:
            conn.close()
