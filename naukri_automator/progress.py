import json
import re
from datetime import datetime
from typing import Callable, Iterable, List, Optional


RESULT_TAG = "APPLIED_JOB_IDS:"
FATAL_PREFIX = "FATAL: "

_RESULT_RE = re.compile(r"^" + re.escape(RESULT_TAG) + r"(\[.*\])\s*$")


def _print_sink(line: str) -> None:
    print(line, flush=True)


class ProgressLog:
    """
    One-way narration channel. Each call emits exactly one line to the sink,
    immediately. Embedded newlines are flattened so consumers can split on
    '\\n' safely.

    If the sink raises (e.g. the HTTP client went away) the error propagates
    to the caller on purpose: the mission unwinds and releases the browser.
    """

    def __init__(self, sink: Optional[Callable[[str], None]] = None) -> None:
        self._sink = sink or _print_sink
        self.lines: List[str] = []

    def __call__(self, message: str) -> None:
        line = " ".join(str(message).splitlines()).rstrip()
        self.lines.append(line)
        self._sink(line)

    def fatal(self, message: str) -> None:
        self(f"{FATAL_PREFIX}{message}")

    def complete(self) -> None:
        self(f"[{datetime.now().strftime('%H:%M:%S')}] Automation Complete.")

    def result(self, job_ids: Iterable[str]) -> None:
        self(format_result_line(job_ids))


def format_result_line(job_ids: Iterable[str]) -> str:
    return RESULT_TAG + json.dumps([str(x) for x in job_ids], ensure_ascii=False)


def parse_result_line(line: str) -> Optional[List[str]]:
    m = _RESULT_RE.match((line or "").strip())
    if not m:
        return None
    try:
        data = json.loads(m.group(1))
    except ValueError:
        return None
    if not isinstance(data, list):
        return None
    return [str(x) for x in data]


def extract_result(stream_text: str) -> List[str]:
    """Recover the structured result from a raw narration stream (last tagged line wins)."""
    found: List[str] = []
    for line in (stream_text or "").splitlines():
        ids = parse_result_line(line)
        if ids is not None:
            found = ids
    return found
