from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set


OUTCOME_CONFIRMED = "confirmed"
OUTCOME_DEFERRED = "deferred"
OUTCOME_REJECTED = "rejected"
OUTCOME_TIMEOUT = "timeout"
OUTCOMES = (OUTCOME_CONFIRMED, OUTCOME_DEFERRED, OUTCOME_REJECTED, OUTCOME_TIMEOUT)

DIRECTIVE_CONTINUE = "continue"
DIRECTIVE_STOP = "stop"

END_NO_CANDIDATES = "no_candidates"
END_SUBMIT_MISSING = "submit_missing"
END_REJECTED = "rejected"
END_TIMEOUT = "timeout"
END_RENDER_TIMEOUT = "render_timeout"

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 10
DEFAULT_BATCH_SIZE = 5


@dataclass
class JobPosting:
    job_id: str
    has_checkbox: bool = True


@dataclass(frozen=True)
class RunSettings:
    batch_size: int = DEFAULT_BATCH_SIZE
    stealth_mode: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int):
            raise ValueError(f"batch_size must be an integer, got {self.batch_size!r}")
        if not (MIN_BATCH_SIZE <= self.batch_size <= MAX_BATCH_SIZE):
            raise ValueError(f"batch_size must be within {MIN_BATCH_SIZE}..{MAX_BATCH_SIZE}, got {self.batch_size}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RunSettings":
        """
        Accepts both the dashboard's wire names (jobsPerMission, stealthMode)
        and the snake_case names used in config.yaml.
        """
        data = data or {}
        size = data.get("batch_size", data.get("jobsPerMission", DEFAULT_BATCH_SIZE))
        stealth = data.get("stealth_mode", data.get("stealthMode", True))
        try:
            size = int(size)
        except (TypeError, ValueError):
            raise ValueError(f"batch_size must be an integer, got {size!r}")
        return cls(batch_size=size, stealth_mode=bool(stealth))


class AppliedSet:
    """
    Job ids already handled, in three parts:
      - prior_ids: history supplied by the caller; never mutated
      - session_ids: applied during this run, in order
      - skipped_ids: postings without a checkbox; handled, but not applied
    """

    def __init__(self, prior_ids: Iterable[str] = ()) -> None:
        self.prior_ids: frozenset = frozenset(str(x) for x in prior_ids if str(x or "").strip())
        self.session_ids: List[str] = []
        self.skipped_ids: Set[str] = set()
        self._session_lookup: Set[str] = set()

    def __contains__(self, job_id: object) -> bool:
        return job_id in self.prior_ids or job_id in self._session_lookup or job_id in self.skipped_ids

    def __len__(self) -> int:
        return len(self.prior_ids) + len(self.session_ids) + len(self.skipped_ids)

    def add_session(self, job_ids: Iterable[str]) -> List[str]:
        """Record applied ids; returns the ones that were actually new."""
        added: List[str] = []
        for jid in job_ids:
            if jid in self:
                continue
            self.session_ids.append(jid)
            self._session_lookup.add(jid)
            added.append(jid)
        return added

    def absorb(self, job_id: str) -> bool:
        if job_id in self:
            return False
        self.skipped_ids.add(job_id)
        return True


@dataclass
class BatchReport:
    outcome: str
    job_ids: List[str] = field(default_factory=list)
    message: str = ""


@dataclass
class MissionRequest:
    credential: str
    section_label: str
    prior_ids: List[str] = field(default_factory=list)
    settings: RunSettings = field(default_factory=RunSettings)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "MissionRequest":
        """Build from the start-automation JSON body: {cookie, section, appliedJobIds, settings}."""
        cookie = str(payload.get("cookie") or payload.get("credential") or "").strip()
        section = str(payload.get("section") or payload.get("section_label") or "").strip()
        if not cookie or not section:
            raise ValueError("Missing cookie or section")
        prior = payload.get("appliedJobIds", payload.get("prior_ids")) or []
        if not isinstance(prior, list):
            raise ValueError("appliedJobIds must be a list")
        return cls(
            credential=cookie,
            section_label=section,
            prior_ids=[str(x) for x in prior if str(x or "").strip()],
            settings=RunSettings.from_dict(payload.get("settings")),
        )


@dataclass
class MissionResult:
    session_ids: List[str] = field(default_factory=list)
    cycles: int = 0
    end_reason: str = ""
    last_outcome: str = ""

    @property
    def applied_count(self) -> int:
        return len(self.session_ids)


@dataclass
class Section:
    name: str
    count: int

    def as_row(self) -> Dict[str, Any]:
        return {"name": self.name, "count": self.count}
