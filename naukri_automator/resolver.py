from typing import Callable

from .models import (
    DIRECTIVE_CONTINUE,
    DIRECTIVE_STOP,
    OUTCOME_CONFIRMED,
    OUTCOME_DEFERRED,
    OUTCOME_REJECTED,
    OUTCOME_TIMEOUT,
    OUTCOMES,
    AppliedSet,
    BatchReport,
)


def _noop_log(message: str) -> None:
    return None


def resolve(report: BatchReport, applied: AppliedSet, *, log: Callable[[str], None] = _noop_log) -> str:
    """
    Fold a batch outcome into `applied` and return the loop directive.

    confirmed/deferred: the submission happened, so the ids count as handled.
    rejected/timeout: nothing is recorded and the mission stops; the site
    state is unknown and resubmitting could apply twice.
    Earlier batches are never revisited.
    """
    if report.outcome not in OUTCOMES:
        raise ValueError(f"unknown outcome: {report.outcome!r}")

    if report.outcome == OUTCOME_CONFIRMED:
        applied.add_session(report.job_ids)
        log(f"SUCCESS: {report.message or 'Applied to ' + str(len(report.job_ids)) + ' jobs.'}")
        return DIRECTIVE_CONTINUE

    if report.outcome == OUTCOME_DEFERRED:
        applied.add_session(report.job_ids)
        log("SKIPPED: Sidebar detected. A job in this batch may need a manual follow-up.")
        return DIRECTIVE_CONTINUE

    if report.outcome == OUTCOME_REJECTED:
        detail = f" ({report.message})" if report.message else ""
        log(f"WARN: Site reported an error for this batch{detail}. Aborting to prevent duplicate submissions.")
        return DIRECTIVE_STOP

    if report.outcome == OUTCOME_TIMEOUT:
        log("WARN: Timed out waiting for application confirmation. Aborting to prevent errors.")
    return DIRECTIVE_STOP
