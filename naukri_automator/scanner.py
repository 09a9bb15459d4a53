from typing import Callable, Iterable, List, Optional, Set

from playwright.async_api import Page

from .models import AppliedSet, JobPosting
from .site import Selectors, Timeouts


def _noop_log(message: str) -> None:
    return None


async def read_postings(
    page: Page,
    *,
    selectors: Optional[Selectors] = None,
    timeouts: Optional[Timeouts] = None,
) -> List[JobPosting]:
    """Rendered postings in page order; articles without a job id are ignored."""
    selectors = selectors or Selectors()
    timeouts = timeouts or Timeouts()
    out: List[JobPosting] = []
    for article in await page.locator(selectors.job_article).all():
        job_id = (await article.get_attribute(selectors.job_id_attr) or "").strip()
        if not job_id:
            continue
        checkbox = article.locator(selectors.job_checkbox)
        try:
            has_checkbox = await checkbox.first.is_visible(timeout=timeouts.checkbox_visible_ms)
        except Exception:
            has_checkbox = False
        out.append(JobPosting(job_id=job_id, has_checkbox=bool(has_checkbox)))
    return out


def partition_postings(
    postings: Iterable[JobPosting],
    applied: AppliedSet,
    *,
    log: Callable[[str], None] = _noop_log,
) -> List[JobPosting]:
    """
    Candidates = not yet handled and selectable, page order preserved.

    A posting without a checkbox can never be applied to, so it is absorbed
    into `applied` right away and never shows up in a later scan.
    """
    candidates: List[JobPosting] = []
    seen: Set[str] = set()
    for posting in postings:
        if posting.job_id in applied or posting.job_id in seen:
            continue
        seen.add(posting.job_id)
        if not posting.has_checkbox:
            applied.absorb(posting.job_id)
            log(f"INFO: Job {posting.job_id} has no checkbox, marking as processed.")
            continue
        candidates.append(posting)
    return candidates


async def scan_candidates(
    page: Page,
    applied: AppliedSet,
    *,
    selectors: Optional[Selectors] = None,
    timeouts: Optional[Timeouts] = None,
    log: Callable[[str], None] = _noop_log,
) -> List[JobPosting]:
    log("Scanning for new jobs to apply to...")
    postings = await read_postings(page, selectors=selectors, timeouts=timeouts)
    return partition_postings(postings, applied, log=log)
