import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import SubmitControlMissingError
from .models import (
    OUTCOME_CONFIRMED,
    OUTCOME_DEFERRED,
    OUTCOME_REJECTED,
    OUTCOME_TIMEOUT,
    BatchReport,
    JobPosting,
)
from .pacing import FixedDelay
from .site import Selectors, Timeouts


def _noop_log(message: str) -> None:
    return None


def _checkbox_for(page: Page, selectors: Selectors, job_id: str) -> Locator:
    return page.locator(f'{selectors.job_article}[{selectors.job_id_attr}="{job_id}"] {selectors.job_checkbox}').first


async def select_batch(page: Page, batch: Sequence[JobPosting], pacing: Any, *, selectors: Selectors) -> List[str]:
    selected: List[str] = []
    for posting in batch:
        await _checkbox_for(page, selectors, posting.job_id).click()
        selected.append(posting.job_id)
        await page.wait_for_timeout(pacing.next_ms())
    return selected


async def race_outcome(
    page: Page,
    *,
    selectors: Optional[Selectors] = None,
    timeout_ms: int = 20_000,
) -> Tuple[str, Optional[Locator]]:
    """
    Wait for whichever result signal shows up first.

    All signals are polled concurrently under one shared window; a signal
    whose wait times out is dropped from the race. Any other failure is
    re-raised: a dead page is not a timeout. Returns (outcome, locator of
    the winning element) or (timeout, None).
    """
    selectors = selectors or Selectors()
    signals: List[Tuple[str, Locator]] = [
        (OUTCOME_CONFIRMED, page.locator(selectors.success_toast).first),
        (OUTCOME_DEFERRED, page.locator(selectors.sidebar_form).first),
        (OUTCOME_REJECTED, page.locator(selectors.error_toast).first),
    ]
    order = {name: i for i, (name, _loc) in enumerate(signals)}
    tasks: Dict[asyncio.Task, Tuple[str, Locator]] = {
        asyncio.ensure_future(loc.wait_for(state="visible", timeout=timeout_ms)): (name, loc) for name, loc in signals
    }

    loop = asyncio.get_running_loop()
    deadline = loop.time() + (timeout_ms / 1000.0)
    pending = set(tasks)
    try:
        while pending:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            done, pending = await asyncio.wait(pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
            if not done:
                break
            for t in done:
                exc = None if t.cancelled() else t.exception()
                if exc is not None and not isinstance(exc, PlaywrightTimeoutError):
                    raise exc
            winners = [t for t in done if not t.cancelled() and t.exception() is None]
            if winners:
                winners.sort(key=lambda t: order[tasks[t][0]])
                return tasks[winners[0]]
        return (OUTCOME_TIMEOUT, None)
    finally:
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


async def submit_batch(
    page: Page,
    batch: Sequence[JobPosting],
    *,
    pacing: Any = None,
    selectors: Optional[Selectors] = None,
    timeouts: Optional[Timeouts] = None,
    log: Callable[[str], None] = _noop_log,
) -> BatchReport:
    """
    Select every posting in `batch`, press the page-level Apply button and
    classify what the site shows next.

    Raises SubmitControlMissingError when Apply never appears; nothing has
    been submitted in that case.
    """
    selectors = selectors or Selectors()
    timeouts = timeouts or Timeouts()
    pacing = pacing or FixedDelay()

    job_ids = await select_batch(page, batch, pacing, selectors=selectors)

    log(f'Selected {len(job_ids)} jobs. Clicking the main "Apply" button...')
    apply_button = page.locator(selectors.apply_button).first
    try:
        await apply_button.wait_for(state="visible", timeout=timeouts.submit_wait_ms)
    except PlaywrightTimeoutError as e:
        raise SubmitControlMissingError(f'"Apply" button did not appear within {timeouts.submit_wait_ms} ms') from e
    await apply_button.click()

    log("Waiting for application result...")
    outcome, winner = await race_outcome(page, selectors=selectors, timeout_ms=timeouts.outcome_ms)

    message = ""
    if winner is not None and outcome in (OUTCOME_CONFIRMED, OUTCOME_REJECTED):
        try:
            message = (await winner.inner_text()).strip()
        except Exception:
            message = ""
    if outcome == OUTCOME_DEFERRED:
        await close_followup_panel(page, selectors=selectors)
    return BatchReport(outcome=outcome, job_ids=job_ids, message=message)


async def close_followup_panel(page: Page, *, selectors: Selectors) -> bool:
    try:
        icon = page.locator(selectors.sidebar_close).first
        if await icon.is_visible():
            await icon.click()
            return True
    except Exception:
        return False
    return False
