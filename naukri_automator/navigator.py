from typing import Callable, Optional

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import AuthenticationError, RenderTimeoutError, SectionNotFoundError
from .site import RECOMMENDED_JOBS_URL, Selectors, Timeouts, is_login_url


def _noop_log(message: str) -> None:
    return None


async def wait_for_postings(page: Page, selectors: Selectors, timeout_ms: int) -> None:
    try:
        await page.wait_for_selector(selectors.job_article, state="attached", timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        raise RenderTimeoutError(f"No job postings rendered within {timeout_ms} ms") from e


async def open_section(
    page: Page,
    label: str,
    *,
    selectors: Optional[Selectors] = None,
    timeouts: Optional[Timeouts] = None,
    reset: bool = False,
    log: Callable[[str], None] = _noop_log,
) -> None:
    """
    Switch the listing to the tab named `label` and block until postings render.

    With reset=True the listing page is reloaded first; the site reshuffles
    order and visibility after each submission, so a re-scan alone is not
    enough between batches.
    """
    selectors = selectors or Selectors()
    timeouts = timeouts or Timeouts()

    if reset:
        log("Resetting page state for next batch...")
        await page.goto(RECOMMENDED_JOBS_URL, wait_until="domcontentloaded", timeout=timeouts.navigation_ms)
        if is_login_url(page.url):
            raise AuthenticationError("Session expired while resetting the listing page.")
    else:
        log("Waiting for initial job listings to load...")
        await wait_for_postings(page, selectors, timeouts.initial_render_ms)

    log(f"{'Re-selecting' if reset else 'Selecting'} '{label}' tab...")
    tab = page.locator(f"text={label}").first
    try:
        visible = await tab.is_visible()
        if not visible:
            await tab.wait_for(state="visible", timeout=timeouts.render_ms)
    except PlaywrightTimeoutError as e:
        raise SectionNotFoundError(f"Section '{label}' not found on the page") from e
    await tab.click()

    # The click briefly empties the list before the new tab renders.
    await page.wait_for_timeout(timeouts.settle_ms)

    log("Waiting for jobs to render...")
    await wait_for_postings(page, selectors, timeouts.render_ms)
