from typing import Callable, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .browser import BrowserProvider, dump_debug
from .errors import SectionNotFoundError
from .models import Section
from .site import SECTION_LABEL_RE, Selectors, Timeouts


def _noop_log(message: str) -> None:
    return None


def parse_section_label(text: str) -> Optional[Section]:
    """'Preferences (12)' -> Section('Preferences', 12); anything else -> None."""
    m = SECTION_LABEL_RE.match(" ".join((text or "").split()))
    if not m:
        return None
    name = m.group(1).strip()
    if not name:
        return None
    return Section(name=name, count=int(m.group(2)))


async def get_sections(
    provider: BrowserProvider,
    credential: str,
    *,
    selectors: Optional[Selectors] = None,
    timeouts: Optional[Timeouts] = None,
    log: Callable[[str], None] = _noop_log,
) -> List[Section]:
    """List the tabs of the Recommended Jobs page with their posting counts. Never submits anything."""
    selectors = selectors or Selectors()
    timeouts = timeouts or provider.timeouts

    async with provider.acquire_page(credential, log=log) as page:
        try:
            await page.wait_for_selector(selectors.tab_list, timeout=timeouts.tab_list_ms)
        except PlaywrightTimeoutError as e:
            if provider.root is not None:
                await dump_debug(provider.root, page, "get_sections")
            raise SectionNotFoundError(
                "Failed to find job sections container. Check for pop-ups or unexpected pages."
            ) from e

        sections: List[Section] = []
        for tab in await page.locator(selectors.tab_item).all():
            section = parse_section_label(await tab.inner_text())
            if section is not None:
                sections.append(section)

    if not sections:
        raise SectionNotFoundError("Could not find or parse any job sections on the page. The layout may have changed.")
    return sections
