# tests/conftest.py
import asyncio
import re
from typing import Any, Dict, List, Optional

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from naukri_automator import browser as browser_mod
from naukri_automator.browser import BrowserProvider
from naukri_automator.pacing import FixedDelay
from naukri_automator.site import RECOMMENDED_JOBS_URL, Selectors, Timeouts

SEL = Selectors()
LOGIN_URL = "https://www.naukri.com/nlogin/login?URL=https://www.naukri.com/mnjuser/recommendedjobs"

_CHECKBOX_RE = re.compile(r'^' + re.escape(SEL.job_article) + r'\[' + re.escape(SEL.job_id_attr) + r'="([^"]+)"\] ' + re.escape(SEL.job_checkbox) + r'$')


# ---------------------------------------------------------------------
# A scripted stand-in for the Naukri listing page
# ---------------------------------------------------------------------
class FakeSite:
    """
    postings: [{"id": "J1", "checkbox": True}, ...] in page order.
    outcomes: one entry per Apply click, consumed in order. Each entry maps
      signal name ("confirmed" | "deferred" | "rejected") -> delay in seconds;
      an empty dict means no signal ever shows up.
    """

    def __init__(
        self,
        postings: List[Dict[str, Any]],
        *,
        tabs: Optional[List[str]] = None,
        outcomes: Optional[List[Dict[str, float]]] = None,
        default_outcome: Optional[Dict[str, float]] = None,
        login_redirect: bool = False,
        apply_button: bool = True,
        hide_applied: bool = False,
        render_after_reset: bool = True,
    ) -> None:
        self.postings = postings
        self.tabs = tabs if tabs is not None else ["Recommended (12)", "Preferences (12)", "Applies (3)"]
        self.outcomes = list(outcomes or [])
        self.default_outcome = default_outcome if default_outcome is not None else {"confirmed": 0.0}
        self.login_redirect = login_redirect
        self.apply_button = apply_button
        self.hide_applied = hide_applied
        self.render_after_reset = render_after_reset

        self.cookies: List[Dict[str, Any]] = []
        self.submitted_batches: List[List[str]] = []
        self.applied_on_site: List[str] = []
        self.gotos = 0
        self.tab_clicks: List[str] = []
        self.contexts_closed = 0
        self.browsers_closed = 0
        self.pw_stopped = 0

    def visible_postings(self) -> List[Dict[str, Any]]:
        if not self.hide_applied:
            return list(self.postings)
        return [p for p in self.postings if p["id"] not in self.applied_on_site]

    def next_outcome(self) -> Dict[str, float]:
        if self.outcomes:
            return self.outcomes.pop(0)
        return dict(self.default_outcome)


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str, *, job: Optional[Dict[str, Any]] = None, text: str = "") -> None:
        self.page = page
        self.selector = selector
        self.job = job
        self.text = text

    @property
    def first(self) -> "FakeLocator":
        return self

    async def all(self) -> List["FakeLocator"]:
        if self.selector == SEL.job_article:
            if not self.page.rendered:
                return []
            return [FakeLocator(self.page, "article", job=j) for j in self.page.site.visible_postings()]
        if self.selector == SEL.tab_item:
            return [FakeLocator(self.page, "tab", text=t) for t in self.page.site.tabs]
        return []

    def locator(self, selector: str) -> "FakeLocator":
        if self.job is not None and selector == SEL.job_checkbox:
            return FakeLocator(self.page, "checkbox", job=self.job)
        return FakeLocator(self.page, f"{self.selector} {selector}")

    async def get_attribute(self, name: str) -> Optional[str]:
        if self.job is not None and name == SEL.job_id_attr:
            return self.job.get("id")
        return None

    async def inner_text(self, timeout: Optional[int] = None) -> str:
        if self.text:
            return self.text
        if self.selector == SEL.success_toast:
            return "Applied to jobs successfully"
        if self.selector == SEL.error_toast:
            return "Something went wrong"
        return ""

    def _signal(self) -> Optional[str]:
        return {
            SEL.success_toast: "confirmed",
            SEL.sidebar_form: "deferred",
            SEL.error_toast: "rejected",
        }.get(self.selector)

    async def is_visible(self, timeout: Optional[int] = None) -> bool:
        if self.selector == "checkbox":
            return bool(self.job.get("checkbox", True))
        if self.selector.startswith("text="):
            label = self.selector[len("text="):]
            return any(t.startswith(label) for t in self.page.site.tabs)
        if self.selector == SEL.apply_button:
            return self.page.site.apply_button and bool(self.page.selected)
        if self.selector == SEL.sidebar_close:
            return self.page.shown_signal == "deferred"
        signal = self._signal()
        if signal is not None:
            return self.page.shown_signal == signal
        return False

    async def wait_for(self, state: str = "visible", timeout: Optional[int] = None) -> None:
        timeout_s = (timeout or 0) / 1000.0
        signal = self._signal()
        if signal is not None:
            delay = self.page.pending_signals.get(signal)
            loop = asyncio.get_running_loop()
            if delay is None or delay > timeout_s:
                await asyncio.sleep(timeout_s)
                raise PlaywrightTimeoutError(f"wait_for {self.selector} timed out")
            await asyncio.sleep(max(0.0, self.page.clicked_at + delay - loop.time()))
            if self.page.shown_signal is None:
                self.page.shown_signal = signal
            return
        if await self.is_visible():
            return
        await asyncio.sleep(0)
        raise PlaywrightTimeoutError(f"wait_for {self.selector} timed out")

    async def click(self, timeout: Optional[int] = None) -> None:
        if self.selector == "checkbox" or _CHECKBOX_RE.match(self.selector):
            job_id = self.job["id"] if self.job is not None else _CHECKBOX_RE.match(self.selector).group(1)
            self.page.selected.append(job_id)
            return
        if self.selector.startswith("text="):
            label = self.selector[len("text="):]
            if not any(t.startswith(label) for t in self.page.site.tabs):
                raise PlaywrightTimeoutError(f"no tab {label}")
            self.page.site.tab_clicks.append(label)
            self.page.rendered = self.page.site.render_after_reset or self.page.site.gotos <= 1
            return
        if self.selector == SEL.apply_button:
            site = self.page.site
            batch = list(self.page.selected)
            site.submitted_batches.append(batch)
            outcome = site.next_outcome()
            self.page.pending_signals = outcome
            self.page.clicked_at = asyncio.get_running_loop().time()
            if "confirmed" in outcome or "deferred" in outcome:
                site.applied_on_site.extend(batch)
            return
        if self.selector == SEL.sidebar_close:
            self.page.shown_signal = None
            return


class FakePage:
    def __init__(self, site: FakeSite) -> None:
        self.site = site
        self.url = "about:blank"
        self.rendered = False
        self.selected: List[str] = []
        self.pending_signals: Dict[str, float] = {}
        self.shown_signal: Optional[str] = None
        self.clicked_at = 0.0
        self.waited_ms: List[int] = []

    def set_default_timeout(self, ms: int) -> None:
        pass

    def set_default_navigation_timeout(self, ms: int) -> None:
        pass

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[int] = None) -> None:
        self.site.gotos += 1
        self.url = LOGIN_URL if self.site.login_redirect else url
        self.rendered = not self.site.login_redirect
        self.selected = []
        self.pending_signals = {}
        self.shown_signal = None

    async def wait_for_selector(self, selector: str, state: str = "visible", timeout: Optional[int] = None) -> None:
        if selector == SEL.job_article and self.rendered and self.site.visible_postings():
            return
        if selector == SEL.tab_list and self.site.tabs and self.rendered:
            return
        await asyncio.sleep(0)
        raise PlaywrightTimeoutError(f"wait_for_selector {selector} timed out")

    async def wait_for_timeout(self, ms: int) -> None:
        self.waited_ms.append(ms)
        await asyncio.sleep(0)

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def content(self) -> str:
        return "<html><body>fake</body></html>"

    async def screenshot(self, path: str, full_page: bool = False) -> None:
        with open(path, "wb") as f:
            f.write(b"\x89PNG")


class FakeContext:
    def __init__(self, site: FakeSite) -> None:
        self.site = site
        self.pages: List[FakePage] = []

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.site.cookies.extend(cookies)

    async def new_page(self) -> FakePage:
        page = FakePage(self.site)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.site.contexts_closed += 1


class FakeBrowser:
    def __init__(self, site: FakeSite) -> None:
        self.site = site

    async def new_context(self, **kwargs: Any) -> FakeContext:
        return FakeContext(self.site)

    async def close(self) -> None:
        self.site.browsers_closed += 1


class FakePlaywright:
    def __init__(self, site: Optional[FakeSite]) -> None:
        self.site = site

    async def start(self) -> "FakePlaywright":
        return self

    async def stop(self) -> None:
        if self.site is not None:
            self.site.pw_stopped += 1


class FakeSiteProvider(BrowserProvider):
    name = "fake"

    def __init__(self, site: FakeSite, *, timeouts: Optional[Timeouts] = None, fail_launch: bool = False) -> None:
        super().__init__(timeouts=timeouts or fast_timeouts())
        self.site = site
        self.fail_launch = fail_launch

    async def launch(self, pw: Any) -> FakeBrowser:
        if self.fail_launch:
            raise RuntimeError("Executable doesn't exist")
        return FakeBrowser(self.site)


def fast_timeouts(**overrides: int) -> Timeouts:
    values = dict(
        navigation_ms=1000,
        initial_render_ms=50,
        render_ms=50,
        settle_ms=0,
        checkbox_visible_ms=10,
        submit_wait_ms=20,
        outcome_ms=200,
        tab_list_ms=50,
    )
    values.update(overrides)
    return Timeouts(**values)


def make_postings(n: int, *, prefix: str = "J", no_checkbox: tuple = ()) -> List[Dict[str, Any]]:
    return [{"id": f"{prefix}{i}", "checkbox": f"{prefix}{i}" not in no_checkbox} for i in range(1, n + 1)]


# ---------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def fake_playwright(monkeypatch):
    """Route async_playwright() in the browser module to an in-memory stand-in."""
    holder: Dict[str, Any] = {"site": None}
    monkeypatch.setattr(browser_mod, "async_playwright", lambda: FakePlaywright(holder["site"]))
    return holder


@pytest.fixture
def site_factory(fake_playwright):
    def _make(postings: List[Dict[str, Any]], **kwargs: Any) -> FakeSite:
        site = FakeSite(postings, **kwargs)
        fake_playwright["site"] = site
        return site

    return _make


@pytest.fixture
def no_pacing() -> FixedDelay:
    return FixedDelay(ms=0)


@pytest.fixture
def listing_url() -> str:
    return RECOMMENDED_JOBS_URL


def crash_signal_waits(monkeypatch, *, after_batches: int = 0, message: str = "Target page, context or browser has been closed"):
    """Make every result-signal wait raise RuntimeError once more than `after_batches` Apply clicks happened."""
    real_wait_for = FakeLocator.wait_for

    async def wait_for(self, state="visible", timeout=None):
        if self._signal() is not None and len(self.page.site.submitted_batches) > after_batches:
            await asyncio.sleep(0)
            raise RuntimeError(message)
        return await real_wait_for(self, state=state, timeout=timeout)

    monkeypatch.setattr(FakeLocator, "wait_for", wait_for)
