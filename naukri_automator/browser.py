import asyncio
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from .config import bool_env, cfg_get, int_env
from .errors import AuthenticationError, LaunchError
from .site import RECOMMENDED_JOBS_URL, SESSION_COOKIE_DOMAIN, SESSION_COOKIE_NAME, Timeouts, is_login_url


DEBUG_SUBDIR = Path("data") / "debug"
DEBUG_PREFIX = "naukri_"
DEFAULT_DEBUG_MAX_MB = 100

LAUNCH_ARGS = ["--lang=en-US", "--disable-dev-shm-usage"]


def _noop_log(message: str) -> None:
    return None


def _artifact_groups(debug_dir: Path) -> List[Tuple[float, int, List[Path]]]:
    """
    Debug artifacts grouped by capture (html + png share a stem).
    Returns [(newest mtime, total bytes, files)], oldest capture first.
    """
    groups: Dict[str, List[Path]] = {}
    for p in debug_dir.glob(f"{DEBUG_PREFIX}*"):
        if p.is_file():
            groups.setdefault(p.stem, []).append(p)
    out: List[Tuple[float, int, List[Path]]] = []
    for files in groups.values():
        stats = [f.stat() for f in files]
        out.append((max(s.st_mtime for s in stats), sum(s.st_size for s in stats), files))
    out.sort(key=lambda g: g[0])
    return out


def prune_debug_dir(debug_dir: Path, max_bytes: int) -> int:
    """
    Drop whole captures, oldest first, until the directory holds at most
    80% of `max_bytes`. Files not written by this package are left alone.
    Returns the number of captures removed.
    """
    groups = _artifact_groups(debug_dir)
    total = sum(size for _mtime, size, _files in groups)
    if total <= max_bytes:
        return 0

    target = int(max_bytes * 0.8)
    removed = 0
    for _mtime, size, files in groups:
        if total <= target:
            break
        for f in files:
            f.unlink(missing_ok=True)
        total -= size
        removed += 1
    return removed


async def dump_debug(root: Path, page: Page, tag: str) -> Tuple[Optional[Path], Optional[Path]]:
    """
    Capture the page as data/debug/naukri_<tag>_<stamp>.{html,png}.

    Either path is None when that capture failed; a broken page must not
    turn into a second error on top of the one being reported.
    """
    debug_dir = root / DEBUG_SUBDIR
    try:
        debug_dir.mkdir(parents=True, exist_ok=True)
        prune_debug_dir(debug_dir, int_env("DEBUG_MAX_MB", DEFAULT_DEBUG_MAX_MB) * 1024 * 1024)
    except OSError as e:
        print(f"[naukri] debug dir unusable: {e}")
        return (None, None)

    stem = f"{DEBUG_PREFIX}{tag}_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    html_path: Optional[Path] = debug_dir / f"{stem}.html"
    png_path: Optional[Path] = debug_dir / f"{stem}.png"
    try:
        html_path.write_text(await page.content(), encoding="utf-8", errors="replace")
    except Exception:
        html_path = None
    try:
        await page.screenshot(path=str(png_path), full_page=True)
    except Exception:
        png_path = None
    return (html_path, png_path)


@dataclass
class SafeCloser:
    ctx: Optional[BrowserContext] = None
    browser: Optional[Browser] = None
    pw: Optional[object] = None

    async def close(self, timeout_sec: float = 12.0) -> None:
        async def _close_ctx() -> None:
            if self.ctx is not None:
                await self.ctx.close()

        async def _close_browser() -> None:
            if self.browser is not None:
                await self.browser.close()

        async def _stop_pw() -> None:
            if self.pw is not None:
                await self.pw.stop()

        # Timebox each close step so a wedged browser cannot hang the caller.
        for step in (_close_ctx, _close_browser, _stop_pw):
            try:
                await asyncio.wait_for(step(), timeout=timeout_sec)
            except Exception:
                pass
        self.ctx = None
        self.browser = None
        self.pw = None


class BrowserProvider:
    """
    Capability: produce an authenticated page for a session cookie.

    Subclasses only decide how a browser is obtained (launch locally or
    connect to a remote one); cookie injection, the login check and the
    guaranteed release live here.
    """

    name = "base"

    def __init__(self, *, timeouts: Optional[Timeouts] = None, root: Optional[Path] = None) -> None:
        self.timeouts = timeouts or Timeouts()
        self.root = root

    async def launch(self, pw: Any) -> Browser:
        raise NotImplementedError

    def context_options(self) -> Dict[str, Any]:
        return {
            "locale": "en-US",
            "extra_http_headers": {"Accept-Language": "en-US,en;q=0.9"},
        }

    @asynccontextmanager
    async def acquire_page(
        self,
        credential: str,
        *,
        log: Callable[[str], None] = _noop_log,
        url: str = RECOMMENDED_JOBS_URL,
    ) -> AsyncIterator[Page]:
        closer = SafeCloser()
        try:
            log("Preparing browser...")
            try:
                closer.pw = await async_playwright().start()
                closer.browser = await self.launch(closer.pw)
                closer.ctx = await closer.browser.new_context(**self.context_options())
                page = await closer.ctx.new_page()
            except Exception as e:
                raise LaunchError(f"Browser instance could not be launched: {e}") from e

            page.set_default_timeout(self.timeouts.navigation_ms)
            page.set_default_navigation_timeout(self.timeouts.navigation_ms)

            log("Setting session cookie...")
            await closer.ctx.add_cookies(
                [{"name": SESSION_COOKIE_NAME, "value": credential, "domain": SESSION_COOKIE_DOMAIN, "path": "/"}]
            )

            log("Navigating to Recommended Jobs page...")
            await page.goto(url, wait_until="domcontentloaded", timeout=self.timeouts.navigation_ms)
            log(f"Current page URL: {page.url}")
            if is_login_url(page.url):
                if self.root is not None:
                    await dump_debug(self.root, page, "not_logged_in")
                raise AuthenticationError("Authentication failed. The provided cookie is likely invalid or expired.")

            yield page
        finally:
            try:
                if closer.pw is not None:
                    log("Closing browser...")
            finally:
                await closer.close()


class LocalChromiumProvider(BrowserProvider):
    name = "local"

    def __init__(
        self,
        *,
        headless: bool = False,
        slow_mo: int = 0,
        executable_path: str = "",
        timeouts: Optional[Timeouts] = None,
        root: Optional[Path] = None,
    ) -> None:
        super().__init__(timeouts=timeouts, root=root)
        self.headless = headless
        self.slow_mo = slow_mo
        self.executable_path = executable_path

    async def launch(self, pw: Any) -> Browser:
        kwargs: Dict[str, Any] = {
            "headless": self.headless,
            "slow_mo": self.slow_mo,
            "args": list(LAUNCH_ARGS),
        }
        if self.executable_path:
            if not Path(self.executable_path).exists():
                raise LaunchError(f"Browser executable not found: {self.executable_path}")
            kwargs["executable_path"] = self.executable_path
        return await pw.chromium.launch(**kwargs)


class RemoteChromiumProvider(BrowserProvider):
    """Attach to an already running (e.g. hosted/serverless) Chromium over CDP."""

    name = "remote"

    def __init__(self, *, endpoint: str, timeouts: Optional[Timeouts] = None, root: Optional[Path] = None) -> None:
        super().__init__(timeouts=timeouts, root=root)
        if not (endpoint or "").strip():
            raise LaunchError("remote browser provider needs an endpoint (BROWSER_WS_ENDPOINT)")
        self.endpoint = endpoint.strip()

    async def launch(self, pw: Any) -> Browser:
        return await pw.chromium.connect_over_cdp(self.endpoint, timeout=self.timeouts.navigation_ms)


PROVIDERS: List[str] = ["local", "remote"]


def provider_from_config(
    cfg: Dict[str, Any],
    *,
    timeouts: Optional[Timeouts] = None,
    root: Optional[Path] = None,
) -> BrowserProvider:
    kind = (os.getenv("BROWSER_PROVIDER") or str(cfg_get(cfg, "browser.provider", "local"))).strip().lower()
    if kind == "remote":
        endpoint = os.getenv("BROWSER_WS_ENDPOINT") or str(cfg_get(cfg, "browser.ws_endpoint", "") or "")
        return RemoteChromiumProvider(endpoint=endpoint, timeouts=timeouts, root=root)
    if kind != "local":
        raise LaunchError(f"unknown browser provider: {kind!r} (expected one of {', '.join(PROVIDERS)})")
    return LocalChromiumProvider(
        headless=bool_env("PLAYWRIGHT_HEADLESS", bool(cfg_get(cfg, "browser.headless", False))),
        slow_mo=int_env("PLAYWRIGHT_SLOW_MO_MS", int(cfg_get(cfg, "browser.slow_mo_ms", 0) or 0)),
        executable_path=os.getenv("PLAYWRIGHT_EXECUTABLE_PATH") or str(cfg_get(cfg, "browser.executable_path", "") or ""),
        timeouts=timeouts,
        root=root,
    )
