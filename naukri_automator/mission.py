import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import Page

from .browser import BrowserProvider, dump_debug
from .errors import AutomatorError, RenderTimeoutError, SubmitControlMissingError
from .models import (
    DIRECTIVE_STOP,
    END_NO_CANDIDATES,
    END_RENDER_TIMEOUT,
    END_SUBMIT_MISSING,
    AppliedSet,
    MissionRequest,
    MissionResult,
)
from .navigator import open_section
from .pacing import pacing_for
from .progress import ProgressLog
from .resolver import resolve
from .scanner import scan_candidates
from .site import Selectors, Timeouts
from .submitter import submit_batch


STATE_IDLE = "idle"
STATE_SCANNING = "scanning"
STATE_SUBMITTING = "submitting"
STATE_RESOLVING = "resolving"
STATE_TERMINATED = "terminated"


class MissionLoop:
    """
    One run: acquire a page, open the section, then
    scan -> submit -> resolve -> reset until nothing is left or a batch
    says stop. The browser is released on every exit path.
    """

    def __init__(
        self,
        request: MissionRequest,
        *,
        provider: BrowserProvider,
        log: Optional[Callable[[str], None]] = None,
        selectors: Optional[Selectors] = None,
        timeouts: Optional[Timeouts] = None,
        pacing: Any = None,
        cfg: Optional[Dict[str, Any]] = None,
        root: Optional[Path] = None,
    ) -> None:
        self.request = request
        self.provider = provider
        self.log = log if isinstance(log, ProgressLog) else ProgressLog(log)
        self.selectors = selectors or Selectors.from_config(cfg)
        self.timeouts = timeouts or Timeouts.from_config(cfg)
        self.pacing = pacing or pacing_for(request.settings, cfg)
        self.root = root
        self.applied = AppliedSet(request.prior_ids)
        self.state = ""
        self.transitions: List[str] = []
        self.cycles = 0

    def _enter(self, state: str) -> None:
        self.state = state
        self.transitions.append(state)

    def _finish(self, end_reason: str, last_outcome: str = "") -> MissionResult:
        self._enter(STATE_TERMINATED)
        return MissionResult(
            session_ids=list(self.applied.session_ids),
            cycles=self.cycles,
            end_reason=end_reason,
            last_outcome=last_outcome,
        )

    async def run(self) -> MissionResult:
        try:
            async with self.provider.acquire_page(self.request.credential, log=self.log) as page:
                try:
                    await open_section(
                        page,
                        self.request.section_label,
                        selectors=self.selectors,
                        timeouts=self.timeouts,
                        log=self.log,
                    )
                    self._enter(STATE_IDLE)
                    result = await self._loop(page)
                except Exception as e:
                    if not isinstance(e, AutomatorError) and self.root is not None:
                        self.log("Taking screenshot of the error page...")
                        html_path, png_path = await dump_debug(self.root, page, "mission_error")
                        if png_path is not None:
                            self.log(f"Screenshot saved to {png_path}")
                    raise
        except (asyncio.CancelledError, KeyboardInterrupt):
            self._abort("mission cancelled")
            raise
        except Exception as e:
            self._abort(str(e))
            raise

        self._summary(result)
        return result

    def _abort(self, message: str) -> None:
        if self.state != STATE_TERMINATED:
            self._enter(STATE_TERMINATED)
        try:
            self.log.fatal(message)
        except Exception:
            # The sink itself may be what failed.
            pass

    async def _loop(self, page: Page) -> MissionResult:
        batch_size = self.request.settings.batch_size
        while True:
            self._enter(STATE_SCANNING)
            candidates = await scan_candidates(
                page, self.applied, selectors=self.selectors, timeouts=self.timeouts, log=self.log
            )
            if not candidates:
                self.log("No new apply-able jobs found on the page. Ending mission.")
                return self._finish(END_NO_CANDIDATES)

            self.log(f"Found {len(candidates)} new jobs. Preparing a batch of up to {batch_size}...")
            batch = candidates[:batch_size]

            self._enter(STATE_SUBMITTING)
            self.cycles += 1
            self.log(f"Batch {self.cycles}: {', '.join(p.job_id for p in batch)}")
            try:
                report = await submit_batch(
                    page,
                    batch,
                    pacing=self.pacing,
                    selectors=self.selectors,
                    timeouts=self.timeouts,
                    log=self.log,
                )
            except SubmitControlMissingError as e:
                self.log(f"WARN: {e}. Aborting batch.")
                return self._finish(END_SUBMIT_MISSING)

            self._enter(STATE_RESOLVING)
            directive = resolve(report, self.applied, log=self.log)
            self.log(f"Outcome: {report.outcome} ({len(report.job_ids)} jobs). Applied so far: {len(self.applied.session_ids)}")
            if directive == DIRECTIVE_STOP:
                return self._finish(report.outcome, last_outcome=report.outcome)

            try:
                await open_section(
                    page,
                    self.request.section_label,
                    selectors=self.selectors,
                    timeouts=self.timeouts,
                    reset=True,
                    log=self.log,
                )
            except RenderTimeoutError:
                self.log("Could not find job articles after reload. Ending mission.")
                return self._finish(END_RENDER_TIMEOUT, last_outcome=report.outcome)

    def _summary(self, result: MissionResult) -> None:
        self.log("--- MISSION SUMMARY ---")
        self.log("Batch application complete.")
        self.log(f"Batches submitted: {result.cycles}. Ended because: {result.end_reason}.")
        self.log(f"Total jobs successfully applied to in this session: {result.applied_count}")

