import re
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from .config import cfg_get


RECOMMENDED_JOBS_URL = "https://www.naukri.com/mnjuser/recommendedjobs"
SESSION_COOKIE_NAME = "nauk_at"
SESSION_COOKIE_DOMAIN = ".naukri.com"

LOGIN_URL_RE = re.compile(r"/nlogin/login|/login", re.IGNORECASE)
SECTION_LABEL_RE = re.compile(r"^(.*)\s\((\d+)\)$")


@dataclass(frozen=True)
class Selectors:
    job_article: str = "article.jobTuple"
    job_id_attr: str = "data-job-id"
    job_checkbox: str = "div.tuple-check-box"
    apply_button: str = "button.multi-apply-button"
    success_toast: str = "span.apply-message"
    sidebar_form: str = "div.chatbot_Drawer"
    sidebar_close: str = "div.chatBot-ic-cross"
    error_toast: str = "div.apply-error, span.apply-error-message, div.error-toast"
    tab_list: str = "div.tab-list"
    tab_item: str = "div.tab-list-item"

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]]) -> "Selectors":
        overrides = cfg_get(cfg or {}, "selectors", {}) or {}
        if not isinstance(overrides, dict):
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: str(v) for k, v in overrides.items() if k in known and str(v or "").strip()})


def is_login_url(url: str) -> bool:
    return bool(LOGIN_URL_RE.search(url or ""))


@dataclass(frozen=True)
class Timeouts:
    """Upper bounds (ms) for every wait the engine performs."""

    navigation_ms: int = 40_000
    initial_render_ms: int = 30_000
    render_ms: int = 15_000
    settle_ms: int = 3_000
    checkbox_visible_ms: int = 500
    submit_wait_ms: int = 5_000
    outcome_ms: int = 20_000
    tab_list_ms: int = 20_000

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]]) -> "Timeouts":
        overrides = cfg_get(cfg or {}, "timeouts", {}) or {}
        if not isinstance(overrides, dict):
            return cls()
        known = {f.name for f in fields(cls)}
        out: Dict[str, int] = {}
        for k, v in overrides.items():
            if k not in known:
                continue
            try:
                out[k] = max(0, int(v))
            except (TypeError, ValueError):
                continue
        return cls(**out)
