import random
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .config import cfg_get
from .models import RunSettings


@dataclass(frozen=True)
class FixedDelay:
    ms: int = 250

    def next_ms(self) -> int:
        return max(0, int(self.ms))


@dataclass(frozen=True)
class JitteredDelay:
    min_ms: int = 400
    max_ms: int = 1200

    def __post_init__(self) -> None:
        if self.min_ms < 0 or self.max_ms < self.min_ms:
            raise ValueError(f"invalid jitter range: {self.min_ms}..{self.max_ms}")

    def next_ms(self) -> int:
        return random.randint(self.min_ms, self.max_ms)


def pacing_for(settings: RunSettings, cfg: Optional[Dict[str, Any]] = None):
    """Delay between checkbox clicks: jittered in stealth mode, fixed otherwise."""
    cfg = cfg or {}
    if settings.stealth_mode:
        return JitteredDelay(
            min_ms=int(cfg_get(cfg, "pacing.stealth_min_ms", 400)),
            max_ms=int(cfg_get(cfg, "pacing.stealth_max_ms", 1200)),
        )
    return FixedDelay(ms=int(cfg_get(cfg, "pacing.fixed_ms", 250)))
