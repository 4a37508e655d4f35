"""Environment driven settings.

Variables:
- SCOPEBOX_ENV: "development", "test" or "production" (default)
- SCOPEBOX_DEVELOPMENT: force development diagnostics when truthy
- SCOPEBOX_ESCAPE_KEYS: comma separated keys added to the escape whitelist
- SCOPEBOX_SANDBOX: default strategy, "proxy" (default) or "snapshot"
- SCOPEBOX_LOG_LEVEL: level for the "scopebox" logger
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from scopebox.core import SandboxType

ENVIRONMENTS = ("development", "test", "production")

# Keys written through to the shared namespace by every proxy sandbox.
# SystemJS evaluates modules with an indirect eval, which escapes any
# sandbox, so its registry and CommonJS wrapper must live globally.
BASELINE_ESCAPE_KEYS: tuple[str, ...] = (
    "System",
    "__cjsWrapper",
)

# Hot reload overlays install a global hook from inside the module.
DEVELOPMENT_ESCAPE_KEYS: tuple[str, ...] = ("__REACT_ERROR_OVERLAY_GLOBAL_HOOK__",)

_TRUTHY = {"1", "true", "yes", "on"}

_STRATEGIES = {
    "proxy": SandboxType.PROXY,
    "snapshot": SandboxType.SNAPSHOT,
}


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for the isolation layer."""

    environment: str = "production"
    """One of ENVIRONMENTS."""

    development_flag: bool = False
    """Development diagnostics forced on regardless of environment."""

    extra_escape_keys: tuple[str, ...] = field(default_factory=tuple)
    """Keys added on top of the baseline whitelist."""

    default_strategy: SandboxType = SandboxType.PROXY
    """Strategy used by create_sandbox when none is given."""

    log_level: str | None = None
    """Log level for the scopebox logger, if configured."""

    @property
    def development(self) -> bool:
        """Whether development diagnostics are on."""
        return self.environment == "development" or self.development_flag

    @property
    def test_allowances(self) -> bool:
        """Whether the test-only self-reference keys are recognised."""
        return self.environment == "test"

    @property
    def escape_keys(self) -> tuple[str, ...]:
        return escape_keys(self)


def parse_strategy(value: str | SandboxType) -> SandboxType:
    """Turn "proxy" / "snapshot" (or a SandboxType) into a SandboxType."""
    if isinstance(value, SandboxType):
        return value
    try:
        return _STRATEGIES[value.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown sandbox strategy: {value!r} (expected one of {', '.join(_STRATEGIES)})"
        ) from None


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Read settings from ``environ`` (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ

    environment = (env.get("SCOPEBOX_ENV") or "production").strip().lower()
    if environment not in ENVIRONMENTS:
        raise ValueError(f"Invalid SCOPEBOX_ENV: {environment!r}")

    extra = tuple(
        key.strip() for key in (env.get("SCOPEBOX_ESCAPE_KEYS") or "").split(",") if key.strip()
    )

    return Settings(
        environment=environment,
        development_flag=(env.get("SCOPEBOX_DEVELOPMENT") or "").strip().lower() in _TRUTHY,
        extra_escape_keys=extra,
        default_strategy=parse_strategy(env.get("SCOPEBOX_SANDBOX") or "proxy"),
        log_level=env.get("SCOPEBOX_LOG_LEVEL") or None,
    )


def escape_keys(settings: Settings) -> tuple[str, ...]:
    """Baseline whitelist plus development and configured extras, deduplicated."""
    keys = list(BASELINE_ESCAPE_KEYS)
    if settings.development:
        keys.extend(DEVELOPMENT_ESCAPE_KEYS)
    keys.extend(settings.extra_escape_keys)
    return tuple(dict.fromkeys(keys))


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or load the process-wide settings."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings (primarily for tests)."""
    global _settings
    _settings = None
