# src/lost_in_transit/config/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from dotenv import dotenv_values, find_dotenv, load_dotenv

from lost_in_transit.models import EnvCfg


class EnvError(RuntimeError):
    """Raised when required environment variables are missing or malformed."""


# Needed to talk to the provider and to guard the internal trigger
REQUIRED_KEYS: Tuple[str, ...] = (
    "TRACKINGMORE_API_KEY",
    "RECHECK_SECRET",
)


def load_project_dotenv(start: Optional[Path] = None, *, override: bool = False) -> Path:
    """
    Load the nearest `.env` (searching upward from `start` or CWD) into os.environ.
    Existing variables win unless `override=True`.
    Returns the resolved path, or Path() when nothing was found.
    """
    start_path = Path.cwd() if start is None else Path(start)

    found = find_dotenv(filename=".env", usecwd=True)
    dotenv_path = Path(found) if found else Path()

    if not found:
        for p in (start_path, *start_path.parents):
            candidate = p / ".env"
            if candidate.exists():
                dotenv_path = candidate
                break

    if not dotenv_path.exists() or dotenv_path.is_dir():
        return Path()

    load_dotenv(dotenv_path=dotenv_path, override=override)
    return dotenv_path.resolve()


def env(name: str, *, default: Any = None, required: bool = False, cast: Optional[Callable[[str], Any]] = None):
    """
    Test-friendly accessor.

    - Missing and `required=True` -> KeyError(name).
    - `cast` is applied to the raw string; cast errors propagate.
    - Blank strings count as missing.
    """
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        if required:
            raise KeyError(name)
        return default
    if cast is not None:
        return cast(raw)
    return raw


def load_env(
    dotenv_path: Optional[Path] = None,
    *,
    override: bool = False,
    required_keys: Tuple[str, ...] = (),
    strict: bool = False,
) -> Dict[str, str]:
    """
    Load a .env file into the process environment and return the key/values it held.

    - With `dotenv_path`, load exactly that file (silently skipped if absent).
    - Without it, auto-discover via `load_project_dotenv`.
    - With `strict=True`, every key in `required_keys` must be set afterwards.
    """
    loaded: Dict[str, str] = {}

    path = Path(dotenv_path) if dotenv_path else load_project_dotenv(override=override)
    if path and path.exists() and path.is_file():
        if dotenv_path:
            load_dotenv(dotenv_path=path, override=override)
        loaded = {k: v for k, v in dotenv_values(path).items() if v is not None}

    if strict and required_keys:
        missing = [k for k in required_keys if not os.getenv(k)]
        if missing:
            raise EnvError(
                f"Missing required environment variable(s): {', '.join(missing)}")

    return loaded


def _typed(name: str, cast: Callable[[str], Any], default: Any) -> Any:
    try:
        return env(name, default=default, cast=cast)
    except ValueError as e:
        raise EnvError(f"Invalid value for {name}: {os.getenv(name)!r}") from e


def get_app_env(dotenv_path: Path | str | None = ".env", *, strict: bool = True) -> EnvCfg:
    """
    Load the engine's settings and return a frozen EnvCfg.

    - `dotenv_path` points at a specific .env file; None disables file loading.
    - Host/CI environment values win over the file.
    - `strict=True` requires REQUIRED_KEYS (raises EnvError otherwise).
    """
    load_env(
        Path(dotenv_path) if dotenv_path else None,
        override=False,
        required_keys=REQUIRED_KEYS,
        strict=strict,
    )

    d = EnvCfg()
    return EnvCfg(
        TRACKINGMORE_API_KEY=env("TRACKINGMORE_API_KEY", default=""),
        RECHECK_SECRET=env("RECHECK_SECRET", default=""),
        TRACKINGMORE_BASE_URL=env("TRACKINGMORE_BASE_URL", default=d.TRACKINGMORE_BASE_URL),
        DATABASE_URL=env("DATABASE_URL", default=d.DATABASE_URL),
        TRACKING_TIMEOUT_SECONDS=_typed("TRACKING_TIMEOUT_SECONDS", float, d.TRACKING_TIMEOUT_SECONDS),
        TRACKING_CALL_INTERVAL_SECONDS=_typed(
            "TRACKING_CALL_INTERVAL_SECONDS", float, d.TRACKING_CALL_INTERVAL_SECONDS),
        RECHECK_BATCH_SIZE=_typed("RECHECK_BATCH_SIZE", int, d.RECHECK_BATCH_SIZE),
        ARCHIVE_BATCH_SIZE=_typed("ARCHIVE_BATCH_SIZE", int, d.ARCHIVE_BATCH_SIZE),
        RECHECK_LEASE_SECONDS=_typed("RECHECK_LEASE_SECONDS", int, d.RECHECK_LEASE_SECONDS),
        LIT_DOMESTIC_DAYS=_typed("LIT_DOMESTIC_DAYS", int, d.LIT_DOMESTIC_DAYS),
        LIT_INTERNATIONAL_DAYS=_typed("LIT_INTERNATIONAL_DAYS", int, d.LIT_INTERNATIONAL_DAYS),
        LIT_DOMESTIC_MAX_WINDOW_DAYS=_typed(
            "LIT_DOMESTIC_MAX_WINDOW_DAYS", int, d.LIT_DOMESTIC_MAX_WINDOW_DAYS),
        LIT_INTERNATIONAL_MAX_WINDOW_DAYS=_typed(
            "LIT_INTERNATIONAL_MAX_WINDOW_DAYS", int, d.LIT_INTERNATIONAL_MAX_WINDOW_DAYS),
        LIT_LABEL_GRACE_DAYS=_typed("LIT_LABEL_GRACE_DAYS", int, d.LIT_LABEL_GRACE_DAYS),
    )


__all__ = [
    "EnvError",
    "REQUIRED_KEYS",
    "load_project_dotenv",
    "load_env",
    "env",
    "get_app_env",
]
