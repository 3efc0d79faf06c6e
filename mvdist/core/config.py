"""
mvdist.core.config
==================

Default integration limits, overridable from the environment.

The public operations accept explicit limits; whatever is left as ``None``
falls back to `default_settings()`. Environment variables are read once, the
first time the defaults are needed.

- ``MVDIST_MAX_EVALUATIONS``: integrand evaluation cap (int > 0)
- ``MVDIST_ABSOLUTE_TOLERANCE``: absolute error target (float >= 0)
- ``MVDIST_RELATIVE_TOLERANCE``: relative error target (float >= 0)
- ``MVDIST_SEED``: seed for the default backend's random lattice shifts

Examples
--------
>>> from mvdist.core.config import IntegrationSettings
>>> s = IntegrationSettings.from_env({"MVDIST_MAX_EVALUATIONS": "5000"})
>>> s.max_evaluations, s.absolute_tolerance
(5000, 1e-05)
>>> IntegrationSettings(max_evaluations=0).validate()
Traceback (most recent call last):
...
ValueError: max_evaluations must be positive, got 0
"""

from __future__ import annotations
import os
import threading
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, TypeVar

T = TypeVar("T")

ENV_PREFIX = "MVDIST_"


@dataclass(frozen=True)
class IntegrationSettings:
    """
    Integration limits used when a call does not pass its own.

    Parameters
    ----------
    max_evaluations : int, default=100_000
        Maximum number of integrand evaluations per call
    absolute_tolerance : float, default=1e-5
        Requested absolute error
    relative_tolerance : float, default=0.0
        Requested relative error (probability operation only)
    seed : int, optional
        Seed for the default backend; ``None`` draws fresh entropy
    """

    max_evaluations: int = 100_000
    absolute_tolerance: float = 1e-5
    relative_tolerance: float = 0.0
    seed: Optional[int] = None

    def validate(self) -> None:
        """Validate the settings."""
        if self.max_evaluations <= 0:
            raise ValueError(f"max_evaluations must be positive, got {self.max_evaluations}")
        if self.absolute_tolerance < 0:
            raise ValueError(
                f"absolute_tolerance must be non-negative, got {self.absolute_tolerance}"
            )
        if self.relative_tolerance < 0:
            raise ValueError(
                f"relative_tolerance must be non-negative, got {self.relative_tolerance}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "IntegrationSettings":
        """Build settings from ``MVDIST_*`` variables; unset or empty means default."""
        env = os.environ if environ is None else environ
        defaults = cls()
        settings = cls(
            max_evaluations=_read(env, "MAX_EVALUATIONS", int, defaults.max_evaluations),
            absolute_tolerance=_read(env, "ABSOLUTE_TOLERANCE", float, defaults.absolute_tolerance),
            relative_tolerance=_read(env, "RELATIVE_TOLERANCE", float, defaults.relative_tolerance),
            seed=_read(env, "SEED", int, defaults.seed),
        )
        settings.validate()
        return settings


def _read(env: Mapping[str, str], key: str, parse: Callable[[str], T], default: Optional[T]) -> Optional[T]:
    name = ENV_PREFIX + key
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return parse(raw)
    except ValueError:
        raise ValueError(f"{name}={raw!r} is not a valid {parse.__name__}") from None


_settings: Optional[IntegrationSettings] = None
_settings_lock = threading.Lock()


def default_settings() -> IntegrationSettings:
    """Return the process settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        with _settings_lock:
            if _settings is None:
                _settings = IntegrationSettings.from_env()
    return _settings
