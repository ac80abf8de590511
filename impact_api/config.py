from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import InputValidationError

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
NASA_NEO_API_BASE = "https://api.nasa.gov/neo/rest/v1"
NASA_COMETS_URL = "https://data.nasa.gov/resource/b67r-rgxc.json"


def mask_key(s: Optional[str]) -> Optional[str]:
    if not s:
        return s
    return s[:3] + "***" + s[-3:] if len(s) > 6 else "***"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise InputValidationError(f"{name} must be a number, got {raw!r}.")
    if value <= 0.0:
        raise InputValidationError(f"{name} must be > 0, got {raw!r}.")
    return value


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-pro-latest"
    gemini_api_base: str = GEMINI_API_BASE
    nasa_api_key: str = "DEMO_KEY"
    nasa_neo_api_base: str = NASA_NEO_API_BASE
    nasa_comets_url: str = NASA_COMETS_URL
    analysis_timeout_s: float = 30.0
    neo_timeout_s: float = 30.0
    simulation_time_scale: float = 1.0
    log_level: str = "INFO"

    @property
    def analysis_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL") or cls.gemini_model,
            gemini_api_base=os.getenv("GEMINI_API_BASE") or GEMINI_API_BASE,
            nasa_api_key=os.getenv("NASA_API_KEY") or "DEMO_KEY",
            nasa_neo_api_base=os.getenv("NASA_NEO_API_BASE") or NASA_NEO_API_BASE,
            nasa_comets_url=os.getenv("NASA_COMETS_URL") or NASA_COMETS_URL,
            analysis_timeout_s=_float_env("ANALYSIS_TIMEOUT_S", 30.0),
            neo_timeout_s=_float_env("NEO_TIMEOUT_S", 30.0),
            simulation_time_scale=_float_env("SIMULATION_TIME_SCALE", 1.0),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )

    def describe(self) -> dict:
        """Loggable view with secrets masked."""
        return {
            "gemini_api_key": mask_key(self.gemini_api_key),
            "gemini_model": self.gemini_model,
            "nasa_api_key": mask_key(self.nasa_api_key),
            "analysis_timeout_s": self.analysis_timeout_s,
            "neo_timeout_s": self.neo_timeout_s,
            "simulation_time_scale": self.simulation_time_scale,
            "log_level": self.log_level,
        }
