import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .utils.validators import ensure_bool, ensure_positive_int


DEFAULT_SETTINGS: Dict[str, Any] = {
    "GEMINI_API_KEY": "",
    "GEMINI_ANALYSIS_MODEL": "gemini-3-flash-preview",
    "GEMINI_IMAGE_MODEL": "gemini-2.5-flash-image",
    "GEMINI_SAFETY_LEVEL": "BLOCK_ONLY_HIGH",
    "GEMINI_API_TIMEOUT": 120,
    "GEMINI_ANALYSIS_SEARCH": True,
    "STRIPE_SECRET_KEY": "",
    "STRIPE_PRICE_ID": "",
    "FRONTEND_URL": "http://127.0.0.1:6055",
    "LOG_LEVEL": "INFO",
    "MAX_IMAGE_DIMENSION": 1400,
    "MAX_PAYLOAD_BYTES": 3 * 1024 * 1024,
    "DEV_UNLOCK": False,
}

SAFETY_LEVELS = {"BLOCK_NONE", "BLOCK_ONLY_HIGH", "BLOCK_MEDIUM_AND_ABOVE", "BLOCK_LOW_AND_ABOVE"}
SENSITIVE_KEYS = {"GEMINI_API_KEY", "STRIPE_SECRET_KEY"}


@dataclass
class ServiceSettings:
    gemini_api_key: str
    gemini_analysis_model: str
    gemini_image_model: str
    gemini_safety_level: str
    gemini_api_timeout: int
    gemini_analysis_search: bool
    stripe_secret_key: str
    stripe_price_id: str
    frontend_url: str
    database_url: str
    log_level: str
    max_image_dimension: int
    max_payload_bytes: int
    dev_unlock: bool

    def redacted(self) -> Dict[str, Any]:
        data = {key.upper(): value for key, value in vars(self).items()}
        for key in SENSITIVE_KEYS:
            if data.get(key):
                data[key] = "***"
        return data


def validate_safety_level(value: Optional[str]) -> str:
    v = (value or "BLOCK_ONLY_HIGH").strip().upper()
    if v not in SAFETY_LEVELS:
        raise ValueError(f"Invalid GEMINI_SAFETY_LEVEL: {v}")
    return v


def _load_settings_file(path: Optional[Path]) -> dict:
    if path is None or not path.exists():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data


def load_settings(settings_path: Optional[Path] = None, *, default_database_url: str = "sqlite:///data/garage_canvas.db") -> ServiceSettings:
    # data/settings.json 為主，環境變數 (.env) 為後備
    load_dotenv()
    s = _load_settings_file(settings_path)

    def pick(key: str, default: Any = None) -> Any:
        value = s.get(key)
        if value in (None, ""):
            value = os.getenv(key)
        if value in (None, ""):
            value = DEFAULT_SETTINGS.get(key, default)
        return value

    return ServiceSettings(
        gemini_api_key=str(pick("GEMINI_API_KEY") or ""),
        gemini_analysis_model=str(pick("GEMINI_ANALYSIS_MODEL")),
        gemini_image_model=str(pick("GEMINI_IMAGE_MODEL")),
        gemini_safety_level=validate_safety_level(pick("GEMINI_SAFETY_LEVEL")),
        gemini_api_timeout=ensure_positive_int(pick("GEMINI_API_TIMEOUT"), "GEMINI_API_TIMEOUT"),
        gemini_analysis_search=ensure_bool(pick("GEMINI_ANALYSIS_SEARCH"), "GEMINI_ANALYSIS_SEARCH"),
        stripe_secret_key=str(pick("STRIPE_SECRET_KEY") or ""),
        stripe_price_id=str(pick("STRIPE_PRICE_ID") or ""),
        frontend_url=str(pick("FRONTEND_URL")).rstrip("/"),
        database_url=str(pick("DATABASE_URL", default_database_url)),
        log_level=str(pick("LOG_LEVEL")).upper(),
        max_image_dimension=ensure_positive_int(pick("MAX_IMAGE_DIMENSION"), "MAX_IMAGE_DIMENSION"),
        max_payload_bytes=ensure_positive_int(pick("MAX_PAYLOAD_BYTES"), "MAX_PAYLOAD_BYTES"),
        dev_unlock=ensure_bool(pick("DEV_UNLOCK"), "DEV_UNLOCK"),
    )
