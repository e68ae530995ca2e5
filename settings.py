"""
Settings for the gauge reader service.

Everything comes from environment variables; there is no config file.

    OCR_BACKEND              vision (default) | tesseract
    GCP_VISION_API_KEY       Vision API key (alias: GOOGLE_VISION_API_KEY)
    GCP_KEY_BASE64           service account JSON, base64 (aliases: GOOGLE_SERVICE_ACCOUNT_B64,
                             GOOGLE_APPLICATION_CREDENTIALS_BASE64)
    GCP_KEY_JSON             service account JSON, plain
    TESSERACT_CMD            tesseract binary for the offline backend
    HTTP_TIMEOUT             seconds for image download and OCR calls (default 20)
    READING_REFERENCE_PATH   JSON file with the last known hour-meter per asset
    LOG_LEVEL                default INFO
"""

import base64
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

BACKENDS = ("vision", "tesseract")


@dataclass(frozen=True)
class Settings:
    ocr_backend: str = "vision"
    vision_api_key: Optional[str] = None
    service_account_b64: Optional[str] = None
    service_account_json: Optional[str] = None
    tesseract_cmd: Optional[str] = None
    http_timeout: float = 20.0
    reference_path: Optional[str] = None
    log_level: str = "INFO"

    def service_account_info(self) -> Optional[Dict[str, Any]]:
        """Decoded service account dict, or None if not configured or unreadable."""
        raw = None
        try:
            if self.service_account_b64:
                raw = base64.b64decode(self.service_account_b64).decode("utf-8")
            elif self.service_account_json:
                raw = self.service_account_json
            if raw:
                return json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"Service account credentials could not be decoded: {e}")
        return None


def _first(env: Mapping[str, str], *names: str) -> Optional[str]:
    for n in names:
        v = env.get(n)
        if v:
            return v
    return None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    backend = (env.get("OCR_BACKEND") or "vision").strip().lower()
    if backend not in BACKENDS:
        logger.warning(f"Unknown OCR_BACKEND {backend!r}, using 'vision'")
        backend = "vision"
    try:
        timeout = float(env.get("HTTP_TIMEOUT") or 20.0)
    except ValueError:
        logger.warning(f"Invalid HTTP_TIMEOUT {env.get('HTTP_TIMEOUT')!r}, using 20s")
        timeout = 20.0
    return Settings(
        ocr_backend=backend,
        vision_api_key=_first(env, "GCP_VISION_API_KEY", "GOOGLE_VISION_API_KEY"),
        service_account_b64=_first(env, "GCP_KEY_BASE64", "GOOGLE_SERVICE_ACCOUNT_B64",
                                   "GOOGLE_APPLICATION_CREDENTIALS_BASE64"),
        service_account_json=_first(env, "GCP_KEY_JSON"),
        tesseract_cmd=_first(env, "TESSERACT_CMD"),
        http_timeout=timeout,
        reference_path=_first(env, "READING_REFERENCE_PATH"),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
