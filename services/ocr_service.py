import logging
import os
from typing import Callable, Iterable, Optional

import requests

from extraction.kinds import get_kind
from extraction.orchestrator import GaugeResult, VariantOrchestrator, replay_pages
from extraction.tokens import OcrPage
from services.errors import ImageFetchError
from services.image_variants import build_variants
from services.reference_service import JsonReferenceStore
from services.tess_client import TesseractClient
from services.vision_client import make_vision_client
from settings import Settings, load_settings

logger = logging.getLogger(__name__)

OcrCall = Callable[[bytes], OcrPage]


def fetch_image(url: str, timeout: float = 20.0, session: Optional[requests.Session] = None) -> bytes:
    http = session or requests
    try:
        r = http.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise ImageFetchError(f"Failed to download image: {e}") from e
    if not r.ok:
        raise ImageFetchError(f"Failed to download image ({r.status_code}).")
    return r.content


def read_image_path(path: str) -> bytes:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Cannot read image: {path}")
    with open(path, "rb") as f:
        return f.read()


def make_ocr_client(backend: Optional[str], settings: Settings) -> OcrCall:
    backend = (backend or settings.ocr_backend).lower()
    if backend == "tesseract":
        return TesseractClient(cmd=settings.tesseract_cmd)
    if backend == "vision":
        return make_vision_client(settings)
    raise ValueError(f"Unknown OCR backend: {backend!r}")


def resolve_reference(kind: str, reference_value: Optional[float], asset_id: Optional[str],
                      settings: Settings) -> Optional[float]:
    """Explicit value wins; otherwise the JSON store (hour-meter only)."""
    if not get_kind(kind).uses_reference:
        return None
    if reference_value is not None:
        return float(reference_value)
    if asset_id and settings.reference_path:
        return JsonReferenceStore(settings.reference_path).lookup(asset_id)
    return None


def _log_result(res: GaugeResult) -> None:
    for t in res.trace:
        logger.info(f"[{res.kind}] variant={t.get('variant')} note={t.get('note')} "
                    f"digit_tokens={t.get('digit_tokens')} chosen={t.get('chosen')}")
    logger.info(f"[{res.kind}] {res.state.value}: value={res.value} variant={res.variant_name} "
                f"attempts={res.attempts}")


def run_gauge_ocr(
    kind: str,
    content: Optional[bytes] = None,
    image_path: Optional[str] = None,
    image_url: Optional[str] = None,
    reference_value: Optional[float] = None,
    asset_id: Optional[str] = None,
    backend: Optional[str] = None,
    settings: Optional[Settings] = None,
    ocr: Optional[OcrCall] = None,
) -> dict:
    """
    Photo -> variants -> OCR (one call per variant, first success wins) -> JSON-ready dict.
    External failures (download, decode, OCR provider, credentials) raise.
    """
    cfg = get_kind(kind)
    settings = settings or load_settings()

    if content is None:
        if image_path:
            content = read_image_path(image_path)
        elif image_url:
            content = fetch_image(image_url, timeout=settings.http_timeout)
        else:
            raise ValueError("Provide image content, image_path or image_url.")

    variants = build_variants(content, cfg.name)
    ocr = ocr or make_ocr_client(backend, settings)
    reference = resolve_reference(cfg.name, reference_value, asset_id, settings)

    res = VariantOrchestrator(ocr=ocr, kind=cfg, reference=reference).run(variants)
    _log_result(res)
    out = res.to_dict()
    out["asset_id"] = asset_id
    return out


def run_token_replay(kind: str, pages: Iterable[dict], reference_value: Optional[float] = None) -> dict:
    """Engine only, over saved OCR pages ``{name, full_text, tokens, width?, height?}``."""
    cfg = get_kind(kind)
    named = []
    for i, p in enumerate(pages):
        named.append((str(p.get("name") or f"page-{i}"), OcrPage.from_dict(p)))
    reference = float(reference_value) if (reference_value is not None and cfg.uses_reference) else None
    res = replay_pages(named, cfg, reference)
    _log_result(res)
    return res.to_dict()
