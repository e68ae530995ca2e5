# services/image_variants.py
# One gauge photo -> ordered, differently pre-processed PNG variants for OCR.
import io
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from extraction.kinds import ABASTECIMENTO, HORIMETRO, ODOMETRO
from extraction.orchestrator import ImageVariant
from services.errors import ImageDecodeError

Rect = Tuple[float, float, float, float]  # x, y, w, h as fractions of the photo

# ----- Kind-specific crops: (main, tight) -----
CROPS: Dict[str, Tuple[Rect, Rect]] = {
    # hour-meter window usually sits in the lower-middle of the instrument cluster
    HORIMETRO: ((0.05, 0.15, 0.90, 0.75), (0.15, 0.35, 0.70, 0.45)),
    # pump display: the large liters readout is in the upper part
    ABASTECIMENTO: ((0.05, 0.05, 0.90, 0.80), (0.10, 0.10, 0.80, 0.55)),
    # odometer strip below the speedometer needle hub
    ODOMETRO: ((0.05, 0.25, 0.90, 0.70), (0.15, 0.45, 0.70, 0.40)),
}

MIN_TIGHT_H = 600


# ===================== Decode / encode =====================
def bgr_from_bytes(content: bytes) -> np.ndarray:
    if not content:
        raise ImageDecodeError("Empty image.")
    arr = np.frombuffer(content, dtype=np.uint8)
    bgr = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if bgr is None:
        try:
            img = Image.open(io.BytesIO(content)).convert("RGB")
        except (UnidentifiedImageError, OSError) as e:
            raise ImageDecodeError(f"Cannot decode image: {e}") from e
        bgr = cv2.cvtColor(np.array(img), cv2.COLOR_RGB2BGR)
    return bgr


def png_bytes(img: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", img)
    if not ok:
        raise ImageDecodeError("Cannot encode variant as PNG.")
    return buf.tobytes()


# ===================== Geometry =====================
def crop_fraction(img: np.ndarray, rect: Rect) -> np.ndarray:
    h, w = img.shape[:2]
    fx, fy, fw, fh = rect
    x0 = int(max(0, min(w - 1, fx * w))); y0 = int(max(0, min(h - 1, fy * h)))
    x1 = int(max(x0 + 1, min(w, (fx + fw) * w))); y1 = int(max(y0 + 1, min(h, (fy + fh) * h)))
    return img[y0:y1, x0:x1].copy()


# ===================== Enhancement =====================
def _unsharp(x: np.ndarray, amount: float = 0.8) -> np.ndarray:
    g = cv2.GaussianBlur(x, (0, 0), 1.0)
    return cv2.addWeighted(x, 1.0 + amount, g, -amount, 0)


def normalize_gray(bgr: np.ndarray) -> np.ndarray:
    """Grayscale, CLAHE, stretch to 0..255, light unsharp."""
    g = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY) if bgr.ndim == 3 else bgr
    g = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8)).apply(g)
    g = cv2.normalize(g, None, 0, 255, cv2.NORM_MINMAX)
    return _unsharp(g)


def threshold_digits(gray: np.ndarray, min_h: int = MIN_TIGHT_H) -> np.ndarray:
    """Upscale small crops, Otsu binarize; black digits on white."""
    h = gray.shape[0]
    if h < min_h:
        s = min_h / float(max(1, h))
        gray = cv2.resize(gray, None, fx=s, fy=s, interpolation=cv2.INTER_CUBIC)
    blur = cv2.GaussianBlur(gray, (3, 3), 0)
    th = cv2.threshold(blur, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)[1]
    # displays are often light-on-dark; OCR does better with dark ink on white
    if float((th > 0).mean()) < 0.5:
        th = 255 - th
    th = cv2.morphologyEx(th, cv2.MORPH_OPEN, np.ones((2, 2), np.uint8), 1)
    return th


# ===================== Variants =====================
def build_variants(content: bytes, kind: str, names: Optional[List[str]] = None) -> List[ImageVariant]:
    """Variants in fixed order: full-gray, crop-main-gray, crop-tight-thresh."""
    bgr = bgr_from_bytes(content)
    main_rect, tight_rect = CROPS.get(kind, CROPS[HORIMETRO])

    builders = [
        ("full-gray", lambda: normalize_gray(bgr)),
        ("crop-main-gray", lambda: normalize_gray(crop_fraction(bgr, main_rect))),
        ("crop-tight-thresh", lambda: threshold_digits(normalize_gray(crop_fraction(bgr, tight_rect)))),
    ]
    out = []
    for name, build in builders:
        if names is not None and name not in names:
            continue
        out.append(ImageVariant(name=name, content=png_bytes(build())))
    return out
