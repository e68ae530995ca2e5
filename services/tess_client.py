# services/tess_client.py
# Offline OCR backend: Tesseract word boxes shaped like the Vision word annotations.
import os
import shutil
from typing import Optional

import cv2
import pytesseract
from pytesseract import Output

from extraction.tokens import OcrPage
from services.errors import OcrProviderError
from services.image_variants import bgr_from_bytes

# sparse text: gauge photos have scattered numerals, not paragraphs
TESS_CONFIG = "--oem 3 --psm 11"
MIN_CONF = 0.0


# ===================== Tesseract path =====================
def setup_tesseract_path(cmd: Optional[str] = None) -> Optional[str]:
    fixed = r"C:\Program Files\Tesseract-OCR\tesseract.exe"
    for p in [cmd, os.environ.get("TESSERACT_CMD"), fixed, shutil.which("tesseract")]:
        if p and os.path.isfile(p):
            pytesseract.pytesseract.tesseract_cmd = p
            return p
    return None


def data_to_page(data: dict, width: int, height: int, min_conf: float = MIN_CONF) -> OcrPage:
    """``image_to_data`` dict -> OcrPage; one annotation per recognized word."""
    words = []
    lines = {}
    n = len(data.get("text", []))
    for i in range(n):
        text = str(data["text"][i] or "").strip()
        if not text:
            continue
        try:
            conf = float(data["conf"][i])
        except (TypeError, ValueError):
            conf = -1.0
        if conf < min_conf:
            continue
        x, y = int(data["left"][i]), int(data["top"][i])
        w, h = int(data["width"][i]), int(data["height"][i])
        words.append({
            "text": text,
            "vertices": [{"x": x, "y": y}, {"x": x + w, "y": y},
                         {"x": x + w, "y": y + h}, {"x": x, "y": y + h}],
        })
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(text)
    full_text = "\n".join(" ".join(ws) for _, ws in sorted(lines.items()))
    return OcrPage(full_text=full_text, annotations=words, width=width, height=height)


class TesseractClient:
    def __init__(self, cmd: Optional[str] = None, config: str = TESS_CONFIG):
        self.cmd = setup_tesseract_path(cmd)
        self.config = config
        self.calls = 0

    def text_detection(self, content: bytes) -> OcrPage:
        bgr = bgr_from_bytes(content)
        h, w = bgr.shape[:2]
        self.calls += 1
        try:
            rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
            data = pytesseract.image_to_data(rgb, config=self.config, output_type=Output.DICT)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
            raise OcrProviderError(f"Tesseract failed: {e}") from e
        return data_to_page(data, w, h)

    __call__ = text_detection
