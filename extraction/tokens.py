# extraction/tokens.py
# OCR word annotations -> geometric tokens.
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

_NON_DIGIT = re.compile(r"[^0-9]")
_ALPHA = re.compile(r"[^\W\d_]")


@dataclass(frozen=True)
class Token:
    text: str
    digits: str
    digit_len: int
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    w: float
    h: float
    cx: float
    cy: float

    @property
    def has_alpha(self) -> bool:
        return bool(_ALPHA.search(self.text))

    @property
    def has_separator(self) -> bool:
        return "." in self.text or "," in self.text

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "digits": self.digits,
            "box": [round(self.min_x, 1), round(self.min_y, 1), round(self.max_x, 1), round(self.max_y, 1)],
            "h": round(self.h, 1),
        }


@dataclass
class OcrPage:
    """One OCR response: raw full text plus unordered word annotations.

    ``annotations`` items look like ``{"text": "0364", "vertices": [{"x": .., "y": ..}, ...]}``;
    Vision-style ``description`` / ``boundingPoly`` keys are accepted too.
    ``width``/``height`` are the image size when the provider reports it.
    """
    full_text: str = ""
    annotations: List[Dict[str, Any]] = field(default_factory=list)
    width: Optional[float] = None
    height: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OcrPage":
        return cls(
            full_text=str(data.get("full_text") or data.get("fullText") or ""),
            annotations=list(data.get("tokens") or data.get("annotations") or []),
            width=data.get("width"),
            height=data.get("height"),
        )


def _num(v: Any) -> float:
    return float(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else 0.0


def _vertices(ann: Dict[str, Any]) -> list:
    """Vertex dicts only; anything else (None, [x, y] pairs) is skipped."""
    verts = ann.get("vertices")
    if verts is None:
        poly = ann.get("boundingPoly") or ann.get("bounding_poly")
        verts = poly.get("vertices") if isinstance(poly, dict) else None
    if not isinstance(verts, (list, tuple)):
        return []
    return [v for v in verts if isinstance(v, dict)]


def token_from_annotation(ann: Dict[str, Any]) -> Optional[Token]:
    """Build a Token, or None when the text is empty or no vertices are present."""
    text = str(ann.get("text", ann.get("description", "")) or "").strip()
    verts = _vertices(ann)
    if not text or not verts:
        return None
    xs = [_num(v.get("x")) for v in verts]
    ys = [_num(v.get("y")) for v in verts]
    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)
    digits = _NON_DIGIT.sub("", text)
    return Token(
        text=text, digits=digits, digit_len=len(digits),
        min_x=min_x, max_x=max_x, min_y=min_y, max_y=max_y,
        w=max(1.0, max_x - min_x), h=max(1.0, max_y - min_y),
        cx=(min_x + max_x) / 2.0, cy=(min_y + max_y) / 2.0,
    )


def tokens_from_page(page: OcrPage) -> List[Token]:
    out = []
    for ann in page.annotations:
        if not isinstance(ann, dict):
            continue
        t = token_from_annotation(ann)
        if t is not None:
            out.append(t)
    return out


def digit_tokens(tokens: Iterable[Token]) -> List[Token]:
    """Tokens usable for digit processing: at least one digit, no letters."""
    return [t for t in tokens if t.digit_len > 0 and not t.has_alpha]


def page_size(page: OcrPage, tokens: List[Token]) -> Tuple[float, float]:
    """Image (width, height); falls back to the token extent when the provider didn't say."""
    w = _num(page.width)
    h = _num(page.height)
    if w <= 0:
        w = max((t.max_x for t in tokens), default=1.0)
    if h <= 0:
        h = max((t.max_y for t in tokens), default=1.0)
    return max(1.0, w), max(1.0, h)


def y_norm(cy: float, page_h: float) -> float:
    return max(0.0, min(1.0, cy / max(1.0, page_h)))
