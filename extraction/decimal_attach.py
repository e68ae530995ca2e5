# extraction/decimal_attach.py
# Recover a fractional digit that OCR returned as its own token.
from typing import List, Optional, Sequence

from extraction.kinds import GaugeKindConfig
from extraction.tokens import Token


def find_decimal_digit(anchor: Sequence[Token], tokens: Sequence[Token],
                       cfg: GaugeKindConfig) -> Optional[Token]:
    """Closest isolated single digit to the right of the anchor group, or None.

    The digit must sit within a vertical band around the anchor's center and start at or
    after the anchor's right edge, no farther than the allowed gap.
    """
    if not anchor:
        return None
    min_y = min(t.min_y for t in anchor)
    max_y = max(t.max_y for t in anchor)
    right = max(t.max_x for t in anchor)
    cy = (min_y + max_y) / 2.0
    h = sum(t.h for t in anchor) / len(anchor)

    dy_tol = max(cfg.decimal_dy_min, h * cfg.decimal_dy_ratio)
    max_gap = max(cfg.decimal_gap_min, h * cfg.decimal_gap_ratio)

    used = set(id(t) for t in anchor)
    best = None
    best_gap = None
    for t in tokens:
        if id(t) in used or t.digit_len != 1 or t.has_alpha:
            continue
        if abs(t.cy - cy) > dy_tol:
            continue
        gap = t.min_x - right
        if gap < 0 or gap > max_gap:
            continue
        if best_gap is None or gap < best_gap:
            best, best_gap = t, gap
    return best


def attach_decimal(anchor: List[Token], tokens: Sequence[Token], cfg: GaugeKindConfig):
    """Returns (digits, used_tokens, attached_token_or_None)."""
    digits = "".join(t.digits for t in anchor)
    if not cfg.attach_decimal or len(digits) > cfg.decimal_max_anchor_digits:
        return digits, list(anchor), None
    dec = find_decimal_digit(anchor, tokens, cfg)
    if dec is None:
        return digits, list(anchor), None
    return digits + dec.digits, list(anchor) + [dec], dec
