# extraction/candidates.py
# Per-kind digit-string candidates from tokens and rows.
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Tuple

from extraction.decimal_attach import attach_decimal
from extraction.kinds import GaugeKindConfig
from extraction.rows import cluster_rows, split_sequences
from extraction.tokens import Token, y_norm

LONG_TOKEN = "long-token"
ROW = "row"
TOKEN = "token"


@dataclass
class Candidate:
    digits_raw: str
    used_tokens: List[Token]
    avg_h: float
    y_norm: float
    source: str
    decimal_attached: bool = False
    separator: bool = False
    cy: float = 0.0
    compactness: float = 1.0
    span_norm: float = 0.0
    index: int = 0

    def to_dict(self) -> dict:
        return {
            "digits": self.digits_raw,
            "source": self.source,
            "avg_h": round(self.avg_h, 1),
            "y_norm": round(self.y_norm, 3),
            "decimal_attached": self.decimal_attached,
            "separator": self.separator,
            "compactness": round(self.compactness, 2),
            "span_norm": round(self.span_norm, 3),
            "tokens": [t.text for t in self.used_tokens],
        }


@dataclass
class ExtractionContext:
    cfg: GaugeKindConfig
    tokens: List[Token]          # digit tokens only
    page_w: float
    page_h: float
    full_text: str = ""
    rejected: List[dict] = field(default_factory=list)

    def in_band(self, cy: float) -> bool:
        yn = y_norm(cy, self.page_h)
        return self.cfg.y_norm_min <= yn <= self.cfg.y_norm_max

    @property
    def text_has_separator(self) -> bool:
        return "." in self.full_text or "," in self.full_text

    def reject(self, source: str, digits: str, reason: str, **extra) -> None:
        item = {"source": source, "digits": digits, "reason": reason}
        item.update(extra)
        self.rejected.append(item)


def _band_tokens(ctx: ExtractionContext) -> List[Token]:
    return [t for t in ctx.tokens if ctx.in_band(t.cy)]


def _make_candidate(ctx: ExtractionContext, anchor: List[Token], source: str, **geo) -> Candidate:
    digits, used, dec = attach_decimal(anchor, ctx.tokens, ctx.cfg)
    cy = sum(t.cy for t in anchor) / len(anchor)
    return Candidate(
        digits_raw=digits,
        used_tokens=used,
        avg_h=sum(t.h for t in anchor) / len(anchor),
        y_norm=y_norm(cy, ctx.page_h),
        source=source,
        decimal_attached=dec is not None,
        separator=any(t.has_separator for t in used) or ctx.text_has_separator,
        cy=cy,
        **geo,
    )


# ===================== Single-token strategy =====================
def _token_strategy(ctx: ExtractionContext, source: str) -> Tuple[List[Candidate], dict]:
    """Every big token whose own digit count already looks like a full display."""
    cfg = ctx.cfg
    band = _band_tokens(ctx)
    lo, hi = cfg.long_token_digits
    dbg = {"method": source, "band_tokens": len(band), "digit_range": [lo, hi]}
    if not band:
        return [], dbg
    max_h = max(t.h for t in band)
    thr = max_h * cfg.big_token_ratio
    dbg.update(max_h=round(max_h, 1), min_h=round(thr, 1))

    out = []
    for t in band:
        if not (lo <= t.digit_len <= hi):
            continue
        if t.h < thr:
            ctx.reject(source, t.digits, "too small", h=round(t.h, 1))
            continue
        out.append(_make_candidate(ctx, [t], source))
    dbg["candidates"] = len(out)
    return out, dbg


# ===================== Row-aggregate strategy =====================
def _row_strategy(ctx: ExtractionContext) -> Tuple[List[Candidate], dict]:
    """Big tokens clustered into rows, rows split at wide gaps; each surviving run joined left to right."""
    cfg = ctx.cfg
    if not ctx.tokens:
        return [], {"method": ROW, "rows": 0}
    pool = _band_tokens(ctx) or ctx.tokens
    max_h = max(t.h for t in pool)
    thr = max_h * cfg.row_token_ratio
    big = [t for t in ctx.tokens if t.h >= thr]
    rows = cluster_rows(big)
    lo, hi = cfg.row_digits
    dbg = {"method": ROW, "max_h": round(max_h, 1), "min_h": round(thr, 1),
           "rows": len(rows), "digit_range": [lo, hi],
           "max_compactness": cfg.max_compactness, "max_span_norm": cfg.max_span_norm}

    out = []
    n_seqs = 0
    for row in rows:
        if not ctx.in_band(row.cy):
            ctx.reject(ROW, row.digits, "outside vertical band", y_norm=round(y_norm(row.cy, ctx.page_h), 3))
            continue
        for seq in split_sequences(row, cfg.sequence_gap_ratio):
            n_seqs += 1
            digits = seq.digits
            if not (lo <= len(digits) <= hi):
                ctx.reject(ROW, digits, "digit count", n=len(digits))
                continue
            compactness = seq.compactness
            span_norm = seq.span_x / ctx.page_w
            if cfg.max_compactness is not None and compactness > cfg.max_compactness:
                ctx.reject(ROW, digits, "scale dial: spread out", compactness=round(compactness, 2))
                continue
            if cfg.max_span_norm is not None and span_norm > cfg.max_span_norm:
                ctx.reject(ROW, digits, "scale dial: too wide", span_norm=round(span_norm, 3))
                continue
            out.append(_make_candidate(ctx, list(seq.items), ROW,
                                       compactness=compactness, span_norm=span_norm))
    dbg.update(sequences=n_seqs, sequence_gap_ratio=cfg.sequence_gap_ratio, candidates=len(out))
    return out, dbg


STRATEGIES: Dict[str, Callable[[ExtractionContext], Tuple[List[Candidate], dict]]] = {
    LONG_TOKEN: lambda ctx: _token_strategy(ctx, LONG_TOKEN),
    TOKEN: lambda ctx: _token_strategy(ctx, TOKEN),
    ROW: _row_strategy,
}


def run_strategy(name: str, ctx: ExtractionContext, start_index: int = 0) -> Tuple[List[Candidate], dict]:
    cands, dbg = STRATEGIES[name](ctx)
    for i, c in enumerate(cands):
        c.index = start_index + i
    return cands, dbg


def iter_strategies(ctx: ExtractionContext) -> Iterator[Tuple[str, List[Candidate], dict]]:
    """Strategies in the kind's fixed order; the caller stops at the first usable result."""
    index = 0
    for name in ctx.cfg.strategies:
        cands, dbg = run_strategy(name, ctx, start_index=index)
        index += len(cands)
        yield name, cands, dbg
