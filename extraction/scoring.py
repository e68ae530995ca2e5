# extraction/scoring.py
# Rank candidates: geometry first, then plausibility and continuity with the last known value.
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from extraction.candidates import ROW, Candidate
from extraction.kinds import ABASTECIMENTO, HORIMETRO, ODOMETRO, GaugeKindConfig
from extraction.value_parser import ParsedValue, parse_value


@dataclass
class ScoredCandidate:
    candidate: Candidate
    parsed: ParsedValue
    geo: float
    penalty: float = 0.0

    @property
    def score(self) -> float:
        return self.geo - self.penalty

    def to_dict(self) -> dict:
        d = self.candidate.to_dict()
        d.update(value=self.parsed.value, geo=round(self.geo, 3),
                 penalty=round(self.penalty, 3), score=round(self.score, 3))
        return d


def count_fit(n: int, cfg: GaugeKindConfig) -> float:
    lo, hi = cfg.min_digits, cfg.total_digits
    dist = (lo - n) if n < lo else (n - hi) if n > hi else 0
    return 1.0 / (1.0 + dist)


def geometric_score(c: Candidate, cfg: GaugeKindConfig) -> float:
    n = len(c.digits_raw)
    if cfg.name == HORIMETRO:
        if c.source == ROW:
            # larger, lower, tighter rows
            return c.avg_h * (1 + n) * (1 + c.y_norm * 0.35) / max(1e-6, c.compactness)
        return c.avg_h
    if cfg.name == ABASTECIMENTO:
        return c.avg_h
    if cfg.name == ODOMETRO:
        return c.avg_h * (1 + 0.1 * count_fit(n, cfg))
    return c.avg_h


def continuity_penalty(value: float, reference: Optional[float], cfg: GaugeKindConfig) -> float:
    """Distance from the last known counter value; going backward or jumping far costs extra."""
    if reference is None or not cfg.uses_reference:
        return 0.0
    diff = value - reference
    penalty = min(abs(diff), cfg.jump_limit) * cfg.continuity_k
    if diff < 0:
        penalty += cfg.backward_penalty
    if abs(diff) > cfg.jump_limit:
        penalty += cfg.jump_penalty
    return penalty


def _rank_key(s: ScoredCandidate, cfg: GaugeKindConfig):
    c = s.candidate
    higher = c.cy if cfg.prefer_higher_on_tie else 0.0
    # ties: geometrically larger, then (optionally) higher, then longer, then generated first
    return (-s.score, -c.avg_h, higher, -len(c.digits_raw), c.index)


def score_candidates(cands: Sequence[Candidate], cfg: GaugeKindConfig,
                     reference: Optional[float] = None) -> Tuple[List[ScoredCandidate], List[dict]]:
    """Returns (ranked best-first, rejected). Candidates that can't parse to a plausible value are rejected."""
    ranked: List[ScoredCandidate] = []
    rejected: List[dict] = []
    for c in cands:
        parsed = parse_value(c.digits_raw, cfg, separator=c.separator)
        if not parsed.ok:
            rejected.append({"source": c.source, "digits": c.digits_raw,
                             "reason": f"unparseable: {parsed.reason}"})
            continue
        geo = geometric_score(c, cfg)
        # penalty is in token-height units; bring it to the scale of this candidate's score
        scale = geo / max(1e-6, c.avg_h)
        ranked.append(ScoredCandidate(
            candidate=c, parsed=parsed, geo=geo,
            penalty=continuity_penalty(parsed.value, reference, cfg) * scale,
        ))
    ranked.sort(key=lambda s: _rank_key(s, cfg))
    return ranked, rejected
