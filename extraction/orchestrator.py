# extraction/orchestrator.py
# One OCR page -> Reading, and the sequential variant loop with early exit.
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Union

from extraction.candidates import ExtractionContext, iter_strategies
from extraction.kinds import GaugeKindConfig, get_kind
from extraction.scoring import score_candidates
from extraction.tokens import OcrPage, Token, digit_tokens, page_size, tokens_from_page
from extraction.value_parser import parse_value

TOP_N = 5

Number = Union[int, float]


@dataclass
class Reading:
    value: Optional[Number]
    best_input_label: str
    used_tokens: List[Token]
    kind: str
    variant_name: Optional[str]
    debug_trace: dict = field(default_factory=dict)


@dataclass
class ImageVariant:
    name: str
    content: bytes


class VariantState(str, Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass
class GaugeResult:
    kind: str
    value: Optional[Number]
    best_input_label: str
    used_tokens: List[Token]
    variant_name: Optional[str]
    state: VariantState
    trace: List[dict] = field(default_factory=list)
    reference_value: Optional[float] = None

    @property
    def attempts(self) -> int:
        return len(self.trace)

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "kind": self.kind,
            "value": self.value,
            "best_input": self.best_input_label,
            "used_tokens": [t.to_dict() for t in self.used_tokens],
            "variant_name": self.variant_name,
            "state": self.state.value,
            "attempts": self.attempts,
            "reference_value": self.reference_value,
            "trace": self.trace,
        }


# ===================== Single page =====================
def extract_reading(page: OcrPage, kind: Union[str, GaugeKindConfig],
                    reference: Optional[float] = None,
                    variant_name: Optional[str] = None) -> Reading:
    """Pure token-geometry pipeline for one OCR response. Never raises on bad geometry."""
    cfg = kind if isinstance(kind, GaugeKindConfig) else get_kind(kind)
    tokens = tokens_from_page(page)
    digits = digit_tokens(tokens)
    page_w, page_h = page_size(page, tokens)
    trace = {
        "variant": variant_name,
        "raw_text": page.full_text,
        "tokens": len(tokens),
        "digit_tokens": len(digits),
        "page": [round(page_w, 1), round(page_h, 1)],
        "reference": reference if cfg.uses_reference else None,
        "strategies": [],
        "scored": [],
        "rejected": [],
        "chosen": None,
        "value": None,
    }

    def _fail(note: str) -> Reading:
        trace["note"] = note
        return Reading(value=None, best_input_label="", used_tokens=[], kind=cfg.name,
                       variant_name=variant_name, debug_trace=trace)

    if not digits:
        return _fail("no digit tokens")

    ctx = ExtractionContext(cfg=cfg, tokens=digits, page_w=page_w, page_h=page_h,
                            full_text=page.full_text or "")
    best = None
    saw_candidates = False
    for name, cands, dbg in iter_strategies(ctx):
        trace["strategies"].append(dbg)
        if not cands:
            continue
        saw_candidates = True
        ranked, rejected = score_candidates(cands, cfg, reference if cfg.uses_reference else None)
        ctx.rejected.extend(rejected)
        if ranked:
            trace["scored"] = [s.to_dict() for s in ranked[:TOP_N]]
            trace["strategy"] = name
            best = ranked[0]
            break
    trace["rejected"] = ctx.rejected

    if best is None:
        return _fail("all candidates unparseable" if saw_candidates else "no candidates")

    cand = best.candidate
    # final guard, independent of whatever the scorer accepted
    parsed = parse_value(cand.digits_raw, cfg, separator=cand.separator)
    if not parsed.ok:
        return _fail(f"rejected: {parsed.reason}")

    trace.update(note="ok", chosen=cand.digits_raw, value=parsed.value, source=cand.source)
    return Reading(value=parsed.value, best_input_label=parsed.label, used_tokens=list(cand.used_tokens),
                   kind=cfg.name, variant_name=variant_name, debug_trace=trace)


# ===================== Variant loop =====================
OcrCall = Callable[[bytes], OcrPage]


class VariantOrchestrator:
    """Runs variants strictly in order and stops at the first one with a value.

    OCR is called once per attempted variant, never retried; OCR/provider exceptions
    propagate untouched. Once OCR data exists the result is always structured.
    """

    def __init__(self, ocr: OcrCall, kind: Union[str, GaugeKindConfig],
                 reference: Optional[float] = None):
        self.ocr = ocr
        self.cfg = kind if isinstance(kind, GaugeKindConfig) else get_kind(kind)
        self.reference = reference
        self.state = VariantState.PENDING
        self.attempt_index: Optional[int] = None

    def run(self, variants: Sequence[ImageVariant]) -> GaugeResult:
        trace: List[dict] = []
        last: Optional[Reading] = None
        for i, variant in enumerate(variants):
            self.state = VariantState.ATTEMPTING
            self.attempt_index = i
            page = self.ocr(variant.content)
            last = extract_reading(page, self.cfg, self.reference, variant.name)
            trace.append(last.debug_trace)
            if last.value is not None:
                self.state = VariantState.SUCCEEDED
                return self._result(last, trace)
        self.state = VariantState.EXHAUSTED
        return self._result(last, trace)

    def _result(self, reading: Optional[Reading], trace: List[dict]) -> GaugeResult:
        ref = self.reference if self.cfg.uses_reference else None
        if reading is None:
            return GaugeResult(kind=self.cfg.name, value=None, best_input_label="", used_tokens=[],
                               variant_name=None, state=self.state, trace=trace, reference_value=ref)
        return GaugeResult(kind=self.cfg.name, value=reading.value, best_input_label=reading.best_input_label,
                           used_tokens=reading.used_tokens, variant_name=reading.variant_name,
                           state=self.state, trace=trace, reference_value=ref)


def replay_pages(pages: Sequence[tuple], kind: Union[str, GaugeKindConfig],
                 reference: Optional[float] = None) -> GaugeResult:
    """Variant loop over already-OCR'd ``(name, OcrPage)`` pairs; no OCR calls."""
    orch = VariantOrchestrator(ocr=lambda page: page, kind=kind, reference=reference)
    return orch.run([ImageVariant(name=name, content=page) for name, page in pages])
