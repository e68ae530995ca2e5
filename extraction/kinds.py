# extraction/kinds.py
# Per-gauge thresholds. Every magic number the readers depend on lives here.
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

HORIMETRO = "horimetro"
ABASTECIMENTO = "abastecimento"
ODOMETRO = "odometro"


@dataclass(frozen=True)
class GaugeKindConfig:
    name: str
    # integer digits expected on the display, fraction digits after it
    min_digits: int
    max_digits: int
    fraction_digits: int
    plausible_min: float
    plausible_max: float
    # vertical band filter on normalized cy (0 = top of the photo)
    y_norm_min: float = 0.0
    y_norm_max: float = 1.0
    # "bigness": token height relative to the tallest digit token
    big_token_ratio: float = 0.70
    row_token_ratio: float = 0.66
    long_token_digits: Tuple[int, int] = (4, 6)
    row_digits: Tuple[int, int] = (4, 7)
    # a row splits into separate sequences where the gap exceeds min(h) * ratio
    sequence_gap_ratio: float = 2.2
    # anti-scale-dial filter, None disables
    max_compactness: Optional[float] = None
    max_span_norm: Optional[float] = None
    # detached fractional digit search
    attach_decimal: bool = False
    # longest anchor still missing its fraction digit
    decimal_max_anchor_digits: int = 0
    decimal_dy_min: float = 10.0
    decimal_dy_ratio: float = 0.8
    decimal_gap_min: float = 55.0
    decimal_gap_ratio: float = 2.8
    # continuity with the last known value (cumulative counters); penalties are in
    # token-height units and get multiplied by geo / avg_h when scored
    uses_reference: bool = False
    continuity_k: float = 0.01
    backward_penalty: float = 15.0
    jump_limit: float = 2000.0
    jump_penalty: float = 1000.0
    # among equal scores, prefer the candidate nearer the top of the photo
    prefer_higher_on_tie: bool = False
    strategies: Tuple[str, ...] = ("long-token", "row")

    @property
    def total_digits(self) -> int:
        return self.max_digits + self.fraction_digits


KINDS: Dict[str, GaugeKindConfig] = {
    HORIMETRO: GaugeKindConfig(
        name=HORIMETRO,
        min_digits=4, max_digits=6, fraction_digits=1,
        plausible_min=0, plausible_max=1_000_000,
        big_token_ratio=0.70, row_token_ratio=0.66,
        long_token_digits=(4, 6), row_digits=(4, 7),
        max_compactness=3.4, max_span_norm=0.62,
        attach_decimal=True, decimal_max_anchor_digits=6,
        uses_reference=True,
        strategies=("long-token", "row"),
    ),
    ABASTECIMENTO: GaugeKindConfig(
        name=ABASTECIMENTO,
        min_digits=3, max_digits=3, fraction_digits=1,
        plausible_min=0, plausible_max=1200,
        # totalizer readout sits near the bottom of the pump display
        y_norm_max=0.80,
        big_token_ratio=0.70, row_token_ratio=0.60,
        long_token_digits=(3, 4), row_digits=(3, 6),
        attach_decimal=True, decimal_max_anchor_digits=3,
        prefer_higher_on_tie=True,
        strategies=("token", "row"),
    ),
    ODOMETRO: GaugeKindConfig(
        name=ODOMETRO,
        min_digits=4, max_digits=8, fraction_digits=0,
        plausible_min=0, plausible_max=99_999_999,
        # scale numerals of the speedometer sit near the top
        y_norm_min=0.25,
        big_token_ratio=0.65, row_token_ratio=0.65,
        long_token_digits=(4, 9), row_digits=(4, 9),
        strategies=("long-token", "row"),
    ),
}


def get_kind(name: str) -> GaugeKindConfig:
    key = (name or "").strip().lower()
    if key not in KINDS:
        raise ValueError(f"Unknown gauge kind: {name!r}. Expected one of: {', '.join(KINDS)}")
    return KINDS[key]
