# extraction/value_parser.py
# Chosen digit string -> bounded numeric value + form label.
from dataclasses import dataclass
from typing import Optional, Union

from extraction.kinds import ABASTECIMENTO, HORIMETRO, ODOMETRO, GaugeKindConfig

Number = Union[int, float]


@dataclass
class ParsedValue:
    value: Optional[Number]
    label: str = ""
    digits: str = ""
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.value is not None


def _reject(reason: str, digits: str = "") -> ParsedValue:
    return ParsedValue(value=None, digits=digits, reason=reason)


def format_label(value: Number, fraction_digits: int) -> str:
    """Comma decimal, no thousands separator: 364.7 -> '364,7'; integers stay plain."""
    if fraction_digits <= 0:
        return str(int(value))
    return f"{value:.{fraction_digits}f}".replace(".", ",")


def _in_bounds(value: Number, cfg: GaugeKindConfig) -> bool:
    return cfg.plausible_min <= value <= cfg.plausible_max


def _parse_horimetro(digits: str, cfg: GaugeKindConfig) -> ParsedValue:
    if len(digits) < cfg.min_digits or len(digits) > cfg.total_digits:
        return _reject(f"expected {cfg.min_digits}-{cfg.total_digits} digits, got {len(digits)}", digits)
    if len(digits) >= cfg.min_digits + 1:
        value = int(digits[:-1]) + int(digits[-1]) / 10.0
    else:
        value = float(int(digits))
    return ParsedValue(value=round(value, 1), digits=digits)


def coerce_fuel_digits(digits: str) -> Optional[str]:
    """3 digits -> left-padded, longer -> last 4, shorter -> None."""
    if len(digits) < 3:
        return None
    if len(digits) == 3:
        return "0" + digits
    return digits[-4:]


def _parse_abastecimento(digits: str, cfg: GaugeKindConfig) -> ParsedValue:
    norm = coerce_fuel_digits(digits)
    if norm is None:
        return _reject(f"cannot coerce {len(digits)} digits to 4", digits)
    value = int(norm[:3]) + int(norm[3]) / 10.0
    return ParsedValue(value=round(value, 1), digits=norm)


def odometer_digits(digits: str, separator: bool) -> str:
    if separator and len(digits) >= 6:
        # separated tenths are not part of an odometer reading
        return digits[:-1]
    if not separator and len(digits) == 6 and digits.endswith("0"):
        # implied ",0" captured as a sixth digit
        return digits[:-1]
    return digits


def _parse_odometro(digits: str, cfg: GaugeKindConfig, separator: bool) -> ParsedValue:
    norm = odometer_digits(digits, separator)
    if not norm:
        return _reject("empty after separator handling", digits)
    return ParsedValue(value=int(norm), digits=norm)


def parse_value(digits: str, cfg: GaugeKindConfig, separator: bool = False) -> ParsedValue:
    """Never raises for bad input: structural and range failures come back with a reason."""
    digits = "".join(ch for ch in (digits or "") if ch.isdigit())
    if not digits:
        return _reject("empty digit string")

    if cfg.name == HORIMETRO:
        parsed = _parse_horimetro(digits, cfg)
    elif cfg.name == ABASTECIMENTO:
        parsed = _parse_abastecimento(digits, cfg)
    elif cfg.name == ODOMETRO:
        parsed = _parse_odometro(digits, cfg, separator)
    else:
        return _reject(f"no parser for kind {cfg.name!r}", digits)

    if not parsed.ok:
        return parsed
    if not _in_bounds(parsed.value, cfg):
        return _reject(f"value {parsed.value} outside [{cfg.plausible_min}, {cfg.plausible_max}]", parsed.digits)
    parsed.label = format_label(parsed.value, cfg.fraction_digits)
    return parsed
