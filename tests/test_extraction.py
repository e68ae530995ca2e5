import sys
import unittest
from pathlib import Path

APP_ROOT = Path(__file__).resolve().parents[1]
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from extraction.candidates import ROW, Candidate  # noqa: E402
from extraction.kinds import KINDS  # noqa: E402
from extraction.orchestrator import extract_reading  # noqa: E402
from extraction.scoring import continuity_penalty, score_candidates  # noqa: E402
from tests.synth import hour_meter_page, page, word  # noqa: E402

HORI = KINDS["horimetro"]


class HourMeterTests(unittest.TestCase):
    def test_detached_tenths_digit(self) -> None:
        r = extract_reading(hour_meter_page("0364", "7"), "horimetro")
        self.assertEqual(r.value, 364.7)
        self.assertEqual(r.best_input_label, "364,7")
        self.assertEqual([t.text for t in r.used_tokens], ["0364", "7"])
        self.assertEqual(r.debug_trace["strategy"], "long-token")
        self.assertEqual(r.debug_trace["note"], "ok")

    def test_six_digit_counter_with_detached_tenths(self) -> None:
        p = page(word("012345", 300, 400, 300, 60), word("6", 610, 402, 30, 56))
        r = extract_reading(p, "horimetro")
        self.assertEqual(r.value, 12345.6)
        self.assertEqual(r.best_input_label, "12345,6")
        self.assertEqual([t.text for t in r.used_tokens], ["012345", "6"])

    def test_stray_digit_on_the_same_line_is_not_joined(self) -> None:
        digits = [word(d, 400 + i * 36, 300, 24, 40) for i, d in enumerate("12345")]
        p = page(word("8", 20, 300, 24, 40), *digits)
        r = extract_reading(p, "horimetro")
        self.assertEqual(r.value, 1234.5)
        self.assertEqual([t.text for t in r.used_tokens], list("12345"))
        self.assertIn({"source": ROW, "digits": "8", "reason": "digit count", "n": 1},
                      r.debug_trace["rejected"])

    def test_scale_dial_row_is_rejected(self) -> None:
        # big numerals with gaps under 2.2 * h stay one sequence spanning 80% of the width
        p = page(*[word(d, x, 300, 30, 100) for d, x in zip("01234", (100, 300, 500, 700, 870))])
        r = extract_reading(p, "horimetro")
        self.assertIsNone(r.value)
        self.assertEqual(r.best_input_label, "")
        self.assertEqual(r.debug_trace["note"], "no candidates")
        reasons = [x["reason"] for x in r.debug_trace["rejected"]]
        self.assertTrue(any(x.startswith("scale dial") for x in reasons), reasons)

    def test_row_fallback_joins_split_tokens(self) -> None:
        p = page(word("12", 300, 400, 60, 60), word("34", 365, 400, 60, 60), word("5", 430, 400, 30, 60))
        r = extract_reading(p, "horimetro")
        self.assertEqual(r.value, 1234.5)
        self.assertEqual(r.debug_trace["strategy"], ROW)

    def test_continuity_prefers_value_near_reference(self) -> None:
        p = page(word("12000", 300, 400, 250, 60), word("99990", 300, 200, 250, 62))
        self.assertEqual(extract_reading(p, "horimetro").value, 9999.0)
        r = extract_reading(p, "horimetro", reference=1205.3)
        self.assertEqual(r.value, 1200.0)
        self.assertEqual(r.debug_trace["reference"], 1205.3)

    def test_round_trip_detached_tenths(self) -> None:
        for v in (364.7, 1205.3, 99999.9):
            ip = int(v)
            r = extract_reading(hour_meter_page(f"{ip:04d}", str(round((v - ip) * 10))), "horimetro")
            self.assertAlmostEqual(r.value, v, delta=1e-9)
        p = page(word("045", 200, 300, 240, 100), word("6", 450, 300, 70, 100), width=1000, height=1000)
        self.assertAlmostEqual(extract_reading(p, "abastecimento").value, 45.6, delta=1e-9)

    def test_letters_only_page(self) -> None:
        r = extract_reading(page(word("HOURS", 10, 10, 100, 30)), "horimetro")
        self.assertIsNone(r.value)
        self.assertEqual(r.debug_trace["note"], "no digit tokens")

    def test_deterministic(self) -> None:
        p = page(word("12000", 300, 400, 250, 60), word("99990", 300, 200, 250, 62), word("3", 560, 400, 30, 60))
        a = extract_reading(p, "horimetro", reference=1205.3, variant_name="v")
        b = extract_reading(p, "horimetro", reference=1205.3, variant_name="v")
        self.assertEqual(a.value, b.value)
        self.assertEqual(a.debug_trace, b.debug_trace)

    def test_used_tokens_come_from_input(self) -> None:
        p = hour_meter_page()
        r = extract_reading(p, "horimetro")
        texts = {a["text"] for a in p.annotations}
        self.assertTrue(all(t.text in texts for t in r.used_tokens))


class FuelPumpTests(unittest.TestCase):
    def _page(self, *words):
        return page(*words, width=1000, height=1000)

    def test_amount_with_detached_tenths_ignores_totalizer(self) -> None:
        p = self._page(word("123", 200, 200, 240, 100), word("4", 450, 200, 70, 100),
                       word("98765", 200, 880, 300, 40))
        r = extract_reading(p, "abastecimento")
        self.assertEqual(r.value, 123.4)
        self.assertEqual(r.best_input_label, "123,4")

    def test_three_digits_padded(self) -> None:
        r = extract_reading(self._page(word("456", 200, 300, 240, 100)), "abastecimento")
        self.assertEqual(r.value, 45.6)
        self.assertEqual(r.best_input_label, "45,6")

    def test_tie_prefers_higher_on_photo(self) -> None:
        p = self._page(word("111", 200, 500, 240, 100), word("222", 200, 200, 240, 100))
        self.assertEqual(extract_reading(p, "abastecimento").value, 22.2)

    def test_reference_is_ignored(self) -> None:
        p = self._page(word("456", 200, 300, 240, 100))
        r = extract_reading(p, "abastecimento", reference=999.0)
        self.assertEqual(r.value, 45.6)
        self.assertIsNone(r.debug_trace["reference"])


class OdometerTests(unittest.TestCase):
    def _page(self, *words, full_text=None):
        return page(word("20", 100, 100, 40, 30), word("40", 300, 80, 40, 30), *words,
                    full_text=full_text, width=1000, height=1000)

    def test_plain_reading(self) -> None:
        r = extract_reading(self._page(word("123456", 300, 600, 300, 50)), "odometro")
        self.assertEqual(r.value, 123456)
        self.assertEqual(r.best_input_label, "123456")

    def test_implied_trailing_zero(self) -> None:
        r = extract_reading(self._page(word("045120", 300, 600, 300, 50)), "odometro")
        self.assertEqual(r.value, 4512)

    def test_separator_in_token(self) -> None:
        r = extract_reading(self._page(word("12345,6", 300, 600, 300, 50)), "odometro")
        self.assertEqual(r.value, 12345)

    def test_band_drops_scale_row_and_rows_read_the_drum(self) -> None:
        scale = [word(n, 300 + i * 70, 100, 60, 60) for i, n in enumerate(("20", "40", "60", "80"))]
        drum = [word(d, 300 + i * 35, 600, 30, 50) for i, d in enumerate("045127")]
        p = page(*scale, *drum, width=1000, height=1000)
        r = extract_reading(p, "odometro")
        self.assertEqual(r.value, 45127)
        self.assertEqual(r.debug_trace["strategy"], ROW)
        self.assertEqual([t.text for t in r.used_tokens], list("045127"))
        band = [x for x in r.debug_trace["rejected"] if x["reason"] == "outside vertical band"]
        self.assertEqual([x["digits"] for x in band], ["20406080"])

    def test_separator_in_full_text(self) -> None:
        r = extract_reading(self._page(word("1234567", 300, 600, 300, 50), full_text="20 40 1234567 ,"),
                            "odometro")
        self.assertEqual(r.value, 123456)


class ScorerTests(unittest.TestCase):
    def _cand(self, digits, avg_h, index, cy=100.0):
        return Candidate(digits_raw=digits, used_tokens=[], avg_h=avg_h, y_norm=0.5,
                         source="long-token", cy=cy, index=index)

    def test_penalty_components(self) -> None:
        self.assertEqual(continuity_penalty(1200.0, None, HORI), 0.0)
        self.assertAlmostEqual(continuity_penalty(1210.0, 1205.0, HORI), 0.05)
        self.assertAlmostEqual(continuity_penalty(1200.0, 1205.0, HORI), 15.05)
        self.assertAlmostEqual(continuity_penalty(9999.0, 1205.3, HORI), 1020.0)
        self.assertEqual(continuity_penalty(1200.0, 1205.0, KINDS["odometro"]), 0.0)

    def test_row_penalty_scales_with_row_score(self) -> None:
        def row(digits, avg_h, index):
            return Candidate(digits_raw=digits, used_tokens=[], avg_h=avg_h, y_norm=0.0,
                             source=ROW, compactness=1.0, index=index)

        backward = row("11000", 64, 0)    # geo 64 * 6 = 384, 105.3 h below the reference
        forward = row("12100", 60, 1)     # geo 60 * 6 = 360, just above it
        ranked, _ = score_candidates([backward, forward], HORI, reference=1205.3)
        self.assertEqual(ranked[0].candidate.digits_raw, "12100")
        back = next(s for s in ranked if s.candidate is backward)
        self.assertAlmostEqual(back.penalty, continuity_penalty(1100.0, 1205.3, HORI) * 6)

    def test_unparseable_candidates_are_rejected(self) -> None:
        ranked, rejected = score_candidates([self._cand("123", 60, 0), self._cand("03647", 50, 1)], HORI)
        self.assertEqual([s.parsed.value for s in ranked], [364.7])
        self.assertEqual(rejected[0]["digits"], "123")
        self.assertTrue(rejected[0]["reason"].startswith("unparseable"))

    def test_tie_break_longer_then_first_generated(self) -> None:
        ranked, _ = score_candidates([self._cand("1205", 60, 0), self._cand("12053", 60, 1)], HORI)
        self.assertEqual(ranked[0].candidate.digits_raw, "12053")
        ranked, _ = score_candidates([self._cand("1205", 60, 0), self._cand("1206", 60, 1)], HORI)
        self.assertEqual(ranked[0].candidate.index, 0)


if __name__ == "__main__":
    unittest.main()
