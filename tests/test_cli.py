import contextlib
import io
import json
import sys
import tempfile
import unittest
from pathlib import Path

APP_ROOT = Path(__file__).resolve().parents[1]
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

import read_gauge  # noqa: E402
from tests.synth import word  # noqa: E402


class ReadGaugeCliTests(unittest.TestCase):
    def _run(self, pages, *args):
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "pages.json"
            path.write_text(json.dumps(pages), encoding="utf-8")
            out = io.StringIO()
            with contextlib.redirect_stdout(out):
                code = read_gauge.main(["--tokens", str(path), *args])
        return code, out.getvalue()

    def test_replay_prints_json(self) -> None:
        pages = {"pages": [{"name": "p", "tokens": [word("0364", 300, 400, 200, 60),
                                                     word("7", 510, 402, 30, 56)]}]}
        code, out = self._run(pages, "--kind", "horimetro")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["value"], 364.7)

    def test_brief_and_no_reading(self) -> None:
        code, out = self._run([{"tokens": [word("456", 200, 300, 240, 100)], "height": 1000}],
                              "--kind", "abastecimento", "--brief")
        self.assertEqual((code, out.strip()), (0, "45,6"))
        code, out = self._run([{"tokens": [word("RPM", 10, 10, 50, 20)]}], "--kind", "odometro", "--brief")
        self.assertEqual((code, out.strip()), (1, "(no reading)"))

    def test_missing_image_file(self) -> None:
        err = io.StringIO()
        with contextlib.redirect_stderr(err):
            code = read_gauge.main(["/nonexistent/gauge.jpg", "--kind", "horimetro"])
        self.assertEqual(code, 2)
        self.assertIn("Cannot read image", err.getvalue())


if __name__ == "__main__":
    unittest.main()
