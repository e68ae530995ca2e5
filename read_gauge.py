#!/usr/bin/env python3
# read_gauge.py
# Command-line gauge reader: photo (or saved OCR pages) -> JSON reading.
import argparse
import json
import logging
import sys

from extraction.kinds import KINDS
from services.errors import GaugeOcrError
from services.ocr_service import run_gauge_ocr, run_token_replay
from settings import load_settings


def _load_pages(path: str) -> list:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    # a single page object or a list of them
    return data if isinstance(data, list) else data.get("pages", [data])


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Read an hour-meter, fuel pump or odometer value from a photo")
    ap.add_argument("image", nargs="?", help="Input photo path or http(s) URL")
    ap.add_argument("--kind", required=True, choices=sorted(KINDS), help="Gauge kind")
    ap.add_argument("--reference", type=float, default=None, help="Last known hour-meter value (horimetro only)")
    ap.add_argument("--asset-id", default=None, help="Asset id for the reference lookup file")
    ap.add_argument("--backend", choices=["vision", "tesseract"], default=None,
                    help="OCR backend (default: OCR_BACKEND env or 'vision')")
    ap.add_argument("--tokens", default=None, help="Replay saved OCR pages (JSON) instead of calling OCR")
    ap.add_argument("--brief", action="store_true", help="Print only the form label")
    args = ap.parse_args(argv)

    settings = load_settings()
    logging.basicConfig(level=settings.log_level, stream=sys.stderr,
                        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if not args.image and not args.tokens:
        ap.error("give an image or --tokens")

    try:
        if args.tokens:
            res = run_token_replay(args.kind, _load_pages(args.tokens), reference_value=args.reference)
        else:
            is_url = args.image.startswith(("http://", "https://"))
            res = run_gauge_ocr(
                kind=args.kind,
                image_url=args.image if is_url else None,
                image_path=None if is_url else args.image,
                reference_value=args.reference,
                asset_id=args.asset_id,
                backend=args.backend,
                settings=settings,
            )
    except (GaugeOcrError, FileNotFoundError) as e:
        print(f"[error] {e}", file=sys.stderr)
        return 2

    if args.brief:
        print(res["best_input"] or "(no reading)")
    else:
        print(json.dumps(res, indent=2, ensure_ascii=False))
    return 0 if res["value"] is not None else 1


if __name__ == "__main__":
    sys.exit(main())
