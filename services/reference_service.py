# services/reference_service.py
# Last known hour-meter value per asset, read from a JSON file.
import json
import logging
import math
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


def _as_number(v) -> Optional[float]:
    if isinstance(v, dict):
        v = v.get("value")
    if isinstance(v, bool):
        return None
    if isinstance(v, str):
        v = v.strip().replace(",", ".")
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


class JsonReferenceStore:
    """``{"EH-02": 1205.3, "CE-02": {"value": 873.0, "ts": "..."}}``.

    Read on every lookup so an external writer can update the file while the service runs.
    Missing file, missing asset or a non-numeric value all mean "no reference".
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            logger.debug(f"Reference file not found: {self.path}")
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to read reference file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def lookup(self, asset_id: Optional[str]) -> Optional[float]:
        if not asset_id:
            return None
        return _as_number(self._load().get(str(asset_id).strip()))
