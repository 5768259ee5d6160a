"""
Fix file loading and writing.

Reads trips recorded elsewhere as CSV (one row per fix) or JSON (a list of
fix objects, or an object with a "fixes" list) and writes fixes back as JSON.
"""

import csv
import json
import logging
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError

from trip_store.data_models import Fix

logger = logging.getLogger(__name__)

# Column names accepted for each Fix field, first match wins
CSV_COLUMNS = {
    "timestamp_epoch_ms": ("timestamp_epoch_ms", "timestamp", "time_ms"),
    "latitude": ("lat", "latitude"),
    "longitude": ("lng", "lon", "longitude"),
    "speed_raw_mps": ("speed_raw_mps", "speed_mps", "speed"),
    "speed_adjusted_mps": ("speed_adjusted_mps",),
}


def _pick(row: dict, names) -> str:
    for name in names:
        value = row.get(name)
        if value is not None and value.strip() != "":
            return value
    return ""


def _read_csv(path: Path) -> List[Fix]:
    fixes = []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for line_no, row in enumerate(reader, start=2):
            try:
                timestamp = int(float(_pick(row, CSV_COLUMNS["timestamp_epoch_ms"])))
                lat = float(_pick(row, CSV_COLUMNS["latitude"]))
                lng = float(_pick(row, CSV_COLUMNS["longitude"]))
                raw_text = _pick(row, CSV_COLUMNS["speed_raw_mps"])
                raw = float(raw_text) if raw_text else 0.0
                adjusted_text = _pick(row, CSV_COLUMNS["speed_adjusted_mps"])
                adjusted = float(adjusted_text) if adjusted_text else max(raw, 0.0)
                fixes.append(Fix(
                    timestamp_epoch_ms=timestamp,
                    latitude=lat,
                    longitude=lng,
                    speed_raw_mps=raw,
                    speed_adjusted_mps=adjusted,
                ))
            except (ValueError, ValidationError) as e:
                raise ValueError(f"{path}:{line_no}: invalid fix row ({e})") from e
    return fixes


def _read_json(path: Path) -> List[Fix]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("fixes", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of fixes")

    fixes = []
    for idx, item in enumerate(data):
        try:
            fixes.append(Fix.model_validate(item))
        except ValidationError as e:
            raise ValueError(f"{path}: invalid fix at index {idx} ({e})") from e
    return fixes


def load_fixes(path: Union[str, Path]) -> List[Fix]:
    """
    Load fixes from a CSV or JSON file.

    Args:
        path: File path; '.json' is read as JSON, anything else as CSV

    Returns:
        Fixes in file order

    Raises:
        ValueError: If a row or item cannot be parsed
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if path.suffix.lower() == ".json":
        fixes = _read_json(path)
    else:
        fixes = _read_csv(path)
    logger.info(f"Loaded {len(fixes)} fixes from {path}")
    return fixes


def write_fixes_json(fixes: List[Fix], output_path: Union[str, Path]) -> str:
    """
    Write fixes as a JSON list.

    Args:
        fixes: Fixes to write
        output_path: Path for the output file ('.json' added when missing)

    Returns:
        Path to the created file
    """
    output_path = Path(output_path)
    if not output_path.suffix:
        output_path = output_path.with_suffix(".json")

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump([fix.model_dump() for fix in fixes], f, indent=2)

    logger.info(f"Wrote {len(fixes)} fixes to {output_path}")
    return str(output_path)
