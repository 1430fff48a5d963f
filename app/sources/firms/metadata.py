"""
FIRMS fire CSV parsing.

Columns are located by header name, so feeds with extra or reordered columns
(VIIRS vs MODIS) parse the same way. VIIRS confidence is a one-letter code:
h (high), n (nominal), l (low).
"""
import csv
import io
import logging
from datetime import datetime
from itertools import islice
from typing import Any, Dict, List, Optional, Tuple

from app.core.models import AlertType, DataSource, Severity
from app.geo.gazetteer import parse_coordinates

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("latitude", "longitude", "confidence", "acq_date", "acq_time")


# Confidence code -> (severity, numeric confidence)
CONFIDENCE_LEVELS: Dict[str, Tuple[Severity, float]] = {
    "h": (Severity.HIGH, 0.9),
    "n": (Severity.MEDIUM, 0.7),
}
DEFAULT_CONFIDENCE_LEVEL: Tuple[Severity, float] = (Severity.LOW, 0.4)


def map_confidence(code: Optional[str]) -> Tuple[Severity, float]:
    """Severity and numeric confidence for a FIRMS confidence code."""
    return CONFIDENCE_LEVELS.get((code or "").strip().lower(), DEFAULT_CONFIDENCE_LEVEL)


def parse_acquisition_time(acq_date: str, acq_time: str) -> Optional[datetime]:
    """
    Combine acq_date (YYYY-MM-DD) and acq_time (HHMM, leading zeros often
    dropped, e.g. "45" is 00:45) into a naive UTC datetime.
    """
    hhmm = (acq_time or "").strip().zfill(4)
    try:
        return datetime.strptime(f"{acq_date.strip()} {hhmm}", "%Y-%m-%d %H%M")
    except (AttributeError, ValueError):
        return None


def parse_fire_csv(text: str, limit: int = 200) -> List[Dict[str, Any]]:
    """
    Parse a FIRMS CSV body into forest_alerts records.

    Only the first `limit` data rows are considered. Rows with unparseable
    coordinates or acquisition time are skipped.

    Returns:
        List of records ready for ForestStore.insert_alerts(); empty when the
        body has no data rows or lacks a required column
    """
    lines = [line for line in (text or "").strip().splitlines() if line.strip()]
    if len(lines) < 2:
        logger.info("FIRMS CSV has no data rows")
        return []

    reader = csv.reader(io.StringIO("\n".join(lines)))
    header = [name.strip().lower() for name in next(reader)]
    index = {name: i for i, name in enumerate(header)}

    missing = [col for col in REQUIRED_COLUMNS if col not in index]
    if missing:
        logger.warning(f"FIRMS CSV missing required columns: {missing}")
        return []

    def cell(values: List[str], column: str) -> Optional[str]:
        i = index.get(column)
        if i is None or i >= len(values):
            return None
        return values[i].strip()

    parsed_records = []
    for values in islice(reader, limit):
        coordinates = parse_coordinates(cell(values, "latitude"), cell(values, "longitude"))
        if coordinates is None:
            logger.debug(f"Skipping FIRMS row with invalid coordinates: {values}")
            continue
        latitude, longitude = coordinates

        detected_at = parse_acquisition_time(
            cell(values, "acq_date") or "", cell(values, "acq_time") or ""
        )
        if detected_at is None:
            logger.debug(f"Skipping FIRMS row with invalid acquisition time: {values}")
            continue

        code = cell(values, "confidence")
        severity, confidence = map_confidence(code)
        parsed_records.append({
            "alert_type": AlertType.FIRE.value,
            "severity": severity.value,
            "latitude": latitude,
            "longitude": longitude,
            "confidence": confidence,
            "data_source": DataSource.NASA_FIRMS.value,
            "detected_at": detected_at,
            "raw_data": {"frp": cell(values, "frp"), "confidence": code},
        })

    logger.info(f"Parsed {len(parsed_records)} FIRMS fire records")
    return parsed_records
