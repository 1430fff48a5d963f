"""
GFW integrated alerts: query construction and row mapping.

Each result row carries latitude, longitude, the alert date and a confidence
label ("high" / "highest" / "nominal"). Rows map onto forest_alerts as
deforestation alerts from GFW_GLAD.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from app.core.models import AlertType, DataSource, Severity
from app.geo.gazetteer import parse_coordinates

logger = logging.getLogger(__name__)

DATASET = "gfw_integrated_alerts"

DATE_FIELD = "gfw_integrated_alerts__date"
CONFIDENCE_FIELD = "gfw_integrated_alerts__confidence"

ALERT_QUERY_TEMPLATE = (
    "SELECT latitude, longitude, {date_field}, {confidence_field}, "
    "umd_tree_cover_density_2000__threshold "
    "FROM results "
    "WHERE iso = '{iso}' AND {date_field} >= '{start}' AND {date_field} <= '{end}' "
    "LIMIT {limit}"
)

# Only an explicit "high" label counts as high severity
HIGH_CONFIDENCE_LABEL = "high"
HIGH_CONFIDENCE = 0.9
DEFAULT_CONFIDENCE = 0.6


def build_alert_query(start: date, end: date, iso: str = "IND", limit: int = 200) -> str:
    """SQL for alerts in [start, end] for one ISO3 country."""
    return ALERT_QUERY_TEMPLATE.format(
        date_field=DATE_FIELD,
        confidence_field=CONFIDENCE_FIELD,
        iso=iso,
        start=start.isoformat(),
        end=end.isoformat(),
        limit=int(limit),
    )


def parse_alert_date(value: Any) -> Optional[datetime]:
    """Alert date ("YYYY-MM-DD", optionally with a time part) at midnight UTC."""
    if not value:
        return None
    try:
        day = date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None
    return datetime(day.year, day.month, day.day)


def parse_gfw_alerts(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Map GFW result rows to forest_alerts records.

    Rows without usable coordinates or date are skipped.

    Args:
        rows: Raw rows from GFWClient.fetch_alerts()

    Returns:
        List of records ready for ForestStore.insert_alerts()
    """
    parsed_records = []

    for row in rows:
        coordinates = parse_coordinates(row.get("latitude"), row.get("longitude"))
        if coordinates is None:
            logger.warning(f"Skipping GFW row with invalid coordinates: {row}")
            continue
        latitude, longitude = coordinates

        detected_at = parse_alert_date(row.get(DATE_FIELD))
        if detected_at is None:
            logger.warning(f"Skipping GFW row with invalid date: {row.get(DATE_FIELD)!r}")
            continue

        is_high = row.get(CONFIDENCE_FIELD) == HIGH_CONFIDENCE_LABEL
        parsed_records.append({
            "alert_type": AlertType.DEFORESTATION.value,
            "severity": Severity.HIGH.value if is_high else Severity.MEDIUM.value,
            "latitude": latitude,
            "longitude": longitude,
            "confidence": HIGH_CONFIDENCE if is_high else DEFAULT_CONFIDENCE,
            "data_source": DataSource.GFW_GLAD.value,
            "detected_at": detected_at,
            "raw_data": row,
        })

    logger.info(f"Parsed {len(parsed_records)} GFW alert records")
    return parsed_records
