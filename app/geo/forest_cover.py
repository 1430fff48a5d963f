"""
Recorded forest cover per state, used to seed forest_stats.

Figures are from the India State of Forest Report 2021 (Forest Survey of
India): forest cover in km² and the change since the 2019 assessment.
Keys match gazetteer keys. Jammu and Kashmir is reported as one union
territory and has no per-key split, so those two keys carry no figure.
"""
from typing import Dict, Optional, Tuple

# gazetteer key -> (forest cover km², change since previous assessment km²)
STATE_FOREST_COVER: Dict[str, Tuple[float, float]] = {
    "madhya pradesh": (77493.0, 11.0),
    "chhattisgarh": (55717.0, 106.0),
    "jharkhand": (23721.0, 110.0),
    "odisha": (52156.0, 537.0),
    "maharashtra": (50798.0, 20.0),
    "karnataka": (38730.0, 155.0),
    "kerala": (21253.0, 109.0),
    "tamil nadu": (26419.0, 55.0),
    "andhra pradesh": (29784.0, 647.0),
    "telangana": (21214.0, 632.0),
    "assam": (28312.0, -15.0),
    "meghalaya": (17046.0, -73.0),
    "arunachal pradesh": (66431.0, -257.0),
    "nagaland": (12251.0, -235.0),
    "manipur": (16598.0, -249.0),
    "mizoram": (17820.0, -186.0),
    "tripura": (7722.0, -4.0),
    "sikkim": (3341.0, -1.0),
    "uttarakhand": (24305.0, 2.0),
    "himachal pradesh": (15443.0, 9.0),
    "rajasthan": (16655.0, 25.0),
    "gujarat": (14926.0, 69.0),
    "uttar pradesh": (14818.0, 12.0),
    "west bengal": (16832.0, 0.0),
    "bihar": (7381.0, 75.0),
    "punjab": (1847.0, -2.0),
    "haryana": (1603.0, 1.0),
    "goa": (2244.0, 7.0),
}


def trend_for(change_sqkm: float) -> str:
    if change_sqkm > 0:
        return "increasing"
    if change_sqkm < 0:
        return "decreasing"
    return "stable"


def cover_for(key: str) -> Tuple[Optional[float], Optional[str]]:
    """(forest_cover_sqkm, trend) for a gazetteer key, or (None, None) if unrecorded."""
    figures = STATE_FOREST_COVER.get(key)
    if figures is None:
        return None, None
    cover, change = figures
    return cover, trend_for(change)
