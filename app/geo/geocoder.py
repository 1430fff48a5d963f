"""
Free-text geocoder for news articles.

Finds the first gazetteer state named in the text and returns its centroid
with a small random offset so markers for the same state do not stack.
"""
import random
from dataclasses import dataclass
from typing import Optional

from app.geo.gazetteer import STATE_COORDS, display_name

# Offsets are drawn from [-JITTER_DEGREES, +JITTER_DEGREES)
JITTER_DEGREES = 0.25


@dataclass(frozen=True)
class GeoMatch:
    state: str
    lat: float
    lng: float


def _jitter(rng: Optional[random.Random]) -> float:
    draw = rng.random() if rng is not None else random.random()
    return (draw - 0.5) * 2 * JITTER_DEGREES


def extract_state(text: Optional[str], rng: Optional[random.Random] = None) -> Optional[GeoMatch]:
    """
    Extract a probable Indian state from free text.

    Matching is a case-insensitive substring search in gazetteer order, so
    the first gazetteer entry present wins, not the first mention in the text.

    Args:
        text: Title, description and body concatenated
        rng: Random source for the jitter (defaults to the module RNG)

    Returns:
        GeoMatch with a jittered centroid, or None if no state is named
    """
    if not text:
        return None

    lower = text.lower()
    for key, (lat, lng) in STATE_COORDS.items():
        if key in lower:
            return GeoMatch(
                state=display_name(key),
                lat=lat + _jitter(rng),
                lng=lng + _jitter(rng),
            )
    return None
