from __future__ import annotations

from deep_research.models.source_tiers import SourceTiers
from deep_research.tools.web_utils import extract_host

LENGTH_BOOST_DIVISOR = 10000.0
MAX_LENGTH_BOOST = 0.15


def length_boost(content_length: int) -> float:
    return min(max(content_length, 0) / LENGTH_BOOST_DIVISOR, MAX_LENGTH_BOOST)


class ReliabilityScorer:
    """Deterministic source score from host reputation plus a small length bonus."""

    def __init__(self, tiers: SourceTiers | None = None):
        self.tiers = tiers or SourceTiers.default()

    def score(self, url: str, content_length: int) -> float:
        base = self.tiers.base_score(extract_host(url))
        return max(0.0, min(base + length_boost(content_length), 1.0))
