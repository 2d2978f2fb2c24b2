from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from deep_research.errors import ConfigError


class TierRule(BaseModel):
    """Host pattern mapped to a base reliability score.

    ``pattern`` matches a host on label boundaries: ``nature.com`` matches
    ``nature.com`` and ``www.nature.com`` but not ``notnature.com``; ``edu``
    matches every host under the ``.edu`` suffix.
    """

    pattern: str
    score: float = Field(ge=0.0, le=1.0)
    tier: str = ""

    model_config = {"frozen": True}

    def matches(self, host: str) -> bool:
        rule = self.pattern.strip().strip(".").lower()
        candidate = host.strip().strip(".").lower()
        if not rule or not candidate:
            return False
        return candidate == rule or candidate.endswith("." + rule)


class SourceTiers(BaseModel):
    default_score: float = Field(default=0.5, ge=0.0, le=1.0)
    rules: list[TierRule] = Field(default_factory=list)

    model_config = {"frozen": True}

    def base_score(self, host: str) -> float:
        for rule in self.rules:
            if rule.matches(host):
                return rule.score
        return self.default_score

    @classmethod
    def default(cls) -> "SourceTiers":
        authoritative = (
            "nature.com",
            "science.org",
            "sciencedirect.com",
            "arxiv.org",
            "ieeexplore.ieee.org",
        )
        repositories = ("researchgate.net", "academia.edu")
        rules = [TierRule(pattern=p, score=0.9, tier="authoritative") for p in authoritative]
        rules += [TierRule(pattern=p, score=0.6, tier="repository") for p in repositories]
        rules.append(TierRule(pattern="edu", score=0.85, tier="academic"))
        return cls(default_score=0.5, rules=rules)

    @classmethod
    def load(cls, path: str | Path) -> "SourceTiers":
        tiers_path = Path(path)
        if not tiers_path.exists():
            raise ConfigError(f"Source tiers file not found: {tiers_path}")
        try:
            payload = json.loads(tiers_path.read_text(encoding="utf-8"))
            return cls.model_validate(payload)
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ConfigError(f"Invalid source tiers file {tiers_path}: {exc}") from exc
