"""Air quality classification for Qingping air monitors."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from .models import AirQualityLevel, AirQualityRule, Comparison, ReadingKind

# Ordered by ascending severity, the first matching rule wins
AIR_QUALITY_RULES: tuple[AirQualityRule, ...] = (
    AirQualityRule(
        comparison=Comparison.UNDER,
        thresholds={ReadingKind.PM25: 12, ReadingKind.TVOC: 65, ReadingKind.CO2: 1000},
        level=AirQualityLevel.EXCELLENT,
    ),
    AirQualityRule(
        comparison=Comparison.UNDER,
        thresholds={ReadingKind.PM25: 35, ReadingKind.TVOC: 220, ReadingKind.CO2: 1250},
        level=AirQualityLevel.GOOD,
    ),
    AirQualityRule(
        comparison=Comparison.UNDER,
        thresholds={ReadingKind.PM25: 55, ReadingKind.TVOC: 660, ReadingKind.CO2: 1500},
        level=AirQualityLevel.FAIR,
    ),
    AirQualityRule(
        comparison=Comparison.UNDER,
        thresholds={ReadingKind.PM25: 150, ReadingKind.TVOC: 2000, ReadingKind.CO2: 2000},
        level=AirQualityLevel.INFERIOR,
    ),
    AirQualityRule(
        comparison=Comparison.OVER,
        thresholds={ReadingKind.PM25: 150, ReadingKind.TVOC: 2000, ReadingKind.CO2: 2000},
        level=AirQualityLevel.POOR,
    ),
)


def rule_matches(rule: AirQualityRule, readings: Mapping[ReadingKind, float]) -> bool:
    """Check whether every threshold of a rule is satisfied.

    A kind named by the rule but missing from ``readings`` fails the rule.
    Comparisons are strict.

    Args:
        rule: Rule to evaluate.
        readings: Current readings by kind.

    Returns:
        True if the rule matches, False otherwise.

    """
    for kind, threshold in rule.thresholds.items():
        if kind not in readings:
            return False
        value = readings[kind]
        if rule.comparison is Comparison.UNDER and not value < threshold:
            return False
        if rule.comparison is Comparison.OVER and not value > threshold:
            return False
    return True


def classify(
    readings: Mapping[ReadingKind, float],
    rules: Sequence[AirQualityRule] = AIR_QUALITY_RULES,
) -> AirQualityLevel:
    """Classify readings into a qualitative air quality level.

    Args:
        readings: Current readings by kind.
        rules: Ordered rule table, defaults to the canonical table.

    Returns:
        The level of the first matching rule, or ``UNKNOWN``.

    """
    for rule in rules:
        if rule_matches(rule, readings):
            return rule.level
    return AirQualityLevel.UNKNOWN
