from dataclasses import replace
from typing import Iterable, List

from .domain import ControlConfiguration, QCDataPoint
from .westgard import WestgardRuleEngine


def sort_history(points: Iterable[QCDataPoint]) -> List[QCDataPoint]:
    """Sort ascending by date. Points sharing a date keep their stored order."""
    return sorted(points, key=lambda p: p.date)


def recompute_history(points: Iterable[QCDataPoint], config: ControlConfiguration) -> List[QCDataPoint]:
    """Re-classify a full history against the current configuration.

    Existing classifications are ignored: every point is evaluated against the
    freshly classified points before it.
    """
    engine = WestgardRuleEngine(config.mean, config.sd)
    evaluated: List[QCDataPoint] = []

    for point in sort_history(points):
        result = engine.evaluate(point.value, evaluated)
        evaluated.append(replace(
            point,
            z_score=engine.z_score(point.value),
            status=result.status,
            rules=list(result.rules),
        ))

    return evaluated


def audit_history(points: Iterable[QCDataPoint], config: ControlConfiguration) -> List[List[str]]:
    """Every independently true rule for each point of the sorted history"""
    engine = WestgardRuleEngine(config.mean, config.sd)
    ordered = sort_history(points)
    return [engine.find_violations(point.value, ordered[:i]) for i, point in enumerate(ordered)]
