"""Levey-Jennings chart data: control limit lines and the plotted series."""
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np

from .domain import ControlConfiguration, QCDataPoint
from .recompute import sort_history


@dataclass
class ControlLimits:
    """Reference lines at the mean and at +/-1, 2 and 3 SD"""
    mean: float
    plus_1sd: float
    minus_1sd: float
    plus_2sd: float
    minus_2sd: float
    plus_3sd: float
    minus_3sd: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "mean": self.mean,
            "plus_1sd": self.plus_1sd,
            "minus_1sd": self.minus_1sd,
            "plus_2sd": self.plus_2sd,
            "minus_2sd": self.minus_2sd,
            "plus_3sd": self.plus_3sd,
            "minus_3sd": self.minus_3sd,
        }


def control_limits(config: ControlConfiguration) -> ControlLimits:
    mean, sd = config.mean, config.sd
    return ControlLimits(
        mean=mean,
        plus_1sd=mean + sd,
        minus_1sd=mean - sd,
        plus_2sd=mean + 2 * sd,
        minus_2sd=mean - 2 * sd,
        plus_3sd=mean + 3 * sd,
        minus_3sd=mean - 3 * sd,
    )


def y_domain(config: ControlConfiguration, points: Sequence[QCDataPoint]) -> Tuple[float, float]:
    """Axis range covering every value and the 3SD lines, padded by half an SD"""
    limits = control_limits(config)
    values = np.array([p.value for p in points] + [limits.minus_3sd, limits.plus_3sd], dtype=float)
    padding = config.sd * 0.5
    return float(values.min() - padding), float(values.max() + padding)


def levey_jennings_series(config: ControlConfiguration, points: Sequence[QCDataPoint]) -> Dict[str, Any]:
    """Chart payload in date order, matching the table and export ordering"""
    ordered = sort_history(points)
    series: List[Dict[str, Any]] = [
        {
            "id": p.id,
            "date": p.date.isoformat(),
            "value": p.value,
            "z_score": p.z_score,
            "status": p.status.value if p.status else None,
            "rules": list(p.rules),
        }
        for p in ordered
    ]
    low, high = y_domain(config, ordered)
    return {
        "analyte_id": config.analyte_id,
        "display_name": config.display_name,
        "unit": config.unit,
        "limits": control_limits(config).to_dict(),
        "y_domain": [low, high],
        "points": series,
    }
