from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np

from ..models.qc_models import QCStatusEnum
from .domain import ControlConfiguration, QCDataPoint


@dataclass
class QCStatistics:
    """Statistical summary of an analyte's history"""
    n_points: int
    mean: float
    std_dev: Optional[float]
    cv_percent: Optional[float]
    min_value: float
    max_value: float
    median: float
    target_mean: float
    target_sd: float
    bias_percent: Optional[float]
    precision_ratio: Optional[float]
    status_counts: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize(config: ControlConfiguration, points: Sequence[QCDataPoint]) -> Optional[QCStatistics]:
    """Descriptive statistics against the configured target; None for no data"""
    if not points:
        return None

    values = np.array([p.value for p in points], dtype=float)
    mean = float(np.mean(values))
    # sample SD needs at least two points
    std_dev = float(np.std(values, ddof=1)) if len(values) > 1 else None

    status_counts = {status.value: 0 for status in QCStatusEnum}
    for p in points:
        if p.status is not None:
            status_counts[p.status.value] += 1

    return QCStatistics(
        n_points=len(values),
        mean=mean,
        std_dev=std_dev,
        cv_percent=(std_dev / mean * 100) if std_dev is not None and mean != 0 else None,
        min_value=float(np.min(values)),
        max_value=float(np.max(values)),
        median=float(np.median(values)),
        target_mean=config.mean,
        target_sd=config.sd,
        bias_percent=((mean - config.mean) / config.mean * 100) if config.mean else None,
        precision_ratio=(std_dev / config.sd) if std_dev is not None and config.sd else None,
        status_counts=status_counts,
    )
