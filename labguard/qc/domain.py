from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, List, Optional
import uuid

from ..models.qc_models import QCStatusEnum


@dataclass(frozen=True)
class QCDataPoint:
    """A single control measurement, optionally carrying its classification"""
    id: str
    date: date
    value: float
    comment: Optional[str] = None
    z_score: Optional[float] = None
    status: Optional[QCStatusEnum] = None
    rules: List[str] = field(default_factory=list)

    @classmethod
    def new(cls, value: float, run_date: date, comment: Optional[str] = None) -> "QCDataPoint":
        return cls(id=str(uuid.uuid4()), date=run_date, value=value, comment=comment)

    @property
    def is_classified(self) -> bool:
        return self.status is not None

    @property
    def rule_violated(self) -> Optional[str]:
        return self.rules[0] if self.rules else None

    def unclassified(self) -> "QCDataPoint":
        return replace(self, z_score=None, status=None, rules=[])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'value': self.value,
            'comment': self.comment,
            'z_score': self.z_score,
            'status': self.status.value if self.status else None,
            'rules': list(self.rules),
        }


@dataclass(frozen=True)
class ControlConfiguration:
    """Target mean/SD and display settings for one analyte"""
    analyte_id: str
    display_name: str
    mean: float
    sd: float
    unit: str
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'analyte_id': self.analyte_id,
            'display_name': self.display_name,
            'mean': self.mean,
            'sd': self.sd,
            'unit': self.unit,
            'version': self.version,
        }


@dataclass
class AnalyteRecord:
    """Configuration and history of one analyte, read and written as a unit"""
    config: ControlConfiguration
    measurements: List[QCDataPoint] = field(default_factory=list)

    def find(self, measurement_id: str) -> Optional[QCDataPoint]:
        for point in self.measurements:
            if point.id == measurement_id:
                return point
        return None
