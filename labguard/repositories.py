"""Analyte repositories.

An analyte's configuration and measurement history are stored and loaded as a
single ``AnalyteRecord``. ``put`` replaces both atomically, so callers can do a
read-modify-write cycle per analyte. Histories come back in the order they
were stored.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from .models.qc_models import ControlConfig, QCMeasurement
from .qc.domain import AnalyteRecord, ControlConfiguration, QCDataPoint

logger = logging.getLogger(__name__)


class AnalyteRepository(ABC):
    """Abstract interface for analyte configuration and history storage."""

    @abstractmethod
    def get(self, analyte_id: str) -> Optional[AnalyteRecord]:
        """Get the record for an analyte, or None if it is unknown."""
        pass

    @abstractmethod
    def put(self, analyte_id: str, record: AnalyteRecord) -> None:
        """Replace configuration and full history of an analyte."""
        pass

    @abstractmethod
    def list_ids(self) -> List[str]:
        """List all stored analyte ids."""
        pass


class InMemoryAnalyteRepository(AnalyteRepository):
    """In-memory implementation, used for development and testing."""

    def __init__(self):
        self._storage: Dict[str, AnalyteRecord] = {}

    def get(self, analyte_id: str) -> Optional[AnalyteRecord]:
        record = self._storage.get(analyte_id)
        if record is None:
            return None
        return AnalyteRecord(config=record.config, measurements=list(record.measurements))

    def put(self, analyte_id: str, record: AnalyteRecord) -> None:
        self._storage[analyte_id] = AnalyteRecord(config=record.config, measurements=list(record.measurements))

    def list_ids(self) -> List[str]:
        return list(self._storage.keys())


class SqlAlchemyAnalyteRepository(AnalyteRepository):
    """Relational implementation; each call runs in its own transaction."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, analyte_id: str) -> Optional[AnalyteRecord]:
        with self._session_factory() as session:
            row = session.query(ControlConfig).filter(ControlConfig.analyte_id == analyte_id).first()
            if row is None:
                return None
            return AnalyteRecord(
                config=_config_from_row(row),
                measurements=[_point_from_row(m) for m in row.measurements],
            )

    def put(self, analyte_id: str, record: AnalyteRecord) -> None:
        config = record.config
        with self._session_factory.begin() as session:
            row = session.query(ControlConfig).filter(ControlConfig.analyte_id == analyte_id).first()
            if row is None:
                row = ControlConfig(analyte_id=analyte_id)
                session.add(row)
                logger.info(f"Creating control configuration for analyte '{analyte_id}'")

            row.display_name = config.display_name
            row.unit = config.unit
            row.target_mean = config.mean
            row.target_sd = config.sd
            row.version = config.version

            existing = {m.measurement_id: m for m in row.measurements}
            kept = []
            for position, point in enumerate(record.measurements):
                measurement = existing.pop(point.id, None)
                if measurement is None:
                    measurement = QCMeasurement(measurement_id=point.id)
                measurement.run_date = point.date
                measurement.value = point.value
                measurement.comments = point.comment
                measurement.position = position
                measurement.status = point.status
                measurement.z_score = point.z_score
                measurement.rules = list(point.rules)
                kept.append(measurement)

            # orphans left in ``existing`` are deleted by the cascade
            row.measurements = kept

    def list_ids(self) -> List[str]:
        with self._session_factory() as session:
            return [analyte_id for (analyte_id,) in session.query(ControlConfig.analyte_id).order_by(ControlConfig.id)]


def _config_from_row(row: ControlConfig) -> ControlConfiguration:
    return ControlConfiguration(
        analyte_id=row.analyte_id,
        display_name=row.display_name,
        mean=row.target_mean,
        sd=row.target_sd,
        unit=row.unit or "",
        version=row.version or 1,
    )


def _point_from_row(row: QCMeasurement) -> QCDataPoint:
    return QCDataPoint(
        id=row.measurement_id,
        date=row.run_date,
        value=row.value,
        comment=row.comments,
        z_score=row.z_score,
        status=row.status,
        rules=list(row.rules or []),
    )
