from contextlib import contextmanager
from dataclasses import replace
from datetime import date
import logging
import math
import threading
from typing import Any, Dict, Iterator, List, Optional

from ..exceptions import (
    AnalyteNotFoundError,
    DuplicateAnalyteError,
    InvalidConfigurationError,
    InvalidMeasurementError,
    MeasurementNotFoundError,
)
from ..models.qc_models import QCStatusEnum
from ..repositories import AnalyteRepository
from .domain import AnalyteRecord, ControlConfiguration, QCDataPoint
from .recompute import recompute_history

logger = logging.getLogger(__name__)

# marks an edit argument that was not supplied
UNCHANGED = object()


def validate_configuration(mean: float, sd: float) -> None:
    if mean is None or not math.isfinite(mean):
        raise InvalidConfigurationError(f"Mean must be a finite number, got {mean!r}")
    if sd is None or not math.isfinite(sd):
        raise InvalidConfigurationError(f"SD must be a finite number, got {sd!r}")
    if sd < 0:
        raise InvalidConfigurationError(f"SD must not be negative, got {sd}")


def validate_value(value: float) -> None:
    if value is None or not math.isfinite(value):
        raise InvalidMeasurementError(f"Measurement value must be a finite number, got {value!r}")


class QCService:
    """Owns analyte histories and keeps their classifications current.

    Every mutation of an analyte runs as read -> modify -> recompute -> write
    while holding that analyte's lock. Analytes never share a lock.
    """

    def __init__(self, repository: AnalyteRepository):
        self.repository = repository
        self._locks: Dict[str, threading.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _locked(self, analyte_id: str) -> Iterator[None]:
        # a lock lives only while some caller holds or waits for it
        with self._locks_guard:
            lock = self._locks.setdefault(analyte_id, threading.Lock())
            self._lock_users[analyte_id] = self._lock_users.get(analyte_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                self._lock_users[analyte_id] -= 1
                if not self._lock_users[analyte_id]:
                    del self._lock_users[analyte_id]
                    del self._locks[analyte_id]

    def _load(self, analyte_id: str) -> AnalyteRecord:
        record = self.repository.get(analyte_id)
        if record is None:
            raise AnalyteNotFoundError(analyte_id)
        return record

    def _save(self, analyte_id: str, record: AnalyteRecord) -> AnalyteRecord:
        record.measurements = recompute_history(record.measurements, record.config)
        self.repository.put(analyte_id, record)
        return record

    # Queries

    def list_configurations(self) -> List[ControlConfiguration]:
        configs = []
        for analyte_id in self.repository.list_ids():
            record = self.repository.get(analyte_id)
            if record is not None:
                configs.append(record.config)
        return sorted(configs, key=lambda c: c.display_name.casefold())

    def get_history(self, analyte_id: str) -> AnalyteRecord:
        """Configuration and classified history, oldest first"""
        record = self._load(analyte_id)
        if any(not p.is_classified for p in record.measurements):
            logger.warning(f"Unclassified measurements found for '{analyte_id}', recomputing")
            with self._locked(analyte_id):
                record = self._save(analyte_id, self._load(analyte_id))
        return record

    def violations(self, analyte_id: str) -> List[QCDataPoint]:
        """Warnings and rejections, newest first"""
        history = self.get_history(analyte_id).measurements
        flagged = [p for p in history if p.status in (QCStatusEnum.WARNING, QCStatusEnum.ERROR)]
        return list(reversed(flagged))

    # Analytes and configuration

    def register_analyte(self, config: ControlConfiguration) -> ControlConfiguration:
        validate_configuration(config.mean, config.sd)
        with self._locked(config.analyte_id):
            if self.repository.get(config.analyte_id) is not None:
                raise DuplicateAnalyteError(config.analyte_id)
            self.repository.put(config.analyte_id, AnalyteRecord(config=config))
        logger.info(f"Registered analyte '{config.analyte_id}' (mean={config.mean}, sd={config.sd})")
        return config

    def update_configuration(self, analyte_id: str, mean: float, sd: float,
                             unit: Optional[str] = None,
                             display_name: Optional[str] = None) -> AnalyteRecord:
        validate_configuration(mean, sd)
        with self._locked(analyte_id):
            record = self._load(analyte_id)
            old = record.config
            record.config = replace(
                old,
                mean=mean,
                sd=sd,
                unit=old.unit if unit is None else unit,
                display_name=old.display_name if display_name is None else display_name,
                version=old.version + 1,
            )
            logger.info(
                f"Control configuration for '{analyte_id}' changed: "
                f"mean {old.mean} -> {mean}, sd {old.sd} -> {sd}"
            )
            return self._save(analyte_id, record)

    # Measurements

    def add_measurement(self, analyte_id: str, value: float, run_date: date,
                        comment: Optional[str] = None) -> QCDataPoint:
        validate_value(value)
        point = QCDataPoint.new(value, run_date, comment)
        with self._locked(analyte_id):
            record = self._load(analyte_id)
            record.measurements.append(point)
            record = self._save(analyte_id, record)
        return record.find(point.id)

    def edit_measurement(self, analyte_id: str, measurement_id: str,
                         value: Optional[float] = None,
                         run_date: Optional[date] = None,
                         comment: Any = UNCHANGED) -> QCDataPoint:
        """Change value, date or comment; a comment of None clears it"""
        if value is not None:
            validate_value(value)
        with self._locked(analyte_id):
            record = self._load(analyte_id)
            current = record.find(measurement_id)
            if current is None:
                raise MeasurementNotFoundError(analyte_id, measurement_id)
            edited = replace(
                current.unclassified(),
                value=current.value if value is None else value,
                date=current.date if run_date is None else run_date,
                comment=current.comment if comment is UNCHANGED else comment,
            )
            record.measurements = [edited if p.id == measurement_id else p for p in record.measurements]
            record = self._save(analyte_id, record)
        return record.find(measurement_id)

    def delete_measurement(self, analyte_id: str, measurement_id: str) -> None:
        with self._locked(analyte_id):
            record = self._load(analyte_id)
            if record.find(measurement_id) is None:
                raise MeasurementNotFoundError(analyte_id, measurement_id)
            record.measurements = [p for p in record.measurements if p.id != measurement_id]
            self._save(analyte_id, record)

    # Hooks for callers that change stored data directly

    def on_measurement_changed(self, analyte_id: str) -> AnalyteRecord:
        with self._locked(analyte_id):
            return self._save(analyte_id, self._load(analyte_id))

    def on_configuration_changed(self, analyte_id: str) -> AnalyteRecord:
        with self._locked(analyte_id):
            record = self._load(analyte_id)
            validate_configuration(record.config.mean, record.config.sd)
            return self._save(analyte_id, record)

    def seed(self, configs: Dict[str, ControlConfiguration]) -> int:
        """Register configurations whose analyte is not stored yet"""
        created = 0
        for analyte_id, config in configs.items():
            if self.repository.get(analyte_id) is not None:
                continue
            try:
                self.register_analyte(config)
            except DuplicateAnalyteError:
                logger.info(f"Analyte '{analyte_id}' was registered concurrently, skipping")
                continue
            created += 1
        if created:
            logger.info(f"Seeded {created} default analyte configuration(s)")
        return created
