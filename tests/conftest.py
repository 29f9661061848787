import pytest
from datetime import date, timedelta

from labguard.config import AppConfig, DatabaseConfig
from labguard.qc.domain import ControlConfiguration, QCDataPoint
from labguard.qc.service import QCService
from labguard.repositories import InMemoryAnalyteRepository

MEAN = 100.0
SD = 2.0


def value_at(z: float, mean: float = MEAN, sd: float = SD) -> float:
    """Control value sitting ``z`` standard deviations from the mean"""
    return mean + z * sd


def make_points(z_scores, start=date(2024, 1, 1)):
    return [
        QCDataPoint(id=f"P{i:02d}", date=start + timedelta(days=i), value=value_at(z))
        for i, z in enumerate(z_scores)
    ]


@pytest.fixture
def glucose_config():
    return ControlConfiguration(
        analyte_id="glucose",
        display_name="Glucose",
        mean=MEAN,
        sd=SD,
        unit="mg/dL",
    )


@pytest.fixture
def repository():
    return InMemoryAnalyteRepository()


@pytest.fixture
def service(repository, glucose_config):
    qc_service = QCService(repository)
    qc_service.register_analyte(glucose_config)
    return qc_service


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(
        seed_default_analytes=False,
        database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'qc.db'}"),
    )
