from dataclasses import replace
from datetime import date

import pytest

from labguard.config import DatabaseConfig
from labguard.database import create_db_engine, create_session_factory, init_db
from labguard.models.qc_models import QCStatusEnum
from labguard.qc.domain import AnalyteRecord, QCDataPoint
from labguard.qc.recompute import recompute_history
from labguard.qc.service import QCService
from labguard.repositories import InMemoryAnalyteRepository, SqlAlchemyAnalyteRepository

from .conftest import make_points


@pytest.fixture
def sql_repository(tmp_path):
    engine = create_db_engine(DatabaseConfig(url=f"sqlite:///{tmp_path / 'repo.db'}"))
    init_db(engine)
    return SqlAlchemyAnalyteRepository(create_session_factory(engine))


@pytest.fixture(params=["memory", "sql"])
def any_repository(request, sql_repository):
    if request.param == "memory":
        return InMemoryAnalyteRepository()
    return sql_repository


class TestAnalyteRepository:

    def test_missing_analyte_returns_none(self, any_repository):
        assert any_repository.get("nothing") is None
        assert any_repository.list_ids() == []

    def test_put_then_get(self, any_repository, glucose_config):
        points = recompute_history(make_points([0.5, 2.5, 2.5]), glucose_config)
        any_repository.put("glucose", AnalyteRecord(config=glucose_config, measurements=points))

        record = any_repository.get("glucose")

        assert record.config == glucose_config
        assert [p.id for p in record.measurements] == ["P00", "P01", "P02"]
        assert record.measurements[2].status == QCStatusEnum.ERROR
        assert record.measurements[2].rules == ["2-2s"]
        assert record.measurements[0].date == date(2024, 1, 1)
        assert any_repository.list_ids() == ["glucose"]

    def test_put_replaces_history(self, any_repository, glucose_config):
        points = make_points([0.1, 0.2, 0.3])
        any_repository.put("glucose", AnalyteRecord(config=glucose_config, measurements=points))

        kept = [replace(points[2], value=123.0), points[0]]
        any_repository.put("glucose", AnalyteRecord(config=replace(glucose_config, version=2), measurements=kept))
        record = any_repository.get("glucose")

        assert [p.id for p in record.measurements] == ["P02", "P00"]
        assert record.measurements[0].value == 123.0
        assert record.config.version == 2

    def test_same_date_order_is_preserved(self, any_repository, glucose_config):
        day = date(2024, 5, 1)
        points = [QCDataPoint(id=name, date=day, value=100.0) for name in ("c", "a", "b")]
        any_repository.put("glucose", AnalyteRecord(config=glucose_config, measurements=points))

        assert [p.id for p in any_repository.get("glucose").measurements] == ["c", "a", "b"]

    def test_zero_sd_round_trip(self, any_repository, glucose_config):
        config = replace(glucose_config, sd=0.0)
        points = recompute_history(make_points([1.0]), config)
        any_repository.put("glucose", AnalyteRecord(config=config, measurements=points))

        stored = any_repository.get("glucose").measurements[0]

        assert stored.z_score is None
        assert stored.status == QCStatusEnum.OK

    def test_mutating_loaded_record_does_not_touch_store(self, any_repository, glucose_config):
        any_repository.put("glucose", AnalyteRecord(config=glucose_config, measurements=make_points([0.1])))

        loaded = any_repository.get("glucose")
        loaded.measurements.clear()

        assert len(any_repository.get("glucose").measurements) == 1


class TestServiceWithSqlRepository:

    def test_full_workflow(self, sql_repository, glucose_config):
        service = QCService(sql_repository)
        service.register_analyte(glucose_config)

        first = service.add_measurement("glucose", 105.0, date(2024, 1, 1))
        second = service.add_measurement("glucose", 104.4, date(2024, 1, 2))
        assert second.rules == ["2-2s"]

        service.delete_measurement("glucose", first.id)
        history = service.get_history("glucose").measurements

        assert [p.id for p in history] == [second.id]
        assert history[0].status == QCStatusEnum.WARNING
