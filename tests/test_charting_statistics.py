from dataclasses import replace
from datetime import date

import pytest

from labguard.qc.charting import control_limits, levey_jennings_series, y_domain
from labguard.qc.domain import QCDataPoint
from labguard.qc.recompute import recompute_history
from labguard.qc.statistics import summarize

from .conftest import make_points


class TestCharting:

    def test_control_limits(self, glucose_config):
        limits = control_limits(glucose_config)

        assert limits.mean == 100.0
        assert (limits.minus_1sd, limits.plus_1sd) == (98.0, 102.0)
        assert (limits.minus_2sd, limits.plus_2sd) == (96.0, 104.0)
        assert (limits.minus_3sd, limits.plus_3sd) == (94.0, 106.0)

    def test_y_domain_covers_limits(self, glucose_config):
        assert y_domain(glucose_config, make_points([0.0])) == (93.0, 107.0)

    def test_y_domain_covers_outliers(self, glucose_config):
        low, high = y_domain(glucose_config, make_points([5.0, -6.0]))

        assert low == 87.0
        assert high == 111.0

    def test_series_in_date_order(self, glucose_config):
        day = date(2024, 1, 1)
        points = recompute_history([
            QCDataPoint(id="late", date=date(2024, 1, 9), value=107.0),
            QCDataPoint(id="first", date=day, value=100.0),
            QCDataPoint(id="second", date=day, value=101.0),
        ], glucose_config)

        chart = levey_jennings_series(glucose_config, points)

        assert [p["id"] for p in chart["points"]] == ["first", "second", "late"]
        assert chart["points"][-1]["status"] == "ERROR"
        assert chart["limits"]["plus_3sd"] == 106.0

    def test_series_for_empty_history(self, glucose_config):
        chart = levey_jennings_series(glucose_config, [])

        assert chart["points"] == []
        assert chart["y_domain"] == [93.0, 107.0]


class TestStatistics:

    def test_empty_history(self, glucose_config):
        assert summarize(glucose_config, []) is None

    def test_summary_against_target(self, glucose_config):
        points = recompute_history(make_points([-1.0, 0.0, 1.0, 3.5]), glucose_config)

        stats = summarize(glucose_config, points)

        assert stats.n_points == 4
        assert stats.mean == pytest.approx(101.75)
        assert stats.min_value == 98.0
        assert stats.max_value == 107.0
        assert stats.median == pytest.approx(101.0)
        assert stats.bias_percent == pytest.approx(1.75)
        assert stats.precision_ratio == pytest.approx(stats.std_dev / 2.0)
        assert stats.status_counts == {"OK": 3, "WARNING": 0, "ERROR": 1}

    def test_single_point_has_no_spread(self, glucose_config):
        stats = summarize(glucose_config, make_points([0.5]))

        assert stats.std_dev is None
        assert stats.cv_percent is None
        assert stats.precision_ratio is None

    def test_zero_sd_target(self, glucose_config):
        stats = summarize(replace(glucose_config, sd=0.0), make_points([0.5, 1.0]))

        assert stats.precision_ratio is None
        assert stats.to_dict()["target_sd"] == 0.0
