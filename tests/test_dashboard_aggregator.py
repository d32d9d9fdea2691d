"""Tests for dashboard statistics and period filters."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from labcrm.modules.dashboard.aggregator import compute_stats, filter_by_period, period_bounds, period_label

SP = ZoneInfo("America/Sao_Paulo")


def by_key(items, attr):
    return {getattr(i, attr): i for i in items}


class TestComputeStats:
    def test_empty_list_has_zero_rates(self):
        stats = compute_stats([])
        assert stats.total_revenue == 0
        assert stats.average_ticket == 0
        assert stats.conversion_rate == 0
        assert all(s.percentage == 0 for s in stats.by_status)

    def test_totals_and_rates(self, make_patient):
        patients = [
            make_patient(status="fechado", closed_value=3000.0, media_origin="facebook"),
            make_patient(status="fechado", closed_value=1000.0, media_origin="indicacao"),
            make_patient(status="agendado"),
            make_patient(status="nao_veio"),
        ]

        stats = compute_stats(patients)

        assert stats.total_revenue == 4000.0
        assert stats.closed_count == 2
        assert stats.average_ticket == 2000.0
        assert stats.scheduled_count == 1
        assert stats.total_count == 4
        assert stats.conversion_rate == pytest.approx(50.0)
        status = by_key(stats.by_status, "status")
        assert status["fechado"].percentage == pytest.approx(50.0)
        assert status["sem_interesse"].count == 0

    def test_closed_value_split_across_procedures(self, make_patient):
        stats = compute_stats([
            make_patient(status="fechado", closed_value=1000.0, procedures=["protese_total", "protese_ppr"]),
            make_patient(status="fechado", closed_value=600.0, procedures=["protese_total"]),
        ])

        procs = by_key(stats.by_procedure, "procedure")
        assert procs["protese_total"].count == 2
        assert procs["protese_total"].revenue == pytest.approx(1100.0)
        assert procs["protese_ppr"].revenue == pytest.approx(500.0)
        assert procs["protese_flexivel"].count == 0
        assert sum(b.revenue for b in stats.by_procedure) == pytest.approx(stats.total_revenue)

    def test_channels_count_only_closed(self, make_patient):
        stats = compute_stats([
            make_patient(status="fechado", closed_value=800.0, media_origin="claudio"),
            make_patient(status="veio", media_origin="claudio"),
        ])
        channels = by_key(stats.by_channel, "media_origin")
        assert channels["claudio"].closed_count == 1
        assert channels["claudio"].revenue == 800.0
        assert channels["claudio"].label == "Cláudio"


class TestPeriods:
    def test_week_starts_on_sunday(self, make_patient):
        wednesday = datetime(2025, 6, 18, 15, 0, tzinfo=SP)
        inside = make_patient(name="domingo", created_at=datetime(2025, 6, 15, 0, 30, tzinfo=SP))
        outside = make_patient(name="sábado", created_at=datetime(2025, 6, 14, 23, 0, tzinfo=SP))

        kept = filter_by_period([inside, outside], "week", now=wednesday)

        assert [p.name for p in kept] == ["domingo"]

    def test_day_and_month(self, make_patient):
        now = datetime(2025, 6, 18, 15, 0, tzinfo=SP)
        today = make_patient(created_at=datetime(2025, 6, 18, 8, 0, tzinfo=SP))
        this_month = make_patient(created_at=datetime(2025, 6, 2, 8, 0, tzinfo=SP))
        last_month = make_patient(created_at=datetime(2025, 5, 31, 8, 0, tzinfo=SP))
        everyone = [today, this_month, last_month]

        assert filter_by_period(everyone, "day", now=now) == [today]
        assert filter_by_period(everyone, "month", now=now) == [today, this_month]
        assert filter_by_period(everyone, "all", now=now) == everyone

    def test_specific_year_and_month(self, make_patient):
        now = datetime(2025, 6, 18, tzinfo=SP)
        december = make_patient(created_at=datetime(2024, 12, 31, 22, 0, tzinfo=SP))
        january = make_patient(created_at=datetime(2025, 1, 1, 9, 0, tzinfo=SP))

        assert filter_by_period([december, january], "year_month", now=now, year=2024, month=12) == [december]
        assert filter_by_period([december, january], "year_month", now=now, year=2025) == [january]

    def test_december_bounds_roll_into_next_year(self):
        start, end = period_bounds("year_month", datetime(2025, 6, 18, tzinfo=SP), year=2024, month=12)
        assert start == datetime(2024, 12, 1, tzinfo=SP)
        assert end == datetime(2025, 1, 1, tzinfo=SP)

    def test_labels(self):
        assert period_label("all") == "Todo período"
        assert period_label("week") == "Esta semana"
        assert period_label("year_month", 2025, 3) == "Março / 2025"
