"""Tests for reporting period values."""

import pytest

from payroll_close.periods import PeriodRange, ReportPeriod, month_name


class TestReportPeriod:
    @pytest.mark.parametrize("value", ["2024-05", "2024-5", "202405", " 2024-05 "])
    def test_parse(self, value):
        assert ReportPeriod.parse(value) == ReportPeriod(2024, 5)

    @pytest.mark.parametrize("value", ["2024", "24-05", "2024/05", "May 2024", "2024-13"])
    def test_parse_rejects(self, value):
        with pytest.raises(ValueError):
            ReportPeriod.parse(value)

    def test_next_wraps_year(self):
        assert ReportPeriod(2024, 12).next() == ReportPeriod(2025, 1)
        assert ReportPeriod(2024, 5).next() == ReportPeriod(2024, 6)

    def test_ordering(self):
        assert ReportPeriod(2023, 12) < ReportPeriod(2024, 1) < ReportPeriod(2024, 2)

    def test_formatting(self):
        assert str(ReportPeriod(2024, 5)) == "2024-05"
        assert ReportPeriod(2024, 5).label() == "May 2024"

    def test_month_name_out_of_range(self):
        assert month_name(13) == "Month 13"


class TestPeriodRange:
    def test_months_cross_year(self):
        period_range = PeriodRange.parse("2023-11", "2024-02")
        assert [str(p) for p in period_range.months()] == [
            "2023-11", "2023-12", "2024-01", "2024-02",
        ]
        assert len(period_range) == 4

    def test_single_month(self):
        period_range = PeriodRange.parse("2024-05", "2024-05")
        assert list(period_range.months()) == [ReportPeriod(2024, 5)]

    def test_reversed_range(self):
        with pytest.raises(ValueError):
            PeriodRange.parse("2024-06", "2024-05")
