"""Tests for growth-chart import and output tables."""

from pathlib import Path

import pandas as pd
import pytest

from pkcov.contracts.errors import InvalidConfigurationError
from pkcov.contracts.types import (
    CovariateName, EffectSummary, ExposureRecord, MetricName, Sex, Subject, SubjectFailure, Trajectory,
)
from pkcov.services.data_import import GrowthChart, load_growth_chart
from pkcov.services.tables import (
    EFFECT_COLUMNS,
    EXPOSURE_COLUMNS,
    TRAJECTORY_COLUMNS,
    effect_summary_frame,
    exposure_frame,
    failure_frame,
    trajectory_frame,
    write_csv,
)


class TestGrowthChart:
    """Growth-chart loading."""

    def test_from_csv(self, growth_csv: Path):
        cells = load_growth_chart(growth_csv)

        assert len(cells) == 8
        assert cells[0].sex is Sex.MALE
        assert cells[0].age_months == 24.5
        assert cells[0].m == pytest.approx(12.7419)
        assert cells[4].sex is Sex.FEMALE

    def test_from_frame_camel_case(self, growth_frame: pd.DataFrame):
        frame = growth_frame.rename(columns={"Agemos": "ageMonths", "Sex": "sex"})
        cells = load_growth_chart(frame)
        assert len(cells) == 8

    def test_round_trip_frame(self, growth_frame: pd.DataFrame):
        chart = GrowthChart.from_frame(growth_frame)
        again = GrowthChart.from_frame(chart.to_frame())
        assert again.cells == chart.cells

    def test_missing_column(self, growth_frame: pd.DataFrame):
        with pytest.raises(InvalidConfigurationError, match="missing columns"):
            load_growth_chart(growth_frame.drop(columns=["S"]))

    def test_bad_sex_code(self, growth_frame: pd.DataFrame):
        growth_frame.loc[2, "Sex"] = 3
        with pytest.raises(InvalidConfigurationError, match="Invalid sex code") as exc_info:
            load_growth_chart(growth_frame)
        assert exc_info.value.details["row"] == 2

    def test_non_numeric(self, growth_frame: pd.DataFrame):
        growth_frame["M"] = growth_frame["M"].astype(object)
        growth_frame.loc[1, "M"] = "n/a"
        with pytest.raises(InvalidConfigurationError, match="non-numeric"):
            load_growth_chart(growth_frame)

    def test_missing_file(self, temp_dir: Path):
        with pytest.raises(InvalidConfigurationError, match="not found"):
            load_growth_chart(temp_dir / "missing.csv")

    def test_empty(self):
        with pytest.raises(InvalidConfigurationError, match="no rows"):
            load_growth_chart(pd.DataFrame(columns=["Agemos", "Sex", "M", "S", "L"]))


class TestTables:
    """Output table schemas."""

    def test_trajectory_frame(self):
        subject = Subject(id=3, weight_kg=14.0, age_years=2.5, sex=Sex.FEMALE)
        frame = trajectory_frame([subject], [Trajectory(3, [0.0, 1.0], [0.0, 2.0])])

        assert list(frame.columns) == TRAJECTORY_COLUMNS
        assert len(frame) == 2
        assert frame["sex"].tolist() == ["Female", "Female"]

    def test_exposure_frame(self):
        snapshot = Subject(id=1, weight_kg=14.0, age_years=2.5, sex=Sex.MALE).covariates()
        frame = exposure_frame([ExposureRecord(1, snapshot, MetricName.AUC, 12.5)])

        assert list(frame.columns) == EXPOSURE_COLUMNS
        assert frame.loc[0, "param"] == "AUC"

    def test_effect_summary_frame(self):
        summary = EffectSummary(MetricName.CMAX, CovariateName.BSV, "BSV", 1.0, 0.6, 1.5)
        frame = effect_summary_frame([summary])

        assert list(frame.columns) == EFFECT_COLUMNS
        assert frame.iloc[0].tolist() == ["Cmax", "BSV", "BSV", 1.0, 0.6, 1.5]

    def test_empty_frames_keep_columns(self):
        assert list(effect_summary_frame([]).columns) == EFFECT_COLUMNS
        assert list(failure_frame([]).columns) == ["subject_id", "error_type", "reason"]

    def test_failure_frame_sorted(self):
        frame = failure_frame([SubjectFailure(5, "b", "X"), SubjectFailure(2, "a", "Y")])
        assert frame["subject_id"].tolist() == [2, 5]

    def test_write_csv(self, temp_dir: Path):
        summary = EffectSummary(MetricName.AUC, CovariateName.SEX, "Male", 1.0, 0.5, 2.0)
        path = write_csv(effect_summary_frame([summary]), temp_dir / "out" / "effects.csv")

        assert path.read_text() == "param,covariate,stratum,median,lower,upper\nAUC,Sex,Male,1.0,0.5,2.0\n"

    def test_write_csv_keeps_full_precision(self, temp_dir: Path):
        snapshot = Subject(id=1, weight_kg=14.0, age_years=2.5, sex=Sex.MALE).covariates()
        value = 1.0 / 3.0 + 1e-14
        path = write_csv(
            exposure_frame([ExposureRecord(1, snapshot, MetricName.AUC, value)]), temp_dir / "exposures.csv"
        )

        assert pd.read_csv(path, float_precision="round_trip")["value"].iloc[0] == value
