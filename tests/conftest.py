"""Pytest configuration and fixtures."""

import sys
import tempfile
from pathlib import Path
from typing import Dict, Any, List

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

import pandas as pd
import pytest
import structlog

from pkcov.config import AppConfig
from pkcov.contracts.types import CovariateParams, Sex

# Weight-for-age LMS values in the style of the CDC 2-5 year charts
# (rounded, for tests only).
GROWTH_ROWS: List[Dict[str, Any]] = [
    {"Sex": 1, "Agemos": 24.5, "L": -0.2162, "M": 12.7419, "S": 0.1080},
    {"Sex": 1, "Agemos": 36.5, "L": -0.3857, "M": 14.3413, "S": 0.1071},
    {"Sex": 1, "Agemos": 48.5, "L": -0.5520, "M": 16.3468, "S": 0.1114},
    {"Sex": 1, "Agemos": 60.5, "L": -0.7051, "M": 18.4902, "S": 0.1195},
    {"Sex": 2, "Agemos": 24.5, "L": -0.7339, "M": 12.1347, "S": 0.1074},
    {"Sex": 2, "Agemos": 36.5, "L": -0.9287, "M": 14.1071, "S": 0.1129},
    {"Sex": 2, "Agemos": 48.5, "L": -1.0523, "M": 15.9993, "S": 0.1208},
    {"Sex": 2, "Agemos": 60.5, "L": -1.1240, "M": 17.9263, "S": 0.1296},
]


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo logging configuration done by CLI commands."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def temp_dir():
    """Temporary directory for test artifacts."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def growth_frame() -> pd.DataFrame:
    """Growth chart as a DataFrame with CDC column names."""
    return pd.DataFrame(GROWTH_ROWS)


@pytest.fixture
def growth_grid() -> tuple:
    """Growth chart as CovariateParams cells, in row order."""
    return tuple(
        CovariateParams(
            age_months=row["Agemos"],
            sex=Sex.from_code(row["Sex"]),
            m=row["M"],
            s=row["S"],
            l=row["L"],
        )
        for row in GROWTH_ROWS
    )


@pytest.fixture
def growth_csv(temp_dir: Path, growth_frame: pd.DataFrame) -> Path:
    """Growth chart written to CSV."""
    path = temp_dir / "wtage.csv"
    growth_frame.to_csv(path, index=False)
    return path


@pytest.fixture
def sample_config_dict() -> Dict[str, Any]:
    """Small analysis configuration as dictionary."""
    return {
        "run": {
            "threads": 1,
            "artifact_dir": "test_results"
        },
        "pk": {
            "ka": 0.5,
            "cl": 4.0,
            "v": 10.0,
            "clwt": 0.75,
            "vwt": 1.0,
            "wt_ref": 70.0
        },
        "dose": {
            "time_h": 0.0,
            "amount": 100.0,
            "compartment": "Gut"
        },
        "grid": {
            "start_h": 0.0,
            "end_h": 24.0,
            "step_h": 0.5
        },
        "variability": {
            "omega": [[0.09, 0.0], [0.0, 0.04]],
            "zeroed": True
        },
        "sampling": {
            "seed": 678549,
            "n_per_cell": 10
        },
        "analysis": {
            "n_strata": 4,
            "ci_probs": [0.05, 0.95]
        }
    }


@pytest.fixture
def sample_config(sample_config_dict: Dict[str, Any]) -> AppConfig:
    """Small analysis configuration."""
    return AppConfig.model_validate(sample_config_dict)


@pytest.fixture
def sample_toml_config(temp_dir: Path) -> Path:
    """Sample TOML configuration file."""
    config_content = """
[run]
threads = 2
integrator = "rk4"
artifact_dir = "test_results"

[pk]
ka = 0.5
cl = 4.0
v = 10.0
clwt = 0.75
vwt = 1.0
wt_ref = 70.0

[dose]
time_h = 0.0
amount = 100.0
compartment = "Gut"

[grid]
start_h = 0.0
end_h = 24.0
step_h = 0.25

[variability]
omega = [[0.09, 0.0], [0.0, 0.04]]
zeroed = true

[sampling]
seed = 42
n_per_cell = 5

[analysis]
n_strata = 4
ci_probs = [0.05, 0.95]
standardize_by = "Sex"

[solver]
method = "LSODA"
rtol = 1e-10
atol = 1e-12
"""

    config_file = temp_dir / "test_config.toml"
    config_file.write_text(config_content)
    return config_file
