"""Growth-chart import.

Reference growth charts are tables with one row per (age, sex) grid point
and the BCCG parameters M, S and L.  Both the CDC-style column names
(``Agemos``, ``Sex``) and the camel-case variant (``ageMonths``, ``sex``) are
accepted.  Sex is coded 1 = male, 2 = female.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import structlog

from ..contracts.errors import InvalidConfigurationError
from ..contracts.types import CovariateParams, Sex

logger = structlog.get_logger()

_COLUMN_ALIASES: Dict[str, Sequence[str]] = {
    "age_months": ("ageMonths", "Agemos"),
    "sex": ("sex", "Sex"),
    "m": ("M",),
    "s": ("S",),
    "l": ("L",),
}


def _resolve_columns(df: pd.DataFrame) -> Dict[str, str]:
    resolved: Dict[str, str] = {}
    missing = []
    for field_name, aliases in _COLUMN_ALIASES.items():
        match = next((a for a in aliases if a in df.columns), None)
        if match is None:
            missing.append("|".join(aliases))
        else:
            resolved[field_name] = match
    if missing:
        raise InvalidConfigurationError(
            f"Growth chart is missing columns: {', '.join(missing)}",
            {"columns": [str(c) for c in df.columns]},
        )
    return resolved


@dataclass(frozen=True)
class GrowthChart:
    """Immutable snapshot of growth-chart cells, in file order."""

    cells: Tuple[CovariateParams, ...]
    label: str = "growth_chart"

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[CovariateParams]:
        return iter(self.cells)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, label: str = "growth_chart") -> "GrowthChart":
        """Build from a DataFrame.

        Raises:
            InvalidConfigurationError: On missing columns, non-numeric or
                non-finite values, negative ages or unknown sex codes.
        """
        if df.empty:
            raise InvalidConfigurationError("Growth chart has no rows")
        columns = _resolve_columns(df)

        numeric: Dict[str, np.ndarray] = {}
        for field_name in ("age_months", "m", "s", "l"):
            values = pd.to_numeric(df[columns[field_name]], errors="coerce").to_numpy(dtype=float)
            bad = np.flatnonzero(~np.isfinite(values))
            if bad.size:
                raise InvalidConfigurationError(
                    f"Column {columns[field_name]} has non-numeric or non-finite values",
                    {"rows": bad[:10].tolist()},
                )
            numeric[field_name] = values
        if np.any(numeric["age_months"] < 0):
            raise InvalidConfigurationError("Growth chart ages must be >= 0")

        cells = []
        for i, code in enumerate(df[columns["sex"]].tolist()):
            try:
                sex = Sex.from_code(code)
            except InvalidConfigurationError as exc:
                raise InvalidConfigurationError(exc.message, {**exc.details, "row": i}) from exc
            cells.append(
                CovariateParams(
                    age_months=float(numeric["age_months"][i]),
                    sex=sex,
                    m=float(numeric["m"][i]),
                    s=float(numeric["s"][i]),
                    l=float(numeric["l"][i]),
                )
            )

        logger.debug("Growth chart loaded", label=label, n_cells=len(cells))
        return cls(cells=tuple(cells), label=label)

    @classmethod
    def from_csv(
        cls,
        path: Union[str, Path],
        label: Optional[str] = None,
        **read_csv_kwargs,
    ) -> "GrowthChart":
        path = Path(path)
        if not path.exists():
            raise InvalidConfigurationError(f"Growth chart file not found: {path}")
        try:
            df = pd.read_csv(path, **read_csv_kwargs)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
            raise InvalidConfigurationError(f"Cannot read growth chart {path}: {exc}") from exc
        return cls.from_frame(df, label=label or path.stem)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "ageMonths": [c.age_months for c in self.cells],
            "sex": [c.sex.code for c in self.cells],
            "M": [c.m for c in self.cells],
            "S": [c.s for c in self.cells],
            "L": [c.l for c in self.cells],
        })


def load_growth_chart(source: Union[str, Path, pd.DataFrame]) -> Tuple[CovariateParams, ...]:
    """Load growth-chart cells from a CSV path or a DataFrame."""
    if isinstance(source, pd.DataFrame):
        return GrowthChart.from_frame(source).cells
    return GrowthChart.from_csv(source).cells
