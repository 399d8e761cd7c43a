"""Exposure analysis: metrics, standardization, stratification, summaries."""

from .quantiles import QUANTILE_METHOD, quantiles, quantile, median
from .exposure import cmax, tmax, auc_trapezoid, compute_metric, compute_exposures
from .standardize import group_medians, standardize
from .stratify import (
    ordinal,
    default_label,
    equal_count_cut,
    assign_bins,
    categorical_strata,
    build_strata,
)
from .effects import BSV_LABEL, validate_probs, summarize, summarize_bsv, summarize_all

__all__ = [
    "QUANTILE_METHOD",
    "quantiles",
    "quantile",
    "median",
    "cmax",
    "tmax",
    "auc_trapezoid",
    "compute_metric",
    "compute_exposures",
    "group_medians",
    "standardize",
    "ordinal",
    "default_label",
    "equal_count_cut",
    "assign_bins",
    "categorical_strata",
    "build_strata",
    "BSV_LABEL",
    "validate_probs",
    "summarize",
    "summarize_bsv",
    "summarize_all",
]
