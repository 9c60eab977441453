"""
Shared computation engines for the repository analytics API.

Pure functions over immutable inputs: record parsing, statistics, scaling,
binning, percentile selection, point building and point reduction.
"""
from .binning import BinCountPolicy, bin_count, build_histogram
from .ingest import parse_csv, parse_csv_files
from .records import NumericField, Record
from .scaling import ScalingMethod, scale
from .statistics import StatisticalSummary, compute_statistics

__all__ = [
    "Record",
    "NumericField",
    "parse_csv",
    "parse_csv_files",
    "StatisticalSummary",
    "compute_statistics",
    "ScalingMethod",
    "scale",
    "BinCountPolicy",
    "bin_count",
    "build_histogram",
]
