"""Utilities: logging, statistics, finite differences and plotting."""

from .logger import logger, enable_file_logging, disable_file_logging
from .statistics import VectorSampleStatistics
from .derivatives import center_difference, center_difference_gradient
from .visualization import plot_trajectory, plot_events

__all__ = [
    "logger",
    "enable_file_logging",
    "disable_file_logging",
    "VectorSampleStatistics",
    "center_difference",
    "center_difference_gradient",
    "plot_trajectory",
    "plot_events",
]
