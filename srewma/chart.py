"""
SREWMA Control Chart
====================
Runs a monitor over a stream and evaluates the statistic sequence
against a control limit h.

A signal is raised at every index where Q_t > h; the first signal is
the alarm, and its 1-based position is the run length.

Use Cases:
- Monitor physicochemical measurements of a product stream without
  assuming multivariate normality
- Compare monitoring runs across product batches
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from .config import MonitorConfig
from .data import ArrayLike, as_observation_matrix
from .engine import SREWMAMonitor
from .errors import SREWMAError
from .traceability import RunRecord, create_run_record

logger = logging.getLogger(__name__)


def detect_signals(statistics: np.ndarray, control_limit: float) -> List[int]:
    """Indices where the statistic exceeds the control limit."""
    statistics = np.asarray(statistics, dtype=float)
    return [int(i) for i in np.flatnonzero(statistics > control_limit)]


@dataclass
class SREWMAChartResult:
    """SREWMA control chart results."""
    statistics: np.ndarray
    control_limit: Optional[float]
    lambda_param: float
    n_reference: int
    dimension: int
    signals: List[int] = field(default_factory=list)
    failure: Optional[SREWMAError] = None
    record: Optional[RunRecord] = None
    n_points: int = 0
    n_signals: int = 0

    def __post_init__(self):
        self.n_points = len(self.statistics)
        self.n_signals = len(self.signals)

    @property
    def first_signal(self) -> Optional[int]:
        """Index of the first out-of-control signal (the alarm)."""
        return self.signals[0] if self.signals else None

    @property
    def run_length(self) -> Optional[int]:
        """Number of observations up to and including the alarm."""
        return self.first_signal + 1 if self.signals else None

    @property
    def completed(self) -> bool:
        return self.failure is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'statistics': self.statistics.tolist(),
            'control_limit': self.control_limit,
            'lambda_param': self.lambda_param,
            'n_reference': self.n_reference,
            'dimension': self.dimension,
            'n_points': self.n_points,
            'n_signals': self.n_signals,
            'first_signal': self.first_signal,
            'run_length': self.run_length,
            'failure': str(self.failure) if self.failure else None,
            'record': self.record.to_dict() if self.record else None,
        }


def create_srewma_chart(
    reference: ArrayLike,
    observations: ArrayLike,
    config: Optional[MonitorConfig] = None,
) -> SREWMAChartResult:
    """
    Create an SREWMA control chart.

    Args:
        reference: In-control reference sample (DataFrame or (m, p) array)
        observations: Monitoring stream (DataFrame or (k, p) array)
        config: Monitor configuration; defaults to MonitorConfig()

    Returns:
        SREWMAChartResult with statistics, signals and a run record.
        If the run aborted, the statistics are the valid prefix and
        failure holds the reason.

    Raises:
        InsufficientReferenceSize: If the reference sample is too small
        SingularCovariance: If the initial reference covariance is singular
    """
    config = config or MonitorConfig()

    reference_matrix = as_observation_matrix(reference, config.columns)
    stream = as_observation_matrix(observations, config.columns, drop_incomplete=False)

    monitor = SREWMAMonitor.from_config(reference_matrix, config)
    run = monitor.run(stream)

    signals = []
    if config.control_limit is not None:
        signals = detect_signals(run.statistics, config.control_limit)
        if signals:
            logger.info(f"SREWMA alarm at index {signals[0]} (h={config.control_limit})")

    return SREWMAChartResult(
        statistics=run.statistics,
        control_limit=config.control_limit,
        lambda_param=config.lambda_param,
        n_reference=reference_matrix.shape[0],
        dimension=reference_matrix.shape[1],
        signals=signals,
        failure=run.failure,
        record=create_run_record(reference_matrix, stream, config, run.statistics, run.failure),
    )


def format_srewma_summary(result: SREWMAChartResult, title: str = '') -> str:
    """Format SREWMA chart results as markdown summary."""
    heading = f"## SREWMA Chart: {title}" if title else "## SREWMA Chart"
    lines = [
        heading,
        "",
        f"**Reference Sample:** {result.n_reference} observations, {result.dimension} variables",
        f"**Smoothing (λ):** {result.lambda_param}",
        f"**Points Monitored:** {result.n_points}",
    ]

    if result.n_points > 0:
        lines.append(f"**Max Statistic:** {np.max(result.statistics):.4f}")

    if result.control_limit is None:
        lines.extend(["", "No control limit configured; signals not evaluated."])
    else:
        lines.extend([
            "",
            "### Statistical Control",
            f"- Control Limit (h): {result.control_limit:.4f}",
            f"- Signals: {result.n_signals} points",
        ])
        if result.first_signal is not None:
            lines.append(f"- **First alarm at index {result.first_signal}** (run length {result.run_length})")
        else:
            lines.append("- No alarm: process in control")

    if result.failure is not None:
        lines.extend([
            "",
            "### [WARN] Run Aborted",
            f"- {result.failure}",
            f"- Statistics above cover the {result.n_points} points processed before the failure",
        ])

    return "\n".join(lines)
