"""
SREWMA Monitor - Core Module
============================
Nonparametric multivariate statistical process control with the
spatial-rank EWMA (SREWMA) chart.

Core Components:
- whitening: Inverse-covariance square-root transform of the reference sample
- spatial_rank: Spatial rank vectors relative to a whitened reference cloud
- engine: Sequential monitoring engine (growing reference, EWMA, statistic)

Supporting Components:
- config: Pydantic-based monitor configuration
- errors: Error taxonomy (insufficient reference, singular covariance, ...)
- data: DataFrame/array adapter for reference samples and streams
- chart: Control limit evaluation and summaries
- traceability: Hashes and run records for reproducibility

Usage:
    from srewma import SREWMAMonitor, MonitorConfig, create_srewma_chart

    monitor = SREWMAMonitor(reference, lambda_param=0.025)
    run = monitor.run(observations)

    result = create_srewma_chart(reference, observations,
                                 MonitorConfig(lambda_param=0.025, control_limit=h))
"""

from .errors import (
    SREWMAError,
    InsufficientReferenceSize,
    SingularCovariance,
    DimensionMismatch,
    NonFiniteObservation,
    InvalidObservation,
    MonitorTerminated,
    ConfigurationError,
)

from .whitening import (
    WhiteningResult,
    whiten,
    apply_whitening,
    sample_covariance,
    correlation_condition_number,
    WHITENING_METHODS,
    DEFAULT_MAX_CONDITION,
)

from .spatial_rank import (
    spatial_rank,
    rank_from_differences,
    reference_ranks,
    squared_rank_norms,
)

from .buffers import ReferenceBuffer

from .config import (
    MonitorConfig,
    validate_monitor_config,
    DEFAULT_CONFIG,
)

from .engine import (
    MonitorState,
    StepRecord,
    MonitoringRun,
    SREWMAMonitor,
)

from .data import (
    as_observation_matrix,
    split_reference,
)

from .chart import (
    SREWMAChartResult,
    create_srewma_chart,
    detect_signals,
    format_srewma_summary,
)

from .traceability import (
    RunRecord,
    compute_array_hash,
    compute_config_hash,
    create_run_record,
    PROCESSING_VERSION,
)

__version__ = "1.0.0"
