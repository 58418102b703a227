"""
Sequential Monitoring Engine
============================
Spatial-rank EWMA (SREWMA) monitoring of a multivariate stream against
a growing in-control reference sample.

Lifecycle:
    INITIALIZING -> MONITORING -> TERMINATED

Initialization (run once, in the constructor):
- Whiten the reference sample (m observations)
- Leave-one-out spatial rank of every reference point
- Cumulative total = sum of squared rank norms; EWMA state = 0

Each monitoring step, for observation x_t and reference size n:
    r_t   = spatial rank of x_t against the whitened reference
    total = total + ||r_t||^2
    eps_t = total / (n + 1)
    v_t   = (1 - lambda) * v_{t-1} + lambda * r_t
    Q_t   = (2 - lambda) * p / (lambda * eps_t) * ||v_t||^2
then x_t (un-whitened) joins the reference sample.

The covariance and whitening transform are refit from the full
reference sample at every step. Step order is load-bearing: each
step depends on the reference sample, total and EWMA state left by
the previous one.

A SingularCovariance during monitoring terminates the engine; the
statistics computed so far stay valid and are still reported.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .buffers import ReferenceBuffer
from .config import MonitorConfig
from .errors import (
    ConfigurationError,
    DimensionMismatch,
    InvalidObservation,
    MonitorTerminated,
    NonFiniteObservation,
    SingularCovariance,
    SREWMAError,
)
from .spatial_rank import rank_from_differences, reference_ranks, squared_rank_norms
from .whitening import DEFAULT_MAX_CONDITION, whiten

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    """Engine lifecycle states."""
    INITIALIZING = "initializing"
    MONITORING = "monitoring"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class StepRecord:
    """Diagnostics for a single monitoring step."""
    time_index: int          # 0-based position in the statistic sequence
    statistic: float         # Q_t
    rank_norm_sq: float      # ||r_t||^2
    eps: float               # normalizing average of squared rank norms
    ewma_norm: float         # ||v_t||
    reference_size: int      # reference size used for this step (before growth)
    condition_number: float  # condition number of the reference covariance


@dataclass
class MonitoringRun:
    """Statistics produced by one call to SREWMAMonitor.run()."""
    statistics: np.ndarray
    start_index: int
    failure: Optional[SREWMAError] = None

    @property
    def completed(self) -> bool:
        """True if every observation of the stream was processed."""
        return self.failure is None

    @property
    def n_steps(self) -> int:
        return len(self.statistics)

    @property
    def time_indices(self) -> np.ndarray:
        return np.arange(self.start_index, self.start_index + self.n_steps)


# Errors that end run() early instead of propagating
_RUN_ABORTING_ERRORS = (
    SingularCovariance, DimensionMismatch, NonFiniteObservation, InvalidObservation,
)


class SREWMAMonitor:
    """
    Spatial-rank EWMA control chart engine.

    Usage:
        monitor = SREWMAMonitor(reference, lambda_param=0.025)
        q = monitor.step(x)               # one observation
        run = monitor.run(observations)   # drain a stream, then terminate
        if not run.completed:
            print(run.failure)

    Each instance owns its reference sample, cumulative total and EWMA
    state; independent monitors share nothing.
    """

    def __init__(
        self,
        reference_sample: np.ndarray,
        lambda_param: float = 0.025,
        whitening_method: str = 'cholesky',
        max_condition: float = DEFAULT_MAX_CONDITION,
        keep_history: bool = True,
    ):
        """
        Args:
            reference_sample: In-control observations, shape (m, p) with m > p
            lambda_param: EWMA smoothing constant in (0, 1)
            whitening_method: 'cholesky' or 'symmetric'
            max_condition: Largest acceptable correlation-matrix condition number
            keep_history: Record a StepRecord per step

        Raises:
            ConfigurationError: If lambda_param is outside (0, 1)
            InsufficientReferenceSize: If m <= p
            SingularCovariance: If the reference covariance is singular
        """
        self._state = MonitorState.INITIALIZING

        if not (0.0 < lambda_param < 1.0):
            raise ConfigurationError(f"lambda_param must be in (0, 1), got {lambda_param}")

        reference = np.asarray(reference_sample, dtype=float)
        if reference.ndim != 2:
            raise ValueError(f"Reference sample must be 2-D (m, p), got shape {reference.shape}")
        if not np.all(np.isfinite(reference)):
            raise NonFiniteObservation()

        self._lambda = float(lambda_param)
        self._method = whitening_method
        self._max_condition = max_condition
        self._keep_history = keep_history

        whitening = whiten(reference, method=whitening_method, max_condition=max_condition)
        ranks = reference_ranks(whitening.whitened)

        self._dimension = reference.shape[1]
        self._initial_size = reference.shape[0]
        self._reference = ReferenceBuffer(reference)
        self._cumulative_total = float(squared_rank_norms(ranks).sum())
        self._ewma = np.zeros(self._dimension)
        self._statistics: List[float] = []
        self._history: List[StepRecord] = []
        self._failure: Optional[SREWMAError] = None

        self._state = MonitorState.MONITORING
        logger.info(
            f"Initialized SREWMA monitor: m={self._initial_size}, p={self._dimension}, "
            f"lambda={self._lambda}, initial total={self._cumulative_total:.4f}"
        )

    @classmethod
    def from_config(cls, reference_sample: np.ndarray, config: MonitorConfig) -> 'SREWMAMonitor':
        """Create a monitor from a validated MonitorConfig."""
        return cls(
            reference_sample,
            lambda_param=config.lambda_param,
            whitening_method=config.whitening_method,
            max_condition=config.max_condition_number,
            keep_history=config.keep_history,
        )

    # -------------------------------------------------------------------------
    # Read-only state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def lambda_param(self) -> float:
        return self._lambda

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def initial_reference_size(self) -> int:
        return self._initial_size

    @property
    def reference_size(self) -> int:
        return len(self._reference)

    @property
    def reference_sample(self) -> np.ndarray:
        """Copy of the current (grown) reference sample."""
        return self._reference.snapshot()

    @property
    def cumulative_total(self) -> float:
        return self._cumulative_total

    @property
    def ewma_state(self) -> np.ndarray:
        return self._ewma.copy()

    @property
    def statistics(self) -> np.ndarray:
        """Control statistic sequence Q_0, Q_1, ... emitted so far."""
        return np.array(self._statistics, dtype=float)

    @property
    def n_steps(self) -> int:
        return len(self._statistics)

    @property
    def history(self) -> Tuple[StepRecord, ...]:
        return tuple(self._history)

    @property
    def failure(self) -> Optional[SREWMAError]:
        """Error that terminated the engine, if any."""
        return self._failure

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def _validate_observation(self, observation, time_index: int) -> np.ndarray:
        try:
            x = np.asarray(observation, dtype=float).ravel()
        except (TypeError, ValueError) as e:
            raise InvalidObservation(str(e), time_index) from e
        if x.size != self._dimension:
            raise DimensionMismatch(self._dimension, x.size, time_index)
        if not np.all(np.isfinite(x)):
            raise NonFiniteObservation(time_index)
        return x

    def step(self, observation: np.ndarray) -> float:
        """
        Process one observation and return its control statistic Q_t.

        State is only written once every quantity of the step has been
        computed, so a failing step leaves the engine as it was.

        Raises:
            MonitorTerminated: If the engine has terminated
            DimensionMismatch: Observation has the wrong dimension (engine unchanged)
            NonFiniteObservation: Observation has NaN/inf (engine unchanged)
            InvalidObservation: Observation is ragged or non-numeric (engine unchanged)
            SingularCovariance: Reference covariance singular (engine terminates)
        """
        if self._state is MonitorState.TERMINATED:
            raise MonitorTerminated(
                "Monitor has terminated; no further observations are accepted",
                time_index=self.n_steps,
            )

        t = self.n_steps
        x = self._validate_observation(observation, t)

        reference = self._reference.view()
        n = len(reference)
        p = self._dimension
        lam = self._lambda

        try:
            whitening = whiten(
                reference,
                method=self._method,
                max_condition=self._max_condition,
                time_index=t,
            )
        except SingularCovariance as e:
            self._terminate(e)
            raise

        # Whitened x minus whitened reference, formed as one product so that
        # exact duplicates of x stay at zero distance
        rank = rank_from_differences(whitening.apply(x - reference))
        rank_norm_sq = float(rank @ rank)

        total = self._cumulative_total + rank_norm_sq
        eps = total / (n + 1)
        ewma = (1.0 - lam) * self._ewma + lam * rank
        ewma_norm_sq = float(ewma @ ewma)
        # total == 0 means every rank so far was zero, hence so is the EWMA
        statistic = (2.0 - lam) * p / (lam * eps) * ewma_norm_sq if eps > 0 else 0.0

        self._cumulative_total = total
        self._ewma = ewma
        self._statistics.append(statistic)
        self._reference.append(x)

        if self._keep_history:
            self._history.append(StepRecord(
                time_index=t,
                statistic=statistic,
                rank_norm_sq=rank_norm_sq,
                eps=eps,
                ewma_norm=float(np.sqrt(ewma_norm_sq)),
                reference_size=n,
                condition_number=whitening.condition_number,
            ))

        logger.debug(f"t={t}: Q={statistic:.4f}, ||r||^2={rank_norm_sq:.4f}, eps={eps:.4f}, n={n}")
        return statistic

    def run(self, observations: Iterable) -> MonitoringRun:
        """
        Process a stream of observations in order, then terminate.

        A SingularCovariance, DimensionMismatch or NonFiniteObservation
        stops the run at the offending observation; the statistics
        computed before it are returned together with the error.

        Calling run() with an empty stream on a terminated engine returns
        an empty MonitoringRun and changes nothing.

        Args:
            observations: Array of shape (k, p), DataFrame, or iterable of p-vectors

        Returns:
            MonitoringRun with the statistics computed by this call

        Raises:
            MonitorTerminated: If the engine has terminated and observations is non-empty
        """
        if isinstance(observations, pd.DataFrame):
            observations = observations.to_numpy()

        start = self.n_steps

        if self._state is MonitorState.TERMINATED:
            for _ in observations:
                raise MonitorTerminated(
                    "Monitor has terminated; no further observations are accepted",
                    time_index=start,
                )
            return MonitoringRun(statistics=np.empty(0), start_index=start)

        computed: List[float] = []
        failure: Optional[SREWMAError] = None

        for observation in observations:
            try:
                computed.append(self.step(observation))
            except _RUN_ABORTING_ERRORS as e:
                failure = e
                logger.error(f"Monitoring run aborted after {len(computed)} steps: {e}")
                break

        self._terminate(failure)

        return MonitoringRun(
            statistics=np.array(computed, dtype=float),
            start_index=start,
            failure=failure,
        )

    def finish(self) -> None:
        """Stop accepting observations; the engine becomes read-only."""
        self._terminate(None)

    def _terminate(self, failure: Optional[SREWMAError]) -> None:
        if self._state is MonitorState.TERMINATED:
            return
        self._state = MonitorState.TERMINATED
        if failure is not None and self._failure is None:
            self._failure = failure
        logger.info(
            f"SREWMA monitor terminated after {self.n_steps} steps "
            f"(reference size {self.reference_size})"
            + (f": {failure}" if failure is not None else "")
        )
