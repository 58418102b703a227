"""
Run Traceability
================
Hashes and audit records for SREWMA monitoring runs.

The engine is deterministic: identical reference sample, stream and
configuration must produce bit-for-bit identical statistics. A run
record ties the statistic sequence to the exact inputs that produced
it, so two runs can be compared by hash.
"""

import hashlib
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import numpy as np

from .config import MonitorConfig

# Increment when the statistic computation changes
PROCESSING_VERSION = "1.0.0"


def compute_array_hash(array: np.ndarray) -> str:
    """
    Compute SHA-256 hash of an array's shape and float64 contents.

    Returns:
        Hex string prefixed with 'sha256:'
    """
    array = np.ascontiguousarray(np.asarray(array, dtype=np.float64))
    sha256_hash = hashlib.sha256()
    sha256_hash.update(str(array.shape).encode('utf-8'))
    sha256_hash.update(array.tobytes())
    return f"sha256:{sha256_hash.hexdigest()}"


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Compute hash of a configuration dictionary.

    Sorts keys for deterministic output.
    """
    config_str = json.dumps(config, sort_keys=True, default=str)
    sha256_hash = hashlib.sha256(config_str.encode('utf-8'))
    return f"sha256:{sha256_hash.hexdigest()}"


@dataclass
class RunRecord:
    """Audit record of one monitoring run."""
    reference_hash: str
    stream_hash: str
    config_hash: str
    statistics_hash: str
    n_reference: int
    n_steps: int
    completed: bool
    failure: Optional[str] = None
    processing_version: str = PROCESSING_VERSION
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def same_result_as(self, other: 'RunRecord') -> bool:
        """True if both runs used identical inputs and produced identical statistics."""
        return (
            self.reference_hash == other.reference_hash
            and self.stream_hash == other.stream_hash
            and self.config_hash == other.config_hash
            and self.statistics_hash == other.statistics_hash
        )


def create_run_record(
    reference: np.ndarray,
    stream: np.ndarray,
    config: MonitorConfig,
    statistics: np.ndarray,
    failure: Optional[Exception] = None,
) -> RunRecord:
    """Create the audit record for a monitoring run."""
    reference = np.asarray(reference, dtype=float)
    return RunRecord(
        reference_hash=compute_array_hash(reference),
        stream_hash=compute_array_hash(stream),
        config_hash=compute_config_hash(config.to_dict()),
        statistics_hash=compute_array_hash(statistics),
        n_reference=reference.shape[0],
        n_steps=len(statistics),
        completed=failure is None,
        failure=str(failure) if failure is not None else None,
    )
