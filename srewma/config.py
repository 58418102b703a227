"""
Monitor Configuration
=====================
Schema validation for SREWMA monitoring configurations.

Key Principle: Fail fast on bad configs. A smoothing constant outside
(0, 1) or a negative control limit should raise an immediate, clear
error - not silently produce a meaningless chart.

The smoothing constant and control limit are supplied by the caller;
their selection from run-length tables is outside this package.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .whitening import DEFAULT_MAX_CONDITION


class MonitorConfig(BaseModel):
    """Complete configuration for an SREWMA monitoring run."""
    model_config = ConfigDict(extra='forbid')

    config_name: str = Field("default", min_length=1, description="Configuration name")
    description: Optional[str] = Field(None, description="Configuration description")

    lambda_param: float = Field(
        0.025, gt=0, lt=1,
        description="EWMA smoothing constant (0 < lambda < 1)",
    )
    control_limit: Optional[float] = Field(
        None, gt=0, allow_inf_nan=False,
        description="Control limit h; a signal is raised when Q_t > h",
    )

    whitening_method: Literal['cholesky', 'symmetric'] = Field(
        'cholesky',
        description="Matrix square-root factorization of the inverse covariance",
    )
    max_condition_number: float = Field(
        DEFAULT_MAX_CONDITION, gt=1,
        description="Correlation-matrix condition numbers above this are treated as singular",
    )
    keep_history: bool = Field(True, description="Record per-step diagnostics")

    columns: Optional[List[str]] = Field(
        None,
        description="Variable columns to monitor when data is a DataFrame",
    )

    @field_validator('columns')
    @classmethod
    def check_columns_unique(cls, v):
        if v is not None:
            if len(v) == 0:
                raise ValueError("columns must not be empty when given")
            if len(set(v)) != len(v):
                raise ValueError(f"columns contains duplicates: {v}")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MonitorConfig':
        """Create from dictionary."""
        return validate_monitor_config(data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'MonitorConfig':
        """Load from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)
        return validate_monitor_config(data)


def validate_monitor_config(config: Dict[str, Any]) -> MonitorConfig:
    """
    Validate a configuration dictionary.

    Args:
        config: Configuration dictionary to validate

    Returns:
        Validated MonitorConfig

    Raises:
        ConfigurationError: If validation fails, listing every problem
    """
    try:
        return MonitorConfig(**config)
    except ValidationError as e:
        messages = []
        for err in e.errors():
            loc = '.'.join(str(part) for part in err['loc']) or 'config'
            messages.append(f"{loc}: {err['msg']}")
        raise ConfigurationError(
            "Configuration validation failed:\n  - " + "\n  - ".join(messages)
        ) from e


DEFAULT_CONFIG = MonitorConfig(
    config_name="Default SREWMA",
    description="lambda = 0.025; set control_limit for the required in-control run length",
)
