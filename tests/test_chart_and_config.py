"""
Test Suite for Supporting Components
====================================
Tests for configuration, data adapter, chart evaluation and
traceability.

Run with: python -m pytest tests/test_chart_and_config.py -v
"""

import sys
import json
import tempfile
import numpy as np
import pandas as pd
import pytest
from pathlib import Path

# Add package to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from srewma.config import MonitorConfig, validate_monitor_config, DEFAULT_CONFIG
from srewma.data import as_observation_matrix, split_reference
from srewma.chart import (
    SREWMAChartResult,
    create_srewma_chart,
    detect_signals,
    format_srewma_summary,
)
from srewma.traceability import (
    compute_array_hash,
    compute_config_hash,
    create_run_record,
)
from srewma.errors import (
    ConfigurationError,
    InsufficientReferenceSize,
    NonFiniteObservation,
)


VARIABLES = ['fixed_acidity', 'volatile_acidity', 'citric_acid', 'ph']


def create_process_dataframe(n_reference=20, n_in_control=30, n_shifted=50, shift=5.0, seed=42):
    """
    Product-stream measurements with Index/Date metadata columns.

    Rows after n_reference + n_in_control have a mean shift in the
    first three variables.
    """
    np.random.seed(seed)
    n = n_reference + n_in_control + n_shifted
    cov = 0.3 * np.ones((4, 4)) + 0.7 * np.eye(4)
    values = np.random.multivariate_normal(np.zeros(4), cov, size=n)
    values[n_reference + n_in_control:, :3] += shift

    df = pd.DataFrame(values, columns=VARIABLES)
    df.insert(0, 'Date', pd.date_range('2024-01-01', periods=n, freq='h').astype(str))
    df.insert(0, 'Index', np.arange(1, n + 1))
    return df


class TestMonitorConfig:
    """Test configuration validation."""

    def test_defaults(self):
        config = MonitorConfig()

        assert config.lambda_param == 0.025
        assert config.control_limit is None
        assert config.whitening_method == 'cholesky'
        assert config.keep_history is True
        assert DEFAULT_CONFIG.lambda_param == 0.025
        assert DEFAULT_CONFIG.control_limit is None

    def test_valid_config(self):
        config = validate_monitor_config({
            'config_name': 'Batch A',
            'lambda_param': 0.05,
            'control_limit': 12.5,
            'whitening_method': 'symmetric',
            'columns': VARIABLES,
        })

        assert config.control_limit == 12.5
        assert config.columns == VARIABLES
        print(f"✓ Valid config: {config.config_name}")

    @pytest.mark.parametrize('lam', [0.0, 1.0, -0.5, 2.0])
    def test_lambda_must_be_in_open_interval(self, lam):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_monitor_config({'lambda_param': lam})

        assert 'lambda_param' in str(exc_info.value)

    def test_negative_control_limit(self):
        with pytest.raises(ConfigurationError):
            validate_monitor_config({'control_limit': -1.0})

    def test_unknown_whitening_method(self):
        with pytest.raises(ConfigurationError):
            validate_monitor_config({'whitening_method': 'qr'})

    def test_unknown_field_rejected(self):
        """A typo in a config key fails instead of being ignored."""
        with pytest.raises(ConfigurationError) as exc_info:
            validate_monitor_config({'lamda_param': 0.1})

        assert 'lamda_param' in str(exc_info.value)

    def test_duplicate_columns(self):
        with pytest.raises(ConfigurationError):
            validate_monitor_config({'columns': ['ph', 'ph']})

    def test_all_errors_reported(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_monitor_config({'lambda_param': 3.0, 'control_limit': 0.0})

        message = str(exc_info.value)
        assert 'lambda_param' in message
        assert 'control_limit' in message

    def test_file_roundtrip(self):
        config = MonitorConfig(config_name='Line 2', lambda_param=0.1, control_limit=15.0)

        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'monitor.json'
            with open(path, 'w') as f:
                json.dump(config.to_dict(), f)

            loaded = MonitorConfig.from_file(path)

        assert loaded == config

    def test_to_dict_excludes_none(self):
        data = MonitorConfig().to_dict()

        assert 'control_limit' not in data
        assert data['lambda_param'] == 0.025


class TestDataAdapter:
    """Test conversion of tables into observation matrices."""

    def test_select_columns(self):
        df = create_process_dataframe()

        X = as_observation_matrix(df, VARIABLES)

        assert X.shape == (100, 4)
        np.testing.assert_array_equal(X, df[VARIABLES].to_numpy())

    def test_default_uses_numeric_columns(self):
        df = create_process_dataframe().drop(columns=['Index'])

        X = as_observation_matrix(df)

        assert X.shape == (100, 4)

    def test_incomplete_rows_dropped(self):
        df = create_process_dataframe()
        df.loc[3, 'ph'] = np.nan
        df['citric_acid'] = df['citric_acid'].astype(object)
        df.loc[7, 'citric_acid'] = 'n/a'

        X = as_observation_matrix(df, VARIABLES)

        assert X.shape == (98, 4)

    def test_incomplete_rows_kept_when_requested(self):
        df = create_process_dataframe()
        df.loc[3, 'ph'] = np.nan

        X = as_observation_matrix(df, VARIABLES, drop_incomplete=False)

        assert X.shape == (100, 4)
        assert np.isnan(X[3, 3])

    def test_missing_column(self):
        with pytest.raises(ValueError):
            as_observation_matrix(create_process_dataframe(), ['ph', 'sugar'])

    def test_array_input(self):
        X = as_observation_matrix([[1.0, 2.0], [3.0, 4.0]])

        assert X.shape == (2, 2)

    def test_one_dimensional_array_is_single_variable(self):
        X = as_observation_matrix(np.arange(5.0))

        assert X.shape == (5, 1)

    def test_split_reference(self):
        df = create_process_dataframe()

        reference, stream = split_reference(df, 20, VARIABLES)

        assert reference.shape == (20, 4)
        assert stream.shape == (80, 4)
        np.testing.assert_array_equal(stream[0], df.loc[20, VARIABLES].to_numpy(dtype=float))

    def test_split_reference_too_small(self):
        with pytest.raises(InsufficientReferenceSize):
            split_reference(create_process_dataframe(), 4, VARIABLES)


class TestSREWMAChart:
    """Test chart creation and signal evaluation."""

    def test_detect_signals(self):
        signals = detect_signals(np.array([1.0, 5.0, 2.0, 7.0, 5.0]), 5.0)

        assert signals == [3]

    def test_chart_detects_shift(self):
        df = create_process_dataframe()
        config = MonitorConfig(lambda_param=0.025, control_limit=20.0, columns=VARIABLES)

        result = create_srewma_chart(df.iloc[:20], df.iloc[20:], config)

        assert isinstance(result, SREWMAChartResult)
        assert result.completed
        assert result.n_points == 80
        assert result.dimension == 4
        assert result.first_signal is not None
        assert 30 <= result.first_signal < 50
        assert result.run_length == result.first_signal + 1
        print(f"✓ Chart alarm at index {result.first_signal}")

    def test_chart_without_limit(self):
        df = create_process_dataframe()
        config = MonitorConfig(columns=VARIABLES)

        result = create_srewma_chart(df.iloc[:20], df.iloc[20:], config)

        assert result.signals == []
        assert result.first_signal is None
        assert result.run_length is None
        assert 'No control limit configured' in format_srewma_summary(result)

    def test_chart_reports_prefix_on_bad_row(self):
        """A missing value in the stream aborts at its position."""
        df = create_process_dataframe()
        df.loc[25, 'ph'] = np.nan
        config = MonitorConfig(control_limit=20.0, columns=VARIABLES)

        result = create_srewma_chart(df.iloc[:20], df.iloc[20:], config)

        assert not result.completed
        assert isinstance(result.failure, NonFiniteObservation)
        assert result.n_points == 5
        assert result.record is not None
        assert result.record.completed is False

    def test_summary(self):
        df = create_process_dataframe()
        config = MonitorConfig(control_limit=20.0, columns=VARIABLES)
        result = create_srewma_chart(df.iloc[:20], df.iloc[20:], config)

        summary = format_srewma_summary(result, title='Line 2')

        assert summary.startswith('## SREWMA Chart: Line 2')
        assert 'First alarm at index' in summary
        assert 'Control Limit (h): 20.0000' in summary

    def test_to_dict(self):
        df = create_process_dataframe()
        config = MonitorConfig(control_limit=20.0, columns=VARIABLES)
        result = create_srewma_chart(df.iloc[:20], df.iloc[20:], config)

        data = result.to_dict()

        assert len(data['statistics']) == 80
        assert data['first_signal'] == result.first_signal
        assert data['record']['statistics_hash'].startswith('sha256:')
        json.dumps(data)


class TestTraceability:
    """Test hashing and run records."""

    def test_array_hash_deterministic(self):
        X = np.arange(12.0).reshape(4, 3)

        assert compute_array_hash(X) == compute_array_hash(X.copy())
        assert compute_array_hash(X).startswith('sha256:')

    def test_array_hash_sensitive_to_shape_and_values(self):
        X = np.arange(12.0).reshape(4, 3)
        Y = X.copy()
        Y[2, 1] += 1e-12

        assert compute_array_hash(X) != compute_array_hash(Y)
        assert compute_array_hash(X) != compute_array_hash(X.reshape(3, 4))

    def test_config_hash_ignores_key_order(self):
        assert compute_config_hash({'a': 1, 'b': 2}) == compute_config_hash({'b': 2, 'a': 1})

    def test_repeated_runs_reproduce(self):
        """Identical inputs give bit-for-bit identical statistics."""
        df = create_process_dataframe()
        config = MonitorConfig(control_limit=20.0, columns=VARIABLES)

        a = create_srewma_chart(df.iloc[:20], df.iloc[20:], config)
        b = create_srewma_chart(df.iloc[:20], df.iloc[20:], config)

        assert a.record.same_result_as(b.record)
        assert np.array_equal(a.statistics, b.statistics)

    def test_record_detects_different_stream(self):
        config = MonitorConfig()
        reference = np.random.RandomState(0).normal(size=(10, 2))
        stats = np.array([0.1, 0.2])

        a = create_run_record(reference, np.zeros((2, 2)), config, stats)
        b = create_run_record(reference, np.ones((2, 2)), config, stats)

        assert not a.same_result_as(b)
        assert a.n_reference == 10
        assert a.n_steps == 2
        assert a.completed
