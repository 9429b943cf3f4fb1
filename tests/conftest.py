"""Shared test fixtures for the visit forecasting test suite."""

import numpy as np
import pandas as pd
import pytest

from visit_forecast.transform import log_standardize
from visit_forecast.feature_engineering import augment_features
from visit_forecast.partition import split_prepared_forecast, split_train_test


def make_weekly_series(n_weeks: int = 80, seed: int = 7) -> pd.DataFrame:
    """Two groups of weekly counts with trend, annual seasonality and noise."""
    rng = np.random.default_rng(seed)
    dates = pd.date_range('2016-01-03', periods=n_weeks, freq='7D')  # Sundays
    t = np.arange(n_weeks)

    frames = []
    for flag, payer, level in [('I', 'Medicare', 120.0), ('O', 'Non-Medicare', 300.0)]:
        seasonal = 1.0 + 0.1 * np.sin(2 * np.pi * t / 52)
        counts = rng.poisson(level * seasonal * (1.0 + 0.002 * t))
        frames.append(pd.DataFrame({
            'ip_op_flag': flag,
            'payer_category': payer,
            'group_id': f'{flag}_{payer}',
            'date': dates,
            'value': np.maximum(counts, 1),
        }))

    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def series_factory():
    """Builder for weekly series of a chosen length."""
    return make_weekly_series


@pytest.fixture
def weekly_df() -> pd.DataFrame:
    """Group-week counts for two groups."""
    return make_weekly_series()


@pytest.fixture
def transformed(weekly_df):
    """(transformed frame, standardization params)."""
    return log_standardize(weekly_df)


@pytest.fixture
def augmented_df(transformed) -> pd.DataFrame:
    """Transformed series with horizon rows, lag and rolling features."""
    df, _ = transformed
    return augment_features(df, horizon=14, lag_periods=[14], rolling_windows=[7, 14, 28, 52])


@pytest.fixture
def partitions(augmented_df):
    """Prepared, forecast, train and test frames."""
    prepared_df, future_df = split_prepared_forecast(augmented_df)
    train_df, test_df = split_train_test(prepared_df, assess=14)
    return {
        'prepared': prepared_df,
        'forecast': future_df,
        'train': train_df,
        'test': test_df,
    }


@pytest.fixture
def raw_visits() -> pd.DataFrame:
    """A handful of visit-level records spanning the 2011/2012 boundary."""
    return pd.DataFrame({
        'mrn': ['1', '2', '3', '4', '5', '6'],
        'visit_id': ['10', '11', '12', '13', '14', '15'],
        'visit_start_date_time': pd.to_datetime([
            '2011-12-28 08:00', '2012-01-02 09:30', '2012-01-03 10:00',
            '2012-01-04 11:15', '2012-01-09 07:45', '2019-12-31 22:00',
        ]),
        'visit_end_date_time': pd.to_datetime([
            '2011-12-30 12:00', '2012-01-02 15:00', '2012-01-05 10:00',
            '2012-01-04 18:00', '2012-01-10 09:00', '2020-01-02 10:00',
        ]),
        'total_charge_amount': [100.0, 200.0, 300.0, 400.0, 500.0, 600.0],
        'total_adjustment_amount': [-10.0, -20.0, -30.0, -40.0, -50.0, -60.0],
        'total_payment_amount': [-90.0, -180.0, -270.0, -360.0, -450.0, -540.0],
        'payer_grouping': ['Medicare A', 'Medicare HMO', 'Commercial', '?', 'Medicaid', 'Medicare A'],
        'service_line': ['Medical'] * 6,
        'ip_op_flag': ['I', 'I', 'O', 'O', 'O', 'I'],
        'extra_column': ['x'] * 6,
    })
