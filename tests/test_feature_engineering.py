"""Tests for horizon extension, lag and rolling features."""

import numpy as np
import pandas as pd
import pytest

from visit_forecast.feature_engineering import FeatureEngineer, augment_features, extend_horizon


class TestExtendHorizon:
    """Tests for future row creation."""

    def test_appends_horizon_rows_per_group(self, transformed) -> None:
        """Each group gains exactly `horizon` weekly rows after its last date."""
        df, _ = transformed

        extended = extend_horizon(df, horizon=14)

        for group, group_df in extended.groupby('group_id'):
            last_known = df.loc[df['group_id'] == group, 'date'].max()
            future = group_df[group_df['date'] > last_known]
            assert len(future) == 14
            assert future['value_trans'].isna().all()
            assert future['value'].isna().all()
            assert (future['date'].diff().dropna() == pd.Timedelta('7D')).all()
            assert future['ip_op_flag'].notna().all()

    def test_invalid_horizon_raises(self, transformed) -> None:
        """A horizon below one is rejected."""
        df, _ = transformed
        with pytest.raises(ValueError):
            extend_horizon(df, horizon=0)


class TestLagFeatures:
    """Tests for date-aligned lags."""

    def test_lag_matches_value_fourteen_weeks_earlier(self, augmented_df) -> None:
        """lag_14 at t is value_trans at t - 14 weeks in the same group, else missing."""
        lookup = augmented_df.set_index(['group_id', 'date'])['value_trans']

        for _, row in augmented_df.iterrows():
            key = (row['group_id'], row['date'] - pd.Timedelta(weeks=14))
            if key in lookup.index and not np.isnan(lookup[key]):
                assert row['lag_14'] == pytest.approx(lookup[key])
            else:
                assert np.isnan(row['lag_14'])

    def test_first_fourteen_weeks_have_no_lag(self, augmented_df) -> None:
        """The earliest 14 weeks of each group have nothing to look back to."""
        for _, group_df in augmented_df.groupby('group_id'):
            assert group_df['lag_14'].iloc[:14].isna().all()
            assert group_df['lag_14'].iloc[14:].notna().all()

    def test_gap_in_series_leaves_lag_missing(self) -> None:
        """A missing week yields a missing lag instead of a shifted neighbor."""
        dates = pd.date_range('2018-01-07', periods=20, freq='7D').delete(3)
        df = pd.DataFrame({'group_id': 'g', 'date': dates, 'value_trans': np.arange(len(dates), dtype=float)})

        engineer = FeatureEngineer(df)
        engineer.create_lag_features([2])
        out = engineer.df.set_index('date')

        assert np.isnan(out.loc[dates[0] + pd.Timedelta(weeks=5), 'lag_2'])
        assert out.loc[dates[0] + pd.Timedelta(weeks=4), 'lag_2'] == 2.0


class TestRollingFeatures:
    """Tests for centered rolling means of the lag."""

    def test_centered_window_with_partial_edges(self) -> None:
        """Windows are centered and shrink at the series boundaries."""
        df = pd.DataFrame({
            'group_id': 'g',
            'date': pd.date_range('2018-01-07', periods=6, freq='7D'),
            'value_trans': np.zeros(6),
            'lag_1': [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
        })

        engineer = FeatureEngineer(df)
        engineer.create_rolling_features('lag_1', [3])

        np.testing.assert_allclose(engineer.df['lag_1_roll_3'], [1.5, 2.0, 3.0, 4.0, 5.0, 5.5])

    def test_rolling_never_crosses_groups(self) -> None:
        """Each group's rolling mean only sees its own rows."""
        df = pd.DataFrame({
            'group_id': ['a'] * 3 + ['b'] * 3,
            'date': list(pd.date_range('2018-01-07', periods=3, freq='7D')) * 2,
            'value_trans': np.zeros(6),
            'lag_1': [1.0, 1.0, 1.0, 100.0, 100.0, 100.0],
        })

        engineer = FeatureEngineer(df)
        engineer.create_rolling_features('lag_1', [5])

        assert (engineer.df.loc[engineer.df['group_id'] == 'a', 'lag_1_roll_5'] == 1.0).all()
        assert (engineer.df.loc[engineer.df['group_id'] == 'b', 'lag_1_roll_5'] == 100.0).all()

    def test_all_rolling_columns_created(self, augmented_df) -> None:
        """lag_14_roll_{7,14,28,52} are present."""
        for window in [7, 14, 28, 52]:
            assert f'lag_14_roll_{window}' in augmented_df.columns


class TestForecastRows:
    """Tests for the horizon = lag = 14 forecast rows."""

    def test_future_rows_have_populated_lags(self, augmented_df, transformed) -> None:
        """All 14 future rows per group carry a lag from the last 14 known weeks."""
        df, _ = transformed
        future = augmented_df[augmented_df['value_trans'].isna()]

        for group, group_future in future.groupby('group_id'):
            known = df[df['group_id'] == group].sort_values('date')
            assert len(group_future) == 14
            np.testing.assert_allclose(group_future['lag_14'].values,
                                       known['value_trans'].iloc[-14:].values)

    def test_duplicate_rows_rejected(self, transformed) -> None:
        """Two rows for one group and date are a data error."""
        df, _ = transformed
        with pytest.raises(ValueError):
            augment_features(pd.concat([df, df.iloc[[0]]], ignore_index=True))

    def test_explicit_zero_horizon_rejected(self, transformed) -> None:
        """horizon=0 is an error, not a request for the configured default."""
        df, _ = transformed
        with pytest.raises(ValueError, match="horizon"):
            augment_features(df, horizon=0)
