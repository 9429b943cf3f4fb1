"""Tests for the feature recipe builder."""

import dataclasses

import numpy as np
import pandas as pd
import pytest

from visit_forecast.recipes import FeatureRecipe, near_zero_variance, timeseries_signature


class TestTimeseriesSignature:
    """Tests for calendar feature expansion."""

    def test_sunday_signature(self) -> None:
        """Calendar fields for a Sunday early in January."""
        dates = pd.Series(pd.to_datetime(['2018-01-07']))

        sig = timeseries_signature(dates).iloc[0]

        assert sig['date_year'] == 2018
        assert sig['date_half'] == 1
        assert sig['date_quarter'] == 1
        assert sig['date_month_lbl'] == 'January'
        assert sig['date_wday'] == 1
        assert sig['date_wday_lbl'] == 'Sunday'
        assert sig['date_yday'] == 7
        assert sig['date_qday'] == 7
        assert sig['date_week'] == 1
        assert sig['date_mweek'] == 1
        assert sig['date_mday7'] == 2

    def test_signature_column_count(self) -> None:
        """27 features prefixed with the date column name."""
        sig = timeseries_signature(pd.Series(pd.date_range('2018-01-07', periods=3, freq='7D')))

        assert sig.shape[1] == 27
        assert all(col.startswith('date_') for col in sig.columns)


class TestNearZeroVariance:
    """Tests for near-zero-variance detection."""

    def test_flags_constant_and_dominated_columns(self) -> None:
        """Constant and heavily dominated low-cardinality columns are flagged."""
        frame = pd.DataFrame({
            'constant': np.ones(100),
            'dominated': [0.0] * 99 + [1.0],
            'varied': np.arange(100, dtype=float),
        })

        assert near_zero_variance(frame) == ['constant', 'dominated']


class TestFeatureRecipe:
    """Tests for recipe variants and the fit/apply contract."""

    def test_unknown_variant_raises(self) -> None:
        """Only base, spline and lag recipes exist."""
        with pytest.raises(ValueError):
            FeatureRecipe(variant='fourier')

    def test_prepare_removes_subdaily_and_iso_columns(self, partitions) -> None:
        """Signature columns without meaning at weekly granularity are removed."""
        X = FeatureRecipe(variant='base').prepare(partitions['train'])

        for removed in ['date_hour', 'date_minute', 'date_second', 'date_am_pm',
                        'date_year_iso', 'date_week_iso', 'date_month_xts', 'date_wday_xts']:
            assert removed not in X.columns
        assert 'date' in X.columns
        assert 'value_trans' not in X.columns
        assert 'value' not in X.columns

    def test_spline_recipe_uses_basis_and_no_lags(self, partitions) -> None:
        """The spline recipe replaces the time index with a basis and drops lags."""
        fitted = FeatureRecipe(variant='spline', spline_deg_free=4).fit(partitions['train'])

        spline_cols = [c for c in fitted.feature_names if c.startswith('date_index_num_ns_')]
        assert len(spline_cols) == 4
        assert not any(c.startswith('lag_') for c in fitted.feature_names)
        assert 'date_index_num' not in fitted.feature_names
        assert fitted.n_train_rows == len(partitions['train'])

    def test_lag_recipe_drops_rows_with_missing_lags(self, partitions) -> None:
        """Training rows with missing lag features are removed."""
        train = partitions['train']

        fitted = FeatureRecipe(variant='lag').fit(train)

        assert fitted.n_train_rows == len(train) - 2 * 14
        assert 'lag_14' in fitted.feature_names

    def test_apply_reuses_learned_state(self, partitions) -> None:
        """Test and forecast rows get exactly the training feature columns."""
        fitted = FeatureRecipe(variant='lag').fit(partitions['train'])

        X_test = fitted.apply(partitions['test'])
        X_future = fitted.apply(partitions['forecast'])

        assert list(X_test.columns) == list(fitted.feature_names)
        assert list(X_future.columns) == list(fitted.feature_names)
        assert len(X_test) == len(partitions['test'])
        assert len(X_future) == len(partitions['forecast'])

    def test_apply_omits_rows_with_missing_lags(self, partitions) -> None:
        """New rows with missing lags are left out instead of imputed."""
        fitted = FeatureRecipe(variant='lag').fit(partitions['train'])

        X = fitted.apply(partitions['prepared'])

        assert len(X) == len(partitions['prepared']) - 2 * 14
        assert not X.isna().any().any()

    def test_scaling_learned_on_training_rows(self, partitions) -> None:
        """Training features are centered; applying elsewhere does not refit."""
        fitted = FeatureRecipe(variant='lag').fit(partitions['train'])

        X_train = fitted.apply(partitions['train'], training=True)

        assert X_train['lag_14'].mean() == pytest.approx(0.0, abs=1e-8)
        assert fitted.apply(partitions['test'])['lag_14'].mean() != pytest.approx(0.0, abs=1e-8)

    def test_fitted_recipe_is_immutable(self, partitions) -> None:
        """A fitted recipe cannot be modified in place."""
        fitted = FeatureRecipe(variant='lag').fit(partitions['train'])

        with pytest.raises(dataclasses.FrozenInstanceError):
            fitted.n_train_rows = 0

    def test_group_is_one_hot_encoded(self, partitions) -> None:
        """The group id enters the features as indicator columns."""
        fitted = FeatureRecipe(variant='lag').fit(partitions['train'])

        assert 'group_id_I_Medicare' in fitted.feature_names
        assert 'group_id_O_Non-Medicare' in fitted.feature_names
        assert 'group_id' not in fitted.feature_names
