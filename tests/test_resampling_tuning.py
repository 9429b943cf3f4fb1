"""Tests for time series cross-validation and Optuna tuning."""

import numpy as np
import pandas as pd
import pytest

from visit_forecast.feature_engineering import augment_features
from visit_forecast.hyperparameter_tuning import LagModelTuner, load_tuned_params, save_tuned_params
from visit_forecast.models import build_model_specs
from visit_forecast.partition import split_prepared_forecast, split_train_test
from visit_forecast.resampling import TimeSeriesCrossValidator, fit_resamples, resample_group_counts
from visit_forecast.transform import log_standardize


class TestTimeSeriesCrossValidator:
    """Tests for slice generation."""

    def test_most_recent_slice_first(self, partitions) -> None:
        """Slice 1 assesses the last weeks; later slices move back by `skip`."""
        train = partitions['train'].reset_index(drop=True)
        cv = TimeSeriesCrossValidator(assess=4, skip=4, slice_limit=3)

        splits = cv.split(train)

        assert len(splits) == 3
        last_dates = np.sort(train['date'].unique())
        first_test = train.loc[splits[0][1], 'date'].unique()
        np.testing.assert_array_equal(np.sort(first_test), last_dates[-4:])
        second_test = train.loc[splits[1][1], 'date'].unique()
        np.testing.assert_array_equal(np.sort(second_test), last_dates[-8:-4])

    def test_train_precedes_test(self, partitions) -> None:
        """Every training week comes before every assessment week; train is cumulative."""
        train = partitions['train'].reset_index(drop=True)
        cv = TimeSeriesCrossValidator(assess=4, skip=4, slice_limit=3)

        for train_mask, test_mask in cv.split(train):
            assert train.loc[train_mask, 'date'].max() < train.loc[test_mask, 'date'].min()
            assert train.loc[train_mask, 'date'].min() == train['date'].min()

    def test_rolling_origin_uses_initial_window(self, partitions) -> None:
        """Non-cumulative slices train on exactly `initial` weeks."""
        train = partitions['train'].reset_index(drop=True)
        cv = TimeSeriesCrossValidator(assess=4, skip=4, slice_limit=2, initial=20, cumulative=False)

        for train_mask, _ in cv.split(train):
            assert train.loc[train_mask, 'date'].nunique() == 20

    def test_zero_window_rejected(self) -> None:
        """Explicit zero sizes are errors, not config defaults."""
        with pytest.raises(ValueError):
            TimeSeriesCrossValidator(assess=0)

    def test_non_cumulative_requires_initial(self) -> None:
        """A rolling origin needs a window size."""
        with pytest.raises(ValueError):
            TimeSeriesCrossValidator(cumulative=False)

    def test_too_short_raises(self) -> None:
        """No slice fits into a series shorter than the assessment window."""
        df = pd.DataFrame({'date': pd.date_range('2018-01-07', periods=3, freq='7D')})
        with pytest.raises(ValueError):
            TimeSeriesCrossValidator(assess=4, skip=4, slice_limit=2).split(df)

    def test_group_counts(self, partitions) -> None:
        """Every group contributes `assess` rows to each assessment slice."""
        train = partitions['train'].reset_index(drop=True)
        cv = TimeSeriesCrossValidator(assess=4, skip=4, slice_limit=2)

        counts = resample_group_counts(train, cv)

        assert len(counts) == 2 * 2
        assert (counts['n_test'] == 4).all()


class TestFitResamples:
    """Tests for model evaluation across slices."""

    def test_one_row_per_model_and_slice(self, partitions) -> None:
        """Each model is scored on every slice."""
        specs = build_model_specs(['lm_spline', 'lm_lag'])
        cv = TimeSeriesCrossValidator(assess=4, skip=4, slice_limit=2)

        results = fit_resamples(specs, partitions['train'], cv, n_jobs=1)

        assert len(results) == 4
        assert set(results['model_id']) == {'lm_spline', 'lm_lag'}
        assert sorted(results['slice'].unique()) == [1, 2]
        assert (results['mae'] >= 0).all()

    def test_late_starting_group_is_skipped_in_older_slices(self, series_factory, capsys) -> None:
        """A group absent from a slice's training weeks is left out of its scoring."""
        weekly = series_factory(n_weeks=120)
        late = weekly[weekly['group_id'] == 'I_Medicare'].tail(50).assign(
            ip_op_flag='O', payer_category='Medicare', group_id='O_Medicare'
        )
        weekly = pd.concat([weekly, late], ignore_index=True)

        transformed, _ = log_standardize(weekly)
        prepared, _ = split_prepared_forecast(augment_features(transformed))
        train, _ = split_train_test(prepared, assess=14)

        results = fit_resamples(build_model_specs(['lm_lag', 'ets']), train,
                                TimeSeriesCrossValidator(assess=14, skip=14, slice_limit=4), n_jobs=1)

        assert len(results) == 2 * 4
        assert np.isfinite(results['mae']).all()
        assert "['O_Medicare'] not in training rows" in capsys.readouterr().out


class TestLagModelTuner:
    """Tests for Optuna tuning and tuned parameter persistence."""

    def test_tune_returns_params_per_model(self, partitions) -> None:
        """A short search yields parameters for both tunable models."""
        cv = TimeSeriesCrossValidator(assess=4, skip=4, slice_limit=2)
        tuner = LagModelTuner(n_trials=2, cv=cv)

        params = tuner.tune(partitions['train'], verbose=False)

        assert set(params) == {'glmnet_lag', 'lgbm_lag'}
        assert set(params['glmnet_lag']) == {'alpha', 'l1_ratio'}
        assert 'num_boost_round' in params['lgbm_lag']

    def test_tuned_params_feed_model_table(self, tmp_path) -> None:
        """Saved parameters load back and configure the models."""
        path = tmp_path / 'tuned' / 'params.json'
        params = {'glmnet_lag': {'alpha': 0.2, 'l1_ratio': 0.3},
                  'lgbm_lag': {'num_leaves': 9, 'num_boost_round': 25}}

        save_tuned_params(params, str(path))
        loaded = load_tuned_params(str(path))
        specs = build_model_specs(['glmnet_lag', 'lgbm_lag'], tuned_params=loaded)

        assert loaded == params
        assert specs[0].estimator_factory().alpha == 0.2
        assert specs[1].estimator_factory().num_boost_round == 25
