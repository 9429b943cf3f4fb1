"""Tests for calibration, interval widths, refit and forecast inversion."""

import numpy as np
import pandas as pd
import pytest

from visit_forecast.calibration import calibrate_models, calibration_summary, interval_half_widths
from visit_forecast.forecast import forecast_models, forecast_original_units, refit_models
from visit_forecast.models import build_model_specs, fit_model_table


@pytest.fixture
def specs():
    return build_model_specs(['lm_spline', 'lm_lag'])


@pytest.fixture
def calibration_df(specs, partitions):
    fitted = fit_model_table(specs, partitions['train'], n_jobs=1)
    return calibrate_models(fitted, partitions['test'])


class TestCalibrateModels:
    """Tests for residuals on the test split."""

    def test_residual_is_actual_minus_prediction(self, calibration_df, partitions) -> None:
        """One row per model and test week, residual = actual - prediction."""
        assert len(calibration_df) == 2 * len(partitions['test'])
        np.testing.assert_allclose(calibration_df['residual'],
                                   calibration_df['actual'] - calibration_df['prediction'])
        assert list(calibration_df.columns) == ['model_id', 'model_desc', 'group_id', 'date',
                                                'actual', 'prediction', 'residual']

    def test_empty_test_raises(self, specs, partitions) -> None:
        """Calibrating against no rows is an error."""
        fitted = fit_model_table(specs, partitions['train'], n_jobs=1)
        with pytest.raises(ValueError, match="empty"):
            calibrate_models(fitted, partitions['test'].iloc[0:0])

    def test_summary_per_model(self, calibration_df) -> None:
        """Residual summary has one row per model."""
        summary = calibration_summary(calibration_df)
        assert summary['model_id'].tolist() == ['lm_spline', 'lm_lag']
        assert (summary['count'] == len(calibration_df) / 2).all()


class TestIntervalHalfWidths:
    """Tests for conformal interval widths."""

    def test_quantile_of_absolute_residuals(self) -> None:
        """Half-width is the requested quantile of |residual| per model and group."""
        calibration = pd.DataFrame({
            'model_id': ['m'] * 4,
            'group_id': ['a', 'a', 'b', 'b'],
            'residual': [-1.0, 3.0, 0.5, -0.5],
        })

        widths = interval_half_widths(calibration, conf_interval=0.5, by_group=True)

        assert widths.set_index('group_id')['half_width'].to_dict() == {'a': 2.0, 'b': 0.5}

    def test_pooled_widths(self) -> None:
        """Without grouping there is one width per model."""
        calibration = pd.DataFrame({
            'model_id': ['m'] * 4,
            'group_id': ['a', 'a', 'b', 'b'],
            'residual': [-1.0, 3.0, 0.5, -0.5],
        })

        widths = interval_half_widths(calibration, conf_interval=0.95, by_group=False)

        assert list(widths.columns) == ['model_id', 'half_width']
        assert len(widths) == 1

    def test_invalid_level_raises(self, calibration_df) -> None:
        """Coverage levels outside (0, 1) are rejected."""
        with pytest.raises(ValueError):
            interval_half_widths(calibration_df, conf_interval=1.5)
        with pytest.raises(ValueError):
            interval_half_widths(calibration_df, conf_interval=0)


class TestForecast:
    """Tests for refit, forecast and inversion."""

    def test_forecast_table_in_visit_counts(self, specs, partitions, calibration_df, transformed) -> None:
        """Refit models forecast every future row; inverted intervals bracket the point."""
        _, params = transformed
        refit = refit_models(specs, partitions['prepared'], n_jobs=1)

        forecast_std = forecast_models(refit, partitions['forecast'], interval_half_widths(calibration_df))
        forecast = forecast_original_units(forecast_std, params)

        assert list(forecast.columns) == ['model_id', 'model_desc', 'group_id', 'date',
                                          'value', 'conf_lo', 'conf_hi']
        assert len(forecast) == 2 * len(partitions['forecast'])
        assert (forecast['conf_lo'] <= forecast['value']).all()
        assert (forecast['value'] <= forecast['conf_hi']).all()
        assert (forecast['value'] > 0).all()

        first = forecast_std.iloc[0]
        group_params = params[first['group_id']]
        assert forecast['value'].iloc[0] == pytest.approx(
            np.exp(first['value'] * group_params.std + group_params.mean)
        )

    def test_refit_uses_all_prepared_rows(self, specs, partitions) -> None:
        """The refit recipe sees the test weeks as training data."""
        refit = refit_models(specs, partitions['prepared'], n_jobs=1)
        lm_spline = refit[0]

        assert lm_spline.recipe.n_train_rows == len(partitions['prepared'])

    def test_empty_future_raises(self, specs, partitions, calibration_df) -> None:
        """Forecasting without future rows is an error."""
        refit = refit_models(specs, partitions['prepared'], n_jobs=1)
        with pytest.raises(ValueError):
            forecast_models(refit, partitions['forecast'].iloc[0:0], interval_half_widths(calibration_df))

    def test_missing_interval_raises(self, specs, partitions, calibration_df) -> None:
        """A model without a calibrated width cannot produce intervals."""
        refit = refit_models(specs, partitions['prepared'], n_jobs=1)
        widths = interval_half_widths(calibration_df)
        widths = widths[widths['model_id'] != 'lm_lag']

        with pytest.raises(KeyError):
            forecast_models(refit, partitions['forecast'], widths)
