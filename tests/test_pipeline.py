"""End-to-end smoke test of the forecasting pipeline."""

import os

import numpy as np

from main_pipeline import ForecastingPipeline
from visit_forecast.data_generator import SyntheticVisitGenerator


class TestForecastingPipeline:
    """Tests for the complete pipeline on a small synthetic dataset."""

    def test_complete_pipeline(self, tmp_path, monkeypatch) -> None:
        """Two years of visits produce forecasts, accuracy tables and saved models."""
        monkeypatch.chdir(tmp_path)
        visits = SyntheticVisitGenerator(start_date='2012-01-01', end_date='2013-12-31',
                                         daily_visits=20.0, seed=3).generate_visits()

        pipeline = ForecastingPipeline(model_ids=['lm_spline', 'lm_lag'],
                                       output_dir=str(tmp_path / 'outputs'),
                                       model_dir=str(tmp_path / 'models'),
                                       n_jobs=1)
        results = pipeline.run_complete_pipeline(visits_df=visits)

        forecast = results['forecast']
        n_groups = forecast['group_id'].nunique()
        assert n_groups == 4
        assert len(forecast) == 2 * n_groups * 14
        assert (forecast['value'] > 0).all()
        assert np.isfinite(forecast[['value', 'conf_lo', 'conf_hi']].values).all()

        accuracy = results['accuracy']
        assert set(accuracy['model_id']) == {'lm_spline', 'lm_lag'}
        assert 'OVERALL' in set(accuracy['group_id'])

        assert os.path.exists(tmp_path / 'outputs' / 'forecasts' / 'forecast_results.csv')
        assert os.path.exists(tmp_path / 'outputs' / 'accuracy_long.csv')
        assert os.path.exists(tmp_path / 'models' / 'refit_models.pkl')
        assert pipeline.resample_df is not None
