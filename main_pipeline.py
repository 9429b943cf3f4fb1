"""
Main Forecasting Pipeline

End-to-end pipeline for weekly visit forecasting:
1. Generate/Load visit data
2. Aggregate visits -> Group-week counts
3. Log-standardize per group
4. Augment features (horizon, lags, rolling means)
5. Split prepared/forecast and train/test
6. Evaluate on resamples / tune hyperparameters (optional)
7. Fit model table on train
8. Calibrate on test and compute accuracy
9. Refit, forecast the horizon and invert to visit counts
10. Save results
"""

import os
from datetime import datetime
from typing import Dict, List, Optional

import joblib
import pandas as pd

from config import (
    DATA_CONFIG, FEATURE_CONFIG, SPLIT_CONFIG, TUNING_CONFIG,
    PARALLEL_CONFIG, OUTPUT_CONFIG
)

from visit_forecast.data_generator import generate_and_save_data
from visit_forecast.ingestion import load_visits, prepare_visits
from visit_forecast.aggregation import aggregate_weekly, validate_aggregated_data
from visit_forecast.transform import log_standardize
from visit_forecast.feature_engineering import augment_features
from visit_forecast.partition import split_prepared_forecast, split_train_test
from visit_forecast.models import build_model_specs, fit_model_table
from visit_forecast.calibration import calibrate_models, interval_half_widths, calibration_summary
from visit_forecast.evaluation import accuracy_table, accuracy_long
from visit_forecast.forecast import refit_models, forecast_models, forecast_original_units
from visit_forecast.resampling import TimeSeriesCrossValidator, fit_resamples
from visit_forecast.hyperparameter_tuning import LagModelTuner, save_tuned_params, load_tuned_params


class ForecastingPipeline:
    """Complete forecasting pipeline (configured via config.py)"""

    def __init__(self,
                 model_ids: Optional[List[str]] = None,
                 output_dir: Optional[str] = None,
                 model_dir: Optional[str] = None,
                 n_jobs: Optional[int] = None):
        """
        Initialize pipeline with config from config.py

        Args:
            model_ids: Models in the table (default: MODEL_CONFIG['models'])
            output_dir: Directory for forecast/accuracy tables
            model_dir: Directory for fitted models
            n_jobs: joblib workers for model fitting
        """
        self.data_path = DATA_CONFIG['data_path']
        self.generate_new_data = DATA_CONFIG['generate_new_data']
        self.output_dir = output_dir or OUTPUT_CONFIG['output_dir']
        self.model_dir = model_dir or OUTPUT_CONFIG['model_dir']
        self.evaluate_resamples = TUNING_CONFIG['evaluate_resamples']
        self.tune_hyperparameters = TUNING_CONFIG['tune_hyperparameters']
        self.n_jobs = PARALLEL_CONFIG['n_jobs'] if n_jobs is None else n_jobs
        self.model_ids = model_ids

        # Create output directories
        os.makedirs(f"{self.output_dir}/forecasts", exist_ok=True)
        os.makedirs(self.model_dir, exist_ok=True)

        # Pipeline components (will be populated)
        self.visits_df = None
        self.weekly_df = None
        self.transformed_df = None
        self.standardization_params = None
        self.feature_df = None
        self.prepared_df = None
        self.future_df = None
        self.train_df = None
        self.test_df = None
        self.model_specs = None
        self.tuned_params = None
        self.resample_df = None
        self.fitted_models = None
        self.calibration_df = None
        self.half_widths = None
        self.accuracy_df = None
        self.refit_models = None
        self.forecast_df = None

    def run_complete_pipeline(self, visits_df: Optional[pd.DataFrame] = None) -> Dict:
        """
        Run complete forecasting pipeline (configured via config.py)

        Args:
            visits_df: Visit records to use instead of loading/generating

        Returns:
            Dictionary with pipeline results
        """
        print("\n" + "="*80)
        print("WEEKLY VISIT FORECASTING PIPELINE")
        print("="*80)
        print(f"Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print("="*80 + "\n")

        self.step_1_load_data(visits_df)
        self.step_2_aggregate_data()
        self.step_3_transform()
        self.step_4_engineer_features()
        self.step_5_split_data()
        self.step_6_resample_and_tune()
        self.step_7_fit_models()
        self.step_8_calibrate()
        self.step_9_forecast()
        self.step_10_save_results()

        print("\n" + "="*80)
        print("PIPELINE COMPLETE!")
        print("="*80)
        print(f"End time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"\nOutputs saved to: {self.output_dir}/")
        print("="*80 + "\n")

        return {
            'forecast': self.forecast_df,
            'accuracy': self.accuracy_df,
            'calibration': self.calibration_df,
            'standardization_params': self.standardization_params,
            'models': self.refit_models
        }

    def step_1_load_data(self, visits_df: Optional[pd.DataFrame] = None):
        """Step 1: Load or generate visit data"""
        print("\n" + "="*80)
        print("STEP 1: DATA LOADING/GENERATION")
        print("="*80)

        if visits_df is not None:
            raw_df = visits_df
        elif self.generate_new_data:
            raw_df = generate_and_save_data(output_path=self.data_path)
        else:
            raw_df = load_visits(self.data_path)

        self.visits_df = prepare_visits(raw_df)

        print("\n✓ Step 1 complete")

    def step_2_aggregate_data(self):
        """Step 2: Aggregate visits -> Group-week counts"""
        print("\n" + "="*80)
        print("STEP 2: DATA AGGREGATION (VISIT -> GROUP-WEEK)")
        print("="*80)

        self.weekly_df = aggregate_weekly(self.visits_df)
        validate_aggregated_data(self.weekly_df, period=FEATURE_CONFIG['period'])

        print("\n✓ Step 2 complete")

    def step_3_transform(self):
        """Step 3: Log + per-group standardization"""
        print("\n" + "="*80)
        print("STEP 3: LOG-STANDARDIZATION")
        print("="*80)

        self.transformed_df, self.standardization_params = log_standardize(self.weekly_df)

        print("\n✓ Step 3 complete")

    def step_4_engineer_features(self):
        """Step 4: Horizon extension, lag and rolling features"""
        print("\n" + "="*80)
        print("STEP 4: FEATURE ENGINEERING")
        print("="*80)

        self.feature_df = augment_features(self.transformed_df)

        print("\n✓ Step 4 complete")

    def step_5_split_data(self):
        """Step 5: Prepared/forecast and train/test splits"""
        print("\n" + "="*80)
        print("STEP 5: DATA PARTITIONING")
        print("="*80)

        self.prepared_df, self.future_df = split_prepared_forecast(self.feature_df)
        self.train_df, self.test_df = split_train_test(self.prepared_df, SPLIT_CONFIG['assess'])

        print("\nSplit summary:")
        print(f"  Prepared: {len(self.prepared_df)} records")
        print(f"  Forecast: {len(self.future_df)} records "
              f"({self.future_df['date'].min().date()} to {self.future_df['date'].max().date()})")
        print(f"  Train: {len(self.train_df)} records "
              f"({self.train_df['date'].min().date()} to {self.train_df['date'].max().date()})")
        print(f"  Test: {len(self.test_df)} records "
              f"({self.test_df['date'].min().date()} to {self.test_df['date'].max().date()})")

        print("\n✓ Step 5 complete")

    def step_6_resample_and_tune(self):
        """Step 6: Resample evaluation and hyperparameter tuning (optional)"""
        print("\n" + "="*80)
        print("STEP 6: RESAMPLING / HYPERPARAMETER TUNING (OPTIONAL)")
        print("="*80)

        tuned_params_path = TUNING_CONFIG['tuned_params_path']

        if self.tune_hyperparameters:
            tuner = LagModelTuner()
            self.tuned_params = tuner.tune(self.train_df)
            save_tuned_params(self.tuned_params, tuned_params_path)
        elif os.path.exists(tuned_params_path):
            print(f"Loading existing tuned parameters from {tuned_params_path}")
            self.tuned_params = load_tuned_params(tuned_params_path)
            print(f"Loaded tuned parameters: {list(self.tuned_params.keys())}")

        self.model_specs = build_model_specs(self.model_ids, tuned_params=self.tuned_params)

        if self.evaluate_resamples:
            self.resample_df = fit_resamples(
                self.model_specs, self.train_df, TimeSeriesCrossValidator(), n_jobs=self.n_jobs
            )

        print("\n✓ Step 6 complete")

    def step_7_fit_models(self):
        """Step 7: Fit the model table on the training split"""
        print("\n" + "="*80)
        print("STEP 7: MODEL FITTING")
        print("="*80)

        if self.model_specs is None:
            self.model_specs = build_model_specs(self.model_ids, tuned_params=self.tuned_params)

        self.fitted_models = fit_model_table(self.model_specs, self.train_df, n_jobs=self.n_jobs)

        print("\n✓ Step 7 complete")

    def step_8_calibrate(self):
        """Step 8: Calibrate on the test split and compute accuracy"""
        print("\n" + "="*80)
        print("STEP 8: CALIBRATION & ACCURACY")
        print("="*80)

        self.calibration_df = calibrate_models(self.fitted_models, self.test_df)
        self.half_widths = interval_half_widths(self.calibration_df)
        self.accuracy_df = accuracy_table(self.calibration_df)

        print("\nResidual summary:")
        print(calibration_summary(self.calibration_df).round(4).to_string(index=False))

        print("\n✓ Step 8 complete")

    def step_9_forecast(self):
        """Step 9: Refit on all prepared rows, forecast and invert"""
        print("\n" + "="*80)
        print("STEP 9: REFIT & FORECAST")
        print("="*80)

        self.refit_models = refit_models(self.model_specs, self.prepared_df, n_jobs=self.n_jobs)
        forecast_std = forecast_models(self.refit_models, self.future_df, self.half_widths)
        self.forecast_df = forecast_original_units(forecast_std, self.standardization_params)

        print("\n✓ Step 9 complete")

    def step_10_save_results(self):
        """Step 10: Save tables and models"""
        print("\n" + "="*80)
        print("STEP 10: SAVING RESULTS")
        print("="*80)

        self.forecast_df.to_csv(f'{self.output_dir}/forecasts/forecast_results.csv', index=False)
        print("  ✓ Forecast table saved")

        self.accuracy_df.to_csv(f'{self.output_dir}/accuracy_metrics.csv', index=False)
        accuracy_long(self.accuracy_df).to_csv(f'{self.output_dir}/accuracy_long.csv', index=False)
        print("  ✓ Accuracy tables saved")

        self.calibration_df.to_csv(f'{self.output_dir}/calibration.csv', index=False)
        print("  ✓ Calibration table saved")

        if self.resample_df is not None:
            self.resample_df.to_csv(f'{self.output_dir}/resample_accuracy.csv', index=False)
            print("  ✓ Resample accuracy saved")

        joblib.dump(self.refit_models, f"{self.model_dir}/refit_models.pkl")
        joblib.dump(self.standardization_params, f"{self.model_dir}/standardization_params.pkl")
        print("  ✓ Models and standardization parameters saved")

        print("\n✓ Step 10 complete")


def main():
    """Main entry point - all configuration is in config.py"""
    pipeline = ForecastingPipeline()
    results = pipeline.run_complete_pipeline()

    print("\n" + "="*80)
    print("SUCCESS! Complete forecasting pipeline executed.")
    print("="*80)
    print("\nKey Outputs:")
    print("  - Forecasts: outputs/forecasts/")
    print("  - Models: models/")
    print("  - Accuracy: outputs/accuracy_metrics.csv")
    print("="*80 + "\n")

    return results


if __name__ == "__main__":
    main()
