"""
Forecast Generation Module

Refits the model table on every prepared week, forecasts the future
horizon and attaches conformal intervals from calibration.
"""

from typing import Dict, List, Optional

import pandas as pd

from config import AGGREGATION_CONFIG
from .models import fit_model_table
from .transform import StandardizationParams, invert_forecast


def refit_models(specs: List,
                 prepared_df: pd.DataFrame,
                 n_jobs: Optional[int] = None) -> List:
    """
    Refit every model on the full prepared set before forecasting

    Args:
        specs: Model specifications (same as used for calibration)
        prepared_df: All rows with a known target
        n_jobs: joblib workers

    Returns:
        Refit models in spec order
    """
    print("\nRefitting models on the full prepared set...")
    return fit_model_table(specs, prepared_df, n_jobs=n_jobs)


def forecast_models(fitted_models: List,
                    future_df: pd.DataFrame,
                    half_widths: pd.DataFrame,
                    group_col: Optional[str] = None) -> pd.DataFrame:
    """
    Forecast the future rows with every model

    Args:
        fitted_models: Refit models
        future_df: Forecast partition (unknown target)
        half_widths: Output of interval_half_widths
        group_col: Group key column

    Returns:
        Forecast table: model_id, model_desc, group, date, value,
        conf_lo, conf_hi (standardized units)
    """
    group_col = group_col or AGGREGATION_CONFIG['group_col']

    print("="*60)
    print("GENERATING FORECASTS")
    print("="*60)

    if future_df.empty:
        raise ValueError("Forecast partition is empty: nothing to forecast")

    width_keys = [k for k in ['model_id', group_col] if k in half_widths.columns]
    all_forecasts = []

    for model in fitted_models:
        predictions = model.predict(future_df)
        if predictions.empty:
            raise ValueError(f"Model {model.model_id} produced no forecasts")

        rows = future_df.loc[predictions.index, [group_col, 'date']]
        forecast_df = pd.DataFrame({
            'model_id': model.model_id,
            'model_desc': model.description,
            group_col: rows[group_col].values,
            'date': rows['date'].values,
            'value': predictions.values,
        })

        forecast_df = forecast_df.merge(half_widths, on=width_keys, how='left')
        missing_width = forecast_df['half_width'].isna()
        if missing_width.any():
            missing_groups = forecast_df.loc[missing_width, group_col].unique().tolist()
            raise KeyError(f"No calibration interval for model {model.model_id}, groups {missing_groups}")

        forecast_df['conf_lo'] = forecast_df['value'] - forecast_df['half_width']
        forecast_df['conf_hi'] = forecast_df['value'] + forecast_df['half_width']
        forecast_df = forecast_df.drop(columns=['half_width'])

        n_missing = len(future_df) - len(predictions)
        status = f" (⚠ {n_missing} rows not forecast)" if n_missing else ""
        print(f"  {model.model_id}: {len(forecast_df)} forecast rows{status}")

        all_forecasts.append(forecast_df)

    combined_forecasts = pd.concat(all_forecasts, ignore_index=True)

    print("\n" + "="*60)
    print("FORECAST GENERATION COMPLETE")
    print("="*60)
    print(f"Groups forecasted: {combined_forecasts[group_col].nunique()}")
    print(f"Total forecast records: {len(combined_forecasts)}")

    return combined_forecasts


def forecast_original_units(forecast_df: pd.DataFrame,
                            params: Dict[str, StandardizationParams],
                            group_col: Optional[str] = None) -> pd.DataFrame:
    """
    Invert the log-standardization of a forecast table

    Args:
        forecast_df: Output of forecast_models
        params: Mapping group id -> StandardizationParams from transformation
        group_col: Group key column

    Returns:
        Forecast table in weekly visit counts
    """
    inverted = invert_forecast(forecast_df, params, columns=('value', 'conf_lo', 'conf_hi'),
                               group_col=group_col)

    print("\nForecast in visit counts (mean per model):")
    print(inverted.groupby('model_id')[['value', 'conf_lo', 'conf_hi']].mean().round(1))

    return inverted
