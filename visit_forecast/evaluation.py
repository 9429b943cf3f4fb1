"""
Evaluation Module

Accuracy metrics for calibrated forecasts:
- MAE (Mean Absolute Error)
- MAPE (Mean Absolute Percentage Error)
- MASE (Mean Absolute Scaled Error)
- SMAPE (Symmetric Mean Absolute Percentage Error)
- RMSE
- R-squared
"""

from typing import Dict, Optional

import numpy as np
import pandas as pd

from config import AGGREGATION_CONFIG

METRICS = ['mae', 'mape', 'mase', 'smape', 'rmse', 'rsq']


def calculate_mape(actual: np.ndarray, predicted: np.ndarray, epsilon: float = 1e-10) -> float:
    """
    Calculate Mean Absolute Percentage Error

    Args:
        actual: Actual values
        predicted: Predicted values
        epsilon: Actuals closer to zero than this are skipped

    Returns:
        MAPE percentage
    """
    mask = np.abs(actual) > epsilon
    if mask.sum() == 0:
        return np.nan

    return np.mean(np.abs((actual[mask] - predicted[mask]) / actual[mask])) * 100


def calculate_mae(actual: np.ndarray, predicted: np.ndarray) -> float:
    """Calculate Mean Absolute Error"""
    return np.mean(np.abs(actual - predicted))


def calculate_rmse(actual: np.ndarray, predicted: np.ndarray) -> float:
    """Calculate Root Mean Square Error"""
    return np.sqrt(np.mean((actual - predicted)**2))


def calculate_smape(actual: np.ndarray, predicted: np.ndarray) -> float:
    """
    Calculate Symmetric Mean Absolute Percentage Error

    Pairs where both values are zero are skipped.
    """
    denominator = (np.abs(actual) + np.abs(predicted)) / 2
    mask = denominator > 0
    if mask.sum() == 0:
        return np.nan

    return np.mean(np.abs(actual[mask] - predicted[mask]) / denominator[mask]) * 100


def calculate_mase(actual: np.ndarray,
                   predicted: np.ndarray,
                   seasonal_period: int = 1) -> float:
    """
    Calculate Mean Absolute Scaled Error

    MASE < 1: Better than naive seasonal forecast
    MASE = 1: Same as naive seasonal forecast
    MASE > 1: Worse than naive seasonal forecast

    Args:
        actual: Actual values
        predicted: Predicted values
        seasonal_period: Seasonal period for naive forecast

    Returns:
        MASE
    """
    if len(actual) <= seasonal_period:
        return np.nan

    mae_forecast = np.mean(np.abs(actual - predicted))
    mae_naive = np.mean(np.abs(actual[seasonal_period:] - actual[:-seasonal_period]))

    if mae_naive == 0:
        return np.nan

    return mae_forecast / mae_naive


def calculate_rsq(actual: np.ndarray, predicted: np.ndarray) -> float:
    """Squared correlation between actual and predicted values"""
    if len(actual) < 2 or np.std(actual) == 0 or np.std(predicted) == 0:
        return np.nan

    return np.corrcoef(actual, predicted)[0, 1] ** 2


def evaluate_forecast(actual: np.ndarray,
                      predicted: np.ndarray,
                      label: Optional[str] = None,
                      seasonal_period: int = 1,
                      verbose: bool = False) -> Dict[str, float]:
    """
    Comprehensive forecast evaluation

    Args:
        actual: Actual values
        predicted: Predicted values
        label: Name shown when printing
        seasonal_period: Seasonal period for MASE
        verbose: Print the metrics

    Returns:
        Dictionary of metrics
    """
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)

    if len(actual) == 0:
        raise ValueError(f"No rows to evaluate{f' for {label}' if label else ''}")

    metrics = {
        'n_samples': len(actual),
        'mae': calculate_mae(actual, predicted),
        'mape': calculate_mape(actual, predicted),
        'mase': calculate_mase(actual, predicted, seasonal_period),
        'smape': calculate_smape(actual, predicted),
        'rmse': calculate_rmse(actual, predicted),
        'rsq': calculate_rsq(actual, predicted),
    }

    if verbose:
        if label:
            print(f"\n  {label}")
        print(f"    Samples: {metrics['n_samples']}")
        print(f"    MAE:     {metrics['mae']:.4f}")
        print(f"    MAPE:    {metrics['mape']:.2f}%")
        print(f"    MASE:    {metrics['mase']:.3f}")
        print(f"    SMAPE:   {metrics['smape']:.2f}%")
        print(f"    RMSE:    {metrics['rmse']:.4f}")
        print(f"    R²:      {metrics['rsq']:.3f}")

    return metrics


def accuracy_table(calibration_df: pd.DataFrame,
                   group_col: Optional[str] = None,
                   seasonal_period: int = 1,
                   overall_label: str = 'OVERALL') -> pd.DataFrame:
    """
    Accuracy per model, per group and overall

    Args:
        calibration_df: Output of calibrate_models
        group_col: Group key column
        seasonal_period: Seasonal period for MASE
        overall_label: Group label used for the all-groups rows

    Returns:
        DataFrame with one row per (model, group) plus one overall row per model
    """
    group_col = group_col or AGGREGATION_CONFIG['group_col']

    print("="*60)
    print("ACCURACY BY MODEL AND GROUP")
    print("="*60)

    results = []

    for (model_id, model_desc), model_df in calibration_df.groupby(['model_id', 'model_desc'], sort=False):
        for group, group_df in model_df.groupby(group_col, sort=False):
            group_df = group_df.sort_values('date')
            metrics = evaluate_forecast(group_df['actual'].values, group_df['prediction'].values,
                                        seasonal_period=seasonal_period)
            results.append({'model_id': model_id, 'model_desc': model_desc,
                            group_col: group, **metrics})

        ordered = model_df.sort_values([group_col, 'date'])
        overall = evaluate_forecast(ordered['actual'].values, ordered['prediction'].values,
                                    label=f"{model_id} ({overall_label})",
                                    seasonal_period=seasonal_period, verbose=True)
        results.append({'model_id': model_id, 'model_desc': model_desc,
                        group_col: overall_label, **overall})

    results_df = pd.DataFrame(results)

    print("\n" + "="*60)
    print("SUMMARY TABLE")
    print("="*60)
    overall_rows = results_df[results_df[group_col] == overall_label]
    print(overall_rows[['model_id'] + METRICS].round(4).to_string(index=False))

    return results_df


def accuracy_long(accuracy_df: pd.DataFrame,
                  group_col: Optional[str] = None) -> pd.DataFrame:
    """
    Reshape an accuracy table into (model, group, metric, value) rows

    Args:
        accuracy_df: Output of accuracy_table
        group_col: Group key column

    Returns:
        Long-format accuracy DataFrame
    """
    group_col = group_col or AGGREGATION_CONFIG['group_col']

    return accuracy_df.melt(
        id_vars=['model_id', 'model_desc', group_col],
        value_vars=METRICS,
        var_name='metric',
        value_name='value'
    )
