"""
Calibration Module

Scores fitted models on the held-out test weeks:
- Residuals (actual - prediction) per model, group and week
- Conformal interval half-widths from the absolute residuals
"""

from typing import List, Optional

import pandas as pd

from config import AGGREGATION_CONFIG, CALIBRATION_CONFIG, TRANSFORM_CONFIG


def calibrate_models(fitted_models: List,
                     test_df: pd.DataFrame,
                     target: Optional[str] = None,
                     group_col: Optional[str] = None) -> pd.DataFrame:
    """
    Predict the test rows with every model and compute residuals

    Args:
        fitted_models: Models fitted on the training split
        test_df: Held-out rows with known target
        target: Target column
        group_col: Group key column

    Returns:
        DataFrame with model_id, model_desc, group, date, actual,
        prediction, residual
    """
    target = target or TRANSFORM_CONFIG['standardized_col']
    group_col = group_col or AGGREGATION_CONFIG['group_col']

    print("="*60)
    print("CALIBRATING MODELS ON TEST SPLIT")
    print("="*60)

    if test_df.empty:
        raise ValueError("Test split is empty: nothing to calibrate against")
    if test_df[target].isna().any():
        raise ValueError("Test split contains rows with an unknown target")

    calibration_frames = []

    for model in fitted_models:
        predictions = model.predict(test_df)
        if predictions.empty:
            raise ValueError(f"Model {model.model_id} produced no predictions on the test split")

        scored = test_df.loc[predictions.index, [group_col, 'date', target]]
        calibration = pd.DataFrame({
            'model_id': model.model_id,
            'model_desc': model.description,
            group_col: scored[group_col].values,
            'date': scored['date'].values,
            'actual': scored[target].values,
            'prediction': predictions.values,
        })
        calibration['residual'] = calibration['actual'] - calibration['prediction']

        n_missing = len(test_df) - len(predictions)
        status = f" (⚠ {n_missing} rows not scored)" if n_missing else ""
        print(f"  {model.model_id}: {len(predictions)} test rows, "
              f"MAE={calibration['residual'].abs().mean():.4f}{status}")

        calibration_frames.append(calibration)

    return pd.concat(calibration_frames, ignore_index=True)


def interval_half_widths(calibration_df: pd.DataFrame,
                         conf_interval: Optional[float] = None,
                         by_group: Optional[bool] = None,
                         group_col: Optional[str] = None) -> pd.DataFrame:
    """
    Conformal interval half-widths from calibration residuals

    The half-width is the `conf_interval` quantile of the absolute
    residuals, per model (and per group when `by_group`).

    Args:
        calibration_df: Output of calibrate_models
        conf_interval: Coverage level in (0, 1)
        by_group: Compute widths per group instead of pooled
        group_col: Group key column

    Returns:
        DataFrame with model_id, [group], half_width
    """
    conf_interval = CALIBRATION_CONFIG['conf_interval'] if conf_interval is None else conf_interval
    by_group = CALIBRATION_CONFIG['conf_by_id'] if by_group is None else by_group
    group_col = group_col or AGGREGATION_CONFIG['group_col']

    if not 0 < conf_interval < 1:
        raise ValueError(f"conf_interval must be in (0, 1), got {conf_interval}")

    keys = ['model_id', group_col] if by_group else ['model_id']

    widths = (
        calibration_df.assign(abs_residual=calibration_df['residual'].abs())
        .groupby(keys, sort=False)['abs_residual']
        .quantile(conf_interval)
        .reset_index(name='half_width')
    )

    return widths


def calibration_summary(calibration_df: pd.DataFrame) -> pd.DataFrame:
    """Residual mean/std per model"""
    return (
        calibration_df.groupby('model_id', sort=False)['residual']
        .agg(['count', 'mean', 'std'])
        .rename(columns={'mean': 'residual_mean', 'std': 'residual_std'})
        .reset_index()
    )
