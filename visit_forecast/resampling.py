"""
Resampling Module

Time series cross-validation over the prepared weeks and parallel
evaluation of the model table on every slice.
"""

from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from config import AGGREGATION_CONFIG, PARALLEL_CONFIG, TRANSFORM_CONFIG, TUNING_CONFIG
from .evaluation import evaluate_forecast


class TimeSeriesCrossValidator:
    """Time series cross-validation slices, most recent first"""

    def __init__(self,
                 assess: Optional[int] = None,
                 skip: Optional[int] = None,
                 slice_limit: Optional[int] = None,
                 initial: Optional[int] = None,
                 cumulative: bool = True):
        """
        Initialize time series CV

        Args:
            assess: Weeks in each assessment slice
            skip: Weeks between consecutive slice origins
            slice_limit: Maximum number of slices
            initial: Training weeks when not cumulative
            cumulative: Train always starts at the first week
        """
        self.assess = TUNING_CONFIG['assess'] if assess is None else assess
        self.skip = TUNING_CONFIG['skip'] if skip is None else skip
        self.slice_limit = TUNING_CONFIG['slice_limit'] if slice_limit is None else slice_limit
        self.initial = initial
        self.cumulative = cumulative

        if self.assess < 1 or self.skip < 1 or self.slice_limit < 1:
            raise ValueError("assess, skip and slice_limit must be >= 1")
        if not cumulative and initial is None:
            raise ValueError("initial is required when cumulative=False")

    def split(self, df: pd.DataFrame) -> List[Tuple[np.ndarray, np.ndarray]]:
        """
        Generate (train_mask, test_mask) pairs over unique dates

        Slice 1 assesses the last `assess` weeks; each following slice moves
        the origin back by `skip` weeks.

        Args:
            df: DataFrame with date column

        Returns:
            List of (train_mask, test_mask) tuples
        """
        unique_dates = np.sort(df['date'].unique())
        n_dates = len(unique_dates)

        splits = []

        for i in range(self.slice_limit):
            test_end_idx = n_dates - i * self.skip
            test_start_idx = test_end_idx - self.assess
            train_start_idx = 0 if self.cumulative else test_start_idx - self.initial

            if test_start_idx <= 0 or train_start_idx < 0:
                break

            train_dates = unique_dates[train_start_idx:test_start_idx]
            test_dates = unique_dates[test_start_idx:test_end_idx]

            train_mask = df['date'].isin(train_dates).values
            test_mask = df['date'].isin(test_dates).values

            splits.append((train_mask, test_mask))

        if not splits:
            raise ValueError(
                f"Not enough data for time series CV: {n_dates} weeks, assess={self.assess}"
            )

        return splits


def _fit_and_score(spec, df: pd.DataFrame, slice_id: int,
                   train_mask: np.ndarray, test_mask: np.ndarray,
                   target: str, group_col: str) -> dict:
    train_df = df.loc[train_mask]
    test_df = df.loc[test_mask]

    # Groups that start after the slice origin have nothing to train on
    unseen = ~test_df[group_col].isin(train_df[group_col].unique())
    if unseen.any():
        unseen_groups = test_df.loc[unseen, group_col].unique().tolist()
        print(f"    ⚠ {spec.model_id} slice {slice_id}: groups {unseen_groups} "
              f"not in training rows, {int(unseen.sum())} test rows skipped")
        test_df = test_df.loc[~unseen]

    model = spec.fit(train_df)
    predictions = model.predict(test_df)
    actual = test_df.loc[predictions.index, target].values

    metrics = evaluate_forecast(actual, predictions.values)
    return {'model_id': spec.model_id, 'slice': slice_id, **metrics}


def fit_resamples(specs: List,
                  df: pd.DataFrame,
                  cv: Optional[TimeSeriesCrossValidator] = None,
                  target: Optional[str] = None,
                  n_jobs: Optional[int] = None,
                  group_col: Optional[str] = None) -> pd.DataFrame:
    """
    Fit and score every model on every CV slice

    Each (model, slice) pair is an independent unit of work; results are
    concatenated into one table.

    Args:
        specs: Model specifications
        df: Prepared rows
        cv: Cross validator
        target: Target column
        n_jobs: joblib workers
        group_col: Group key column

    Returns:
        DataFrame with one row per (model, slice) and metric columns
    """
    cv = cv or TimeSeriesCrossValidator()
    target = target or TRANSFORM_CONFIG['standardized_col']
    n_jobs = PARALLEL_CONFIG['n_jobs'] if n_jobs is None else n_jobs
    group_col = group_col or AGGREGATION_CONFIG['group_col']

    print("="*60)
    print("EVALUATING MODELS ON RESAMPLES")
    print("="*60)

    df = df.reset_index(drop=True)
    splits = cv.split(df)
    print(f"  Slices: {len(splits)}, assess: {cv.assess} weeks, skip: {cv.skip} weeks")

    results = Parallel(n_jobs=n_jobs)(
        delayed(_fit_and_score)(spec, df, slice_id, train_mask, test_mask, target, group_col)
        for spec in specs
        for slice_id, (train_mask, test_mask) in enumerate(splits, start=1)
    )

    results_df = pd.DataFrame(results)

    summary = results_df.groupby('model_id', sort=False)[['mae', 'rmse', 'rsq']].agg(['mean', 'std'])
    print("\n  Resample accuracy (mean/std across slices):")
    print(summary.round(4))

    return results_df


def resample_group_counts(df: pd.DataFrame,
                          cv: TimeSeriesCrossValidator,
                          group_col: Optional[str] = None) -> pd.DataFrame:
    """Train/test row counts per slice and group"""
    group_col = group_col or AGGREGATION_CONFIG['group_col']

    rows = []
    for slice_id, (train_mask, test_mask) in enumerate(cv.split(df), start=1):
        for group, group_df in df.groupby(group_col):
            positions = df.index.get_indexer(group_df.index)
            rows.append({
                'slice': slice_id,
                group_col: group,
                'n_train': int(train_mask[positions].sum()),
                'n_test': int(test_mask[positions].sum()),
            })

    return pd.DataFrame(rows)
