"""
Dataset Partitioning Module

Splits the augmented data into prepared (known target) and forecast
(future) rows, and the prepared rows into train/test by time.
"""

from typing import Optional, Tuple

import pandas as pd

from config import AGGREGATION_CONFIG, SPLIT_CONFIG, TRANSFORM_CONFIG


def split_prepared_forecast(df: pd.DataFrame,
                            target: Optional[str] = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split rows by target presence

    Args:
        df: Augmented DataFrame
        target: Target column

    Returns:
        prepared_df (target set), forecast_df (target unset)
    """
    target = target or TRANSFORM_CONFIG['standardized_col']

    known = df[target].notna()
    prepared_df = df.loc[known].copy()
    forecast_df = df.loc[~known].copy()

    if prepared_df.empty:
        raise ValueError("Prepared partition is empty: no rows with a known target")
    if forecast_df.empty:
        raise ValueError("Forecast partition is empty: extend the horizon before splitting")

    return prepared_df, forecast_df


def split_train_test(df: pd.DataFrame,
                     assess: Optional[int] = None,
                     group_col: Optional[str] = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split prepared data into train/test by time within each group

    The last `assess` periods of every group become test; all earlier
    periods are train (cumulative origin, no shuffling).

    Args:
        df: Prepared DataFrame with 'date' column
        assess: Number of test periods per group
        group_col: Group key column

    Returns:
        train_df, test_df
    """
    assess = SPLIT_CONFIG['assess'] if assess is None else assess
    group_col = group_col or AGGREGATION_CONFIG['group_col']

    if assess < 1:
        raise ValueError(f"assess must be >= 1, got {assess}")

    if df.empty:
        raise ValueError("Cannot split an empty prepared partition")

    sizes = df.groupby(group_col).size()
    too_short = sizes[sizes <= assess]
    if len(too_short) > 0:
        raise ValueError(
            f"Not enough data: groups {too_short.index.tolist()} have <= {assess} "
            f"periods, leaving an empty training split"
        )

    ordered = df.sort_values([group_col, 'date'])
    periods_from_end = ordered.groupby(group_col).cumcount(ascending=False)
    test_mask = (periods_from_end < assess).reindex(df.index)

    train_df = df.loc[~test_mask].copy()
    test_df = df.loc[test_mask].copy()

    return train_df, test_df
