"""
Data Aggregation Module

Aggregates visit-level records to Group-week level counts.
Group key: inpatient/outpatient flag x payer category.
"""

from typing import List, Optional

import numpy as np
import pandas as pd

from config import AGGREGATION_CONFIG


def categorize_payer(payer_grouping: pd.Series,
                     medicare_prefix: Optional[str] = None,
                     unknown_values: Optional[List[str]] = None) -> pd.Series:
    """
    Collapse raw payer groupings into 'Medicare' / 'Non-Medicare'

    Unknown or sentinel groupings become missing so they are excluded
    before aggregation.

    Args:
        payer_grouping: Raw payer grouping values
        medicare_prefix: Prefix identifying Medicare payers
        unknown_values: Sentinel values treated as unknown

    Returns:
        Payer category Series
    """
    if medicare_prefix is None:
        medicare_prefix = AGGREGATION_CONFIG['medicare_prefix']
    if unknown_values is None:
        unknown_values = AGGREGATION_CONFIG['unknown_values']

    payer = payer_grouping.astype('string').str.strip()
    is_medicare = payer.str.startswith(medicare_prefix).fillna(False).to_numpy(dtype=bool)
    category = pd.Series(
        np.where(is_medicare, 'Medicare', 'Non-Medicare'),
        index=payer_grouping.index,
        dtype=object
    )
    unknown = (payer.isna() | payer.isin(unknown_values)).to_numpy(dtype=bool)
    category[unknown] = np.nan

    return category


def aggregate_weekly(df: pd.DataFrame,
                     date_column: Optional[str] = None,
                     group_columns: Optional[List[str]] = None,
                     group_col: Optional[str] = None,
                     week_anchor: Optional[str] = None,
                     unknown_values: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Aggregate visit-level data to Group-week visit counts

    Process:
        1. Derive payer_category if it is a group column and missing
        2. Exclude rows with missing/unknown group dimensions
        3. Truncate dates to the start of the calendar week
        4. Count visits per (group, week)

    Weeks without visits are not inserted.

    Args:
        df: Visit-level DataFrame
        date_column: Date used for bucketing
        group_columns: Categorical dimensions forming the group key
        group_col: Name of the composite group key column
        week_anchor: Pandas weekly period alias
        unknown_values: Sentinel values excluded before bucketing

    Returns:
        Group-week level DataFrame with columns
        group_columns + [group_col, 'date', 'value']
    """
    date_column = date_column or AGGREGATION_CONFIG['date_column']
    group_columns = group_columns or AGGREGATION_CONFIG['group_columns']
    group_col = group_col or AGGREGATION_CONFIG['group_col']
    week_anchor = week_anchor or AGGREGATION_CONFIG['week_anchor']
    if unknown_values is None:
        unknown_values = AGGREGATION_CONFIG['unknown_values']

    print("="*60)
    print("AGGREGATING VISITS TO GROUP-WEEK LEVEL")
    print("="*60)
    print(f"  Input: {len(df):,} visit records")

    visits = df.copy()
    if 'payer_category' in group_columns and 'payer_category' not in visits.columns:
        visits['payer_category'] = categorize_payer(visits['payer_grouping'],
                                                    unknown_values=unknown_values)

    # Step 1: Exclude unknown category values
    dims = visits[group_columns].astype('string').apply(lambda s: s.str.strip())
    unknown_mask = (dims.isna() | dims.isin(unknown_values)).any(axis=1)
    unknown_mask |= visits[date_column].isna()
    n_unknown = int(unknown_mask.sum())
    if n_unknown > 0:
        print(f"  ⚠ Excluded {n_unknown:,} records with unknown group values or dates")
    visits = visits.loc[~unknown_mask]

    if visits.empty:
        raise ValueError("No visit records left to aggregate after excluding unknown values")

    # Step 2: Bucket to calendar weeks
    visits['date'] = pd.to_datetime(visits[date_column]).dt.to_period(week_anchor).dt.start_time

    # Step 3: Count visits per group-week
    weekly_df = (
        visits.groupby(group_columns + ['date'])
        .size()
        .reset_index(name='value')
    )
    weekly_df[group_col] = weekly_df[group_columns].astype(str).agg('_'.join, axis=1)
    weekly_df = weekly_df[group_columns + [group_col, 'date', 'value']]

    # Step 4: Sort by group and date
    weekly_df.sort_values([group_col, 'date'], inplace=True)
    weekly_df.reset_index(drop=True, inplace=True)

    print(f"\n  Output: {len(weekly_df):,} Group-week records")
    print(f"  Groups: {weekly_df[group_col].nunique()}")
    print(f"  Date range: {weekly_df['date'].min().date()} to {weekly_df['date'].max().date()}")

    print("\n  Weekly visits by group:")
    summary = weekly_df.groupby(group_col)['value'].agg(['count', 'mean', 'std', 'min', 'max']).round(2)
    print(summary)

    print("\n" + "="*60)
    print("AGGREGATION COMPLETE")
    print("="*60)

    return weekly_df


def validate_aggregated_data(df: pd.DataFrame,
                             group_col: Optional[str] = None,
                             period: str = '7D') -> bool:
    """
    Validate aggregated group-week data

    Args:
        df: Group-week DataFrame
        group_col: Composite group key column
        period: Expected spacing between weeks

    Returns:
        True if validation passes
    """
    group_col = group_col or AGGREGATION_CONFIG['group_col']

    print("\n" + "="*60)
    print("VALIDATING AGGREGATED DATA")
    print("="*60)

    checks_passed = True

    required_cols = [group_col, 'date', 'value']
    missing_cols = [col for col in required_cols if col not in df.columns]
    if missing_cols:
        print(f"  ✗ Missing columns: {missing_cols}")
        print("="*60)
        return False
    print(f"  ✓ All required columns present")

    if df[required_cols].isna().any().any():
        print(f"  ✗ Missing values in key columns")
        checks_passed = False
    else:
        print(f"  ✓ No missing values in key columns")

    if (df['value'] < 1).any():
        print(f"  ✗ Weekly counts below 1 found")
        checks_passed = False
    else:
        print(f"  ✓ All weekly counts >= 1")

    if df.duplicated([group_col, 'date']).any():
        print(f"  ✗ Duplicate group-week rows")
        checks_passed = False
    else:
        print(f"  ✓ One row per group-week")

    print("\n  Week continuity check:")
    step = pd.Timedelta(period)
    for group in df[group_col].unique():
        group_dates = df.loc[df[group_col] == group, 'date'].sort_values()
        expected_weeks = int((group_dates.max() - group_dates.min()) / step) + 1
        actual_weeks = len(group_dates)

        if expected_weeks != actual_weeks:
            print(f"    ⚠ {group}: Week gaps detected ({actual_weeks}/{expected_weeks} weeks)")
        else:
            print(f"    ✓ {group}: Complete week sequence")

    if checks_passed:
        print("\n✓ All validation checks passed!")
    else:
        print("\n✗ Some validation checks failed!")

    print("="*60)

    return checks_passed
