"""
Data Ingestion Module

Loads visit-level records, keeps the fields the forecast needs, derives
admission/discharge dates and filters to the modeling date range.
"""

from typing import List, Optional

import pandas as pd

from config import INGESTION_CONFIG


def load_visits(path: str,
                datetime_columns: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Load visit records from CSV

    Args:
        path: CSV path
        datetime_columns: Columns parsed as datetimes

    Returns:
        Visit-level DataFrame
    """
    if datetime_columns is None:
        datetime_columns = INGESTION_CONFIG['datetime_columns']

    print(f"\nLoading visit data from: {path}")
    df = pd.read_csv(path, dtype={'mrn': str, 'visit_id': str})
    for col in datetime_columns:
        df[col] = pd.to_datetime(df[col])
    print(f"Loaded {len(df):,} visit records")

    return df


def _period_bounds(start_date: str, end_date: str):
    """First instant of the start period and last instant of the end period"""
    start = pd.Period(start_date).start_time
    end = pd.Period(end_date).end_time
    return start, end


def filter_by_time(df: pd.DataFrame,
                   date_column: str,
                   start_date: str,
                   end_date: str) -> pd.DataFrame:
    """
    Keep rows whose date falls inside [start period, end period]

    Partial dates select whole periods: '2012' to '2019' keeps
    2012-01-01 through 2019-12-31.
    """
    start, end = _period_bounds(start_date, end_date)
    if start > end:
        raise ValueError(f"start_date {start_date} is after end_date {end_date}")

    dates = pd.to_datetime(df[date_column])
    mask = (dates >= start) & (dates <= end)
    return df.loc[mask].copy()


def prepare_visits(df: pd.DataFrame,
                   start_date: Optional[str] = None,
                   end_date: Optional[str] = None,
                   filter_column: Optional[str] = None,
                   columns: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Select modeling fields, derive adm_date/dsch_date and filter by time

    Args:
        df: Raw visit DataFrame
        start_date: Start of the kept period (e.g. '2012')
        end_date: End of the kept period (e.g. '2019')
        filter_column: Date column the time filter applies to
        columns: Fields to keep

    Returns:
        Filtered visit DataFrame
    """
    start_date = start_date or INGESTION_CONFIG['start_date']
    end_date = end_date or INGESTION_CONFIG['end_date']
    filter_column = filter_column or INGESTION_CONFIG['filter_column']
    columns = columns or INGESTION_CONFIG['columns']

    missing_cols = [col for col in columns if col not in df.columns]
    if missing_cols:
        raise ValueError(f"Missing required visit columns: {missing_cols}")

    print("="*60)
    print("PREPARING VISIT DATA")
    print("="*60)
    print(f"  Input: {len(df):,} visit records")

    visits = df[columns].copy()
    visits['adm_date'] = pd.to_datetime(visits['visit_start_date_time']).dt.normalize()
    visits['dsch_date'] = pd.to_datetime(visits['visit_end_date_time']).dt.normalize()

    visits = filter_by_time(visits, filter_column, start_date, end_date)
    visits.reset_index(drop=True, inplace=True)

    print(f"  Filter: {filter_column} in {start_date} .. {end_date}")
    print(f"  Output: {len(visits):,} visit records")
    if len(visits) > 0:
        print(f"  Date range: {visits[filter_column].min().date()} to {visits[filter_column].max().date()}")

    return visits
