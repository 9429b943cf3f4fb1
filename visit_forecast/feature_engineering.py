"""
Feature Engineering Module

Augments the standardized group-week series for forecasting:
- Future horizon rows (target unset)
- Lag features (date-aligned within each group)
- Centered rolling means of the lag (partial windows at the edges)
"""

from typing import List, Optional

import pandas as pd

from config import AGGREGATION_CONFIG, FEATURE_CONFIG, TRANSFORM_CONFIG


def extend_horizon(df: pd.DataFrame,
                   horizon: int,
                   group_col: str = 'group_id',
                   period: str = '7D',
                   constant_cols: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Append `horizon` future rows per group after the group's last date

    Future rows copy the group's constant columns; all other columns
    (targets included) are missing.

    Args:
        df: Group-week DataFrame
        horizon: Number of future periods
        group_col: Group key column
        period: Spacing between periods
        constant_cols: Columns constant within a group (copied forward)

    Returns:
        DataFrame with future rows, sorted by group and date
    """
    if horizon < 1:
        raise ValueError(f"horizon must be >= 1, got {horizon}")

    if constant_cols is None:
        constant_cols = [c for c in AGGREGATION_CONFIG['group_columns'] if c in df.columns]

    step = pd.Timedelta(period)
    future_frames = []

    for group, group_df in df.groupby(group_col, sort=False):
        last_date = group_df['date'].max()
        future_dates = pd.date_range(start=last_date + step, periods=horizon, freq=step)

        future_df = pd.DataFrame({group_col: group, 'date': future_dates})
        for col in constant_cols:
            future_df[col] = group_df[col].iloc[0]
        future_frames.append(future_df)

    extended = pd.concat([df] + future_frames, ignore_index=True, sort=False)
    extended = extended[df.columns]
    extended.sort_values([group_col, 'date'], inplace=True)
    extended.reset_index(drop=True, inplace=True)

    return extended


class FeatureEngineer:
    """Feature engineering for group-week forecasting"""

    def __init__(self,
                 df: pd.DataFrame,
                 target: Optional[str] = None,
                 group_col: Optional[str] = None):
        """
        Initialize feature engineer

        Args:
            df: Standardized group-week DataFrame
            target: Column the lags are taken from
            group_col: Group key column
        """
        self.target = target or TRANSFORM_CONFIG['standardized_col']
        self.group_col = group_col or AGGREGATION_CONFIG['group_col']

        self.df = df.copy()
        self.df['date'] = pd.to_datetime(self.df['date'])
        self.df.sort_values([self.group_col, 'date'], inplace=True)
        self.df.reset_index(drop=True, inplace=True)

        if self.df.duplicated([self.group_col, 'date']).any():
            raise ValueError("Expected one row per group and date")

        self.period = FEATURE_CONFIG['period']

        # Track feature creation
        self.features_created = []

    def create_all_features(self,
                            horizon: Optional[int] = None,
                            lag_periods: Optional[List[int]] = None,
                            rolling_windows: Optional[List[int]] = None) -> pd.DataFrame:
        """
        Extend the horizon, then create lag and rolling features

        Returns:
            DataFrame with all features
        """
        horizon = FEATURE_CONFIG['horizon'] if horizon is None else horizon
        lag_periods = FEATURE_CONFIG['lag_periods'] if lag_periods is None else lag_periods
        rolling_windows = FEATURE_CONFIG['rolling_windows'] if rolling_windows is None else rolling_windows

        print("Creating all features...")
        print(f"Starting columns: {len(self.df.columns)}")

        self.extend_horizon(horizon)
        self.create_lag_features(lag_periods)
        for lag in lag_periods:
            self.create_rolling_features(f'lag_{lag}', rolling_windows)

        print(f"\nFinal columns: {len(self.df.columns)}")
        print(f"Features created: {len(self.features_created)}")

        return self.df

    # ========================================================================
    # FUTURE HORIZON
    # ========================================================================

    def extend_horizon(self, horizon: int) -> None:
        """Append future rows with unset target per group"""
        print(f"\n1. Extending each group by {horizon} future periods...")

        n_before = len(self.df)
        self.df = extend_horizon(self.df, horizon, self.group_col, self.period)

        print(f"   Added {len(self.df) - n_before} future rows")

    # ========================================================================
    # LAG FEATURES
    # ========================================================================

    def create_lag_features(self, lags: List[int]) -> None:
        """Create lag features: row at t gets the target at t - lag periods"""
        print("\n2. Creating lag features...")

        step = pd.Timedelta(self.period)

        for lag in lags:
            col_name = f'lag_{lag}'
            lagged = self.df[[self.group_col, 'date', self.target]].dropna(subset=[self.target])
            lagged = lagged.assign(date=lagged['date'] + lag * step)
            lagged = lagged.rename(columns={self.target: col_name})

            self.df = self.df.merge(lagged, on=[self.group_col, 'date'], how='left')
            self.features_created.append(col_name)

        print(f"   Created {len(lags)} lag features: {lags}")

    # ========================================================================
    # ROLLING WINDOW FEATURES
    # ========================================================================

    def create_rolling_features(self, lag_col: str, windows: List[int]) -> None:
        """Create centered rolling means of a lag column"""
        print("\n3. Creating rolling window features...")

        rolling_features = []

        for window in windows:
            col_name = f'{lag_col}_roll_{window}'
            self.df[col_name] = (
                self.df.groupby(self.group_col)[lag_col]
                .transform(lambda s: s.rolling(window, center=True, min_periods=1).mean())
            )
            rolling_features.append(col_name)

        self.features_created.extend(rolling_features)
        print(f"   Created {len(rolling_features)} rolling window features")

    def check_missing_values(self) -> pd.Series:
        """
        Check missing values in features

        Returns:
            Series with missing value counts
        """
        missing = self.df[self.features_created].isna().sum()
        missing = missing[missing > 0].sort_values(ascending=False)

        if len(missing) == 0:
            print("✓ No missing values in features")
        else:
            print(f"⚠ Missing values found in {len(missing)} features (kept for recipe-level removal):")
            print(missing)

        return missing


def augment_features(df: pd.DataFrame, **kwargs) -> pd.DataFrame:
    """
    Convenience function to augment the series with all features

    Args:
        df: Standardized group-week DataFrame
        **kwargs: horizon, lag_periods, rolling_windows

    Returns:
        DataFrame with future rows and engineered features
    """
    engineer = FeatureEngineer(df)
    df_features = engineer.create_all_features(**kwargs)

    print("\n" + "="*60)
    print("FEATURE ENGINEERING COMPLETE")
    print("="*60)
    print(f"Total features created: {len(engineer.features_created)}")
    print(f"Output shape: {df_features.shape}")
    print(f"Future rows: {int(df_features[engineer.target].isna().sum())}")

    print("\nChecking for missing values...")
    engineer.check_missing_values()

    return df_features
