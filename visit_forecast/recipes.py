"""
Feature Recipe Module

Builds model-specific feature matrices from the augmented data:
- Calendar signature of the week date
- Removal of features meaningless at weekly granularity
- Spline basis of the time index (spline variant) or lag features (lag variant)
- Normalization, near-zero-variance removal, one-hot encoding

Recipes follow a two-phase contract: FeatureRecipe.fit(train) learns the
scaling/encoding once and returns an immutable FittedRecipe, which applies
exactly the same transformation to test and forecast rows.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import OneHotEncoder, SplineTransformer, StandardScaler

from config import RECIPE_CONFIG, TRANSFORM_CONFIG

VARIANTS = ('base', 'spline', 'lag')
LAG_PREFIX = 'lag_'


def timeseries_signature(dates: pd.Series, prefix: str = 'date') -> pd.DataFrame:
    """
    Expand a date column into calendar features

    Args:
        dates: Timestamps
        prefix: Prefix for the generated column names

    Returns:
        DataFrame of signature features indexed like `dates`
    """
    d = pd.to_datetime(dates)
    iso = d.dt.isocalendar()
    month = d.dt.month
    day = d.dt.day
    hour = d.dt.hour
    yday = d.dt.dayofyear
    week = (yday - 1) // 7 + 1
    wday = (d.dt.dayofweek + 1) % 7 + 1  # Sunday = 1

    features = {
        'index_num': (d - pd.Timestamp('1970-01-01')).dt.total_seconds(),
        'year': d.dt.year,
        'year_iso': iso['year'].astype(int),
        'half': np.where(month <= 6, 1, 2),
        'quarter': d.dt.quarter,
        'month': month,
        'month_xts': month - 1,
        'month_lbl': d.dt.month_name(),
        'day': day,
        'hour': hour,
        'minute': d.dt.minute,
        'second': d.dt.second,
        'hour12': hour % 12,
        'am_pm': np.where(hour < 12, 1, 2),
        'wday': wday,
        'wday_xts': wday - 1,
        'wday_lbl': d.dt.day_name(),
        'mday': day,
        'qday': (d - d.dt.to_period('Q').dt.start_time).dt.days + 1,
        'yday': yday,
        'mweek': (day - 1) // 7 + 1,
        'week': week,
        'week_iso': iso['week'].astype(int),
        'week2': week % 2,
        'week3': week % 3,
        'week4': week % 4,
        'mday7': day // 7 + 1,
    }

    return pd.DataFrame({f'{prefix}_{name}': values for name, values in features.items()},
                        index=dates.index)


def near_zero_variance(frame: pd.DataFrame,
                       freq_cut: float = 95 / 5,
                       unique_cut: float = 10) -> List[str]:
    """
    Columns with a single value, or a dominant value and few distinct values

    A column is flagged when the ratio of the most common to the second most
    common value exceeds `freq_cut` and the percentage of distinct values is
    at most `unique_cut`.
    """
    flagged = []
    n_rows = len(frame)

    for col in frame.columns:
        counts = frame[col].value_counts(dropna=True)
        if len(counts) <= 1:
            flagged.append(col)
            continue

        freq_ratio = counts.iloc[0] / counts.iloc[1]
        pct_unique = 100 * len(counts) / n_rows
        if freq_ratio > freq_cut and pct_unique <= unique_cut:
            flagged.append(col)

    return flagged


def _apply_spline(X: pd.DataFrame, col: str, spline: SplineTransformer) -> pd.DataFrame:
    basis = spline.transform(X[[col]])
    names = [f'{col}_ns_{i + 1}' for i in range(basis.shape[1])]
    basis_df = pd.DataFrame(basis, columns=names, index=X.index)
    return pd.concat([X.drop(columns=[col]), basis_df], axis=1)


def _normalize(X: pd.DataFrame, numeric_cols: List[str],
               scaler: Optional[StandardScaler]) -> pd.DataFrame:
    if scaler is None:
        return X
    scaled = pd.DataFrame(scaler.transform(X[numeric_cols]), columns=numeric_cols, index=X.index)
    return pd.concat([X.drop(columns=numeric_cols), scaled], axis=1)


def _encode(X: pd.DataFrame, categorical_cols: List[str],
            encoder: Optional[OneHotEncoder]) -> pd.DataFrame:
    if encoder is None:
        return X
    encoded = pd.DataFrame(
        encoder.transform(X[categorical_cols].astype(str)),
        columns=encoder.get_feature_names_out(categorical_cols),
        index=X.index
    )
    return pd.concat([X.drop(columns=categorical_cols), encoded], axis=1)


class FeatureRecipe:
    """Recipe specification (unfitted)"""

    def __init__(self,
                 variant: str = 'lag',
                 outcome: Optional[str] = None,
                 date_col: str = 'date',
                 exclude_cols: Optional[List[str]] = None,
                 remove_pattern: Optional[str] = None,
                 spline_deg_free: Optional[int] = None,
                 freq_cut: Optional[float] = None,
                 unique_cut: Optional[float] = None):
        """
        Initialize recipe

        Args:
            variant: 'base', 'spline' (spline of time index, no lags) or
                     'lag' (lag features, rows with missing lags removed)
            outcome: Target column
            date_col: Timestamp column expanded into calendar features
            exclude_cols: Columns never used as predictors
            remove_pattern: Regex of signature columns to drop
            spline_deg_free: Degrees of freedom of the spline basis (>= 3)
            freq_cut: Near-zero-variance frequency ratio cutoff
            unique_cut: Near-zero-variance percent-unique cutoff
        """
        if variant not in VARIANTS:
            raise ValueError(f"Unknown recipe variant {variant!r}, expected one of {VARIANTS}")

        self.variant = variant
        self.outcome = outcome or TRANSFORM_CONFIG['standardized_col']
        self.date_col = date_col
        self.exclude_cols = list(RECIPE_CONFIG['exclude_cols'] if exclude_cols is None else exclude_cols)
        self.remove_pattern = remove_pattern or RECIPE_CONFIG['remove_pattern']
        self.spline_deg_free = RECIPE_CONFIG['spline_deg_free'] if spline_deg_free is None else spline_deg_free
        self.freq_cut = RECIPE_CONFIG['nzv_freq_cut'] if freq_cut is None else freq_cut
        self.unique_cut = RECIPE_CONFIG['nzv_unique_cut'] if unique_cut is None else unique_cut

        if self.spline_deg_free < 3:
            raise ValueError(f"spline_deg_free must be >= 3, got {self.spline_deg_free}")

        self.index_col = f'{self.date_col}_index_num'

    def __repr__(self):
        return f"FeatureRecipe(variant={self.variant!r}, outcome={self.outcome!r})"

    def prepare(self, df: pd.DataFrame) -> pd.DataFrame:
        """Stateless steps: signature, removals and variant column drops"""
        if self.date_col not in df.columns:
            raise ValueError(f"Recipe requires a {self.date_col!r} column")

        drop_cols = [c for c in self.exclude_cols + [self.outcome] if c in df.columns]
        X = df.drop(columns=drop_cols)

        signature = timeseries_signature(X[self.date_col], prefix=self.date_col)
        X = pd.concat([X, signature], axis=1)

        pattern = re.compile(self.remove_pattern)
        X = X.drop(columns=[c for c in X.columns if pattern.search(c)])

        if self.variant != 'base':
            X = X.drop(columns=[self.date_col])
        if self.variant == 'spline':
            X = X.drop(columns=[c for c in X.columns if c.startswith(LAG_PREFIX)])

        return X

    def drop_missing_lags(self, X: pd.DataFrame, report: bool = False) -> pd.DataFrame:
        """Remove rows with any missing lag feature"""
        lag_cols = [c for c in X.columns if c.startswith(LAG_PREFIX)]
        if not lag_cols:
            return X

        complete = X[lag_cols].notna().all(axis=1)
        n_dropped = int((~complete).sum())
        if report and n_dropped > 0:
            print(f"    ⚠ {n_dropped} rows omitted: missing lag features")

        return X.loc[complete]

    def fit(self, df: pd.DataFrame) -> 'FittedRecipe':
        """
        Learn spline knots, scaling, NZV removals and encodings on training rows

        Args:
            df: Training rows

        Returns:
            Immutable FittedRecipe
        """
        if df.empty:
            raise ValueError("Cannot fit a recipe on an empty training set")

        X = self.prepare(df)
        if self.variant == 'lag':
            X = self.drop_missing_lags(X)
        if X.empty:
            raise ValueError(f"No training rows left for {self!r} after removing missing lags")

        spline = None
        if self.variant == 'spline':
            spline = SplineTransformer(
                n_knots=self.spline_deg_free - 1,
                degree=3,
                include_bias=False,
                extrapolation='linear'
            ).fit(X[[self.index_col]])
            X = _apply_spline(X, self.index_col, spline)

        numeric_cols = X.select_dtypes(include='number').columns.tolist()
        scaler = StandardScaler().fit(X[numeric_cols]) if numeric_cols else None
        X = _normalize(X, numeric_cols, scaler)

        nzv_cols = near_zero_variance(X, self.freq_cut, self.unique_cut)
        X = X.drop(columns=nzv_cols)

        categorical_cols = X.select_dtypes(include=['object', 'category', 'string']).columns.tolist()
        encoder = None
        if categorical_cols:
            encoder = OneHotEncoder(handle_unknown='ignore', sparse_output=False)
            encoder.fit(X[categorical_cols].astype(str))
        X = _encode(X, categorical_cols, encoder)

        return FittedRecipe(
            recipe=self,
            spline=spline,
            numeric_cols=tuple(numeric_cols),
            scaler=scaler,
            nzv_cols=tuple(nzv_cols),
            categorical_cols=tuple(categorical_cols),
            encoder=encoder,
            feature_names=tuple(X.columns),
            n_train_rows=len(X)
        )


@dataclass(frozen=True)
class FittedRecipe:
    """Recipe with learned state, applied unchanged to new rows"""
    recipe: FeatureRecipe
    spline: Optional[SplineTransformer]
    numeric_cols: Tuple[str, ...]
    scaler: Optional[StandardScaler]
    nzv_cols: Tuple[str, ...]
    categorical_cols: Tuple[str, ...]
    encoder: Optional[OneHotEncoder]
    feature_names: Tuple[str, ...]
    n_train_rows: int

    @property
    def outcome(self) -> str:
        return self.recipe.outcome

    def apply(self, df: pd.DataFrame, training: bool = False) -> pd.DataFrame:
        """
        Transform rows with the learned state

        Rows with missing lag features are omitted for the lag variant
        (reported unless `training`).

        Args:
            df: Rows to transform
            training: True when re-applying to the rows the recipe was fit on

        Returns:
            Feature matrix indexed like the kept input rows
        """
        X = self.recipe.prepare(df)
        if self.recipe.variant == 'lag':
            X = self.recipe.drop_missing_lags(X, report=not training)

        if X.empty:
            return pd.DataFrame(columns=list(self.feature_names), index=X.index, dtype=float)

        if self.spline is not None:
            X = _apply_spline(X, self.recipe.index_col, self.spline)

        missing_cols = [c for c in self.numeric_cols + self.categorical_cols if c not in X.columns]
        if missing_cols:
            raise ValueError(f"Rows are missing recipe columns: {missing_cols}")

        X = _normalize(X, list(self.numeric_cols), self.scaler)
        X = X.drop(columns=list(self.nzv_cols))
        X = _encode(X, list(self.categorical_cols), self.encoder)

        return X[list(self.feature_names)]

    def outcome_values(self, df: pd.DataFrame, X: pd.DataFrame) -> pd.Series:
        """Target values aligned with the rows kept in X"""
        return df.loc[X.index, self.outcome]
