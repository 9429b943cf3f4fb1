"""
Transformation Module

Log transform + per-group standardization of weekly visit counts.
The per-group (mean, std) pairs are kept in an explicit mapping keyed by
group id so forecasts can be inverted back to visit counts.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from config import AGGREGATION_CONFIG, TRANSFORM_CONFIG


@dataclass(frozen=True)
class StandardizationParams:
    """Mean and standard deviation of a group's logged series"""
    mean: float
    std: float


class LogStandardizer:
    """Log + z-score transform fitted independently per group"""

    def __init__(self,
                 target: Optional[str] = None,
                 group_col: Optional[str] = None,
                 log_col: Optional[str] = None,
                 standardized_col: Optional[str] = None,
                 floor: Optional[float] = None):
        """
        Initialize standardizer

        Args:
            target: Raw count column
            group_col: Group key column
            log_col: Output column for log(target)
            standardized_col: Output column for the standardized log
            floor: Counts below this value are replaced before the log
        """
        self.target = target or TRANSFORM_CONFIG['target']
        self.group_col = group_col or AGGREGATION_CONFIG['group_col']
        self.log_col = log_col or TRANSFORM_CONFIG['log_col']
        self.standardized_col = standardized_col or TRANSFORM_CONFIG['standardized_col']
        self.floor = TRANSFORM_CONFIG['log_floor'] if floor is None else floor

        self.params: Dict[str, StandardizationParams] = {}

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Log-transform and standardize the target per group

        Statistics come only from rows with a known target; rows with a
        missing target stay missing.

        Args:
            df: Group-week DataFrame

        Returns:
            DataFrame with log and standardized columns added
        """
        print("="*60)
        print("LOG-STANDARDIZING WEEKLY COUNTS")
        print("="*60)

        out = df.copy()
        values = out[self.target].astype(float)

        below_floor = values.notna() & (values < self.floor)
        if below_floor.any():
            print(f"  ⚠ {int(below_floor.sum())} counts below {self.floor} floored before log")
            values = values.mask(below_floor, self.floor)

        out[self.log_col] = np.log(values)

        params = {}
        for group, log_values in out.groupby(self.group_col)[self.log_col]:
            known = log_values.dropna()
            mean = known.mean()
            std = known.std()
            if len(known) < 2 or not np.isfinite(std) or std == 0:
                raise ValueError(
                    f"Cannot standardize group {group!r}: needs >= 2 known, "
                    f"non-constant values (got {len(known)})"
                )
            params[group] = StandardizationParams(mean=float(mean), std=float(std))
            print(f"  {group}: mean={mean:.4f}, std={std:.4f} ({len(known)} weeks)")

        means = out[self.group_col].map({g: p.mean for g, p in params.items()})
        stds = out[self.group_col].map({g: p.std for g, p in params.items()})
        out[self.standardized_col] = (out[self.log_col] - means) / stds

        self.params = params

        print(f"\n  Groups standardized: {len(params)}")
        print("="*60)

        return out


def log_standardize(df: pd.DataFrame,
                    **kwargs) -> Tuple[pd.DataFrame, Dict[str, StandardizationParams]]:
    """
    Convenience function to log-standardize the target

    Args:
        df: Group-week DataFrame
        **kwargs: Arguments for LogStandardizer

    Returns:
        Transformed DataFrame, mapping group id -> StandardizationParams
    """
    standardizer = LogStandardizer(**kwargs)
    transformed = standardizer.fit_transform(df)
    return transformed, standardizer.params


def invert_values(values: Iterable[float],
                  group_ids: Iterable[str],
                  params: Dict[str, StandardizationParams]) -> np.ndarray:
    """
    Invert standardization then the log: exp(value * std + mean)

    Each value uses the parameters of its own group.

    Raises:
        KeyError: if any group has no stored parameters
    """
    values = np.asarray(values, dtype=float)
    group_ids = pd.Series(list(group_ids))

    missing = sorted(set(group_ids.unique()) - set(params))
    if missing:
        raise KeyError(
            f"No standardization parameters stored for groups: {missing}"
        )

    means = group_ids.map({g: p.mean for g, p in params.items()}).to_numpy(dtype=float)
    stds = group_ids.map({g: p.std for g, p in params.items()}).to_numpy(dtype=float)

    return np.exp(values * stds + means)


def invert_forecast(df: pd.DataFrame,
                    params: Dict[str, StandardizationParams],
                    columns: Iterable[str] = ('value', 'conf_lo', 'conf_hi'),
                    group_col: Optional[str] = None) -> pd.DataFrame:
    """
    Return a copy of a forecast table with columns in original units

    The point forecast and both interval bounds are inverted identically.

    Args:
        df: Forecast table in standardized units
        params: Mapping group id -> StandardizationParams
        columns: Columns to invert
        group_col: Group key column

    Returns:
        Forecast table in visit counts
    """
    group_col = group_col or AGGREGATION_CONFIG['group_col']

    out = df.copy()
    for col in columns:
        out[col] = invert_values(out[col].values, out[group_col].values, params)

    return out
