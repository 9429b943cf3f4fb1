"""
ETS (Exponential Smoothing) Model Module

Per-group exponential smoothing baseline on the standardized weekly series.
Sits in the model table next to the recipe-based regressions.
"""

from typing import Dict, Optional

import numpy as np
import pandas as pd
from statsmodels.tsa.holtwinters import ExponentialSmoothing

from config import AGGREGATION_CONFIG, ETS_CONFIG, FEATURE_CONFIG, TRANSFORM_CONFIG

# Shorter series get a level-only model
MIN_TREND_WEEKS = 10


class ETSForecaster:
    """Fitted per-group ETS models"""

    def __init__(self,
                 model_id: str,
                 description: str,
                 fitted_models: Dict[str, object],
                 fitted_values: Dict[str, pd.Series],
                 last_dates: Dict[str, pd.Timestamp],
                 group_col: str,
                 period: str):
        self.model_id = model_id
        self.description = description
        self.fitted_models = fitted_models
        self.fitted_values = fitted_values
        self.last_dates = last_dates
        self.group_col = group_col
        self.period = period

    def forecast(self, group: str, steps: int) -> np.ndarray:
        """
        Generate ETS forecast for a group

        Args:
            group: Group id
            steps: Number of periods after the group's last training date

        Returns:
            Forecast array
        """
        if group not in self.fitted_models:
            raise KeyError(f"No fitted ETS model for group: {group}")

        return np.asarray(self.fitted_models[group].forecast(steps))

    def predict(self, df: pd.DataFrame) -> pd.Series:
        """
        Predict rows by their offset from each group's last training date

        Rows on or before the last training date get in-sample fitted values.

        Args:
            df: Rows with group and date columns

        Returns:
            Predictions indexed like the scored rows
        """
        step = pd.Timedelta(self.period)
        predictions = []

        for group, group_df in df.groupby(self.group_col, sort=False):
            if group not in self.fitted_models:
                raise KeyError(f"No fitted ETS model for group: {group}")

            steps = ((group_df['date'] - self.last_dates[group]) / step).round().astype(int)
            values = pd.Series(np.nan, index=group_df.index)

            ahead = steps > 0
            if ahead.any():
                forecast = self.forecast(group, int(steps[ahead].max()))
                values[ahead] = forecast[steps[ahead].values - 1]

            if (~ahead).any():
                fitted = self.fitted_values[group]
                values[~ahead] = fitted.reindex(group_df.loc[~ahead, 'date']).values

            predictions.append(values.dropna())

        if not predictions:
            return pd.Series(dtype=float, name='prediction')

        return pd.concat(predictions).rename('prediction')


class ETSModelSpec:
    """Specification of the per-group ETS baseline"""

    def __init__(self,
                 model_id: str = 'ets',
                 seasonal_periods: Optional[int] = None,
                 trend: Optional[str] = 'default',
                 seasonal: Optional[str] = 'default',
                 damped_trend: Optional[bool] = None,
                 target: Optional[str] = None,
                 group_col: Optional[str] = None):
        """
        Initialize ETS specification

        Args:
            model_id: Identifier in the model table
            seasonal_periods: Periods per seasonal cycle (52 for weekly data)
            trend: Trend type ('add' or None)
            seasonal: Seasonal type ('add' or None)
            damped_trend: Use damped trend
            target: Target column
            group_col: Group key column
        """
        self.model_id = model_id
        self.seasonal_periods = ETS_CONFIG['seasonal_periods'] if seasonal_periods is None else seasonal_periods
        self.trend = ETS_CONFIG['trend'] if trend == 'default' else trend
        self.seasonal = ETS_CONFIG['seasonal'] if seasonal == 'default' else seasonal
        self.damped_trend = ETS_CONFIG['damped_trend'] if damped_trend is None else damped_trend
        self.target = target or TRANSFORM_CONFIG['standardized_col']
        self.group_col = group_col or AGGREGATION_CONFIG['group_col']

        self.description = (
            f"ETS(trend={self.trend}, seasonal={self.seasonal}, "
            f"damped={self.damped_trend and self.trend is not None})"
        )

    def _fit_group(self, group: str, y: np.ndarray):
        seasonal = self.seasonal
        if seasonal is not None and len(y) < 2 * self.seasonal_periods:
            print(f"    ⚠ {group}: {len(y)} weeks < 2 seasonal cycles, fitting without seasonality")
            seasonal = None

        trend = self.trend
        if trend is not None and len(y) < MIN_TREND_WEEKS:
            print(f"    ⚠ {group}: {len(y)} weeks < {MIN_TREND_WEEKS}, fitting without trend")
            trend = None

        model = ExponentialSmoothing(
            y,
            trend=trend,
            seasonal=seasonal,
            seasonal_periods=self.seasonal_periods if seasonal else None,
            damped_trend=self.damped_trend and trend is not None,
            initialization_method='estimated'
        )
        return model.fit(optimized=True)

    def fit(self, df: pd.DataFrame) -> ETSForecaster:
        """
        Fit one ETS model per group

        Args:
            df: Training rows

        Returns:
            ETSForecaster
        """
        if df.empty:
            raise ValueError("Cannot fit ETS models on an empty training set")

        fitted_models = {}
        fitted_values = {}
        last_dates = {}

        for group, group_df in df.groupby(self.group_col, sort=False):
            group_df = group_df.dropna(subset=[self.target]).sort_values('date')
            y = group_df[self.target].to_numpy(dtype=float)

            fitted_model = self._fit_group(group, y)

            fitted_models[group] = fitted_model
            fitted_values[group] = pd.Series(np.asarray(fitted_model.fittedvalues),
                                             index=group_df['date'].values)
            last_dates[group] = group_df['date'].max()

        return ETSForecaster(
            model_id=self.model_id,
            description=self.description,
            fitted_models=fitted_models,
            fitted_values=fitted_values,
            last_dates=last_dates,
            group_col=self.group_col,
            period=FEATURE_CONFIG['period']
        )
