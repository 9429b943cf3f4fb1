"""
LightGBM Model Module

Pooled LightGBM regressor trained on the lag-recipe features of all groups.
The group id enters as one-hot columns, so the trees can learn shared
patterns and group offsets at once.
"""

from typing import Dict, Optional

import lightgbm as lgb
import numpy as np
import pandas as pd

from config import LGBM_CONFIG


class LGBMRegressorModel:
    """Pooled LightGBM regressor with the estimator fit/predict interface"""

    def __init__(self,
                 params: Optional[Dict] = None,
                 num_boost_round: Optional[int] = None,
                 tuned_params: Optional[Dict] = None):
        """
        Initialize pooled LightGBM model

        Args:
            params: LightGBM parameters (default: LGBM_CONFIG params)
            num_boost_round: Number of boosting rounds
            tuned_params: Optuna-tuned parameters, override `params`
        """
        self.params = dict(LGBM_CONFIG['params'] if params is None else params)
        self.num_boost_round = LGBM_CONFIG['num_boost_round'] if num_boost_round is None else num_boost_round

        if tuned_params:
            tuned = dict(tuned_params)
            if 'num_boost_round' in tuned:
                self.num_boost_round = tuned.pop('num_boost_round')
            self.params.update(tuned)

        self.model: Optional[lgb.Booster] = None
        self.feature_importance: Optional[pd.DataFrame] = None

    def fit(self, X: pd.DataFrame, y: pd.Series) -> 'LGBMRegressorModel':
        """
        Train the booster

        Args:
            X: Feature matrix
            y: Target

        Returns:
            self
        """
        train_data = lgb.Dataset(X, label=np.asarray(y, dtype=float),
                                 feature_name=list(X.columns))

        self.model = lgb.train(
            self.params,
            train_data,
            num_boost_round=self.num_boost_round
        )

        self.feature_importance = pd.DataFrame({
            'feature': list(X.columns),
            'importance': self.model.feature_importance(importance_type='gain')
        }).sort_values('importance', ascending=False)

        return self

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """
        Predict with the trained booster

        Args:
            X: Feature matrix

        Returns:
            Predictions
        """
        if self.model is None:
            raise ValueError("No trained model found. Call fit() first.")

        return self.model.predict(X)
