"""
Hyperparameter Tuning Module

Uses Optuna for Bayesian optimization of the elastic net and LightGBM
lag models. Scores each trial with time series cross-validation.
"""

import json
import os
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import optuna
import pandas as pd
from optuna.samplers import TPESampler
from sklearn.linear_model import ElasticNet

from config import LGBM_CONFIG, TRANSFORM_CONFIG, TUNING_CONFIG
from .lgbm_model import LGBMRegressorModel
from .models import RecipeModelSpec
from .recipes import FeatureRecipe
from .resampling import TimeSeriesCrossValidator


class LagModelTuner:
    """Hyperparameter tuning for the lag-recipe models using Optuna"""

    def __init__(self,
                 n_trials: Optional[int] = None,
                 cv: Optional[TimeSeriesCrossValidator] = None,
                 target: Optional[str] = None,
                 seed: int = 42):
        """
        Initialize tuner

        Args:
            n_trials: Number of Optuna trials per model
            cv: Time series cross validator
            target: Target column
            seed: Random seed
        """
        self.n_trials = TUNING_CONFIG['n_trials'] if n_trials is None else n_trials
        self.cv = cv or TimeSeriesCrossValidator()
        self.target = target or TRANSFORM_CONFIG['standardized_col']
        self.seed = seed
        self.best_params: Dict[str, Dict] = {}
        self.studies: Dict[str, optuna.Study] = {}

    def _cv_mae(self, spec: RecipeModelSpec, df: pd.DataFrame,
                splits: List[Tuple[np.ndarray, np.ndarray]]) -> float:
        cv_scores = []

        for train_mask, val_mask in splits:
            model = spec.fit(df.loc[train_mask])
            val_df = df.loc[val_mask]
            y_pred = model.predict(val_df)
            y_val = val_df.loc[y_pred.index, self.target]
            cv_scores.append(np.mean(np.abs(y_val.values - y_pred.values)))

        return float(np.mean(cv_scores))

    def _optimize(self, name: str, df: pd.DataFrame,
                  build_spec: Callable[[optuna.Trial], RecipeModelSpec],
                  verbose: bool) -> Dict:
        df = df.reset_index(drop=True)
        splits = self.cv.split(df)

        study = optuna.create_study(
            direction='minimize',
            sampler=TPESampler(seed=self.seed),
            study_name=name
        )

        def objective(trial):
            return self._cv_mae(build_spec(trial), df, splits)

        study.optimize(objective, n_trials=self.n_trials, show_progress_bar=False)

        self.studies[name] = study
        self.best_params[name] = study.best_params

        if verbose:
            print(f"\n  {name} best trial:")
            print(f"    CV MAE: {study.best_value:.4f}")
            for key, value in study.best_params.items():
                print(f"    {key}: {value}")

        return study.best_params

    def tune_glmnet(self, df: pd.DataFrame, verbose: bool = True) -> Dict:
        """
        Tune elastic net penalty and mixture

        Args:
            df: Prepared rows (train split)
            verbose: Print results

        Returns:
            Best parameters
        """
        def build_spec(trial):
            params = {
                'alpha': trial.suggest_float('alpha', 1e-4, 1.0, log=True),
                'l1_ratio': trial.suggest_float('l1_ratio', 0.0, 1.0),
            }
            return RecipeModelSpec(
                'glmnet_lag', 'Elastic net + lag features', FeatureRecipe(variant='lag'),
                lambda: ElasticNet(max_iter=10000, **params)
            )

        return self._optimize('glmnet_lag', df, build_spec, verbose)

    def tune_lgbm(self, df: pd.DataFrame, verbose: bool = True) -> Dict:
        """
        Tune pooled LightGBM parameters

        Args:
            df: Prepared rows (train split)
            verbose: Print results

        Returns:
            Best parameters
        """
        def build_spec(trial):
            params = dict(LGBM_CONFIG['params'])
            params.update({
                'num_leaves': trial.suggest_int('num_leaves', 7, 63),
                'max_depth': trial.suggest_int('max_depth', 3, 8),
                'learning_rate': trial.suggest_float('learning_rate', 0.01, 0.2, log=True),
                'min_data_in_leaf': trial.suggest_int('min_data_in_leaf', 5, 40),
                'feature_fraction': trial.suggest_float('feature_fraction', 0.5, 1.0),
                'lambda_l1': trial.suggest_float('lambda_l1', 1e-8, 10.0, log=True),
                'lambda_l2': trial.suggest_float('lambda_l2', 1e-8, 10.0, log=True),
            })
            num_boost_round = trial.suggest_int('num_boost_round', 50, 500)
            return RecipeModelSpec(
                'lgbm_lag', 'LightGBM + lag features', FeatureRecipe(variant='lag'),
                lambda: LGBMRegressorModel(params=params, num_boost_round=num_boost_round)
            )

        return self._optimize('lgbm_lag', df, build_spec, verbose)

    def tune(self, df: pd.DataFrame, verbose: bool = True) -> Dict[str, Dict]:
        """
        Tune all tunable lag models

        Returns:
            Best parameters keyed by model id
        """
        if verbose:
            print("\n" + "="*60)
            print("HYPERPARAMETER TUNING")
            print("="*60)
            print(f"  Trials per model: {self.n_trials}")
            print(f"  CV slices: {self.cv.slice_limit} x {self.cv.assess} weeks")

        optuna.logging.set_verbosity(optuna.logging.WARNING)

        self.tune_glmnet(df, verbose)
        self.tune_lgbm(df, verbose)

        return dict(self.best_params)


def save_tuned_params(params_dict: Dict, filepath: str = 'models/tuned_params.json'):
    """Save tuned parameters to JSON file"""
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(filepath, 'w') as f:
        json.dump(params_dict, f, indent=2)

    print(f"Tuned parameters saved to: {filepath}")


def load_tuned_params(filepath: str = 'models/tuned_params.json') -> Dict:
    """Load tuned parameters from JSON file"""
    with open(filepath, 'r') as f:
        params_dict = json.load(f)

    return params_dict
