"""
Model Table Module

Pairs feature recipes with regression estimators and fits them as
independent units of work:
- Linear regression + spline recipe
- Linear regression + lag recipe
- Elastic net + lag recipe
- Random forest + lag recipe
- LightGBM + lag recipe
- Per-group ETS baseline
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import pandas as pd
from joblib import Parallel, delayed
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import ElasticNet, LinearRegression

from config import MODEL_CONFIG, PARALLEL_CONFIG
from .ets_model import ETSModelSpec
from .lgbm_model import LGBMRegressorModel
from .recipes import FeatureRecipe, FittedRecipe


@dataclass(frozen=True)
class FittedRecipeModel:
    """Fitted (recipe, estimator) pair"""
    model_id: str
    description: str
    recipe: FittedRecipe
    estimator: object

    def predict(self, df: pd.DataFrame) -> pd.Series:
        """
        Predict the rows the recipe can score

        Args:
            df: Rows to predict

        Returns:
            Predictions indexed like the scored rows
        """
        X = self.recipe.apply(df)
        if X.empty:
            return pd.Series(dtype=float, name='prediction')

        return pd.Series(self.estimator.predict(X), index=X.index, name='prediction')


class RecipeModelSpec:
    """Unfitted model: a feature recipe plus an estimator factory"""

    def __init__(self,
                 model_id: str,
                 description: str,
                 recipe: FeatureRecipe,
                 estimator_factory: Callable[[], object]):
        self.model_id = model_id
        self.description = description
        self.recipe = recipe
        self.estimator_factory = estimator_factory

    def __repr__(self):
        return f"RecipeModelSpec({self.model_id!r}, {self.recipe!r})"

    def fit(self, df: pd.DataFrame) -> FittedRecipeModel:
        """
        Fit the recipe then the estimator on the training rows

        Args:
            df: Training rows

        Returns:
            FittedRecipeModel
        """
        fitted_recipe = self.recipe.fit(df)
        X = fitted_recipe.apply(df, training=True)
        y = fitted_recipe.outcome_values(df, X)

        estimator = self.estimator_factory()
        estimator.fit(X, y)

        return FittedRecipeModel(
            model_id=self.model_id,
            description=self.description,
            recipe=fitted_recipe,
            estimator=estimator
        )


def build_model_specs(model_ids: Optional[List[str]] = None,
                      tuned_params: Optional[Dict] = None) -> List:
    """
    Build the model table specification

    Args:
        model_ids: Models to include (default: MODEL_CONFIG['models'])
        tuned_params: Tuned parameters keyed by model id ('glmnet_lag', 'lgbm_lag')

    Returns:
        List of model specifications
    """
    model_ids = model_ids or MODEL_CONFIG['models']
    tuned_params = tuned_params or {}

    glmnet_params = dict(MODEL_CONFIG['glmnet_params'])
    glmnet_params.update(tuned_params.get('glmnet_lag', {}))
    rf_params = dict(MODEL_CONFIG['rf_params'])
    lgbm_tuned = tuned_params.get('lgbm_lag')

    available = {
        'lm_spline': lambda: RecipeModelSpec(
            'lm_spline', 'Linear regression + spline of time index',
            FeatureRecipe(variant='spline'), LinearRegression),
        'lm_lag': lambda: RecipeModelSpec(
            'lm_lag', 'Linear regression + lag features',
            FeatureRecipe(variant='lag'), LinearRegression),
        'glmnet_lag': lambda: RecipeModelSpec(
            'glmnet_lag', f"Elastic net (alpha={glmnet_params['alpha']:.4g}, "
                          f"l1_ratio={glmnet_params['l1_ratio']:.2f}) + lag features",
            FeatureRecipe(variant='lag'), lambda: ElasticNet(**glmnet_params)),
        'rf_lag': lambda: RecipeModelSpec(
            'rf_lag', 'Random forest + lag features',
            FeatureRecipe(variant='lag'), lambda: RandomForestRegressor(**rf_params)),
        'lgbm_lag': lambda: RecipeModelSpec(
            'lgbm_lag', 'LightGBM + lag features',
            FeatureRecipe(variant='lag'), lambda: LGBMRegressorModel(tuned_params=lgbm_tuned)),
        'ets': lambda: ETSModelSpec('ets'),
    }

    unknown = [m for m in model_ids if m not in available]
    if unknown:
        raise ValueError(f"Unknown model ids: {unknown}. Available: {list(available)}")

    return [available[m]() for m in model_ids]


def fit_model_table(specs: List,
                    train_df: pd.DataFrame,
                    n_jobs: Optional[int] = None) -> List:
    """
    Fit every model specification on the training rows

    Each fit is independent; results come back in spec order.

    Args:
        specs: Model specifications
        train_df: Training rows
        n_jobs: joblib workers (default: PARALLEL_CONFIG['n_jobs'])

    Returns:
        Fitted models in spec order
    """
    n_jobs = PARALLEL_CONFIG['n_jobs'] if n_jobs is None else n_jobs

    print("="*60)
    print("FITTING MODEL TABLE")
    print("="*60)
    print(f"  Models: {[spec.model_id for spec in specs]}")
    print(f"  Training rows: {len(train_df):,}")
    print(f"  Workers: {n_jobs}")

    if train_df.empty:
        raise ValueError("Cannot fit models on an empty training set")

    fitted = Parallel(n_jobs=n_jobs)(delayed(spec.fit)(train_df) for spec in specs)

    for model in fitted:
        print(f"    ✓ {model.model_id}: {model.description}")

    return fitted
