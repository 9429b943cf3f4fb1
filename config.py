"""
Configuration File for Weekly Visit Forecasting Pipeline

Central place to configure all parameters for the forecasting system.
Modify values here to experiment with different settings.
"""

# ==============================================================================
# DATA LOADING / GENERATION
# ==============================================================================
DATA_CONFIG = {
    'generate_new_data': True,  # Set False to use existing data
    'data_path': 'data/visits.csv',  # Path if using existing data
    'generate_start_date': '2011-06-01',
    'generate_end_date': '2019-12-31',
    'daily_visits': 40.0,  # Average visits per day across all groups
    'seed': 42
}

# ==============================================================================
# INGESTION
# ==============================================================================
INGESTION_CONFIG = {
    'columns': [
        'mrn', 'visit_id',
        'visit_start_date_time', 'visit_end_date_time',
        'total_charge_amount', 'total_adjustment_amount', 'total_payment_amount',
        'payer_grouping', 'service_line', 'ip_op_flag'
    ],
    'datetime_columns': ['visit_start_date_time', 'visit_end_date_time'],
    'filter_column': 'dsch_date',  # Filter on discharge date
    'start_date': '2012',  # First instant of 2012
    'end_date': '2019'     # Last instant of 2019
}

# ==============================================================================
# AGGREGATION
# ==============================================================================
AGGREGATION_CONFIG = {
    'date_column': 'dsch_date',
    'group_columns': ['ip_op_flag', 'payer_category'],
    'group_col': 'group_id',
    'week_anchor': 'W-SAT',  # Weekly periods ending Saturday (weeks start Sunday)
    'unknown_values': ['?', 'Unknown', 'UNKNOWN', ''],
    'medicare_prefix': 'Medicare'  # payer_grouping prefix collapsed to 'Medicare'
}

# ==============================================================================
# TRANSFORMATION
# ==============================================================================
TRANSFORM_CONFIG = {
    'target': 'value',
    'log_col': 'log_value',
    'standardized_col': 'value_trans',
    'log_floor': 1.0  # Counts below this are floored before log
}

# ==============================================================================
# FEATURE ENGINEERING
# ==============================================================================
FEATURE_CONFIG = {
    'horizon': 14,                        # Future weeks appended per group
    'period': '7D',                       # Spacing of the weekly grid
    'lag_periods': [14],                  # Lag in periods (>= horizon keeps future rows populated)
    'rolling_windows': [7, 14, 28, 52],   # Centered windows over the lag
}

# ==============================================================================
# TRAIN/TEST SPLIT
# ==============================================================================
SPLIT_CONFIG = {
    'assess': 14,        # Last N weeks per group become the test set
    'cumulative': True   # Train always starts at the earliest week
}

# ==============================================================================
# FEATURE RECIPES
# ==============================================================================
RECIPE_CONFIG = {
    # Columns never used as predictors
    'exclude_cols': ['value', 'log_value', 'ip_op_flag', 'payer_category'],
    # Signature columns meaningless at weekly granularity
    'remove_pattern': r'(_iso$)|(_xts$)|(hour)|(minute)|(second)|(am_pm)',
    'spline_deg_free': 4,
    'nzv_freq_cut': 95 / 5,
    'nzv_unique_cut': 10
}

# ==============================================================================
# MODEL TABLE
# ==============================================================================
MODEL_CONFIG = {
    'models': ['lm_spline', 'lm_lag', 'glmnet_lag', 'rf_lag', 'lgbm_lag', 'ets'],
    'glmnet_params': {
        'alpha': 0.01,     # Penalty
        'l1_ratio': 0.5,   # Mixture
        'max_iter': 10000
    },
    'rf_params': {
        'n_estimators': 500,
        'min_samples_leaf': 2,
        'random_state': 42
    }
}

# ==============================================================================
# ETS BASELINE CONFIGURATION
# ==============================================================================
ETS_CONFIG = {
    'seasonal_periods': 52,   # Annual seasonality on weekly data
    'trend': 'add',           # 'add' or None (standardized values can be negative)
    'seasonal': 'add',        # 'add' or None
    'damped_trend': True
}

# ==============================================================================
# LIGHTGBM MODEL CONFIGURATION
# ==============================================================================
LGBM_CONFIG = {
    'num_boost_round': 300,
    'params': {
        'objective': 'regression',
        'metric': 'mae',
        'boosting_type': 'gbdt',
        'num_leaves': 15,
        'max_depth': 5,
        'learning_rate': 0.05,
        'min_data_in_leaf': 10,
        'feature_fraction': 0.8,
        'bagging_fraction': 0.8,
        'bagging_freq': 5,
        'lambda_l1': 0.1,
        'lambda_l2': 0.1,
        'verbose': -1,
        'seed': 42
    }
}

# ==============================================================================
# CALIBRATION / CONFIDENCE INTERVALS
# ==============================================================================
CALIBRATION_CONFIG = {
    'conf_interval': 0.95,  # Quantile of absolute calibration residuals
    'conf_by_id': True      # Interval width per group instead of pooled
}

# ==============================================================================
# RESAMPLING + HYPERPARAMETER TUNING CONFIGURATION
# ==============================================================================
TUNING_CONFIG = {
    'evaluate_resamples': True,    # Score the model table on time series CV folds
    'tune_hyperparameters': False, # Enable/disable Optuna tuning
    'n_trials': 30,                # Number of Optuna trials per model
    'assess': 14,                  # Weeks per CV assessment slice
    'skip': 14,                    # Weeks between slice origins
    'slice_limit': 4,              # Number of CV slices
    'tuned_params_path': 'models/tuned_params.json'
}

# ==============================================================================
# PARALLEL BACKEND
# ==============================================================================
PARALLEL_CONFIG = {
    'n_jobs': -1  # joblib workers for independent model / fold fits
}

# ==============================================================================
# OUTPUT CONFIGURATION
# ==============================================================================
OUTPUT_CONFIG = {
    'output_dir': 'outputs',
    'model_dir': 'models',
    'data_dir': 'data'
}
