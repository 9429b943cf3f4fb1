"""
Weekly Visit Forecasting System

Forecasts weekly hospital visit counts per inpatient/outpatient and payer
group with a table of recipe-based regression models, walk-forward
calibration and conformal confidence intervals.
"""

__version__ = "1.0.0"
__author__ = "Forecasting Team"
