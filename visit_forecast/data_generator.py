"""
Synthetic Data Generator

Generates visit-level hospital records matching the production format:
- mrn, visit_id, visit_start_date_time, visit_end_date_time
- total_charge_amount, total_adjustment_amount, total_payment_amount
- payer_grouping, service_line, ip_op_flag
"""

import os
from typing import Dict, Optional

import numpy as np
import pandas as pd

from config import DATA_CONFIG


# Share of visits by payer grouping (includes the '?' sentinel)
PAYER_MIX = {
    'Medicare A': 0.30,
    'Medicare HMO': 0.12,
    'Commercial': 0.22,
    'Blue Cross': 0.12,
    'Medicaid': 0.10,
    'Medicaid HMO': 0.06,
    'Self Pay': 0.05,
    '?': 0.03
}

SERVICE_LINES = ['Medical', 'Surgical', 'General Outpatient', 'Cardiology',
                 'Orthopedics', 'Oncology', 'Respiratory']


class SyntheticVisitGenerator:
    """Generate synthetic visit-level records"""

    def __init__(self,
                 start_date: str = "2011-06-01",
                 end_date: str = "2019-12-31",
                 daily_visits: float = 40.0,
                 inpatient_share: float = 0.35,
                 payer_mix: Optional[Dict[str, float]] = None,
                 seed: int = 42):
        """
        Initialize data generator

        Args:
            start_date: First admission date
            end_date: Last admission date
            daily_visits: Average visits per day across all groups
            inpatient_share: Share of visits flagged inpatient ('I')
            payer_mix: Share of visits per payer grouping
            seed: Random seed for reproducibility
        """
        self.dates = pd.date_range(start=start_date, end=end_date, freq='D')
        self.daily_visits = daily_visits
        self.inpatient_share = inpatient_share
        self.payer_mix = payer_mix or PAYER_MIX
        self.seed = seed

        self.rng = np.random.default_rng(seed)

    def _expected_daily_visits(self) -> np.ndarray:
        """Expected visits per day with weekly, annual seasonality and trend"""
        day_of_week = self.dates.dayofweek.values
        weekday_pattern = np.array([1.15, 1.10, 1.05, 1.05, 1.00, 0.80, 0.85])
        dow_factor = weekday_pattern[day_of_week]

        # Winter peak (respiratory season)
        day_of_year = self.dates.dayofyear.values
        annual_factor = 1.0 + 0.15 * np.cos(2 * np.pi * (day_of_year - 15) / 365.25)

        # Mild upward trend
        trend = 1.0 + 0.03 * np.arange(len(self.dates)) / 365.25

        return self.daily_visits * dow_factor * annual_factor * trend

    def generate_visits(self) -> pd.DataFrame:
        """
        Generate visit-level data

        Returns:
            DataFrame with one row per visit
        """
        print("\nGenerating synthetic visit-level data...")
        print(f"  Date range: {self.dates[0].date()} to {self.dates[-1].date()}")
        print(f"  Average daily visits: {self.daily_visits}")

        counts = self.rng.poisson(self._expected_daily_visits())
        n_visits = int(counts.sum())

        admit_dates = np.repeat(self.dates.values, counts)
        admit_times = pd.to_datetime(admit_dates) + pd.to_timedelta(
            self.rng.integers(0, 24 * 60, n_visits), unit='min'
        )

        ip_op_flag = np.where(self.rng.random(n_visits) < self.inpatient_share, 'I', 'O')

        # Inpatient stays 1-10 days, outpatient visits end the same day
        los_days = np.where(ip_op_flag == 'I', self.rng.integers(1, 11, n_visits), 0)
        discharge_times = admit_times + pd.to_timedelta(los_days, unit='D') + pd.to_timedelta(
            self.rng.integers(30, 12 * 60, n_visits), unit='min'
        )
        # Keep outpatient discharges on the admission date
        same_day_end = admit_times.normalize() + pd.Timedelta(hours=23, minutes=59)
        discharge_times = discharge_times.where(
            (ip_op_flag == 'I') | (discharge_times <= same_day_end), same_day_end
        )

        payers = list(self.payer_mix.keys())
        weights = np.array(list(self.payer_mix.values()))
        payer_grouping = self.rng.choice(payers, size=n_visits, p=weights / weights.sum())

        service_line = self.rng.choice(SERVICE_LINES, size=n_visits)

        charges = np.where(
            ip_op_flag == 'I',
            self.rng.gamma(4.0, 8000.0, n_visits) * np.maximum(los_days, 1) / 3,
            self.rng.gamma(2.0, 900.0, n_visits)
        ).round(2)
        adjustments = -(charges * self.rng.uniform(0.3, 0.7, n_visits)).round(2)
        payments = -(charges + adjustments).round(2)

        df = pd.DataFrame({
            'mrn': self.rng.integers(100000, 999999, n_visits).astype(str),
            'visit_id': np.arange(1, n_visits + 1).astype(str),
            'visit_start_date_time': admit_times,
            'visit_end_date_time': discharge_times,
            'total_charge_amount': charges,
            'total_adjustment_amount': adjustments,
            'total_payment_amount': payments,
            'payer_grouping': payer_grouping,
            'service_line': service_line,
            'ip_op_flag': ip_op_flag
        })

        print(f"\n  Generated {len(df):,} visit records")
        print(f"  Inpatient share: {(df['ip_op_flag'] == 'I').mean():.1%}")
        print(f"  Unknown payer share: {(df['payer_grouping'] == '?').mean():.1%}")

        return df


def generate_and_save_data(output_path: str = "data/visits.csv",
                           **kwargs) -> pd.DataFrame:
    """
    Generate synthetic visits and save to CSV

    Args:
        output_path: Path to save visit data
        **kwargs: Arguments for SyntheticVisitGenerator

    Returns:
        Visit-level DataFrame
    """
    print("="*60)
    print("GENERATING SYNTHETIC DATA")
    print("="*60)

    params = {
        'start_date': DATA_CONFIG['generate_start_date'],
        'end_date': DATA_CONFIG['generate_end_date'],
        'daily_visits': DATA_CONFIG['daily_visits'],
        'seed': DATA_CONFIG['seed'],
    }
    params.update(kwargs)

    generator = SyntheticVisitGenerator(**params)
    df = generator.generate_visits()

    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
    df.to_csv(output_path, index=False)

    print(f"\n  Visit data saved to: {output_path}")
    print(f"  Total size: {df.memory_usage(deep=True).sum() / 1024**2:.2f} MB")

    print("\n" + "="*60)
    print("DATA GENERATION COMPLETE")
    print("="*60)

    return df
