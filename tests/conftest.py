"""
Shared fixtures: an Ames-shaped synthetic housing table.

Run with:  python -m pytest tests/ -v
"""

import os
import sys

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest

# Allow running from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def make_ames_frame(n=300, seed=42):
    """
    Housing table with the Ames column names the report uses.

    Overall Qual drives SalePrice hardest; Lot Frontage and Mas Vnr Area
    carry missing cells; Neighborhood and MS Zoning are text.
    """
    rng = np.random.RandomState(seed)
    qual = rng.randint(1, 11, size=n)
    area = rng.normal(1500, 500, size=n).clip(400)
    cars = rng.randint(0, 5, size=n)
    bsmt = rng.normal(1000, 400, size=n).clip(0)
    year = (1950 + 5 * qual + rng.normal(0, 10, size=n)).round()
    frontage = rng.normal(70, 20, size=n).clip(20)
    masonry = rng.exponential(100, size=n)
    price = (20000 * qual + 50 * area + 8000 * cars + 20 * bsmt
             + rng.normal(0, 20000, size=n))

    frame = pd.DataFrame({
        'Order': np.arange(1, n + 1),
        'MS Zoning': rng.choice(['RL', 'RM', 'FV'], size=n),
        'Lot Frontage': frontage,
        'Neighborhood': rng.choice(['NAmes', 'CollgCr', 'OldTown'], size=n),
        'Overall Qual': qual,
        'Year Built': year,
        'Mas Vnr Area': masonry,
        'Total Bsmt SF': bsmt,
        'Gr Liv Area': area,
        'Garage Cars': cars,
        'SalePrice': price,
    })
    frame.loc[rng.choice(n, size=45, replace=False), 'Lot Frontage'] = np.nan
    frame.loc[rng.choice(n, size=3, replace=False), 'Mas Vnr Area'] = np.nan
    return frame


@pytest.fixture
def ames_frame():
    return make_ames_frame()


@pytest.fixture
def ames_csv(tmp_path, ames_frame):
    path = tmp_path / 'ames.csv'
    ames_frame.to_csv(path, index=False)
    return str(path)
