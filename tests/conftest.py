"""
Central pytest configuration for this project.

This file is automatically discovered by pytest and is intended for:

- **Fixtures**: reusable datasets and keys shared across test files.
- **Pytest hooks**: project-wide customizations of pytest behavior.

Notes
-----
- Install the package in editable mode with the test extra
  (`pip install -e .[test]`) so imports resolve the same way locally and in CI.
- Importing tierbayes switches JAX to 64-bit; it is imported here first so
  every test runs with x64 enabled.
- Keep this file focused on test setup. Do not add application logic here.
"""

import numpy as np
import pytest

import tierbayes  # noqa: F401  (enables jax_enable_x64)
from tierbayes.utils.rng import seed


@pytest.fixture
def key():
    """Fixed PRNG key."""
    return seed(0)


@pytest.fixture
def two_gaussians():
    """200 draws from N(-5, 1) and 300 from N(5, 1), shuffled."""
    rng = np.random.default_rng(42)
    values = np.concatenate([rng.normal(-5.0, 1.0, 200), rng.normal(5.0, 1.0, 300)])
    rng.shuffle(values)
    return values.tolist()


@pytest.fixture
def revenue_data():
    """500 visitors: 150 exact zeros, 350 LogNormal(2, 0.5) purchases."""
    rng = np.random.default_rng(7)
    values = np.concatenate([np.zeros(150), rng.lognormal(2.0, 0.5, 350)])
    rng.shuffle(values)
    return values.tolist()
