"""
tierbayes.model
===============

Model-level specifications shared by the inference tiers.

Includes:
- prior: PriorSpec (distribution family + parameters)
"""

from .prior import PriorFamily, PriorSpec

__all__ = ["PriorSpec", "PriorFamily"]
