"""
tierbayes.data
==============

submodule for handling inference inputs.

Includes:
- dataset: BinomialSummary, DataInput
"""

from .dataset import BinomialSummary, DataInput

__all__ = ["BinomialSummary", "DataInput"]
