"""
dataset.py
----------

Core input containers for tierbayes.

defines:
- BinomialSummary: successes out of trials (conversion-rate data)
- DataInput: the standardized input passed to every inference tier

Notes
-----
- A DataInput is immutable once built: observation sequences are stored as
  tuples and the config as a read-only mapping.
- Conversion to jax.numpy happens only inside the tiers (DataInput.values()).
- Range checks (successes <= trials, 1 <= k <= n, presence of zeros, ...)
  belong to the tier that consumes the data, since they differ per model.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import jax.numpy as jnp
import numpy as np

from tierbayes.exceptions import InvalidDataError


@dataclass(frozen=True)
class BinomialSummary:
    """
    Summary statistics for binomial (conversion) data.

    Attributes
    ----------
    successes : int
        Number of conversions observed.
    trials : int
        Number of visitors / trials observed.
    """

    successes: int
    trials: int

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> BinomialSummary:
        """
        Build from a ``{"successes", "trials"}`` mapping.

        Raises
        ------
        InvalidDataError
            If either field is missing.
        """
        for name in ("successes", "trials"):
            if data.get(name) is None:
                raise InvalidDataError(f"missing field {name!r} in binomial summary")
        return cls(successes=data["successes"], trials=data["trials"])

    def to_dict(self) -> dict[str, int]:
        return {"successes": self.successes, "trials": self.trials}


@dataclass(frozen=True)
class DataInput:
    """
    Standardized data input for all models.

    Parameters
    ----------
    data : BinomialSummary | Mapping | Sequence[float]
        Either a binomial summary (a mapping with ``successes`` / ``trials``
        is coerced) or a sequence of real-valued observations.
    config : Mapping | None
        Optional model configuration. ``num_components`` (or
        ``numComponents``) sets the mixture cardinality.

    Examples
    --------
    >>> DataInput({"successes": 50, "trials": 100}).is_summary
    True
    >>> DataInput([0.0, 3.2, 5.1], config={"num_components": 2}).num_components
    2
    """

    data: BinomialSummary | tuple[float, ...]
    config: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        data = self.data
        if isinstance(data, Mapping):
            data = BinomialSummary.from_mapping(data)
        elif not isinstance(data, BinomialSummary):
            try:
                array = np.asarray(data, dtype=float)
            except (TypeError, ValueError) as exc:
                raise InvalidDataError(
                    f"data must be {{successes, trials}} or a sequence of numbers: {exc}"
                ) from exc
            if array.ndim == 0:
                raise InvalidDataError(
                    "data must be {successes, trials} or a sequence of numbers, got a scalar"
                )
            data = tuple(float(x) for x in array.ravel())
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "config", MappingProxyType(dict(self.config or {})))

    @classmethod
    def from_raw(cls, data: Any, config: Mapping[str, Any] | None = None) -> DataInput:
        """
        Standardize loose caller input into a DataInput.

        Accepts an existing DataInput (returned as-is), the wrapped
        ``{"data": ..., "config": {...}}`` form, a summary mapping, a
        BinomialSummary, or any array-like of numbers. An explicit
        ``config`` overrides keys of a wrapped config.

        Examples
        --------
        >>> DataInput.from_raw({"data": [1.0, 2.0], "config": {"numComponents": 2}}).num_components
        2
        """
        if isinstance(data, DataInput):
            return data
        if isinstance(data, Mapping) and "data" in data:
            merged = {**(data.get("config") or {}), **(config or {})}
            return cls(data=data["data"], config=merged)
        return cls(data=data, config=config or {})

    @property
    def is_summary(self) -> bool:
        """True when the input is a binomial summary rather than observations."""
        return isinstance(self.data, BinomialSummary)

    @property
    def num_components(self) -> int | None:
        """Mixture cardinality from the config, or None when not given."""
        return self.config.get("num_components", self.config.get("numComponents"))

    def values(self) -> jnp.ndarray:
        """
        Return the observations as a float jnp array.

        Raises
        ------
        InvalidDataError
            If the input is a binomial summary.
        """
        if self.is_summary:
            raise InvalidDataError("expected a sequence of observations, got {successes, trials}")
        return jnp.asarray(self.data, dtype=float)

    def __len__(self) -> int:
        """Number of observations (trials for a summary)."""
        if self.is_summary:
            return int(self.data.trials)
        return len(self.data)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form used on the worker message channel."""
        data = self.data.to_dict() if self.is_summary else list(self.data)
        return {"data": data, "config": dict(self.config)}
