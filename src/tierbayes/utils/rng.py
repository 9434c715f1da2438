"""
rng.py
------

Key-stream policy for tierbayes.

Nothing in the package draws from a process-wide generator. Randomness
flows along explicit JAX keys:

- fit(...) takes a key (seed(0) when omitted, so repeated calls agree).
- EM consumes its key for K-means++ seeding only.
- The ZILN tier keeps the second half of split(key) on its posterior;
  variance() and credible_interval() reuse that stored key so repeated
  summaries of one posterior are identical.
- InferenceWorker owns one stream and advance()s it once per fit and
  once per sampling request.

Examples
--------
>>> from tierbayes.utils.rng import advance, seed
>>> state = seed(0)
>>> state, k1 = advance(state)
>>> state, k2 = advance(state)
"""

from __future__ import annotations

import jax
import jax.random as jr


def seed(seed_value: int) -> jax.Array:
    """Key for an integer seed."""
    return jr.PRNGKey(int(seed_value))


def split(key: jax.Array, num: int = 2):
    """
    ``num`` independent keys derived from ``key`` (unpackable as a tuple).

    The input key should not be used again after splitting.
    """
    return jr.split(key, num=num)


def advance(state: jax.Array) -> tuple[jax.Array, jax.Array]:
    """
    Step a long-lived key stream.

    Returns
    -------
    (new_state, subkey)
        Keep ``new_state`` for the next call and spend ``subkey`` now.
    """
    new_state, subkey = jr.split(state)
    return new_state, subkey
