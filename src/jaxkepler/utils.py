__all__ = ["get_dtype_eps", "convergence_threshold"]

import jax
import jax.numpy as jnp

from jaxkepler.types import Array


def get_dtype_eps(x):
    return jnp.finfo(jax.dtypes.result_type(x)).eps


def convergence_threshold(threshold: float, x: Array) -> Array:
    """The absolute step size below which an iteration on ``x`` has converged

    In double precision this is just ``threshold``, but at lower precision the
    requested threshold can be below the spacing of representable numbers near
    ``x``, so it is floored at a few ulps.
    """
    floor = 8 * get_dtype_eps(x) * jnp.maximum(1.0, jnp.abs(x))
    return jnp.maximum(threshold, floor)
