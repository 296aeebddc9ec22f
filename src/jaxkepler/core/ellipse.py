"""This module solves the elliptical Kepler equation, ``M = E - e sin(E)``, for the
eccentric anomaly ``E``, with ``0 < e < 1`` and ``0 < M < 2 pi``.

The starting estimate is the rational approximation from Tommasini & Olivieri
(2022, A&A 658, A196), which keeps the number of refinement steps small even for
high eccentricities near periapsis. It is refined using the N=2 Laguerre
iteration (Conway 1986, Celestial Mechanics 39, 199), which was found to converge
for every one of the 500,000 test cases in that paper.
"""

__all__ = ["kepler_ellipse"]

from functools import partial

import equinox as eqx
import jax
import jax.numpy as jnp

from jaxkepler.types import Array
from jaxkepler.utils import convergence_threshold

DELTA_THRESHOLD = 1.0e-10
MAX_ITERATIONS = 50


@partial(jax.jit, static_argnames=("max_iterations",))
def kepler_ellipse(
    M: Array, ecc: Array, *, max_iterations: int = MAX_ITERATIONS
) -> Array:
    """Solve Kepler's equation for an elliptical orbit

    Args:
        M: Mean anomaly, in the range ``(0, 2 pi)``
        ecc: Eccentricity, in the range ``(0, 1)``
        max_iterations: The maximum number of Laguerre steps before the solve is
            reported as failing to converge

    Returns:
        The eccentric anomaly
    """
    return _kepler_ellipse(M, ecc, max_iterations)


@partial(jax.custom_jvp, nondiff_argnums=(2,))
def _kepler_ellipse(M: Array, ecc: Array, max_iterations: int) -> Array:
    E = starter(M, ecc)
    return refine(M, ecc, E, max_iterations=max_iterations)


@_kepler_ellipse.defjvp
def _(max_iterations, primals, tangents):
    M, ecc = primals
    M_dot, ecc_dot = tangents
    E = _kepler_ellipse(M, ecc, max_iterations)

    # Implicit differentiation of M = E - e sin(E)
    sinE = jnp.sin(E)
    inv_denom = 1 / (1 - ecc * jnp.cos(E))
    E_dot = M_dot * inv_denom + ecc_dot * sinE * inv_denom

    return E, E_dot


def starter(M: Array, ecc: Array) -> Array:
    # The 0.999999 factor is part of the published starter, not a typo
    return M + (0.999999 * 4 * ecc * M * (jnp.pi - M)) / (
        8 * ecc * M + 4 * ecc * (ecc - jnp.pi) + jnp.pi**2
    )


def laguerre_delta(f: Array, f_prime: Array, f_prime_prime: Array) -> Array:
    n = 2
    a = (n - 1) ** 2 * f_prime**2 - n * (n - 1) * f * f_prime_prime
    # Take the root with the sign of f' to avoid catastrophic cancellation below
    b = jnp.copysign(jnp.sqrt(jnp.abs(a)), f_prime)
    return -(n * f) / (f_prime + b)


def refine(
    M: Array, ecc: Array, E: Array, *, max_iterations: int = MAX_ITERATIONS
) -> Array:
    threshold = convergence_threshold(DELTA_THRESHOLD, E)

    def delta(E):
        sinE = jnp.sin(E)
        f = M - E + ecc * sinE
        f_prime = -1 + ecc * jnp.cos(E)
        f_prime_prime = -ecc * sinE
        return laguerre_delta(f, f_prime, f_prime_prime)

    # A NaN step compares false here, so it ends the loop and propagates
    def unconverged(dE):
        return jnp.abs(dE) >= threshold

    def loop_cond(args):
        i, E, dE = args
        return jnp.logical_and(jnp.any(unconverged(dE)), i < max_iterations)

    def loop_body(args):
        i, E, dE = args
        E = jnp.where(unconverged(dE), E + dE, E)
        return i + 1, E, delta(E)

    _, E, dE = jax.lax.while_loop(loop_cond, loop_body, (0, E, delta(E)))

    return eqx.error_if(
        E,
        jnp.any(unconverged(dE)),
        "Laguerre iteration for the elliptical Kepler equation did not converge",
    )
