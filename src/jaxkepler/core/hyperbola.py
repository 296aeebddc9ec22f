"""This module solves the hyperbolic Kepler equation, ``M = e sinh(H) - H``, for the
hyperbolic eccentric anomaly ``H``, with ``e > 1``.

The starting estimate follows the method of B. Wu et al.: for small mean anomalies
a piecewise Padé model of ``sinh`` around one of 15 breakpoints reduces the problem
to a cubic, and for large mean anomalies a closed form asymptotic expansion is used
instead. In both cases the estimate is polished with a single Halley step on the
full equation.
"""

__all__ = [
    "kepler_hyperbola",
    "hyperbolic_kepler_equation",
    "mean_anomaly_thresholds",
]

from functools import partial

import equinox as eqx
import jax
import jax.numpy as jnp

from jaxkepler.types import Array
from jaxkepler.utils import convergence_threshold

CUBIC_DELTA_THRESHOLD = 1.0e-6
MAX_ITERATIONS = 100

# Eq. 4 of Wu et al.; the upper eccentric anomaly of each Padé interval
PADE_ECCENTRIC_ANOMALY_THRESHOLDS = (
    40.0 / 8.0,
    38.0 / 8.0,
    34.0 / 8.0,
    30.0 / 8.0,
    26.0 / 8.0,
    22.0 / 8.0,
    18.0 / 8.0,
    15.0 / 8.0,
    13.0 / 8.0,
    11.0 / 8.0,
    9.0 / 8.0,
    7.0 / 8.0,
    5.0 / 8.0,
    3.0 / 8.0,
    29.0 / 200.0,
)

# The breakpoint that each interval is expanded around
PADE_ORDERS = (
    10.0 / 2.0,
    9.0 / 2.0,
    8.0 / 2.0,
    7.0 / 2.0,
    6.0 / 2.0,
    5.0 / 2.0,
    8.0 / 4.0,
    7.0 / 4.0,
    6.0 / 4.0,
    5.0 / 4.0,
    4.0 / 4.0,
    3.0 / 4.0,
    2.0 / 4.0,
    1.0 / 4.0,
    0.0 / 4.0,
)


def hyperbolic_kepler_equation(ecc: Array, H: Array) -> Array:
    return ecc * jnp.sinh(H) - H


def mean_anomaly_thresholds(ecc: Array) -> Array:
    """The mean anomalies bounding each Padé interval for a given eccentricity

    Args:
        ecc: Eccentricity, greater than 1

    Returns:
        An array with a trailing axis of length 15, in decreasing order
    """
    dtype = jnp.result_type(ecc, float)
    H = jnp.asarray(PADE_ECCENTRIC_ANOMALY_THRESHOLDS, dtype=dtype)
    return hyperbolic_kepler_equation(jnp.expand_dims(ecc, -1), H)


@partial(jax.jit, static_argnames=("max_iterations",))
def kepler_hyperbola(
    M: Array,
    ecc: Array,
    thresholds: Array | None = None,
    *,
    max_iterations: int = MAX_ITERATIONS,
) -> Array:
    """Solve Kepler's equation for a hyperbolic orbit

    Args:
        M: Mean anomaly, of any sign
        ecc: Eccentricity, greater than 1
        thresholds: The table computed by :func:`mean_anomaly_thresholds` for
            ``ecc``. It is computed on the fly if not provided.
        max_iterations: The maximum number of Halley steps when solving the cubic
            Padé model before the solve is reported as failing to converge

    Returns:
        The hyperbolic eccentric anomaly, with the same sign as ``M``
    """
    if thresholds is None:
        thresholds = mean_anomaly_thresholds(ecc)
    return _kepler_hyperbola(M, ecc, thresholds, max_iterations)


@partial(jax.custom_jvp, nondiff_argnums=(3,))
def _kepler_hyperbola(
    M: Array, ecc: Array, thresholds: Array, max_iterations: int
) -> Array:
    # The equation is odd in (H, M) so we only solve for positive M
    mh = jnp.abs(M)
    pade = mh <= thresholds[..., 0]

    # Each branch is evaluated everywhere, so feed it a harmless value where it
    # isn't selected; otherwise the cubic solve would iterate on huge M
    mh_pade = jnp.where(pade, mh, 0.0)
    mh_asymptotic = jnp.where(pade, ecc, mh)

    a = pade_order(mh_pade, thresholds)
    coeffs = pade_coefficients(ecc, mh_pade, a)
    x = solve_cubic(coeffs, mh_pade, ecc, max_iterations=max_iterations)
    H = jnp.where(pade, x + a, asymptotic_starter(mh_asymptotic, ecc))

    H = halley_step(mh, ecc, H)
    return H * jnp.sign(M)


@_kepler_hyperbola.defjvp
def _(max_iterations, primals, tangents):
    M, ecc, thresholds = primals
    # The thresholds only select a branch, so they don't contribute
    M_dot, ecc_dot, _ = tangents
    H = _kepler_hyperbola(M, ecc, thresholds, max_iterations)

    # Implicit differentiation of M = e sinh(H) - H
    inv_denom = 1 / (ecc * jnp.cosh(H) - 1)
    H_dot = M_dot * inv_denom - ecc_dot * jnp.sinh(H) * inv_denom

    return H, H_dot


def pade_order(mh: Array, thresholds: Array) -> Array:
    # Walk down the table while mh is still below the next threshold; the
    # cumulative product stops the count at the first threshold mh reaches
    below = jnp.expand_dims(mh, -1) < thresholds[..., 1:]
    i = jnp.sum(jnp.cumprod(below, axis=-1), axis=-1)
    return jnp.asarray(PADE_ORDERS, dtype=thresholds.dtype)[i]


def pade_coefficients(
    ecc: Array, mh: Array, a: Array
) -> tuple[Array, Array, Array, Array]:
    sa = jnp.sinh(a)
    ca = jnp.cosh(a)
    sa2 = jnp.square(sa)
    ca2 = jnp.square(ca)
    d1 = ca2 + 3
    d2 = sa2 + 4
    p1 = ca * (3 * ca2 + 17) / (5 * d1)
    p2 = sa * (3 * sa2 + 28) / (20 * d2)
    p3 = ca * (ca2 + 27) / (60 * d1)
    q1 = -2 * ca * sa / (5 * d1)
    q2 = (sa2 - 4) / (20 * d2)
    c3 = ecc * p3 - q2
    c2 = ecc * p2 - (mh + a) * q2 - q1
    c1 = ecc * p1 - (mh + a) * q1 - 1
    c0 = ecc * sa - mh - a
    return c3, c2, c1, c0


def solve_cubic(
    coeffs: tuple[Array, Array, Array, Array],
    mh: Array,
    ecc: Array,
    *,
    max_iterations: int = MAX_ITERATIONS,
) -> Array:
    c3, c2, c1, c0 = coeffs

    # Starting value from the series expansion of the hyperbolic Kepler equation
    x = mh / (ecc - 1)
    threshold = convergence_threshold(CUBIC_DELTA_THRESHOLD, x)

    def delta(x):
        f = ((c3 * x + c2) * x + c1) * x + c0
        f_prime = (3 * c3 * x + 2 * c2) * x + c1
        f_prime_prime = 6 * c3 * x + 2 * c2
        return -2 * f * f_prime / (2 * jnp.square(f_prime) - f * f_prime_prime)

    def unconverged(dx):
        return jnp.abs(dx) >= threshold

    def loop_cond(args):
        i, x, dx = args
        return jnp.logical_and(jnp.any(unconverged(dx)), i < max_iterations)

    def loop_body(args):
        i, x, dx = args
        x = jnp.where(unconverged(dx), x + dx, x)
        return i + 1, x, delta(x)

    _, x, dx = jax.lax.while_loop(loop_cond, loop_body, (0, x, delta(x)))

    return eqx.error_if(
        x,
        jnp.any(unconverged(dx)),
        "Halley iteration for the hyperbolic Padé cubic did not converge",
    )


def asymptotic_starter(mh: Array, ecc: Array) -> Array:
    # For large M the exponential term dominates, so start from the logarithm
    # and add a rational correction
    fa = jnp.log(2 * mh / ecc)
    ratio = 2 * mh / ecc
    ca = 0.5 * (ratio + 1 / ratio)
    sa = 0.5 * (ratio - 1 / ratio)
    denom = ecc * ca - 1
    g = (jnp.square(ecc) / (4 * mh) + fa) / denom
    s = ecc * sa / denom
    c = ecc * ca / denom
    top = 6 * g + 3 * s * jnp.square(g)
    bottom = 6 + 6 * s * g + c * jnp.square(g)
    return fa + top / bottom


def halley_step(mh: Array, ecc: Array, H: Array) -> Array:
    f = hyperbolic_kepler_equation(ecc, H) - mh
    f_prime = ecc * jnp.cosh(H) - 1
    f_prime_prime = f_prime + 1
    return H - (2 * f / f_prime) / (2 - f * f_prime_prime / jnp.square(f_prime))
