"""Solvers that are configured once for an eccentricity and then queried with many
mean anomalies."""

__all__ = ["EllipseSolver", "HyperbolaSolver", "make_solver"]

import logging
from typing import Any

import equinox as eqx
import jax.numpy as jnp

from jaxkepler.core.ellipse import kepler_ellipse
from jaxkepler.core.hyperbola import kepler_hyperbola, mean_anomaly_thresholds
from jaxkepler.proto import AnomalySolver
from jaxkepler.types import Array, Scalar

logger = logging.getLogger(__name__)


def _as_eccentricity(name: str, eccentricity: Scalar) -> Array:
    if jnp.ndim(eccentricity) != 0:
        raise ValueError(
            f"The eccentricity of a '{name}' must be a scalar; for multiple orbits, "
            "use 'jax.vmap'"
        )
    return jnp.asarray(eccentricity, dtype=jnp.result_type(float))


class EllipseSolver(eqx.Module):
    """Solve Kepler's equation for an elliptical orbit

    Example:

        >>> solver = EllipseSolver(0.5)
        >>> E = solver.solve(1.0)

    Args:
        eccentricity: The orbital eccentricity, in the range ``(0, 1)``. Values
            outside this range are not rejected, but the results are undefined.
    """

    eccentricity: Array

    def __init__(self, eccentricity: Scalar):
        if isinstance(eccentricity, (int, float)) and not 0 < eccentricity < 1:
            logger.warning(
                "Eccentricity %s is outside the elliptical range (0, 1); the "
                "solutions will not be meaningful",
                eccentricity,
            )
        self.eccentricity = _as_eccentricity("EllipseSolver", eccentricity)

    def solve(self, mean_anomaly: Scalar) -> Array:
        """Compute the eccentric anomaly

        Args:
            mean_anomaly: The mean anomaly, in the range ``(0, 2 pi)``

        Returns:
            The eccentric anomaly ``E`` with ``E - e sin(E) = mean_anomaly``
        """
        return kepler_ellipse(mean_anomaly, self.eccentricity)

    def to_dict(self) -> dict[str, Any]:
        return {"eccentricity": float(self.eccentricity)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EllipseSolver":
        return cls(data["eccentricity"])


class HyperbolaSolver(eqx.Module):
    """Solve Kepler's equation for a hyperbolic orbit

    The mean anomalies bounding the piecewise Padé intervals depend only on the
    eccentricity, so they are computed once here and reused by every call to
    :meth:`solve`.

    Example:

        >>> solver = HyperbolaSolver(2.0)
        >>> H = solver.solve(1.2)

    Args:
        eccentricity: The orbital eccentricity, greater than 1. Values outside this
            range are not rejected, but the results are undefined.
    """

    eccentricity: Array
    pade_mean_anomaly_thresholds: Array

    def __init__(self, eccentricity: Scalar):
        if isinstance(eccentricity, (int, float)) and not eccentricity > 1:
            logger.warning(
                "Eccentricity %s is not hyperbolic (> 1); the solutions will not "
                "be meaningful",
                eccentricity,
            )
        self.eccentricity = _as_eccentricity("HyperbolaSolver", eccentricity)
        self.pade_mean_anomaly_thresholds = mean_anomaly_thresholds(self.eccentricity)

    def solve(self, mean_anomaly: Scalar) -> Array:
        """Compute the hyperbolic eccentric anomaly

        Args:
            mean_anomaly: The mean anomaly, of any sign

        Returns:
            The anomaly ``H`` with ``e sinh(H) - H = mean_anomaly``, with the same
            sign as ``mean_anomaly``
        """
        return kepler_hyperbola(
            mean_anomaly, self.eccentricity, self.pade_mean_anomaly_thresholds
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "eccentricity": float(self.eccentricity),
            "pade_mean_anomaly_thresholds": self.pade_mean_anomaly_thresholds.tolist(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HyperbolaSolver":
        """Rebuild a solver from the output of :meth:`to_dict`

        The threshold table is always recomputed from the eccentricity; a stored
        table is only used to check that the data is consistent.
        """
        solver = cls(data["eccentricity"])
        stored = data.get("pade_mean_anomaly_thresholds")
        if stored is not None:
            stored = jnp.asarray(stored)
            expected = solver.pade_mean_anomaly_thresholds
            if stored.shape != expected.shape or not jnp.allclose(stored, expected):
                raise ValueError(
                    "The stored Padé thresholds do not match the eccentricity "
                    f"{data['eccentricity']}"
                )
        return solver


def make_solver(eccentricity: float) -> AnomalySolver:
    """Construct the solver matching the orbit type of a given eccentricity

    Args:
        eccentricity: The orbital eccentricity; parabolic orbits (exactly 1) are not
            supported

    Returns:
        An :class:`EllipseSolver` for ``eccentricity < 1`` or a
        :class:`HyperbolaSolver` for ``eccentricity > 1``
    """
    if eccentricity < 1:
        return EllipseSolver(eccentricity)
    if eccentricity > 1:
        return HyperbolaSolver(eccentricity)
    raise ValueError("Parabolic orbits (eccentricity == 1) are not supported")
