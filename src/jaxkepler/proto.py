__all__ = ["AnomalySolver"]

from typing import Protocol, runtime_checkable

from jaxkepler.types import Array, Scalar


@runtime_checkable
class AnomalySolver(Protocol):
    """An interface for solvers of Kepler's equation at a fixed eccentricity"""

    @property
    def eccentricity(self) -> Array: ...

    def solve(self, mean_anomaly: Scalar) -> Array: ...
