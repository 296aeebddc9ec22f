__all__ = ["core", "solvers", "EllipseSolver", "HyperbolaSolver", "make_solver"]

from jaxkepler import core as core, solvers as solvers
from jaxkepler.jaxkepler_version import __version__ as __version__
from jaxkepler.solvers import (
    EllipseSolver as EllipseSolver,
    HyperbolaSolver as HyperbolaSolver,
    make_solver as make_solver,
)
