# mypy: ignore-errors

import copy
import dataclasses
import json
import logging
from concurrent.futures import ThreadPoolExecutor

import equinox as eqx
import jax
import jax.numpy as jnp
import pytest

from jaxkepler import EllipseSolver, HyperbolaSolver, make_solver
from jaxkepler.core import kepler_ellipse, kepler_hyperbola
from jaxkepler.proto import AnomalySolver
from jaxkepler.test_utils import assert_allclose


@pytest.fixture(
    params=[EllipseSolver(0.3), HyperbolaSolver(2.5)], ids=["ellipse", "hyperbola"]
)
def solver(request):
    return request.param


def test_ellipse_solver():
    solver = EllipseSolver(0.5)
    E = solver.solve(1.0)
    assert_allclose(E, kepler_ellipse(1.0, 0.5))
    assert_allclose(E - 0.5 * jnp.sin(E), 1.0, atol=1e-6)


def test_hyperbola_solver():
    solver = HyperbolaSolver(2.0)
    assert solver.pade_mean_anomaly_thresholds.shape == (15,)
    H = solver.solve(1.2)
    assert_allclose(H, kepler_hyperbola(1.2, 2.0))
    assert_allclose(2.0 * jnp.sinh(H) - H, 1.2, rtol=1e-4)
    assert_allclose(solver.solve(-5.0), -1 * solver.solve(5.0))


def test_protocol(solver):
    assert isinstance(solver, AnomalySolver)


def test_make_solver():
    assert isinstance(make_solver(0.5), EllipseSolver)
    assert isinstance(make_solver(1.5), HyperbolaSolver)
    with pytest.raises(ValueError, match="Parabolic"):
        make_solver(1.0)


def test_scalar_eccentricity_required():
    with pytest.raises(ValueError, match="must be a scalar"):
        EllipseSolver(jnp.array([0.1, 0.2]))
    with pytest.raises(ValueError, match="must be a scalar"):
        HyperbolaSolver(jnp.array([1.1, 1.2]))


@pytest.mark.parametrize(
    "cls, eccentricity",
    [(EllipseSolver, 1.5), (EllipseSolver, 0.0), (HyperbolaSolver, 0.5)],
)
def test_out_of_domain_warning(caplog, cls, eccentricity):
    with caplog.at_level(logging.WARNING, logger="jaxkepler.solvers"):
        cls(eccentricity)
    assert "Eccentricity" in caplog.text


def test_in_domain_is_quiet(caplog):
    with caplog.at_level(logging.WARNING, logger="jaxkepler.solvers"):
        EllipseSolver(0.5)
        HyperbolaSolver(1.5)
    assert caplog.text == ""


def test_immutable(solver):
    with pytest.raises(dataclasses.FrozenInstanceError):
        solver.eccentricity = 0.7


def test_copy(solver):
    for other in (copy.copy(solver), copy.deepcopy(solver)):
        assert_allclose(other.eccentricity, solver.eccentricity)
        assert_allclose(other.solve(1.0), solver.solve(1.0))


def test_dict_round_trip(solver):
    data = json.loads(json.dumps(solver.to_dict()))
    other = type(solver).from_dict(data)
    assert_allclose(other.eccentricity, solver.eccentricity)
    assert_allclose(other.solve(2.0), solver.solve(2.0))


@pytest.mark.filterwarnings("error")
def test_dict_round_trip_without_warnings(solver):
    # to_dict stores plain lists, which from_dict must convert before inspecting
    other = type(solver).from_dict(solver.to_dict())
    assert_allclose(other.eccentricity, solver.eccentricity)


def test_hyperbola_dict_contents():
    data = HyperbolaSolver(3.0).to_dict()
    assert data["eccentricity"] == 3.0
    assert len(data["pade_mean_anomaly_thresholds"]) == 15


def test_hyperbola_dict_inconsistent():
    data = HyperbolaSolver(3.0).to_dict()
    data["eccentricity"] = 2.0
    with pytest.raises(ValueError, match="do not match"):
        HyperbolaSolver.from_dict(data)

    data = HyperbolaSolver(3.0).to_dict()
    data["pade_mean_anomaly_thresholds"] = data["pade_mean_anomaly_thresholds"][:-1]
    with pytest.raises(ValueError, match="do not match"):
        HyperbolaSolver.from_dict(data)


def test_hyperbola_dict_without_thresholds():
    other = HyperbolaSolver.from_dict({"eccentricity": 3.0})
    assert_allclose(
        other.pade_mean_anomaly_thresholds,
        HyperbolaSolver(3.0).pade_mean_anomaly_thresholds,
    )


def test_serialise_leaves(tmp_path, solver):
    path = tmp_path / "solver.eqx"
    eqx.tree_serialise_leaves(path, solver)
    like = type(solver)(0.6 if isinstance(solver, EllipseSolver) else 1.2)
    loaded = eqx.tree_deserialise_leaves(path, like)
    assert_allclose(loaded.eccentricity, solver.eccentricity)
    assert_allclose(loaded.solve(1.5), solver.solve(1.5))


def test_vmap_over_eccentricity():
    e = jnp.linspace(0.1, 0.9, 5)
    calculated = jax.vmap(lambda e: EllipseSolver(e).solve(1.0))(e)
    expected = jnp.stack([EllipseSolver(float(x)).solve(1.0) for x in e])
    assert_allclose(calculated, expected)

    e = jnp.linspace(1.1, 10.0, 5)
    calculated = jax.vmap(lambda e: HyperbolaSolver(e).solve(3.0))(e)
    expected = jnp.stack([HyperbolaSolver(float(x)).solve(3.0) for x in e])
    assert_allclose(calculated, expected)


def test_concurrent_queries(solver):
    mean_anomalies = [0.1 * n for n in range(1, 60)]
    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(solver.solve, mean_anomalies))
    for M, result in zip(mean_anomalies, results, strict=True):
        assert_allclose(result, solver.solve(M))
