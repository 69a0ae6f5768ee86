import numpy as np
import pytest

from surfelfusion.cholesky import CholeskyDecomp
from surfelfusion.jacobian import Jacobian, OrderedJacobianRow


def _jacobian(dense):
    dense = np.asarray(dense, dtype=np.float64)
    rows = []
    for values in dense:
        nonzero = np.flatnonzero(values)
        row = OrderedJacobianRow(len(nonzero))
        for column in nonzero:
            row.append(int(column), values[column])
        rows.append(row)
    jacobian = Jacobian()
    jacobian.assign(rows, dense.shape[1])
    return jacobian


def _random_problem(seed, rows=12, cols=5):
    rng = np.random.default_rng(seed)
    dense = rng.normal(size=(rows, cols))
    dense[rng.random(size=dense.shape) < 0.3] = 0.0
    dense[np.arange(cols), np.arange(cols)] = 2.0
    residual = rng.normal(size=rows)
    return dense, residual


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_matches_least_squares(seed):
    dense, residual = _random_problem(seed)
    solver = CholeskyDecomp()
    delta = solver.solve(_jacobian(dense), residual, True)
    expected, *_ = np.linalg.lstsq(dense, residual, rcond=None)
    np.testing.assert_allclose(delta, expected, rtol=1e-9, atol=1e-9)


def test_identity_jacobian_returns_residual():
    residual = np.array([0.5, -1.5, 3.0, 4.25])
    solver = CholeskyDecomp()
    delta = solver.solve(_jacobian(np.eye(4)), residual, True)
    np.testing.assert_allclose(delta, residual)


def test_reuse_of_analysis_on_later_runs():
    dense, residual = _random_problem(7)
    solver = CholeskyDecomp()
    first = solver.solve(_jacobian(dense), residual, True)
    assert solver.analysed
    scaled = solver.solve(_jacobian(dense), 2.0 * residual, False)
    np.testing.assert_allclose(scaled, 2.0 * first, rtol=1e-9, atol=1e-12)


def test_second_first_run_without_free_raises():
    dense, residual = _random_problem(3)
    solver = CholeskyDecomp()
    solver.solve(_jacobian(dense), residual, True)
    with pytest.raises(RuntimeError):
        solver.solve(_jacobian(dense), residual, True)


def test_free_then_first_run_again():
    dense, residual = _random_problem(4)
    solver = CholeskyDecomp()
    first = solver.solve(_jacobian(dense), residual, True)
    solver.free_factor()
    assert not solver.analysed
    again = solver.solve(_jacobian(dense), residual, True)
    np.testing.assert_allclose(again, first)


def test_later_run_without_analysis_raises():
    dense, residual = _random_problem(5)
    with pytest.raises(RuntimeError):
        CholeskyDecomp().solve(_jacobian(dense), residual, False)


def test_free_without_factor_raises():
    with pytest.raises(RuntimeError):
        CholeskyDecomp().free_factor()


def test_residual_length_mismatch_raises():
    dense, residual = _random_problem(6)
    with pytest.raises(ValueError):
        CholeskyDecomp().solve(_jacobian(dense), residual[:-1], True)


def test_singular_normal_equations_raise():
    dense = np.array([[1.0, 0.0], [2.0, 0.0], [3.0, 0.0]])
    with pytest.raises(np.linalg.LinAlgError):
        CholeskyDecomp().solve(_jacobian(dense), np.ones(3), True)