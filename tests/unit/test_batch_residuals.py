"""Tests for the residuals found in navpreint.batch"""

from navpreint.batch.residuals import PriorResidual, PreintegratedImuResidual
from navpreint.lib import (
    ImuBias,
    ManifoldPreintegration,
    NavState,
    PreintegrationParams,
    VectorState,
)
from navpreint.utils import jacobian
import numpy as np
import pytest


def make_preintegration() -> ManifoldPreintegration:
    params = PreintegrationParams.z_up(9.81)
    pim = ManifoldPreintegration(params, ImuBias([0.1, 0.2, 0.3], [0.01, 0.02, 0.03]))
    for k in range(20):
        pim.update([0.1 * k, 0.2, 9.7], [0.1, -0.2, 0.05 * k], 0.01)
    return pim


def test_prior_residual_vector():
    x = VectorState(np.array([1, 2, 3]))
    prior_residual = PriorResidual(["p"], x.copy(), np.identity(x.dof))
    error = prior_residual.evaluate([x])
    assert np.allclose(error, 0)


def test_prior_residual_nav_state():
    x = NavState([0.1, 0.2, 0.3], [4, 5, 6], [7, 8, 9])
    x0 = x.plus(np.array([0.01, 0.02, -0.01, 0.1, 0.2, 0.3, 0.1, 0.1, 0.1]))
    prior_residual = PriorResidual("x0", x0, 0.1 * np.identity(9))

    error, jacobians = prior_residual.evaluate([x], [True])
    jac_fd = jacobian(lambda x: prior_residual.evaluate([x]), x)

    assert np.allclose(error, prior_residual.evaluate([x]))
    assert np.allclose(jacobians[0], jac_fd, rtol=0, atol=1e-6)


def test_preintegrated_residual_zero():
    pim = make_preintegration()
    bias = pim.bias_hat
    x_i = NavState([0.3, -0.2, 0.1], [1, 2, 3], [0.4, 0.5, 0.6])
    x_j = pim.predict(x_i, bias)

    residual = PreintegratedImuResidual(["x_i", "x_j", "b"], pim)
    assert np.allclose(residual.evaluate([x_i, x_j, bias]), 0)


def test_preintegrated_residual_jacobians():
    pim = make_preintegration()
    x_i = NavState([0.3, -0.2, 0.1], [1, 2, 3], [0.4, 0.5, 0.6])
    x_j = NavState([0.5, 0.1, -0.2], [2, 3, 1], [1.0, -0.5, 0.2])
    bias = ImuBias([0.12, 0.18, 0.33], [0.015, 0.01, 0.04])
    cov = np.diag([0.01, 0.01, 0.01, 0.1, 0.1, 0.1, 0.2, 0.2, 0.2])

    residual = PreintegratedImuResidual(["x_i", "x_j", "b"], pim, cov)
    e, jacobians = residual.evaluate([x_i, x_j, bias], [True, True, True])

    jac_i = jacobian(lambda x: residual.evaluate([x, x_j, bias]), x_i)
    jac_j = jacobian(lambda x: residual.evaluate([x_i, x, bias]), x_j)
    jac_b = jacobian(lambda b: residual.evaluate([x_i, x_j, b]), bias)

    assert np.allclose(e, residual.evaluate([x_i, x_j, bias]))
    assert np.allclose(jacobians[0], jac_i, rtol=0, atol=1e-7)
    assert np.allclose(jacobians[1], jac_j, rtol=0, atol=1e-7)
    assert np.allclose(jacobians[2], jac_b, rtol=0, atol=1e-7)


def test_preintegrated_residual_whitening():
    pim = make_preintegration()
    x_i = NavState()
    x_j = NavState([0.1, 0.1, 0.1], [1, 1, 1], [1, 1, 1])
    bias = ImuBias()

    r_unit = PreintegratedImuResidual(["x_i", "x_j", "b"], pim)
    r_scaled = PreintegratedImuResidual(["x_i", "x_j", "b"], pim, 4 * np.identity(9))

    e_unit = r_unit.evaluate([x_i, x_j, bias])
    assert np.allclose(e_unit, pim.compute_error(x_i, x_j, bias))
    assert np.allclose(r_scaled.evaluate([x_i, x_j, bias]), 0.5 * e_unit)


def test_preintegrated_residual_partial_jacobians():
    pim = make_preintegration()
    residual = PreintegratedImuResidual(["x_i", "x_j", "b"], pim)
    _, jacobians = residual.evaluate(
        [NavState(), NavState(), ImuBias()], [True, False, True]
    )

    assert jacobians[0].shape == (9, 9)
    assert jacobians[1] is None
    assert jacobians[2].shape == (9, 6)


def test_preintegrated_residual_holds_copy():
    pim = make_preintegration()
    residual = PreintegratedImuResidual(["x_i", "x_j", "b"], pim)
    pim.reset()

    assert not residual.preintegration.is_idle


def test_preintegrated_residual_invalid():
    pim = make_preintegration()
    with pytest.raises(ValueError):
        PreintegratedImuResidual(["x_i", "x_j"], pim)

    with pytest.raises(ValueError):
        PreintegratedImuResidual(["x_i", "x_j", "b"], pim, np.identity(6))

    residual = PreintegratedImuResidual(["x_i", "x_j", "b"], pim)
    with pytest.raises(ValueError):
        residual.evaluate([NavState(), NavState()])
