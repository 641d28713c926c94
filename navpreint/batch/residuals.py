"""
Residuals that expose the preintegration to a batch (nonlinear least-squares)
estimator.

These residuals are
    - the PriorResidual, to assign a prior estimate on a state,
    - the PreintegratedImuResidual, which compares two navigation states and
      a bias estimate against a ``ManifoldPreintegration``.

"""

from abc import ABC, abstractmethod
from typing import Hashable, List, Tuple
from navpreint.types import State
from navpreint.lib.preintegration import ManifoldPreintegration
import numpy as np


class Residual(ABC):
    """
    Abstract class for a residual to be used in batch estimation.

    Each residual must implement an evaluate(self, states) method,
    which returns an error and Jacobian of the error with
    respect to each of the states.

    Each residual must contain a list of keys, where each key corresponds to a
    variable for optimization.
    """

    def __init__(self, keys: List[Hashable]):
        # If the hasn't supplied a list, make a list
        if isinstance(keys, list):
            self.keys = keys
        else:
            self.keys = [keys]

    @abstractmethod
    def evaluate(
        self,
        states: List[State],
        compute_jacobians: List[bool] = None,
    ) -> Tuple[np.ndarray, List[np.ndarray]]:
        """
        Evaluates the residual and Jacobians.

        Parameters
        ----------
        states : List[State]
            List of states for optimization, in the order of ``self.keys``.
        compute_jacobians : List[bool], optional
            optional flags to compute the Jacobian with respect to each state,
            by default None

        Returns
        -------
        Tuple[np.ndarray, List[np.ndarray]]
            Returns the error and a list of Jacobians. If no Jacobians are
            requested, only the error is returned.
        """
        pass


class PriorResidual(Residual):
    """
    A generic prior error.
    """

    def __init__(
        self,
        keys: List[Hashable],
        prior_state: State,
        prior_covariance: np.ndarray,
    ):
        super().__init__(keys)
        self._cov = prior_covariance
        self._x0 = prior_state
        # Precompute square-root of info matrix
        self._L = np.linalg.cholesky(np.linalg.inv(self._cov))

    def evaluate(
        self,
        states: List[State],
        compute_jacobians: List[bool] = None,
    ) -> Tuple[np.ndarray, List[np.ndarray]]:
        r"""
        Evaluates the prior error of the form

            e = x.minus(x0),

        where :math:`\mathbf{x}` is our operating point and
        :math:`\mathbf{x}_0` is a prior guess.
        """
        x = states[0]
        error = self._L.T @ x.minus(self._x0)

        if compute_jacobians:
            jacobians = [None]

            if compute_jacobians[0]:
                jacobians[0] = self._L.T @ x.minus_jacobian(self._x0)
            return error, jacobians

        return error


class PreintegratedImuResidual(Residual):
    r"""
    Residual between two navigation states :math:`\mathcal{X}_i,
    \mathcal{X}_j` and a bias estimate :math:`\mathbf{b}`, built from a
    ``ManifoldPreintegration`` over the interval :math:`[i, j]`. The error is

    .. math::
        \mathbf{e} = \mathbf{L}^T \left(\hat{\mathcal{X}}_j(\mathcal{X}_i,
        \mathbf{b}) \ominus \mathcal{X}_j\right),

    where :math:`\mathbf{L}` is the Cholesky factor of the information matrix.
    The states are expected in the order ``[x_i, x_j, bias]``.
    """

    def __init__(
        self,
        keys: List[Hashable],
        preintegration: ManifoldPreintegration,
        covariance: np.ndarray = None,
    ):
        """
        Parameters
        ----------
        keys : List[Hashable]
            Keys of ``x_i``, ``x_j`` and the bias, in that order.
        preintegration : ManifoldPreintegration
            Preintegrated measurements over the interval. A copy is stored,
            so the accumulator can be reset for the next interval.
        covariance : np.ndarray with shape (9, 9), optional
            Covariance of the error. Identity by default.
        """
        super().__init__(keys)
        if len(self.keys) != 3:
            raise ValueError(
                "PreintegratedImuResidual needs the keys of x_i, x_j and "
                "the bias."
            )

        if covariance is None:
            covariance = np.identity(9)

        if covariance.shape != (9, 9):
            raise ValueError("covariance must be a 9 x 9 matrix.")

        self._pim = preintegration.copy()
        self._L = np.linalg.cholesky(np.linalg.inv(covariance))

    @property
    def preintegration(self) -> ManifoldPreintegration:
        return self._pim

    def evaluate(
        self,
        states: List[State],
        compute_jacobians: List[bool] = None,
    ) -> Tuple[np.ndarray, List[np.ndarray]]:
        if len(states) != 3:
            raise ValueError("Expected the states [x_i, x_j, bias].")

        x_i, x_j, bias = states

        if compute_jacobians:
            e, jacs = self._pim.compute_error_with_jacobians(x_i, x_j, bias)
            jacobians = [None] * 3
            for idx, jac in enumerate(jacs):
                if compute_jacobians[idx]:
                    jacobians[idx] = self._L.T @ jac
            return self._L.T @ e, jacobians

        return self._L.T @ self._pim.compute_error(x_i, x_j, bias)
