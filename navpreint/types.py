"""
Abstract types shared by the states and sensor samples of navpreint.
"""

import numpy as np
from typing import Any
from abc import ABC, abstractmethod


class Input(ABC):
    """
    A timestamped sensor sample that drives the preintegration.
    """

    __slots__ = ["stamp"]

    def __init__(self, stamp: float = None):
        self.stamp = stamp  #:float: Time of the sample, if known

    @abstractmethod
    def copy(self) -> "Input":
        """
        Returns an independent copy of the sample.
        """
        pass


class State(ABC):
    r"""
    A point :math:`\mathcal{X}` on a manifold with ``dof`` degrees of freedom,
    equipped with a retraction ``plus`` and its inverse ``minus``:

    .. math::

        \delta \mathbf{x} = (\mathcal{X} \oplus \delta \mathbf{x}) \ominus \mathcal{X}.

    Concrete states must provide the analytic Jacobians of both operations.
    A timestamp and an identifier can optionally be attached to the state,
    which is how a batch estimator tells state instances apart.
    """

    __slots__ = ["value", "dof", "stamp", "state_id"]

    def __init__(self, value: Any, dof: int, stamp: float = None, state_id=None):
        self.value = value  #:Any: State value
        self.dof = dof  #:int: Degrees of freedom of the state
        self.stamp = stamp  #:float: Timestamp
        self.state_id = state_id  #:Any: Identifier used by batch estimators

    @abstractmethod
    def plus(self, dx: np.ndarray) -> "State":
        """
        Retraction of a ``dof``-sized perturbation ``dx`` onto the state,
        returning a new state.
        """
        pass

    @abstractmethod
    def minus(self, x: "State") -> np.ndarray:
        """
        Local coordinates of this state about ``x``, as a ``dof``-sized array.
        """
        pass

    @abstractmethod
    def plus_jacobian(self, dx: np.ndarray) -> np.ndarray:
        """
        Jacobian of ``self.plus(dx)`` with respect to ``dx``.
        """
        pass

    @abstractmethod
    def minus_jacobian(self, x: "State") -> np.ndarray:
        """
        Jacobian of ``self.minus(x)`` with respect to ``self``.
        """
        pass

    @abstractmethod
    def copy(self) -> "State":
        pass

    def __repr__(self):
        value_str = "\n".join("    " + s for s in str(self.value).split("\n"))
        return (
            f"{self.__class__.__name__}(stamp={self.stamp}, dof={self.dof},"
            + f" state_id={self.state_id})\n{value_str}"
        )
