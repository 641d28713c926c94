from pymlg import SO3
from pymlg.numpy.base import MatrixLieGroup
from scipy.linalg import block_diag
import numpy as np
from navpreint.types import State
from typing import Any, Tuple


class VectorState(State):
    """
    A standard vector-based state, with value represented by a 1D numpy array.
    """

    def __init__(self, value: np.ndarray, stamp: float = None, state_id=None):
        value = np.array(value, dtype=np.float64).ravel()
        super(VectorState, self).__init__(
            value=value,
            dof=value.size,
            stamp=stamp,
            state_id=state_id,
        )
        self.value: np.ndarray = self.value  # just for type hinting

    def plus(self, dx: np.ndarray) -> "VectorState":
        dx = np.asarray(dx)
        new = self.copy()
        if dx.size == self.dof:
            new.value: np.ndarray = new.value.ravel() + dx.ravel()
            return new
        else:
            raise ValueError("Array of mismatched size added to VectorState.")

    def minus(self, x: "VectorState") -> np.ndarray:
        og_shape = self.value.shape
        return (self.value.ravel() - x.value.ravel()).reshape(og_shape)

    def plus_jacobian(self, dx: np.ndarray) -> np.ndarray:
        return np.identity(self.dof)

    def minus_jacobian(self, x: State) -> np.ndarray:
        return np.identity(self.dof)

    def copy(self) -> "VectorState":
        return VectorState(self.value.copy(), self.stamp, self.state_id)


class NavState(State):
    r"""
    A navigation state :math:`\mathcal{X} = (\mathbf{C}, \mathbf{r},
    \mathbf{v})` composed of an attitude, a position and a velocity, all
    resolved in the navigation frame. The value is stored as a 5 x 5 extended
    pose matrix

    .. math::
        \mathbf{T} = \begin{bmatrix} \mathbf{C} & \mathbf{v} & \mathbf{r} \\
        \mathbf{0} & 1 & 0 \\ \mathbf{0} & 0 & 1 \end{bmatrix},

    but the manifold structure is *not* that of :math:`SE_2(3)`. Perturbations
    :math:`\boldsymbol{\xi} = [\boldsymbol{\xi}_C^T \; \boldsymbol{\xi}_r^T
    \; \boldsymbol{\xi}_v^T]^T` are applied with the retraction

    .. math::
        \mathcal{X} \oplus \boldsymbol{\xi} = \left(\mathbf{C}
        \exp(\boldsymbol{\xi}_C^\wedge),\; \mathbf{r} + \mathbf{C}
        \boldsymbol{\xi}_r,\; \mathbf{v} + \mathbf{C} \boldsymbol{\xi}_v\right),

    and ``minus`` is its exact inverse. All Jacobians returned by this class
    are expressed in these local coordinates.

    Instances behave as values: every operation returns a new ``NavState``.
    The attitude is only ever modified through the exponential map of
    ``group``, so it remains a valid rotation.
    """

    #:MatrixLieGroup: group used for the attitude
    group: MatrixLieGroup = SO3

    def __init__(
        self,
        attitude: np.ndarray = None,
        position: np.ndarray = None,
        velocity: np.ndarray = None,
        stamp: float = None,
        state_id: Any = None,
    ):
        """
        Parameters
        ----------
        attitude : np.ndarray, optional
            Either a 3 x 3 rotation matrix or a 3-vector of exponential
            coordinates. Identity by default.
        position : np.ndarray, optional
            Position, zero by default.
        velocity : np.ndarray, optional
            Velocity, zero by default.
        stamp : float, optional
            timestamp, by default None
        state_id : Any, optional
            optional state ID, by default None
        """
        if attitude is None:
            attitude = np.identity(3)
        if position is None:
            position = np.zeros(3)
        if velocity is None:
            velocity = np.zeros(3)

        attitude = np.array(attitude, dtype=np.float64)
        if attitude.size == self.group.dof:
            attitude = self.group.Exp(attitude.ravel())
        elif attitude.shape != (3, 3):
            raise ValueError(
                "attitude must either be a 3-length vector of exponential "
                "coordinates or a 3 x 3 rotation matrix."
            )

        position = np.array(position, dtype=np.float64).ravel()
        velocity = np.array(velocity, dtype=np.float64).ravel()
        if position.size != 3 or velocity.size != 3:
            raise ValueError("position and velocity must have 3 elements.")

        T = np.identity(5)
        T[:3, :3] = attitude
        T[:3, 3] = velocity
        T[:3, 4] = position
        super(NavState, self).__init__(T, 9, stamp, state_id)
        self.value: np.ndarray = self.value  # just for type hinting

    @property
    def attitude(self) -> np.ndarray:
        return self.value[:3, :3]

    @property
    def velocity(self) -> np.ndarray:
        return self.value[:3, 3]

    @property
    def position(self) -> np.ndarray:
        return self.value[:3, 4]

    def body_velocity(self) -> np.ndarray:
        """Velocity resolved in the body frame."""
        return self.attitude.T @ self.velocity

    @staticmethod
    def identity(stamp: float = None, state_id=None) -> "NavState":
        return NavState(stamp=stamp, state_id=state_id)

    @staticmethod
    def random(stamp: float = None, state_id=None) -> "NavState":
        return NavState(
            SO3.random(),
            np.random.normal(size=3),
            np.random.normal(size=3),
            stamp,
            state_id,
        )

    def copy(self) -> "NavState":
        return NavState(
            self.attitude.copy(),
            self.position.copy(),
            self.velocity.copy(),
            self.stamp,
            self.state_id,
        )

    def plus(self, dx: np.ndarray) -> "NavState":
        dx = np.array(dx, dtype=np.float64).ravel()
        C = self.attitude
        return NavState(
            C @ self.group.Exp(dx[0:3]),
            self.position + C @ dx[3:6],
            self.velocity + C @ dx[6:9],
            self.stamp,
            self.state_id,
        )

    def plus_with_jacobians(
        self, dx: np.ndarray
    ) -> Tuple["NavState", Tuple[np.ndarray, np.ndarray]]:
        """
        Retraction together with its Jacobians.

        Returns
        -------
        Tuple[NavState, Tuple[np.ndarray, np.ndarray]]
            The new state, followed by the 9 x 9 Jacobians with respect to
            this state and with respect to ``dx``.
        """
        dx = np.array(dx, dtype=np.float64).ravel()
        new = self.plus(dx)
        D_T = self.group.Exp(dx[0:3]).T

        H_self = block_diag(D_T, D_T, D_T)
        H_self[3:6, 0:3] = -D_T @ SO3.wedge(dx[3:6])
        H_self[6:9, 0:3] = -D_T @ SO3.wedge(dx[6:9])

        H_dx = block_diag(self.group.right_jacobian(dx[0:3]), D_T, D_T)
        return new, (H_self, H_dx)

    def minus(self, x: "NavState") -> np.ndarray:
        C_x_inv = self.group.inverse(x.attitude)
        dx = np.zeros(9)
        dx[0:3] = self.group.Log(C_x_inv @ self.attitude).ravel()
        dx[3:6] = C_x_inv @ (self.position - x.position)
        dx[6:9] = C_x_inv @ (self.velocity - x.velocity)
        return dx

    def minus_with_jacobians(
        self, x: "NavState"
    ) -> Tuple[np.ndarray, Tuple[np.ndarray, np.ndarray]]:
        """
        Local coordinates of this state around ``x`` together with the
        Jacobians with respect to this state and with respect to ``x``.
        """
        dx = self.minus(x)
        dC = self.group.inverse(x.attitude) @ self.attitude
        J_inv = self.group.right_jacobian_inv(dx[0:3])

        H_self = block_diag(J_inv, dC, dC)

        H_x = -np.identity(9)
        H_x[0:3, 0:3] = -J_inv @ dC.T
        H_x[3:6, 0:3] = SO3.wedge(dx[3:6])
        H_x[6:9, 0:3] = SO3.wedge(dx[6:9])
        return dx, (H_self, H_x)

    def plus_jacobian(self, dx: np.ndarray) -> np.ndarray:
        return self.plus_with_jacobians(dx)[1][1]

    def minus_jacobian(self, x: "NavState") -> np.ndarray:
        return self.minus_with_jacobians(x)[1][0]

    def update(
        self,
        accel: np.ndarray,
        omega: np.ndarray,
        dt: float,
        gravity: np.ndarray = None,
    ) -> "NavState":
        r"""
        Propagates the state over one IMU sample, holding the body-frame
        acceleration ``accel`` and angular velocity ``omega`` constant over
        ``dt``:

        .. math::
            \mathbf{C}_{k} &= \mathbf{C}_{k-1} \exp(\Delta t \boldsymbol{\omega}^\wedge)

            \mathbf{v}_{k} &= \mathbf{v}_{k-1} + \Delta t (\mathbf{C}_{k-1}
            \mathbf{a} + \mathbf{g})

            \mathbf{r}_{k} &= \mathbf{r}_{k-1} + \Delta t \mathbf{v}_{k-1}
            + \frac{\Delta t^2}{2} (\mathbf{C}_{k-1} \mathbf{a} + \mathbf{g})

        Parameters
        ----------
        accel : np.ndarray with size 3
            Body-frame specific force.
        omega : np.ndarray with size 3
            Body-frame angular velocity.
        dt : float
            Sample period. Must be positive.
        gravity : np.ndarray with size 3, optional
            Gravity resolved in the navigation frame. Zero if not given, which
            is the convention used for preintegrated deltas.

        Returns
        -------
        NavState
            The state at the end of the sample.
        """
        accel = np.array(accel, dtype=np.float64).ravel()
        omega = np.array(omega, dtype=np.float64).ravel()

        C = self.attitude
        a_n = C @ accel
        if gravity is not None:
            a_n = a_n + np.array(gravity, dtype=np.float64).ravel()

        stamp = self.stamp + dt if self.stamp is not None else None
        return NavState(
            C @ self.group.Exp(omega * dt),
            self.position + dt * self.velocity + 0.5 * dt**2 * a_n,
            self.velocity + dt * a_n,
            stamp,
            self.state_id,
        )

    def update_with_jacobians(
        self,
        accel: np.ndarray,
        omega: np.ndarray,
        dt: float,
        gravity: np.ndarray = None,
    ) -> Tuple["NavState", Tuple[np.ndarray, np.ndarray, np.ndarray]]:
        """
        Same as ``update``, also returning the 9 x 9 Jacobian with respect to
        this state and the 9 x 3 Jacobians with respect to ``accel`` and
        ``omega``. Gravity is constant and contributes to none of them.
        """
        accel = np.array(accel, dtype=np.float64).ravel()
        omega = np.array(omega, dtype=np.float64).ravel()
        new = self.update(accel, omega, dt, gravity)

        phi = omega * dt
        E_T = self.group.Exp(phi).T
        E_T_a = E_T @ SO3.wedge(accel)
        dt22 = 0.5 * dt**2

        F = block_diag(E_T, E_T, E_T)
        F[3:6, 0:3] = -dt22 * E_T_a
        F[3:6, 6:9] = dt * E_T
        F[6:9, 0:3] = -dt * E_T_a

        G_accel = np.zeros((9, 3))
        G_accel[3:6, :] = dt22 * E_T
        G_accel[6:9, :] = dt * E_T

        G_omega = np.zeros((9, 3))
        G_omega[0:3, :] = dt * self.group.right_jacobian(phi)

        return new, (F, G_accel, G_omega)

    def correct_preintegrated(
        self, pim: np.ndarray, dt: float, gravity: np.ndarray
    ) -> np.ndarray:
        """
        Adds the contribution of this state's velocity and of gravity over an
        interval ``dt`` to a preintegrated tangent vector ``pim``, such that
        ``self.plus(xi)`` is the predicted state at the end of the interval.
        """
        return self.correct_preintegrated_with_jacobian(pim, dt, gravity)[0]

    def correct_preintegrated_with_jacobian(
        self, pim: np.ndarray, dt: float, gravity: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Same as ``correct_preintegrated``, also returning the Jacobian with
        respect to this state. The Jacobian with respect to ``pim`` is
        identity.
        """
        C_T = self.attitude.T
        v_b = C_T @ self.velocity
        g_b = C_T @ np.array(gravity, dtype=np.float64).ravel()
        dt22 = 0.5 * dt**2

        xi = np.array(pim, dtype=np.float64).ravel().copy()
        xi[3:6] += dt * v_b + dt22 * g_b
        xi[6:9] += dt * g_b

        H = np.zeros((9, 9))
        H[3:6, 0:3] = dt * SO3.wedge(v_b) + dt22 * SO3.wedge(g_b)
        H[3:6, 6:9] = dt * np.identity(3)
        H[6:9, 0:3] = dt * SO3.wedge(g_b)
        return xi, H

    def __repr__(self):
        s = [
            f"{self.__class__.__name__}(stamp={self.stamp},"
            + f" state_id={self.state_id})",
            f"    attitude: {self.group.Log(self.attitude).ravel()}",
            f"    position: {self.position}",
            f"    velocity: {self.velocity}",
        ]
        return "\n".join(s)
