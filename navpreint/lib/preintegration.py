import logging
from typing import List, Tuple, Union
import numpy as np
from navpreint.lib.imu import IMU, ImuBias, PreintegrationParams
from navpreint.lib.states import NavState

logger = logging.getLogger(__name__)


def _as_bias(bias: Union[ImuBias, np.ndarray]) -> ImuBias:
    if isinstance(bias, ImuBias):
        return bias
    return ImuBias.from_vector(bias)


class ManifoldPreintegration:
    r"""
    Preintegrates IMU measurements directly on the ``NavState`` manifold.

    Between two states :math:`i` and :math:`j`, the bias-corrected
    measurements are folded into a delta :math:`\Delta \mathcal{X}_{ij} =
    (\Delta \mathbf{C}_{ij}, \Delta \mathbf{r}_{ij}, \Delta \mathbf{v}_{ij})`
    expressed in the body frame of state :math:`i`, with gravity left out.
    Alongside the delta, the 9 x 6 Jacobian

    .. math::
        \mathbf{B}_{ij} = \frac{D \Delta \mathcal{X}_{ij}}{D \mathbf{b}}

    is accumulated in the local coordinates of the current delta, with
    columns ordered as ``[accel_bias, gyro_bias]``. It allows a first-order
    correction of the delta for a new bias estimate without re-integrating
    the raw measurements,

    .. math::
        \Delta \mathcal{X}_{ij}(\mathbf{b}) \approx \Delta \mathcal{X}_{ij}
        \oplus \mathbf{B}_{ij} (\mathbf{b} - \hat{\mathbf{b}}).

    An instance must be fed measurements in chronological order, and is
    owned by a single integration stream. The parameters are shared by
    reference and never modified.
    """

    __slots__ = [
        "params",
        "bias_hat",
        "delta_xij",
        "delta_tij",
        "bias_jacobian",
        "stamps",
    ]

    def __init__(self, params: PreintegrationParams, bias: ImuBias = None):
        """
        Parameters
        ----------
        params : PreintegrationParams
            Sensor configuration, shared by reference.
        bias : ImuBias, optional
            Bias estimate used to correct the measurements, zero by default.
        """
        if bias is None:
            bias = ImuBias()

        #:PreintegrationParams: shared sensor configuration
        self.params = params

        #:ImuBias: bias estimate the delta is linearized about
        self.bias_hat = _as_bias(bias).copy()

        #:List[float, float]: the two timestamps i, j, when known
        self.stamps = [None, None]

        #:NavState: the running delta
        self.delta_xij = NavState()

        #:float: elapsed time since the last reset
        self.delta_tij = 0.0

        #:numpy.ndarray: 9 x 6 bias Jacobian in the delta's local coordinates
        self.bias_jacobian = np.zeros((9, 6))

        logger.debug("Created %s", self)

    @classmethod
    def from_other(cls, other: "ManifoldPreintegration") -> "ManifoldPreintegration":
        return other.copy()

    def copy(self) -> "ManifoldPreintegration":
        """
        Returns
        -------
        ManifoldPreintegration
            A copy sharing the same parameters.
        """
        new = self.__class__(self.params, self.bias_hat)
        new.delta_xij = self.delta_xij.copy()
        new.delta_tij = self.delta_tij
        new.bias_jacobian = self.bias_jacobian.copy()
        new.stamps = self.stamps.copy()
        return new

    def reset(self, bias: ImuBias = None):
        """
        Returns to the identity delta, optionally re-linearizing about a new
        bias estimate.
        """
        if bias is not None:
            self.bias_hat = _as_bias(bias).copy()
            logger.debug("New bias estimate %s", self.bias_hat.value)

        self.delta_xij = NavState()
        self.delta_tij = 0.0
        self.bias_jacobian = np.zeros((9, 6))
        self.stamps = [None, None]

    @property
    def is_idle(self) -> bool:
        """True if no measurement was integrated since the last reset."""
        return self.delta_tij == 0.0

    @property
    def delta_rij(self) -> np.ndarray:
        return self.delta_xij.attitude

    @property
    def delta_pij(self) -> np.ndarray:
        return self.delta_xij.position

    @property
    def delta_vij(self) -> np.ndarray:
        return self.delta_xij.velocity

    # The six bias-correction blocks, as derivatives of delta_rij (right
    # perturbation), delta_pij and delta_vij in the frame of state i.
    @property
    def del_r_del_bias_acc(self) -> np.ndarray:
        return self.bias_jacobian[0:3, 0:3].copy()

    @property
    def del_r_del_bias_omega(self) -> np.ndarray:
        return self.bias_jacobian[0:3, 3:6].copy()

    @property
    def del_p_del_bias_acc(self) -> np.ndarray:
        return self.delta_rij @ self.bias_jacobian[3:6, 0:3]

    @property
    def del_p_del_bias_omega(self) -> np.ndarray:
        return self.delta_rij @ self.bias_jacobian[3:6, 3:6]

    @property
    def del_v_del_bias_acc(self) -> np.ndarray:
        return self.delta_rij @ self.bias_jacobian[6:9, 0:3]

    @property
    def del_v_del_bias_omega(self) -> np.ndarray:
        return self.delta_rij @ self.bias_jacobian[6:9, 3:6]

    def update(
        self, measured_acc: np.ndarray, measured_omega: np.ndarray, dt: float
    ):
        """
        In-place integration of one accelerometer/gyro sample held over
        ``dt``.
        """
        self.update_with_jacobians(measured_acc, measured_omega, dt)

    def update_with_jacobians(
        self, measured_acc: np.ndarray, measured_omega: np.ndarray, dt: float
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Same as ``update``, returning the Jacobians of the delta update with
        respect to the previous delta, the corrected acceleration and the
        corrected angular velocity.
        """
        acc = self.bias_hat.correct_accelerometer(measured_acc)
        omega = self.bias_hat.correct_gyroscope(measured_omega)

        self.delta_xij, (A, B, C) = self.delta_xij.update_with_jacobians(
            acc, omega, dt
        )

        # measured = true + bias, so the input depends on the bias through -I
        self.bias_jacobian = A @ self.bias_jacobian - np.hstack([B, C])
        self.delta_tij += dt
        return A, B, C

    def increment(self, u: IMU, dt: float):
        """
        Integrates an ``IMU`` reading over ``dt``, keeping track of the
        interval's timestamps.
        """
        if u.stamp is not None:
            if self.stamps[0] is None:
                self.stamps[0] = u.stamp
                self.stamps[1] = u.stamp + dt
            else:
                self.stamps[1] += dt

        self.update(u.accel, u.gyro, dt)

    def bias_corrected_delta(self, bias: ImuBias) -> np.ndarray:
        """
        The delta corrected to first order for ``bias``, as a 9-vector of
        local coordinates about the identity ``[rotation, position, velocity]``.
        """
        return self.bias_corrected_delta_with_jacobian(bias)[0]

    def bias_corrected_delta_with_jacobian(
        self, bias: ImuBias
    ) -> Tuple[np.ndarray, np.ndarray]:
        db = _as_bias(bias).minus(self.bias_hat)
        corrected, (_, D_corrected_db) = self.delta_xij.plus_with_jacobians(
            self.bias_jacobian @ db
        )
        xi, (D_xi_corrected, _) = corrected.minus_with_jacobians(NavState())
        return xi, D_xi_corrected @ D_corrected_db @ self.bias_jacobian

    def predict(self, x_i: NavState, bias: ImuBias) -> NavState:
        """
        Predicts the state at the end of the interval from the state at its
        start and a bias estimate.
        """
        return self.predict_with_jacobians(x_i, bias)[0]

    def predict_with_jacobians(
        self, x_i: NavState, bias: ImuBias
    ) -> Tuple[NavState, Tuple[np.ndarray, np.ndarray]]:
        """
        Same as ``predict``, also returning the 9 x 9 Jacobian with respect to
        ``x_i`` and the 9 x 6 Jacobian with respect to the bias.
        """
        pim, D_pim_bias = self.bias_corrected_delta_with_jacobian(bias)
        xi, D_xi_state = x_i.correct_preintegrated_with_jacobian(
            pim, self.delta_tij, self.params.gravity
        )
        x_j, (D_pred_state, D_pred_xi) = x_i.plus_with_jacobians(xi)

        H_state = D_pred_state + D_pred_xi @ D_xi_state
        H_bias = D_pred_xi @ D_pim_bias
        return x_j, (H_state, H_bias)

    def compute_error(
        self, x_i: NavState, x_j: NavState, bias: ImuBias
    ) -> np.ndarray:
        r"""
        Discrepancy between the predicted and the actual state at the end of
        the interval,

        .. math::
            \mathbf{e} = \hat{\mathcal{X}}_j \ominus \mathcal{X}_j.

        Returns
        -------
        np.ndarray with size 9
            Error in ``[rotation, position, velocity]`` local coordinates.
        """
        return self.predict(x_i, bias).minus(x_j)

    def compute_error_with_jacobians(
        self, x_i: NavState, x_j: NavState, bias: ImuBias
    ) -> Tuple[np.ndarray, Tuple[np.ndarray, np.ndarray, np.ndarray]]:
        """
        Same as ``compute_error``, also returning the Jacobians with respect
        to ``x_i`` (9 x 9), ``x_j`` (9 x 9) and the bias (9 x 6).
        """
        x_j_hat, (D_pred_state, D_pred_bias) = self.predict_with_jacobians(
            x_i, bias
        )
        e, (D_e_pred, D_e_xj) = x_j_hat.minus_with_jacobians(x_j)
        return e, (D_e_pred @ D_pred_state, D_e_xj, D_e_pred @ D_pred_bias)

    def __repr__(self):
        s = [
            f"ManifoldPreintegration(delta_tij={self.delta_tij},"
            + f" stamps={self.stamps})",
            f"    bias_hat: {self.bias_hat.value}",
            f"    delta_pij: {self.delta_pij}",
            f"    delta_vij: {self.delta_vij}",
        ]
        return "\n".join(s)


def integrate_measurements(
    preintegration: ManifoldPreintegration,
    data: List[IMU],
    dt: float = None,
) -> ManifoldPreintegration:
    """
    Feeds a list of IMU readings, in chronological order, into a
    preintegration.

    Parameters
    ----------
    preintegration : ManifoldPreintegration
        Accumulator, modified in place.
    data : List[IMU]
        IMU readings.
    dt : float, optional
        Constant sample period. If None, each reading is held until the
        stamp of the next one and the last reading is not integrated.

    Returns
    -------
    ManifoldPreintegration
        The same accumulator, for convenience.
    """
    if dt is None:
        for u, u_next in zip(data[:-1], data[1:]):
            preintegration.increment(u, u_next.stamp - u.stamp)
    else:
        for u in data:
            preintegration.increment(u, dt)

    return preintegration
