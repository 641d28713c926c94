import numpy as np
from typing import Any
from navpreint.types import Input
from navpreint.lib.states import VectorState


class IMU(Input):
    """
    A single IMU sample: accelerometer and gyroscope readings, in the body
    frame, taken at time ``stamp``.
    """

    __slots__ = ["accel", "gyro"]

    def __init__(self, accel: np.ndarray, gyro: np.ndarray, stamp: float = None):
        super().__init__(stamp)
        #:np.ndarray: Accelerometer reading
        self.accel = np.array(accel, dtype=np.float64).ravel()
        #:np.ndarray: Gyro reading
        self.gyro = np.array(gyro, dtype=np.float64).ravel()

    def copy(self) -> "IMU":
        return IMU(self.accel.copy(), self.gyro.copy(), self.stamp)

    def __repr__(self):
        s = [
            f"IMU(stamp={self.stamp})",
            f"    accel: {self.accel}",
            f"    gyro: {self.gyro}",
        ]
        return "\n".join(s)


class ImuBias(VectorState):
    """
    Constant accelerometer and gyroscope biases. The value is stored as a
    vector with the order ``[accel_bias, gyro_bias]``, and the sensor model
    is ``measured = true + bias``.
    """

    def __init__(
        self,
        accel: np.ndarray = None,
        gyro: np.ndarray = None,
        stamp: float = None,
        state_id: Any = None,
    ):
        if accel is None:
            accel = np.zeros(3)
        if gyro is None:
            gyro = np.zeros(3)

        accel = np.array(accel, dtype=np.float64).ravel()
        gyro = np.array(gyro, dtype=np.float64).ravel()
        if accel.size != 3 or gyro.size != 3:
            raise ValueError("accel and gyro biases must have 3 elements.")

        super().__init__(np.concatenate([accel, gyro]), stamp, state_id)

    @staticmethod
    def from_vector(b: np.ndarray, stamp: float = None, state_id=None):
        """Creates a bias from a 6-vector ordered as ``[accel, gyro]``."""
        b = np.array(b, dtype=np.float64).ravel()
        if b.size != 6:
            raise ValueError("Bias vector must have 6 elements.")
        return ImuBias(b[0:3], b[3:6], stamp, state_id)

    @property
    def accel(self) -> np.ndarray:
        return self.value[0:3]

    @property
    def gyro(self) -> np.ndarray:
        return self.value[3:6]

    def correct_accelerometer(self, measured: np.ndarray) -> np.ndarray:
        return np.array(measured, dtype=np.float64).ravel() - self.accel

    def correct_gyroscope(self, measured: np.ndarray) -> np.ndarray:
        return np.array(measured, dtype=np.float64).ravel() - self.gyro

    def __add__(self, other: "ImuBias") -> "ImuBias":
        return ImuBias.from_vector(self.value + other.value, self.stamp)

    def __sub__(self, other: "ImuBias") -> "ImuBias":
        return ImuBias.from_vector(self.value - other.value, self.stamp)

    def __neg__(self) -> "ImuBias":
        return ImuBias.from_vector(-self.value, self.stamp)

    def copy(self) -> "ImuBias":
        return ImuBias(
            self.accel.copy(), self.gyro.copy(), self.stamp, self.state_id
        )

    def __repr__(self):
        s = [
            f"ImuBias(stamp={self.stamp}, state_id={self.state_id})",
            f"    accel: {self.accel}",
            f"    gyro: {self.gyro}",
        ]
        return "\n".join(s)


def _as_matrix33(Q, name: str) -> np.ndarray:
    if Q is None:
        Q = np.zeros((3, 3))
    Q = np.array(Q, dtype=np.float64)
    if Q.shape != (3, 3):
        raise ValueError(f"{name} must be a 3 x 3 matrix.")
    Q.setflags(write=False)
    return Q


class PreintegrationParams:
    """
    Sensor configuration shared by every preintegration built from the same
    IMU. The stored arrays are read-only, so a single instance can safely be
    shared between many accumulators.
    """

    __slots__ = [
        "_gravity",
        "_gyroscope_covariance",
        "_accelerometer_covariance",
        "_integration_covariance",
    ]

    def __init__(
        self,
        gravity: np.ndarray = None,
        gyroscope_covariance: np.ndarray = None,
        accelerometer_covariance: np.ndarray = None,
        integration_covariance: np.ndarray = None,
    ):
        """
        Parameters
        ----------
        gravity : np.ndarray with size 3, optional
            Gravity vector resolved in the navigation frame.
            If None, default value is set to [0; 0; -9.80665].
        gyroscope_covariance : np.ndarray with shape (3, 3), optional
            Continuous-time gyro noise covariance, zero by default.
        accelerometer_covariance : np.ndarray with shape (3, 3), optional
            Continuous-time accelerometer noise covariance, zero by default.
        integration_covariance : np.ndarray with shape (3, 3), optional
            Covariance of the error introduced by integrating position from
            velocity, zero by default.
        """
        if gravity is None:
            gravity = np.array([0, 0, -9.80665])

        gravity = np.array(gravity, dtype=np.float64).ravel()
        if gravity.size != 3:
            raise ValueError("gravity must have 3 elements.")
        gravity.setflags(write=False)

        self._gravity = gravity
        self._gyroscope_covariance = _as_matrix33(
            gyroscope_covariance, "gyroscope_covariance"
        )
        self._accelerometer_covariance = _as_matrix33(
            accelerometer_covariance, "accelerometer_covariance"
        )
        self._integration_covariance = _as_matrix33(
            integration_covariance, "integration_covariance"
        )

    @classmethod
    def z_down(cls, g: float = 9.81, **kwargs) -> "PreintegrationParams":
        """Navigation frame with Z pointing down, gravity ``[0, 0, g]``."""
        return cls(np.array([0, 0, g]), **kwargs)

    @classmethod
    def z_up(cls, g: float = 9.81, **kwargs) -> "PreintegrationParams":
        """Navigation frame with Z pointing up, gravity ``[0, 0, -g]``."""
        return cls(np.array([0, 0, -g]), **kwargs)

    @property
    def gravity(self) -> np.ndarray:
        return self._gravity

    @property
    def gyroscope_covariance(self) -> np.ndarray:
        return self._gyroscope_covariance

    @property
    def accelerometer_covariance(self) -> np.ndarray:
        return self._accelerometer_covariance

    @property
    def integration_covariance(self) -> np.ndarray:
        return self._integration_covariance

    def __repr__(self):
        return f"PreintegrationParams(gravity={self.gravity})"
