"""
The built-in library of navigation states, IMU data types and the manifold
preintegration.
"""

from .states import VectorState, NavState

from .imu import IMU, ImuBias, PreintegrationParams

from .preintegration import ManifoldPreintegration, integrate_measurements
