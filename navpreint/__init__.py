from .types import State, Input

from . import batch
from . import lib
from . import utils

from .lib import (
    VectorState,
    NavState,
    IMU,
    ImuBias,
    PreintegrationParams,
    ManifoldPreintegration,
    integrate_measurements,
)

from .batch import Residual, PriorResidual, PreintegratedImuResidual

from .utils.common import jacobian
