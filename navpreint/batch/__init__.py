from .residuals import Residual, PriorResidual, PreintegratedImuResidual
