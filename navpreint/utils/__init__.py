from .common import jacobian
