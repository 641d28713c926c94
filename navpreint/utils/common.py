from typing import Callable, Union
import numpy as np
from navpreint.types import State


def jacobian(
    fun: Callable,
    x: Union[np.ndarray, State],
    step_size=None,
    method="central",
    *args,
    **kwargs,
) -> np.ndarray:
    """
    Compute the Jacobian of a function by finite difference. Both the input
    and the output can either be numpy arrays or ``State`` objects, in which
    case the derivative is taken on-manifold using their ``plus`` and
    ``minus`` methods. Example use:

    .. code-block:: python

        x = NavState([0.1, 0.2, 0.3], [1, 2, 3], [4, 5, 6])

        def fun(x: NavState):
            return x.update([0.1, 0.2, 10], [0.1, 0.2, 0.3], 0.1)

        jac_fd = jacobian(fun, x)

    Parameters
    ----------
    fun : Callable
        function to compute the Jacobian of
    x : Union[np.ndarray, State]
        input to the function
    step_size : float, optional
        finite difference step size, by default 1e-5 for "central" and 1e-6
        for "forward"
    method : str, optional
        "central" or "forward", by default "central".

    Returns
    -------
    np.ndarray with shape (M, N)
        Jacobian of the function, where ``M`` is the DOF of the output and
        ``N`` is the DOF of the input.
    """
    x = x.copy()

    if step_size is None:
        step_size = 1e-5 if method == "central" else 1e-6

    if hasattr(x, "plus"):
        input_plus = lambda x, dx: x.plus(dx)
        N = x.dof
    else:
        x = np.array(x, dtype=np.float64)
        input_plus = lambda x, dx: x + dx.reshape(x.shape)
        N = x.size

    Y_bar = fun(x.copy(), *args, **kwargs)

    if hasattr(Y_bar, "minus"):
        output_diff = lambda Y: np.ravel(Y.minus(Y_bar))
        M = Y_bar.dof
    else:
        output_diff = lambda Y: np.ravel(Y - Y_bar)
        M = np.size(Y_bar)

    func_to_diff = lambda dx: output_diff(
        fun(input_plus(x.copy(), dx), *args, **kwargs)
    )

    jac_fd = np.zeros((M, N))
    for i in range(N):
        dx = np.zeros(N)
        dx[i] = step_size

        if method == "forward":
            jac_fd[:, i] = func_to_diff(dx) / step_size

        elif method == "central":
            jac_fd[:, i] = (func_to_diff(dx) - func_to_diff(-dx)) / (
                2 * step_size
            )

        else:
            raise ValueError(
                f"Unknown method '{method}'. Must be 'forward' or 'central'."
            )

    return jac_fd
