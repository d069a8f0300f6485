from typing import Callable, Optional

import random
import inspect
import logging

import numpy as np
import torch


# Make a logger for reporting error statistics
logger = logging.getLogger(__name__)


def _logging_name(func) -> str:
    """Get a decent string representation of ``func`` for logging"""
    if inspect.isfunction(func) or inspect.ismethod(func):
        return func.__qualname__
    else:
        return repr(func)


# The default float tolerance
FLOAT_TOLERANCE = {
    t: torch.as_tensor(v, dtype=t)
    for t, v in {
        torch.float32: 1e-3,
        torch.float64: 1e-10
    }.items()
}

# Tolerance of the comparisons against centered finite differences, always run in float64
FD_TOLERANCE = 1e-6


try:
    # If pytest is available, define a pytest plugin
    # See https://docs.pytest.org/en/stable/fixture.html#using-fixtures-from-other-projects
    import pytest

    @pytest.fixture(scope='session', autouse=True, params=['float32', 'float64'])
    def float_tolerance(request):
        """Run all tests with various PyTorch default dtypes.

        This is a session-wide, autouse fixture: you only need to request it explicitly if a test needs to know the
        tolerance for the current default dtype.

        Returns
        --------
            A precision threshold to use for closeness tests.
        """
        old_dtype = torch.get_default_dtype()
        dtype = {
            'float32': torch.float32,
            'float64': torch.float64
        }[request.param]
        torch.set_default_dtype(dtype)
        yield FLOAT_TOLERANCE[dtype]
        torch.set_default_dtype(old_dtype)
except ImportError:
    pass


def set_random_seeds() -> None:
    """Set the random seeds of ``random``, ``numpy`` and ``torch``"""
    random.seed(0)
    np.random.seed(0)
    torch.manual_seed(0)


def _relative_error(a: torch.Tensor, b: torch.Tensor) -> float:
    return float((a - b).abs().max() / max(1.0, float(b.abs().max())))


def derivatives_error(basis, x: torch.Tensor, h: float = 1e-5) -> dict:
    r"""Compare the analytic derivatives of a 1-D basis with centered finite differences

    Parameters
    ----------
        basis : object
            with ``evaluate`` and ``evaluate_d`` (and optionally ``evaluate_dd``) methods
        x : `torch.Tensor`
            float64 points of shape ``(...)``
        h : float
            finite difference step

    Returns
    -------
    dictionary mapping ``"values"``, ``"d"`` and ``"dd"`` to the largest relative errors
    """
    P = basis.evaluate(x)
    P1, dP = basis.evaluate_d(x)
    errors = {"values": _relative_error(P1, P)}

    fd = (basis.evaluate(x + h) - basis.evaluate(x - h)) / (2 * h)
    errors["d"] = _relative_error(dP, fd)

    if hasattr(basis, "evaluate_dd"):
        P2, dP2, ddP = basis.evaluate_dd(x)
        errors["values"] = max(errors["values"], _relative_error(P2, P))
        errors["d"] = max(errors["d"], _relative_error(dP2, dP))
        fd2 = (basis.evaluate_d(x + h)[1] - basis.evaluate_d(x - h)[1]) / (2 * h)
        errors["dd"] = _relative_error(ddP, fd2)
    return errors


def assert_derivatives(basis, x: torch.Tensor, h: float = 1e-5, tolerance: Optional[float] = None) -> dict:
    r"""Assert that the derivatives of ``basis`` match centered finite differences, see ``derivatives_error``"""
    # Prevent pytest from showing this function in the traceback
    __tracebackhide__ = True

    errors = derivatives_error(basis, x, h)
    logger.info("Tested derivatives of `%s` -- max relative errors: %s", _logging_name(basis), errors)

    if tolerance is None:
        tolerance = FD_TOLERANCE
    # the value paths must agree to rounding
    assert errors["values"] < FLOAT_TOLERANCE[x.dtype], f"value paths disagree: {errors}"
    problems = {k: v for k, v in errors.items() if k != "values" and v > tolerance}
    assert len(problems) == 0, f"derivatives do not match finite differences: {problems}"
    return errors


def gradient_error(f_ed: Callable, R: torch.Tensor, h: float = 1e-5) -> float:
    r"""Largest relative error between the gradient returned by ``f_ed`` and centered finite differences

    ``f_ed(R)`` returns ``(Y, dY)`` with ``Y`` of shape ``(..., n)`` and ``dY`` of shape ``(..., n, 3)`` for ``R`` of
    shape ``(..., 3)``.
    """
    Y, dY = f_ed(R)
    err = 0.0
    for k in range(3):
        e = torch.zeros(3, dtype=R.dtype, device=R.device)
        e[k] = h
        fd = (f_ed(R + e)[0] - f_ed(R - e)[0]) / (2 * h)
        err = max(err, _relative_error(dY[..., k], fd))
    return err


def assert_gradient(f_ed: Callable, R: torch.Tensor, h: float = 1e-5, tolerance: Optional[float] = None) -> float:
    r"""Assert that the gradient returned by ``f_ed`` matches finite differences, see ``gradient_error``"""
    __tracebackhide__ = True

    err = gradient_error(f_ed, R, h)
    logger.info("Tested gradient of `%s` -- max relative error: %.3e", _logging_name(f_ed), err)

    if tolerance is None:
        tolerance = FD_TOLERANCE
    assert err < tolerance, f"gradient does not match finite differences: error {err:.3e}"
    return err


def assert_pullback(
    f: Callable,
    pullback: Callable,
    x: torch.Tensor,
    ntrials: int = 10,
    h: float = 1e-5,
    tolerance: Optional[float] = None,
) -> float:
    r"""Assert that a reverse mode gradient matches finite differences along random directions

    For random ``u`` and ``v`` compare ``<pullback(x, u), v>`` with the derivative at :math:`t = 0` of
    :math:`F(t) = \Re \langle u, f(x + t v) \rangle`.

    Parameters
    ----------
        f : callable
            ``x -> y``, ``y`` real or complex
        pullback : callable
            ``(x, grad_y) -> grad_x``
        x : `torch.Tensor`
            float64 input
        ntrials : int
            number of random directions

    Returns
    -------
    The largest relative error
    """
    __tracebackhide__ = True

    if tolerance is None:
        tolerance = FD_TOLERANCE

    y = f(x)
    worst = 0.0
    for _ in range(ntrials):
        u = torch.randn(y.shape, dtype=y.dtype, device=y.device)
        v = torch.randn(x.shape, dtype=x.dtype, device=x.device)

        def F(t):
            return float((u.conj() * f(x + t * v)).real.sum())

        fd = (F(h) - F(-h)) / (2 * h)
        dF = float((pullback(x, u) * v).sum())
        worst = max(worst, abs(dF - fd) / max(1.0, abs(fd)))

    logger.info("Tested pullback of `%s` -- max relative error: %.3e", _logging_name(pullback), worst)
    assert worst < tolerance, f"pullback does not match finite differences: error {worst:.3e}"
    return worst
