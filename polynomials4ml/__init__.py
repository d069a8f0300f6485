__version__ = "0.1.0"


from typing import Dict


_OPT_DEFAULTS: Dict[str, bool] = dict(use_buffer_pool=True, check_inputs=True)


def set_optimization_defaults(**kwargs) -> None:
    r"""Globally set the default evaluation settings.

    Parameters
    ----------
    **kwargs
        Keyword arguments to set the default settings.

        * ``use_buffer_pool``: borrow the scratch tables (Legendre tables, derivative tables) from an
          :class:`~polynomials4ml.util.ArrayPool` instead of allocating them on every call.
        * ``check_inputs``: run the data dependent domain checks (zero vectors, :math:`|\cos\theta| \leq 1`).
          They require a device synchronization.
    """
    for k, v in kwargs.items():
        if k not in _OPT_DEFAULTS:
            raise ValueError(f"Unknown optimization option: {k}")
        _OPT_DEFAULTS[k] = bool(v)


def get_optimization_defaults() -> Dict[str, bool]:
    r"""Get the global default evaluation settings."""
    return dict(_OPT_DEFAULTS)
