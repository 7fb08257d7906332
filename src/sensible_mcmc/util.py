from __future__ import annotations

import inspect
import math
from typing import Any, Callable, List, Tuple

import numpy as np


def infer_signature_names(func: Callable[..., Any]) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """Split a log-density signature into (parameter names, data field names).

    Conventions:
    - positional (or positional-or-keyword) arguments are parameters
    - keyword-only arguments are data fields

    *args/**kwargs are not supported: every name must be declared.
    """
    sig = inspect.signature(func)
    params: List[str] = []
    data: List[str] = []
    bad_kinds = {inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD}
    for p in sig.parameters.values():
        if p.kind in bad_kinds:
            raise TypeError("*args/**kwargs are not supported in log-density functions.")
        if p.kind == inspect.Parameter.KEYWORD_ONLY:
            data.append(p.name)
        else:
            params.append(p.name)
    if not params:
        raise TypeError("Log-density function must take at least one parameter.")
    return tuple(params), tuple(data)


def prod(shape: Tuple[int, ...]) -> int:
    n = 1
    for s in shape:
        n *= int(s)
    return int(n)


def component_names(name: str, shape: Tuple[int, ...]) -> List[str]:
    """Scalar component labels: 'phi' or 'theta[0]', 'theta[1]', 'L[0,1]'."""
    if shape == ():
        return [name]
    return [
        f"{name}[{','.join(str(i) for i in idx)}]" for idx in np.ndindex(*shape)
    ]


def uncertainty_to_string(
    x: float, err: float, precision: int | str | None = 1
) -> str:
    """Format a value with uncertainty as a compact string.

    Returns the shortest string representation of x +/- err as either
    x.xx(ee)e+xx or xxx.xx(ee). Use precision="auto" to follow the
    common 1-or-2 significant-digit rule for the uncertainty.
    """
    auto = precision is None or (
        isinstance(precision, str) and precision.lower() == "auto"
    )
    x = float(x)
    err = float(err)

    if math.isnan(x) or math.isnan(err):
        return "NaN"
    if math.isinf(x) or math.isinf(err):
        return "inf"

    err = abs(err)
    if err == 0.0:
        if auto:
            precision = 1
        precision = max(1, int(precision))  # type: ignore[arg-type]
        return f"{x:.{precision}g}(0)"

    err_exp = int(math.floor(math.log10(err)))
    if auto:
        leading = int(err / (10 ** err_exp) + 1e-12)
        precision = 2 if leading == 1 else 1
    precision = max(1, int(precision))  # type: ignore[arg-type]

    if x == 0.0 or abs(x) < err:
        x_exp = err_exp
    else:
        x_exp = int(math.floor(math.log10(abs(x))))

    un_exp = err_exp - precision + 1
    un_int = round(err * 10 ** (-un_exp))

    no_exp = un_exp
    no_int = round(x * 10 ** (-no_exp))

    fieldw = x_exp - no_exp
    fmt = f"%.{fieldw}f"
    result1 = (fmt + "(%.0f)e%d") % (no_int * 10 ** (-fieldw), un_int, x_exp)

    fieldw = max(0, -no_exp)
    fmt = f"%.{fieldw}f"
    result2 = (fmt + "(%.0f)") % (no_int * 10 ** no_exp, un_int * 10 ** max(0, un_exp))

    return result2 if len(result2) <= len(result1) else result1
