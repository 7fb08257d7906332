from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Tuple, Union

import numpy as np

from .errors import SchemaError

__all__ = [
    "ParameterSpec",
    "DataField",
    "DerivedSpec",
    "Dim",
    "normalize_shape",
]

# A dimension is either a fixed length or the name of an integer data field.
Dim = Union[int, str]
Bound = Optional[float]
DataBound = Union[None, float, str]


def normalize_shape(shape: Any) -> Tuple[Dim, ...]:
    """Normalize a user shape (None, int, str or sequence) to a tuple of dims."""
    if shape is None:
        return ()
    if isinstance(shape, (int, np.integer, str)):
        shape = (shape,)
    dims = []
    for d in shape:
        if isinstance(d, str):
            dims.append(d)
        elif isinstance(d, (int, np.integer)) and not isinstance(d, bool):
            if int(d) < 0:
                raise SchemaError(f"Negative dimension {d!r} in shape {shape!r}.")
            dims.append(int(d))
        else:
            raise SchemaError(f"Unsupported dimension {d!r} in shape {shape!r}.")
    return tuple(dims)


def _check_numeric_bounds(owner: str, bounds: Tuple[Any, Any]) -> None:
    lo, hi = bounds
    if lo is not None and not isinstance(lo, str) and math.isnan(float(lo)):
        raise SchemaError(f"Lower bound of {owner!r} is NaN.")
    if hi is not None and not isinstance(hi, str) and math.isnan(float(hi)):
        raise SchemaError(f"Upper bound of {owner!r} is NaN.")
    if lo is None or hi is None or isinstance(lo, str) or isinstance(hi, str):
        return
    if float(lo) > float(hi):
        raise SchemaError(
            f"Contradictory bounds for {owner!r}: lower={lo} > upper={hi}."
        )


@dataclass(frozen=True)
class ParameterSpec:
    """A sampled parameter: name, shape and (open) bounds."""

    name: str
    shape: Tuple[Dim, ...] = ()
    bounds: Tuple[Bound, Bound] = (None, None)

    def __post_init__(self):
        object.__setattr__(self, "shape", normalize_shape(self.shape))
        lo, hi = self.bounds
        lo = None if lo is None or float(lo) == -np.inf else float(lo)
        hi = None if hi is None or float(hi) == np.inf else float(hi)
        _check_numeric_bounds(self.name, (lo, hi))
        if lo is not None and hi is not None and lo == hi:
            raise SchemaError(
                f"Degenerate bounds for {self.name!r}: lower == upper == {lo}; "
                "declare it as data instead."
            )
        object.__setattr__(self, "bounds", (lo, hi))

    @property
    def lower(self) -> Bound:
        return self.bounds[0]

    @property
    def upper(self) -> Bound:
        return self.bounds[1]

    def contains(self, value: Any) -> bool:
        """True if every element of value lies strictly inside the bounds.

        The log-density is evaluated on the open domain; a value sitting on a
        finite bound (e.g. a scale of exactly 0) is outside its support.
        """
        v = np.asarray(value, dtype=float)
        if not np.all(np.isfinite(v)):
            return False
        if self.lower is not None and np.any(v <= self.lower):
            return False
        if self.upper is not None and np.any(v >= self.upper):
            return False
        return True

    def describe(self) -> str:
        dims = ", ".join(str(d) for d in self.shape)
        head = f"{self.name}[{dims}]" if self.shape else self.name
        lo = "-inf" if self.lower is None else f"{self.lower:g}"
        hi = "inf" if self.upper is None else f"{self.upper:g}"
        return f"{head} in ({lo}, {hi})"


@dataclass(frozen=True)
class DataField:
    """Schema for one observed-data field.

    Bounds may be numbers or the name of another data field; named bounds are
    compared element-wise after broadcasting (e.g. hits ``y <= K``).
    """

    name: str
    kind: str = "real"
    shape: Tuple[Dim, ...] = ()
    bounds: Tuple[DataBound, DataBound] = (None, None)

    def __post_init__(self):
        if self.kind not in ("int", "real"):
            raise SchemaError(
                f"Data field {self.name!r} has kind {self.kind!r}; expected 'int' or 'real'."
            )
        object.__setattr__(self, "shape", normalize_shape(self.shape))
        lo, hi = self.bounds
        lo = lo if lo is None or isinstance(lo, str) else float(lo)
        hi = hi if hi is None or isinstance(hi, str) else float(hi)
        _check_numeric_bounds(self.name, (lo, hi))
        object.__setattr__(self, "bounds", (lo, hi))

    @staticmethod
    def integer(
        *, shape: Any = None, lower: DataBound = None, upper: DataBound = None
    ) -> "DataField":
        """Integer field; the name is filled in by ModelSpec.data(...)."""
        return DataField(name="", kind="int", shape=shape, bounds=(lower, upper))

    @staticmethod
    def real(
        *, shape: Any = None, lower: DataBound = None, upper: DataBound = None
    ) -> "DataField":
        """Real-valued field; the name is filled in by ModelSpec.data(...)."""
        return DataField(name="", kind="real", shape=shape, bounds=(lower, upper))


@dataclass(frozen=True)
class DerivedSpec:
    """Post-sampling derived quantity.

    ``func`` maps one draw (name -> value) to a scalar or array. It is applied
    lazily per draw and its values are stored beside the chain, never inside
    the draw itself.
    """

    name: str
    func: Callable[[Mapping[str, Any]], Any]
    doc: str = ""
