from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

import numpy as np

from .data import Dataset, as_dataset
from .errors import SchemaError, ValidationError
from .params import DataField, DerivedSpec, ParameterSpec
from .transforms import ParameterLayout
from .util import infer_signature_names

LogDensity = Callable[..., float]
Gradient = Callable[..., Mapping[str, Any]]


@dataclass(frozen=True)
class ModelSpec:
    """Immutable model: parameter domains, data schema and log-density.

    ``log_density_func`` takes every parameter and every data field by name and
    returns the unnormalized log-posterior. Parameters are passed positionally
    in declaration order, data fields as keywords.
    """

    name: str
    params: Tuple[ParameterSpec, ...]
    data_fields: Tuple[DataField, ...]
    log_density_func: LogDensity
    gradient_func: Optional[Gradient] = None
    derived: Tuple[DerivedSpec, ...] = ()
    checks: Tuple[Callable[[Mapping[str, Any]], None], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "checks", tuple(self.checks))
        object.__setattr__(self, "params", tuple(self.params))
        object.__setattr__(self, "data_fields", tuple(self.data_fields))
        object.__setattr__(self, "derived", tuple(self.derived))
        self._check_schema()

    # ---- constructor ----
    @staticmethod
    def from_function(
        func: LogDensity, *, name: Optional[str] = None
    ) -> "ModelSpec":
        """Construct a ModelSpec from a log-density signature.

        Positional arguments become unbounded scalar parameters and
        keyword-only arguments become scalar real data fields; refine them
        with .bound(), .shape() and .data().
        """
        param_names, data_names = infer_signature_names(func)
        return ModelSpec(
            name=name or getattr(func, "__name__", "model"),
            params=tuple(ParameterSpec(name=n) for n in param_names),
            data_fields=tuple(DataField(name=n) for n in data_names),
            log_density_func=func,
        )

    # ---- builders (pure; return new spec) ----
    def bound(self, **bounds: Tuple[Optional[float], Optional[float]]) -> "ModelSpec":
        """Return a new spec with parameter bounds applied."""
        m = {p.name: p for p in self.params}
        for k, b in bounds.items():
            if k not in m:
                raise SchemaError(f"Cannot bound undeclared parameter {k!r}.")
            lo, hi = b
            m[k] = ParameterSpec(name=k, shape=m[k].shape, bounds=(lo, hi))
        return replace(self, params=tuple(m[p.name] for p in self.params))

    def shape(self, **shapes: Any) -> "ModelSpec":
        """Return a new spec with parameter shapes (ints or data-field names)."""
        m = {p.name: p for p in self.params}
        for k, s in shapes.items():
            if k not in m:
                raise SchemaError(f"Cannot shape undeclared parameter {k!r}.")
            m[k] = ParameterSpec(name=k, shape=s, bounds=m[k].bounds)
        return replace(self, params=tuple(m[p.name] for p in self.params))

    def data(self, **fields: DataField) -> "ModelSpec":
        """Return a new spec with data-field schemas replaced."""
        m = {f.name: f for f in self.data_fields}
        for k, f in fields.items():
            if k not in m:
                raise SchemaError(
                    f"Data field {k!r} is not an argument of the log-density."
                )
            m[k] = replace(f, name=k)
        return replace(self, data_fields=tuple(m[f.name] for f in self.data_fields))

    def derive(
        self, name: str, func: Callable[[Mapping[str, Any]], Any], *, doc: str = ""
    ) -> "ModelSpec":
        """Return a new spec with a post-sampling derived quantity."""
        return replace(
            self, derived=self.derived + (DerivedSpec(name=name, func=func, doc=doc),)
        )

    def with_gradient(self, func: Gradient) -> "ModelSpec":
        """Attach d(log-density)/d(parameter) as a function with the same signature."""
        return replace(self, gradient_func=func)

    def check(self, func: Callable[[Mapping[str, Any]], None]) -> "ModelSpec":
        """Add a cross-field data check; func(dataset) raises ValidationError."""
        return replace(self, checks=self.checks + (func,))

    # ---- introspection ----
    @property
    def param_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.params)

    @property
    def data_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.data_fields)

    @property
    def derived_names(self) -> Tuple[str, ...]:
        return tuple(d.name for d in self.derived)

    @property
    def has_gradient(self) -> bool:
        return self.gradient_func is not None

    def param(self, name: str) -> ParameterSpec:
        for p in self.params:
            if p.name == name:
                return p
        raise KeyError(name)

    def derived_spec(self, name: str) -> DerivedSpec:
        for d in self.derived:
            if d.name == name:
                return d
        raise KeyError(name)

    def parameter_shapes(self, dataset: Mapping[str, Any]) -> Dict[str, Tuple[int, ...]]:
        """Resolve symbolic parameter shapes against a dataset."""
        return {p.name: _resolve_shape(p.shape, dataset) for p in self.params}

    def layout(self, dataset: Mapping[str, Any]) -> ParameterLayout:
        return ParameterLayout(self.params, self.parameter_shapes(dataset))

    # ---- data ----
    def dataset(self, **values: Any) -> Dataset:
        """Build a Dataset from keyword values and validate it."""
        ds = Dataset(values)
        self.validate(ds)
        return ds

    def validate(self, dataset: Any) -> None:
        """Raise ValidationError unless dataset satisfies the declared schema."""
        ds = as_dataset(dataset)
        for f in self.data_fields:
            if f.name not in ds:
                raise ValidationError(f"Missing data field {f.name!r}.")

        # Fields used as dimensions must be validated first.
        for f in self.data_fields:
            v = ds[f.name]
            try:
                arr = np.asarray(v, dtype=float)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Data field {f.name!r} is not numeric.") from e
            expected = _resolve_shape(f.shape, ds)
            if arr.shape != expected:
                raise ValidationError(
                    f"Data field {f.name!r} has shape {arr.shape}; expected {expected}."
                )
            bad = ~np.isfinite(arr)
            if np.any(bad):
                raise ValidationError(
                    f"Data field {f.name!r} has a non-finite value at index {_first_index(bad)}."
                )
            if f.kind == "int":
                bad = arr != np.round(arr)
                if np.any(bad):
                    raise ValidationError(
                        f"Data field {f.name!r} must be integral; "
                        f"non-integer value at index {_first_index(bad)}."
                    )
            lo, hi = f.bounds
            if lo is not None:
                lo_arr, lo_label = _bound_values(lo, ds, arr.shape, f.name)
                bad = arr < lo_arr
                if np.any(bad):
                    idx = _first_index(bad)
                    raise ValidationError(
                        f"Data field {f.name!r} violates lower bound {lo_label} at index "
                        f"{idx}: {_at(arr, idx)} < {_at(lo_arr, idx)}."
                    )
            if hi is not None:
                hi_arr, hi_label = _bound_values(hi, ds, arr.shape, f.name)
                bad = arr > hi_arr
                if np.any(bad):
                    idx = _first_index(bad)
                    raise ValidationError(
                        f"Data field {f.name!r} violates upper bound {hi_label} at index "
                        f"{idx}: {_at(arr, idx)} > {_at(hi_arr, idx)}."
                    )
        for check in self.checks:
            check(ds)

    # ---- evaluation ----
    def _data_kwargs(self, dataset: Mapping[str, Any]) -> Dict[str, Any]:
        return {n: dataset[n] for n in self.data_names}

    def log_density(self, params: Mapping[str, Any], dataset: Mapping[str, Any]) -> float:
        """Unnormalized log-posterior at params; -inf outside the open domain.

        Values on a finite bound, NaN results and +inf (a point mass, not a
        density) all evaluate to -inf.
        """
        missing = [n for n in self.param_names if n not in params]
        if missing:
            raise KeyError(f"Missing parameter values for: {missing}")
        for p in self.params:
            if not p.contains(params[p.name]):
                return -math.inf
        args = [params[n] for n in self.param_names]
        lp = self.log_density_func(*args, **self._data_kwargs(dataset))
        lp = float(lp)
        return lp if math.isfinite(lp) else -math.inf

    def gradient(self, params: Mapping[str, Any], dataset: Mapping[str, Any]) -> Dict[str, Any]:
        """Gradient of the log-density w.r.t. each parameter (constrained space)."""
        if self.gradient_func is None:
            raise TypeError(f"Model {self.name!r} has no gradient function.")
        args = [params[n] for n in self.param_names]
        g = self.gradient_func(*args, **self._data_kwargs(dataset))
        missing = [n for n in self.param_names if n not in g]
        if missing:
            raise KeyError(f"Gradient is missing entries for: {missing}")
        return dict(g)

    # ---- schema checks ----
    def _check_schema(self) -> None:
        param_names, data_names = infer_signature_names(self.log_density_func)
        declared_params = [p.name for p in self.params]
        declared_data = [f.name for f in self.data_fields]

        for names, what in ((declared_params, "parameter"), (declared_data, "data field")):
            dupes = sorted({n for n in names if names.count(n) > 1})
            if dupes:
                raise SchemaError(f"Duplicate {what} names: {dupes}")
        clash = sorted(set(declared_params) & set(declared_data))
        if clash:
            raise SchemaError(f"Names declared as both parameter and data: {clash}")

        for n in param_names + data_names:
            if n not in declared_params and n not in declared_data:
                raise SchemaError(
                    f"Log-density references undeclared name {n!r}."
                )
        if tuple(declared_params) != param_names:
            raise SchemaError(
                f"Declared parameters {tuple(declared_params)} do not match the "
                f"log-density's positional arguments {param_names}."
            )
        unused = [n for n in declared_data if n not in data_names]
        if unused:
            raise SchemaError(
                f"Data fields {unused} are not keyword-only arguments of the log-density."
            )

        int_fields = {f.name for f in self.data_fields if f.kind == "int"}
        for p in self.params:
            for d in p.shape:
                if isinstance(d, str) and d not in int_fields:
                    raise SchemaError(
                        f"Shape of parameter {p.name!r} refers to {d!r}, "
                        "which is not a declared integer data field."
                    )
        for f in self.data_fields:
            for d in f.shape:
                if isinstance(d, str) and d not in int_fields:
                    raise SchemaError(
                        f"Shape of data field {f.name!r} refers to {d!r}, "
                        "which is not a declared integer data field."
                    )
            for b in f.bounds:
                if isinstance(b, str) and b not in declared_data:
                    raise SchemaError(
                        f"Bound of data field {f.name!r} refers to undeclared field {b!r}."
                    )

        seen = set(declared_params)
        for d in self.derived:
            if d.name in seen:
                raise SchemaError(
                    f"Derived name {d.name!r} conflicts with an existing parameter or derived quantity."
                )
            seen.add(d.name)


def _resolve_shape(shape: Sequence[Any], dataset: Mapping[str, Any]) -> Tuple[int, ...]:
    out = []
    for d in shape:
        if isinstance(d, str):
            if d not in dataset:
                raise ValidationError(f"Missing data field {d!r} used as a dimension.")
            v = np.asarray(dataset[d])
            if (
                v.shape != ()
                or not np.isfinite(float(v))
                or float(v) != round(float(v))
                or float(v) < 0
            ):
                raise ValidationError(
                    f"Data field {d!r} is used as a dimension and must be a non-negative integer scalar."
                )
            out.append(int(v))
        else:
            out.append(int(d))
    return tuple(out)


def _bound_values(
    bound: Any, dataset: Mapping[str, Any], shape: Tuple[int, ...], owner: str
) -> Tuple[np.ndarray, str]:
    if isinstance(bound, str):
        ref = np.asarray(dataset[bound], dtype=float)
        try:
            return np.broadcast_to(ref, shape), repr(bound)
        except ValueError as e:
            raise ValidationError(
                f"Bound {bound!r} of data field {owner!r} has shape {ref.shape}, "
                f"which does not broadcast to {shape}."
            ) from e
    return np.full(shape, float(bound)), f"{float(bound):g}"


def _first_index(mask: np.ndarray) -> Any:
    idx = tuple(int(i) for i in np.argwhere(mask)[0])
    if len(idx) == 0:
        return ()
    return idx[0] if len(idx) == 1 else idx


def _at(arr: np.ndarray, idx: Any) -> Any:
    v = arr[idx] if arr.shape != () else arr
    v = float(v)
    return int(v) if v == round(v) else v
