from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Tuple

import numpy as np

from .data import Dataset
from .params import DerivedSpec
from .util import component_names


@dataclass(frozen=True)
class Chain:
    """One Markov chain: per-parameter draw arrays of shape (num_iterations,) + shape.

    The first ``num_warmup`` iterations are warm-up draws; they stay in the
    chain for inspection but are skipped by default.
    """

    index: int
    draws: Dict[str, np.ndarray]
    num_warmup: int
    stats: Dict[str, Any] = field(default_factory=dict)
    _derived_cache: Dict[str, np.ndarray] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        for v in self.draws.values():
            v.setflags(write=False)

    @property
    def num_iterations(self) -> int:
        first = next(iter(self.draws.values()))
        return int(first.shape[0])

    def __len__(self) -> int:
        return self.num_iterations

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        for i in range(self.num_iterations):
            yield self.draw(i)

    def is_warmup(self, i: int) -> bool:
        return 0 <= i < self.num_warmup

    def draw(self, i: int) -> Dict[str, Any]:
        """The Draw at iteration i: parameter name -> value."""
        out: Dict[str, Any] = {}
        for name, arr in self.draws.items():
            v = arr[i]
            out[name] = float(v) if np.ndim(v) == 0 else v
        return out

    def values(self, name: str, *, discard_warmup: bool = True) -> np.ndarray:
        arr = self.draws[name]
        return arr[self.num_warmup :] if discard_warmup else arr

    def derived(self, spec: DerivedSpec, *, discard_warmup: bool = True) -> np.ndarray:
        """Values of a derived quantity for every draw, computed once and cached."""
        arr = self._derived_cache.get(spec.name)
        if arr is None:
            vals = [np.asarray(spec.func(d), dtype=float) for d in self]
            arr = np.stack(vals, axis=0) if vals else np.empty((0,))
            arr.setflags(write=False)
            self._derived_cache[spec.name] = arr
        return arr[self.num_warmup :] if discard_warmup else arr


@dataclass(frozen=True)
class RunResult:
    """Everything produced by one call to run(): immutable once returned."""

    spec: Any  # ModelSpec
    dataset: Dataset
    chains: Tuple[Chain, ...]
    num_iterations: int
    num_warmup: int
    seed: int
    backend: str = ""
    param_shapes: Dict[str, Tuple[int, ...]] = field(default_factory=dict)

    @property
    def num_chains(self) -> int:
        return len(self.chains)

    @property
    def param_names(self) -> Tuple[str, ...]:
        return tuple(self.param_shapes.keys())

    @property
    def derived_names(self) -> Tuple[str, ...]:
        return tuple(self.spec.derived_names)

    @property
    def stats(self) -> List[Dict[str, Any]]:
        return [c.stats for c in self.chains]

    def has(self, name: str) -> bool:
        return name in self.param_shapes or name in self.derived_names

    def draws(self, name: str, *, discard_warmup: bool = True) -> np.ndarray:
        """Draws of a parameter or derived quantity, shape (chains, draws) + shape."""
        if name in self.param_shapes:
            per_chain = [c.values(name, discard_warmup=discard_warmup) for c in self.chains]
        elif name in self.derived_names:
            spec = self.spec.derived_spec(name)
            per_chain = [c.derived(spec, discard_warmup=discard_warmup) for c in self.chains]
        else:
            raise KeyError(name)
        return np.stack(per_chain, axis=0)

    def pooled(self, name: str, *, discard_warmup: bool = True) -> np.ndarray:
        """Draws pooled across chains, shape (chains * draws,) + shape."""
        arr = self.draws(name, discard_warmup=discard_warmup)
        return arr.reshape((arr.shape[0] * arr.shape[1],) + arr.shape[2:])

    def component_draws(
        self, name: str, *, discard_warmup: bool = True
    ) -> Dict[str, np.ndarray]:
        """Scalar components of name -> (chains, draws) arrays."""
        arr = self.draws(name, discard_warmup=discard_warmup)
        shape = arr.shape[2:]
        if shape == ():
            return {name: arr}
        labels = component_names(name, shape)
        flat = arr.reshape(arr.shape[:2] + (-1,))
        return {lab: flat[:, :, j] for j, lab in enumerate(labels)}

    def shape_of(self, name: str) -> Tuple[int, ...]:
        if name in self.param_shapes:
            return self.param_shapes[name]
        return tuple(self.draws(name).shape[2:])

    def summary(self, digits: int | str = "auto") -> str:
        """Human-readable posterior summary (post-warm-up, pooled across chains)."""
        from .summary import summarize

        head = (
            f"RunResult(model={self.spec.name!r}, backend={self.backend!r}, "
            f"chains={self.num_chains}, iterations={self.num_iterations}, "
            f"warmup={self.num_warmup}, seed={self.seed})"
        )
        return head + "\n" + summarize(self).table(digits=digits)
