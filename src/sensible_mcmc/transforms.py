"""Bijections between an unconstrained flat vector and bounded parameters.

Samplers only ever see the unconstrained vector ``z``. Each parameter block is
mapped back with

- no bounds:      x = z
- lower only:     x = lo + exp(z)
- upper only:     x = hi - exp(z)
- both bounds:    x = lo + (hi - lo) * logistic(z)

so every emitted draw satisfies its declared bounds by construction. The log
absolute Jacobian of the map is added to the target density.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
from scipy.special import expit, log_expit, logit

from .util import component_names, prod

__all__ = ["Block", "ParameterLayout"]


@dataclass(frozen=True)
class Block:
    name: str
    shape: Tuple[int, ...]
    start: int
    stop: int
    lower: Optional[float]
    upper: Optional[float]

    @property
    def size(self) -> int:
        return self.stop - self.start

    def forward(self, z: np.ndarray) -> Tuple[np.ndarray, float, np.ndarray, np.ndarray]:
        """Return (x, log_jac, dx/dz, dlog_jac/dz) for this block's slice of z."""
        lo, hi = self.lower, self.upper
        if lo is None and hi is None:
            return z.copy(), 0.0, np.ones_like(z), np.zeros_like(z)
        if hi is None or lo is None:
            e = np.exp(z)
            if hi is None:
                x = lo + e
                dx = e
            else:
                x = hi - e
                dx = -e
            return x, float(np.sum(z)), dx, np.ones_like(z)

        width = hi - lo
        s = expit(z)
        x = np.clip(lo + width * s, lo, hi)
        log_jac = float(np.sum(np.log(width) + log_expit(z) + log_expit(-z)))
        return x, log_jac, width * s * (1.0 - s), 1.0 - 2.0 * s

    def inverse(self, x: np.ndarray) -> np.ndarray:
        lo, hi = self.lower, self.upper
        x = np.asarray(x, dtype=float).reshape(-1)
        if lo is None and hi is None:
            return x.copy()
        if hi is None:
            return np.log(x - lo)
        if lo is None:
            return np.log(hi - x)
        return logit((x - lo) / (hi - lo))


class ParameterLayout:
    """Flat unconstrained layout for a set of parameter specs with resolved shapes."""

    def __init__(self, specs: Any, shapes: Mapping[str, Tuple[int, ...]]):
        blocks: List[Block] = []
        start = 0
        for spec in specs:
            shape = tuple(int(d) for d in shapes[spec.name])
            size = prod(shape)
            blocks.append(
                Block(
                    name=spec.name,
                    shape=shape,
                    start=start,
                    stop=start + size,
                    lower=spec.lower,
                    upper=spec.upper,
                )
            )
            start += size
        self.blocks: Tuple[Block, ...] = tuple(blocks)
        self.size = start

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(b.name for b in self.blocks)

    @property
    def shapes(self) -> Dict[str, Tuple[int, ...]]:
        return {b.name: b.shape for b in self.blocks}

    def component_names(self) -> List[str]:
        out: List[str] = []
        for b in self.blocks:
            out.extend(component_names(b.name, b.shape))
        return out

    def constrain(self, z: np.ndarray) -> Tuple[Dict[str, Any], float]:
        """Map z to a parameter dict; also return the summed log Jacobian."""
        z = np.asarray(z, dtype=float)
        params: Dict[str, Any] = {}
        log_jac = 0.0
        with np.errstate(over="ignore", invalid="ignore"):
            for b in self.blocks:
                x, lj, _, _ = b.forward(z[b.start : b.stop])
                params[b.name] = _shaped(x, b.shape)
                log_jac += lj
        return params, log_jac

    def constrain_with_grad(
        self, z: np.ndarray
    ) -> Tuple[Dict[str, Any], float, List[Tuple[np.ndarray, np.ndarray]]]:
        """Like constrain(), also returning (dx/dz, dlog_jac/dz) per block."""
        z = np.asarray(z, dtype=float)
        params: Dict[str, Any] = {}
        log_jac = 0.0
        parts = []
        with np.errstate(over="ignore", invalid="ignore"):
            for b in self.blocks:
                x, lj, dx, dlj = b.forward(z[b.start : b.stop])
                params[b.name] = _shaped(x, b.shape)
                log_jac += lj
                parts.append((dx, dlj))
        return params, log_jac, parts

    def chain_rule(
        self,
        grad_x: Mapping[str, Any],
        parts: List[Tuple[np.ndarray, np.ndarray]],
    ) -> np.ndarray:
        """Gradient w.r.t. z from the gradient w.r.t. the constrained parameters."""
        out = np.empty(self.size, dtype=float)
        for b, (dx, dlj) in zip(self.blocks, parts):
            g = np.asarray(grad_x[b.name], dtype=float).reshape(-1)
            out[b.start : b.stop] = g * dx + dlj
        return out

    def unconstrain(self, params: Mapping[str, Any]) -> np.ndarray:
        z = np.empty(self.size, dtype=float)
        for b in self.blocks:
            z[b.start : b.stop] = b.inverse(params[b.name])
        return z

    def constrain_many(self, zs: np.ndarray) -> Dict[str, np.ndarray]:
        """Vectorized constrain() over rows of zs; returns name -> (T,) + shape."""
        zs = np.asarray(zs, dtype=float)
        out: Dict[str, np.ndarray] = {}
        with np.errstate(over="ignore", invalid="ignore"):
            for b in self.blocks:
                x, _, _, _ = b.forward(zs[:, b.start : b.stop])
                out[b.name] = x.reshape((zs.shape[0],) + b.shape)
        return out


def _shaped(x: np.ndarray, shape: Tuple[int, ...]) -> Any:
    if shape == ():
        return float(x[0])
    return x.reshape(shape)
