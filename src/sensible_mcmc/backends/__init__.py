"""Sampler backend implementations + registry."""

from __future__ import annotations

from typing import Dict

from ..errors import SamplingError
from .common import Backend, BackendResult, Target
from .hmc import HMCBackend
from .metropolis import MetropolisBackend
from .pymc_backend import PyMCBackend

_BACKENDS: Dict[str, Backend] = {
    "metropolis": MetropolisBackend(),
    "hmc": HMCBackend(),
    "nuts": PyMCBackend(),
}


def get_backend(name: str) -> Backend:
    """Return a backend implementation by name."""
    try:
        return _BACKENDS[name]
    except KeyError as e:
        raise SamplingError(
            f"Unknown backend {name!r}. Available: {AVAILABLE_BACKENDS + ('auto',)}"
        ) from e


def resolve_backend(name: str, *, has_gradient: bool) -> Backend:
    """Resolve 'auto' (nuts when a gradient exists, else metropolis) and check needs."""
    if name == "auto":
        name = "nuts" if has_gradient else "metropolis"
    backend = get_backend(name)
    if backend.requires_gradient and not has_gradient:
        raise SamplingError(
            f"Backend {name!r} needs a gradient; attach one with ModelSpec.with_gradient(...)."
        )
    return backend


AVAILABLE_BACKENDS = tuple(_BACKENDS.keys())

__all__ = [
    "AVAILABLE_BACKENDS",
    "Backend",
    "BackendResult",
    "Target",
    "get_backend",
    "resolve_backend",
]
