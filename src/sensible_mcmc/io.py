"""Draws as a long polars table: one row per (chain, iteration)."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List

import numpy as np
import polars as pl

from .util import component_names

__all__ = ["draws_frame", "write_draws", "read_draws"]

INDEX_COLUMNS = ("chain", "iteration", "warmup")


def draws_frame(run_result: Any, *, include_derived: bool = False) -> pl.DataFrame:
    """All draws (warm-up included and flagged) with one column per scalar component."""
    names = list(run_result.param_names)
    if include_derived:
        names += list(run_result.derived_names)

    frames: List[pl.DataFrame] = []
    for chain in run_result.chains:
        T = chain.num_iterations
        cols: Dict[str, Any] = {
            "chain": np.full(T, chain.index, dtype=np.int64),
            "iteration": np.arange(T, dtype=np.int64),
            "warmup": np.arange(T) < chain.num_warmup,
        }
        for name in names:
            if name in chain.draws:
                arr = np.asarray(chain.draws[name], dtype=float)
            else:
                arr = chain.derived(run_result.spec.derived_spec(name), discard_warmup=False)
            flat = arr.reshape((T, -1))
            for j, label in enumerate(component_names(name, arr.shape[1:])):
                cols[label] = flat[:, j]
        frames.append(pl.DataFrame(cols))
    return pl.concat(frames, how="vertical")


def write_draws(run_result: Any, path: str | Path, *, include_derived: bool = False) -> Path:
    """Write draws to ``.csv`` or ``.parquet`` (chosen by suffix)."""
    path = Path(path)
    df = draws_frame(run_result, include_derived=include_derived)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df.write_csv(path)
    elif suffix in (".parquet", ".pq"):
        df.write_parquet(path)
    else:
        raise ValueError(f"Unsupported draws format {path.suffix!r}; use .csv or .parquet.")
    return path


_COMPONENT = re.compile(r"^(?P<name>[^\[]+)(?:\[(?P<idx>[0-9,]+)\])?$")


def read_draws(path: str | Path) -> Dict[str, np.ndarray]:
    """Read draws written by write_draws.

    Returns name -> array of shape (chains, iterations) + shape, plus
    ``"warmup"`` -> bool array (chains, iterations).
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pl.read_csv(path)
    elif suffix in (".parquet", ".pq"):
        df = pl.read_parquet(path)
    else:
        raise ValueError(f"Unsupported draws format {path.suffix!r}; use .csv or .parquet.")

    missing = [c for c in INDEX_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing columns {missing}.")
    df = df.sort(["chain", "iteration"])
    chains = df["chain"].unique().sort().to_list()
    m = len(chains)
    T = df.height // m if m else 0

    groups: Dict[str, List[tuple]] = {}
    for col in df.columns:
        if col in INDEX_COLUMNS:
            continue
        match = _COMPONENT.match(col)
        if match is None:
            raise ValueError(f"Unrecognized draws column {col!r}.")
        idx = match.group("idx")
        key = tuple(int(i) for i in idx.split(",")) if idx else ()
        groups.setdefault(match.group("name"), []).append((key, col))

    out: Dict[str, np.ndarray] = {
        "warmup": df["warmup"].to_numpy().astype(bool).reshape((m, T)),
    }
    for name, items in groups.items():
        if items[0][0] == ():
            out[name] = df[items[0][1]].to_numpy().astype(float).reshape((m, T))
            continue
        shape = tuple(max(k[d] for k, _ in items) + 1 for d in range(len(items[0][0])))
        arr = np.empty((m, T) + shape, dtype=float)
        for key, col in items:
            arr[(slice(None), slice(None)) + key] = df[col].to_numpy().reshape((m, T))
        out[name] = arr
    return out
