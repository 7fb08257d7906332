from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping

import numpy as np

__all__ = ["Dataset", "as_dataset"]


class Dataset(Mapping[str, np.ndarray]):
    """Immutable mapping of data-field name -> read-only numpy array.

    Values are copied on construction so callers cannot mutate a dataset
    that a run is reading from.
    """

    def __init__(self, values: Mapping[str, Any]):
        items: Dict[str, np.ndarray] = {}
        for name, v in values.items():
            arr = np.array(v, copy=True)
            if arr.dtype == object:
                raise TypeError(f"Data field {name!r} is not numeric.")
            arr.setflags(write=False)
            items[str(name)] = arr
        self._items = items

    def __getitem__(self, key: str) -> np.ndarray:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        parts = []
        for k, v in self._items.items():
            if v.shape == ():
                parts.append(f"{k}={v.item()!r}")
            else:
                parts.append(f"{k}=<{v.dtype}{list(v.shape)}>")
        return "Dataset(" + ", ".join(parts) + ")"

    def as_dict(self) -> Dict[str, np.ndarray]:
        """Return a plain dict view (arrays stay read-only)."""
        return dict(self._items)

    def replace(self, **values: Any) -> "Dataset":
        """Return a new Dataset with some fields replaced or added."""
        merged: Dict[str, Any] = dict(self._items)
        merged.update(values)
        return Dataset(merged)


def as_dataset(data: Any) -> Dataset:
    """Coerce a mapping (or Dataset) into a Dataset."""
    if isinstance(data, Dataset):
        return data
    if not isinstance(data, Mapping):
        raise TypeError(
            f"Data must be a mapping of field name -> values; got {type(data).__name__}."
        )
    return Dataset(data)
