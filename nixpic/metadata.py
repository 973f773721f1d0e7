"""Metadata and attribute records kept in a JSON-compatible dictionary.

Each entry describes one dataset stored in a data file: its data type code
(``i4``, ``i8``, ``f4`` or ``f8``), a description, its byte offset in the
file, its size in bytes and its shape. Attributes are small entries whose
value is stored directly under the ``"data"`` key.
"""

from __future__ import annotations

from collections.abc import MutableMapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

_DTYPES: dict[str, np.dtype] = {
    "i4": np.dtype(np.int32),
    "i8": np.dtype(np.int64),
    "f4": np.dtype(np.float32),
    "f8": np.dtype(np.float64),
}


@dataclass(frozen=True)
class Metadata:
    """Description of one dataset entry."""

    dtype: str
    desc: str
    disp: int
    size: int
    ndim: int
    shape: list[int] = field(default_factory=list)


def put_metadata(
    obj: MutableMapping[str, Any],
    name: str,
    dtype: str,
    desc: str,
    disp: int,
    size: int,
    shape: Sequence[int] | None = None,
) -> None:
    """Store metadata for ``name`` in ``obj``; a missing shape means a scalar."""
    dims = [1] if shape is None else [int(n) for n in shape]
    entry = obj.setdefault(name, {})
    entry["datatype"] = dtype
    entry["description"] = desc
    entry["offset"] = int(disp)
    entry["size"] = int(size)
    entry["ndim"] = len(dims)
    entry["shape"] = dims


def get_metadata(obj: MutableMapping[str, Any], name: str) -> Metadata:
    """Return the metadata stored for ``name``; raise KeyError if incomplete."""
    entry = obj[name]
    ndim = int(entry["ndim"])
    shape = [int(n) for n in entry["shape"]]
    if len(shape) < ndim:
        raise ValueError(
            f"shape of {name!r} has {len(shape)} entries, expected {ndim}"
        )
    return Metadata(
        dtype=str(entry["datatype"]),
        desc=str(entry["description"]),
        disp=int(entry["offset"]),
        size=int(entry["size"]),
        ndim=ndim,
        shape=shape[:ndim],
    )


def _infer_dtype(arr: np.ndarray) -> str:
    kind = arr.dtype.kind
    if kind in "iub":
        return "i4" if arr.dtype.itemsize <= 4 else "i8"
    if kind == "f":
        return "f4" if arr.dtype.itemsize == 4 else "f8"
    raise TypeError(f"unsupported attribute type: {arr.dtype}")


def _convert(arr: np.ndarray, code: str) -> np.ndarray:
    target = _DTYPES[code]
    if target.kind == "i":
        if arr.dtype.kind == "f":
            raise TypeError(f"cannot store floating-point data as {code}")
        info = np.iinfo(target)
        if arr.size and (arr.min() < info.min or arr.max() > info.max):
            raise OverflowError(f"value out of range for {code}")
    return arr.astype(target)


def put_attribute(
    obj: MutableMapping[str, Any],
    name: str,
    disp: int,
    data,
    dtype: str | None = None,
) -> None:
    """Store a scalar or one-dimensional attribute under ``name``.

    The type code is taken from ``dtype`` or inferred from ``data``.
    """
    if isinstance(data, (str, bytes)):
        raise TypeError("attribute data must be numeric")
    arr = np.asarray(data)
    if arr.ndim > 1:
        raise ValueError("attribute data must be a scalar or one-dimensional")
    code = _infer_dtype(arr) if dtype is None else dtype
    if code not in _DTYPES:
        raise ValueError(f"No such datatype available: {code!r}")
    converted = _convert(arr, code)
    itemsize = _DTYPES[code].itemsize
    if converted.ndim == 0:
        put_metadata(obj, name, code, "", disp, itemsize)
        obj[name]["data"] = converted.item()
    else:
        length = converted.shape[0]
        put_metadata(obj, name, code, "", disp, itemsize * length, [length])
        obj[name]["data"] = converted.tolist()


def get_attribute(obj: MutableMapping[str, Any], name: str) -> tuple[int, Any]:
    """Return ``(disp, data)`` of the attribute ``name``."""
    meta = get_metadata(obj, name)
    value = obj[name]["data"]
    cast = int if meta.dtype.startswith("i") else float
    if isinstance(value, list):
        return meta.disp, [cast(v) for v in value]
    return meta.disp, cast(value)