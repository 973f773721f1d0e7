"""Binary file I/O for raw array data, addressed by a running byte displacement.

A :class:`NixFile` keeps the current displacement ``disp``; the sequential
operations read or write at ``disp`` and advance it by the size of the global
block they cover, while the ``*_at`` operations use an explicit position and
leave ``disp`` untouched.
"""

from __future__ import annotations

import math
import os
from collections.abc import Iterator, Sequence
from typing import BinaryIO

import numpy as np

_ORDERS = ("C", "F")


def _as_array(data) -> np.ndarray:
    if isinstance(data, np.ndarray):
        return data
    if isinstance(data, (bytes, bytearray, memoryview)):
        return np.frombuffer(bytes(data), dtype=np.uint8)
    return np.asarray(data)


def _pack_byte(elembyte: int, packbyte: int) -> int:
    pbyte = elembyte if packbyte < 0 else packbyte
    if pbyte == 0:
        raise ValueError("pack byte must not be zero")
    return pbyte


def _check_order(order: str) -> str:
    if order not in _ORDERS:
        raise ValueError(f"No such order available: {order!r}")
    return order


def _check_subarray(
    gshape: Sequence[int], lshape: Sequence[int], offset: Sequence[int]
) -> tuple[tuple[int, ...], tuple[int, ...], tuple[int, ...]]:
    gs = tuple(int(n) for n in gshape)
    ls = tuple(int(n) for n in lshape)
    os_ = tuple(int(n) for n in offset)
    if not gs:
        raise ValueError("subarray needs at least one dimension")
    if not (len(gs) == len(ls) == len(os_)):
        raise ValueError("gshape, lshape and offset must have the same length")
    for g, l, o in zip(gs, ls, os_):
        if l < 0 or o < 0 or o + l > g:
            raise ValueError(
                f"subarray out of range: shape {ls} at offset {os_} in {gs}"
            )
    return gs, ls, os_


def _runs(
    gshape: tuple[int, ...],
    lshape: tuple[int, ...],
    offset: tuple[int, ...],
    order: str,
) -> Iterator[tuple[int, tuple]]:
    """Yield (element offset in file, local index) for each contiguous run."""
    if 0 in lshape:
        return
    if order == "C":
        outer = lshape[:-1]
        for idx in np.ndindex(*outer):
            start = tuple(o + i for o, i in zip(offset[:-1], idx)) + (offset[-1],)
            linear = int(np.ravel_multi_index(start, gshape, order="C"))
            yield linear, tuple(idx) + (slice(None),)
    else:
        outer = lshape[1:]
        for idx in np.ndindex(*outer):
            start = (offset[0],) + tuple(o + i for o, i in zip(offset[1:], idx))
            linear = int(np.ravel_multi_index(start, gshape, order="F"))
            yield linear, (slice(None),) + tuple(idx)


class NixFile:
    """An open data file together with its current byte displacement."""

    def __init__(self, handle: BinaryIO, disp: int = 0) -> None:
        self._handle = handle
        self.disp = disp

    def __enter__(self) -> "NixFile":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def close(self) -> None:
        """Close the underlying file."""
        self._handle.close()

    # low level helpers

    def _read_at(self, pos: int, size: int) -> bytes:
        self._handle.seek(pos)
        data = self._handle.read(size)
        if len(data) != size:
            raise EOFError(
                f"expected {size} bytes at offset {pos}, got {len(data)}"
            )
        return data

    def _write_at(self, pos: int, data: bytes) -> None:
        self._handle.seek(pos)
        self._handle.write(data)

    # non-collective single access

    def read_single(self, size: int) -> bytes:
        """Read ``size`` bytes at the current displacement and advance it."""
        data = self._read_at(self.disp, size)
        self.disp += size
        return data

    def write_single(self, data) -> int:
        """Write raw bytes of ``data`` at the current displacement and advance it."""
        raw = _as_array(data).tobytes()
        self._write_at(self.disp, raw)
        self.disp += len(raw)
        return len(raw)

    # contiguous access

    def read_contiguous(self, size: int, dtype, packbyte: int = -1) -> np.ndarray:
        """Read ``size`` elements of ``dtype`` at the displacement and advance it."""
        dt = np.dtype(dtype)
        nbytes = size * dt.itemsize
        pbyte = _pack_byte(dt.itemsize, packbyte)
        if nbytes % pbyte != 0:
            raise ValueError("data size is not a multiple of the pack byte")
        raw = self._read_at(self.disp, nbytes)
        self.disp += nbytes
        return np.frombuffer(raw, dtype=dt).copy()

    def write_contiguous(self, data, packbyte: int = -1) -> int:
        """Write ``data`` at the displacement, advance it and return the byte count."""
        arr = _as_array(data)
        raw = arr.tobytes()
        pbyte = _pack_byte(arr.dtype.itemsize, packbyte)
        if len(raw) % pbyte != 0:
            raise ValueError("data size is not a multiple of the pack byte")
        self._write_at(self.disp, raw)
        self.disp += len(raw)
        return len(raw)

    def read_contiguous_at(self, disp: int, size: int, dtype) -> np.ndarray:
        """Read ``size`` elements of ``dtype`` at byte position ``disp``."""
        dt = np.dtype(dtype)
        raw = self._read_at(disp, size * dt.itemsize)
        return np.frombuffer(raw, dtype=dt).copy()

    def write_contiguous_at(self, disp: int, data) -> int:
        """Write ``data`` at byte position ``disp`` and return the byte count."""
        raw = _as_array(data).tobytes()
        self._write_at(disp, raw)
        return len(raw)

    # subarray access

    def read_subarray(
        self,
        gshape: Sequence[int],
        lshape: Sequence[int],
        offset: Sequence[int],
        dtype,
        order: str = "C",
    ) -> np.ndarray:
        """Read a block of a global array stored at the displacement.

        The displacement advances past the whole global array.
        """
        _check_order(order)
        gs, ls, os_ = _check_subarray(gshape, lshape, offset)
        dt = np.dtype(dtype)
        out = np.empty(ls, dtype=dt, order=order)
        run = ls[-1] if order == "C" else ls[0]
        for linear, index in _runs(gs, ls, os_, order):
            raw = self._read_at(self.disp + linear * dt.itemsize, run * dt.itemsize)
            out[index] = np.frombuffer(raw, dtype=dt)
        self.disp += math.prod(gs) * dt.itemsize
        return out

    def write_subarray(
        self,
        data,
        gshape: Sequence[int],
        offset: Sequence[int],
        order: str = "C",
    ) -> int:
        """Write ``data`` as a block of a global array stored at the displacement.

        The displacement advances past the whole global array, whose size in
        bytes is returned.
        """
        _check_order(order)
        arr = np.asarray(data)
        gs, ls, os_ = _check_subarray(gshape, arr.shape, offset)
        itemsize = arr.dtype.itemsize
        for linear, index in _runs(gs, ls, os_, order):
            self._write_at(self.disp + linear * itemsize, arr[index].tobytes())
        total = math.prod(gs) * itemsize
        self.disp += total
        return total


def open_file(filename, mode: str) -> NixFile:
    """Open ``filename`` for reading ('r'), writing ('w') or appending ('a')."""
    if not mode:
        raise ValueError("No such mode available")
    kind = mode[0]
    if kind == "r":
        return NixFile(open(filename, "rb"), 0)
    if kind == "w":
        if os.path.exists(filename):
            os.remove(filename)
        return NixFile(open(filename, "wb"), 0)
    if kind == "a":
        fd = os.open(filename, os.O_WRONLY | os.O_CREAT, 0o666)
        handle = open(fd, "wb")
        size = handle.seek(0, os.SEEK_END)
        return NixFile(handle, size)
    raise ValueError(f"No such mode available: {mode!r}")