"""Packing of coordinates, fields and particles into a byte buffer for output.

Every method returns the address just past the data it covers. When the
buffer is ``None`` nothing is written and only the address is computed, so
a first pass can size the buffer.
"""

from __future__ import annotations

import numpy as np

_F64 = np.dtype(np.float64)


def _put(buffer, address: int, raw: bytes) -> int:
    if buffer is not None:
        end = address + len(raw)
        if address < 0 or end > len(buffer):
            raise ValueError(
                f"buffer of {len(buffer)} bytes too small for {end} bytes"
            )
        memoryview(buffer)[address:end] = raw
    return len(raw)


class XtensorPacker3D:
    """Packs 3D simulation data as native 64-bit floats."""

    def pack_coordinate(self, lb: int, ub: int, x, buffer, address: int) -> int:
        """Pack ``x[lb..ub]`` (inclusive)."""
        size = ub - lb + 1
        count = _F64.itemsize * size + address
        if buffer is None:
            return count
        coord = np.ascontiguousarray(np.asarray(x)[lb : ub + 1], dtype=_F64)
        _put(buffer, address, coord.tobytes())
        return count

    def pack_field(self, x, bounds, buffer, address: int) -> int:
        """Pack the interior of field ``x`` given by the bounds of ``bounds``.

        ``bounds`` has attributes ``lbz``, ``ubz``, ``lby``, ``uby``, ``lbx``
        and ``ubx``; trailing dimensions of ``x`` are packed whole.
        """
        arr = np.asarray(x)
        size = (
            (bounds.ubz - bounds.lbz + 1)
            * (bounds.uby - bounds.lby + 1)
            * (bounds.ubx - bounds.lbx + 1)
        )
        for extent in arr.shape[3:]:
            size *= extent
        count = _F64.itemsize * size + address
        if buffer is None:
            return count
        view = arr[
            bounds.lbz : bounds.ubz + 1,
            bounds.lby : bounds.uby + 1,
            bounds.lbx : bounds.ubx + 1,
            ...,
        ]
        _put(buffer, address, np.ascontiguousarray(view, dtype=_F64).tobytes())
        return count

    def pack_particle(self, particle, index, buffer, address: int) -> int:
        """Pack the particles of ``particle.xu`` selected by ``index``."""
        count = address
        xu = particle.xu
        for i in index:
            count += _put(buffer, count, np.ascontiguousarray(xu[i], dtype=_F64).tobytes())
        return count

    def pack_tracer(self, particle, buffer, address: int) -> int:
        """Pack active particles whose identifier is negative."""
        count = address
        xu = particle.xu[: particle.np_active]
        ids = np.ascontiguousarray(xu[:, 6]).view(np.int64)
        for row in xu[ids < 0]:
            count += _put(buffer, count, np.ascontiguousarray(row, dtype=_F64).tobytes())
        return count