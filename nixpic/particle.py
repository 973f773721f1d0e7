"""Particle container with cell counting, counting sort and buffer packing.

Particles are stored row-wise in ``xu`` with :data:`NC` components each:
position (0-2), four-velocity (3-5) and a 64-bit identifier stored
bit-for-bit in component 6. Before sorting, each particle is assigned a cell
index. The assignment is split over :data:`SIMD_WIDTH` lanes by particle
index. A counting sort then rearranges the active particles cell by cell
and drops those that fell out of bounds.
"""

from __future__ import annotations

import math
import struct

import numpy as np

#: number of components per particle
NC = 7
#: number of lanes used for per-cell particle counts
SIMD_WIDTH = 8

_HEADER = struct.Struct("=3i2d3?6i15d")


def digitize(x, xmin, rdx):
    """Return ``floor((x - xmin) * rdx)`` as an int, or an int array for array input."""
    result = np.floor((np.asarray(x, dtype=np.float64) - xmin) * rdx).astype(np.int64)
    if result.ndim == 0:
        return int(result)
    return result


class XtensorParticle:
    """Particles of one species held in a chunk, with sorting support."""

    NC = NC

    def __init__(self, np_total: int = 0, chunk=None) -> None:
        self.np_total = int(np_total)
        self.np_active = 0
        self.q = 0.0
        self.m = 0.0
        self.has_xdim = self.has_ydim = self.has_zdim = False
        self.lbx = self.ubx = self.lby = self.uby = self.lbz = self.ubz = 0
        self.delx = self.dely = self.delz = 0.0
        self.xmin = self.xmax = self.ymin = self.ymax = self.zmin = self.zmax = 0.0
        self.xmin_global = self.xmax_global = 0.0
        self.ymin_global = self.ymax_global = 0.0
        self.zmin_global = self.zmax_global = 0.0
        self.ng = 0

        if chunk is not None:
            self._set_geometry(chunk)

        self.allocate(self.np_total, self.ng)

    def _set_geometry(self, chunk) -> None:
        margin = chunk.get_boundary_margin()
        self.has_xdim = bool(chunk.has_xdim())
        self.has_ydim = bool(chunk.has_ydim())
        self.has_zdim = bool(chunk.has_zdim())
        self.lbx, self.ubx = chunk.get_xbound()
        self.lby, self.uby = chunk.get_ybound()
        self.lbz, self.ubz = chunk.get_zbound()
        self.delx = float(chunk.get_delx())
        self.dely = float(chunk.get_dely())
        self.delz = float(chunk.get_delz())
        self.xmin, self.xmax = chunk.get_xrange()
        self.ymin, self.ymax = chunk.get_yrange()
        self.zmin, self.zmax = chunk.get_zrange()
        self.xmin_global, self.xmax_global = chunk.get_xrange_global()
        self.ymin_global, self.ymax_global = chunk.get_yrange_global()
        self.zmin_global, self.zmax_global = chunk.get_zrange_global()
        self.ng = math.prod(
            ub - lb + 1 + 2 * margin
            for lb, ub in (
                (self.lbz, self.ubz),
                (self.lby, self.uby),
                (self.lbx, self.ubx),
            )
        )

    def get_size_byte(self) -> int:
        """Return the memory held by the particle arrays in bytes."""
        return sum(
            a.nbytes for a in (self.xu, self.xv, self.gindex, self.pindex, self.pcount)
        )

    def allocate(self, np_total: int, ng: int) -> None:
        """Allocate zero-filled arrays for ``np_total`` particles and ``ng`` cells."""
        self.xu = np.zeros((np_total, NC), dtype=np.float64)
        self.xv = np.zeros((np_total, NC), dtype=np.float64)
        self.gindex = np.zeros(np_total, dtype=np.int32)
        self.pindex = np.zeros(ng + 1, dtype=np.int32)
        self.pcount = np.zeros((ng + 1, SIMD_WIDTH), dtype=np.int32)

    def resize(self, newsize: int) -> None:
        """Change the particle capacity, keeping existing data.

        Nothing happens when the size is unchanged or would not exceed the
        number of active particles.
        """
        if newsize == self.np_total or newsize <= self.np_active:
            return

        def _resized(old: np.ndarray, shape: tuple[int, ...]) -> np.ndarray:
            new = np.zeros(shape, dtype=old.dtype)
            keep = min(old.shape[0], shape[0])
            new[:keep] = old[:keep]
            return new

        self.xu = _resized(self.xu, (newsize, NC))
        self.xv = _resized(self.xv, (newsize, NC))
        self.gindex = _resized(self.gindex, (newsize,))
        self.np_total = newsize

    def swap(self) -> None:
        """Exchange the particle array with the temporary array."""
        self.xu, self.xv = self.xv, self.xu

    def pack(self) -> bytes:
        """Serialize scalars and arrays into bytes."""
        header = _HEADER.pack(
            self.np_total, self.np_active, self.ng,
            self.q, self.m,
            self.has_xdim, self.has_ydim, self.has_zdim,
            self.lbx, self.ubx, self.lby, self.uby, self.lbz, self.ubz,
            self.delx, self.dely, self.delz,
            self.xmin, self.xmax, self.ymin, self.ymax, self.zmin, self.zmax,
            self.xmin_global, self.xmax_global,
            self.ymin_global, self.ymax_global,
            self.zmin_global, self.zmax_global,
        )
        arrays = (self.xu, self.xv, self.gindex, self.pindex, self.pcount)
        return header + b"".join(np.ascontiguousarray(a).tobytes() for a in arrays)

    def unpack(self, buffer, address: int) -> int:
        """Restore state from ``buffer`` starting at ``address``; return the end address."""
        values = _HEADER.unpack_from(buffer, address)
        address += _HEADER.size
        (
            self.np_total, self.np_active, self.ng,
            self.q, self.m,
            self.has_xdim, self.has_ydim, self.has_zdim,
            self.lbx, self.ubx, self.lby, self.uby, self.lbz, self.ubz,
            self.delx, self.dely, self.delz,
            self.xmin, self.xmax, self.ymin, self.ymax, self.zmin, self.zmax,
            self.xmin_global, self.xmax_global,
            self.ymin_global, self.ymax_global,
            self.zmin_global, self.zmax_global,
        ) = values

        self.allocate(self.np_total, self.ng)

        restored = []
        for arr in (self.xu, self.xv, self.gindex, self.pindex, self.pcount):
            data = np.frombuffer(buffer, dtype=arr.dtype, count=arr.size, offset=address)
            restored.append(data.reshape(arr.shape).copy())
            address += arr.nbytes
        self.xu, self.xv, self.gindex, self.pindex, self.pcount = restored
        return address

    def reset_count(self) -> None:
        """Zero all per-cell particle counts."""
        self.pcount.fill(0)

    def flatindex(self, iz, iy, ix):
        """Return the flat cell index of ``(iz, iy, ix)``."""
        stride_x = 1
        stride_y = stride_x * (self.ubx - self.lbx + 2)
        stride_z = stride_y * (self.uby - self.lby + 2)
        return iz * stride_z + iy * stride_y + ix * stride_x

    def increment(self, ip, ii) -> None:
        """Record that particle(s) ``ip`` reside in cell(s) ``ii``."""
        ip = np.asarray(ip)
        ii = np.asarray(ii)
        self.gindex[ip] = ii
        np.add.at(self.pcount, (ii, ip % SIMD_WIDTH), 1)

    def sort(self) -> None:
        """Counting sort of active particles by cell; out-of-bounds particles are dropped."""
        ng = self.ng
        counts = self.pcount.astype(np.int64).ravel()
        start = np.zeros_like(counts)
        np.cumsum(counts[:-1], out=start[1:])

        self.pindex = start.reshape(ng + 1, SIMD_WIDTH)[:, 0].astype(np.int32)

        n = self.np_active
        ip = np.arange(n)
        key = self.gindex[:n].astype(np.int64) * SIMD_WIDTH + ip % SIMD_WIDTH
        order = np.argsort(key, kind="stable")
        sorted_key = key[order]
        rank = np.arange(n) - np.searchsorted(sorted_key, sorted_key, side="left")
        target = start[sorted_key] + rank
        self.xv[target] = self.xu[order]

        placed = np.bincount(key, minlength=counts.size)
        self.pcount = (start + placed).reshape(ng + 1, SIMD_WIDTH).astype(np.int32)

        self.swap()
        self.np_active = int(self.pindex[ng])

    def count(self, lbp: int, ubp: int, reset: bool, order: int) -> None:
        """Assign particles ``lbp..ubp`` (inclusive) to cells and count them.

        Odd shape-function orders shift cell boundaries by half a cell.
        Particles outside the local domain go to the extra cell ``ng``.
        """
        if reset:
            self.reset_count()
        if ubp < lbp:
            return
        if lbp < 0 or ubp >= self.xu.shape[0]:
            raise IndexError(f"particle range {lbp}..{ubp} out of bounds")

        is_odd = 1 if order % 2 == 1 else 0
        xs = self.xu[lbp : ubp + 1]
        n = xs.shape[0]
        zeros = np.zeros(n, dtype=np.int64)

        def _axis(has, col, lo, hi, delta):
            if not has:
                return zeros, np.zeros(n, dtype=bool)
            values = xs[:, col]
            index = digitize(values, lo - 0.5 * delta * is_odd, 1 / delta)
            return index, (values < lo) | (values >= hi)

        ix, outx = _axis(self.has_xdim, 0, self.xmin, self.xmax, self.delx)
        iy, outy = _axis(self.has_ydim, 1, self.ymin, self.ymax, self.dely)
        iz, outz = _axis(self.has_zdim, 2, self.zmin, self.zmax, self.delz)

        ii = self.flatindex(iz, iy, ix)
        ii = np.where(outx | outy | outz, self.ng, ii)
        self.increment(np.arange(lbp, ubp + 1), ii)

    def set_boundary_periodic(self, lbp: int, ubp: int) -> None:
        """Wrap positions of particles ``lbp..ubp`` (inclusive) into the global domain."""
        if ubp < lbp:
            return
        rows = self.xu[lbp : ubp + 1]
        for col, has, lo, hi in (
            (0, self.has_xdim, self.xmin_global, self.xmax_global),
            (1, self.has_ydim, self.ymin_global, self.ymax_global),
            (2, self.has_zdim, self.zmin_global, self.zmax_global),
        ):
            length = (hi - lo) if has else 0.0
            values = rows[:, col]
            values += (values < lo) * length - (values >= hi) * length