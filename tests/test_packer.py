from types import SimpleNamespace

import numpy as np
import pytest

from nixpic.packer import XtensorPacker3D
from nixpic.particle import NC, XtensorParticle


def test_pack_coordinate_size_only():
    packer = XtensorPacker3D()
    x = np.arange(10, dtype=np.float64)
    assert packer.pack_coordinate(2, 5, x, None, 16) == 16 + 4 * 8


def test_pack_coordinate_writes_values():
    packer = XtensorPacker3D()
    x = np.arange(10, dtype=np.float64) * 0.5
    end = packer.pack_coordinate(2, 5, x, None, 8)
    buffer = bytearray(end)
    assert packer.pack_coordinate(2, 5, x, buffer, 8) == end
    packed = np.frombuffer(bytes(buffer[8:]), dtype=np.float64)
    assert np.array_equal(packed, x[2:6])
    assert bytes(buffer[:8]) == bytes(8)


def test_pack_field_with_component_axis():
    packer = XtensorPacker3D()
    x = np.arange(4 * 5 * 6 * 2, dtype=np.float64).reshape(4, 5, 6, 2)
    bounds = SimpleNamespace(lbz=1, ubz=2, lby=1, uby=3, lbx=1, ubx=4)
    end = packer.pack_field(x, bounds, None, 0)
    assert end == x[1:3, 1:4, 1:5].size * 8
    buffer = bytearray(end)
    assert packer.pack_field(x, bounds, buffer, 0) == end
    packed = np.frombuffer(bytes(buffer), dtype=np.float64)
    assert np.array_equal(packed, x[1:3, 1:4, 1:5].ravel())


def test_pack_field_uses_particle_bounds():
    packer = XtensorPacker3D()
    particle = XtensorParticle(1)
    particle.lbz, particle.ubz = 0, 0
    particle.lby, particle.uby = 1, 1
    particle.lbx, particle.ubx = 0, 1
    x = np.arange(2 * 2 * 2, dtype=np.float64).reshape(2, 2, 2)
    buffer = bytearray(16)
    assert packer.pack_field(x, particle, buffer, 0) == 16
    assert list(np.frombuffer(bytes(buffer), dtype=np.float64)) == [2.0, 3.0]


def test_pack_particle_rows():
    packer = XtensorPacker3D()
    particle = XtensorParticle(4)
    particle.xu[...] = np.arange(4 * NC, dtype=np.float64).reshape(4, NC)
    index = [2, 0]
    end = packer.pack_particle(particle, index, None, 0)
    assert end == 2 * NC * 8
    buffer = bytearray(end)
    assert packer.pack_particle(particle, index, buffer, 0) == end
    packed = np.frombuffer(bytes(buffer), dtype=np.float64).reshape(2, NC)
    assert np.array_equal(packed, particle.xu[index])


def test_pack_tracer_selects_negative_ids():
    packer = XtensorPacker3D()
    particle = XtensorParticle(5)
    particle.np_active = 4
    particle.xu[:, 0] = np.arange(5, dtype=np.float64)
    ids = np.array([3, -1, 7, -9, -2], dtype=np.int64)
    particle.xu[:, 6] = ids.view(np.float64)

    end = packer.pack_tracer(particle, None, 0)
    assert end == 2 * NC * 8
    buffer = bytearray(end)
    assert packer.pack_tracer(particle, buffer, 0) == end
    packed = np.frombuffer(bytes(buffer), dtype=np.float64).reshape(2, NC)
    assert list(packed[:, 0]) == [1.0, 3.0]
    assert list(np.ascontiguousarray(packed[:, 6]).view(np.int64)) == [-1, -9]


def test_pack_into_small_buffer_raises():
    packer = XtensorPacker3D()
    x = np.arange(4, dtype=np.float64)
    with pytest.raises(ValueError):
        packer.pack_coordinate(0, 3, x, bytearray(16), 0)