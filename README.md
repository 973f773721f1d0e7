# nixpic

Building blocks for particle-in-cell simulation codes. The package has four
modules.

## `nixpic.nixio`: raw binary data files

`open_file(filename, mode)` opens a file and returns a `NixFile`. The mode is
one of the following:

- `"r"` opens the file for reading.
- `"w"` removes any existing file and creates it anew.
- `"a"` opens the file for writing and starts at its end.

A `NixFile` is a context manager. It keeps the current byte displacement in
its `disp` attribute and offers these methods:

- `read_single(size)` and `write_single(data)` read or write raw bytes at
  `disp`, then advance it.
- `read_contiguous(size, dtype, packbyte=-1)` and
  `write_contiguous(data, packbyte=-1)` read or write a typed array at
  `disp`, then advance it. The data size must be a multiple of the pack byte.
  A negative pack byte means the element size.
- `read_contiguous_at(disp, size, dtype)` and `write_contiguous_at(disp, data)`
  work at an explicit byte position. They leave `disp` unchanged.
- `read_subarray(gshape, lshape, offset, dtype, order="C")` and
  `write_subarray(data, gshape, offset, order="C")` work on a rectangular
  block of a global array stored at `disp`. The order is `"C"` or `"F"`.
  Both advance `disp` past the whole global array.
- `close()` closes the file.

Short reads raise `EOFError`. Bad modes, orders or subarray bounds raise
`ValueError`.

## `nixpic.metadata`: dataset descriptions in a dictionary

- `put_metadata(obj, name, dtype, desc, disp, size, shape=None)` stores an
  entry in a JSON-compatible dict. The entry holds `datatype`, `description`,
  `offset`, `size`, `ndim` and `shape`. A missing shape means a scalar, which
  is stored as shape `[1]`.
- `get_metadata(obj, name)` returns a frozen `Metadata` dataclass with the
  fields `dtype`, `desc`, `disp`, `size`, `ndim` and `shape`.
- `put_attribute(obj, name, disp, data, dtype=None)` stores a scalar or
  one-dimensional numeric attribute under `"data"`. The type code is one of
  `i4`, `i8`, `f4` and `f8`. If no code is given it is inferred from the data.
  Out-of-range integers raise `OverflowError`. Floats given an integer code
  raise `TypeError`.
- `get_attribute(obj, name)` returns `(disp, data)`.

## `nixpic.particle`: particle container

`digitize(x, xmin, rdx)` returns `floor((x - xmin) * rdx)` as an int. For an
array it returns an int array.

`XtensorParticle(np_total=0, chunk=None)` holds the following arrays:

- `xu`, of shape `(np_total, 7)`: position, four-velocity, and a 64-bit
  identifier stored bit-for-bit in column 6.
- `xv`, a temporary array of the same shape.
- `gindex`, `pindex` and `pcount`, used for sorting.

The chunk object supplies the grid geometry through `get_boundary_margin()`,
`has_xdim()`, `get_xbound()`, `get_delx()`, `get_xrange()`,
`get_xrange_global()` and the matching y and z methods.

Its methods:

- `count(lbp, ubp, reset, order)` assigns particles `lbp..ubp` to cells.
  Particles outside the local domain go to the extra cell `ng`.
- `sort()` performs a counting sort of the active particles by cell. It drops
  the particles in cell `ng` and updates `np_active` and `pindex`.
- `set_boundary_periodic(lbp, ubp)` wraps positions into the global domain.
- `resize(newsize)` grows the capacity and keeps existing data. Nothing
  happens if `newsize` equals the current capacity or is not larger than
  `np_active`.
- `swap()` exchanges `xu` and `xv`.
- `pack()` serialises the state to `bytes`.
- `unpack(buffer, address)` restores the state and returns the end address.
- `reset_count()`, `increment(ip, ii)`, `flatindex(iz, iy, ix)` and
  `get_size_byte()` round out the class.

## `nixpic.packer`: output buffers

`XtensorPacker3D` packs data as native 64-bit floats into a writable buffer,
such as a `bytearray`, at a given address. Each method returns the address
just past the packed data. When the buffer is `None`, the methods only
compute that address, so a first pass can size the buffer.

- `pack_coordinate(lb, ub, x, buffer, address)` packs the coordinates
  `x[lb..ub]`.
- `pack_field(x, bounds, buffer, address)` packs the interior of a field. The
  object `bounds` has the attributes `lbz`, `ubz`, `lby`, `uby`, `lbx` and
  `ubx`. Trailing dimensions of the field are packed whole.
- `pack_particle(particle, index, buffer, address)` packs the selected rows
  of `particle.xu`.
- `pack_tracer(particle, buffer, address)` packs the active particles whose
  identifier is negative.

## What the package does not do

All file access is from a single process: there is no parallel or
distributed I/O and no communication between processes. There is no
simulation driver, field solver, particle pusher or command-line program;
the package provides the data structures and file routines such code would
use.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Example

```python
import numpy as np
from nixpic.nixio import open_file
from nixpic.metadata import put_metadata, get_metadata

data = np.arange(64, dtype=np.float64)

meta = {}
with open_file("output.dat", "w") as fh:
    disp = fh.disp
    fh.write_contiguous(data)
    put_metadata(meta, "density", "f8", "particle density",
                 disp, data.nbytes, data.shape)

info = get_metadata(meta, "density")

with open_file("output.dat", "r") as fh:
    back = fh.read_contiguous_at(info.disp, info.shape[0], np.float64)
```