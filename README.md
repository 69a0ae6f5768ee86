# surfelfusion

Building blocks for surfel-based dense RGB-D reconstruction, written with
NumPy and SciPy.

## What is in the package

- **`surfelfusion.camera`** – `Resolution` (`cols()`, `rows()`,
  `num_pixels()`; width and height must be positive) and `Intrinsics`
  (`as_vector()` gives `(cx, cy, fx, fy)`, `inverse_focal_vector()` gives
  `(cx, cy, 1/fx, 1/fy)`, both as float32; focal lengths must be non-zero).
- **`surfelfusion.img`** – `Img`, a row-major image of `rows` x `cols` pixels
  with any number of channels, either allocating its own zeroed storage or
  wrapping a given buffer (`owned` tells which). Pixels are read with
  `at(row, col)` or `flat(index)` and written with `set(row, col, value)`;
  out-of-range positions raise `IndexError`.
- **`surfelfusion.uniform`** – `UniformType` and `Uniform`.
  `Uniform.of(name, value)` picks the type from the value: integers and
  booleans are `INT`, floats are `FLOAT`, 2-, 3- and 4-vectors are
  `VEC2`/`VEC3`/`VEC4`, 4x4 matrices are `MAT4`; anything else raises
  `TypeError`.
- **`surfelfusion.vertex`** – the 48-byte surfel layout (`VERTEX_SIZE`): three
  little-endian float32 vec4s holding position and confidence; colour as a
  24-bit integer, an unused slot, initialisation time and timestamp; normal and
  radius. `Surfel`, `pack_vertices`, `unpack_vertices`, `encode_color` and
  `decode_color` convert to and from that layout.
- **`surfelfusion.odometry`** – `rodrigues(vector)` turns an axis-angle vector
  into a 3x3 rotation; `compute_update_se3(result_rt, twist)` composes a
  `(tx, ty, tz, rx, ry, rz)` twist onto a 4x4 transform and returns an
  `SE3Update` with the new transform and a float32 copy.
- **`surfelfusion.jacobian`** – `OrderedJacobianRow` (entries appended in
  strictly increasing column order, `add_to` for adding to an already weighted
  entry) and `Jacobian`, which collects rows and converts them with
  `to_sparse()` to a SciPy CSR matrix.
- **`surfelfusion.cholesky`** – `CholeskyDecomp.solve(jacobian, residual,
  first_run)` solves the normal equations `JᵀJ x = Jᵀr`. A reverse
  Cuthill–McKee ordering is computed when `first_run` is true and reused until
  `free_factor()` is called.
- **`surfelfusion.graph`** – `GraphNode`, `VertexWeight`, `Constraint` and the
  helpers `connect_sequential`, `closest_time_index`,
  `nearest_node_weights`, `sort_by_node_id` and `blend_position`.
- **`surfelfusion.optimisation`** – `sparse_residual`, `sparse_jacobian` and
  `apply_delta`: rotation, regularisation and constraint terms of the
  Gauss–Newton fit, weighted 1, 10 and 100.
- **`surfelfusion.deformation_graph`** – `DeformationGraph`, a sequential graph
  of nodes sampled over time, each carrying an affine rotation and a
  translation. It weights map vertices (`append_vertices`) and camera poses
  (`set_poses_seq`) to their nearest nodes, takes absolute
  (`add_constraint`) and vertex-to-vertex (`add_relative_constraint`)
  constraints, fits the nodes sampled after a given time with up to three
  Gauss–Newton steps (`optimise_graph_sparse`, returning an
  `OptimisationResult`) and applies the result to the vertices
  (`apply_graph_to_vertices`, in place) and to 4x4 pose arrays
  (`apply_graph_to_poses`, in place). An optional `Stopwatch` times each
  optimisation under the name `"opt"`.
- **`surfelfusion.parse`** – `find_arg`, `parse_arg(argv, name, kind)` for
  `str`, `int` or `float` values following a flag, `shader_dir` (checks that a
  directory exists) and `base_dir` (cuts a path at its last `build`
  directory).
- **`surfelfusion.stopwatch`** – `Stopwatch`, which records named timings in
  milliseconds from microsecond durations (`add_timing`, `tick`/`tock`, the
  `measure` context manager, `pulse`), prints them with `print_all`, encodes
  them with `serialise` and sends that packet over UDP to `127.0.0.1:45454`
  (by default) with `send_all`, at most once every 10 000 microseconds.
- **`surfelfusion.gpu_config`** – `GPUConfig` and `LaunchConfig`: a table of
  thread and block counts for four tracking reductions, per GPU model name.
  `GPUConfig.for_device(name)` returns the tuned values, or the defaults with a
  note for an unknown device; `GPUConfig.known_devices()` lists the names.

## Examples

### Rotations from axis-angle vectors

```python
import numpy as np
from surfelfusion.odometry import rodrigues

r = rodrigues(np.array([0.0, 0.0, np.pi / 2]))
# r is a 3x3 rotation of 90 degrees about the z axis
```

### Packing colours into a surfel

```python
from surfelfusion.vertex import Surfel, decode_color, encode_color, pack_vertices, unpack_vertices

packed = encode_color(255, 128, 0)
assert decode_color(packed) == (255, 128, 0)

data = pack_vertices([Surfel(position=(1.0, 2.0, 3.0), color=packed, radius=0.01)])
assert len(data) == 48
assert unpack_vertices(data)[0].color == packed
```

### Deforming a set of points

```python
import numpy as np
from surfelfusion.deformation_graph import DeformationGraph

rng = np.random.default_rng(0)
points = [p for p in rng.random((50, 3))]
times = list(range(len(points)))

graph = DeformationGraph(4, points)
graph.initialise_graph(points[::5], times[::5])
graph.append_vertices(times, len(points))

graph.add_constraint(49, points[49] + np.array([0.0, 0.2, 0.0]))
graph.add_constraint(0, points[0])

result = graph.optimise_graph_sparse(False, 0)
graph.apply_graph_to_vertices()
print(result.error, result.mean_constraint_error)
```

Only nodes sampled after the time passed to `optimise_graph_sparse` are
changed; the constrained points move towards their targets and the other
points follow through the nodes that influence them.

## What the package does not do

There is no rendering, no shader compilation and no GPU work: `Uniform` and
the vertex layout only describe the data such code would use, and `GPUConfig`
is a lookup table. There is no camera tracking loop, no map fusion and no
command-line program; `surfelfusion.parse` only helps a program read its own
arguments.

## Requirements

Python 3.10 or later, NumPy and SciPy. The tests use pytest
(`pip install surfelfusion[test]`).