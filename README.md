# splashsurf

Command line front end and helper library for reconstructing surfaces
from particle data produced by SPH (smoothed particle hydrodynamics)
simulations. It parses and validates reconstruction options, resolves
input files and file sequences into per-file tasks, converts particle
files and provides bounding box, logging and post-processing helpers.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

The `splashsurf` command has two subcommands, `reconstruct` and
`convert`. Global options, accepted before or after the subcommand:

- `-q`, `--quiet`: disable all log output.
- `-v`, `-vv`, `-vvv`: increase log verbosity (info, debug, trace).
- `-V`, `--version`: print the version.

Without `-q` or `-v`, the log level is taken from the `SPLASHSURF_LOG`
environment variable (`off`, `error`, `warn`, `info`, `debug`, `trace`);
an unknown value is reported and `info` is used. The command returns
exit status 0 on success and 1 on error, after logging the error and
each of its causes.

### reconstruct

```
splashsurf reconstruct particles.xyz --particle-radius=0.025 --smoothing-length=2.0 --cube-size=0.5
```

`--particle-radius`, `--smoothing-length` and `--cube-size` are
required; the last two are multiples of the particle radius. Without
`-o`, the output name is `<input stem>_surface.vtk`. A sequence of input
files is given by putting `{}` in the file name in place of the frame
index; the output name must then contain `{}` too (default:
`<stem with {} replaced by surface_{}>.vtk`):

```
splashsurf reconstruct "frames/fluid_{}.xyz" --particle-radius=0.025 --smoothing-length=2.0 --cube-size=0.5 -o "surface_{}.vtk" --output-dir out
```

Sequence files are found in the input directory, sorted naturally
(`fluid_2` before `fluid_10`) and limited by `--start-index` /
`--end-index`. `--output-dir` is created if it does not exist.
`--mt-files=on` processes the files in a thread pool; with more than one
file a progress bar is shown.

On/off options take the form `--normals=on` / `--normals=off` (case is
ignored). Boxes are given as three values each, for example
`--particle-aabb-min -1 -1 -1 --particle-aabb-max 1 1 1`; both corners
are required together, and an inconsistent or degenerate box is rejected.
The same applies to `--mesh-aabb-min` / `--mesh-aabb-max`. Run
`splashsurf reconstruct --help` for the full list of options.

### convert

```
splashsurf convert --particles input.xyz -o output.xyz --domain-min 0 0 0 --domain-max 1 1 1
```

Reads particles from a binary `.xyz` file (consecutive 32-bit floats,
three per particle, native byte order), optionally keeps only the
particles inside the half-open box `[min, max)`, and writes them as a
binary `.xyz` file. `--particles` and `--mesh` exclude each other. An
existing output file is only replaced when `--overwrite` is given.

## What this package does not do

- It contains no surface reconstruction engine. `reconstruct` validates
  its options, resolves the task list and reads each particle file, then
  stops with an error saying that no reconstruction engine is available.
  No mesh is written, and post-processing options have no effect yet.
- The only particle file format it reads and writes is binary `.xyz`.
  VTK, VTU, PLY, BGEO and JSON particle files are rejected as
  unsupported, as is `--interpolate-attributes`.
- It reads no mesh formats: `convert --mesh` always fails.

## Library

- `splashsurf.aabb.AxisAlignedBoundingBox`: boxes in any dimension, built
  with `from_point`, `from_points`, `par_from_points` or `zeros`, with
  `extents`, `centroid`, `join`, `grow_uniformly`, `scale_uniformly`,
  `enclosing_cube` and half-open `contains_point`.
- `splashsurf.memory.AllocationCounter`: thread-safe current and peak
  byte counts; `peak_allocated_memory` returns `None` for no counter.
- `splashsurf.log_setup`: `VerbosityLevel`, `resolve_log_level`,
  `initialize_logging`, `log_error` and a `ProgressHandler` stream that
  hides the registered progress bar while writing.
- `splashsurf.arguments`: `ReconstructSubcommandArgs`, `Switch`, and
  `ReconstructionRunnerArgs.from_args`, which turns raw options into
  `Parameters` (compact support radius = radius × 2 × smoothing length,
  cube size = radius × cube size) and `PostprocessingArgs`.
- `splashsurf.paths`: `ReconstructionRunnerPathCollection.from_args` and
  `collect`, giving one `ReconstructionRunnerPaths` per input file, and
  `natural_key`.
- `splashsurf.pipeline`: `weighted_neighbor_counts`, `smoothing_weights`
  (smooth-step of normalized counts), `raw_output_path` and `run_tasks`.
- `splashsurf.cli`: `build_parser`, `parse_args`, `overwrite_check`,
  `filter_particles_in_domain` and `main`.

```python
from splashsurf.aabb import AxisAlignedBoundingBox

box = AxisAlignedBoundingBox.from_points([(1.0, 1.0, 1.0), (0.5, 3.0, 5.0), (-1.0, 1.0, 1.0)])
print(box.extents())                        # (2.0, 2.0, 4.0)
print(box.contains_point((0.0, 2.0, 2.0)))  # True
```