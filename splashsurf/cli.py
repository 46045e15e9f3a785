"""Command line interface with the ``reconstruct`` and ``convert`` subcommands."""

from __future__ import annotations

import argparse
import logging
from array import array
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, fields
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version
from itertools import chain
from pathlib import Path

from splashsurf.aabb import AxisAlignedBoundingBox
from splashsurf.arguments import (
    ReconstructionRunnerArgs,
    ReconstructSubcommandArgs,
    Switch,
)
from splashsurf.log_setup import (
    PROGRAM_NAME,
    VerbosityLevel,
    initialize_logging,
    log_error,
    log_program_info,
)
from splashsurf.memory import AllocationCounter, peak_allocated_memory
from splashsurf.paths import ReconstructionRunnerPathCollection, ReconstructionRunnerPaths
from splashsurf.pipeline import run_tasks

logger = logging.getLogger(__name__)

ARGS_IO = "Input/output"
ARGS_BASIC = "Numerical reconstruction parameters"
ARGS_ADV = "Advanced parameters"
ARGS_OCTREE = "Domain decomposition (octree or grid) parameters"
ARGS_DEBUG = "Debug options"
ARGS_INTERP = "Interpolation & normals"
ARGS_POSTPROC = "Postprocessing"

ABOUT = "Surface reconstruction for particle data from SPH simulations"

# Memory counting is disabled; the counter stays unset.
_ALLOCATION_COUNTER: AllocationCounter | None = None


@dataclass
class ConvertSubcommandArgs:
    """Raw arguments of the convert command."""

    output_file: Path
    input_particles: Path | None = None
    input_mesh: Path | None = None
    overwrite: bool = False
    domain_min: list[float] | None = None
    domain_max: list[float] | None = None

    def __post_init__(self) -> None:
        self.output_file = Path(self.output_file)
        if self.input_particles is not None:
            self.input_particles = Path(self.input_particles)
        if self.input_mesh is not None:
            self.input_mesh = Path(self.input_mesh)


@dataclass
class CommandlineArgs:
    """Parsed command line: global flags and the selected subcommand."""

    quiet: bool
    verbosity: int
    subcommand: ReconstructSubcommandArgs | ConvertSubcommandArgs


def _program_version() -> str:
    try:
        return version(PROGRAM_NAME)
    except PackageNotFoundError:
        return "unknown"


def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer value {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"value must not be negative: {value}")
    return value


def _switch(text: str) -> Switch:
    try:
        return Switch.parse(text)
    except ValueError as err:
        raise argparse.ArgumentTypeError(str(err)) from None


def _add_switch(group, flag: str, default: Switch, help_text: str, dest: str | None = None) -> None:
    kwargs = {"dest": dest} if dest else {}
    group.add_argument(
        flag, type=_switch, default=default, metavar="off|on", help=help_text, **kwargs
    )


def _add_corner(group, flag: str, help_text: str) -> None:
    group.add_argument(
        flag,
        type=float,
        nargs=3,
        metavar=("X_MIN", "Y_MIN", "Z_MIN"),
        default=None,
        help=help_text,
    )


def _global_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable quiet mode (no output except for severe errors), overrides verbosity level",
    )
    parent.add_argument(
        "-v",
        dest="verbosity",
        action="count",
        default=argparse.SUPPRESS,
        help='Print more verbose output, use multiple "v"s for even more verbose output (-v, -vv)',
    )
    return parent


def _add_reconstruct_arguments(parser: argparse.ArgumentParser) -> None:
    io_group = parser.add_argument_group(ARGS_IO)
    io_group.add_argument(
        "input_file_or_sequence",
        type=Path,
        help="Path to the input file with particle positions, "
        'use "{}" in the filename as placeholder for a sequence',
    )
    io_group.add_argument(
        "-o", "--output-file", type=Path, default=None,
        help='Filename for the reconstructed surface (default: "{original_filename}_surface.vtk")',
    )
    io_group.add_argument(
        "--output-dir", type=Path, default=None,
        help="Optional base directory for all output files (default: current working directory)",
    )
    io_group.add_argument(
        "-s", "--start-index", type=_non_negative_int, default=None,
        help="Index of the first input file to process of a sequence",
    )
    io_group.add_argument(
        "-e", "--end-index", type=_non_negative_int, default=None,
        help="Index of the last input file to process of a sequence",
    )

    basic = parser.add_argument_group(ARGS_BASIC)
    basic.add_argument(
        "-r", "--particle-radius", type=float, required=True,
        help="The particle radius of the input data",
    )
    basic.add_argument(
        "--rest-density", type=float, default=1000.0, help="The rest density of the fluid"
    )
    basic.add_argument(
        "-l", "--smoothing-length", type=float, required=True,
        help="The smoothing length radius of the SPH kernel (in multiples of the particle radius)",
    )
    basic.add_argument(
        "-c", "--cube-size", type=float, required=True,
        help="The marching cubes edge length (in multiples of the particle radius)",
    )
    basic.add_argument(
        "-t", "--surface-threshold", type=float, default=0.6,
        help="The iso-surface threshold for the density (in multiples of the rest density)",
    )
    _add_corner(basic, "--particle-aabb-min", "Lower corner of the reconstruction domain")
    _add_corner(basic, "--particle-aabb-max", "Upper corner of the reconstruction domain")

    adv = parser.add_argument_group(ARGS_ADV)
    adv.add_argument(
        "-d", "--double-precision", type=_switch, default=Switch.OFF, metavar="off|on",
        help="Enable the use of double precision for all computations",
    )
    _add_switch(
        adv, "--mt-files", Switch.OFF,
        "Enable processing multiple input files in parallel", dest="parallelize_over_files",
    )
    _add_switch(
        adv, "--mt-particles", Switch.ON,
        "Enable multi-threading for a single input file", dest="parallelize_over_particles",
    )
    adv.add_argument(
        "-n", "--num-threads", type=_non_negative_int, default=None,
        help="Set the number of threads for the worker thread pool",
    )

    octree = parser.add_argument_group(ARGS_OCTREE)
    _add_switch(octree, "--subdomain-grid", Switch.ON,
                "Enable spatial decomposition using a regular grid-based approach")
    octree.add_argument(
        "--subdomain-cubes", type=_non_negative_int, default=64,
        help="Number of marching cubes cells per subdomain along each axis",
    )

    interp = parser.add_argument_group(ARGS_INTERP)
    _add_switch(interp, "--normals", Switch.OFF, "Enable computing surface normals")
    _add_switch(interp, "--sph-normals", Switch.OFF,
                "Enable computing the normals using SPH interpolation")
    interp.add_argument(
        "--normals-smoothing-iters", type=_non_negative_int, default=None,
        help="Number of smoothing iterations on the normal field",
    )
    _add_switch(interp, "--output-raw-normals", Switch.OFF,
                "Enable writing raw normals without smoothing")
    interp.add_argument(
        "--interpolate-attributes", action="append", default=None,
        help="Point attribute field names to interpolate to the surface",
    )

    post = parser.add_argument_group(ARGS_POSTPROC)
    _add_switch(post, "--mesh-cleanup", Switch.OFF, "Enable marching cubes specific mesh cleanup")
    _add_switch(post, "--decimate-barnacles", Switch.OFF,
                "Enable decimation of typical bad marching cubes triangle configurations")
    _add_switch(post, "--keep-verts", Switch.OFF,
                "Enable keeping vertices without connectivity during decimation")
    post.add_argument(
        "--mesh-smoothing-iters", type=_non_negative_int, default=None,
        help="Number of smoothing iterations on the reconstructed mesh",
    )
    _add_switch(post, "--mesh-smoothing-weights", Switch.OFF,
                "Enable feature weights for mesh smoothing")
    post.add_argument(
        "--mesh-smoothing-weights-normalization", type=float, default=13.0,
        help="Normalization value from weighted number of neighbors to smoothing weights",
    )
    _add_switch(post, "--output-smoothing-weights", Switch.OFF,
                "Enable writing the smoothing weights as a vertex attribute")
    _add_switch(post, "--generate-quads", Switch.OFF, "Enable converting triangles to quads")
    post.add_argument("--quad-max-edge-diag-ratio", type=float, default=1.75,
                      help="Maximum ratio of quad edge lengths to its diagonals")
    post.add_argument("--quad-max-normal-angle", type=float, default=10.0,
                      help="Maximum angle (degrees) between triangle normals to merge them")
    post.add_argument("--quad-max-interior-angle", type=float, default=135.0,
                      help="Maximum interior angle (degrees) inside of a quad")
    _add_corner(post, "--mesh-aabb-min", "Lower corner of the bounding box for the surface mesh")
    _add_corner(post, "--mesh-aabb-max", "Upper corner of the bounding box for the surface mesh")
    _add_switch(post, "--mesh-aabb-clamp-verts", Switch.OFF,
                "Enable clamping of vertices outside of the mesh AABB")
    _add_switch(post, "--output-raw-mesh", Switch.OFF,
                "Enable writing the raw mesh before post-processing")

    debug = parser.add_argument_group(ARGS_DEBUG)
    _add_switch(debug, "--check-mesh", Switch.OFF,
                "Enable checking the mesh for holes and non-manifold edges and vertices")
    _add_switch(debug, "--check-mesh-closed", Switch.OFF, "Enable checking the mesh for holes")
    _add_switch(debug, "--check-mesh-manifold", Switch.OFF,
                "Enable checking the mesh for non-manifold edges and vertices")
    _add_switch(debug, "--check-mesh-debug", Switch.OFF,
                "Enable debug output for the check-mesh operations")


def _add_convert_arguments(parser: argparse.ArgumentParser) -> None:
    inputs = parser.add_mutually_exclusive_group()
    inputs.add_argument(
        "--particles", dest="input_particles", type=Path, default=None,
        help="Path to the input file with particles to read",
    )
    inputs.add_argument(
        "--mesh", dest="input_mesh", type=Path, default=None,
        help="Path to the input file with a surface mesh to read",
    )
    parser.add_argument(
        "-o", dest="output_file", type=Path, required=True, help="Path to the output file"
    )
    parser.add_argument(
        "--overwrite", action="store_true", help="Overwrite existing files without asking"
    )
    _add_corner(parser, "--domain-min", "Lower corner of the domain of particles to keep")
    _add_corner(parser, "--domain-max", "Upper corner of the domain of particles to keep")


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser of the program."""
    common = _global_options()
    parser = argparse.ArgumentParser(prog=PROGRAM_NAME, description=ABOUT, parents=[common])
    parser.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {_program_version()}"
    )
    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    reconstruct = subparsers.add_parser(
        "reconstruct", parents=[common], help="Reconstruct a surface from particle data"
    )
    _add_reconstruct_arguments(reconstruct)
    convert = subparsers.add_parser(
        "convert", parents=[common],
        help="Convert particle or mesh files between different file formats",
    )
    _add_convert_arguments(convert)
    return parser


def _require_pair(parser, ns, first: str, second: str) -> None:
    a, b = getattr(ns, first), getattr(ns, second)
    if (a is None) != (b is None):
        missing = second if a is not None else first
        present = first if a is not None else second
        parser.error(
            f"the argument --{present.replace('_', '-')} requires "
            f"--{missing.replace('_', '-')} to be specified"
        )


def parse_args(argv: Sequence[str] | None = None) -> CommandlineArgs:
    """Parses the command line (without the program name)."""
    parser = build_parser()
    ns = parser.parse_args(argv)

    if ns.command == "reconstruct":
        _require_pair(parser, ns, "particle_aabb_min", "particle_aabb_max")
        _require_pair(parser, ns, "mesh_aabb_min", "mesh_aabb_max")
        if ns.interpolate_attributes is None:
            ns.interpolate_attributes = []
        subcommand = ReconstructSubcommandArgs(
            **{f.name: getattr(ns, f.name) for f in fields(ReconstructSubcommandArgs)}
        )
    else:
        _require_pair(parser, ns, "domain_min", "domain_max")
        subcommand = ConvertSubcommandArgs(
            **{f.name: getattr(ns, f.name) for f in fields(ConvertSubcommandArgs)}
        )

    return CommandlineArgs(
        quiet=getattr(ns, "quiet", False),
        verbosity=getattr(ns, "verbosity", 0) or 0,
        subcommand=subcommand,
    )


def overwrite_check(args: ConvertSubcommandArgs) -> None:
    """Raises if the output file exists and overwriting is not enabled."""
    if not args.overwrite and args.output_file.exists():
        raise FileExistsError(
            f'Aborting: Output file "{args.output_file}" already exists. '
            "Use overwrite flag to ignore this."
        )


def filter_particles_in_domain(
    points: Iterable[Sequence[float]],
    domain_min: Sequence[float] | None,
    domain_max: Sequence[float] | None,
) -> list[tuple[float, ...]]:
    """Keeps the points inside the half-open box ``[min, max)``; all if no box is given."""
    if domain_min is None and domain_max is None:
        return [tuple(p) for p in points]
    if domain_min is None or domain_max is None:
        raise ValueError("Both the domain min and max corner have to be specified")
    aabb = AxisAlignedBoundingBox(tuple(domain_min), tuple(domain_max))
    logger.info("Filtering out particles outside of %s", aabb)
    return [tuple(p) for p in points if aabb.contains_point(p)]


def _extension(path: Path, kind: str) -> str:
    if not path.suffix:
        raise ValueError(
            f"Unable to detect file format of {kind} file "
            "(file name has to end with supported extension)"
        )
    return path.suffix[1:].lower()


def _read_particle_positions(path: Path) -> list[tuple[float, ...]]:
    logger.info('Reading particle dataset from "%s"...', path)
    extension = _extension(path, "particle input")
    if extension != "xyz":
        raise ValueError(f'Unsupported file format extension "{extension}" for reading particles')
    data = path.read_bytes()
    if len(data) % 12 != 0:
        raise ValueError(
            f"Binary particle file size of {len(data)} bytes is not a multiple of "
            "three 32-bit float values"
        )
    values = array("f")
    values.frombytes(data)
    particles = list(zip(*[iter(values)] * 3))
    logger.info("Successfully read dataset with %d particle positions.", len(particles))
    return particles


def _write_particle_positions(particles: Sequence[Sequence[float]], path: Path) -> None:
    logger.info('Writing %d particles to "%s"...', len(particles), path)
    extension = _extension(path, "particle output")
    if extension != "xyz":
        raise ValueError(f'Unsupported file format extension "{extension}" for writing particles')
    path.write_bytes(array("f", chain.from_iterable(particles)).tobytes())
    logger.info("Successfully wrote particles to file.")


def _convert_particles(args: ConvertSubcommandArgs) -> None:
    input_file = args.input_particles
    try:
        particles = _read_particle_positions(input_file)
    except Exception as err:
        raise RuntimeError(
            f'Failed to load particle positions from file "{input_file}"'
        ) from err
    particles = filter_particles_in_domain(particles, args.domain_min, args.domain_max)
    _write_particle_positions(particles, args.output_file)


def _convert_mesh(args: ConvertSubcommandArgs) -> None:
    input_file = args.input_mesh
    logger.info('Reading mesh from "%s"...', input_file)
    try:
        extension = _extension(input_file, "mesh input")
        raise ValueError(
            f'Unsupported file format extension "{extension}" for reading surface meshes'
        )
    except ValueError as err:
        raise RuntimeError(f'Failed to load surface mesh from file "{input_file}"') from err


def _convert_subcommand(args: ConvertSubcommandArgs) -> None:
    overwrite_check(args)
    if args.input_particles is not None:
        _convert_particles(args)
    elif args.input_mesh is not None:
        _convert_mesh(args)
    else:
        raise ValueError(
            "Aborting: No input file specified, either a particle or mesh input file "
            "has to be specified."
        )


def _reconstruction_pipeline(
    paths: ReconstructionRunnerPaths, runner: ReconstructionRunnerArgs
) -> None:
    if runner.use_double_precision:
        logger.info("Using double precision (f64) for surface reconstruction.")
    else:
        logger.info("Using single precision (f32) for surface reconstruction.")
    attributes = runner.postprocessing.interpolate_attributes
    try:
        if attributes:
            extension = _extension(paths.input_file, "particle input")
            raise ValueError(
                f'Unsupported file format extension "{extension}" for reading particles '
                "and attributes"
            )
        particles = _read_particle_positions(paths.input_file)
    except Exception as err:
        raise RuntimeError(
            f'Failed to load particle positions from file "{paths.input_file}"'
        ) from err
    raise RuntimeError(
        f"No surface reconstruction engine is available to process {len(particles)} "
        f'particles from "{paths.input_file}"'
    )


def _reconstruct_subcommand(args: ReconstructSubcommandArgs) -> None:
    try:
        paths = ReconstructionRunnerPathCollection.from_args(args).collect()
    except Exception as err:
        raise RuntimeError("Failed parsing input file path(s) from command line") from err
    try:
        runner = ReconstructionRunnerArgs.from_args(args)
    except Exception as err:
        raise RuntimeError("Failed processing parameters from command line") from err
    run_tasks(
        paths,
        lambda path: _reconstruction_pipeline(path, runner),
        parallel=bool(args.parallelize_over_files),
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Runs the program and returns its exit status."""
    args = parse_args(argv)
    try:
        try:
            initialize_logging(VerbosityLevel.from_count(args.verbosity), args.quiet)
        except Exception as err:
            raise RuntimeError("Failed to initialize logging") from err
        if argv is not None:
            log_program_info([PROGRAM_NAME, *argv])
        else:
            log_program_info()

        if isinstance(args.subcommand, ReconstructSubcommandArgs):
            _reconstruct_subcommand(args.subcommand)
        else:
            _convert_subcommand(args.subcommand)

        peak = peak_allocated_memory(_ALLOCATION_COUNTER)
        if peak is not None:
            logger.info("Peak memory usage: %d bytes (%.2fMB)", peak, peak * 1e-6)
        logger.info(
            "Finished at %s.", datetime.now().astimezone().isoformat(timespec="microseconds")
        )
    except Exception as err:
        log_error(err)
        return 1
    return 0