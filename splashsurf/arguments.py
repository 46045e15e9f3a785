"""Reconstruction command arguments and their conversion to run parameters."""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from splashsurf.aabb import AxisAlignedBoundingBox


class Switch(enum.Enum):
    """An on/off command line switch."""

    OFF = "off"
    ON = "on"

    @classmethod
    def parse(cls, text: str) -> Switch:
        """Parses ``on`` or ``off``, ignoring case."""
        try:
            return cls(text.strip().lower())
        except ValueError:
            raise ValueError(f"invalid switch value {text!r}, expected 'on' or 'off'") from None

    def __bool__(self) -> bool:
        return self is Switch.ON


@dataclass
class ReconstructSubcommandArgs:
    """Raw arguments of the reconstruct command."""

    input_file_or_sequence: Path
    particle_radius: float
    smoothing_length: float
    cube_size: float
    output_file: Path | None = None
    output_dir: Path | None = None
    start_index: int | None = None
    end_index: int | None = None
    rest_density: float = 1000.0
    surface_threshold: float = 0.6
    double_precision: Switch = Switch.OFF
    particle_aabb_min: list[float] | None = None
    particle_aabb_max: list[float] | None = None
    parallelize_over_files: Switch = Switch.OFF
    parallelize_over_particles: Switch = Switch.ON
    num_threads: int | None = None
    subdomain_grid: Switch = Switch.ON
    subdomain_cubes: int = 64
    normals: Switch = Switch.OFF
    sph_normals: Switch = Switch.OFF
    normals_smoothing_iters: int | None = None
    output_raw_normals: Switch = Switch.OFF
    interpolate_attributes: list[str] = field(default_factory=list)
    mesh_cleanup: Switch = Switch.OFF
    decimate_barnacles: Switch = Switch.OFF
    keep_verts: Switch = Switch.OFF
    mesh_smoothing_iters: int | None = None
    mesh_smoothing_weights: Switch = Switch.OFF
    mesh_smoothing_weights_normalization: float = 13.0
    output_smoothing_weights: Switch = Switch.OFF
    generate_quads: Switch = Switch.OFF
    quad_max_edge_diag_ratio: float = 1.75
    quad_max_normal_angle: float = 10.0
    quad_max_interior_angle: float = 135.0
    mesh_aabb_min: list[float] | None = None
    mesh_aabb_max: list[float] | None = None
    mesh_aabb_clamp_verts: Switch = Switch.OFF
    output_raw_mesh: Switch = Switch.OFF
    check_mesh: Switch = Switch.OFF
    check_mesh_closed: Switch = Switch.OFF
    check_mesh_manifold: Switch = Switch.OFF
    check_mesh_debug: Switch = Switch.OFF

    def __post_init__(self) -> None:
        self.input_file_or_sequence = Path(self.input_file_or_sequence)
        if self.output_file is not None:
            self.output_file = Path(self.output_file)
        if self.output_dir is not None:
            self.output_dir = Path(self.output_dir)


@dataclass
class GridDecompositionParameters:
    """Parameters of the uniform subdomain grid decomposition."""

    subdomain_num_cubes_per_dim: int = 64


@dataclass
class Parameters:
    """Parameters passed to the surface reconstruction."""

    particle_radius: float
    rest_density: float
    compact_support_radius: float
    cube_size: float
    iso_surface_threshold: float
    particle_aabb: AxisAlignedBoundingBox | None = None
    enable_multi_threading: bool = True
    spatial_decomposition: GridDecompositionParameters | None = None
    global_neighborhood_list: bool = False


@dataclass
class PostprocessingArgs:
    """Post-processing options of a reconstruction run."""

    check_mesh_closed: bool = False
    check_mesh_manifold: bool = False
    check_mesh_debug: bool = False
    mesh_cleanup: bool = False
    decimate_barnacles: bool = False
    keep_vertices: bool = False
    compute_normals: bool = False
    sph_normals: bool = False
    normals_smoothing_iters: int | None = None
    interpolate_attributes: list[str] = field(default_factory=list)
    mesh_smoothing_iters: int | None = None
    mesh_smoothing_weights: bool = False
    mesh_smoothing_weights_normalization: float = 13.0
    generate_quads: bool = False
    quad_max_edge_diag_ratio: float = 1.75
    quad_max_normal_angle: float = 10.0
    quad_max_interior_angle: float = 135.0
    output_mesh_smoothing_weights: bool = False
    output_raw_normals: bool = False
    output_raw_mesh: bool = False
    mesh_aabb: AxisAlignedBoundingBox | None = None
    mesh_aabb_clamp_vertices: bool = False


def aabb_from_min_max(
    min_values: Sequence[float], max_values: Sequence[float], label: str
) -> AxisAlignedBoundingBox:
    """Builds a 3D box from user values, rejecting inconsistent or degenerate ones."""
    if len(min_values) != 3 or len(max_values) != 3:
        raise ValueError(f"The user specified {label} min/max values must have three components")
    aabb = AxisAlignedBoundingBox(tuple(min_values), tuple(max_values))
    lo, hi = list(aabb.min), list(aabb.max)
    if not aabb.is_consistent():
        raise ValueError(
            f"The user specified {label} min/max values are inconsistent! min: {lo} max: {hi}"
        )
    if aabb.is_degenerate():
        raise ValueError(f"The user specified {label} is degenerate! min: {lo} max: {hi}")
    return aabb


def _optional_aabb(
    min_values: Sequence[float] | None, max_values: Sequence[float] | None, label: str
) -> AxisAlignedBoundingBox | None:
    if min_values is None and max_values is None:
        return None
    if min_values is None or max_values is None:
        raise ValueError(f"Both min and max values of the {label} have to be specified")
    return aabb_from_min_max(min_values, max_values, label)


@dataclass
class ReconstructionRunnerArgs:
    """Validated settings for running reconstructions."""

    params: Parameters
    use_double_precision: bool
    postprocessing: PostprocessingArgs
    num_threads: int | None = None

    @classmethod
    def from_args(cls, args: ReconstructSubcommandArgs) -> ReconstructionRunnerArgs:
        """Converts and validates raw command arguments."""
        particle_aabb = _optional_aabb(
            args.particle_aabb_min, args.particle_aabb_max, "particle AABB"
        )
        mesh_aabb = _optional_aabb(args.mesh_aabb_min, args.mesh_aabb_max, "mesh AABB")

        if args.num_threads is not None and args.num_threads < 0:
            raise ValueError("The number of threads must not be negative")

        spatial_decomposition = (
            GridDecompositionParameters(subdomain_num_cubes_per_dim=args.subdomain_cubes)
            if args.subdomain_grid
            else None
        )

        params = Parameters(
            particle_radius=args.particle_radius,
            rest_density=args.rest_density,
            compact_support_radius=args.particle_radius * 2.0 * args.smoothing_length,
            cube_size=args.particle_radius * args.cube_size,
            iso_surface_threshold=args.surface_threshold,
            particle_aabb=particle_aabb,
            enable_multi_threading=bool(args.parallelize_over_particles),
            spatial_decomposition=spatial_decomposition,
            global_neighborhood_list=bool(args.mesh_smoothing_weights),
        )

        postprocessing = PostprocessingArgs(
            check_mesh_closed=bool(args.check_mesh) or bool(args.check_mesh_closed),
            check_mesh_manifold=bool(args.check_mesh) or bool(args.check_mesh_manifold),
            check_mesh_debug=bool(args.check_mesh_debug),
            mesh_cleanup=bool(args.mesh_cleanup),
            decimate_barnacles=bool(args.decimate_barnacles),
            keep_vertices=bool(args.keep_verts),
            compute_normals=bool(args.normals),
            sph_normals=bool(args.sph_normals),
            normals_smoothing_iters=args.normals_smoothing_iters,
            interpolate_attributes=list(args.interpolate_attributes),
            mesh_smoothing_iters=args.mesh_smoothing_iters,
            mesh_smoothing_weights=bool(args.mesh_smoothing_weights),
            mesh_smoothing_weights_normalization=args.mesh_smoothing_weights_normalization,
            generate_quads=bool(args.generate_quads),
            quad_max_edge_diag_ratio=args.quad_max_edge_diag_ratio,
            quad_max_normal_angle=args.quad_max_normal_angle,
            quad_max_interior_angle=args.quad_max_interior_angle,
            output_mesh_smoothing_weights=bool(args.output_smoothing_weights),
            output_raw_normals=bool(args.output_raw_normals),
            output_raw_mesh=bool(args.output_raw_mesh),
            mesh_aabb=mesh_aabb,
            mesh_aabb_clamp_vertices=bool(args.mesh_aabb_clamp_verts),
        )

        return cls(
            params=params,
            use_double_precision=bool(args.double_precision),
            postprocessing=postprocessing,
            num_threads=args.num_threads,
        )