from array import array
from pathlib import Path

import pytest

from splashsurf.arguments import ReconstructSubcommandArgs, Switch
from splashsurf.cli import (
    ConvertSubcommandArgs,
    filter_particles_in_domain,
    main,
    overwrite_check,
    parse_args,
)

MINIMAL = [
    "reconstruct",
    "test.vtk",
    "--particle-radius=0.05",
    "--smoothing-length=3.0",
    "--cube-size=0.75",
]


@pytest.mark.parametrize("argv", [["--help"], ["reconstruct", "--help"], ["convert", "--help"]])
def test_help_exits_successfully(argv, capsys):
    with pytest.raises(SystemExit) as info:
        parse_args(argv)
    assert info.value.code == 0
    assert "usage" in capsys.readouterr().out


def test_minimum_arguments():
    args = parse_args(MINIMAL)
    assert isinstance(args.subcommand, ReconstructSubcommandArgs)
    assert args.subcommand.input_file_or_sequence == Path("test.vtk")
    assert args.subcommand.particle_radius == 0.05
    assert args.subcommand.smoothing_length == 3.0
    assert args.subcommand.cube_size == 0.75


def test_defaults():
    sub = parse_args(MINIMAL).subcommand
    assert sub.rest_density == 1000.0
    assert sub.surface_threshold == 0.6
    assert sub.subdomain_cubes == 64
    assert sub.parallelize_over_particles is Switch.ON
    assert sub.parallelize_over_files is Switch.OFF
    assert sub.interpolate_attributes == []


def test_switch_on():
    assert parse_args(MINIMAL + ["--normals=on"]).subcommand.normals is Switch.ON


def test_switch_off():
    assert parse_args(MINIMAL + ["--normals=off"]).subcommand.normals is Switch.OFF


def test_switch_ignores_case():
    assert parse_args(MINIMAL + ["--mt-files=ON"]).subcommand.parallelize_over_files is Switch.ON


def test_invalid_switch_value():
    with pytest.raises(SystemExit) as info:
        parse_args(MINIMAL + ["--normals=maybe"])
    assert info.value.code == 2


def test_domain_min_max_values():
    sub = parse_args(
        MINIMAL
        + ["--particle-aabb-min", "-1.0", "1.0", "-1.0", "--particle-aabb-max", "-2.0", "2.0", "-2.0"]
    ).subcommand
    assert sub.particle_aabb_min == [-1.0, 1.0, -1.0]
    assert sub.particle_aabb_max == [-2.0, 2.0, -2.0]


def test_domain_min_max_too_many_values():
    with pytest.raises(SystemExit) as info:
        parse_args(
            MINIMAL
            + [
                "--particle-aabb-min", "-1.0", "1.0", "-1.0", "2.0",
                "--particle-aabb-max", "-2.0", "2.0", "-2.0",
            ]
        )
    assert info.value.code == 2


def test_domain_min_requires_max():
    with pytest.raises(SystemExit) as info:
        parse_args(MINIMAL + ["--particle-aabb-min", "0", "0", "0"])
    assert info.value.code == 2


def test_missing_required_argument():
    with pytest.raises(SystemExit) as info:
        parse_args(["reconstruct", "test.vtk", "--smoothing-length=3.0", "--cube-size=0.75"])
    assert info.value.code == 2


def test_global_flags_after_subcommand():
    args = parse_args(MINIMAL + ["-vv", "-q"])
    assert args.verbosity == 2
    assert args.quiet is True


def test_global_flags_default():
    args = parse_args(MINIMAL)
    assert args.verbosity == 0
    assert args.quiet is False


def test_interpolate_attributes_repeatable():
    sub = parse_args(
        MINIMAL + ["--interpolate-attributes", "velocity", "--interpolate-attributes", "density"]
    ).subcommand
    assert sub.interpolate_attributes == ["velocity", "density"]


def test_convert_parse():
    sub = parse_args(["convert", "--particles", "in.xyz", "-o", "out.xyz"]).subcommand
    assert isinstance(sub, ConvertSubcommandArgs)
    assert sub.input_particles == Path("in.xyz")
    assert sub.output_file == Path("out.xyz")
    assert sub.overwrite is False


def test_convert_inputs_conflict():
    with pytest.raises(SystemExit) as info:
        parse_args(["convert", "--particles", "a.xyz", "--mesh", "b.vtk", "-o", "c.vtk"])
    assert info.value.code == 2


def test_convert_domain_requires_both():
    with pytest.raises(SystemExit) as info:
        parse_args(["convert", "--particles", "a.xyz", "-o", "c.xyz", "--domain-max", "1", "1", "1"])
    assert info.value.code == 2


def test_overwrite_check_existing_file(tmp_path):
    out = tmp_path / "out.xyz"
    out.write_bytes(b"")
    with pytest.raises(FileExistsError, match="already exists"):
        overwrite_check(ConvertSubcommandArgs(output_file=out))


def test_filter_particles_half_open():
    points = [(0.5, 0.5, 0.5), (1.0, 0.5, 0.5), (0.0, 0.0, 0.0), (-0.1, 0.2, 0.2)]
    kept = filter_particles_in_domain(points, [0, 0, 0], [1, 1, 1])
    assert kept == [(0.5, 0.5, 0.5), (0.0, 0.0, 0.0)]


def test_filter_particles_without_domain():
    points = [(5.0, 5.0, 5.0), (-5.0, 0.0, 1.0)]
    assert filter_particles_in_domain(points, None, None) == points


def test_filter_particles_requires_both_corners():
    with pytest.raises(ValueError):
        filter_particles_in_domain([(0.0, 0.0, 0.0)], [0, 0, 0], None)


def _write_xyz(path, points):
    path.write_bytes(array("f", [c for p in points for c in p]).tobytes())


def _read_xyz(path):
    values = array("f")
    values.frombytes(path.read_bytes())
    return list(zip(*[iter(values)] * 3))


def test_main_convert_particles_with_domain(tmp_path):
    src = tmp_path / "in.xyz"
    dst = tmp_path / "out.xyz"
    _write_xyz(src, [(0.5, 0.5, 0.5), (1.0, 0.5, 0.5), (-0.5, 0.0, 0.0), (0.0, 0.0, 0.0)])
    code = main([
        "-q", "convert", "--particles", str(src), "-o", str(dst),
        "--domain-min", "0", "0", "0", "--domain-max", "1", "1", "1",
    ])
    assert code == 0
    assert _read_xyz(dst) == [(0.5, 0.5, 0.5), (0.0, 0.0, 0.0)]


def test_main_convert_refuses_overwrite(tmp_path):
    src = tmp_path / "in.xyz"
    dst = tmp_path / "out.xyz"
    _write_xyz(src, [(1.0, 2.0, 3.0)])
    dst.write_bytes(b"keep")
    assert main(["-q", "convert", "--particles", str(src), "-o", str(dst)]) == 1
    assert dst.read_bytes() == b"keep"


def test_main_convert_overwrite(tmp_path):
    src = tmp_path / "in.xyz"
    dst = tmp_path / "out.xyz"
    _write_xyz(src, [(1.0, 2.0, 3.0)])
    dst.write_bytes(b"old")
    assert main(["-q", "convert", "--particles", str(src), "-o", str(dst), "--overwrite"]) == 0
    assert _read_xyz(dst) == [(1.0, 2.0, 3.0)]


def test_main_convert_without_input(tmp_path):
    assert main(["-q", "convert", "-o", str(tmp_path / "out.xyz")]) == 1


def test_main_convert_unsupported_mesh(tmp_path):
    mesh = tmp_path / "mesh.abc"
    mesh.write_text("")
    assert main(["-q", "convert", "--mesh", str(mesh), "-o", str(tmp_path / "out.obj")]) == 1


def test_main_reconstruct_missing_input(tmp_path):
    missing = tmp_path / "missing.xyz"
    code = main([
        "-q", "reconstruct", str(missing),
        "--particle-radius=0.05", "--smoothing-length=3.0", "--cube-size=0.75",
    ])
    assert code == 1