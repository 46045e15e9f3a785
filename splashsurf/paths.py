"""Input and output file paths of reconstruction tasks, including file sequences."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from splashsurf.arguments import ReconstructSubcommandArgs

logger = logging.getLogger(__name__)

PLACEHOLDER = "{}"
OUTPUT_SUFFIX = "surface"

_CHUNK_RE = re.compile(r"(\d+)")


def natural_key(text: str) -> tuple:
    """Sort key ordering embedded digit runs by their numeric value."""
    key = []
    for chunk in _CHUNK_RE.split(text):
        if not chunk:
            continue
        if chunk.isdigit():
            key.append((0, int(chunk), chunk))
        else:
            key.append((1, chunk))
    return tuple(key)


@dataclass(frozen=True)
class ReconstructionRunnerPaths:
    """Input and output file of a single reconstruction task."""

    input_file: Path
    output_file: Path


@dataclass(frozen=True)
class ReconstructionRunnerPathCollection:
    """A single input file or a sequence pattern, with the matching output path."""

    is_sequence: bool
    input_file: Path
    output_file: Path
    sequence_range: tuple[int | None, int | None] = (None, None)

    @classmethod
    def _create(
        cls,
        is_sequence: bool,
        input_file: Path,
        output_base_path: Path | None,
        output_file: Path,
        sequence_range: tuple[int | None, int | None],
    ) -> ReconstructionRunnerPathCollection:
        start, end = sequence_range
        if start is not None and end is not None and start > end:
            raise ValueError(f'Invalid input sequence range: "{start} to {end}"')

        if output_base_path is not None:
            output_file = Path(output_base_path) / output_file
            output_dir = output_file.parent
            if not output_dir.exists():
                logger.info(
                    'The output directory "%s" of the output file "%s" does not exist. '
                    "Trying to create it now...",
                    output_dir,
                    output_file,
                )
                try:
                    output_dir.mkdir(parents=True, exist_ok=True)
                except OSError as err:
                    raise OSError(
                        f'Unable to create output directory "{output_dir}"'
                    ) from err

        return cls(is_sequence, Path(input_file), Path(output_file), (start, end))

    @classmethod
    def from_args(cls, args: ReconstructSubcommandArgs) -> ReconstructionRunnerPathCollection:
        """Builds the collection from reconstruct command arguments."""
        input_path = Path(args.input_file_or_sequence)
        input_filename = input_path.name
        if input_filename in ("", ".", ".."):
            raise ValueError(
                f'The input file path "{input_path}" does not end with a filename'
            )

        input_dir = input_path.parent
        if not input_dir.is_dir():
            raise FileNotFoundError(
                f'The parent directory "{input_dir}" of the input file path '
                f'"{input_path}" does not exist'
            )

        if PLACEHOLDER in input_filename:
            is_sequence = True
            if args.output_file is not None:
                output_pattern = str(args.output_file)
                if PLACEHOLDER not in output_pattern:
                    raise ValueError(
                        f'The output filename "{args.output_file}" does not contain '
                        f'a place holder "{PLACEHOLDER}"'
                    )
                output_filename = Path(output_pattern)
            else:
                stem = input_path.stem.replace(PLACEHOLDER, f"{OUTPUT_SUFFIX}_{PLACEHOLDER}")
                output_filename = Path(f"{stem}.vtk")
        else:
            is_sequence = False
            if not input_path.is_file():
                raise FileNotFoundError(f'Input file does not exist: "{input_path}"')
            if args.output_file is not None:
                output_filename = Path(args.output_file)
            else:
                output_filename = Path(f"{input_path.stem}_{OUTPUT_SUFFIX}.vtk")

        return cls._create(
            is_sequence,
            input_path,
            args.output_dir,
            output_filename,
            (args.start_index, args.end_index),
        )

    def _in_range(self, index: int) -> bool:
        start, end = self.sequence_range
        if start is not None and index < start:
            return False
        if end is not None and index > end:
            return False
        return True

    def collect(self) -> list[ReconstructionRunnerPaths]:
        """Returns one path pair per input file to process."""
        if not self.is_sequence:
            return [ReconstructionRunnerPaths(self.input_file, self.output_file)]

        input_dir = self.input_file.parent
        output_dir = self.output_file.parent
        input_pattern = self.input_file.name
        output_pattern = self.output_file.name

        if PLACEHOLDER not in input_pattern:
            raise ValueError("sequence input filename has to include pattern")
        prefix, suffix = input_pattern.split(PLACEHOLDER, 1)
        pattern_text = f"{re.escape(prefix)}(\\d+){re.escape(suffix)}"
        input_re = re.compile(pattern_text)

        logger.info('Looking for input sequence files in root "%s"', input_dir)

        try:
            entries = [
                entry
                for entry in input_dir.iterdir()
                if not entry.is_symlink() and entry.is_file()
            ]
        except OSError:
            entries = []
        entries.sort(key=lambda entry: natural_key(entry.name))

        paths = []
        for entry in entries:
            match = input_re.search(entry.name)
            if match is None:
                continue
            index_text = match.group(1)
            if not self._in_range(int(index_text)):
                continue
            paths.append(
                ReconstructionRunnerPaths(
                    input_dir / entry.name,
                    output_dir / output_pattern.replace(PLACEHOLDER, index_text),
                )
            )

        start, end = self.sequence_range
        logger.info(
            'Found %d input files matching the pattern "%s" between in range %s to %s',
            len(paths),
            pattern_text,
            "*" if start is None else start,
            "*" if end is None else end,
        )
        return paths