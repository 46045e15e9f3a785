"""Axis-aligned bounding boxes in arbitrary dimensions."""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import reduce

Vector = tuple[float, ...]

_DEFAULT_DIM = 3


def _vec(values: Iterable[float]) -> Vector:
    return tuple(float(v) for v in values)


def _check_dim(a: Sequence[float], b: Sequence[float]) -> None:
    if len(a) != len(b):
        raise ValueError(f"dimension mismatch: {len(a)} vs {len(b)}")


@dataclass
class AxisAlignedBoundingBox:
    """An axis-aligned box given by its min and max corner points."""

    min: Vector
    max: Vector

    def __post_init__(self) -> None:
        self.min = _vec(self.min)
        self.max = _vec(self.max)
        _check_dim(self.min, self.max)

    @property
    def dim(self) -> int:
        return len(self.min)

    @classmethod
    def zeros(cls, dim: int = _DEFAULT_DIM) -> AxisAlignedBoundingBox:
        """A degenerate box with min and max at the origin."""
        if dim < 1:
            raise ValueError("dimension must be at least 1")
        return cls.from_point((0.0,) * dim)

    @classmethod
    def from_point(cls, point: Sequence[float]) -> AxisAlignedBoundingBox:
        """A degenerate box with zero extents at the given point."""
        p = _vec(point)
        return cls(p, p)

    @classmethod
    def from_points(cls, points: Iterable[Sequence[float]]) -> AxisAlignedBoundingBox:
        """The smallest box around all points; a zero 3D box if there are none."""
        iterator = iter(points)
        first = next(iterator, None)
        if first is None:
            return cls.zeros()
        aabb = cls.from_point(first)
        for point in iterator:
            aabb.join_with_point(point)
        return aabb

    @classmethod
    def par_from_points(cls, points: Sequence[Sequence[float]]) -> AxisAlignedBoundingBox:
        """Same result as ``from_points``, computed over chunks in a thread pool."""
        points = list(points)
        if len(points) <= 1:
            return cls.from_points(points)
        workers = os.cpu_count() or 1
        chunk = max(1, -(-len(points) // workers))
        chunks = [points[i:i + chunk] for i in range(0, len(points), chunk)]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            partial = list(pool.map(cls.from_points, chunks))

        def _joined(acc: AxisAlignedBoundingBox, other: AxisAlignedBoundingBox):
            acc.join(other)
            return acc

        return reduce(_joined, partial[1:], partial[0])

    def is_consistent(self) -> bool:
        """True if ``min[i] <= max[i]`` for every axis."""
        return all(lo <= hi for lo, hi in zip(self.min, self.max))

    def is_degenerate(self) -> bool:
        """True if the min and max corners coincide."""
        return self.min == self.max

    def extents(self) -> Vector:
        return tuple(hi - lo for lo, hi in zip(self.min, self.max))

    def min_extent(self) -> float:
        return min(self.extents())

    def max_extent(self) -> float:
        return max(self.extents())

    def centroid(self) -> Vector:
        return tuple(lo + e / 2.0 for lo, e in zip(self.min, self.extents()))

    def contains_aabb(self, other: AxisAlignedBoundingBox) -> bool:
        """True if either corner of ``other`` lies inside this half-open box."""
        return self.contains_point(other.min) or self.contains_point(other.max)

    def contains_point(self, point: Sequence[float]) -> bool:
        """True if the point lies in the box, half-open towards the max corner."""
        _check_dim(point, self.min)
        return all(lo <= p < hi for p, lo, hi in zip(point, self.min, self.max))

    def translate(self, vector: Sequence[float]) -> None:
        _check_dim(vector, self.min)
        self.min = tuple(a + v for a, v in zip(self.min, vector))
        self.max = tuple(a + v for a, v in zip(self.max, vector))

    def center_at_origin(self) -> None:
        self.translate(tuple(-c for c in self.centroid()))

    def scale_uniformly(self, scaling: float) -> None:
        """Scales the extents about the box's own centroid."""
        center = self.centroid()
        self.translate(tuple(-c for c in center))
        self.min = tuple(a * scaling for a in self.min)
        self.max = tuple(a * scaling for a in self.max)
        self.translate(center)

    def join(self, other: AxisAlignedBoundingBox) -> None:
        _check_dim(other.min, self.min)
        self.min = tuple(map(min, self.min, other.min))
        self.max = tuple(map(max, self.max, other.max))

    def join_with_point(self, point: Sequence[float]) -> None:
        p = _vec(point)
        _check_dim(p, self.min)
        self.min = tuple(map(min, self.min, p))
        self.max = tuple(map(max, self.max, p))

    def grow_uniformly(self, margin: float) -> None:
        self.min = tuple(a - margin for a in self.min)
        self.max = tuple(a + margin for a in self.max)

    def enclosing_cube(self) -> AxisAlignedBoundingBox:
        """The smallest cube with the same centre that encloses this box."""
        half = self.max_extent() / 2.0
        cube = AxisAlignedBoundingBox((-half,) * self.dim, (half,) * self.dim)
        cube.translate(self.centroid())
        return cube

    def __str__(self) -> str:
        lo = ", ".join(f"{v:.7f}" for v in self.min)
        hi = ", ".join(f"{v:.7f}" for v in self.max)
        return f"AxisAlignedBoundingBox {{ min: [{lo}], max: [{hi}] }}"