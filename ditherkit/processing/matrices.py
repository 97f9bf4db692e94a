from __future__ import annotations

import random
from functools import lru_cache
from typing import Dict, Tuple

from ..settings import DitherAlgorithm

# (dx, dy, weight) with dx measured along the scan direction.
Kernel = Tuple[Tuple[int, int, float], ...]
Matrix = Tuple[Tuple[float, ...], ...]


def _kernel(divisor: float, *taps: Tuple[int, int, int]) -> Kernel:
    return tuple((dx, dy, weight / divisor) for dx, dy, weight in taps)


DIFFUSION_KERNELS: Dict[DitherAlgorithm, Kernel] = {
    #     X 7
    #   3 5 1
    DitherAlgorithm.FLOYD_STEINBERG: _kernel(16, (1, 0, 7), (-1, 1, 3), (0, 1, 5), (1, 1, 1)),
    #     X 1 1
    #   1 1 1
    #     1
    # Sums to 6/8; the remainder is discarded on purpose.
    DitherAlgorithm.ATKINSON: _kernel(
        8, (1, 0, 1), (2, 0, 1), (-1, 1, 1), (0, 1, 1), (1, 1, 1), (0, 2, 1)
    ),
    DitherAlgorithm.JARVIS_JUDICE_NINKE: _kernel(
        48,
        (1, 0, 7), (2, 0, 5),
        (-2, 1, 3), (-1, 1, 5), (0, 1, 7), (1, 1, 5), (2, 1, 3),
        (-2, 2, 1), (-1, 2, 3), (0, 2, 5), (1, 2, 3), (2, 2, 1),
    ),
    DitherAlgorithm.STUCKI: _kernel(
        42,
        (1, 0, 8), (2, 0, 4),
        (-2, 1, 2), (-1, 1, 4), (0, 1, 8), (1, 1, 4), (2, 1, 2),
        (-2, 2, 1), (-1, 2, 2), (0, 2, 4), (1, 2, 2), (2, 2, 1),
    ),
    DitherAlgorithm.BURKES: _kernel(
        32,
        (1, 0, 8), (2, 0, 4),
        (-2, 1, 2), (-1, 1, 4), (0, 1, 8), (1, 1, 4), (2, 1, 2),
    ),
    DitherAlgorithm.SIERRA: _kernel(
        32,
        (1, 0, 5), (2, 0, 3),
        (-2, 1, 2), (-1, 1, 4), (0, 1, 5), (1, 1, 4), (2, 1, 2),
        (-1, 2, 2), (0, 2, 3), (1, 2, 2),
    ),
    DitherAlgorithm.SIERRA_2ROW: _kernel(
        16,
        (1, 0, 4), (2, 0, 3),
        (-2, 1, 1), (-1, 1, 2), (0, 1, 3), (1, 1, 2), (2, 1, 1),
    ),
    DitherAlgorithm.SIERRA_LITE: _kernel(4, (1, 0, 2), (-1, 1, 1), (0, 1, 1)),
    DitherAlgorithm.FALSE_FLOYD_STEINBERG: _kernel(8, (1, 0, 3), (0, 1, 3), (1, 1, 2)),
    DitherAlgorithm.FAN: _kernel(16, (1, 0, 7), (-2, 1, 1), (-1, 1, 3), (0, 1, 5)),
    DitherAlgorithm.SHIAU_FAN: _kernel(8, (1, 0, 4), (-2, 1, 1), (-1, 1, 1), (0, 1, 2)),
}


def bayer_indices(size: int) -> Tuple[Tuple[int, ...], ...]:
    """Recursive Bayer index matrix for a power-of-two ``size``."""
    if size < 2 or size & (size - 1):
        raise ValueError(f"Bayer matrix size must be a power of two >= 2, got {size}")
    matrix = [[0, 2], [3, 1]]
    n = 2
    while n < size:
        grown = [[0] * (n * 2) for _ in range(n * 2)]
        for y in range(n):
            for x in range(n):
                base = 4 * matrix[y][x]
                grown[y][x] = base
                grown[y][x + n] = base + 2
                grown[y + n][x] = base + 3
                grown[y + n][x + n] = base + 1
        matrix = grown
        n *= 2
    return tuple(tuple(row) for row in matrix)


def normalize(indices: Tuple[Tuple[int, ...], ...], levels: int) -> Matrix:
    """Map integer ranks to thresholds strictly inside (0, 1)."""
    return tuple(tuple((value + 0.5) / levels for value in row) for row in indices)


_ORDERED_3X3 = ((0, 7, 3), (6, 5, 2), (4, 1, 8))
_SIMPLE_2X2 = ((0, 1), (1, 0))


@lru_cache(maxsize=None)
def threshold_matrix(algorithm: DitherAlgorithm) -> Matrix:
    if algorithm is DitherAlgorithm.BAYER_2X2:
        return normalize(bayer_indices(2), 4)
    if algorithm is DitherAlgorithm.BAYER_4X4:
        return normalize(bayer_indices(4), 16)
    if algorithm is DitherAlgorithm.BAYER_8X8:
        return normalize(bayer_indices(8), 64)
    if algorithm is DitherAlgorithm.BAYER_16X16:
        return normalize(bayer_indices(16), 256)
    if algorithm is DitherAlgorithm.ORDERED_3X3:
        return normalize(_ORDERED_3X3, 9)
    if algorithm is DitherAlgorithm.SIMPLE_2X2:
        return normalize(_SIMPLE_2X2, 2)
    if algorithm is DitherAlgorithm.BLUE_NOISE:
        return blue_noise_tile()
    raise KeyError(algorithm)


@lru_cache(maxsize=4)
def blue_noise_tile(size: int = 16, seed: int = 42) -> Matrix:
    """Tileable blue-noise thresholds from Mitchell's best-candidate ordering.

    Each step ranks the cell farthest (on the torus) from every cell ranked so
    far, so consecutive thresholds stay spatially spread out.
    """
    rng = random.Random(seed)
    remaining = [(x, y) for y in range(size) for x in range(size)]
    rng.shuffle(remaining)
    min_dist = [float("inf")] * (size * size)
    ranks = [[0] * size for _ in range(size)]
    half = size / 2
    for rank in range(size * size):
        best_pos = 0
        best_dist = -1.0
        for pos, (x, y) in enumerate(remaining):
            d = min_dist[y * size + x]
            if d > best_dist:
                best_dist = d
                best_pos = pos
        bx, by = remaining.pop(best_pos)
        ranks[by][bx] = rank
        for x, y in remaining:
            dx = abs(x - bx)
            dy = abs(y - by)
            if dx > half:
                dx = size - dx
            if dy > half:
                dy = size - dy
            d = dx * dx + dy * dy
            if d < min_dist[y * size + x]:
                min_dist[y * size + x] = d
    return normalize(tuple(tuple(row) for row in ranks), size * size)
