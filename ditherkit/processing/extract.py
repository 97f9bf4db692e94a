"""Palette extraction: median cut, octree and k-means.

All three work on a colour histogram of the opaque pixels (every pixel when the
buffer is fully transparent) and return between 1 and ``target_count`` colours.
"""

from __future__ import annotations

import heapq
import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from ..buffer import Color, PixelBuffer, clamp_channel, luminance
from ..errors import InvalidPaletteError
from ..settings import ExtractionAlgorithm, parse_enum
from .palette import Palette

LOGGER = logging.getLogger(__name__)

RGB = Tuple[int, int, int]
Histogram = Dict[RGB, int]

OCTREE_DEPTH = 6
KMEANS_MAX_ITERATIONS = 20
KMEANS_EPSILON = 0.5


def color_histogram(buffer: PixelBuffer) -> Histogram:
    data = buffer.data
    opaque: Counter = Counter()
    for idx in range(0, len(data), 4):
        if data[idx + 3]:
            opaque[(data[idx], data[idx + 1], data[idx + 2])] += 1
    if opaque:
        return dict(opaque)
    every: Counter = Counter()
    for idx in range(0, len(data), 4):
        every[(data[idx], data[idx + 1], data[idx + 2])] += 1
    return dict(every)


def _weighted_mean(entries: Sequence[Tuple[RGB, int]]) -> Color:
    total = sum(count for _, count in entries)
    r = sum(c[0] * count for c, count in entries) / total
    g = sum(c[1] * count for c, count in entries) / total
    b = sum(c[2] * count for c, count in entries) / total
    return Color(clamp_channel(r), clamp_channel(g), clamp_channel(b))


# -- median cut ---------------------------------------------------------------


class _Bucket:
    __slots__ = ("entries", "population", "channel", "span")

    def __init__(self, entries: List[Tuple[RGB, int]]) -> None:
        self.entries = entries
        self.population = sum(count for _, count in entries)
        spans = []
        for channel in range(3):
            values = [color[channel] for color, _ in entries]
            spans.append(max(values) - min(values))
        self.span = max(spans)
        self.channel = spans.index(self.span)

    def split(self) -> Tuple["_Bucket", "_Bucket"]:
        channel = self.channel
        ordered = sorted(self.entries, key=lambda entry: (entry[0][channel], entry[0]))
        half = self.population // 2
        low: List[Tuple[RGB, int]] = []
        high: List[Tuple[RGB, int]] = []
        taken = 0
        for color, count in ordered:
            if taken >= half:
                high.append((color, count))
            elif taken + count <= half:
                low.append((color, count))
            else:
                # The median falls inside this colour; share its pixels.
                low.append((color, half - taken))
                high.append((color, taken + count - half))
            taken += count
        return _Bucket(low), _Bucket(high)


def median_cut(histogram: Histogram, target_count: int) -> List[Color]:
    buckets = [_Bucket(sorted(histogram.items()))]
    while len(buckets) < target_count:
        candidates = [b for b in buckets if b.population >= 2]
        if not candidates:
            break
        widest = max(candidates, key=lambda b: (b.span, b.population))
        buckets.remove(widest)
        buckets.extend(widest.split())
    return [_weighted_mean(bucket.entries) for bucket in buckets]


# -- octree -------------------------------------------------------------------


class _OctreeNode:
    __slots__ = ("children", "count", "r", "g", "b", "parent", "version")

    def __init__(self, parent: Optional["_OctreeNode"] = None) -> None:
        self.children: Dict[int, _OctreeNode] = {}
        self.count = 0
        self.r = 0
        self.g = 0
        self.b = 0
        self.parent = parent
        self.version = 0

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def absorb(self, other: "_OctreeNode") -> None:
        self.count += other.count
        self.r += other.r
        self.g += other.g
        self.b += other.b

    def mean(self) -> Tuple[float, float, float]:
        return self.r / self.count, self.g / self.count, self.b / self.count


def _merge_cost(a: _OctreeNode, b: _OctreeNode) -> float:
    """Increase in summed squared error when two leaves share one mean."""
    ma = a.mean()
    mb = b.mean()
    distance = sum((x - y) ** 2 for x, y in zip(ma, mb))
    return a.count * b.count / (a.count + b.count) * distance


class _Octree:
    def __init__(self, histogram: Histogram, depth: int = OCTREE_DEPTH) -> None:
        self.root = _OctreeNode()
        self.depth = depth
        self.heap: List[Tuple[float, int, int, _OctreeNode, int, int]] = []
        self._seq = 0
        for color, count in sorted(histogram.items()):
            self._insert(color, count)
        self.leaf_count = sum(1 for _ in self.leaves())
        for node in self._internal_nodes_bottom_up():
            self._collapse(node)
        for node in self._internal_nodes_bottom_up():
            self._push_pairs(node)

    def _insert(self, color: RGB, count: int) -> None:
        node = self.root
        r, g, b = color
        for level in range(self.depth):
            shift = 7 - level
            index = ((r >> shift) & 1) << 2 | ((g >> shift) & 1) << 1 | ((b >> shift) & 1)
            child = node.children.get(index)
            if child is None:
                child = node.children[index] = _OctreeNode(node)
            node = child
        node.count += count
        node.r += r * count
        node.g += g * count
        node.b += b * count

    def leaves(self):
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                if node.count:
                    yield node
                continue
            stack.extend(node.children[key] for key in sorted(node.children, reverse=True))

    def _internal_nodes_bottom_up(self) -> List[_OctreeNode]:
        order: List[_OctreeNode] = []
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                continue
            order.append(node)
            stack.extend(node.children[key] for key in sorted(node.children))
        order.reverse()
        return order

    def _collapse(self, node: _OctreeNode) -> _OctreeNode:
        """Fold single-leaf-child chains upward; returns the last node touched."""
        while node.parent is not None and len(node.children) == 1:
            (child,) = node.children.values()
            if not child.is_leaf:
                break
            node.children.clear()
            node.absorb(child)
            node = node.parent
            node.version += 1
        return node

    def _push_pairs(self, node: _OctreeNode) -> None:
        keys = [key for key in sorted(node.children) if node.children[key].is_leaf]
        for i, key_a in enumerate(keys):
            for key_b in keys[i + 1 :]:
                cost = _merge_cost(node.children[key_a], node.children[key_b])
                heapq.heappush(self.heap, (cost, self._seq, node.version, node, key_a, key_b))
                self._seq += 1

    def reduce(self, target_count: int) -> None:
        while self.leaf_count > target_count and self.heap:
            _, _, version, parent, key_a, key_b = heapq.heappop(self.heap)
            if version != parent.version:
                continue
            a = parent.children.get(key_a)
            b = parent.children.get(key_b)
            if a is None or b is None or not (a.is_leaf and b.is_leaf):
                continue
            a.absorb(b)
            del parent.children[key_b]
            parent.version += 1
            self.leaf_count -= 1
            self._push_pairs(self._collapse(parent))


def octree(histogram: Histogram, target_count: int) -> List[Color]:
    tree = _Octree(histogram)
    tree.reduce(target_count)
    ranked = sorted(tree.leaves(), key=lambda node: -node.count)
    colors = []
    for node in ranked:
        r, g, b = node.mean()
        colors.append(Color(clamp_channel(r), clamp_channel(g), clamp_channel(b)))
    return colors


# -- k-means ------------------------------------------------------------------


def _quantile_centroids(entries: List[Tuple[RGB, int]], k: int) -> List[List[float]]:
    ordered = sorted(entries, key=lambda entry: (luminance(*entry[0]), entry[0]))
    total = sum(count for _, count in ordered)
    centroids: List[List[float]] = []
    position = 0
    cumulative = ordered[0][1]
    for i in range(k):
        target = (i + 0.5) / k * total
        while cumulative < target and position < len(ordered) - 1:
            position += 1
            cumulative += ordered[position][1]
        centroids.append([float(c) for c in ordered[position][0]])
    return centroids


def kmeans(
    histogram: Histogram,
    target_count: int,
    max_iterations: int = KMEANS_MAX_ITERATIONS,
    epsilon: float = KMEANS_EPSILON,
) -> List[Color]:
    entries = sorted(histogram.items())
    centroids = _quantile_centroids(entries, target_count)
    for iteration in range(max_iterations):
        sums = [[0.0, 0.0, 0.0, 0] for _ in centroids]
        for (r, g, b), count in entries:
            best = 0
            best_distance = float("inf")
            for index, (cr, cg, cb) in enumerate(centroids):
                distance = (cr - r) ** 2 + (cg - g) ** 2 + (cb - b) ** 2
                if distance < best_distance:
                    best_distance = distance
                    best = index
            acc = sums[best]
            acc[0] += r * count
            acc[1] += g * count
            acc[2] += b * count
            acc[3] += count
        movement = 0.0
        for index, (sr, sg, sb, n) in enumerate(sums):
            if not n:
                continue
            updated = [sr / n, sg / n, sb / n]
            shift = max(abs(x - y) for x, y in zip(updated, centroids[index]))
            movement = max(movement, shift)
            centroids[index] = updated
        if movement < epsilon:
            LOGGER.debug("k-means converged after %d iterations", iteration + 1)
            break
    return [Color(clamp_channel(r), clamp_channel(g), clamp_channel(b)) for r, g, b in centroids]


def extract(
    buffer: PixelBuffer,
    target_count: int,
    algorithm: ExtractionAlgorithm = ExtractionAlgorithm.MEDIAN_CUT,
) -> Palette:
    """Derive a palette of at most ``target_count`` colours from ``buffer``."""
    if isinstance(target_count, bool) or not isinstance(target_count, int) or not 1 <= target_count <= 256:
        raise InvalidPaletteError(f"target_count must be an integer in [1, 256], got {target_count!r}")
    algorithm = parse_enum(ExtractionAlgorithm, algorithm, "extraction algorithm")
    histogram = color_histogram(buffer)
    LOGGER.debug(
        "Extracting %d colours with %s from %d distinct",
        target_count,
        algorithm.value,
        len(histogram),
    )

    if target_count == 1:
        colors = [_weighted_mean(list(histogram.items()))]
    elif algorithm is ExtractionAlgorithm.MEDIAN_CUT:
        colors = median_cut(histogram, target_count)
    elif algorithm is ExtractionAlgorithm.OCTREE:
        colors = octree(histogram, target_count)
    else:
        colors = kmeans(histogram, target_count)

    return Palette(
        name=f"Extracted ({algorithm.value})",
        colors=tuple(colors[:target_count]),
        category="extracted",
        description=f"{len(colors)} colours via {algorithm.value}",
    )
