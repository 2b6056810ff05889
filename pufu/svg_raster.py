"""Anti-aliased scanline rasterizer for flattened vector shapes."""

from __future__ import annotations

import math
from bisect import bisect_left
from collections import deque
from dataclasses import dataclass, field
from operator import attrgetter
from typing import Iterator

from .svg_geometry import Edge, FillRule, Flattener, Image, Paint, PaintType, Shape

SUBSAMPLES = 5
FIXSHIFT = 10
FIX = 1 << FIXSHIFT
FIXMASK = FIX - 1
MAX_WEIGHT = 255 // SUBSAMPLES

Xform = tuple[float, float, float, float, float, float]


def _clampf(a: float, lo: float, hi: float) -> float:
    if math.isnan(a):
        return lo
    return lo if a < lo else (hi if a > hi else a)


def _roundf(x: float) -> float:
    return math.floor(x + 0.5) if x >= 0 else math.ceil(x - 0.5)


def _div255(x: int) -> int:
    return ((x + 1) * 257) >> 16


def _channels(c: int) -> tuple[int, int, int, int]:
    return c & 0xFF, (c >> 8) & 0xFF, (c >> 16) & 0xFF, (c >> 24) & 0xFF


def pack_rgba(r: int, g: int, b: int, a: int) -> int:
    """Pack four 8-bit channels into one integer, red in the low byte."""
    return (r & 0xFF) | ((g & 0xFF) << 8) | ((b & 0xFF) << 16) | ((a & 0xFF) << 24)


def lerp_rgba(c0: int, c1: int, u: float) -> int:
    """Blend two packed colours; ``u`` is clamped to [0, 1]."""
    iu = int(_clampf(u, 0.0, 1.0) * 256.0)
    mixed = (
        (a * (256 - iu) + b * iu) >> 8
        for a, b in zip(_channels(c0), _channels(c1))
    )
    return pack_rgba(*mixed)


def apply_opacity(c: int, u: float) -> int:
    """Scale the alpha of a packed colour by ``u`` clamped to [0, 1]."""
    iu = int(_clampf(u, 0.0, 1.0) * 256.0)
    r, g, b, a = _channels(c)
    return pack_rgba(r, g, b, (a * iu) >> 8)


def unpremultiply_alpha(image: bytearray, width: int, height: int, stride: int) -> None:
    """Convert premultiplied RGBA to straight alpha in place and defringe empty pixels."""
    for y in range(height):
        for x in range(width):
            o = y * stride + x * 4
            a = image[o + 3]
            if a != 0:
                image[o:o + 3] = bytes((v * 255 // a) & 0xFF for v in image[o:o + 3])

    for y in range(height):
        for x in range(width):
            o = y * stride + x * 4
            if image[o + 3] != 0:
                continue
            neighbours = []
            if x - 1 > 0 and image[o - 1] != 0:
                neighbours.append(o - 4)
            if x + 1 < width and image[o + 7] != 0:
                neighbours.append(o + 4)
            if y - 1 > 0 and image[o - stride + 3] != 0:
                neighbours.append(o - stride)
            if y + 1 < height and image[o + stride + 3] != 0:
                neighbours.append(o + stride)
            if neighbours:
                n = len(neighbours)
                image[o:o + 3] = bytes(
                    sum(image[p + k] for p in neighbours) // n for k in range(3)
                )


@dataclass
class CachedPaint:
    """A paint resolved into a 256-entry colour lookup table."""

    type: PaintType
    colors: list[int] = field(default_factory=lambda: [0] * 256)
    xform: Xform = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)
    spread: int = 0

    @classmethod
    def from_paint(cls, paint: Paint, opacity: float) -> CachedPaint:
        """Build the lookup table for ``paint`` with the shape's opacity applied."""
        if paint.type == PaintType.NONE:
            return cls(PaintType.NONE)
        if paint.type == PaintType.COLOR:
            return cls(PaintType.COLOR, [apply_opacity(paint.color, opacity)] * 256)

        grad = paint.gradient
        if grad is None:
            raise ValueError("gradient paint has no gradient")
        cache = cls(paint.type, [0] * 256, tuple(grad.xform), grad.spread)  # type: ignore[arg-type]
        stops = grad.stops
        colors = cache.colors

        if len(stops) == 1:
            cache.colors = [apply_opacity(stops[0].color, opacity)] * 256
            return cache
        if not stops:
            return cache

        ca = apply_opacity(stops[0].color, opacity)
        ua = _clampf(stops[0].offset, 0, 1)
        ub = _clampf(stops[-1].offset, ua, 1)
        ia = int(ua * 255.0)
        ib = int(ub * 255.0)
        colors[0:ia] = [ca] * ia

        cb = 0
        for s0, s1 in zip(stops, stops[1:]):
            ca = apply_opacity(s0.color, opacity)
            cb = apply_opacity(s1.color, opacity)
            ia = int(_clampf(s0.offset, 0, 1) * 255.0)
            ib = int(_clampf(s1.offset, 0, 1) * 255.0)
            count = ib - ia
            if count <= 0:
                continue
            u = 0.0
            du = 1.0 / count
            for j in range(count):
                colors[ia + j] = lerp_rgba(ca, cb, u)
                u += du

        colors[ib:256] = [cb] * (256 - ib)
        return cache


class _ActiveEdge:
    __slots__ = ("x", "dx", "ey", "dir")

    def __init__(self, edge: Edge, start: float) -> None:
        dxdy = (edge.x1 - edge.x0) / (edge.y1 - edge.y0)
        if dxdy < 0:
            self.dx = int(-_roundf(FIX * -dxdy))
        else:
            self.dx = int(_roundf(FIX * dxdy))
        self.x = int(_roundf(FIX * (edge.x0 + dxdy * (start - edge.y0))))
        self.ey = edge.y1
        self.dir = edge.dir


def _fill_scanline(scanline: bytearray, x0: int, x1: int,
                   xmin: int, xmax: int) -> tuple[int, int]:
    length = len(scanline)
    i = x0 >> FIXSHIFT
    j = x1 >> FIXSHIFT
    xmin = min(xmin, i)
    xmax = max(xmax, j)
    if i < length and j >= 0:
        if i == j:
            scanline[i] = (scanline[i] + (((x1 - x0) * MAX_WEIGHT) >> FIXSHIFT)) & 0xFF
        else:
            if i >= 0:
                scanline[i] = (scanline[i]
                               + (((FIX - (x0 & FIXMASK)) * MAX_WEIGHT) >> FIXSHIFT)) & 0xFF
            else:
                i = -1
            if j < length:
                scanline[j] = (scanline[j] + (((x1 & FIXMASK) * MAX_WEIGHT) >> FIXSHIFT)) & 0xFF
            else:
                j = length
            scanline[i + 1:j] = bytes((v + MAX_WEIGHT) & 0xFF for v in scanline[i + 1:j])
    return xmin, xmax


def _fill_active_edges(scanline: bytearray, active: list[_ActiveEdge], xmin: int,
                       xmax: int, fill_rule: FillRule) -> tuple[int, int]:
    x0 = 0
    w = 0
    if fill_rule == FillRule.NONZERO:
        for e in active:
            if w == 0:
                x0 = e.x
                w += e.dir
            else:
                w += e.dir
                if w == 0:
                    xmin, xmax = _fill_scanline(scanline, x0, e.x, xmin, xmax)
    elif fill_rule == FillRule.EVENODD:
        for e in active:
            if w == 0:
                x0 = e.x
                w = 1
            else:
                w = 0
                xmin, xmax = _fill_scanline(scanline, x0, e.x, xmin, xmax)
    return xmin, xmax


def _paint_colors(cache: CachedPaint, x: int, y: int, tx: float, ty: float,
                  scale: float) -> Iterator[int]:
    """Yield the paint colour for consecutive pixels starting at (x, y)."""
    if cache.type == PaintType.COLOR:
        color = cache.colors[0]
        while True:
            yield color
    if cache.type not in (PaintType.LINEAR_GRADIENT, PaintType.RADIAL_GRADIENT):
        return
    t = cache.xform
    fx = (x - tx) / scale
    fy = (y - ty) / scale
    step = 1.0 / scale
    while True:
        gy = fx * t[1] + fy * t[3] + t[5]
        if cache.type == PaintType.LINEAR_GRADIENT:
            pos = gy
        else:
            gx = fx * t[0] + fy * t[2] + t[4]
            pos = math.sqrt(gx * gx + gy * gy)
        yield cache.colors[int(_clampf(pos * 255.0, 0, 255.0))]
        fx += step


def _blit(dst: bytearray, offset: int, cover: bytes, x: int, y: int,
          tx: float, ty: float, scale: float, cache: CachedPaint) -> None:
    for coverage, color in zip(cover, _paint_colors(cache, x, y, tx, ty, scale)):
        cr, cg, cb, ca = _channels(color)
        a = _div255(coverage * ca)
        ia = 255 - a
        r = _div255(cr * a) + _div255(ia * dst[offset])
        g = _div255(cg * a) + _div255(ia * dst[offset + 1])
        b = _div255(cb * a) + _div255(ia * dst[offset + 2])
        a += _div255(ia * dst[offset + 3])
        dst[offset:offset + 4] = bytes((r & 0xFF, g & 0xFF, b & 0xFF, a & 0xFF))
        offset += 4


class Rasterizer:
    """Renders an :class:`Image` into a straight-alpha RGBA byte buffer."""

    def __init__(self) -> None:
        self.tess_tol = 0.25
        self.dist_tol = 0.01

    def _edges_for(self, shape: Shape, scale: float, tx: float, ty: float,
                   stroke: bool) -> list[Edge]:
        flattener = Flattener(self.tess_tol, self.dist_tol)
        raw = flattener.flatten_stroke(shape, scale) if stroke else flattener.flatten_fill(shape, scale)
        edges = [
            Edge(tx + e.x0, (ty + e.y0) * SUBSAMPLES, tx + e.x1, (ty + e.y1) * SUBSAMPLES, e.dir)
            for e in raw
        ]
        edges.sort(key=attrgetter("y0"))
        return edges

    @staticmethod
    def _rasterize_edges(edges: list[Edge], bitmap: bytearray, width: int, height: int,
                         stride: int, tx: float, ty: float, scale: float,
                         cache: CachedPaint, fill_rule: FillRule) -> None:
        pending = deque(edges)
        active: list[_ActiveEdge] = []
        key = attrgetter("x")

        for y in range(height):
            scanline = bytearray(width)
            xmin, xmax = width, 0
            for s in range(SUBSAMPLES):
                scany = y * SUBSAMPLES + s + 0.5

                survivors = []
                for z in active:
                    if z.ey > scany:
                        z.x += z.dx
                        survivors.append(z)
                active = survivors
                active.sort(key=key)

                while pending and pending[0].y0 <= scany:
                    edge = pending.popleft()
                    if edge.y1 <= scany:
                        continue
                    z = _ActiveEdge(edge, scany)
                    if not active or z.x < active[0].x:
                        active.insert(0, z)
                    else:
                        active.insert(bisect_left(active, z.x, lo=1, key=key), z)

                if active:
                    xmin, xmax = _fill_active_edges(scanline, active, xmin, xmax, fill_rule)

            xmin = max(xmin, 0)
            xmax = min(xmax, width - 1)
            if xmin <= xmax:
                _blit(bitmap, y * stride + xmin * 4, bytes(scanline[xmin:xmax + 1]),
                      xmin, y, tx, ty, scale, cache)

    def rasterize(self, image: Image, tx: float, ty: float, scale: float,
                  width: int, height: int, stride: int | None = None) -> bytearray:
        """Render ``image`` scaled by ``scale`` then offset by (tx, ty); returns RGBA bytes."""
        if stride is None:
            stride = width * 4
        if width < 0 or height < 0:
            raise ValueError("image size must not be negative")
        if stride < width * 4:
            raise ValueError("stride is smaller than a row of pixels")

        bitmap = bytearray(stride * height)
        for shape in image.shapes:
            if not shape.visible:
                continue
            for part in shape.paint_order:
                if part == "fill" and shape.fill.type != PaintType.NONE:
                    edges = self._edges_for(shape, scale, tx, ty, stroke=False)
                    cache = CachedPaint.from_paint(shape.fill, shape.opacity)
                    self._rasterize_edges(edges, bitmap, width, height, stride,
                                          tx, ty, scale, cache, shape.fill_rule)
                elif (part == "stroke" and shape.stroke.type != PaintType.NONE
                      and shape.stroke_width * scale > 0.01):
                    edges = self._edges_for(shape, scale, tx, ty, stroke=True)
                    cache = CachedPaint.from_paint(shape.stroke, shape.opacity)
                    self._rasterize_edges(edges, bitmap, width, height, stride,
                                          tx, ty, scale, cache, FillRule.NONZERO)

        unpremultiply_alpha(bitmap, width, height, stride)
        return bitmap