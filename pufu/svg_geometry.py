"""Vector shape model and its flattening into scanline edges."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Iterator, Sequence

PI = 3.14159265358979323846

PT_CORNER = 0x01
PT_BEVEL = 0x02
PT_LEFT = 0x04

XY = tuple[float, float]


class LineJoin(IntEnum):
    MITER = 0
    ROUND = 1
    BEVEL = 2


class LineCap(IntEnum):
    BUTT = 0
    ROUND = 1
    SQUARE = 2


class FillRule(IntEnum):
    NONZERO = 0
    EVENODD = 1


class PaintType(IntEnum):
    NONE = 0
    COLOR = 1
    LINEAR_GRADIENT = 2
    RADIAL_GRADIENT = 3


@dataclass
class GradientStop:
    """A gradient colour (packed RGBA, red in the low byte) at an offset in [0, 1]."""

    color: int
    offset: float


@dataclass
class Gradient:
    """Gradient stops with the transform from user space to gradient space."""

    stops: list[GradientStop] = field(default_factory=list)
    xform: tuple[float, float, float, float, float, float] = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)
    spread: int = 0


@dataclass
class Paint:
    """How a fill or stroke is coloured."""

    type: PaintType = PaintType.NONE
    color: int = 0
    gradient: Gradient | None = None


@dataclass
class Path:
    """A cubic Bezier path: a start point followed by three points per segment."""

    pts: list[XY] = field(default_factory=list)
    closed: bool = False


@dataclass
class Shape:
    """A filled and/or stroked group of paths."""

    paths: list[Path] = field(default_factory=list)
    fill: Paint = field(default_factory=Paint)
    stroke: Paint = field(default_factory=Paint)
    opacity: float = 1.0
    stroke_width: float = 1.0
    stroke_dash_offset: float = 0.0
    stroke_dash_array: Sequence[float] = ()
    stroke_line_join: LineJoin = LineJoin.MITER
    stroke_line_cap: LineCap = LineCap.BUTT
    miter_limit: float = 4.0
    fill_rule: FillRule = FillRule.NONZERO
    visible: bool = True
    paint_order: tuple[str, ...] = ("fill", "stroke", "markers")
    id: str = ""


@dataclass
class Image:
    """A drawing: its size and its shapes in painting order."""

    width: float = 0.0
    height: float = 0.0
    shapes: list[Shape] = field(default_factory=list)


@dataclass
class Edge:
    """A non-horizontal edge stored top to bottom; ``dir`` is +1 when it pointed down."""

    x0: float
    y0: float
    x1: float
    y1: float
    dir: int


@dataclass
class PathPoint:
    """A flattened path vertex with its outgoing direction and join extrusion."""

    x: float
    y: float
    dx: float = 0.0
    dy: float = 0.0
    len: float = 0.0
    dmx: float = 0.0
    dmy: float = 0.0
    flags: int = 0


def _normalize(x: float, y: float) -> tuple[float, float, float]:
    d = math.sqrt(x * x + y * y)
    if d > 1e-6:
        inv = 1.0 / d
        return x * inv, y * inv, d
    return x, y, d


def _curve_divs(radius: float, arc: float, tol: float) -> int:
    da = math.acos(radius / (radius + tol)) * 2.0
    return max(2, math.ceil(arc / da))


def _cubic_segments(pts: Sequence[XY]) -> Iterator[Sequence[XY]]:
    for start in range(0, len(pts) - 3, 3):
        yield pts[start:start + 4]


def _pairs_closed(points: list[PathPoint]) -> Iterator[tuple[PathPoint, PathPoint]]:
    """Yield (previous, current) for every point, wrapping at the start."""
    return zip(points[-1:] + points[:-1], points)


class Flattener:
    """Turns shapes into edge lists ready for scanline filling."""

    def __init__(self, tess_tol: float = 0.25, dist_tol: float = 0.01) -> None:
        self.tess_tol = tess_tol
        self.dist_tol = dist_tol
        self._points: list[PathPoint] = []
        self._edges: list[Edge] = []

    # -- primitives -------------------------------------------------------

    def _pt_equals(self, x1: float, y1: float, x2: float, y2: float) -> bool:
        dx = x2 - x1
        dy = y2 - y1
        return dx * dx + dy * dy < self.dist_tol * self.dist_tol

    def _add_point(self, x: float, y: float, flags: int) -> None:
        if self._points:
            last = self._points[-1]
            if self._pt_equals(last.x, last.y, x, y):
                last.flags |= flags
                return
        self._points.append(PathPoint(x, y, flags=flags))

    def _add_edge(self, x0: float, y0: float, x1: float, y1: float) -> None:
        if y0 == y1:
            return
        if y0 < y1:
            self._edges.append(Edge(x0, y0, x1, y1, 1))
        else:
            self._edges.append(Edge(x1, y1, x0, y0, -1))

    def _edge(self, a: XY, b: XY) -> None:
        self._add_edge(a[0], a[1], b[0], b[1])

    def _flatten_cubic(self, x1: float, y1: float, x2: float, y2: float,
                       x3: float, y3: float, x4: float, y4: float,
                       level: int, kind: int) -> None:
        if level > 10:
            return
        x12, y12 = (x1 + x2) * 0.5, (y1 + y2) * 0.5
        x23, y23 = (x2 + x3) * 0.5, (y2 + y3) * 0.5
        x34, y34 = (x3 + x4) * 0.5, (y3 + y4) * 0.5
        x123, y123 = (x12 + x23) * 0.5, (y12 + y23) * 0.5

        dx = x4 - x1
        dy = y4 - y1
        d2 = abs((x2 - x4) * dy - (y2 - y4) * dx)
        d3 = abs((x3 - x4) * dy - (y3 - y4) * dx)
        if (d2 + d3) * (d2 + d3) < self.tess_tol * (dx * dx + dy * dy):
            self._add_point(x4, y4, kind)
            return

        x234, y234 = (x23 + x34) * 0.5, (y23 + y34) * 0.5
        x1234, y1234 = (x123 + x234) * 0.5, (y123 + y234) * 0.5
        self._flatten_cubic(x1, y1, x12, y12, x123, y123, x1234, y1234, level + 1, 0)
        self._flatten_cubic(x1234, y1234, x234, y234, x34, y34, x4, y4, level + 1, kind)

    def _flatten_path(self, path: Path, scale: float, flags: int) -> None:
        x0, y0 = path.pts[0]
        self._add_point(x0 * scale, y0 * scale, flags)
        for seg in _cubic_segments(path.pts):
            coords = [c * scale for pt in seg for c in pt]
            self._flatten_cubic(*coords, 0, flags)

    # -- fill -------------------------------------------------------------

    def flatten_fill(self, shape: Shape, scale: float) -> list[Edge]:
        """Return the edges outlining the shape's filled area."""
        self._edges = []
        for path in shape.paths:
            if not path.pts:
                continue
            self._points = []
            self._flatten_path(path, scale, 0)
            x0, y0 = path.pts[0]
            self._add_point(x0 * scale, y0 * scale, 0)
            for prev, cur in _pairs_closed(self._points):
                self._add_edge(prev.x, prev.y, cur.x, cur.y)
        return self._edges

    # -- stroke: caps and joins -------------------------------------------

    @staticmethod
    def _init_closed(p0: PathPoint, p1: PathPoint, line_width: float) -> tuple[XY, XY]:
        w = line_width * 0.5
        dx, dy, length = _normalize(p1.x - p0.x, p1.y - p0.y)
        px = p0.x + dx * length * 0.5
        py = p0.y + dy * length * 0.5
        dlx, dly = dy, -dx
        return (px - dlx * w, py - dly * w), (px + dlx * w, py + dly * w)

    def _butt_cap(self, left: XY, right: XY, p: PathPoint, dx: float, dy: float,
                  line_width: float, connect: bool) -> tuple[XY, XY]:
        w = line_width * 0.5
        dlx, dly = dy, -dx
        lpt = (p.x - dlx * w, p.y - dly * w)
        rpt = (p.x + dlx * w, p.y + dly * w)
        self._edge(lpt, rpt)
        if connect:
            self._edge(left, lpt)
            self._edge(rpt, right)
        return lpt, rpt

    def _square_cap(self, left: XY, right: XY, p: PathPoint, dx: float, dy: float,
                    line_width: float, connect: bool) -> tuple[XY, XY]:
        w = line_width * 0.5
        px = p.x - dx * w
        py = p.y - dy * w
        dlx, dly = dy, -dx
        lpt = (px - dlx * w, py - dly * w)
        rpt = (px + dlx * w, py + dly * w)
        self._edge(lpt, rpt)
        if connect:
            self._edge(left, lpt)
            self._edge(rpt, right)
        return lpt, rpt

    def _round_cap(self, left: XY, right: XY, p: PathPoint, dx: float, dy: float,
                   line_width: float, ncap: int, connect: bool) -> tuple[XY, XY]:
        w = line_width * 0.5
        dlx, dly = dy, -dx
        lpt: XY = (0.0, 0.0)
        rpt: XY = (0.0, 0.0)
        prev: XY = (0.0, 0.0)
        for i in range(ncap):
            a = i / (ncap - 1) * PI
            ax = math.cos(a) * w
            ay = math.sin(a) * w
            cur = (p.x - dlx * ax - dx * ay, p.y - dly * ax - dy * ay)
            if i > 0:
                self._edge(prev, cur)
            prev = cur
            if i == 0:
                lpt = cur
            elif i == ncap - 1:
                rpt = cur
        if connect:
            self._edge(left, lpt)
            self._edge(rpt, right)
        return lpt, rpt

    def _cap(self, cap: LineCap, left: XY, right: XY, p: PathPoint, dx: float, dy: float,
             line_width: float, ncap: int, connect: bool) -> tuple[XY, XY]:
        if cap == LineCap.BUTT:
            return self._butt_cap(left, right, p, dx, dy, line_width, connect)
        if cap == LineCap.SQUARE:
            return self._square_cap(left, right, p, dx, dy, line_width, connect)
        if cap == LineCap.ROUND:
            return self._round_cap(left, right, p, dx, dy, line_width, ncap, connect)
        return left, right

    def _bevel_join(self, left: XY, right: XY, p0: PathPoint, p1: PathPoint,
                    line_width: float) -> tuple[XY, XY]:
        w = line_width * 0.5
        dlx0, dly0 = p0.dy, -p0.dx
        dlx1, dly1 = p1.dy, -p1.dx
        l0 = (p1.x - dlx0 * w, p1.y - dly0 * w)
        r0 = (p1.x + dlx0 * w, p1.y + dly0 * w)
        l1 = (p1.x - dlx1 * w, p1.y - dly1 * w)
        r1 = (p1.x + dlx1 * w, p1.y + dly1 * w)
        self._edge(l0, left)
        self._edge(l1, l0)
        self._edge(right, r0)
        self._edge(r0, r1)
        return l1, r1

    def _miter_join(self, left: XY, right: XY, p0: PathPoint, p1: PathPoint,
                    line_width: float) -> tuple[XY, XY]:
        w = line_width * 0.5
        dlx0, dly0 = p0.dy, -p0.dx
        dlx1, dly1 = p1.dy, -p1.dx
        if p1.flags & PT_LEFT:
            l1 = (p1.x - p1.dmx * w, p1.y - p1.dmy * w)
            self._edge(l1, left)
            r0 = (p1.x + dlx0 * w, p1.y + dly0 * w)
            r1 = (p1.x + dlx1 * w, p1.y + dly1 * w)
            self._edge(right, r0)
            self._edge(r0, r1)
        else:
            l0 = (p1.x - dlx0 * w, p1.y - dly0 * w)
            l1 = (p1.x - dlx1 * w, p1.y - dly1 * w)
            self._edge(l0, left)
            self._edge(l1, l0)
            r1 = (p1.x + p1.dmx * w, p1.y + p1.dmy * w)
            self._edge(right, r1)
        return l1, r1

    def _round_join(self, left: XY, right: XY, p0: PathPoint, p1: PathPoint,
                    line_width: float, ncap: int) -> tuple[XY, XY]:
        w = line_width * 0.5
        dlx0, dly0 = p0.dy, -p0.dx
        dlx1, dly1 = p1.dy, -p1.dx
        a0 = math.atan2(dly0, dlx0)
        a1 = math.atan2(dly1, dlx1)
        da = a1 - a0
        if da < PI:
            da += PI * 2
        if da > PI:
            da -= PI * 2
        n = min(max(math.ceil(abs(da) / PI * ncap), 2), ncap)

        lpt, rpt = left, right
        for i in range(n):
            u = i / (n - 1)
            a = a0 + u * da
            ax = math.cos(a) * w
            ay = math.sin(a) * w
            l1 = (p1.x - ax, p1.y - ay)
            r1 = (p1.x + ax, p1.y + ay)
            self._edge(l1, lpt)
            self._edge(rpt, r1)
            lpt, rpt = l1, r1
        return lpt, rpt

    def _straight_join(self, left: XY, right: XY, p1: PathPoint,
                       line_width: float) -> tuple[XY, XY]:
        w = line_width * 0.5
        lpt = (p1.x - p1.dmx * w, p1.y - p1.dmy * w)
        rpt = (p1.x + p1.dmx * w, p1.y + p1.dmy * w)
        self._edge(lpt, left)
        self._edge(right, rpt)
        return lpt, rpt

    # -- stroke: outline construction -------------------------------------

    @staticmethod
    def _prepare_stroke(points: list[PathPoint], miter_limit: float, line_join: LineJoin) -> None:
        for p, nxt in zip(points, points[1:] + points[:1]):
            p.dx, p.dy, p.len = _normalize(nxt.x - p.x, nxt.y - p.y)

        for p0, p1 in _pairs_closed(points):
            dlx0, dly0 = p0.dy, -p0.dx
            dlx1, dly1 = p1.dy, -p1.dx
            p1.dmx = (dlx0 + dlx1) * 0.5
            p1.dmy = (dly0 + dly1) * 0.5
            dmr2 = p1.dmx * p1.dmx + p1.dmy * p1.dmy
            if dmr2 > 0.000001:
                s2 = min(1.0 / dmr2, 600.0)
                p1.dmx *= s2
                p1.dmy *= s2

            p1.flags = PT_CORNER if p1.flags & PT_CORNER else 0

            cross = p1.dx * p0.dy - p0.dx * p1.dy
            if cross > 0.0:
                p1.flags |= PT_LEFT

            if p1.flags & PT_CORNER and (
                dmr2 * miter_limit * miter_limit < 1.0
                or line_join in (LineJoin.BEVEL, LineJoin.ROUND)
            ):
                p1.flags |= PT_BEVEL

    def _expand_stroke(self, points: list[PathPoint], closed: bool, line_join: LineJoin,
                       line_cap: LineCap, line_width: float) -> None:
        ncap = _curve_divs(line_width * 0.5, PI, self.tess_tol)
        origin: XY = (0.0, 0.0)

        if closed:
            left, right = self._init_closed(points[-1], points[0], line_width)
            first_left, first_right = left, right
            pairs = list(_pairs_closed(points))
        else:
            p0, p1 = points[0], points[1]
            dx, dy, _ = _normalize(p1.x - p0.x, p1.y - p0.y)
            left, right = self._cap(line_cap, origin, origin, p0, dx, dy,
                                    line_width, ncap, False)
            pairs = list(zip(points[:-2], points[1:-1]))

        for p0, p1 in pairs:
            if p1.flags & PT_CORNER:
                if line_join == LineJoin.ROUND:
                    left, right = self._round_join(left, right, p0, p1, line_width, ncap)
                elif line_join == LineJoin.BEVEL or p1.flags & PT_BEVEL:
                    left, right = self._bevel_join(left, right, p0, p1, line_width)
                else:
                    left, right = self._miter_join(left, right, p0, p1, line_width)
            else:
                left, right = self._straight_join(left, right, p1, line_width)

        if closed:
            self._edge(first_left, left)
            self._edge(right, first_right)
        else:
            p0, p1 = points[-2], points[-1]
            dx, dy, _ = _normalize(p1.x - p0.x, p1.y - p0.y)
            right, left = self._cap(line_cap, right, left, p1, -dx, -dy,
                                    line_width, ncap, True)

    def _stroke_points(self, shape: Shape, closed: bool, line_width: float) -> None:
        self._prepare_stroke(self._points, shape.miter_limit, shape.stroke_line_join)
        self._expand_stroke(self._points, closed, shape.stroke_line_join,
                            shape.stroke_line_cap, line_width)

    def _stroke_dashed(self, shape: Shape, scale: float, closed: bool, line_width: float) -> None:
        dashes = list(shape.stroke_dash_array)
        if closed:
            self._points.append(replace(self._points[0]))

        source = self._points
        self._points = []
        cur = replace(source[0])
        self._points.append(replace(cur))

        all_dash_len = sum(dashes)
        if len(dashes) % 2:
            all_dash_len *= 2.0
        if all_dash_len == 0:
            dash_offset = math.nan
        else:
            dash_offset = math.fmod(shape.stroke_dash_offset, all_dash_len)
            if dash_offset < 0.0:
                dash_offset += all_dash_len

        idash = 0
        while dash_offset > dashes[idash]:
            dash_offset -= dashes[idash]
            idash = (idash + 1) % len(dashes)
        dash_len = (dashes[idash] - dash_offset) * scale

        dash_on = True
        total = 0.0
        j = 1
        while j < len(source):
            target = source[j]
            dx = target.x - cur.x
            dy = target.y - cur.y
            dist = math.sqrt(dx * dx + dy * dy)
            if total + dist > dash_len:
                d = (dash_len - total) / dist if dist else 0.0
                x = cur.x + dx * d
                y = cur.y + dy * d
                self._add_point(x, y, PT_CORNER)
                if len(self._points) > 1 and dash_on:
                    self._stroke_points(shape, False, line_width)
                dash_on = not dash_on
                idash = (idash + 1) % len(dashes)
                dash_len = dashes[idash] * scale
                cur = replace(cur, x=x, y=y, flags=PT_CORNER)
                total = 0.0
                self._points = [replace(cur)]
            else:
                total += dist
                cur = replace(target)
                self._points.append(replace(cur))
                j += 1

        if len(self._points) > 1 and dash_on:
            self._stroke_points(shape, False, line_width)

    def flatten_stroke(self, shape: Shape, scale: float) -> list[Edge]:
        """Return the edges outlining the shape's stroke, with joins, caps and dashes."""
        self._edges = []
        line_width = shape.stroke_width * scale
        for path in shape.paths:
            if not path.pts:
                continue
            self._points = []
            self._flatten_path(path, scale, PT_CORNER)
            if len(self._points) < 2:
                continue

            closed = path.closed
            first, last = self._points[0], self._points[-1]
            if self._pt_equals(last.x, last.y, first.x, first.y):
                self._points.pop()
                closed = True

            if shape.stroke_dash_array:
                self._stroke_dashed(shape, scale, closed, line_width)
            else:
                self._stroke_points(shape, closed, line_width)
        return self._edges