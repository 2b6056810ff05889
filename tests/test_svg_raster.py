import math

import pytest

from pufu.svg_geometry import (
    FillRule,
    Gradient,
    GradientStop,
    Image,
    Paint,
    PaintType,
    Path,
    Shape,
)
from pufu.svg_raster import (
    CachedPaint,
    Rasterizer,
    apply_opacity,
    lerp_rgba,
    pack_rgba,
    unpremultiply_alpha,
)

RED = pack_rgba(255, 0, 0, 255)
GREEN = pack_rgba(0, 255, 0, 255)
BLUE = pack_rgba(0, 0, 255, 255)


def rect_path(x0, y0, x1, y1):
    corners = [(x0, y0), (x1, y0), (x1, y1), (x0, y1), (x0, y0)]
    pts = [corners[0]]
    for a, b in zip(corners, corners[1:]):
        pts.extend([a, b, b])
    return Path(pts=pts, closed=True)


def fill_shape(paths, color=RED, **kwargs):
    return Shape(paths=paths, fill=Paint(PaintType.COLOR, color), **kwargs)


def pixel(buf, x, y, stride):
    o = y * stride + x * 4
    return tuple(buf[o:o + 4])


def render(shapes, w=10, h=10, tx=0.0, ty=0.0, scale=1.0, stride=None):
    return Rasterizer().rasterize(Image(w, h, shapes), tx, ty, scale, w, h, stride)


def test_pack_rgba_round_trip():
    c = pack_rgba(10, 20, 30, 40)
    assert [(c >> s) & 0xFF for s in (0, 8, 16, 24)] == [10, 20, 30, 40]


def test_lerp_endpoints_and_clamping():
    c0 = pack_rgba(10, 20, 30, 40)
    c1 = pack_rgba(200, 150, 100, 250)
    assert lerp_rgba(c0, c1, 0.0) == c0
    assert lerp_rgba(c0, c1, 1.0) == c1
    assert lerp_rgba(c0, c1, 7.0) == c1
    assert lerp_rgba(c0, c1, -2.0) == c0
    assert lerp_rgba(c0, c1, math.nan) == c0


def test_lerp_stays_between_channels():
    c0 = pack_rgba(0, 100, 200, 255)
    c1 = pack_rgba(200, 100, 0, 55)
    mid = lerp_rgba(c0, c1, 0.5)
    for shift in (0, 8, 16, 24):
        a, b, m = (c0 >> shift) & 0xFF, (c1 >> shift) & 0xFF, (mid >> shift) & 0xFF
        assert min(a, b) <= m <= max(a, b)


def test_apply_opacity():
    c = pack_rgba(12, 34, 56, 255)
    assert apply_opacity(c, 1.0) == c
    faded = apply_opacity(c, 0.0)
    assert faded == pack_rgba(12, 34, 56, 0)
    assert (apply_opacity(c, 0.5) >> 24) < 255


def test_cached_paint_color():
    cache = CachedPaint.from_paint(Paint(PaintType.COLOR, GREEN), 0.5)
    assert cache.colors[0] == apply_opacity(GREEN, 0.5)
    assert len(cache.colors) == 256


def test_cached_paint_gradient_stops():
    single = Paint(PaintType.LINEAR_GRADIENT, gradient=Gradient([GradientStop(BLUE, 0.3)]))
    assert set(CachedPaint.from_paint(single, 1.0).colors) == {BLUE}

    empty = Paint(PaintType.LINEAR_GRADIENT, gradient=Gradient([]))
    assert set(CachedPaint.from_paint(empty, 1.0).colors) == {0}

    two = Paint(PaintType.RADIAL_GRADIENT,
                gradient=Gradient([GradientStop(RED, 0.0), GradientStop(BLUE, 1.0)]))
    cache = CachedPaint.from_paint(two, 1.0)
    assert len(cache.colors) == 256
    assert cache.colors[0] == RED
    assert cache.colors[255] == BLUE
    reds = [c & 0xFF for c in cache.colors]
    assert reds == sorted(reds, reverse=True)


def test_cached_paint_gradient_missing():
    with pytest.raises(ValueError):
        CachedPaint.from_paint(Paint(PaintType.LINEAR_GRADIENT), 1.0)


def test_empty_image_is_transparent():
    buf = render([])
    assert buf == bytearray(10 * 10 * 4)


def test_full_rectangle_is_solid():
    buf = render([fill_shape([rect_path(0, 0, 10, 10)])])
    assert all(pixel(buf, x, y, 40) == (255, 0, 0, 255) for x in range(10) for y in range(10))


def test_rectangle_interior_and_exterior():
    buf = render([fill_shape([rect_path(2, 2, 5, 5)], color=BLUE)])
    assert pixel(buf, 3, 3, 40) == (0, 0, 255, 255)
    assert pixel(buf, 8, 8, 40)[3] == 0


def test_invisible_and_transparent_shapes_draw_nothing():
    hidden = render([fill_shape([rect_path(0, 0, 10, 10)], visible=False)])
    assert hidden == bytearray(400)
    faint = render([fill_shape([rect_path(0, 0, 10, 10)], opacity=0.0)])
    assert all(a == 0 for a in faint[3::4])


def test_translation():
    buf = render([fill_shape([rect_path(0, 0, 3, 3)])], tx=5.0)
    assert pixel(buf, 6, 1, 40)[3] == 255
    assert pixel(buf, 1, 1, 40)[3] == 0


def test_scale():
    buf = render([fill_shape([rect_path(0, 0, 2, 2)])], scale=4.0)
    assert pixel(buf, 6, 6, 40)[3] == 255
    assert pixel(buf, 9, 9, 40)[3] == 0


def test_fill_rules():
    paths = [rect_path(0, 0, 10, 10), rect_path(3, 3, 7, 7)]
    nonzero = render([fill_shape(paths, fill_rule=FillRule.NONZERO)])
    evenodd = render([fill_shape(paths, fill_rule=FillRule.EVENODD)])
    assert pixel(nonzero, 5, 5, 40)[3] == 255
    assert pixel(evenodd, 5, 5, 40)[3] == 0
    assert pixel(evenodd, 1, 1, 40) == pixel(nonzero, 1, 1, 40)


def test_stroke_outline():
    shape = Shape(paths=[rect_path(2, 2, 8, 8)], stroke=Paint(PaintType.COLOR, RED),
                  stroke_width=2.0)
    buf = render([shape])
    assert pixel(buf, 2, 5, 40)[3] > 0
    assert pixel(buf, 5, 5, 40)[3] == 0


def test_paint_order():
    def shape(order):
        return Shape(paths=[rect_path(2, 2, 8, 8)], fill=Paint(PaintType.COLOR, GREEN),
                     stroke=Paint(PaintType.COLOR, RED), stroke_width=2.0, paint_order=order)

    default = render([shape(("fill", "stroke", "markers"))])
    reversed_ = render([shape(("stroke", "fill", "markers"))])
    assert pixel(default, 2, 5, 40) == (255, 0, 0, 255)
    assert pixel(reversed_, 2, 5, 40) == (0, 255, 0, 255)


def test_stride_padding_untouched():
    stride = 10 * 4 + 8
    buf = render([fill_shape([rect_path(0, 0, 10, 10)])], stride=stride)
    assert len(buf) == stride * 10
    assert all(buf[y * stride + 40:(y + 1) * stride] == bytes(8) for y in range(10))
    assert pixel(buf, 9, 9, stride) == (255, 0, 0, 255)


def test_bad_stride():
    with pytest.raises(ValueError):
        Rasterizer().rasterize(Image(), 0, 0, 1, 10, 10, 20)


def test_linear_gradient_runs_top_to_bottom():
    grad = Gradient([GradientStop(RED, 0.0), GradientStop(BLUE, 1.0)],
                    xform=(1.0, 0.0, 0.0, 0.1, 0.0, 0.0))
    shape = Shape(paths=[rect_path(0, 0, 10, 10)],
                  fill=Paint(PaintType.LINEAR_GRADIENT, gradient=grad))
    buf = render([shape])
    column = [pixel(buf, 4, y, 40) for y in range(10)]
    assert column[0] == (255, 0, 0, 255)
    reds = [p[0] for p in column]
    blues = [p[2] for p in column]
    assert reds == sorted(reds, reverse=True)
    assert blues == sorted(blues)


def test_radial_gradient_center_and_rim():
    grad = Gradient([GradientStop(RED, 0.0), GradientStop(BLUE, 1.0)])
    shape = Shape(paths=[rect_path(0, 0, 10, 10)],
                  fill=Paint(PaintType.RADIAL_GRADIENT, gradient=grad))
    buf = render([shape])
    assert pixel(buf, 0, 0, 40) == (255, 0, 0, 255)
    assert pixel(buf, 9, 9, 40) == (0, 0, 255, 255)


def test_unpremultiply_keeps_opaque_pixels():
    image = bytearray([10, 20, 30, 255, 40, 50, 60, 255])
    unpremultiply_alpha(image, 2, 1, 8)
    assert image == bytearray([10, 20, 30, 255, 40, 50, 60, 255])


def test_defringe_uses_right_neighbour_only_at_column_one():
    image = bytearray([0, 0, 255, 255, 0, 0, 0, 0, 255, 0, 0, 255])
    unpremultiply_alpha(image, 3, 1, 12)
    assert tuple(image[4:8]) == (255, 0, 0, 0)
    assert tuple(image[0:4]) == (0, 0, 255, 255)