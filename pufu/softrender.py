"""Software framebuffer renderer with a small HTTP viewer."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

log = logging.getLogger(__name__)

WEB_PORT = 8081
FB_WIDTH = 800
FB_HEIGHT = 600
MAX_TEXTURES = 64

CONTINUE = 1

HTML_VIEWER = (
    "<html><head><title>Pufu OS Remote</title>"
    "<meta http-equiv='refresh' content='1'>"
    "</head><body style='background:#111; color:#eee; text-align:center'>"
    "<h1>Pufu OS Remote Display</h1>"
    "<img src='/fb.ppm' width='800' height='600' style='border:2px solid "
    "#555'/>"
    "</body></html>"
)


def _byte(v: float) -> int:
    return int(v * 255) & 0xFF


@dataclass(frozen=True)
class Texture:
    """An RGBA texture held in memory."""

    width: int
    height: int
    pixels: bytes


class SoftwareRenderer:
    """Draws rectangles and textures into an in-memory RGBA framebuffer."""

    def __init__(self, width: int = FB_WIDTH, height: int = FB_HEIGHT) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("framebuffer size must be positive")
        self.width = width
        self.height = height
        self.stride = width * 4
        self.pixels = bytearray(self.stride * height)
        self._textures: dict[int, Texture] = {}
        self._lock = threading.Lock()

    def clear(self, r: float, g: float, b: float) -> None:
        """Fill the whole framebuffer with an opaque colour."""
        with self._lock:
            self.pixels[:] = bytes((_byte(r), _byte(g), _byte(b), 255)) * (self.width * self.height)

    def frame_start(self) -> None:
        """Begin a frame by clearing to the default background."""
        self.clear(0.1, 0.1, 0.2)

    def draw_rect(self, x: float, y: float, w: float, h: float,
                  r: float, g: float, b: float) -> None:
        """Fill an opaque rectangle, clipped to the framebuffer."""
        ix, iy, iw, ih = int(x), int(y), int(w), int(h)
        if ix < 0:
            iw += ix
            ix = 0
        if iy < 0:
            ih += iy
            iy = 0
        iw = min(iw, self.width - ix)
        ih = min(ih, self.height - iy)
        if iw <= 0 or ih <= 0:
            return
        row = bytes((_byte(r), _byte(g), _byte(b), 255)) * iw
        with self._lock:
            for yy in range(iy, iy + ih):
                start = yy * self.stride + ix * 4
                self.pixels[start:start + iw * 4] = row

    def create_texture(self, w: int, h: int, pixels: bytes) -> int:
        """Store an RGBA texture and return its id (ids start at 1)."""
        if len(self._textures) >= MAX_TEXTURES - 1:
            raise RuntimeError("texture table is full")
        size = w * h * 4
        if w <= 0 or h <= 0:
            raise ValueError("texture size must be positive")
        if len(pixels) < size:
            raise ValueError("not enough pixel data for texture")
        tex_id = len(self._textures) + 1
        self._textures[tex_id] = Texture(w, h, bytes(pixels[:size]))
        return tex_id

    def create_alpha_texture(self, w: int, h: int, pixels: bytes) -> int:
        """Store a one-byte-per-pixel alpha mask as a white RGBA texture."""
        count = w * h
        if len(pixels) < count:
            raise ValueError("not enough pixel data for texture")
        rgba = bytearray(b"\xff" * (count * 4))
        rgba[3::4] = bytes(pixels[:count])
        return self.create_texture(w, h, bytes(rgba))

    def draw_textured_rect(self, x: float, y: float, w: float, h: float, tex_id: int,
                           r: float, g: float, b: float, is_font: bool = False) -> None:
        """Draw a tinted texture scaled to the rectangle, blended over the framebuffer."""
        tex = self._textures.get(tex_id)
        if tex is None:
            return
        ix, iy, iw, ih = int(x), int(y), int(w), int(h)
        if iw <= 0 or ih <= 0:
            return
        u_step = tex.width / iw
        v_step = tex.height / ih
        tint = (int(r * 255), int(g * 255), int(b * 255))
        fb = self.pixels
        src = tex.pixels
        with self._lock:
            for j in range(max(0, -iy), min(ih, self.height - iy)):
                src_y = min(int(j * v_step), tex.height - 1)
                row = (iy + j) * self.stride
                for i in range(max(0, -ix), min(iw, self.width - ix)):
                    src_x = min(int(i * u_step), tex.width - 1)
                    s = (src_y * tex.width + src_x) * 4
                    a = src[s + 3]
                    inv = 255 - a
                    d = row + (ix + i) * 4
                    for k in range(3):
                        final = src[s + k] * tint[k] // 255
                        fb[d + k] = ((final * a + fb[d + k] * inv) >> 8) & 0xFF
                    fb[d + 3] = 255

    def to_ppm(self) -> bytes:
        """Return the framebuffer as a binary PPM (P6) image."""
        count = self.width * self.height
        rgb = bytearray(count * 3)
        with self._lock:
            for k in range(3):
                rgb[k::3] = self.pixels[k::4]
        header = f"P6\n{self.width} {self.height}\n255\n".encode("ascii")
        return header + bytes(rgb)

    def poll_events(self) -> int:
        """Return CONTINUE: there is no window that could be closed."""
        return CONTINUE

    def mouse(self) -> tuple[int, int, bool]:
        """Return the mouse position and click state; there is no pointer input."""
        return 0, 0, False


def make_handler(renderer: SoftwareRenderer) -> type[BaseHTTPRequestHandler]:
    """Build a request handler serving the viewer page and ``/fb.ppm``."""

    class _Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            log.info("[Web] Request: %s", self.requestline)
            if self.path.startswith("/fb.ppm"):
                body = renderer.to_ppm()
                content_type = "image/x-portable-pixmap"
            else:
                body = HTML_VIEWER.encode("utf-8")
                content_type = "text/html"
            self.send_response(200)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: object) -> None:  # noqa: A002
            log.debug(format, *args)

    return _Handler


def serve(renderer: SoftwareRenderer, port: int = WEB_PORT) -> ThreadingHTTPServer:
    """Start serving the framebuffer on ``port`` in a background thread."""
    server = ThreadingHTTPServer(("", port), make_handler(renderer))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    log.info("[WebBackend] Listening on port %d", server.server_address[1])
    return server