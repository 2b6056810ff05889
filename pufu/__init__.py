"""Node syscalls and IPC, swappable CPU sockets, a software framebuffer and a vector rasterizer."""

__version__ = "0.5.2"

__all__ = [
    "vecmath",
    "svg_geometry",
    "svg_raster",
    "sockets",
    "loader",
    "virtual_bus",
    "softrender",
    "node",
    "sys_core",
    "sys_process",
    "sys_ipc",
]