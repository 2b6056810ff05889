# pufu

`pufu` provides the building blocks of a small runtime for node programs.
A node (`pufu.node.Node`) has eight registers, a text input buffer, an
instruction pointer and an IPC mailbox. Its syscalls are plain functions that
act on a `Node` inside a `NodeSystem`. Alongside these the package offers:

- **Vector math** (`pufu.vecmath`): `Vec3`, `Vec4`, `Mat4`, `deg2rad` and `identity`.
- **Vector shapes** (`pufu.svg_geometry`, `pufu.svg_raster`): a shape model
  (`Image`, `Shape`, `Path`, `Paint`, `Gradient`) and an anti-aliased scanline
  `Rasterizer`.
- **CPU sockets** (`pufu.sockets`, `pufu.loader`): `ArmSocket` and `NetSocket`,
  plus a `SocketLoader` that hot-swaps between them.
- **A signal bus** (`pufu.virtual_bus`).
- **A software framebuffer** (`pufu.softrender`) that can also be served over HTTP.
- **Syscall handlers** (`pufu.sys_core`, `pufu.sys_process`, `pufu.sys_ipc`).

The package needs nothing beyond the standard library. The one exception is
`pufu.loader.download`, which runs the `curl` program.

## Nodes and syscalls

`NodeSystem` holds the nodes together with the services that syscalls use:

- a program loader;
- a key source and an output stream;
- a millisecond clock;
- the console prompt and buffer;
- a log of `(workspace, message)` pairs;
- an optional `SocketLoader`.

Each syscall module has a dispatcher, and each dispatcher returns `False` for
ids it does not handle:

| Function | Id enum | Ids |
|---|---|---|
| `dispatch_core` | `CoreSyscall` | 1–18 |
| `dispatch_process` | `ProcessSyscall` | 20–28 |
| `dispatch_ipc` | `IpcSyscall` | 40–42 |

Nearly every handler advances `node.ip` by one. `sys_shutdown` is the
exception: it only clears `system.running`.

```python
from pufu.node import Instruction, NodeSystem
from pufu.sys_core import CoreSyscall, dispatch_core
from pufu.sys_ipc import IpcSyscall, dispatch_ipc

system = NodeSystem()
sender = system.load("a")
receiver = system.load("b")

dispatch_core(system, sender, Instruction(syscall_id=CoreSyscall.SET_BUFFER, reg1='"b: hi"'))
dispatch_ipc(system, sender, Instruction(syscall_id=IpcSyscall.SEND))
dispatch_ipc(system, receiver, Instruction(syscall_id=IpcSyscall.READ, reg1="r0"))

print(receiver.input_buffer, receiver.registers[0])   # hi 1
```

A few behaviours to know:

- String operands may be wrapped in double quotes. `clean_string_arg` strips
  the quotes and limits the text to 255 characters.
- Registers are named `r0` to `r7`.
- `sys_config_get` reads `key: value` lines from `system.config_path`, which
  defaults to `user_config.pufu`.
- `sys_download_update` saves to `system.update_path`, which defaults to
  `/tmp/pufu_update.so`.

## Vector math

```python
from pufu.vecmath import Vec3, identity

a = Vec3(1.0, 0.0, 0.0)
b = Vec3(0.0, 1.0, 0.0)
print(a.cross(b))          # Vec3(x=0.0, y=0.0, z=1.0)
print((a + b).length())    # 1.414...
m = identity().translate(Vec3(2.0, 3.0, 4.0))
```

## Rasterizing vector shapes

Build `Shape` objects out of `Path`s of cubic Bézier points and put them in an
`Image`. Then call `Rasterizer().rasterize(image, tx, ty, scale, width, height)`,
which returns a `bytearray` of straight-alpha RGBA pixels.

- Fills and strokes are drawn in each shape's `paint_order`.
- Fills follow the non-zero or even-odd rule.
- Strokes support miter, round and bevel joins; butt, round and square caps;
  and dash arrays.
- Paints may be solid colours or linear or radial gradients.
- Fully transparent pixels take their colour from their neighbours, which
  avoids dark fringes at the edges.

## Sockets and hot swapping

`SocketLoader` takes a mapping from names to factories that return sockets:

```python
from pufu.loader import SocketLoader
from pufu.sockets import ArmSocket, NetSocket

loader = SocketLoader({"arm": ArmSocket, "net": NetSocket})
loader.load("arm")
loader.current().syscall(0)
loader.reload("net")   # the ARM counter is saved and restored into NetSocket
```

`reload` raises `LoaderError` and leaves the current socket in place in these
cases:

- the name is unknown;
- the API version does not match;
- the new socket's `init` fails.

`ArmSocket.execute` understands two kinds of line:

- `syscall (name) "text"` or `syscall (name) num=N`, for `(write)`, `(stats)`,
  `(sleep)`, `(exit_if_key)`, `(exit)`, `(load_file)` and `(read_file)`;
- `add|sub|mul|div a b`.

`(exit)` raises `SocketExit`.

## Software rendering

```python
from pufu.softrender import SoftwareRenderer, serve

renderer = SoftwareRenderer(320, 240)
renderer.frame_start()
renderer.draw_rect(10, 10, 100, 50, 1.0, 0.5, 0.0)
with open("frame.ppm", "wb") as fh:
    fh.write(renderer.to_ppm())

server = serve(renderer, 8081)   # /fb.ppm serves the frame, other paths an HTML viewer
```

`serve` runs the server in a daemon thread and returns it. Call
`server.shutdown()` to stop it.

## What the package does not do

- There is no program parser, no scheduler loop and no command-line entry
  point. `NodeSystem.program_loader` returns no instructions unless you supply
  one, and you call the dispatchers yourself.
- There is no SVG file parser. Images are built in code from the shape classes.
- Sockets come from the registry you pass to `SocketLoader`. Nothing is loaded
  from files on disk.
- There is no window or input. `SoftwareRenderer.poll_events` always returns
  `1`, and `mouse()` always reports `(0, 0, False)`.
- The signal bus only logs the signals it receives. It does not route them.

## Running the tests

Install the `test` extra and run `pytest`.