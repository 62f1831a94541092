# e1line

Building blocks for working with E1 (2.048 Mbit/s) lines in Python. The package has no
third-party dependencies.

## Modules

- `e1line.crc4`: the CRC-4 of ITU-T G.704 (polynomial x^4 + x + 1):
  `crc4_init()`, `crc4_update(crc, data)`, `crc4_finalize(crc)`.
- `e1line.hdlc`: HDLC framing with bit stuffing and FCS-16.
  `HdlcEncoder.push(frame)` queues frames and `HdlcEncoder.pull(size)` returns exactly
  `size` octets of flag-filled stream; `HdlcDecoder.feed(data)` returns good frames and
  `HdlcError` objects (kind `framing`, `crc` or `length`) in stream order. `fcs16(data)`
  computes the frame check sequence.
- `e1line.framer`: a software E1 framer following ITU-T G.704/G.706. `E1Framer.pull_tx_frame()`
  builds 32-octet frames with the frame alignment signal, Sa bits and the CRC-4 multiframe;
  `E1Framer.rx_frame(frame)` runs the receiver through frame alignment and CRC-4 multiframe
  alignment and reports `NotifyEvent`s (alignment, local and remote CRC errors, remote alarm)
  to a callback. Timeslots 1..31 (`E1Framer.timeslot(n)`) carry queued transmit data
  (`enqueue`) and deliver received data in raw or HDLC mode (`configure`).
- `e1line.defs`: shared enumerations (`LineMode`, `TsMode`, `Driver`, `FramingMode`,
  `LineCounter`, `LineStat`, `DaemonEvent`, `LogCategory`), `get_logger(category)` and the
  log prefixes `intf_prefix`, `line_prefix`, `ts_prefix`.
- `e1line.model`: `Daemon`, `Interface`, `Line` and `Timeslot`. Opening a timeslot
  (`Timeslot.start`) creates a Unix-domain socket pair and returns the client's end: a stream
  socket in raw mode, a sequenced-packet socket in HDLC mode. `Daemon.emit` passes events to
  the callables in `Daemon.listeners`.
- `e1line.muxdemux`: `mux_out(line, fts)` builds `fts` frames from what the timeslot clients
  have written; `demux_in(line, data, frame_base)` splits received frames out to the clients
  and, when `frame_base` is given, evaluates TS0 (remote alarm, Sa bits, E bits).
  E1-over-IP lines hand frames to a peer object with `e1o_in(data, frames)` and
  `e1t_out(frames)` methods; `peer_disconnected(daemon, peer)` detaches it.
- `e1line.ctl`: `ControlHandler` answers control requests: `query_interfaces`,
  `query_lines`, `query_timeslots`, `configure_line`, `open_timeslot` and `set_sa_bits`.
- `e1line.ice1usb_proto`: the binary structures of the icE1usb USB protocol
  (`GpsdoTune`, `GpsdoStatus`, `TxConfig`, `RxConfig`, `IrqErrors`, `Irq`), each with
  `pack()` and `unpack(data)`.

## Installation

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Example: framing

```python
from e1line.framer import E1Framer, notify_event_name

events = []
tx = E1Framer("tx")
rx = E1Framer("rx", notify=lambda framer, event, present: events.append((event, present)))

for _ in range(64):
    rx.rx_frame(tx.pull_tx_frame())

for event, present in events:
    print(notify_event_name(event), present)
print(rx.state.name)
```

## Example: a line, a timeslot and its client

```python
from e1line.ctl import ControlHandler, ProtoTsMode
from e1line.model import Daemon
from e1line.muxdemux import demux_in

daemon = Daemon()
intf = daemon.new_intf()
line = intf.new_line()

ctl = ControlHandler(daemon)
print(ctl.query_interfaces())
print(ctl.query_lines(intf.id))

info, client = ctl.open_timeslot(intf.id, line.id, 1, ProtoTsMode.RAW, 8)

frames = bytearray(b"\xff" * 32 * 8)
frames[1::32] = bytes(range(8))          # timeslot 1 of eight frames
demux_in(line, frames)
print(client.recv(8))                    # b'\x00\x01\x02\x03\x04\x05\x06\x07'
```

## What the package does not do

It holds the line model, framing and multiplexing logic only. It does not talk to any
hardware (no USB or DAHDI driver), does not run a daemon or serve the control requests over
a socket, has no command-line program and no E1-over-IP transport of its own: E1-over-IP
peers are supplied by the caller, through `Daemon(peer_provider=...)` or by setting
`Line.octoi_peer`. The timer callbacks of a running daemon are left to the caller as well:
call `Line.ts0_tick()` and `Line.watchdog_tick()` once a second.