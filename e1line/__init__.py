"""E1 line handling: CRC-4, HDLC, G.704 framing, line model, multiplexing and control requests."""

__version__ = "0.1.0"

__all__ = ["crc4", "hdlc", "ice1usb_proto", "defs", "framer", "model", "muxdemux", "ctl"]