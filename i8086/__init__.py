"""8086 instruction decoder with a minimal execution engine."""

__version__ = "0.1.0"
