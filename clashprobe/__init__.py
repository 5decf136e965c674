"""clashprobe: periodic liveness and latency checks for proxy endpoints."""

__version__ = "0.1.0"
