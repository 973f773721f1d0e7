"""Binary data files, metadata records, particle containers and output packing for particle-in-cell codes."""

__version__ = "0.1.0"
__all__ = ["nixio", "metadata", "particle", "packer"]