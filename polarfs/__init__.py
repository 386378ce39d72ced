"""In-memory virtual filesystem, stream devices, ustar and partition readers, and a printf engine."""

__version__ = "0.1.0"