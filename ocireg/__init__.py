"""In-memory OCI registry, reference parsing and registry wrappers."""

__version__ = "0.1.0"