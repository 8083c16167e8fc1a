"""Media Gateway - authenticated object-store admin API and on-the-fly image serving."""

__version__ = "1.0.0"
