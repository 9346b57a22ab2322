"""Extract and export DSB / Untis substitution plans."""

__version__ = "0.1.0"
