"""Sales-certification import and scoring pipeline."""

__version__ = "0.1.0"
