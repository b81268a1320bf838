"""App Generation Server - build records and generated app artifacts.

This package provides the build lifecycle around application code
generation: build records, action logs, background dispatch of the
generation job, and download of the generated archives.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
