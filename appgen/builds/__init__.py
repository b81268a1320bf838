"""Build lifecycle module.

This module handles:
- Build records and their status transitions
- Queueing the generated-app job
- Running a build and storing its archive
- Downloading the archive of a completed build
"""

from appgen.builds.models import Build

__all__ = ["Build"]

# Submodules are imported directly (appgen.builds.service, etc.) to avoid
# circular imports between the service and its collaborators.
