"""Apps and their roles and blocks."""

from appgen.apps.models import App, AppRole, Block, BlockVersion

__all__ = ["App", "AppRole", "Block", "BlockVersion"]
