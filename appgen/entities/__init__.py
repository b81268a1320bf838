"""Versioned app entities and the lookups builds need."""

from appgen.entities.models import (
    Entity,
    EntityField,
    EntityPermission,
    EntityVersion,
)

__all__ = ["Entity", "EntityField", "EntityPermission", "EntityVersion"]
