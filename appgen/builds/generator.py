"""Generated app archive.

Packs what a build gathered (entity versions and app roles) into the zip
archive stored for the build. The archive holds a ``manifest.json``
describing the app; the code generator consuming it runs elsewhere.
"""

from __future__ import annotations

import io
import json
import logging
import zipfile
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from appgen.apps.models import AppRole
    from appgen.builds.models import Build
    from appgen.entities.models import EntityVersion

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"
MANIFEST_VERSION = "1.0"

# Called with (build, entity_versions, roles); returns the archive bytes
AppGenerator = Callable[..., bytes]


def _entity_to_dict(entity_version: EntityVersion) -> dict[str, Any]:
    return {
        "id": entity_version.entity_id,
        "version_id": entity_version.id,
        "version_number": entity_version.version_number,
        "name": entity_version.name,
        "display_name": entity_version.display_name,
        "fields": [
            {
                "name": f.name,
                "display_name": f.display_name,
                "data_type": f.data_type,
                "required": f.required,
            }
            for f in entity_version.fields
        ],
        "permissions": [
            {
                "action": p.action,
                "type": p.type,
                "roles": sorted(r.name for r in p.roles),
            }
            for p in entity_version.permissions
        ],
    }


def generate_manifest(
    build: Build,
    entity_versions: Sequence[EntityVersion],
    roles: Sequence[AppRole],
) -> dict[str, Any]:
    """Describe the app to generate for a build.

    Args:
        build: Build being executed.
        entity_versions: Entity versions linked to the build.
        roles: Roles of the build's app.

    Returns:
        Manifest dictionary suitable for JSON serialization.
    """
    entities = [_entity_to_dict(ev) for ev in entity_versions]
    return {
        "version": MANIFEST_VERSION,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "build": {
            "id": build.id,
            "app_id": build.app_id,
            "version": build.version,
            "message": build.message,
        },
        "entities": entities,
        "roles": [
            {"name": r.name, "display_name": r.display_name} for r in roles
        ],
        "summary": {
            "total_entities": len(entities),
            "total_fields": sum(len(e["fields"]) for e in entities),
            "total_roles": len(roles),
        },
    }


def generate_app_archive(
    build: Build,
    entity_versions: Sequence[EntityVersion],
    roles: Sequence[AppRole],
) -> bytes:
    """Create the zip archive stored for a build.

    Returns:
        Zip file contents.
    """
    manifest = generate_manifest(build, entity_versions, roles)

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(
            MANIFEST_FILENAME, json.dumps(manifest, indent=2, sort_keys=True)
        )

    data = buffer.getvalue()
    logger.debug(
        "Generated archive for build %s (%d entities, %d bytes)",
        build.id,
        len(entity_versions),
        len(data),
    )
    return data


__all__ = [
    "MANIFEST_FILENAME",
    "AppGenerator",
    "generate_app_archive",
    "generate_manifest",
]
