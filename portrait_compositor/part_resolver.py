"""Map part keys ("hair01") to sprite regions."""

from __future__ import annotations

import logging

from portrait_compositor.sprite_atlas import SpriteEntry, SpriteManifest

logger = logging.getLogger(__name__)


class UnresolvedPartWarning(UserWarning):
    """A non-empty part key has no matching manifest entry; the layer is skipped."""


class UnresolvedPartError(LookupError):
    """Strict-mode counterpart of UnresolvedPartWarning."""


def resolve_part(manifest: SpriteManifest, part_key: str) -> SpriteEntry | None:
    """Find the manifest entry whose key equals part_key exactly.

    An empty key means "no layer" and resolves to None, as does a key with
    no match.  Matching is case-sensitive.
    """
    if not part_key:
        return None
    for entry in manifest.entries:
        if entry.key == part_key:
            return entry
    return None


def default_part_key(manifest: SpriteManifest, prefix: str) -> str:
    """Key of the first entry starting with prefix (case-insensitive), or ''."""
    prefix = prefix.lower()
    for entry in manifest.entries:
        if entry.key.lower().startswith(prefix):
            return entry.key
    return ""


def neck_part_key(manifest: SpriteManifest) -> str:
    """The neck is never chosen by the caller: always the first neck* entry."""
    key = default_part_key(manifest, "neck")
    if not key:
        logger.warning("No neck* sprite in %s manifest; neck layer will be skipped",
                       manifest.category)
    return key
