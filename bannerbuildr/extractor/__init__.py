"""Template archive package — unpacks templates and packs variations."""

from .archive import pack_variation, pack_variations, unpack_template, write_variation

__all__ = ["pack_variation", "pack_variations", "unpack_template", "write_variation"]
