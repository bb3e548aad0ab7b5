"""Resolution layer for looking up icons on the remote service."""

from itemicons.resolution.base import AbstractIconResolver, ResolverConfig
from itemicons.resolution.fallback import FALLBACK_FOLDERS, fallback_icon_urls
from itemicons.resolution.xivapi import XivApiResolver

__all__ = [
    # Base
    "AbstractIconResolver",
    "ResolverConfig",
    # Resolvers
    "XivApiResolver",
    # Fallback
    "FALLBACK_FOLDERS",
    "fallback_icon_urls",
]
