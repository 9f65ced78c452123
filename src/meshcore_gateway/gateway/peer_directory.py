"""In-memory directory of known mesh peers.

Peers are indexed by the hex form of their public key and, secondarily, by
display name.  Names are not unique on the mesh: the name index is
last-write-wins, so a later peer advertising the same name takes it over.

The directory lives for the whole process and is re-warmed from the
device's contact list on every (re)connect.
"""

from __future__ import annotations

import logging

from meshcore_gateway.core.models import PeerProfile
from meshcore_gateway.core.types import ContactsFetcher

logger = logging.getLogger(__name__)


class PeerDirectory:
    def __init__(self) -> None:
        # dicts keep insertion order, which prefix lookups rely on
        self._by_key: dict[str, PeerProfile] = {}
        self._by_name: dict[str, PeerProfile] = {}

    def upsert(self, profile: PeerProfile | None) -> None:
        if profile is None or not profile.public_key:
            return
        self._by_key[profile.public_key_hex] = profile
        if profile.adv_name:
            self._by_name[profile.adv_name] = profile

    def bulk_upsert(self, profiles: list[PeerProfile]) -> None:
        for profile in profiles:
            self.upsert(profile)

    def has_any(self) -> bool:
        return bool(self._by_key)

    def list_all(self) -> list[PeerProfile]:
        return list(self._by_key.values())

    def lookup_by_identity(self, public_key: bytes | None) -> PeerProfile | None:
        if not public_key:
            return None
        return self._by_key.get(public_key.hex())

    def lookup_by_prefix(self, prefix: bytes | None) -> PeerProfile | None:
        """Return the first stored peer whose key starts with *prefix*."""
        if not prefix:
            return None
        prefix_hex = prefix.hex()
        for key_hex, profile in self._by_key.items():
            if key_hex.startswith(prefix_hex):
                return profile
        return None

    def lookup_by_name(self, adv_name: str | None) -> PeerProfile | None:
        if not adv_name:
            return None
        return self._by_name.get(adv_name)

    async def resolve_by_display_name(
        self, adv_name: str | None, fallback_fetch: ContactsFetcher | None = None
    ) -> PeerProfile | None:
        """Cache lookup by name; on a miss, refresh from *fallback_fetch* and retry once."""
        if not adv_name:
            return None
        cached = self._by_name.get(adv_name)
        if cached is not None or fallback_fetch is None:
            return cached
        logger.debug("name %r not cached, fetching contacts from device", adv_name)
        self.bulk_upsert(await fallback_fetch())
        return self._by_name.get(adv_name)

    def __len__(self) -> int:
        return len(self._by_key)
