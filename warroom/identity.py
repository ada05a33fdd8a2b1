"""Canonical identity mapping between Platform A and Platform B ids."""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

from .models import CanonicalPlayerID, PlatformSource
from .schemas import IdentityDataset, PlayerIdentity
from .utils import load_json

logger = logging.getLogger('warroom.identity')

NAMESPACE_SEPARATOR = ':'


def fallback_id(platform_id: str, source: PlatformSource) -> CanonicalPlayerID:
    """Deterministic canonical id for a platform id with no bundled mapping."""
    return f'{source.value}{NAMESPACE_SEPARATOR}{platform_id}'


class IdentityMapper:
    """
    Bidirectional lookup between platform ids and canonical player ids.

    Tables are built once from the bundled dataset; every lookup afterwards
    is a dict access. ``resolve`` never fails: an unmapped platform id gets
    a namespaced pass-through id (``"A:1234"``) so callers never have to
    special-case unknown players.

    Example:
        mapper = IdentityMapper.from_file(data_path('player_ids.json'))
        canonical = mapper.resolve('4046', PlatformSource.A)
        espn_id = mapper.reverse(canonical, PlatformSource.B)
    """

    def __init__(self, dataset: IdentityDataset):
        self._players: dict[CanonicalPlayerID, PlayerIdentity] = {}
        self._forward: dict[PlatformSource, dict[str, CanonicalPlayerID]] = {
            source: {} for source in PlatformSource
        }
        self._reverse: dict[PlatformSource, dict[CanonicalPlayerID, str]] = {
            source: {} for source in PlatformSource
        }
        self._missed: set[tuple[PlatformSource, str]] = set()

        for player in dataset.players:
            self._players[player.canonical_id] = player
            for source, ids in (
                (PlatformSource.A, player.platform_a_ids),
                (PlatformSource.B, player.platform_b_ids),
            ):
                for platform_id in ids:
                    self._forward[source][platform_id] = player.canonical_id
                # Several platform ids may share one player; the first listed is primary
                if ids:
                    self._reverse[source][player.canonical_id] = ids[0]

        logger.debug(f'Identity mapper loaded {len(self._players)} players')

    @classmethod
    def from_file(cls, path: Path | str) -> 'IdentityMapper':
        return cls(load_json(path, schema=IdentityDataset))

    @classmethod
    def from_rows(cls, rows: Iterable[dict]) -> 'IdentityMapper':
        """Build a mapper from plain dict rows (handy for tests and tooling)."""
        return cls(IdentityDataset(players=[PlayerIdentity(**row) for row in rows]))

    def resolve(self, platform_id: str | int, source: PlatformSource) -> CanonicalPlayerID:
        """Canonical id for a platform player id. Never raises."""
        key = str(platform_id)
        canonical = self._forward[source].get(key)
        if canonical is not None:
            return canonical

        if (source, key) not in self._missed:
            self._missed.add((source, key))
            logger.debug(f'No canonical mapping for platform {source.value} id {key}')
        return fallback_id(key, source)

    def reverse(self, canonical_id: CanonicalPlayerID, target: PlatformSource) -> Optional[str]:
        """
        Platform id for a canonical id, or None if the player has no presence
        on the target platform.
        """
        platform_id = self._reverse[target].get(canonical_id)
        if platform_id is not None:
            return platform_id

        prefix = f'{target.value}{NAMESPACE_SEPARATOR}'
        if canonical_id.startswith(prefix):
            return canonical_id[len(prefix):]
        return None

    def team_id(self, platform_team_id: str | int, source: PlatformSource) -> str:
        """Canonical id for a fantasy team; teams are platform-local, so always namespaced."""
        return fallback_id(str(platform_team_id), source)

    def player_info(self, canonical_id: CanonicalPlayerID) -> Optional[PlayerIdentity]:
        return self._players.get(canonical_id)

    def platform_ids(self, source: PlatformSource) -> dict[str, CanonicalPlayerID]:
        """Copy of the forward table for one platform."""
        return dict(self._forward[source])

    @property
    def misses(self) -> int:
        """Number of distinct platform ids resolved through the fallback."""
        return len(self._missed)

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, canonical_id: object) -> bool:
        return canonical_id in self._players
