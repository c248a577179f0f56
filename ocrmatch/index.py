"""Roster index: the pre-processed view of the roster the engine scores against."""

import logging
from dataclasses import dataclass
from typing import Iterator

from ocrmatch import Player, Team
from ocrmatch.normalize import normalize_token
from ocrmatch.scoring import ANCHOR_SIZE, build_anchors

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexEntry:
    """One matchable (team, player) pair."""

    team: Team
    player: Player
    key: str
    anchors: frozenset[str]


class RosterIndex:
    """Immutable, ordered collection of matchable roster entries."""

    def __init__(self, entries: tuple[IndexEntry, ...] = ()):
        self._entries = tuple(entries)

    @classmethod
    def build(cls, teams: list[Team]) -> 'RosterIndex':
        """Build an index from a roster snapshot.

        Teams and players without an image cannot be overlaid and are
        skipped, as are players whose key is shorter than one anchor.

        Args:
            teams: Roster snapshot in roster order.

        Returns:
            A fully built RosterIndex.
        """
        entries: list[IndexEntry] = []
        skipped = 0
        for team in teams:
            if not team.image:
                log.debug("Team %r ohne Bild uebersprungen", team.name)
                skipped += len(team.players)
                continue
            for player in team.players:
                if not player.image:
                    log.debug("Spieler %r ohne Bild uebersprungen", player.name)
                    skipped += 1
                    continue
                key = normalize_token(player.name)
                if len(key) < ANCHOR_SIZE:
                    log.debug("Spieler %r: Schluessel %r zu kurz", player.name, key)
                    skipped += 1
                    continue
                entries.append(IndexEntry(
                    team=team,
                    player=player,
                    key=key,
                    anchors=build_anchors(key),
                ))

        log.info(
            "Roster-Index gebaut: %d Eintraege, %d uebersprungen",
            len(entries), skipped,
        )
        return cls(tuple(entries))

    def __iter__(self) -> Iterator[IndexEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[IndexEntry, ...]:
        return self._entries


class RosterIndexHolder:
    """Publishes the index the match engines read.

    A new index is always built completely before it replaces the
    published reference, so readers only ever see a finished index.
    """

    def __init__(self, index: RosterIndex | None = None):
        self._published: tuple[RosterIndex, list[Team]] = (
            index if index is not None else RosterIndex(), [],
        )

    @property
    def current(self) -> RosterIndex:
        return self._published[0]

    @property
    def teams(self) -> list[Team]:
        """Roster snapshot the current index was built from."""
        return self._published[1]

    def publish(self, index: RosterIndex, teams: list[Team] | None = None) -> None:
        """Replace the published index (and its snapshot) in one assignment."""
        self._published = (index, list(teams) if teams is not None else [])

    def rebuild(self, teams: list[Team]) -> RosterIndex:
        """Build a new index from ``teams`` off to the side, then publish it."""
        index = RosterIndex.build(teams)
        self.publish(index, teams)
        return index
