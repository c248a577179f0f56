"""Roster checks run before a broadcast.

Flags records the overlay cannot show and player names that normalize to
keys so close that OCR noise could swap them.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from itertools import combinations
from typing import Optional

from rapidfuzz.distance import JaroWinkler

from ocrmatch import Player, Team
from ocrmatch.normalize import normalize_token
from ocrmatch.scoring import ANCHOR_SIZE

log = logging.getLogger(__name__)

# Default Jaro-Winkler threshold for ambiguous keys (0–1 scale)
DEFAULT_AMBIGUITY_THRESHOLD = 0.9

MAX_PLAYERS_PER_TEAM = 4


@dataclass
class LintIssue:
    """A single roster problem."""

    code: str     # TEAM_NO_IMAGE, PLAYER_NO_IMAGE, KEY_TOO_SHORT, ...
    team: str
    player: str = ''
    detail: str = ''


def _keyed_players(teams: list[Team]) -> list[tuple[Team, Player, str]]:
    """Eligible (team, player, key) triples, i.e. what the index would hold."""
    keyed = []
    for team in teams:
        if not team.image:
            continue
        for player in team.players:
            key = normalize_token(player.name)
            if player.image and len(key) >= ANCHOR_SIZE:
                keyed.append((team, player, key))
    return keyed


def lint_roster(
    teams: list[Team],
    similarity_threshold: float = DEFAULT_AMBIGUITY_THRESHOLD,
) -> list[LintIssue]:
    """Check a roster snapshot for problems that affect the overlay.

    Args:
        teams: Roster snapshot.
        similarity_threshold: Jaro-Winkler similarity at or above which two
            distinct keys are reported as ambiguous.

    Returns:
        List of issues in roster order.
    """
    issues: list[LintIssue] = []

    slots: dict[int, list[str]] = defaultdict(list)
    for team in teams:
        if team.slot is not None:
            slots[team.slot].append(team.name)
        if not team.image:
            issues.append(LintIssue('TEAM_NO_IMAGE', team.name))
        if len(team.players) > MAX_PLAYERS_PER_TEAM:
            issues.append(LintIssue(
                'TOO_MANY_PLAYERS', team.name,
                detail=f'{len(team.players)} > {MAX_PLAYERS_PER_TEAM}',
            ))
        for player in team.players:
            if not player.image:
                issues.append(LintIssue('PLAYER_NO_IMAGE', team.name, player.name))
            if not 1 <= player.position <= MAX_PLAYERS_PER_TEAM:
                issues.append(LintIssue(
                    'POSITION_OUT_OF_RANGE', team.name, player.name,
                    detail=str(player.position),
                ))
            key = normalize_token(player.name)
            if len(key) < ANCHOR_SIZE:
                issues.append(LintIssue(
                    'KEY_TOO_SHORT', team.name, player.name, detail=repr(key),
                ))

    for slot, names in sorted(slots.items()):
        if len(names) > 1:
            issues.append(LintIssue(
                'DUPLICATE_SLOT', ', '.join(names), detail=f'Slot {slot}',
            ))

    for (team_a, player_a, key_a), (team_b, player_b, key_b) in combinations(
        _keyed_players(teams), 2,
    ):
        pair = f'{player_b.name} ({team_b.name})'
        if key_a == key_b:
            issues.append(LintIssue(
                'DUPLICATE_KEY', team_a.name, player_a.name,
                detail=f'{key_a!r} = {pair}',
            ))
            continue
        sim = JaroWinkler.similarity(key_a, key_b)
        if sim >= similarity_threshold:
            issues.append(LintIssue(
                'AMBIGUOUS_KEY', team_a.name, player_a.name,
                detail=f'{sim:.2f} ~ {pair}',
            ))

    log.info("Roster-Pruefung: %d Probleme gefunden", len(issues))
    return issues


def count_by_code(issues: list[LintIssue], code: Optional[str] = None):
    """Count issues per code, or for a single code."""
    counts: dict[str, int] = defaultdict(int)
    for issue in issues:
        counts[issue.code] += 1
    if code is not None:
        return counts.get(code, 0)
    return dict(counts)
