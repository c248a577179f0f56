"""Roster and event-log readers with field normalization."""

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterator, Optional

import httpx

from ocrmatch import Player, Team

log = logging.getLogger(__name__)

# Matches any sequence of whitespace (including Unicode whitespace like U+2006)
_WHITESPACE_RE = re.compile(r'\s+')

DEFAULT_TIMEOUT = 10.0


def normalize_whitespace(value: str) -> str:
    """Collapse whitespace runs into single spaces and strip the ends.

    Args:
        value: Raw display name.

    Returns:
        Normalized string.
    """
    return _WHITESPACE_RE.sub(' ', value).strip()


def _optional_text(value: Any) -> Optional[str]:
    """Empty or missing references count as absent."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_player(raw: dict, team_name: str, number: int) -> Player:
    """Build a Player from a roster store record.

    Raises:
        ValueError: If the record has no usable name or position.
    """
    name = normalize_whitespace(str(raw.get('playerName') or ''))
    if not name:
        raise ValueError("Spielername fehlt")
    position = raw.get('position', number)
    return Player(
        id=str(raw.get('id') or f'{team_name}-{number}'),
        name=name,
        image=_optional_text(raw.get('playerImage')),
        position=int(position),
    )


def parse_roster(data: Any) -> list[Team]:
    """Convert the roster store JSON shape into Team objects.

    Teams are ordered by ``slotNumber`` where present, keeping the input
    order otherwise. Players with unusable records are skipped.

    Args:
        data: Decoded JSON, a list of team records.

    Returns:
        List of Team objects.

    Raises:
        ValueError: If the structure is not a roster.
    """
    if not isinstance(data, list):
        raise ValueError("Roster muss eine Liste von Teams sein.")

    teams: list[Team] = []
    for team_num, raw_team in enumerate(data, start=1):
        if not isinstance(raw_team, dict):
            raise ValueError(f"Team #{team_num} ist kein Objekt.")
        team_name = normalize_whitespace(str(raw_team.get('teamName') or ''))
        if not team_name:
            raise ValueError(f"Team #{team_num} hat keinen Namen.")

        players: list[Player] = []
        raw_players = raw_team.get('players') or []
        if not isinstance(raw_players, list):
            raise ValueError(f"Team {team_name!r}: players ist keine Liste.")
        for number, raw_player in enumerate(raw_players, start=1):
            try:
                if not isinstance(raw_player, dict):
                    raise ValueError("kein Objekt")
                players.append(_parse_player(raw_player, team_name, number))
            except (ValueError, TypeError) as exc:
                log.warning(
                    "Spieler %d in Team %r uebersprungen: %s", number, team_name, exc,
                )

        slot = raw_team.get('slotNumber')
        if slot is not None:
            try:
                slot = int(slot)
            except (TypeError, ValueError) as exc:
                raise ValueError(
                    f"Team {team_name!r}: ungueltige slotNumber {slot!r}"
                ) from exc
        teams.append(Team(
            id=str(raw_team.get('id') or team_num),
            name=team_name,
            color=_optional_text(raw_team.get('teamColor')),
            image=_optional_text(raw_team.get('teamImage')),
            slot=slot,
            players=sorted(players, key=lambda p: p.position),
        ))

    teams.sort(key=lambda t: t.slot if t.slot is not None else float('inf'))
    log.info(
        "%d Teams mit %d Spielern gelesen",
        len(teams), sum(len(t.players) for t in teams),
    )
    return teams


def teams_to_json(teams: list[Team]) -> list[dict]:
    """Serialize Team objects back into the roster store shape."""
    return [
        {
            'id': t.id,
            'teamName': t.name,
            'slotNumber': t.slot,
            'teamImage': t.image,
            'teamColor': t.color,
            'players': [
                {
                    'id': p.id,
                    'playerName': p.name,
                    'playerImage': p.image,
                    'position': p.position,
                }
                for p in t.players
            ],
        }
        for t in teams
    ]


def read_roster(path: str | Path) -> list[Team]:
    """Read a roster snapshot from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a valid roster.
    """
    path = Path(path)
    with open(path, 'r', encoding='utf-8-sig') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Datei {path} ist kein gueltiges JSON: {exc}") from exc
    return parse_roster(data)


def fetch_roster(
    url: str,
    client: Optional[httpx.Client] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[Team]:
    """Fetch a roster snapshot from the roster store.

    Args:
        url: Teams endpoint, e.g. ``http://host/api/teams``.
        client: Optional httpx client to reuse.
        timeout: Request timeout in seconds.

    Raises:
        httpx.HTTPError: On transport errors or non-2xx responses.
        ValueError: If the response is not a valid roster.
    """
    if client is None:
        with httpx.Client(timeout=timeout) as own_client:
            return fetch_roster(url, own_client, timeout)

    response = client.get(url, timeout=timeout)
    response.raise_for_status()
    try:
        data = response.json()
    except ValueError as exc:
        raise ValueError(f"Antwort von {url} ist kein JSON.") from exc
    return parse_roster(data)


def load_roster(config) -> list[Team]:
    """Load the roster from the configured source (URL before file).

    Raises:
        ValueError: If no source is configured or the data is invalid.
    """
    if config.roster_url:
        return fetch_roster(config.roster_url)
    if config.roster_path:
        return read_roster(config.roster_path)
    raise ValueError("Weder roster_url noch roster_path konfiguriert.")


def read_events(path: str | Path) -> Iterator[str]:
    """Yield the non-empty lines of a JSON-lines OCR event log.

    Lines are not parsed here; malformed lines are dropped by the engine
    the same way the live stream drops them.
    """
    path = Path(path)
    with open(path, 'r', encoding='utf-8-sig') as f:
        for line in f:
            line = line.strip()
            if line:
                yield line
