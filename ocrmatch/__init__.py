"""Core module for ocr-overlay-matcher."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Player:
    """Represents a roster player."""

    id: str
    name: str
    image: Optional[str] = None
    position: int = 1     # Slot on the team card, 1..4


@dataclass
class Team:
    """Represents a roster team with its players."""

    id: str
    name: str
    color: Optional[str] = None
    image: Optional[str] = None
    slot: Optional[int] = None
    players: list[Player] = field(default_factory=list)


@dataclass(frozen=True)
class MatchResult:
    """A confirmed (team, player) match for the current frame."""

    team: Team
    player: Player
    score: float          # 0.0 – 1.0

    @property
    def player_name(self) -> str:
        return self.player.name

    @property
    def team_name(self) -> str:
        return self.team.name

    @property
    def team_image(self) -> Optional[str]:
        return self.team.image

    @property
    def player_image(self) -> Optional[str]:
        return self.player.image

    @property
    def team_color(self) -> Optional[str]:
        return self.team.color

    def to_payload(self) -> dict:
        """Wire shape consumed by the overlay page."""
        return {
            'playerName': self.player.name,
            'teamName': self.team.name,
            'teamImage': self.team.image,
            'playerImage': self.player.image,
            'color': self.team.color,
            'score': round(self.score, 4),
        }
