"""Per-event match engine with hold-last-match hysteresis."""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ocrmatch import MatchResult
from ocrmatch.events import DEFAULT_LAYOUT, OcrEvent, merge_layout, parse_event
from ocrmatch.index import RosterIndex, RosterIndexHolder
from ocrmatch.normalize import normalize_token
from ocrmatch.scoring import MATCH_THRESHOLD, anchor_overlap, similarity

log = logging.getLogger(__name__)

# Consecutive misses tolerated before a stable match is dropped
DEFAULT_HOLD_MISSES = 5
DEFAULT_MIN_TOKEN_LENGTH = 3
DEFAULT_MAX_TOKEN_LENGTH = 25


class MatchEngine:
    """Decides, event by event, which roster player is on screen.

    One engine per overlay session. Events must be fed one at a time in
    arrival order; the engine state is not shareable between sessions.

    States are NoMatch (``last_stable is None``) and Stable(match, misses).
    A qualifying candidate always switches to Stable(candidate, 0). Without
    one the stable match is re-emitted until ``hold_misses`` consecutive
    misses have been seen, then the engine falls back to NoMatch.
    """

    def __init__(
        self,
        holder: RosterIndexHolder,
        match_threshold: float = MATCH_THRESHOLD,
        hold_misses: int = DEFAULT_HOLD_MISSES,
        min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH,
        max_token_length: int = DEFAULT_MAX_TOKEN_LENGTH,
        layout: Optional[dict[str, float]] = None,
    ):
        self._holder = holder
        self.match_threshold = match_threshold
        self.hold_misses = hold_misses
        self.min_token_length = min_token_length
        self.max_token_length = max_token_length
        self._layout = dict(layout if layout is not None else DEFAULT_LAYOUT)
        self._last_stable: Optional[MatchResult] = None
        self._miss_count = 0
        self._current: Optional[MatchResult] = None

    @classmethod
    def from_config(cls, holder: RosterIndexHolder, config) -> 'MatchEngine':
        """Create an engine with thresholds taken from a MatcherConfig."""
        return cls(
            holder,
            match_threshold=config.match_threshold,
            hold_misses=config.hold_misses,
            min_token_length=config.min_token_length,
            max_token_length=config.max_token_length,
        )

    @property
    def last_stable(self) -> Optional[MatchResult]:
        return self._last_stable

    @property
    def miss_count(self) -> int:
        return self._miss_count

    @property
    def current(self) -> Optional[MatchResult]:
        """Decision emitted for the most recent accepted event."""
        return self._current

    @property
    def layout(self) -> dict[str, float]:
        return dict(self._layout)

    def reset(self) -> None:
        """Drop temporal state, e.g. after the event transport reconnected."""
        self._last_stable = None
        self._miss_count = 0
        self._current = None

    def clean_tokens(self, raw_tokens: list[str]) -> list[str]:
        """Normalize raw tokens and drop those outside the length bounds."""
        tokens = []
        for raw in raw_tokens:
            token = normalize_token(raw)
            if self.min_token_length <= len(token) <= self.max_token_length:
                tokens.append(token)
        return tokens

    def best_candidate(
        self,
        tokens: list[str],
        index: RosterIndex,
    ) -> Optional[MatchResult]:
        """Find the best scoring (team, player) pair for a set of tokens.

        Entries are visited in roster order and tokens in event order; the
        comparison is strictly greater-than, so the first pair seen wins
        ties. Roster order is deliberately the outer loop: when two tokens
        each match a different player equally well, the player listed first
        in the roster wins, not the one whose token came first.

        Args:
            tokens: Normalized tokens of one event.
            index: Roster index to search.

        Returns:
            Best candidate regardless of threshold, or None.
        """
        best: Optional[MatchResult] = None
        best_score = 0.0

        for entry in index:
            for token in tokens:
                if not anchor_overlap(token, entry.key, entry.anchors, self.match_threshold):
                    continue
                score = similarity(token, entry.key)
                if score > best_score:
                    best_score = score
                    best = MatchResult(team=entry.team, player=entry.player, score=score)

        return best

    def process(self, event: OcrEvent) -> Optional[MatchResult]:
        """Consume one OCR event and return the current decision.

        Args:
            event: Parsed OCR event.

        Returns:
            The match to display, or None for "no match".
        """
        # Single read so a concurrent roster refresh cannot split this event
        index = self._holder.current

        tokens = self.clean_tokens(event.tokens())

        if event.ui_position is not None:
            self._layout = merge_layout(self._layout, event.ui_position)

        candidate = self.best_candidate(tokens, index) if tokens else None

        if candidate is not None and candidate.score >= self.match_threshold:
            previous = self._last_stable
            if previous is None or previous.player is not candidate.player:
                log.info(
                    "Match: %s (%s) Score %.2f",
                    candidate.player_name, candidate.team_name, candidate.score,
                )
            self._last_stable = candidate
            self._miss_count = 0
            self._current = candidate
            return candidate

        self._miss_count += 1

        if self._last_stable is not None and self._miss_count < self.hold_misses:
            log.debug(
                "Kein Treffer (%d/%d), halte %s",
                self._miss_count, self.hold_misses, self._last_stable.player_name,
            )
            self._current = self._last_stable
            return self._last_stable

        if self._last_stable is not None:
            log.info("Match verloren: %s", self._last_stable.player_name)
        self._last_stable = None
        self._miss_count = 0
        self._current = None
        return None

    def feed(self, payload: Any) -> tuple[bool, Optional[MatchResult]]:
        """Parse and process a raw payload from the event stream.

        Args:
            payload: JSON text/bytes or decoded mapping.

        Returns:
            ``(accepted, decision)``. Malformed payloads are dropped:
            ``accepted`` is False and the decision is the unchanged
            current one.
        """
        event = parse_event(payload)
        if event is None:
            return False, self._current
        return True, self.process(event)


@dataclass
class ReplayRow:
    """Engine decision for one line of a recorded event log."""

    event_no: int
    accepted: bool
    tokens: list[str] = field(default_factory=list)
    decision: Optional[MatchResult] = None
    held: bool = False        # Decision re-emitted from the hold window
    miss_count: int = 0


def replay_events(engine: MatchEngine, payloads: Iterable[Any]) -> list[ReplayRow]:
    """Run recorded payloads through an engine, one row per payload.

    Args:
        engine: Engine to drive, normally freshly created.
        payloads: Raw payloads in recorded order.

    Returns:
        List of ReplayRow.
    """
    rows: list[ReplayRow] = []
    for event_no, payload in enumerate(payloads, start=1):
        event = parse_event(payload)
        if event is None:
            rows.append(ReplayRow(event_no=event_no, accepted=False,
                                  decision=engine.current,
                                  miss_count=engine.miss_count))
            continue
        decision = engine.process(event)
        rows.append(ReplayRow(
            event_no=event_no,
            accepted=True,
            tokens=engine.clean_tokens(event.tokens()),
            decision=decision,
            held=decision is not None and engine.miss_count > 0,
            miss_count=engine.miss_count,
        ))

    log.info("Replay abgeschlossen: %d Events verarbeitet", len(rows))
    return rows
