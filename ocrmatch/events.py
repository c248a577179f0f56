"""Schema and parsing of OCR events pushed by the recognition process."""

import json
import logging
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

log = logging.getLogger(__name__)

# Overlay anchor positions in pixels, used until the OCR process sends hints
DEFAULT_LAYOUT: dict[str, float] = {
    'TeamShortLogoTop': 57,
    'TeamShortLogoLeft': 10,
    'TeamShortLogoWidth': 100,
    'TeamShortLogoHeight': 32,
    'TeamLogoTop': 866,
    'TeamLogoLeft': 644,
    'TeamLogoSize': 70,
    'PlayerImgTop': 897,
    'PlayerImgLeft': 1280,
    'PlayerImgSize': 174,
}


class PlayerGuess(BaseModel):
    """A player name recognized by the OCR process."""
    model_config = ConfigDict(extra='ignore')

    name: Optional[str] = Field(None, description="Recognized player name")


class ParsedFrame(BaseModel):
    """Structured recognition result for one frame."""
    model_config = ConfigDict(extra='ignore')

    players: Optional[list[PlayerGuess]] = None


class UiPosition(BaseModel):
    """Layout calibration hints; absent fields keep their current value."""
    model_config = ConfigDict(extra='ignore')

    TeamShortLogoTop: Optional[float] = None
    TeamShortLogoLeft: Optional[float] = None
    TeamShortLogoWidth: Optional[float] = None
    TeamShortLogoHeight: Optional[float] = None
    TeamLogoTop: Optional[float] = None
    TeamLogoLeft: Optional[float] = None
    TeamLogoSize: Optional[float] = None
    PlayerImgTop: Optional[float] = None
    PlayerImgLeft: Optional[float] = None
    PlayerImgSize: Optional[float] = None


class OcrEvent(BaseModel):
    """One recognition event from the OCR stream."""
    model_config = ConfigDict(extra='ignore')

    parsed: Optional[ParsedFrame] = None
    raw_text: Optional[list[str]] = None
    ui_position: Optional[UiPosition] = None

    def tokens(self) -> list[str]:
        """Raw candidate tokens: player guesses first, then raw text lines."""
        guesses = []
        if self.parsed is not None:
            guesses = [p.name for p in self.parsed.players or [] if p.name]
        return guesses + list(self.raw_text or [])


def parse_event(payload: Union[str, bytes, dict, Any]) -> Optional[OcrEvent]:
    """Parse an OCR event payload.

    Args:
        payload: JSON text/bytes or an already decoded mapping.

    Returns:
        The parsed OcrEvent, or None if the payload is unusable.
    """
    if isinstance(payload, OcrEvent):
        return payload
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except (ValueError, UnicodeDecodeError) as exc:
            log.debug("OCR-Event verworfen (kein JSON): %s", exc)
            return None
    if not isinstance(payload, dict):
        log.debug("OCR-Event verworfen (kein Objekt): %r", type(payload).__name__)
        return None
    try:
        return OcrEvent.model_validate(payload)
    except ValidationError as exc:
        log.debug("OCR-Event verworfen (Schema): %d Fehler", exc.error_count())
        return None


def merge_layout(
    current: dict[str, float],
    hints: Optional[UiPosition],
) -> dict[str, float]:
    """Shallow-merge layout hints over the current layout.

    Args:
        current: Current layout values.
        hints: Hints from an OCR event; None is a no-op.

    Returns:
        A new layout dict.
    """
    merged = dict(current)
    if hints is not None:
        merged.update(hints.model_dump(exclude_none=True))
    return merged
