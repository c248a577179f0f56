"""Anchor pre-filter and similarity scoring for OCR tokens."""

from itertools import product

ANCHOR_SIZE = 4

# Default confirmation threshold (0–1 scale)
MATCH_THRESHOLD = 0.75

# Digit/letter look-alikes accepted as equal inside an anchor window.
# Must stay symmetric.
CHAR_EQUIV: dict[str, tuple[str, ...]] = {
    '8': ('b',),
    'b': ('8',),
    '0': ('o',),
    'o': ('0',),
    '1': ('l',),
    'l': ('1',),
}


def build_anchors(key: str) -> frozenset[str]:
    """Return every contiguous ANCHOR_SIZE-character substring of a key."""
    return frozenset(
        key[i:i + ANCHOR_SIZE] for i in range(len(key) - ANCHOR_SIZE + 1)
    )


def _window_variants(window: str):
    """Yield all spellings of a window under the CHAR_EQUIV table."""
    options = [(ch,) + CHAR_EQUIV.get(ch, ()) for ch in window]
    for combo in product(*options):
        yield ''.join(combo)


def has_fuzzy_anchor(token: str, anchors: frozenset[str]) -> bool:
    """Check whether any window of the token lines up with an anchor.

    Two windows line up when every aligned character pair is identical or
    listed in CHAR_EQUIV. Expanding the token window into its look-alike
    spellings turns the pairwise comparison into set lookups.

    Args:
        token: Normalized OCR token.
        anchors: Anchor set of the candidate key.

    Returns:
        True if at least one window/anchor pair lines up.
    """
    if not anchors or len(token) < ANCHOR_SIZE:
        return False
    for i in range(len(token) - ANCHOR_SIZE + 1):
        window = token[i:i + ANCHOR_SIZE]
        for variant in _window_variants(window):
            if variant in anchors:
                return True
    return False


def character_coverage(a: str, b: str) -> float:
    """Share of characters of ``a`` that occur anywhere in ``b``.

    Counted once per occurrence in ``a`` and divided by the longer length.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    present = set(b)
    return sum(1 for ch in a if ch in present) / longest


def similarity(a: str, b: str) -> float:
    """Heuristic similarity between two normalized strings.

    1.0 for equality, 0.8 when one contains the other, otherwise the
    order-insensitive character coverage of ``a`` in ``b``.

    This is not an edit distance: transpositions cost nothing and repeated
    letters in ``a`` are each counted when present once in ``b``. The
    thresholds are tuned against exactly this formula.

    Args:
        a: Normalized OCR token.
        b: Normalized candidate key.

    Returns:
        Score between 0.0 and 1.0.
    """
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.8
    return character_coverage(a, b)


def anchor_overlap(
    token: str,
    key: str,
    anchors: frozenset[str],
    threshold: float = MATCH_THRESHOLD,
) -> bool:
    """Admissibility filter applied before full scoring.

    Admits everything with a lined-up anchor window. A pair without one
    can still reach the threshold through containment (tokens shorter than
    an anchor) or through character coverage (shuffled letters), so those
    are admitted as well: the filter never rejects a pair whose
    ``similarity`` reaches ``threshold``.

    Args:
        token: Normalized OCR token.
        key: Normalized candidate key.
        anchors: Anchor set of ``key``.
        threshold: Score a pair must be able to reach to be admitted.

    Returns:
        True if the pair has to be scored.
    """
    if has_fuzzy_anchor(token, anchors):
        return True
    if token in key or key in token:
        return True
    return character_coverage(token, key) >= threshold
