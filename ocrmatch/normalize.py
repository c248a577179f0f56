"""OCR token normalization."""

import re

# OCR look-alikes folded onto one representative before comparison
CONFUSABLES: dict[str, str] = {
    '@': 'q',
    'd': 'q',
    '0': 'o',
    '1': 'l',
    'i': 'l',
    'l': 'l',
    '7': 'l',
    '5': 's',
}

_CONFUSABLE_TABLE = str.maketrans(CONFUSABLES)

# Three or more identical consecutive characters
_REPEAT_RE = re.compile(r'(.)\1{2,}', re.DOTALL)
_NON_ALNUM_RE = re.compile(r'[^a-z0-9]')


def collapse_repeats(value: str) -> str:
    """Collapse runs of 3+ identical characters into a single one."""
    return _REPEAT_RE.sub(r'\1', value)


def normalize_token(text) -> str:
    """Normalize a display name or an OCR token into a comparison key.

    Steps: lowercase, fold OCR confusables, collapse over-repetition,
    strip everything outside ``[a-z0-9]``, trim. The normalization is
    lossy and only ever applied forwards; names and tokens go through the
    same function so comparisons stay symmetric.

    Stripping can glue two short runs into a new long one (``"aa-a"``), so
    the trim step collapses once more to keep the function idempotent.

    Args:
        text: Raw name or OCR text. ``None`` yields an empty key, other
            non-string values are converted with ``str()``.

    Returns:
        Normalized key, possibly empty.
    """
    if text is None:
        return ''
    value = str(text).lower()
    value = value.translate(_CONFUSABLE_TABLE)
    value = collapse_repeats(value)
    value = _NON_ALNUM_RE.sub('', value)
    return collapse_repeats(value).strip()
