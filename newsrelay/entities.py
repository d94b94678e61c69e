"""HTML entity decoding for feed text.

Only a fixed table is decoded: the XML/HTML core entities, typographic
quotes and dashes (folded to their ASCII look-alikes, which the device font
can render) and the French/Latin accented letters. Anything else is left
exactly as it appeared in the feed.
"""

import re

ENTITY_TABLE: dict[str, str] = {
    # Core markup entities
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "#39": "'",
    "apos": "'",
    "nbsp": " ",
    "#160": " ",
    # Typographic quotes and dashes
    "#8217": "'",
    "rsquo": "'",
    "lsquo": "'",
    "#8220": '"',
    "#8221": '"',
    "rdquo": '"',
    "ldquo": '"',
    "#8211": "-",
    "#8212": "-",
    "mdash": "-",
    "ndash": "-",
    # Lowercase accented letters
    "eacute": "é",
    "#233": "é",
    "egrave": "è",
    "#232": "è",
    "ecirc": "ê",
    "#234": "ê",
    "euml": "ë",
    "#235": "ë",
    "agrave": "à",
    "#224": "à",
    "acirc": "â",
    "#226": "â",
    "auml": "ä",
    "#228": "ä",
    "ugrave": "ù",
    "#249": "ù",
    "ucirc": "û",
    "#251": "û",
    "uuml": "ü",
    "#252": "ü",
    "ocirc": "ô",
    "#244": "ô",
    "ouml": "ö",
    "#246": "ö",
    "icirc": "î",
    "#238": "î",
    "iuml": "ï",
    "#239": "ï",
    "ccedil": "ç",
    "#231": "ç",
    "aelig": "æ",
    "#230": "æ",
    "oelig": "œ",
    "#339": "œ",
    # Uppercase accented letters
    "Eacute": "É",
    "#201": "É",
    "Egrave": "È",
    "#200": "È",
    "Ecirc": "Ê",
    "#202": "Ê",
    "Agrave": "À",
    "#192": "À",
    "Acirc": "Â",
    "#194": "Â",
    "Ccedil": "Ç",
    "#199": "Ç",
}

ENTITY_PATTERN = re.compile(r"&(#[0-9]+|[A-Za-z][A-Za-z0-9]*);")


def _replace(match: re.Match) -> str:
    return ENTITY_TABLE.get(match.group(1), match.group(0))


def decode_entities(text: str | None) -> str:
    """Decode the known entities in ``text`` in a single left-to-right pass.

    Replacement text is never scanned again, so ``&amp;lt;`` becomes ``&lt;``
    rather than ``<``. Unknown entities are returned unchanged.

    Args:
        text: Raw text from the feed, may be None

    Returns:
        Text with known entities replaced by literal characters
    """
    if not text:
        return ""
    if "&" not in text:
        return text
    return ENTITY_PATTERN.sub(_replace, text)
