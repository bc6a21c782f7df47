"""
Normalization of text fields coming from the provider.
"""
import re

_NUMERIC_REFERENCE = re.compile(r"&#(x[0-9a-fA-F]+|[0-9]+);")

# Turkish dotted/dotless i do not round-trip through str.lower()/str.upper()
_TO_LOWER = str.maketrans({"İ": "i", "I": "ı"})
_TO_UPPER = str.maketrans({"i": "İ", "ı": "I"})


def _decode_reference(match: "re.Match") -> str:
    value = match.group(1)
    try:
        code = int(value[1:], 16) if value[0] in "xX" else int(value)
        return chr(code)
    except (ValueError, OverflowError):
        return match.group(0)


def turkish_lower(text: str) -> str:
    return text.translate(_TO_LOWER).lower()


def turkish_upper(text: str) -> str:
    return text.translate(_TO_UPPER).upper()


def _plain_lower(text: str) -> str:
    # str.lower() turns "İ" into "i" plus a combining dot above
    return text.lower().replace("\u0307", "")


def sanitize_html(
    text: str,
    replace_html_chars: bool = True,
    upper_case_each_word: bool = True,
    turkish: bool = True,
) -> str:
    """Trim, decode numeric character references and title-case each word.

    Args:
        text: Raw provider text
        replace_html_chars: Decode references such as &#304; into their letters
        upper_case_each_word: First letter of each space separated word upper, rest lower
        turkish: Use Turkish casing rules for dotted and dotless i
    """
    result = (text or "").strip()
    if replace_html_chars:
        result = _NUMERIC_REFERENCE.sub(_decode_reference, result)

    if upper_case_each_word:
        lower, upper = (turkish_lower, turkish_upper) if turkish else (_plain_lower, str.upper)
        words = lower(result).split(" ")
        result = " ".join(upper(w[:1]) + w[1:] for w in words)
    return result
