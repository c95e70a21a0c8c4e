"""
Template substitution: ``%expr%`` placeholders inside plain text.

``%%`` is a literal percent sign, ``%<expr>%`` strips the angle brackets,
an empty placeholder is dropped, and an unterminated ``%`` copies the rest
of the text verbatim.
"""

from typing import Any, Callable, List

from .host import unwrap_value

DELIMITER = "%"


def stringify(value: Any) -> str:
    """Renders a value the way scripts expect to see it in text."""
    value = unwrap_value(value)
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def expand_template(text: str, evaluate_fragment: Callable[[str], Any]) -> str:
    """
    Expands every placeholder in ``text``.

    Args:
        text: Template text
        evaluate_fragment: Evaluates one placeholder expression

    Returns:
        The expanded text
    """
    out: List[str] = []
    index = 0
    length = len(text)

    while index < length:
        start = text.find(DELIMITER, index)
        if start < 0:
            out.append(text[index:])
            break

        if start + 1 < length and text[start + 1] == DELIMITER:
            out.append(text[index:start])
            out.append(DELIMITER)
            index = start + 2
            continue

        end = text.find(DELIMITER, start + 1)
        if end < 0:
            out.append(text[index:])
            break

        out.append(text[index:start])
        inner = text[start + 1 : end].strip()
        if inner.startswith("<") and inner.endswith(">"):
            inner = inner[1:-1].strip()
        if inner:
            out.append(stringify(evaluate_fragment(inner)))

        index = end + 1

    return "".join(out)
