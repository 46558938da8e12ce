"""
Fallback chains shared by the field path and image selector languages.

Both languages chain complete expressions with `??`:

    images[isPrimary=true][0] ?? images[type=cover][0] ?? images[0]
    verdict ?? platform.title ?? "Unknown"

Alternatives are tried left to right and evaluation stops at the first one
that yields a present value; later alternatives are never evaluated.
Splitting ignores `??` inside quoted literals and brackets.
"""

import re
from collections.abc import Callable
from functools import lru_cache
from typing import Any, TypeVar

T = TypeVar("T")

FALLBACK_OPERATOR = "??"

_NUMBER_PATTERN = re.compile(r"-?\d+(\.\d+)?")

# Keyword that always evaluates to no value
NONE_LITERAL = "none"


class _NotLiteral:
    def __repr__(self) -> str:
        return "NOT_LITERAL"


NOT_LITERAL: Any = _NotLiteral()


@lru_cache(maxsize=512)
def split_fallbacks(expression: str) -> tuple[str, ...]:
    """
    Split an expression into its fallback alternatives.

    Whitespace around each alternative is stripped and empty alternatives
    are dropped.

    Examples:
        >>> split_fallbacks("a ?? b.c ?? 'x ?? y'")
        ('a', 'b.c', "'x ?? y'")
    """
    parts: list[str] = []
    current: list[str] = []
    quote: str | None = None
    depth = 0
    i = 0

    while i < len(expression):
        char = expression[i]
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == "[":
            depth += 1
        elif char == "]" and depth:
            depth -= 1
        elif depth == 0 and expression.startswith(FALLBACK_OPERATOR, i):
            parts.append("".join(current))
            current = []
            i += len(FALLBACK_OPERATOR)
            continue
        current.append(char)
        i += 1

    parts.append("".join(current))
    return tuple(part.strip() for part in parts if part.strip())


def evaluate_fallbacks(
    expression: str,
    evaluate_one: Callable[[str], T | None],
    is_present: Callable[[T | None], bool] | None = None,
) -> T | None:
    """
    Evaluate a fallback chain.

    Args:
        expression: Full expression, possibly containing `??`
        evaluate_one: Evaluates a single alternative
        is_present: Decides whether a result ends the chain
            (default: anything but None)

    Returns:
        The first present result, or None if every alternative is absent
    """
    if is_present is None:
        is_present = _not_none

    for alternative in split_fallbacks(expression):
        result = evaluate_one(alternative)
        if is_present(result):
            return result
    return None


def parse_literal(text: str) -> Any:
    """
    Read a literal alternative.

    Quoted text gives a string, a decimal number gives an int or float and
    `none` gives None. Anything else is not a literal and returns NOT_LITERAL.
    """
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    if text == NONE_LITERAL:
        return None
    if _NUMBER_PATTERN.fullmatch(text):
        return float(text) if "." in text else int(text)
    return NOT_LITERAL


def _not_none(value: Any) -> bool:
    return value is not None
