"""
Step pattern compilation.

A step pattern is either a plain string with typed placeholders
(``I have {int} wings``, ``I have ${float} in my pocket``) or a regular
expression supplied by the caller. Both compile to an object exposing
``match(text)``, which returns the ordered, type-coerced parameters or
``None`` when the phrase does not match in full.
"""

import re
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple, Union

from ..core.exceptions import PatternCompileError

logger = logging.getLogger(__name__)

TOLERANT = "tolerant"
STRICT = "strict"

# kind -> (regex fragment, coercion)
PLACEHOLDERS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "word": (r"\S+", str),
    "int": (r"[-+]?\d+", int),
    "float": (r"[-+]?(?:\d+\.\d*|\.\d+|\d+)", float),
}

# "$" directly before a numeric placeholder means a currency amount
MONEY_PREFIX = "$"
MONEY_KINDS = {"int": "money_int", "float": "money_float"}

_TOKEN = re.compile(r"(\$?)\{([^{}]*)\}")
_WHITESPACE = re.compile(r"(\s+)")


@dataclass(frozen=True)
class PlaceholderPattern:
    """Literal text with typed placeholders, compiled to a regex"""
    source: str
    regex: Pattern
    kinds: Tuple[str, ...]

    @property
    def pattern(self) -> str:
        return self.source

    def match(self, text: str) -> Optional[List[Any]]:
        found = self.regex.fullmatch(text)
        if not found:
            return None
        return [_coerce(kind, value) for kind, value in zip(self.kinds, found.groups())]


@dataclass(frozen=True)
class RegexPattern:
    """Caller-supplied regular expression; groups are passed through untouched"""
    regex: Pattern

    @property
    def pattern(self) -> str:
        return self.regex.pattern

    @property
    def kinds(self) -> Tuple[str, ...]:
        return ()

    def match(self, text: str) -> Optional[List[Any]]:
        found = self.regex.fullmatch(text)
        if not found:
            return None
        return list(found.groups())


CompiledPattern = Union[PlaceholderPattern, RegexPattern]


def _coerce(kind: str, value: Optional[str]) -> Any:
    if value is None:
        return None
    base_kind = kind.split("_", 1)[-1]
    return PLACEHOLDERS[base_kind][1](value)


def _literal(text: str, whitespace: str) -> str:
    if whitespace == STRICT:
        return re.escape(text)
    parts = _WHITESPACE.split(text)
    return "".join(r"\s+" if part.isspace() else re.escape(part) for part in parts if part)


def compile_pattern(pattern: Union[str, Pattern], whitespace: str = TOLERANT) -> CompiledPattern:
    """
    Compile a step pattern.

    Args:
        pattern: String with ``{word}``, ``{int}``, ``{float}`` placeholders
            (optionally ``$``-prefixed for amounts) or a compiled regex
        whitespace: ``tolerant`` lets any whitespace run match any other,
            ``strict`` requires the literal text exactly

    Returns:
        PlaceholderPattern or RegexPattern

    Raises:
        PatternCompileError: For unknown placeholder kinds or pattern types
    """
    if isinstance(pattern, re.Pattern):
        return RegexPattern(regex=pattern)

    if not isinstance(pattern, str):
        raise PatternCompileError(
            f"Step pattern must be a string or compiled regex, got {type(pattern).__name__}"
        )

    if whitespace not in (TOLERANT, STRICT):
        raise PatternCompileError(f"Unsupported whitespace policy: {whitespace!r}")

    fragments = []
    kinds = []
    position = 0

    for token in _TOKEN.finditer(pattern):
        money, kind = token.group(1), token.group(2).strip()
        if kind not in PLACEHOLDERS:
            raise PatternCompileError(
                f"Unsupported placeholder {{{kind}}} in step pattern: {pattern}"
            )
        if money and kind not in MONEY_KINDS:
            raise PatternCompileError(
                f"Placeholder {{{kind}}} cannot be used as an amount in step pattern: {pattern}"
            )

        fragments.append(_literal(pattern[position:token.start()], whitespace))
        if money:
            fragments.append(re.escape(MONEY_PREFIX))
            kinds.append(MONEY_KINDS[kind])
        else:
            kinds.append(kind)
        fragments.append(f"({PLACEHOLDERS[kind][0]})")
        position = token.end()

    fragments.append(_literal(pattern[position:], whitespace))

    regex = re.compile("".join(fragments))
    logger.debug(f"Compiled step pattern {pattern!r} to {regex.pattern!r}")

    return PlaceholderPattern(source=pattern, regex=regex, kinds=tuple(kinds))
