"""
Translation of Cargo's version requirements into the target resolver's range
syntax.

Cargo joins comparators with commas and treats all of them as a conjunction.
The resolver, in contrast, only understands a single bound pair `>= A < B`,
caret and tilde ranges, `x` wildcards, and exact versions. Since most compound
requirements have no exact counterpart, each translation approximates the
original requirement and errs on the side of admitting fewer versions. That
way, the resolver never picks a version that Cargo would have rejected, though
it may reject some version Cargo would have picked.

Translation is driven by an ordered table of patterns. The first pattern that
matches wins. Requirements not matching any pattern are returned unchanged.
"""

from collections.abc import Callable
import re

from .version import Data, wildcard_bounds


__all__ = (
    'check_desugared',
    'desugar',
    'is_target_range',
    'MalformedRange',
    'RangeError',
    'UnrecognizedRange',
)


class RangeError(ValueError):
    """An error translating a version requirement."""

    def __init__(self, requirement: str, message: str) -> None:
        super().__init__(f'{message} "{requirement}"')
        self.requirement = requirement


class UnrecognizedRange(RangeError):
    """A version requirement that matches no known pattern."""

    def __init__(self, requirement: str) -> None:
        super().__init__(requirement, 'unrecognized version requirement')


class MalformedRange(RangeError):
    """A translated version requirement with more than one lower bound."""

    def __init__(self, requirement: str, desugared: str) -> None:
        super().__init__(
            requirement, f'malformed translation "{desugared}" of requirement')
        self.desugared = desugared


# --------------------------------------------------------------------------------------


_VERSION = r'([0-9.]+)'

def _pattern(text: str) -> re.Pattern[str]:
    return re.compile(text.replace('V', _VERSION))


def _wildcard(match: re.Match[str]) -> None | str:
    if (bounds := wildcard_bounds(match.group(0))) is None:
        return None
    lower, upper = bounds
    return f'>={lower} <{upper}'


Translation = Callable[[re.Match[str]], None | str]

TRANSLATIONS: tuple[tuple[re.Pattern[str], Translation], ...] = (
    # 1.2.x
    (re.compile(r'[0-9]+(?:[.][0-9]+)*[.][*xX]'), _wildcard),
    # 1.x.x
    (re.compile(r'[0-9]+(?:[.][0-9]+)*[.][*xX][.][*xX]'), _wildcard),
    # = 1.2.3
    (re.compile(r'= *([0-9a-zA-Z.-]+)'), lambda m: m.group(1)),
    # > 1.2.3
    (_pattern(r'> *V'), lambda m: f'^{m.group(1)}'),
    # ^1.2.3, >= 1.5.0
    (_pattern(r'\^ *V *>= *V'), lambda m: f'^{m.group(2)}'),
    # ^1.2.3, < 1.5.0
    (_pattern(r'\^ *V *< *V'), lambda m: f'>= {m.group(1)} < {m.group(2)}'),
    # ^1.2.3, <= 1.5.0
    (_pattern(r'\^ *V *<= *V'), lambda m: m.group(1)),
    # >= 1.2.3, <= 1.5.0
    (_pattern(r'>= *V *<= *V'), lambda m: f'>= {m.group(1)} < {m.group(2)}'),
    # ^1.2.3, ^1.2.0
    (_pattern(r'\^ *V *\^ *V'), lambda m: f'^{m.group(1)}'),
    # > 1.2.3, < 1.5.0
    (_pattern(r'> *V *< *V'), lambda m: f'>= {m.group(1)} < {m.group(2)}'),
    # >= 1.2.3, 1.2.x
    (_pattern(r'>= *V *([0-9.]+[.][*xX])'), lambda m: f'^{m.group(1)}'),
)

TARGET_RANGES = (
    re.compile(r'\*'),
    re.compile(r'[\^~]? *[0-9][0-9A-Za-z.+-]*'),
    re.compile(r'[0-9]+(?:[.][0-9]+)*[.][xX*]'),
    re.compile(r'>= *[0-9][0-9A-Za-z.+-]*(?: *< *[0-9][0-9A-Za-z.+-]*)?'),
    re.compile(r'< *[0-9][0-9A-Za-z.+-]*'),
)

DOUBLE_LOWER_BOUND = re.compile(r'>=[0-9.]+ *>=([0-9.]+) *<([0-9.]+)')


# --------------------------------------------------------------------------------------


def desugar(requirement: str, *, strict: bool = False) -> str:
    """
    Translate a Cargo version requirement into the resolver's syntax. A
    requirement without translation that becomes valid in the resolver's syntax
    once commas are replaced, e.g., `>= 1.0, < 2.0`, is returned in that form.
    In strict mode, any other requirement raises `UnrecognizedRange`.
    Otherwise, it is returned as is.
    """
    text = requirement.strip().replace(',', ' ')
    for pattern, translate in TRANSLATIONS:
        if (match := pattern.fullmatch(text)) is None:
            continue
        if (translation := translate(match)) is not None:
            return translation
        break

    if is_target_range(text):
        return ' '.join(text.split())
    if strict:
        raise UnrecognizedRange(requirement)
    return requirement


def is_target_range(text: str) -> bool:
    """Determine whether the text already is a range in the resolver's syntax."""
    text = text.strip()
    if not any(pattern.fullmatch(text) for pattern in TARGET_RANGES):
        return False

    bare = text.lstrip('^~ ')
    if bare and bare[0].isdigit() and bare[-1] not in 'xX*':
        try:
            Data.from_string(bare)
        except ValueError:
            return False
    return True


def check_desugared(requirement: str, desugared: str) -> str:
    """
    Ensure that the translation does not combine two lower bounds with an
    upper bound, which the resolver cannot parse. Return the translation.
    """
    if DOUBLE_LOWER_BOUND.fullmatch(desugared):
        raise MalformedRange(requirement, desugared)
    return desugared
