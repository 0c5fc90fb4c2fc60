"""
Support for the version identifiers found in the crates.io index.

Cargo versions follow [Semantic Versioning](https://semver.org), i.e., they
have a numeric release segment, an optional pre-release segment introduced by
`-`, and optional build metadata introduced by `+`. Unlike PEP 440 versions,
semantic versions are not normalized while parsing: the textual form of a
version is its identity, which is why the registry keys versions by string.

The target resolver accepts release segments of any length, so `Data` keeps
the release as a tuple of arbitrary length, just like the resolver does. Build
metadata has no bearing on ordering or matching and is stripped from version
keys before they enter the registry.
"""

import itertools as it
import re
from typing import NamedTuple


__all__ = ('Data', 'strip_build_metadata', 'wildcard_bounds')

SYNTAX = re.compile(
    r"""
        (?P<release> [0-9]+(?:[.][0-9]+)*               )
        (?: [-]      (?P<pre>   [0-9A-Za-z-]+(?:[.][0-9A-Za-z-]+)* ) )?
        (?: [+]      (?P<build> [0-9A-Za-z-]+(?:[.][0-9A-Za-z-]+)* ) )?
    """,
    re.X,
)
WILDCARD = re.compile(r'[*xX]')


def strip_build_metadata(version: str) -> str:
    """Remove the build metadata, if any, from the version string."""
    return version.partition('+')[0]


class Data(NamedTuple):
    """
    The segments of a semantic version. A `None` value indicates that the
    corresponding segment is not present.
    """

    release: tuple[int, ...]
    pre: None | str = None
    build: None | str = None

    @classmethod
    def from_string(cls, version: str) -> 'Data':
        """Parse the given version identifier."""
        segments = SYNTAX.fullmatch(version.strip())
        if segments is None:
            raise ValueError(f'not a version string "{version}"')

        release = tuple(int(p) for p in segments.group('release').split('.'))
        return cls(release, segments.group('pre'), segments.group('build'))

    def release_components(self, precision: int) -> tuple[int, ...]:
        """Return the release components with the given precision."""
        return tuple(it.islice(it.chain(self.release, it.repeat(0)), precision))

    def release_text(self) -> str:
        """Return the release components as a string."""
        return '.'.join(str(n) for n in self.release)

    def bump_last(self) -> 'Data':
        """
        Increment the least significant release component and drop the
        pre-release and build segments.
        """
        *head, last = self.release
        return self.__class__((*head, last + 1))

    def __str__(self) -> str:
        fragments = [self.release_text()]
        if (pre := self.pre) is not None:
            fragments.append(f'-{pre}')
        if (build := self.build) is not None:
            fragments.append(f'+{build}')
        return ''.join(fragments)


def wildcard_bounds(pattern: str, precision: int = 3) -> None | tuple[Data, Data]:
    """
    Determine the inclusive lower and exclusive upper bound for a wildcard
    pattern such as `1.2.x` or `1.x.*`. Everything after the first wildcard is
    ignored. The bounds have the given precision. A pattern that fixes as many
    components as the precision allows, or more, has no bounds.
    """
    fixed: list[int] = []
    for component in pattern.split('.'):
        if WILDCARD.fullmatch(component):
            break
        if not component.isdigit():
            return None
        fixed.append(int(component))
    else:
        return None

    if len(fixed) == 0 or len(fixed) >= precision:
        return None

    lower = Data(tuple(fixed))
    upper = lower.bump_last()
    return (
        Data(lower.release_components(precision)),
        Data(upper.release_components(precision)),
    )
