from .console import Console
from crates.version import Data, strip_build_metadata, wildcard_bounds


def test_parse_version(console: Console) -> None:
    for text, expected in (
        ('1.2.3', ((1, 2, 3), None, None)),
        ('0.1', ((0, 1), None, None)),
        ('1.0.0-alpha.1', ((1, 0, 0), 'alpha.1', None)),
        ('1.0.0+abc', ((1, 0, 0), None, 'abc')),
        ('0.0.0.0.8-rc1+wtf', ((0, 0, 0, 0, 8), 'rc1', 'wtf')),
    ):
        data = Data.from_string(text)
        console.assert_eq(tuple(data), expected)
        console.assert_eq(str(data), text)

    for text in ('', 'v1.2.3', '1.2.3abc', '1..2', '1.2.3+'):
        console.assert_raises(ValueError, Data.from_string, text)


def test_strip_build_metadata(console: Console) -> None:
    for text, expected in (
        ('1.0.0+abc', '1.0.0'),
        ('1.0.0-rc.1+build.5', '1.0.0-rc.1'),
        ('0.3.1+sha.0a1b2c', '0.3.1'),
        ('1.0.0', '1.0.0'),
    ):
        console.assert_eq(strip_build_metadata(text), expected)


def test_release_components(console: Console) -> None:
    data = Data.from_string('1.2-beta')
    console.assert_eq(data.release_components(3), (1, 2, 0))
    console.assert_eq(data.release_components(1), (1,))
    console.assert_eq(str(data.bump_last()), '1.3')


def test_wildcard_bounds(console: Console) -> None:
    for pattern, expected in (
        ('1.2.x', ('1.2.0', '1.3.0')),
        ('1.x', ('1.0.0', '2.0.0')),
        ('1.x.x', ('1.0.0', '2.0.0')),
        ('0.0.*', ('0.0.0', '0.1.0')),
        ('1.2.3.x', None),
        ('x', None),
        ('1.2.3', None),
        ('a.x', None),
    ):
        bounds = wildcard_bounds(pattern)
        actual = None if bounds is None else tuple(str(b) for b in bounds)
        console.assert_eq(actual, expected)
