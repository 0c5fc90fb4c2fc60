from .console import Console
from crates.name import canonicalize, index_prefix, normalize_package


def test_canonicalize(console: Console) -> None:
    for name, expected in (
        ('serde', 'serde'),
        ('serde-json', 'serde_json'),
        ('serde_json', 'serde_json'),
        ('Inflector', 'inflector'),
        ('foo--bar_-baz', 'foo_bar_baz'),
    ):
        console.assert_eq(canonicalize(name), expected)
    console.assert_eq(canonicalize('serde_json', '-'), 'serde-json')


def test_normalize_package(console: Console) -> None:
    console.assert_eq(normalize_package('serde-json'), 'test/serde_json')
    console.assert_eq(normalize_package('Serde', 'cargo:'), 'cargo:serde')
    console.assert_eq(normalize_package('rand', ''), 'rand')


def test_index_prefix(console: Console) -> None:
    for name, expected in (
        ('a', '1/a'),
        ('cc', '2/cc'),
        ('Syn', '3/s/syn'),
        ('serde', 'se/rd/serde'),
        ('rand', 'ra/nd/rand'),
    ):
        console.assert_eq(index_prefix(name), expected)
    console.assert_raises(ValueError, index_prefix, '')
