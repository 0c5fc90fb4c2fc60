import re


__all__ = ('canonicalize', 'index_prefix', 'normalize_package', 'NAMESPACE')


NAMESPACE = 'test/'

_DASHING = re.compile(r'[-_.]+')


def canonicalize(name: str, separator: str = '_') -> str:
    """Canonicalize the crate name."""
    return _DASHING.sub(separator, name).lower()


def normalize_package(name: str, namespace: str = NAMESPACE) -> str:
    """Turn a crate name into the resolver's namespaced package name."""
    return namespace + canonicalize(name)


def index_prefix(name: str) -> str:
    """
    Determine the path of a crate's file within the crates.io index. One- and
    two-letter crates live in directories `1` and `2`, three-letter crates in
    `3/<first letter>`, and all others in directories named after their first
    two and second two letters.
    """
    name = name.lower()
    match len(name):
        case 0:
            raise ValueError('crate name is empty')
        case 1:
            return f'1/{name}'
        case 2:
            return f'2/{name}'
        case 3:
            return f'3/{name[0]}/{name}'
        case _:
            return f'{name[:2]}/{name[2:4]}/{name}'
