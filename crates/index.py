"""
Support for reading the [crates.io index](https://github.com/rust-lang/crates.io-index)
into a registry for the resolver's test suite.

The index is a git repository with one file per crate. Each line of a file is
a JSON object describing one published version, including its dependencies.
Crates with one- and two-letter names live in directories `1` and `2`,
three-letter crates in `3/<first letter>`, and all other crates in two levels
of directories named after the first four letters. The index's root also holds
a `config.json`, which does not describe a crate.

The registry maps package names to versions to dependency maps, i.e., to the
packages depended upon and their desugared version requirements. Only normal,
non-optional dependencies make it into the registry. Dev- and
build-dependencies as well as optional, feature-gated dependencies are dropped.
"""

from collections.abc import Iterable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
import json
import logging
import os
from pathlib import Path
import tarfile
from tempfile import TemporaryDirectory
from typing import NotRequired, TypedDict, TypeAlias

import requests

from .name import index_prefix, normalize_package, NAMESPACE
from .requirement import check_desugared, desugar, is_target_range
from .version import strip_build_metadata


__all__ = (
    'build_dependency_map',
    'build_registry',
    'cargo_home_index',
    'fetch_snapshot',
    'IndexFormatError',
    'list_index_files',
    'merge_registries',
    'Names',
    'read_index_file',
    'Registry',
)

logger = logging.getLogger("crates.index")


INDEX_COMMIT = "cb69ec98b649c4f57e48cb34c086ef150910f16a"
INDEX_DIRECTORY = f"crates.io-index-{INDEX_COMMIT}"
INDEX_ARCHIVE = "https://github.com/rust-lang/crates.io-index/archive/{commit}.tar.gz"

HEADERS = {
    "user-agent": "cargo-import (resolver test fixtures)",
}

INDEX_CONFIG = "config.json"

# --------------------------------------------------------------------------------------


class Dependency(TypedDict):
    name: str
    req: str
    kind: NotRequired[None | str]
    optional: NotRequired[bool]
    package: NotRequired[str]


class IndexRecord(TypedDict):
    name: str
    vers: str
    deps: list[Dependency]


DependencyMap: TypeAlias = dict[str, str]
VersionTable: TypeAlias = dict[str, DependencyMap]
Registry: TypeAlias = dict[str, VersionTable]


class IndexFormatError(ValueError):
    """A line in an index file that is not a well-formed version record."""

    def __init__(self, path: str | Path, line: int, message: str) -> None:
        super().__init__(f'{path}:{line}: {message}')
        self.path = path
        self.line = line


class Names:
    """The normalization of crate names into registry keys."""

    __slots__ = ('_namespace', '_normalize')

    def __init__(self, normalize: bool = True, namespace: str = NAMESPACE) -> None:
        self._normalize = normalize
        self._namespace = namespace

    def __call__(self, name: str) -> str:
        if not self._normalize:
            return name
        return normalize_package(name, self._namespace)

    def __repr__(self) -> str:
        if not self._normalize:
            return 'Names(raw)'
        return f'Names({self._namespace!r})'


# --------------------------------------------------------------------------------------


def fetch_snapshot(
    directory: None | str | Path = None,
    *,
    commit: str = INDEX_COMMIT,
    url: str = INDEX_ARCHIVE,
) -> Path:
    """
    Make sure that a snapshot of the index exists. If the directory does not
    exist, download the index's archive for the given commit and extract it
    into a temporary directory next to the directory. GitHub's archives contain
    a single top-level directory named after the repository and commit, which
    must match the directory's name. Only a completely extracted snapshot is
    moved into place, so that a failed download leaves nothing behind.
    """
    if directory is None:
        directory = f"crates.io-index-{commit}"
    directory = Path(directory)
    if directory.exists():
        logger.debug('using existing index snapshot "%s"', directory)
        return directory

    archive_url = url.format(commit=commit)
    logger.info('fetching index snapshot from "%s"', archive_url)
    directory.parent.mkdir(parents=True, exist_ok=True)

    with (
        requests.get(archive_url, headers=HEADERS, stream=True) as response,
        TemporaryDirectory(prefix='.', dir=directory.parent) as tmp,
    ):
        response.raise_for_status()
        response.raw.decode_content = True
        with tarfile.open(fileobj=response.raw, mode="r|gz") as archive:
            archive.extractall(tmp, filter="data")

        extracted = Path(tmp) / directory.name
        if not extracted.is_dir():
            raise FileNotFoundError(
                f'index archive for commit {commit} did not contain "{directory.name}"')
        os.replace(extracted, directory)

    return directory


def cargo_home_index(cargo_home: None | str | Path = None) -> list[Path]:
    """
    Locate the index checkouts in Cargo's local cache. Cargo keeps one
    directory per registry under `registry/index` in `$CARGO_HOME`, which
    defaults to `~/.cargo`.
    """
    if cargo_home is None:
        cargo_home = os.environ.get("CARGO_HOME") or Path.home() / ".cargo"
    root = Path(cargo_home).expanduser() / "registry" / "index"
    if not root.is_dir():
        raise FileNotFoundError(f'no registry index in "{root}"')

    registries = sorted(p for p in root.iterdir() if p.is_dir())
    if len(registries) == 0:
        raise FileNotFoundError(f'no registry index in "{root}"')
    return registries


def list_index_files(root: str | Path) -> list[Path]:
    """
    List the crate files of the index rooted at the given directory. A file
    only counts as a crate file if its path matches the index layout for its
    name, which excludes the index's `config.json` as well as any stray files.
    The result is sorted by relative path, which keeps the registry
    reproducible.
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f'index directory "{root}" does not exist')

    files = []
    pending = [root]
    while pending:
        directory = pending.pop()
        for item in directory.iterdir():
            if item.name.startswith('.'):
                continue
            if item.is_dir():
                pending.append(item)
            elif item.is_file():
                if item.relative_to(root).as_posix().lower() == index_prefix(item.name):
                    files.append(item)
                elif not (directory == root and item.name == INDEX_CONFIG):
                    logger.debug('skipping "%s", which is not a crate file', item)

    files.sort(key=lambda p: p.relative_to(root).as_posix())
    return files


# --------------------------------------------------------------------------------------


def parse_records(path: str | Path, lines: Iterable[str]) -> Iterator[IndexRecord]:
    """Parse the non-blank lines of an index file."""
    for number, line in enumerate(lines, start=1):
        if line.strip() == '':
            continue

        try:
            record = json.loads(line)
        except json.JSONDecodeError as x:
            raise IndexFormatError(path, number, f'invalid JSON ({x})') from x

        if not isinstance(record, dict):
            raise IndexFormatError(path, number, 'record is not an object')
        for key in ('name', 'vers', 'deps'):
            if key not in record:
                raise IndexFormatError(path, number, f'record has no "{key}"')
        yield record  # type: ignore[misc]


def is_required(dependency: Dependency) -> bool:
    """Determine whether the dependency is a normal, non-optional one."""
    return (
        (dependency.get('kind') or 'normal') == 'normal'
        and not dependency.get('optional', False)
    )


def build_dependency_map(
    deps: Iterable[Dependency], names: Names, *, strict: bool = False
) -> DependencyMap:
    """
    Build the dependency map for one version. A renamed dependency names the
    actual crate in its `package` field. Every translated requirement is
    checked for the malformed double lower bound before it is recorded.
    """
    dependencies: DependencyMap = {}
    for dependency in deps:
        if not is_required(dependency):
            continue

        # With a `package` field, the index's `name` is only the local alias.
        name = dependency.get('package') or dependency['name']
        requirement = dependency['req']
        desugared = check_desugared(requirement, desugar(requirement, strict=strict))
        if desugared == requirement and not is_target_range(requirement):
            logger.debug('keeping unrecognized requirement "%s" on "%s"',
                requirement, name)
        dependencies[names(name)] = desugared
    return dependencies


def read_index_file(
    path: str | Path, names: None | Names = None, *, strict: bool = False
) -> Registry:
    """Read one index file into a registry."""
    if names is None:
        names = Names()

    logger.debug('reading "%s"', path)
    with open(path, mode='rt', encoding='utf8') as file:
        records = list(parse_records(path, file))

    registry: Registry = {}
    for record in records:
        versions = registry.setdefault(names(record['name']), {})
        version = strip_build_metadata(record['vers'])
        versions[version] = build_dependency_map(record['deps'], names, strict=strict)
    return registry


def merge_registries(partials: Iterable[Registry]) -> Registry:
    """
    Merge the registries in order. A package defined by more than one registry
    takes the versions of the last one only.
    """
    registry: Registry = {}
    for partial in partials:
        for name, versions in partial.items():
            if name in registry:
                logger.warning(
                    'package "%s" appears in more than one index file; '
                    'keeping the later one', name)
            registry[name] = versions
    return registry


def build_registry(
    paths: Sequence[str | Path],
    names: None | Names = None,
    *,
    strict: bool = False,
    jobs: int = 1,
) -> Registry:
    """
    Read the index files into a single registry. With more than one job, files
    are read concurrently, but merged in the given order.
    """
    if names is None:
        names = Names()

    def read(path: str | Path) -> Registry:
        return read_index_file(path, names, strict=strict)

    if jobs <= 1:
        registry = merge_registries(read(p) for p in paths)
    else:
        with ThreadPoolExecutor(max_workers=jobs) as executor:
            registry = merge_registries(executor.map(read, paths))

    logger.info('read %d packages from %d index files', len(registry), len(paths))
    return registry
