from contextlib import nullcontext
import json
import logging
from pathlib import Path
import sys
from typing import TYPE_CHECKING

import msgpack

from crates.index import (
    build_registry,
    cargo_home_index,
    fetch_snapshot,
    INDEX_DIRECTORY,
    list_index_files,
    Names,
    Registry,
)
from crates.name import NAMESPACE

if TYPE_CHECKING:
    from contextlib import AbstractContextManager
    from typing import Protocol

    class Writable(Protocol):
        def write(self, data: 'bytes | bytearray') -> int:
            ...


logger = logging.getLogger("cargoimport.maker")


class RegistryMaker:
    """
    Class to turn the crates.io index into a registry of packages, versions,
    and dependencies for the resolver's test suite. The registry is written as
    indented JSON or as the more compact MessagePack.
    """

    def __init__(
        self,
        index: 'None | str | Path' = None,
        *,
        cargo_home: 'None | str | Path' = None,
        fetch: bool = True,
        jobs: int = 1,
        as_json: bool = False,
        namespace: str = NAMESPACE,
        normalize: bool = True,
        output: 'None | str | Path' = None,
        strict: bool = False,
        use_cargo_home: bool = False,
    ) -> None:
        self._index = index
        self._cargo_home = cargo_home
        self._use_cargo_home = use_cargo_home or cargo_home is not None
        self._fetch = fetch
        self._jobs = jobs
        self._json = as_json
        self._names = Names(normalize, namespace)
        self._output = output
        self._strict = strict

        self._repr: 'None | str' = None

    def __repr__(self) -> str:
        if self._repr is None:
            source = 'cargo-home' if self._use_cargo_home else self._index
            format = 'json' if self._json else 'msgpack'
            self._repr = f'<cargo-import {source} {format}>'
        return self._repr

    # ----------------------------------------------------------------------------------

    def run(self) -> None:
        registry = self.build()
        data = self.encode(registry)

        # The nullcontext prevents closing of stdout's binary stream when done.
        context: 'AbstractContextManager[Writable]'
        if self._output is None:
            context = nullcontext(sys.stdout.buffer)
        else:
            context = open(self._output, mode='wb')

        with context as stream:
            stream.write(data)

    def build(self) -> Registry:
        files = self.list_files()
        logger.info('found %d index files', len(files))
        return build_registry(files, self._names, strict=self._strict, jobs=self._jobs)

    # ----------------------------------------------------------------------------------

    def list_roots(self) -> 'list[Path]':
        if self._use_cargo_home:
            return cargo_home_index(self._cargo_home)

        index = Path(self._index if self._index is not None else INDEX_DIRECTORY)
        if self._fetch:
            return [fetch_snapshot(index)]
        if not index.is_dir():
            raise FileNotFoundError(f'index directory "{index}" does not exist')
        return [index]

    def list_files(self) -> 'list[Path]':
        files = []
        for root in self.list_roots():
            logger.debug('listing index files in "%s"', root)
            files.extend(list_index_files(root))
        return files

    def encode(self, registry: Registry) -> bytes:
        if self._json:
            return json.dumps(registry, ensure_ascii=False, indent=2).encode('utf8')
        return msgpack.packb(registry, use_bin_type=True)
