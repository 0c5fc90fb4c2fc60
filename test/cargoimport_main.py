import json
import tomllib
from pathlib import Path
from tempfile import TemporaryDirectory

import msgpack

from .console import Console
import cargoimport
from cargoimport.__main__ import EXIT_MALFORMED_RANGE, main
from cargoimport.maker import RegistryMaker
from crates.name import index_prefix


FIXTURES = Path(__file__).parent / 'fixtures'
INDEX = str(FIXTURES / 'index')


def expected_registry() -> dict[str, object]:
    return json.loads((FIXTURES / 'registry.json').read_text(encoding='utf8'))


def write_crate(root: Path, record: dict[str, object]) -> None:
    path = root / index_prefix(str(record['name']))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(record) + '\n', encoding='utf8')


def test_json_output(console: Console) -> None:
    with TemporaryDirectory() as tmp:
        output = Path(tmp) / 'registry.json'
        console.assert_eq(main(['--json', '-i', INDEX, '-o', str(output)]), 0)
        data = output.read_bytes()
        console.assert_eq(json.loads(data), expected_registry())
        console.assert_op('contains', data.decode('utf8'), '\n  "test/a": {\n')

        # Output is reproducible byte for byte, also when reading concurrently.
        again = Path(tmp) / 'again.json'
        console.assert_eq(
            main(['--json', '-j', '3', '-i', INDEX, '-o', str(again)]), 0)
        console.assert_eq(again.read_bytes(), data)


def test_msgpack_output(console: Console) -> None:
    with TemporaryDirectory() as tmp:
        output = Path(tmp) / 'registry.msgpack'
        console.assert_eq(main(['-i', INDEX, '-o', str(output)]), 0)
        registry = msgpack.unpackb(output.read_bytes(), raw=False)
        console.assert_eq(registry, expected_registry())


def test_raw_names(console: Console) -> None:
    with TemporaryDirectory() as tmp:
        output = Path(tmp) / 'registry.json'
        console.assert_eq(
            main(['--json', '--raw-names', '-i', INDEX, '-o', str(output)]), 0)
        registry = json.loads(output.read_bytes())
        console.assert_eq(registry['foo'], {
            '1.0.0': {'bar': '>= 1.2.3 < 1.5.0'},
            '1.1.0': {'bar': '1.4.0'},
        })
        console.assert_eq(registry['serde_json']['1.0.2']['foo-bar'], '^0.3')


def test_cargo_home(console: Console) -> None:
    with TemporaryDirectory() as tmp:
        home = Path(tmp) / 'cargo'
        registry = home / 'registry' / 'index' / 'github.com-1ecc6299db9ec823'
        write_crate(registry, {"name": "rand", "vers": "0.3.15", "deps": [
            {"name": "libc", "req": "^0.2.1", "kind": "normal", "optional": False},
        ]})
        output = Path(tmp) / 'registry.json'
        console.assert_eq(
            main(['--json', '--cargo-home', str(home), '-o', str(output)]), 0)
        console.assert_eq(json.loads(output.read_bytes()), {
            "test/rand": {"0.3.15": {"test/libc": "^0.2.1"}},
        })

        maker = RegistryMaker(cargo_home=home)
        console.assert_eq(maker.list_roots(), [registry])
        console.assert_eq(repr(maker), '<cargo-import cargo-home msgpack>')


def test_errors(console: Console) -> None:
    with TemporaryDirectory() as tmp:
        root = Path(tmp) / 'index'
        output = Path(tmp) / 'registry.json'

        console.assert_eq(main(['--no-fetch', '-i', str(root), '-o', str(output)]), 1)
        console.assert_eq(main(['--cargo-home', '-i', INDEX, '-o', str(output)]), 1)
        console.assert_eq(main(['-j', '0', '-i', INDEX, '-o', str(output)]), 1)

        write_crate(root, {"name": "foo", "vers": "1.0.0", "deps": [
            {"name": "bar", "req": "<= 3.0", "kind": "normal", "optional": False},
        ]})
        console.assert_eq(main(['--json', '-i', str(root), '-o', str(output)]), 0)
        console.assert_eq(
            json.loads(output.read_bytes()), {"test/foo": {"1.0.0": {"test/bar": "<= 3.0"}}})
        console.assert_eq(
            main(['--strict', '-i', str(root), '-o', str(Path(tmp) / 'strict')]), 1)
        console.assert_op(Path.exists, Path(tmp) / 'strict', expected=False)

        write_crate(root, {"name": "foo", "vers": "1.0.0", "deps": [
            {"name": "bar", "req": ">=1.0 >=1.2 <2.0", "kind": "normal", "optional": False},
        ]})
        console.assert_eq(
            main(['-i', str(root), '-o', str(Path(tmp) / 'malformed')]),
            EXIT_MALFORMED_RANGE,
        )
        console.assert_op(Path.exists, Path(tmp) / 'malformed', expected=False)

        (root / '3' / 'f' / 'foo').write_text('{"name": "foo"\n', encoding='utf8')
        console.assert_eq(main(['-i', str(root), '-o', str(output)]), 1)


def test_version(console: Console) -> None:
    with open(Path(__file__).parent.parent / 'pyproject.toml', mode='rb') as file:
        project = tomllib.load(file)['project']
    console.assert_eq(project['version'], cargoimport.__version__)
    console.assert_eq(project['requires-python'], '>=3.11.4')
