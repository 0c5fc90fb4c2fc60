#!.venv/bin/python

# mypy: disallow_any_expr = false

from dataclasses import dataclass
from importlib import import_module
import json
from pathlib import Path
import subprocess
import shutil
import sys
import tomllib

from test.console import Console


# ======================================================================================


@dataclass
class Options:
    test_runner: str
    console: Console
    module_name: str = ''
    verbose: bool = False

    def make_verbose(self) -> None:
        self.verbose = True
        self.console.verbose = True

    def test_command(self) -> list[str]:
        command = [sys.executable, self.test_runner]
        if self.verbose:
            command.append('-v')
        return command


def run_tests(options: Options) -> int:
    console = options.console
    console.info("Getting started with cargo-import's test suite...")
    console.detail(f'Running "{sys.executable}"')
    console.detail(f' - Python {sys.version}')

    try:
        import cargoimport
    except ImportError:
        console.error('Unable to import cargoimport')
        sys.exit(1)

    console.detail(f'Testing cargoimport {cargoimport.__version__}')

    cwd = Path('.').absolute()
    tmpdir = cwd / 'tmp'

    shutil.rmtree(tmpdir, ignore_errors=True)
    tmpdir.mkdir()

    # ----------------------------------------------------------------------------------

    console.info('Running unit tests...')

    for module in (
        'test.crates_name',
        'test.crates_version',
        'test.crates_requirement',
        'test.crates_index',
        'test.cargoimport_main',
    ):
        console.detail(f'╭──── {module}')
        subprocess.run([*options.test_command(), 'run-test-module', module], check=True)
        console.detail('╰─╼')

    # ----------------------------------------------------------------------------------

    console.info('Checking pyproject.toml...')
    with open(cwd / 'pyproject.toml', mode='rb') as file:
        project = tomllib.load(file)['project']
    for key, expected in (
        ('name', 'cargo-import'),
        ('version', cargoimport.__version__),
        ('requires-python', '>=3.11.4'),
        ('dependencies', ['msgpack>=1.0', 'requests>=2.28']),
    ):
        actual = project[key]
        message = f'project.{key} is {actual} instead of {expected}'
        assert actual == expected, message

    # ----------------------------------------------------------------------------------

    console.info('Converting the fixture index as JSON and MessagePack...')
    index = cwd / 'test' / 'fixtures' / 'index'

    for filename, format in (
        ('registry1.json', ['--json']),
        ('registry2.json', ['--json', '--jobs', '4']),
        ('registry.msgpack', []),
    ):
        subprocess.run([
                sys.executable,
                '-m', 'cargoimport',
                *format,
                '--no-fetch',
                '-i', str(index),
                '-o', str(tmpdir / filename),
            ],
            check=True
        )
        console.detail(f'Created tmp/{filename}')

    # ----------------------------------------------------------------------------------

    console.info('Comparing registries to expected registry...')
    import msgpack

    expected = json.loads((cwd / 'test' / 'fixtures' / 'registry.json').read_bytes())
    registries = [
        json.loads((tmpdir / 'registry1.json').read_bytes()),
        json.loads((tmpdir / 'registry2.json').read_bytes()),
        msgpack.unpackb((tmpdir / 'registry.msgpack').read_bytes()),
    ]

    mismatch = False
    for filename, registry in zip(
        ('registry1.json', 'registry2.json', 'registry.msgpack'), registries
    ):
        if registry != expected or list(registry) != list(expected):
            console.detail(f'tmp/{filename} differs from test/fixtures/registry.json')
            mismatch = True
    if (tmpdir / 'registry1.json').read_bytes() != (tmpdir / 'registry2.json').read_bytes():
        console.detail('tmp/registry1.json and tmp/registry2.json differ')
        mismatch = True
    if mismatch:
        console.error('Converting the fixture index yields the wrong registry!')
        sys.exit(1)

    console.detail('All three registries are the same!')

    # ----------------------------------------------------------------------------------

    console.info('Checking exit status for malformed translation...')
    malformed = tmpdir / 'malformed' / '3' / 'f' / 'foo'
    malformed.parent.mkdir(parents=True)
    malformed.write_text(json.dumps({'name': 'foo', 'vers': '1.0.0', 'deps': [
        {'name': 'bar', 'req': '>=1.0 >=1.2 <2.0', 'kind': 'normal', 'optional': False}
    ]}), encoding='utf8')

    completion = subprocess.run([
            sys.executable,
            '-m', 'cargoimport',
            '--no-fetch',
            '-i', str(tmpdir / 'malformed'),
        ],
        capture_output=True,
    )
    if completion.returncode != 3 or completion.stdout != b'':
        console.error(
            f'malformed translation exited with {completion.returncode} '
            f'after writing {len(completion.stdout)} bytes')
        sys.exit(1)
    console.detail('Malformed translation exited with status 3 and no output')

    # ----------------------------------------------------------------------------------

    console.success('W00t! All tests passed!')

    shutil.rmtree(tmpdir)
    return 0

# ======================================================================================

def run_module_test(options: Options) -> int:
    console = options.console
    module = import_module(options.module_name)

    errors = 0
    for key in dir(module):
        if not key.startswith('test_'):
            continue
        value = getattr(module, key)
        if not callable(value):
            continue

        console.detail(f'├─ {value.__name__}')
        with console.new_prefix('│   '):
            try:
                value(options.console)
            except Exception as x:
                console.exception(x)
                errors += 1

    return bool(errors + console.failed_assertions)

# --------------------------------------------------------------------------------------

if __name__ == '__main__':
    options = Options(sys.argv[0], Console(sys.stdout))
    console = options.console

    try:
        fn = run_tests
        for arg in sys.argv[1:]:
            if arg == '-v':
                options.make_verbose()
            elif arg == 'run-test-module':
                fn = run_module_test
            elif fn == run_module_test and options.module_name == '':
                options.module_name = arg
            else:
                raise SystemExit(f'unrecognized command line argument "{arg}"')

        if fn == run_module_test and options.module_name == '':
            raise SystemExit('can\'t "run-test-module" without module name')

        sys.exit(fn(options))

    except SystemExit as x:
        code = x.code
        if isinstance(code, str):
            console.error(code)
            code = 1
        sys.exit(code)

    except subprocess.CalledProcessError as x:
        cmd = list(x.cmd)
        console.info(
            f'command "{" ".join(cmd)}" failed with exit status {x.returncode}')
        sys.exit(1)

    except Exception as x:
        console.exception(x)
        sys.exit(1)
