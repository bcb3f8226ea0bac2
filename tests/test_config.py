"""burnbox configuration and CLI tests."""

import contextlib
import io
import os
import sys
import tempfile

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import cli
from burnbox import Config, MessageProc, parse_duration
from burnbox.store import InMemory, SQLite

SIGN_KEY = "a very long and secret server key"


# ==========================================================================
# Durations
# ==========================================================================

def test_parse_duration_units():
    assert parse_duration("90") == 90.0
    assert parse_duration("45s") == 45.0
    assert parse_duration("30m") == 1800.0
    assert parse_duration("24h") == 86400.0
    assert parse_duration("7d") == 7 * 86400.0
    assert parse_duration("1.5h") == 5400.0
    assert parse_duration(" 2H ") == 7200.0


def test_parse_duration_numbers_pass_through():
    assert parse_duration(12) == 12.0
    assert parse_duration(0.5) == 0.5


def test_parse_duration_rejects_garbage():
    for bad in ("", "h", "ten minutes", "-5m", "5w", "1h30m"):
        try:
            parse_duration(bad)
            assert False, f"Should have raised for {bad!r}"
        except ValueError:
            pass


# ==========================================================================
# Config
# ==========================================================================

def test_defaults():
    cfg = Config()
    assert cfg.pin_size == 5
    assert cfg.engine == 'SQLITE'
    assert cfg.max_expire == 24 * 3600
    assert cfg.pin_attempts == 3
    assert cfg.max_file_size == 1024 * 1024
    assert not cfg.debug


def test_from_env():
    cfg = Config.from_env({
        'BURNBOX_SIGN_KEY': SIGN_KEY,
        'BURNBOX_PIN_SIZE': '6',
        'BURNBOX_ENGINE': 'lmdb',
        'BURNBOX_DB': '/tmp/x.lmdb',
        'BURNBOX_MAX_EXPIRE': '2d',
        'BURNBOX_PIN_ATTEMPTS': '5',
        'BURNBOX_MAX_SIZE': '2048',
        'BURNBOX_CLEANUP': '30s',
        'BURNBOX_DEBUG': 'true',
        'UNRELATED': 'ignored',
    })
    assert cfg.sign_key == SIGN_KEY
    assert cfg.pin_size == 6
    assert cfg.engine == 'LMDB'
    assert cfg.db == '/tmp/x.lmdb'
    assert cfg.max_expire == 2 * 86400
    assert cfg.pin_attempts == 5
    assert cfg.max_file_size == 2048
    assert cfg.cleanup_interval == 30
    assert cfg.debug


def test_from_env_empty_keeps_defaults():
    cfg = Config.from_env({})
    assert cfg == Config()


def test_validate():
    Config(sign_key=SIGN_KEY).validate()

    bad = [
        Config(),
        Config(sign_key=SIGN_KEY, pin_size=0),
        Config(sign_key=SIGN_KEY, pin_size=32),
        Config(sign_key=SIGN_KEY, pin_attempts=0),
        Config(sign_key=SIGN_KEY, cleanup_interval=0),
    ]
    for cfg in bad:
        try:
            cfg.validate()
            assert False, f"Should have raised for {cfg}"
        except ValueError:
            pass


def test_params_from_config():
    params = Config(max_expire=60, pin_attempts=7, max_file_size=10).params()
    assert params.max_duration == 60
    assert params.max_pin_attempts == 7
    assert params.max_file_size == 10


def test_build_processor():
    engine = InMemory(60)
    try:
        cfg = Config(sign_key=SIGN_KEY, pin_size=4)
        proc = cfg.build_processor(engine)
        assert isinstance(proc, MessageProc)
        assert proc.engine is engine

        msg = proc.make_message(60, "hi", "1234")
        assert proc.load_message(msg.key, "1234").data == b"hi"
    finally:
        engine.close()


def test_build_processor_validates():
    try:
        Config().build_processor(InMemory(60))
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


def test_build_engine():
    with tempfile.TemporaryDirectory() as tmpdir:
        cfg = Config(engine='SQLITE', db=os.path.join(tmpdir, 'b.db'))
        engine = cfg.build_engine()
        try:
            assert isinstance(engine, SQLite)
        finally:
            engine.close()


# ==========================================================================
# CLI
# ==========================================================================

def run_cli(*argv):
    out, err = io.StringIO(), io.StringIO()
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
        code = cli.main(list(argv))
    return code, out.getvalue(), err.getvalue()


def test_cli_create_and_read_once():
    with tempfile.TemporaryDirectory() as tmpdir:
        common = ['--engine', 'SQLITE', '--db', os.path.join(tmpdir, 'cli.db'),
                  '--sign-key', SIGN_KEY]

        code, out, _ = run_cli(*common, 'create', '--message', 'abc', '--pin', '12345')
        assert code == 0
        keys = [line.split()[1] for line in out.splitlines() if line.startswith('Key:')]
        assert len(keys) == 1
        key = keys[0]

        code, out, _ = run_cli(*common, 'is-file', key)
        assert code == 1
        assert 'text or missing' in out

        code, _, err = run_cli(*common, 'read', key, '--pin', '00000')
        assert code == 1
        assert 'attempt(s) left' in err

        code, out, _ = run_cli(*common, 'read', key, '--pin', '12345')
        assert code == 0
        assert out.strip() == 'abc'

        code, _, err = run_cli(*common, 'read', key, '--pin', '12345')
        assert code == 1
        assert 'Error' in err


def test_cli_file_round_trip():
    with tempfile.TemporaryDirectory() as tmpdir:
        common = ['--engine', 'SQLITE', '--db', os.path.join(tmpdir, 'cli.db'),
                  '--sign-key', SIGN_KEY]
        src = os.path.join(tmpdir, 'notes.txt')
        with open(src, 'wb') as f:
            f.write(b'line one\nline two\n')

        code, out, _ = run_cli(*common, 'create', '--file', src, '--pin', '12345')
        assert code == 0
        assert 'text/plain' in out
        key = [line.split()[1] for line in out.splitlines() if line.startswith('Key:')][0]

        code, out, _ = run_cli(*common, 'is-file', key)
        assert code == 0
        assert out.strip() == 'file'

        dest = os.path.join(tmpdir, 'out.txt')
        code, out, _ = run_cli(*common, 'read', key, '--pin', '12345', '--output', dest)
        assert code == 0
        with open(dest, 'rb') as f:
            assert f.read() == b'line one\nline two\n'


def test_cli_requires_sign_key():
    os.environ.pop('BURNBOX_SIGN_KEY', None)
    code, _, err = run_cli('--engine', 'MEMORY', 'is-file', 'abc')
    assert code == 1
    assert 'sign key' in err


def test_cli_rejects_bad_duration():
    code, _, err = run_cli('--engine', 'MEMORY', '--sign-key', SIGN_KEY,
                           'create', '--message', 'x', '--pin', '12345',
                           '--expire', 'soon')
    assert code == 1
    assert 'duration' in err


# ==========================================================================
# Runner
# ==========================================================================

def run_all():
    tests = [v for k, v in sorted(globals().items()) if k.startswith('test_')]
    passed = 0
    failed = 0
    for t in tests:
        try:
            t()
            print(f"[PASS] {t.__name__}")
            passed += 1
        except Exception as e:
            print(f"[FAIL] {t.__name__}: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print(f"\n--- config tests: {passed} passed, {failed} failed ---")
    return failed == 0


if __name__ == "__main__":
    sys.exit(0 if run_all() else 1)
