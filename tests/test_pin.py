"""burnbox pin hashing tests."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from burnbox.pin import PinHasher

# cheap parameters, the tests only care about behaviour
hasher = PinHasher(time_cost=1, memory_cost=1024, parallelism=1)


def test_hash_and_verify():
    h = hasher.hash("12345")
    assert h.startswith("$argon2id$")
    assert "12345" not in h
    assert hasher.verify(h, "12345")


def test_verify_wrong_pin():
    h = hasher.hash("12345")
    assert not hasher.verify(h, "12346")
    assert not hasher.verify(h, "")


def test_hash_is_salted():
    """Same pin, different hashes, both verify."""
    h1 = hasher.hash("12345")
    h2 = hasher.hash("12345")
    assert h1 != h2
    assert hasher.verify(h1, "12345")
    assert hasher.verify(h2, "12345")


def test_verify_garbage_hash():
    for bad in ("", "not a hash", "$argon2id$v=19$m=1024,t=1,p=1$broken"):
        assert not hasher.verify(bad, "12345")


def test_verify_across_cost_settings():
    """Parameters travel inside the hash, any hasher can verify it."""
    h = PinHasher(time_cost=2, memory_cost=2048).hash("pin")
    assert hasher.verify(h, "pin")


def test_default_hasher():
    h = PinHasher().hash("98765")
    assert PinHasher().verify(h, "98765")


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

    print(f"\n--- pin tests: {passed} passed, {failed} failed ---")
    return failed == 0


if __name__ == "__main__":
    sys.exit(0 if run_all() else 1)
