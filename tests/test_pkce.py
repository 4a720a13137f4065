try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import hashlib
import re

import pytest

from tiktok_proxy.services.pkce import (
    generate_code_challenge,
    generate_code_verifier,
    generate_pkce,
)

_UNRESERVED = re.compile(r"^[A-Za-z0-9\-._~]+$")


@pytest.mark.parametrize("length", [43, 64, 128])
def test_verifier_length_and_alphabet(length: int) -> None:
    verifier = generate_code_verifier(length)

    assert len(verifier) == length
    assert _UNRESERVED.match(verifier)


def test_default_verifier_is_64_characters() -> None:
    assert len(generate_pkce().verifier) == 64


@pytest.mark.parametrize("length", [0, 42, 129])
def test_verifier_length_out_of_range_is_rejected(length: int) -> None:
    with pytest.raises(ValueError):
        generate_code_verifier(length)


def test_challenge_is_lowercase_hex_sha256_of_verifier() -> None:
    pair = generate_pkce()

    assert pair.challenge == hashlib.sha256(pair.verifier.encode("utf-8")).hexdigest()
    assert re.fullmatch(r"[0-9a-f]{64}", pair.challenge)
    assert generate_code_challenge(pair.verifier) == pair.challenge


def test_verifiers_are_not_repeated() -> None:
    assert generate_code_verifier() != generate_code_verifier()
