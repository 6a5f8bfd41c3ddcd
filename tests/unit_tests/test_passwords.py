"""Tests for bcrypt password hashing."""

import pytest

from billing_auth.errors import ValidationError


async def test_hash_and_verify(hasher):
    hashed = await hasher.hash("secret1")
    assert hashed.startswith("$2")
    assert await hasher.verify("secret1", hashed)
    assert not await hasher.verify("secret2", hashed)


async def test_hashes_are_salted(hasher):
    assert await hasher.hash("secret1") != await hasher.hash("secret1")


async def test_malformed_hash_does_not_verify(hasher):
    assert not await hasher.verify("secret1", "not-a-bcrypt-hash")


async def test_overlong_password_rejected(hasher):
    with pytest.raises(ValidationError):
        await hasher.hash("é" * 40)


async def test_burn_returns_nothing(hasher):
    assert await hasher.burn("anything") is None
