"""Unit tests for auth/secret_provider.py -- secret sources and the process cache.

Covers:
- SettingsSecretProvider / FileSecretProvider return bytes or SecretUnavailableError
- CachedSecretProvider fetches once, retries transient failures, and never
  caches a failure or an empty value
- build_secret_provider() honours SECRET_SOURCE
"""

from __future__ import annotations

import pytest
from tenacity import wait_none

from auth.errors import InternalError
from auth.secret_provider import (
    CachedSecretProvider,
    FileSecretProvider,
    SecretProvider,
    SecretUnavailableError,
    SettingsSecretProvider,
    build_secret_provider,
)
from core.config import Settings


class FlakyProvider(SecretProvider):
    """Fails `failures` times, then returns `value`. Counts calls."""

    def __init__(self, failures: int, value: bytes = b"s3cret") -> None:
        self.failures = failures
        self.value = value
        self.calls = 0

    def get_signing_secret(self, name: str) -> bytes:
        self.calls += 1
        if self.calls <= self.failures:
            raise SecretUnavailableError("backend down")
        return self.value


class TestSettingsSecretProvider:
    def test_returns_encoded_key(self):
        assert SettingsSecretProvider("k" * 32).get_signing_secret("any") == b"k" * 32

    def test_empty_key_unavailable(self):
        with pytest.raises(SecretUnavailableError):
            SettingsSecretProvider("").get_signing_secret("any")


class TestFileSecretProvider:
    def test_reads_and_strips_trailing_newline(self, tmp_path):
        (tmp_path / "jwt-signing-secret").write_bytes(b"file-secret-value\n")
        provider = FileSecretProvider(tmp_path)
        assert provider.get_signing_secret("jwt-signing-secret") == b"file-secret-value"

    def test_missing_file(self, tmp_path):
        with pytest.raises(SecretUnavailableError):
            FileSecretProvider(tmp_path).get_signing_secret("absent")

    def test_empty_file(self, tmp_path):
        (tmp_path / "blank").write_bytes(b"\n")
        with pytest.raises(SecretUnavailableError):
            FileSecretProvider(tmp_path).get_signing_secret("blank")

    @pytest.mark.parametrize("name", ["", "..", "../etc/passwd", "a/b"])
    def test_rejects_path_like_names(self, tmp_path, name):
        with pytest.raises(SecretUnavailableError):
            FileSecretProvider(tmp_path).get_signing_secret(name)


class TestCachedSecretProvider:
    def test_fetches_once(self):
        inner = FlakyProvider(failures=0)
        cached = CachedSecretProvider(inner, wait=wait_none())
        assert cached.get_signing_secret("jwt") == b"s3cret"
        assert cached.get_signing_secret("jwt") == b"s3cret"
        assert inner.calls == 1

    def test_retries_transient_failures(self):
        inner = FlakyProvider(failures=2)
        cached = CachedSecretProvider(inner, attempts=3, wait=wait_none())
        assert cached.get_signing_secret("jwt") == b"s3cret"
        assert inner.calls == 3

    def test_exhausted_attempts_raise_internal_error_and_cache_nothing(self):
        inner = FlakyProvider(failures=3)
        cached = CachedSecretProvider(inner, attempts=3, wait=wait_none())
        with pytest.raises(InternalError) as exc_info:
            cached.get_signing_secret("jwt")
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Internal server error"

        # The source recovered; the next request fetches again instead of
        # seeing a poisoned cache.
        assert cached.get_signing_secret("jwt") == b"s3cret"
        assert inner.calls == 4

    def test_empty_value_not_cached(self):
        inner = FlakyProvider(failures=0, value=b"")
        cached = CachedSecretProvider(inner, wait=wait_none())
        with pytest.raises(InternalError):
            cached.get_signing_secret("jwt")
        inner.value = b"now-set"
        assert cached.get_signing_secret("jwt") == b"now-set"

    def test_clear_forces_refetch(self):
        inner = FlakyProvider(failures=0)
        cached = CachedSecretProvider(inner, wait=wait_none())
        cached.get_signing_secret("jwt")
        cached.clear()
        cached.get_signing_secret("jwt")
        assert inner.calls == 2


class TestBuildSecretProvider:
    def test_settings_source(self):
        settings = Settings(secret_key="k" * 40, secret_source="settings")
        provider = build_secret_provider(settings)
        assert provider.get_signing_secret(settings.secret_name) == b"k" * 40

    def test_file_source(self, tmp_path):
        (tmp_path / "jwt-signing-secret").write_text("from-file-secret")
        settings = Settings(secret_source="file", secrets_dir=str(tmp_path))
        provider = build_secret_provider(settings)
        assert provider.get_signing_secret("jwt-signing-secret") == b"from-file-secret"
