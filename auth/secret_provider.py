"""
auth/secret_provider.py -- Signing-secret retrieval with a per-process cache.

The signing secret is the only piece of shared state in the core. It is
fetched once per process from a SecretProvider and reused by every request.

Providers:
  SettingsSecretProvider -- key comes from configuration (SECRET_KEY).
  FileSecretProvider     -- key is read from <secrets_dir>/<name>, the
                            mounted-secret convention of Docker/Kubernetes.

CachedSecretProvider wraps either one:
  - The first successful value for a name is cached for the process lifetime.
  - Transient failures (SecretUnavailableError) are retried with tenacity:
    bounded attempts, exponential backoff, a WARNING log before each sleep.
  - When attempts are exhausted the in-flight request gets InternalError and
    nothing is cached, so the next request tries again from scratch. A
    partial or empty value is never stored.
  - A lock serialises the first fetch so concurrent cold requests do not
    stampede the backing source.

The secret value itself is never logged.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from auth.errors import InternalError
from core.config import Settings

logger = logging.getLogger("authcore.secrets")


class SecretUnavailableError(Exception):
    """The backing source could not produce the secret (missing, empty, unreadable)."""


class SecretProvider:
    """Interface: return the raw signing secret stored under name."""

    def get_signing_secret(self, name: str) -> bytes:
        raise NotImplementedError


class SettingsSecretProvider(SecretProvider):
    """Serve the key configured in Settings.secret_key, whatever name is asked for."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key

    def get_signing_secret(self, name: str) -> bytes:
        if not self._secret_key:
            raise SecretUnavailableError(f"no secret configured for {name!r}")
        return self._secret_key.encode("utf-8")


class FileSecretProvider(SecretProvider):
    """Read <directory>/<name>. Trailing whitespace (the usual final newline) is stripped."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    def get_signing_secret(self, name: str) -> bytes:
        # name is configuration, not user input, but a path separator in it is still a mistake.
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise SecretUnavailableError(f"invalid secret name {name!r}")
        path = self._directory / name
        try:
            value = path.read_bytes().rstrip()
        except OSError as exc:
            raise SecretUnavailableError(f"cannot read {path}: {exc.strerror or exc}") from exc
        if not value:
            raise SecretUnavailableError(f"{path} is empty")
        return value


class CachedSecretProvider(SecretProvider):
    """Fetch-once cache with retry in front of another SecretProvider.

    Usage:
        provider = CachedSecretProvider(FileSecretProvider("/run/secrets"))
        secret = provider.get_signing_secret("jwt-signing-secret")
    """

    def __init__(
        self,
        inner: SecretProvider,
        attempts: int = 3,
        wait=None,
    ) -> None:
        self._inner = inner
        self._attempts = attempts
        self._wait = wait if wait is not None else wait_exponential(multiplier=0.2, min=0.2, max=2)
        self._cache: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get_signing_secret(self, name: str) -> bytes:
        cached = self._cache.get(name)
        if cached is not None:
            return cached

        with self._lock:
            # Another thread may have filled the cache while we waited.
            cached = self._cache.get(name)
            if cached is not None:
                return cached

            value = self._fetch(name)
            self._cache[name] = value
            logger.info("Signing secret %r loaded and cached for the process lifetime", name)
            return value

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def _fetch(self, name: str) -> bytes:
        retrying = Retrying(
            stop=stop_after_attempt(self._attempts),
            wait=self._wait,
            retry=retry_if_exception_type(SecretUnavailableError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            value = retrying(self._inner.get_signing_secret, name)
        except SecretUnavailableError as exc:
            raise InternalError(f"signing secret {name!r} unavailable after {self._attempts} attempts: {exc}") from exc
        if not isinstance(value, bytes) or not value:
            raise InternalError(f"signing secret {name!r} provider returned an empty value")
        return value


def build_secret_provider(settings: Settings) -> CachedSecretProvider:
    """Pick the provider named by SECRET_SOURCE and wrap it in the process cache."""
    if settings.secret_source == "file":
        inner: SecretProvider = FileSecretProvider(settings.secrets_dir)
    else:
        inner = SettingsSecretProvider(settings.secret_key)
    return CachedSecretProvider(inner, attempts=settings.secret_fetch_attempts)
