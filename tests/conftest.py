from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from proxytheus.auth.material import OAuthClientCredentialsOptions


class FakeClock:
    """Controllable replacement for ``utc_now``."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr("proxytheus.auth.token_cache.utc_now", fake)
    return fake


@pytest.fixture
def oauth_options() -> OAuthClientCredentialsOptions:
    return OAuthClientCredentialsOptions(
        client_id="proxy-client",
        client_secret="s3cret",
        auth_url="https://idp.test/authorize",
        token_url="https://idp.test/token",
    )
