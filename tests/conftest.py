from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from SimklConfig import SimklConfigStore  # noqa: E402


class FakeClock:
    """Manual clock. wait() advances it instead of sleeping."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.waits: list[float] = []
        self.cancel_on_wait: int | None = None

    def __call__(self) -> float:
        return self.now

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        if self.cancel_on_wait is not None and len(self.waits) >= self.cancel_on_wait:
            return True
        self.now += seconds
        return False


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "simkl" / "config.json"


@pytest.fixture()
def store(config_path: Path) -> SimklConfigStore:
    return SimklConfigStore(str(config_path))


@pytest.fixture()
def authed_store(store: SimklConfigStore) -> SimklConfigStore:
    store.setClientId("client-123")
    store.setAccessToken("token-abc")
    return store


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
