from pathlib import Path

import pytest

from src.slotsync.auth import hash_password
from src.slotsync.config import SlotSyncConfig
from src.slotsync.service import Reconciler
from src.slotsync.store import EditLinkStore
from tests.fakes import OVERVIEW_URL, PASSWORD, FakeBrowserProvider, FakeSite

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session")
def password_hash() -> str:
    return hash_password(PASSWORD, rounds=4)


@pytest.fixture
def fixture_html():
    def _read(name: str) -> str:
        return (FIXTURES / name).read_text(encoding="utf-8")

    return _read


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def provider(site: FakeSite) -> FakeBrowserProvider:
    return FakeBrowserProvider(site)


@pytest.fixture
def config(tmp_path, password_hash: str) -> SlotSyncConfig:
    return SlotSyncConfig(
        site_url=OVERVIEW_URL,
        password_hash=password_hash,
        edit_link_dir=str(tmp_path / "edit-links"),
        scrape_attempts=2,
        scrape_retry_wait=0,
    )


@pytest.fixture
def store(config: SlotSyncConfig) -> EditLinkStore:
    return EditLinkStore(config.edit_link_dir)


@pytest.fixture
def reconciler(config, provider, store) -> Reconciler:
    return Reconciler(config, provider, store)
