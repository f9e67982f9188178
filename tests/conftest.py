"""Pytest fixtures for ISS Live history tests."""

from collections.abc import Generator, Sequence
from pathlib import Path

import pytest

from isslive.catalog import Catalog, Descriptor
from isslive.config import Settings
from isslive.db import Database
from isslive.feed.base import FeedUpdate, UpdateHandler
from isslive.store import RetentionStore

PUI_LIST_XML = """<?xml version="1.0" encoding="utf-16"?>
<ISSLivePUIList>
  <Discipline>
    <Name>ETHOS</Name>
    <Symbol>
      <Public_PUI>NODE3000001</Public_PUI>
      <Description>Partial pressure of oxygen</Description>
      <OPS_NOM>ppO2</OPS_NOM>
      <ENG_NOM>Node 3 ppO2</ENG_NOM>
      <UNITS>mmHg</UNITS>
      <MIN>0</MIN>
      <MAX>800</MAX>
      <Format_Spec>%.1f</Format_Spec>
    </Symbol>
    <Symbol>
      <Public_PUI>AIRLOCK000001</Public_PUI>
      <Description>Crewlock pressure</Description>
      <UNITS>mmHg</UNITS>
    </Symbol>
  </Discipline>
  <Discipline>
    <Name>ADCO</Name>
    <Symbol>
      <Public_PUI>USLAB000086</Public_PUI>
      <Description>Attitude control mode</Description>
      <ENUM>0=Default,1=Wait,2=Reserved</ENUM>
    </Symbol>
  </Discipline>
</ISSLivePUIList>
"""


class FakeSubscription:
    def __init__(self, feed: "FakeFeed") -> None:
        self.feed = feed
        self.active = True

    def unsubscribe(self) -> None:
        self.active = False
        self.feed.unsubscribed += 1


class FakeFeed:
    """In-process feed; tests push updates with ``deliver``."""

    def __init__(self) -> None:
        self.items: list[str] = []
        self.fields: list[str] = []
        self.handler: UpdateHandler | None = None
        self.unsubscribed = 0
        self.disconnected = False

    def subscribe(self, items: Sequence[str], fields: Sequence[str], handler: UpdateHandler) -> FakeSubscription:
        self.items = list(items)
        self.fields = list(fields)
        self.handler = handler
        return FakeSubscription(self)

    def deliver(self, item_name: str, **fields: str | None):
        assert self.handler is not None, "not subscribed"
        return self.handler(FeedUpdate(item_name=item_name, fields=fields))

    def disconnect(self) -> None:
        self.disconnected = True


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'data.db'}"


@pytest.fixture
def database(database_url: str) -> Generator[Database, None, None]:
    db = Database(database_url, busy_timeout=10.0)
    db.create_schema()
    yield db
    db.dispose()


@pytest.fixture
def store(database: Database) -> RetentionStore:
    return RetentionStore(database)


@pytest.fixture
def descriptor() -> Descriptor:
    return Descriptor(
        description="Cabin temperature",
        ops_nom="TEMP",
        eng_nom="Cabin Temp 1",
        units="degC",
        min_value="-10",
        max_value="40",
        format_spec="%.1f",
    )


@pytest.fixture
def pui_list_path(tmp_path: Path) -> Path:
    path = tmp_path / "PUIList.xml"
    path.write_text(PUI_LIST_XML, encoding="utf-16-le")
    return path


@pytest.fixture
def catalog(descriptor: Descriptor) -> Catalog:
    return Catalog(items=("TEMP_1", "TEMP_2"), descriptors={"TEMP_1": descriptor}, source="test")


@pytest.fixture
def settings(database_url: str, tmp_path: Path) -> Settings:
    return Settings(
        database_url=database_url,
        catalog_path=str(tmp_path / "missing.xml"),
        feed_enabled=False,
        _env_file=None,
    )


@pytest.fixture
def fake_feed() -> FakeFeed:
    return FakeFeed()
