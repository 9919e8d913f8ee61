import json
from pathlib import Path

import pytest

from dbport.models.config import PortConfig
from dbport.orchestrator import DatabaseService
from dbport.services.exporter import Exporter
from dbport.services.importer import Importer
from dbport.services.schema_registry import SchemaRegistry
from dbport.storage.memory import MemoryDataset

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name):
    with open(FIXTURES_DIR / name) as f:
        return json.load(f)


@pytest.fixture(scope="session")
def registry():
    return SchemaRegistry()


@pytest.fixture
def dataset(registry):
    return MemoryDataset.from_registry(registry)


@pytest.fixture
def importer(registry, dataset):
    return Importer(registry, dataset, batch_size=3)


@pytest.fixture
def exporter(registry, dataset):
    return Exporter(registry, dataset)


@pytest.fixture
def seeded(importer):
    """Dataset populated from the 4.x fixture."""
    importer.import_document(load_fixture("v4_export.json"))
    return importer.dataset


@pytest.fixture
def config(tmp_path):
    return PortConfig(backup_dir=str(tmp_path / "backups"), site_slug="fixture-site", batch_size=5)


@pytest.fixture
def service(config):
    return DatabaseService(config)


@pytest.fixture
def fixture_doc():
    """Loader for JSON export fixtures by filename."""
    return load_fixture
