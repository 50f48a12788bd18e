"""
Configuration partagée pour tous les tests.
Override les dépendances get_db et get_scan_processor pour éviter toute
connexion réelle à PostgreSQL ou au lecteur RFID.
"""

import os

os.environ.setdefault("RFID_READER_ENABLED", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

from pointage.database import get_db  # noqa: E402
from pointage.main import app  # noqa: E402
from pointage.services.scan_service import ScanProcessor, get_scan_processor  # noqa: E402


@pytest.fixture
def processor():
    """ScanProcessor mocké (invalidations de cache, état du scanner)."""
    return MagicMock(spec=ScanProcessor)


@pytest.fixture
def client(processor):
    """Client HTTP de test avec la BDD et le ScanProcessor mockés."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_scan_processor] = lambda: processor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
