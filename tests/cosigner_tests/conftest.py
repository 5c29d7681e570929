import sys
from pathlib import Path

import pytest

# Ensure the src directory (for `cosigner.*`) and this directory (for the
# in-memory service and builders) are importable before collection runs.
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from fake_service import FakeCoordinationService  # noqa: E402

from cosigner.core.credentials import Credentials  # noqa: E402


@pytest.fixture
def service():
    """A fresh in-memory coordination service"""
    return FakeCoordinationService()


@pytest.fixture
def testnet_credentials():
    return Credentials.create("testnet")


@pytest.fixture
def foreign_xpub():
    """A valid xpub that belongs to nobody in the wallet under test"""
    return Credentials.create("testnet").xpub_key
