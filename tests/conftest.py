from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pytest

from tests._fixtures.project_builder import ProjectBuilder, petstore


@pytest.fixture
def project(tmp_path: Path) -> ProjectBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return ProjectBuilder(tmp_path)


@pytest.fixture
def petstore_document() -> Dict[str, Any]:
    return petstore()
