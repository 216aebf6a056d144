import sys
import os

# Ensure repo root on sys.path for imports like `app...`, and this directory for `fakes`
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
TESTS_DIR = os.path.abspath(os.path.dirname(__file__))
for path in (ROOT, TESTS_DIR):
    if path not in sys.path:
        sys.path.insert(0, path)

import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"
