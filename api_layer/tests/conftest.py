"""
Register pytest plugins, fixtures, and hooks to be used during test execution.

All fixtures are organized in the fixtures/ directory for better maintainability.

Docs: https://stackoverflow.com/questions/34466027/in-pytest-what-is-the-use-of-conftest-py-files
"""

import sys
from pathlib import Path

THIS_DIR = Path(__file__).parent
TESTS_DIR_PARENT = (THIS_DIR / "..").resolve()

# add the parent directory of tests/ to PYTHONPATH
# so that we can use "from tests.<module> import ..." in our tests and fixtures
sys.path.insert(0, str(TESTS_DIR_PARENT))

# Register all fixture modules
pytest_plugins = [
    # Core application fixtures (settings, app, clients, tokens)
    "tests.fixtures.app_fixtures",
    # Repository mocks wired through dependency overrides
    "tests.fixtures.repository_fixtures",
    # In-memory access request store and workflow collaborators
    "tests.fixtures.access_fixtures",
]
