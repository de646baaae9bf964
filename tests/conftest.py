"""
pytest configuration for the client test suite.

Adds src directory to Python path for imports and sets up test environment.
"""

import os
import sys
from pathlib import Path

# Set test environment variables BEFORE any imports
os.environ.setdefault("TEST_MODE", "true")

# Keep a developer's real settings out of config tests
for _var in (
    "GAMESERVICES_SUBSCRIPTION_ID",
    "GAMESERVICES_ENDPOINT",
    "GAMESERVICES_CERTIFICATE_PATH",
    "GAMESERVICES_ACCESS_TOKEN",
    "AZURE_TENANT_ID",
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
):
    os.environ.pop(_var, None)

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))
