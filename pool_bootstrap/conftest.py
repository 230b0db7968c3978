import sys
from pathlib import Path

pytest_plugins = ["pool_bootstrap.testing.fake_ledger"]

# Make `pool_bootstrap` importable when pytest runs from a checkout.
_repo_root_str = str(Path(__file__).parent.parent)


def pytest_configure(config):
    if _repo_root_str not in sys.path:
        sys.path.insert(0, _repo_root_str)
