__version__ = "0.1.0"

from pool_bootstrap.core import BaseAdapter

__all__ = [
    "__version__",
    "BaseAdapter",
]
