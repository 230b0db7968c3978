from pool_bootstrap.core.adapters.BaseAdapter import BaseAdapter

__all__ = ["BaseAdapter"]
