from .dependency_graph import ResourceGraph

__all__ = ["ResourceGraph"]
