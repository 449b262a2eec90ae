from .graph import GraphSearch
from .hybrid import HybridSearch
from .merge import fuse_results
from .semantic import SemanticSearch, ToolCaller

__all__ = [
    "GraphSearch",
    "HybridSearch",
    "SemanticSearch",
    "ToolCaller",
    "fuse_results",
]
