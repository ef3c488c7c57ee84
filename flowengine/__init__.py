"""Flow Engine.

Executes workflow definitions as directed acyclic graphs of nodes.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
