"""hookauditor - call-order and dependency-closure analysis for hook-based components."""

__version__ = "0.3.0"
