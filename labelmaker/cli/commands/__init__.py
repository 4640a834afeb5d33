"""CLI command modules."""

from . import hooks, serve

__all__ = ['hooks', 'serve']
