"""Downstream helpers that consume a parsed manifest."""

from .fetch import ContentFetcher, resolve

__all__ = ["ContentFetcher", "resolve"]
