"""
Store - Session documents and their push subscriptions.

The store is an external collaborator; these implementations cover
tests, a single-process server and the file-backed admin CLI.
"""

from .base import SessionStore, Subscription
from .memory import InMemorySessionStore
from .file import FileSessionStore

__all__ = [
    "SessionStore",
    "Subscription",
    "InMemorySessionStore",
    "FileSessionStore",
]
