"""In-memory reference backend serving the Momentum REST surface."""

from .app import create_app
from .repository import DEMO_TEAM, MANAGER_TOKEN, MEMBER_TOKEN, InMemoryBackendRepository, seed_repository

__all__ = [
    "DEMO_TEAM",
    "MANAGER_TOKEN",
    "MEMBER_TOKEN",
    "InMemoryBackendRepository",
    "create_app",
    "seed_repository",
]
