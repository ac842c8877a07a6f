from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

sys.path.append(str(Path(__file__).resolve().parents[1]))

from factories import API_URL

from momentum.application import DomainStore, MomentumService
from momentum.infrastructure import MemoryTokenStore, MomentumApiClient
from momentum.sandbox import MANAGER_TOKEN, InMemoryBackendRepository, create_app, seed_repository

# Wednesday of ISO week 2026-W11.
FIXED_NOW = datetime(2026, 3, 11, 15, 30, tzinfo=timezone.utc)


@pytest.fixture()
def repository() -> InMemoryBackendRepository:
    return seed_repository(InMemoryBackendRepository(clock=lambda: FIXED_NOW))


@pytest.fixture()
def app(repository):
    return create_app(repository)


@pytest.fixture()
def token_store() -> MemoryTokenStore:
    return MemoryTokenStore(MANAGER_TOKEN)


@pytest_asyncio.fixture()
async def api_client(app, token_store):
    http_client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))
    client = MomentumApiClient(API_URL, token_store, http_client=http_client)
    yield client
    await http_client.aclose()


@pytest.fixture()
def store(token_store) -> DomainStore:
    return DomainStore(token_store)


@pytest.fixture()
def service(api_client, store) -> MomentumService:
    return MomentumService(api_client, store)
