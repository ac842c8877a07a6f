from __future__ import annotations

import httpx
import pytest
from factories import API_URL

from momentum.application import DomainStore, MomentumService
from momentum.core.schema import BlockerCreate, BlockerQuery, BlockerUpdate, ProfileUpdate
from momentum.domain.state import RequestKind, member_context, my_context, team_context
from momentum.infrastructure import MemoryTokenStore, MomentumApiClient, MomentumTransportError
from momentum.sandbox import MEMBER_TOKEN


@pytest.mark.asyncio
async def test_fetch_profile_populates_session(service):
    result = await service.fetch_profile()

    assert result.ok
    assert service.store.current_user().uid == "u-lead"
    assert service.store.is_manager()
    assert service.store.request_state(RequestKind.SESSION).phase == "fulfilled"


@pytest.mark.asyncio
async def test_unauthorized_call_signs_the_session_out(app):
    tokens = MemoryTokenStore("expired")
    store = DomainStore(tokens)
    http_client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))
    service = MomentumService(MomentumApiClient(API_URL, tokens, http_client=http_client), store)

    result = await service.fetch_profile()
    await http_client.aclose()

    assert not result.ok
    assert result.error == "Failed to fetch profile: invalid token"
    assert tokens.load() is None
    assert store.token() is None
    assert not store.is_authenticated()
    assert store.session_error() == result.error


@pytest.mark.asyncio
async def test_refresh_token_swaps_stored_credentials(service, token_store):
    before = token_store.load()

    result = await service.refresh_token()

    assert result.ok
    assert token_store.load() != before
    assert service.store.token() == token_store.load()
    assert (await service.fetch_profile()).ok


@pytest.mark.asyncio
async def test_update_profile_adopts_user_and_rotated_token(service, token_store):
    await service.fetch_profile()
    before = token_store.load()

    result = await service.update_profile(ProfileUpdate(designation="Director"))

    assert result.ok
    assert service.store.current_user().designation == "Director"
    assert token_store.load() != before
    assert service.store.token() == token_store.load()
    assert service.store.request_state(RequestKind.SESSION).phase == "fulfilled"
    assert (await service.fetch_profile()).payload.designation == "Director"


@pytest.mark.asyncio
async def test_update_profile_needs_a_signed_in_user(service, monkeypatch):
    async def fail(*_args, **_kwargs):
        raise AssertionError("request should not be sent")

    monkeypatch.setattr(service._client, "update_profile", fail)

    result = await service.update_profile(ProfileUpdate(first_name="Ada"))
    assert result.error == "Failed to update profile: sign in before editing the profile"

    await service.fetch_profile()
    empty = await service.update_profile(ProfileUpdate())
    assert empty.error == "Failed to update profile: no profile fields to update"
    assert service.store.session_error() == empty.error
    assert service.store.current_user().first_name == "Ada"


@pytest.mark.asyncio
async def test_team_blockers_and_stats(service):
    page = await service.fetch_team_blockers("core", BlockerQuery(status="Open"))
    stats = await service.fetch_team_stats("core")

    assert page.ok and stats.ok
    assert [b.uid for b in service.store.blockers()] == ["blk-seed-1", "blk-seed-3", "blk-seed-4"]
    assert service.store.blocker_total() == 3
    assert service.store.blocker_stats().total == 5
    assert [point.count for point in service.store.blocker_stats().weekly_trend] == [0, 1, 2, 2]
    assert service.store.request_state(RequestKind.BLOCKERS).phase == "fulfilled"


@pytest.mark.asyncio
async def test_member_cannot_fetch_team_blockers(app):
    tokens = MemoryTokenStore(MEMBER_TOKEN)
    http_client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))
    service = MomentumService(MomentumApiClient(API_URL, tokens, http_client=http_client), DomainStore(tokens))

    result = await service.fetch_team_blockers("core")
    await http_client.aclose()

    assert result.error == "Failed to fetch team blockers: team access requires the team's manager"
    assert service.store.blockers_error() == result.error
    assert service.store.is_authenticated()


@pytest.mark.asyncio
async def test_create_blocker_prepends_to_list(service):
    await service.fetch_my_blockers()
    assert service.store.blocker_total() == 1

    result = await service.create_blocker(BlockerCreate(description="Need a staging slot", category="Resource"))

    assert result.ok
    assert service.store.blockers()[0].description == "Need a staging slot"
    assert service.store.blocker_total() == 2


@pytest.mark.asyncio
async def test_blank_blocker_is_rejected_locally(service, monkeypatch):
    async def fail(*_args, **_kwargs):
        raise AssertionError("request should not be sent")

    monkeypatch.setattr(service._client, "create_blocker", fail)

    result = await service.create_blocker(BlockerCreate(description="  "))

    assert result.error == "Failed to create blocker: description cannot be empty"


@pytest.mark.asyncio
async def test_update_blocker_replaces_cached_copy(service):
    await service.fetch_team_blockers("core")

    result = await service.update_blocker("blk-seed-1", BlockerUpdate(status="Resolved", manager_notes="fixed"))

    assert result.ok
    updated = service.store.find_blocker("blk-seed-1")
    assert updated.status == "Resolved"
    assert updated.manager_notes == "fixed"


@pytest.mark.asyncio
async def test_status_reversal_is_rejected_without_a_request(service, monkeypatch):
    await service.fetch_team_blockers("core")

    async def fail(*_args, **_kwargs):
        raise AssertionError("request should not be sent")

    monkeypatch.setattr(service._client, "update_blocker", fail)

    result = await service.update_blocker("blk-seed-2", BlockerUpdate(status="Open"))

    assert result.error == "Failed to update blocker: cannot move blocker from Resolved to Open"
    assert service.store.find_blocker("blk-seed-2").status == "Resolved"
    assert service.store.request_state(RequestKind.BLOCKER_WRITE).phase == "rejected"


@pytest.mark.asyncio
async def test_server_rejects_reversal_of_unknown_local_blocker(service):
    result = await service.update_blocker("blk-seed-2", BlockerUpdate(status="Open"))

    assert result.error == "Failed to update blocker: cannot move blocker from Resolved to Open"


@pytest.mark.asyncio
async def test_generation_reconciles_into_context_cache(service):
    context = team_context("core")

    first = await service.generate_team_report("core")
    again = await service.generate_team_report("core")

    assert first.ok and again.ok
    assert not first.payload.is_existing
    assert again.payload.is_existing
    assert [r.uid for r in service.store.reports(context)] == [first.payload.uid]
    assert service.store.reports(context)[0].is_existing
    assert service.store.current_report().uid == first.payload.uid
    assert not service.store.is_generating()

    monthly = await service.generate_team_report("core", "monthly")
    assert [r.uid for r in service.store.reports(context)] == [monthly.payload.uid, first.payload.uid]


@pytest.mark.asyncio
async def test_list_then_generate_existing_keeps_position(service):
    weekly = await service.generate_team_report("core")
    monthly = await service.generate_team_report("core", "monthly")
    await service.fetch_team_reports("core")
    assert [r.uid for r in service.store.reports(team_context("core"))] == [monthly.payload.uid, weekly.payload.uid]

    await service.generate_team_report("core")

    cache = service.store.reports(team_context("core"))
    assert [r.uid for r in cache] == [monthly.payload.uid, weekly.payload.uid]
    assert cache[1].is_existing


@pytest.mark.asyncio
async def test_rejected_generation_leaves_caches_untouched(service):
    await service.generate_team_report("core")
    before = service.store.reports_snapshot()

    result = await service.generate_team_report("platform")

    assert result.error == "Failed to generate team report: team access requires the team's manager"
    after = service.store.reports_snapshot()
    assert after.caches == before.caches
    assert after.current_report == before.current_report
    assert service.store.reports_error() == result.error
    assert service.store.request_state(RequestKind.REPORT_GENERATION).phase == "rejected"
    assert not service.store.is_generating()


@pytest.mark.asyncio
async def test_my_and_member_reports_use_separate_caches(service):
    mine = await service.generate_my_report()
    member = await service.generate_member_report("u-dev1")
    await service.fetch_my_reports()
    await service.fetch_member_reports("u-dev1")

    assert [r.uid for r in service.store.reports(my_context())] == [mine.payload.uid]
    assert [r.uid for r in service.store.reports(member_context("u-dev1"))] == [member.payload.uid]

    fetched = await service.fetch_report_by_id(member.payload.uid)
    assert fetched.ok
    assert service.store.current_report().target_member == "u-dev1"

    service.clear_current_report()
    assert service.store.current_report() is None


@pytest.mark.asyncio
async def test_team_overview_ranks_members(service):
    result = await service.load_team_overview("core")

    assert result.ok
    overview = result.payload
    assert [entry.member.uid for entry in overview.members] == ["u-dev2", "u-dev1", "u-lead"]
    assert overview.summary.total_open == 3
    assert overview.summary.total_high == 2
    assert overview.summary.members_needing_attention == 2
    assert service.store.member_stats("u-dev2").stats.by_status["Open"] == 2
    assert service.store.request_state(RequestKind.TEAM_OVERVIEW).phase == "fulfilled"
    assert overview.report_counts == {"u-lead": 0, "u-dev1": 0, "u-dev2": 0}


@pytest.mark.asyncio
async def test_team_overview_counts_cached_member_reports(service):
    assert (await service.generate_member_report("u-dev1")).ok
    assert (await service.generate_member_report("u-dev1", "monthly")).ok
    assert (await service.generate_team_report("core")).ok

    overview = (await service.load_team_overview("core")).payload

    assert overview.report_counts == {"u-lead": 0, "u-dev1": 2, "u-dev2": 0}


@pytest.mark.asyncio
async def test_failed_member_fetch_keeps_previous_stats(service, monkeypatch):
    await service.load_team_overview("core")
    previous = service.store.member_stats("u-dev1")

    real_fetch = service._client.get_member_blockers

    async def flaky(member_uid, query=None):
        if member_uid == "u-dev1":
            raise MomentumTransportError("connection reset")
        return await real_fetch(member_uid, query)

    monkeypatch.setattr(service._client, "get_member_blockers", flaky)

    result = await service.load_team_overview("core")

    assert result.ok
    entry = next(e for e in result.payload.members if e.member.uid == "u-dev1")
    assert entry.stats == previous.stats
    assert service.store.member_stats("u-dev1").stats == previous.stats


@pytest.mark.asyncio
async def test_failed_member_without_history_has_no_stats(service, monkeypatch):
    real_fetch = service._client.get_member_blockers

    async def flaky(member_uid, query=None):
        if member_uid == "u-dev2":
            raise MomentumTransportError("connection reset")
        return await real_fetch(member_uid, query)

    monkeypatch.setattr(service._client, "get_member_blockers", flaky)

    result = await service.load_team_overview("core")

    entry = next(e for e in result.payload.members if e.member.uid == "u-dev2")
    assert entry.stats is None
    assert result.payload.members[-1].member.uid == "u-dev2"


@pytest.mark.asyncio
async def test_overview_fails_when_roster_is_unavailable(service):
    result = await service.load_team_overview("platform")

    assert result.error == "Failed to load team: team access requires the team's manager"
    assert service.store.request_state(RequestKind.TEAM_OVERVIEW).phase == "rejected"


@pytest.mark.asyncio
async def test_member_detail_loads_blockers_and_reports(service):
    await service.generate_member_report("u-dev2")

    result = await service.load_member_detail("u-dev2")

    assert result.ok
    detail = result.payload
    assert detail.stats.total == 2
    assert detail.stats.weekly_trend == []
    assert [b.uid for b in service.store.blockers()] == ["blk-seed-3", "blk-seed-4"]
    assert len(service.store.reports(member_context("u-dev2"))) == 1


@pytest.mark.asyncio
async def test_clear_errors(service):
    await service.generate_team_report("platform")
    assert service.store.reports_error()

    service.clear_errors()

    assert service.store.reports_error() is None
