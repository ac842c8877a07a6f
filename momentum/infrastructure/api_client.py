"""Async client for the Momentum REST API."""
from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as SchemaError

from momentum.core.schema import (
    AiReport,
    Blocker,
    BlockerCreate,
    BlockerPage,
    BlockerQuery,
    BlockerStats,
    BlockerUpdate,
    ProfileUpdate,
    ReportPeriod,
    TeamMember,
    TokenGrant,
    User,
)
from momentum.infrastructure.credentials import TokenStore

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_REPORT_LIST = TypeAdapter(list[AiReport])
_MEMBER_LIST = TypeAdapter(list[TeamMember])


class MomentumApiError(RuntimeError):
    """Raised when a call to the Momentum API does not succeed."""

    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class MomentumTransportError(MomentumApiError):
    """The request never produced an HTTP response."""


class MomentumAuthError(MomentumApiError):
    """The server rejected the bearer token (HTTP 401)."""


class MomentumResponseError(MomentumApiError):
    """The response body was not the JSON document the call expects."""


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _error_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text or None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        return str(detail) if detail else None
    return None


class MomentumApiClient:
    """Thin typed wrapper around the REST surface consumed by the client layer.

    Every request carries the bearer token currently held by ``token_store``.
    A 401 answer clears the store and fires ``on_unauthorized`` before the
    call fails with :class:`MomentumAuthError`, whichever call triggered it.
    """

    def __init__(
        self,
        base_url: str,
        token_store: TokenStore,
        *,
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
        on_unauthorized: Callable[[], None] | None = None,
    ) -> None:
        parsed = httpx.URL(base_url)
        if not parsed.scheme or not parsed.host:
            raise ValueError("base_url must include scheme and host")

        self._base_url = base_url.rstrip("/")
        self._token_store = token_store
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None
        self._on_unauthorized = on_unauthorized

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_unauthorized_handler(self, handler: Callable[[], None] | None) -> None:
        self._on_unauthorized = handler

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self._token_store.load()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(method, url, params=params, json=json, headers=self._headers())
        except httpx.TransportError as exc:
            raise MomentumTransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 401:
            log.info("%s %s returned 401; clearing stored credentials", method, path)
            self._token_store.clear()
            if self._on_unauthorized is not None:
                self._on_unauthorized()
            raise MomentumAuthError("not authenticated", status_code=401, detail=_error_detail(response))

        if response.is_error:
            detail = _error_detail(response)
            raise MomentumApiError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                detail=detail,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise MomentumResponseError(f"{method} {path} returned a non-JSON body") from exc

    @staticmethod
    def _parse(model: type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except SchemaError as exc:
            raise MomentumResponseError(f"unexpected {model.__name__} payload: {exc.error_count()} error(s)") from exc

    @staticmethod
    def _parse_list(adapter: TypeAdapter, data: Any) -> list:
        try:
            return adapter.validate_python(data)
        except SchemaError as exc:
            raise MomentumResponseError(f"unexpected list payload: {exc.error_count()} error(s)") from exc

    @staticmethod
    def _query(query: BlockerQuery | None) -> dict[str, Any] | None:
        return query.to_params() if query is not None else None

    # ------------------------------------------------------------------
    # auth & team
    # ------------------------------------------------------------------
    async def get_profile(self) -> User:
        return self._parse(User, await self._request("GET", "/auth/me"))

    async def refresh_token(self) -> TokenGrant:
        return self._parse(TokenGrant, await self._request("POST", "/auth/refresh"))

    async def list_team_members(self, team: str) -> list[TeamMember]:
        data = await self._request("GET", f"/team-members/team/{_segment(team)}")
        return self._parse_list(_MEMBER_LIST, data)

    async def update_profile(self, member_uid: str, changes: ProfileUpdate) -> TokenGrant:
        """PATCH the member record; the response carries a rotated access token."""
        data = await self._request("PATCH", f"/team-members/{_segment(member_uid)}", json=changes.to_wire())
        return self._parse(TokenGrant, data)

    # ------------------------------------------------------------------
    # blockers
    # ------------------------------------------------------------------
    async def get_my_blockers(self, query: BlockerQuery | None = None) -> BlockerPage:
        data = await self._request("GET", "/blockers/my", params=self._query(query))
        return self._parse(BlockerPage, data)

    async def get_my_stats(self) -> BlockerStats:
        return self._parse(BlockerStats, await self._request("GET", "/blockers/my/stats"))

    async def get_team_blockers(self, team: str, query: BlockerQuery | None = None) -> BlockerPage:
        data = await self._request("GET", f"/blockers/team/{_segment(team)}", params=self._query(query))
        return self._parse(BlockerPage, data)

    async def get_team_stats(self, team: str) -> BlockerStats:
        data = await self._request("GET", f"/blockers/team/{_segment(team)}/stats")
        return self._parse(BlockerStats, data)

    async def get_member_blockers(self, member_uid: str, query: BlockerQuery | None = None) -> BlockerPage:
        data = await self._request("GET", f"/blockers/member/{_segment(member_uid)}", params=self._query(query))
        return self._parse(BlockerPage, data)

    async def create_blocker(self, payload: BlockerCreate) -> Blocker:
        data = await self._request("POST", "/blockers", json=payload.to_wire())
        return self._parse(Blocker, data)

    async def update_blocker(self, blocker_uid: str, changes: BlockerUpdate) -> Blocker:
        data = await self._request("PATCH", f"/blockers/{_segment(blocker_uid)}", json=changes.to_wire())
        return self._parse(Blocker, data)

    # ------------------------------------------------------------------
    # AI reports
    # ------------------------------------------------------------------
    async def generate_my_report(self, period: ReportPeriod = "weekly") -> AiReport:
        data = await self._request("POST", "/ai-reports/generate/my", params={"period": period})
        return self._parse(AiReport, data)

    async def generate_member_report(self, member_uid: str, period: ReportPeriod = "weekly") -> AiReport:
        data = await self._request(
            "POST", f"/ai-reports/generate/member/{_segment(member_uid)}", params={"period": period}
        )
        return self._parse(AiReport, data)

    async def generate_team_report(self, team: str, period: ReportPeriod = "weekly") -> AiReport:
        data = await self._request("POST", f"/ai-reports/generate/team/{_segment(team)}", params={"period": period})
        return self._parse(AiReport, data)

    async def list_my_reports(self) -> list[AiReport]:
        return self._parse_list(_REPORT_LIST, await self._request("GET", "/ai-reports/my"))

    async def list_team_reports(self, team: str) -> list[AiReport]:
        data = await self._request("GET", f"/ai-reports/team/{_segment(team)}")
        return self._parse_list(_REPORT_LIST, data)

    async def list_member_reports(self, member_uid: str) -> list[AiReport]:
        data = await self._request("GET", f"/ai-reports/member/{_segment(member_uid)}")
        return self._parse_list(_REPORT_LIST, data)

    async def get_report(self, report_uid: str) -> AiReport:
        return self._parse(AiReport, await self._request("GET", f"/ai-reports/{_segment(report_uid)}"))

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "MomentumApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = [
    "MomentumApiClient",
    "MomentumApiError",
    "MomentumAuthError",
    "MomentumResponseError",
    "MomentumTransportError",
]
