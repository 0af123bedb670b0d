"""Vercel REST client — authenticated, team-scoped, cursor-paginated.

Every request carries the bearer token, and the ``teamId`` query parameter
when a team scope is set; both are configured once on the underlying
``httpx.AsyncClient``. Failures are raised as the ``ApiError`` subclasses in
``deploydeck.core.errors`` and are never retried here.

List operations return ``Page[T]``. Pass ``page.pagination.next`` back as
``until`` to get the following page; ``next`` is None on the last page.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

from deploydeck.core.config import get_settings
from deploydeck.core.diagnostics import DiagnosticEvent, DiagnosticSink, LoggingSink
from deploydeck.core.errors import TransportError, ValidationError, error_for_status
from deploydeck.models.resources import (
    Deployment,
    DeploymentTarget,
    DNSRecord,
    DNSRecordCreate,
    Domain,
    EnvVariable,
    EnvVariableType,
    Page,
    Pagination,
    Project,
    Team,
    User,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
_ENV_TARGETS = frozenset(t.value for t in DeploymentTarget)


class VercelClient:
    """Async client for the subset of the Vercel API the app uses."""

    def __init__(
        self,
        token: str,
        team_id: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sink: DiagnosticSink | None = None,
    ) -> None:
        if not token:
            raise ValueError("A bearer token is required")
        settings = get_settings()
        self.team_id = team_id
        self._sink = sink or LoggingSink(logger)
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            params={"teamId": team_id} if team_id else None,
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> VercelClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Transport ────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Issue one request and return the decoded JSON body."""
        query = {k: v for k, v in (params or {}).items() if v is not None}
        self._emit("client.request", method=method, path=path)
        try:
            response = await self._client.request(
                method, path, params=query or None, json=json
            )
        except httpx.TimeoutException as exc:
            raise self._fail(
                TransportError("Request timed out", endpoint=path, code="timeout")
            ) from exc
        except httpx.HTTPError as exc:
            raise self._fail(
                TransportError(f"Network error: {exc}", endpoint=path, code="network_error")
            ) from exc

        if response.is_error:
            code, message = _error_details(response)
            raise self._fail(
                error_for_status(response.status_code, endpoint=path, code=code, message=message)
            )

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise self._fail(
                TransportError(
                    "Response body is not valid JSON",
                    status_code=response.status_code,
                    endpoint=path,
                    code="malformed_response",
                )
            ) from exc

    async def _list(
        self,
        path: str,
        field: str,
        item_type: type[T],
        *,
        limit: int,
        until: int | str | None,
        **filters: Any,
    ) -> Page[T]:
        data = await self._request("GET", path, params={"limit": limit, "until": until, **filters})
        if not isinstance(data, dict) or not isinstance(data.get(field), list):
            raise self._fail(
                TransportError(
                    f"Response is missing the {field!r} list", endpoint=path, code="malformed_response"
                )
            )
        try:
            return Page[item_type](  # type: ignore[valid-type]
                items=data[field],
                pagination=data.get("pagination") or Pagination(count=len(data[field])),
            )
        except SchemaError as exc:
            raise self._fail(
                TransportError(
                    f"Unexpected {field!r} payload", endpoint=path, code="malformed_response"
                )
            ) from exc

    def _parse(self, item_type: Any, data: Any, path: str) -> Any:
        try:
            return TypeAdapter(item_type).validate_python(data)
        except SchemaError as exc:
            raise self._fail(
                TransportError("Unexpected response payload", endpoint=path, code="malformed_response")
            ) from exc

    def _fail(self, error: Exception) -> Exception:
        """Report ``error`` to the sink and hand it back for raising."""
        self._emit(
            "client.error",
            logging.WARNING,
            error=error,
            kind=type(error).__name__,
            status_code=getattr(error, "status_code", None),
            endpoint=getattr(error, "endpoint", ""),
        )
        return error

    def _emit(
        self,
        name: str,
        level: int = logging.DEBUG,
        *,
        error: BaseException | None = None,
        **fields: Any,
    ) -> None:
        self._sink.emit(DiagnosticEvent(name=name, level=level, fields=fields, error=error))

    # ── Pagination ───────────────────────────────────────────

    async def paginate(
        self,
        list_method: Callable[..., Awaitable[Page[T]]],
        *,
        limit: int = DEFAULT_PAGE_SIZE,
        **filters: Any,
    ) -> AsyncIterator[T]:
        """Yield every item across pages until the server stops returning ``next``.

            async for deployment in client.paginate(client.list_deployments, limit=50):
                ...
        """
        until: int | str | None = None
        while True:
            page = await list_method(limit=limit, until=until, **filters)
            for item in page.items:
                yield item
            cursor = page.pagination.next
            if cursor is None:
                return
            if cursor == until:
                raise self._fail(
                    TransportError(
                        "Pagination cursor did not advance", code="pagination_stalled"
                    )
                )
            until = cursor

    # ── Projects ─────────────────────────────────────────────

    async def list_projects(
        self, limit: int = DEFAULT_PAGE_SIZE, until: int | str | None = None
    ) -> Page[Project]:
        return await self._list("/v9/projects", "projects", Project, limit=limit, until=until)

    async def get_project(self, project_id: str) -> Project:
        path = f"/v9/projects/{_seg(project_id)}"
        return self._parse(Project, await self._request("GET", path), path)

    async def delete_project(self, project_id: str) -> dict:
        return await self._request("DELETE", f"/v9/projects/{_seg(project_id)}")

    # ── Deployments ──────────────────────────────────────────

    async def list_deployments(
        self,
        limit: int = DEFAULT_PAGE_SIZE,
        until: int | str | None = None,
        project_id: str | None = None,
    ) -> Page[Deployment]:
        return await self._list(
            "/v6/deployments",
            "deployments",
            Deployment,
            limit=limit,
            until=until,
            projectId=project_id,
        )

    async def get_deployment(self, deployment_id: str) -> Deployment:
        path = f"/v13/deployments/{_seg(deployment_id)}"
        data = await self._request("GET", path)
        # v13 returns ``id`` where list endpoints return ``uid``
        if isinstance(data, dict) and "uid" not in data and "id" in data:
            data = {**data, "uid": data["id"]}
        return self._parse(Deployment, data, path)

    async def cancel_deployment(self, deployment_id: str) -> dict:
        return await self._request("PATCH", f"/v12/deployments/{_seg(deployment_id)}/cancel")

    async def delete_deployment(self, deployment_id: str) -> dict:
        return await self._request("DELETE", f"/v13/deployments/{_seg(deployment_id)}")

    async def redeploy_deployment(
        self,
        deployment_id: str,
        project: str | None = None,
        target: str = DeploymentTarget.PRODUCTION,
        name: str | None = None,
    ) -> dict:
        """Redeploy via create-deployment; anything but production goes to preview."""
        body: dict[str, Any] = {
            "deploymentId": deployment_id,
            "target": "production" if target == DeploymentTarget.PRODUCTION else "preview",
        }
        if project:
            body["project"] = project
        if name:
            body["name"] = name
        logger.debug("Redeploying %s to %s", deployment_id, body["target"])
        return await self._request("POST", "/v13/deployments", json=body)

    async def get_deployment_events(self, deployment_id: str) -> Any:
        return await self._request("GET", f"/v2/deployments/{_seg(deployment_id)}/events")

    async def get_runtime_logs(self, project_id: str, deployment_id: str) -> Any:
        return await self._request(
            "GET",
            f"/v3/projects/{_seg(project_id)}/deployments/{_seg(deployment_id)}/runtime-logs",
        )

    async def get_deployment_aliases(self, deployment_id: str) -> dict:
        return await self._request("GET", f"/v2/deployments/{_seg(deployment_id)}/aliases")

    async def assign_alias(self, deployment_id: str, alias: str) -> dict:
        if not alias:
            raise ValidationError("Alias must not be empty", code="missing_alias")
        return await self._request(
            "POST", f"/v2/deployments/{_seg(deployment_id)}/aliases", json={"alias": alias}
        )

    async def promote_to_production(self, deployment_id: str, production_domain: str) -> dict:
        return await self.assign_alias(deployment_id, production_domain)

    # ── Domains ──────────────────────────────────────────────

    async def list_domains(
        self, limit: int = DEFAULT_PAGE_SIZE, until: int | str | None = None
    ) -> Page[Domain]:
        return await self._list("/v5/domains", "domains", Domain, limit=limit, until=until)

    async def add_domain(self, name: str, project_id: str | None = None) -> dict:
        if not name:
            raise ValidationError("Domain name must not be empty", code="missing_name")
        body: dict[str, Any] = {"name": name}
        if project_id:
            body["projectId"] = project_id
        return await self._request("POST", "/v10/domains", json=body)

    async def remove_domain(self, domain: str) -> dict:
        return await self._request("DELETE", f"/v6/domains/{_seg(domain)}")

    # ── DNS records ──────────────────────────────────────────

    async def list_dns_records(
        self, domain: str, limit: int = DEFAULT_PAGE_SIZE, until: int | str | None = None
    ) -> Page[DNSRecord]:
        return await self._list(
            f"/v4/domains/{_seg(domain)}/records", "records", DNSRecord, limit=limit, until=until
        )

    async def create_dns_record(self, domain: str, record: DNSRecordCreate) -> dict:
        return await self._request(
            "POST",
            f"/v2/domains/{_seg(domain)}/records",
            json=record.model_dump(exclude_none=True),
        )

    async def update_dns_record(self, domain: str, record_id: str, changes: dict) -> dict:
        if not changes:
            raise ValidationError("No DNS record changes given", code="empty_update")
        return await self._request(
            "PATCH", f"/v1/domains/{_seg(domain)}/records/{_seg(record_id)}", json=changes
        )

    async def delete_dns_record(self, domain: str, record_id: str) -> dict:
        return await self._request(
            "DELETE", f"/v2/domains/{_seg(domain)}/records/{_seg(record_id)}"
        )

    # ── Environment variables ────────────────────────────────

    async def list_env_variables(self, project_id: str) -> list[EnvVariable]:
        path = f"/v9/projects/{_seg(project_id)}/env"
        data = await self._request("GET", path)
        envs = data.get("envs") if isinstance(data, dict) else None
        return self._parse(list[EnvVariable], envs, path)

    async def create_env_variable(
        self,
        project_id: str,
        key: str,
        value: str,
        target: list[str],
        env_type: str = EnvVariableType.ENCRYPTED,
    ) -> dict:
        if not key:
            raise ValidationError("Environment variable key must not be empty", code="missing_key")
        _check_targets(target)
        return await self._request(
            "POST",
            f"/v10/projects/{_seg(project_id)}/env",
            json={"key": key, "value": value, "target": list(target), "type": str(env_type)},
        )

    async def update_env_variable(
        self,
        project_id: str,
        env_id: str,
        *,
        key: str | None = None,
        value: str | None = None,
        target: list[str] | None = None,
    ) -> dict:
        changes: dict[str, Any] = {}
        if key is not None:
            if not key:
                raise ValidationError("Environment variable key must not be empty", code="missing_key")
            changes["key"] = key
        if value is not None:
            changes["value"] = value
        if target is not None:
            _check_targets(target)
            changes["target"] = list(target)
        if not changes:
            raise ValidationError("No environment variable changes given", code="empty_update")
        return await self._request(
            "PATCH", f"/v9/projects/{_seg(project_id)}/env/{_seg(env_id)}", json=changes
        )

    async def delete_env_variable(self, project_id: str, env_id: str) -> dict:
        return await self._request(
            "DELETE", f"/v9/projects/{_seg(project_id)}/env/{_seg(env_id)}"
        )

    # ── Account ──────────────────────────────────────────────

    async def list_teams(
        self, limit: int = DEFAULT_PAGE_SIZE, until: int | str | None = None
    ) -> Page[Team]:
        return await self._list("/v2/teams", "teams", Team, limit=limit, until=until)

    async def get_current_user(self) -> User:
        data = await self._request("GET", "/v2/user")
        user = data.get("user") if isinstance(data, dict) else None
        return self._parse(User, user, "/v2/user")

    async def get_project_analytics(self, project_id: str) -> Any:
        return await self._request("GET", f"/v1/analytics/{_seg(project_id)}")

    async def get_account_usage(
        self, from_ms: int | None = None, to_ms: int | None = None
    ) -> dict:
        return await self._request("GET", "/v4/usage", params={"from": from_ms, "to": to_ms})


def _seg(value: str) -> str:
    """Quote one path segment so ids containing ``/`` or ``?`` cannot change the route."""
    return quote(str(value), safe="")


def _check_targets(target: list[str]) -> None:
    if not target:
        raise ValidationError(
            "At least one target environment is required", code="missing_target"
        )
    unknown = sorted(set(target) - _ENV_TARGETS)
    if unknown:
        raise ValidationError(
            f"Unknown target environment(s): {', '.join(unknown)}", code="invalid_target"
        )


def _error_details(response: httpx.Response) -> tuple[str, str]:
    """Pull ``(code, message)`` out of a Vercel error body, falling back to the status."""
    try:
        body = response.json()
    except ValueError:
        body = None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        code = str(error.get("code") or "")
        message = str(error.get("message") or "")
        if message:
            return code, message
        return code, f"HTTP {response.status_code}"
    return "", f"HTTP {response.status_code} {response.reason_phrase}".strip()
