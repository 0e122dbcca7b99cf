"""
Tests for the platform API session.

The API and token endpoint are served by an in-process
aiohttp test server.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List

import pytest
from aiohttp import test_utils, web

from core.exceptions import APIError, SessionError
from fetcher import CFConfig, CFSession
from models import Application, Organization


# ============================================================
# FAKE API
# ============================================================

def org_doc(guid: str) -> Dict[str, Any]:
    return {
        "guid": guid,
        "name": f"org-{guid}",
        "metadata": {"labels": {"team": guid}, "annotations": {}},
        "relationships": {"quota": {"data": {"guid": "q1"}}},
    }


def build_api(
    requests: List[Dict[str, Any]],
    token_status: int = 200,
    links: Any = None,
) -> web.Application:
    """Fake API recording every request as {path, query, headers, form}."""

    def base(request: web.Request) -> str:
        return f"{request.scheme}://{request.host}"

    async def record(request: web.Request) -> None:
        form = dict(await request.post()) if request.method == "POST" else {}
        requests.append({
            "path": request.path,
            "query": dict(request.query),
            "headers": dict(request.headers),
            "form": form,
        })

    async def root(request):
        await record(request)
        if links is not None:
            return web.json_response({"links": links})
        return web.json_response({"links": {"uaa": {"href": f"{base(request)}/uaa"}}})

    async def token(request):
        await record(request)
        if token_status != 200:
            return web.json_response({"error": "unauthorized"}, status=token_status)
        return web.json_response({"access_token": "tok", "token_type": "bearer"})

    async def info(request):
        await record(request)
        return web.json_response({"name": "fake-cf", "build": "1"})

    async def organizations(request):
        await record(request)
        if request.query.get("page") == "2":
            return web.json_response({
                "pagination": {"next": None},
                "resources": [org_doc("o3")],
            })
        return web.json_response({
            "pagination": {
                "next": {"href": f"{base(request)}/v3/organizations?page=2&per_page=5000"},
            },
            "resources": [org_doc("o1"), org_doc("o2")],
        })

    async def apps(request):
        await record(request)
        return web.json_response({
            "pagination": {"next": None},
            "resources": [{
                "guid": "a1",
                "name": "web",
                "state": "STARTED",
                "relationships": {"space": {"data": {"guid": "s1"}}},
            }],
        })

    async def tasks(request):
        await record(request)
        return web.json_response({"pagination": {"next": None}, "resources": []})

    async def broken(request):
        await record(request)
        return web.Response(status=500, text="internal error")

    app = web.Application()
    app.router.add_get("/", root)
    app.router.add_post("/uaa/oauth/token", token)
    app.router.add_get("/v3/info", info)
    app.router.add_get("/v3/organizations", organizations)
    app.router.add_get("/v3/apps", apps)
    app.router.add_get("/v3/tasks", tasks)
    app.router.add_get("/v3/spaces", broken)
    return app


@asynccontextmanager
async def fake_api(token_status: int = 200, links: Any = None):
    requests: List[Dict[str, Any]] = []
    server = test_utils.TestServer(build_api(requests, token_status, links))
    await server.start_server()
    try:
        yield f"http://{server.host}:{server.port}", requests
    finally:
        await server.close()


def client_config(url: str) -> CFConfig:
    return CFConfig(url=url, client_id="exporter", client_secret="secret")


# ============================================================
# AUTHENTICATION
# ============================================================

class TestAuthentication:
    """Tests for token endpoint discovery and grants."""

    @pytest.mark.asyncio
    async def test_client_credentials_grant(self):
        async with fake_api() as (url, requests):
            async with await CFSession.create(client_config(url)) as session:
                assert session.is_authenticated
                await session.get_info()

        token_request = next(r for r in requests if r["path"] == "/uaa/oauth/token")
        assert token_request["form"]["grant_type"] == "client_credentials"
        assert token_request["headers"]["Authorization"] == "Basic ZXhwb3J0ZXI6c2VjcmV0"

        info_request = next(r for r in requests if r["path"] == "/v3/info")
        assert info_request["headers"]["Authorization"] == "bearer tok"

    @pytest.mark.asyncio
    async def test_password_grant(self):
        async with fake_api() as (url, requests):
            config = CFConfig(url=url, username="admin", password="pw")
            session = await CFSession.create(config)
            await session.close()

        form = next(r for r in requests if r["path"] == "/uaa/oauth/token")["form"]
        assert form == {"grant_type": "password", "username": "admin", "password": "pw"}

    @pytest.mark.asyncio
    async def test_rejected_credentials_raise_session_error(self):
        async with fake_api(token_status=401) as (url, _):
            with pytest.raises(SessionError) as exc_info:
                await CFSession.create(client_config(url))

        assert exc_info.value.status == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("links", [
        "oops",
        {"uaa": {"href": 5}},
        {"uaa": "https://uaa"},
        {},
    ])
    async def test_malformed_root_raises_session_error(self, links):
        async with fake_api(links=links) as (url, requests):
            with pytest.raises(SessionError):
                await CFSession.create(client_config(url))

        assert [r["path"] for r in requests] == ["/"]

    @pytest.mark.asyncio
    async def test_colon_in_client_id_raises_session_error(self):
        async with fake_api() as (url, requests):
            config = CFConfig(url=url, client_id="bad:id", client_secret="secret")
            with pytest.raises(SessionError):
                await CFSession.create(config)

        assert [r["path"] for r in requests] == ["/"]

    @pytest.mark.asyncio
    async def test_unreachable_api_raises_session_error(self):
        async with fake_api() as (url, _):
            pass

        # server is closed by now
        with pytest.raises(SessionError):
            await CFSession.create(client_config(url))


# ============================================================
# LISTINGS
# ============================================================

class TestListings:
    """Tests for paginated listings."""

    @pytest.mark.asyncio
    async def test_follows_next_links(self):
        async with fake_api() as (url, requests):
            async with await CFSession.create(client_config(url)) as session:
                orgs = await session.get_organizations()

        assert [o.guid for o in orgs] == ["o1", "o2", "o3"]
        assert all(isinstance(o, Organization) for o in orgs)
        assert orgs[0].labels == {"team": "o1"}

        pages = [r for r in requests if r["path"] == "/v3/organizations"]
        assert len(pages) == 2
        assert pages[0]["query"] == {"per_page": "5000"}
        assert pages[1]["query"] == {"page": "2", "per_page": "5000"}

    @pytest.mark.asyncio
    async def test_tasks_query(self):
        async with fake_api() as (url, requests):
            async with await CFSession.create(client_config(url)) as session:
                assert await session.get_tasks() == []

        query = next(r for r in requests if r["path"] == "/v3/tasks")["query"]
        assert query == {
            "per_page": "5000",
            "states": "PENDING,RUNNING,CANCELING",
            "order_by": "-created_at",
        }

    @pytest.mark.asyncio
    async def test_typed_applications(self):
        async with fake_api() as (url, _):
            async with await CFSession.create(client_config(url)) as session:
                apps = await session.get_applications()

        assert isinstance(apps[0], Application)
        assert apps[0].state == "STARTED"
        assert apps[0].space.guid == "s1"

    @pytest.mark.asyncio
    async def test_http_error_raises_api_error(self):
        async with fake_api() as (url, _):
            async with await CFSession.create(client_config(url)) as session:
                with pytest.raises(APIError) as exc_info:
                    await session.get_spaces()

        assert exc_info.value.status == 500
