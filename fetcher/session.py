"""
Fetcher - Platform API Session.

============================================================
PURPOSE
============================================================
Authenticated client for the Cloud Foundry v3 API.

- Token endpoint discovery from the API root document
- Client credentials or password grant
- Paginated listings at the maximum page size
- Typed accessors for the categories the collectors read

============================================================
LIFECYCLE
============================================================
One session per snapshot: created (and authenticated) at
the start of a scrape, shared read-only by every fetch
task, closed when the scrape ends.

============================================================
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import aiohttp

from core.exceptions import APIError, SessionError
from models import Application, Organization, Resource, Space, Task

from .models import CFConfig


logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Resource)


# ============================================================
# QUERY PARAMETERS
# ============================================================

MAX_PAGE_SIZE = 5000

LARGE_QUERY: Dict[str, str] = {"per_page": str(MAX_PAGE_SIZE)}
SORT_DESC: Dict[str, str] = {"order_by": "-created_at"}
TASK_ACTIVE_STATES: Dict[str, str] = {"states": "PENDING,RUNNING,CANCELING"}

PASSWORD_GRANT_CLIENT = "cf"


# ============================================================
# SESSION
# ============================================================

class CFSession:
    """
    Authenticated platform API session.

    Use CFSession.create() to get an authenticated instance.
    """

    def __init__(self, config: CFConfig, http: aiohttp.ClientSession):
        """
        Initialize session.

        Args:
            config: API connection settings
            http: Underlying HTTP client session (owned)
        """
        self._config = config
        self._http = http
        self._base_url = config.url.rstrip("/")
        self._headers: Dict[str, str] = {"Accept": "application/json"}
        self._authenticated = False

    @classmethod
    async def create(cls, config: CFConfig) -> "CFSession":
        """
        Open and authenticate a session.

        Raises:
            SessionError: If the API or token endpoint cannot be reached,
                or the credentials are rejected
        """
        timeout = aiohttp.ClientTimeout(total=config.request_timeout_seconds)
        connector = aiohttp.TCPConnector(ssl=False) if config.skip_ssl_validation else None
        http = aiohttp.ClientSession(timeout=timeout, connector=connector)

        session = cls(config, http)
        try:
            await session.authenticate()
        except BaseException:
            await http.close()
            raise

        return session

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if not self._http.closed:
            await self._http.close()

    async def __aenter__(self) -> "CFSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --------------------------------------------------------
    # AUTHENTICATION
    # --------------------------------------------------------

    async def authenticate(self) -> None:
        """Discover the token endpoint and obtain a bearer token."""
        try:
            root = await self._request_json("GET", f"{self._base_url}/", authenticated=False)
        except APIError as e:
            raise SessionError(
                f"unable to reach API root: {e.message}",
                url=self._base_url,
                status=e.status,
                cause=e,
            )

        token_url = f"{self._token_endpoint(root).rstrip('/')}/oauth/token"

        if self._config.uses_client_credentials:
            form = {"grant_type": "client_credentials"}
            login, password = self._config.client_id, self._config.client_secret
        else:
            form = {
                "grant_type": "password",
                "username": self._config.username,
                "password": self._config.password,
            }
            login, password = PASSWORD_GRANT_CLIENT, ""

        try:
            authorization = aiohttp.encode_basic_auth(login, password)
        except ValueError as e:
            raise SessionError(f"invalid client credentials: {e}", url=token_url, cause=e)

        try:
            token = await self._request_json(
                "POST",
                token_url,
                data=form,
                headers={"Authorization": authorization},
                authenticated=False,
            )
        except APIError as e:
            raise SessionError(
                f"authentication failed: {e.message}",
                url=token_url,
                status=e.status,
                cause=e,
            )

        access_token = token.get("access_token")
        if not access_token:
            raise SessionError("token response carries no access_token", url=token_url)

        token_type = token.get("token_type") or "bearer"
        self._headers["Authorization"] = f"{token_type} {access_token}"
        self._authenticated = True

        logger.info(f"Authenticated against {self._base_url}")

    def _token_endpoint(self, root: Dict[str, Any]) -> str:
        """Token endpoint base URL advertised by the API root document."""
        links = root.get("links") or {}
        if not isinstance(links, dict):
            raise SessionError("API root document has malformed links", url=self._base_url)

        token_link = links.get("uaa") or links.get("login") or {}
        token_base = token_link.get("href") if isinstance(token_link, dict) else None
        if not isinstance(token_base, str) or not token_base:
            raise SessionError(
                "API root document advertises no token endpoint",
                url=self._base_url,
            )

        return token_base

    # --------------------------------------------------------
    # GENERIC OPERATIONS
    # --------------------------------------------------------

    async def get_info(self) -> Dict[str, Any]:
        """Get the platform info document."""
        return await self._request_json("GET", f"{self._base_url}/v3/info")

    async def list_resources(
        self,
        path: str,
        query: Optional[Dict[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        List every resource of a collection endpoint.

        Requests the maximum page size and follows next links
        until the listing is exhausted.

        Args:
            path: Collection path, e.g. /v3/spaces
            query: Extra query parameters (filters, order_by)

        Returns:
            Raw resource documents of all pages
        """
        params: Optional[Dict[str, str]] = dict(LARGE_QUERY)
        params.update(query or {})

        url: Optional[str] = f"{self._base_url}{path}"
        resources: List[Dict[str, Any]] = []
        pages = 0

        while url:
            body = await self._request_json("GET", url, params=params)
            pages += 1
            resources.extend(body.get("resources") or [])

            pagination = body.get("pagination") or {}
            url = (pagination.get("next") or {}).get("href")
            # next links already carry the full query string
            params = None

        logger.debug(f"Listed {len(resources)} resources from {path} in {pages} pages")
        return resources

    async def list_typed(
        self,
        path: str,
        resource_type: Type[R],
        query: Optional[Dict[str, str]] = None,
    ) -> List[R]:
        """List a collection and parse every document."""
        documents = await self.list_resources(path, query)
        return [resource_type.from_api(doc) for doc in documents]

    # --------------------------------------------------------
    # TYPED OPERATIONS
    # --------------------------------------------------------

    async def get_organizations(self) -> List[Organization]:
        return await self.list_typed("/v3/organizations", Organization)

    async def get_spaces(self) -> List[Space]:
        return await self.list_typed("/v3/spaces", Space)

    async def get_applications(self) -> List[Application]:
        return await self.list_typed("/v3/apps", Application)

    async def get_tasks(self) -> List[Task]:
        """Active tasks, newest first so pages stay stable while tasks churn."""
        query = dict(TASK_ACTIVE_STATES)
        query.update(SORT_DESC)
        return await self.list_typed("/v3/tasks", Task, query)

    # --------------------------------------------------------
    # TRANSPORT
    # --------------------------------------------------------

    async def _request_json(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
        authenticated: bool = True,
    ) -> Dict[str, Any]:
        """Make an API request and decode the JSON body."""
        request_headers = dict(self._headers) if authenticated else {"Accept": "application/json"}
        request_headers.update(headers or {})

        try:
            async with self._http.request(
                method,
                url,
                params=params,
                data=data,
                headers=request_headers,
            ) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise APIError(
                        f"HTTP {response.status} from {method} {url}: {text[:200]}",
                        url=url,
                        status=response.status,
                    )

                body = await response.json(content_type=None)
                if not isinstance(body, dict):
                    raise APIError(f"Unexpected payload from {method} {url}", url=url)
                return body

        except aiohttp.ClientError as e:
            raise APIError(f"Network error: {e}", url=url, cause=e)
        except asyncio.TimeoutError as e:
            raise APIError(f"Request timeout: {method} {url}", url=url, cause=e)
        except ValueError as e:
            raise APIError(f"Invalid JSON from {method} {url}: {e}", url=url, cause=e)


__all__ = [
    "CFSession",
    "MAX_PAGE_SIZE",
    "LARGE_QUERY",
    "SORT_DESC",
    "TASK_ACTIVE_STATES",
]
