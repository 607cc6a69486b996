"""Read-only async GitHub REST client.

Pure infra: returns raw GitHub JSON.  Projection and truncation happen
in the tools that call it.  One ``httpx.AsyncClient`` is shared for the
lifetime of the app; every request carries the configured timeout.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import AsyncGenerator
from typing import Annotated, Any

import httpx
from fastapi import Depends, FastAPI, Request

from repostalker.configs.config import AppConfig, get_app_config
from repostalker.configs.system import ThirdPartyConfig
from repostalker.infra.lifespan import get_app
from repostalker.infra.telemetry import ATTR_GITHUB_PATH, SPAN_GITHUB_REQUEST, tracer

logger = logging.getLogger(__name__)

_ACCEPT = "application/vnd.github+json"
_API_VERSION = "2022-11-28"
_USER_AGENT = "repostalker"
_PER_PAGE = 100


class GitHubClient:
    """Thin wrapper over the GitHub REST endpoints the chat tools need."""

    def __init__(
        self,
        config: ThirdPartyConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Accept": _ACCEPT,
            "X-GitHub-Api-Version": _API_VERSION,
            "User-Agent": _USER_AGENT,
        }
        if config.github_token:
            headers["Authorization"] = f"Bearer {config.github_token}"
        self._client = httpx.AsyncClient(
            base_url=config.github_api_url,
            headers=headers,
            timeout=config.github_timeout.total_seconds(),
            transport=transport,
        )

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        with tracer.start_as_current_span(SPAN_GITHUB_REQUEST) as span:
            span.set_attribute(ATTR_GITHUB_PATH, path)
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()

    # -----------------------------------------------------------------
    # Issues
    # -----------------------------------------------------------------

    async def get_issue(self, repo: str, number: int) -> dict[str, Any] | None:
        """Fetch one issue or PR by number; ``None`` when GitHub says 404."""
        try:
            return await self._get(f"/repos/{repo}/issues/{number}")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == httpx.codes.NOT_FOUND:
                return None
            raise

    async def list_issue_comments(self, repo: str, number: int) -> list[dict[str, Any]]:
        return await self._get(
            f"/repos/{repo}/issues/{number}/comments", {"per_page": _PER_PAGE}
        )

    # -----------------------------------------------------------------
    # Pull requests
    # -----------------------------------------------------------------

    async def list_pr_files(self, repo: str, number: int) -> list[dict[str, Any]]:
        return await self._get(
            f"/repos/{repo}/pulls/{number}/files", {"per_page": _PER_PAGE}
        )

    async def list_pr_commits(self, repo: str, number: int) -> list[dict[str, Any]]:
        return await self._get(
            f"/repos/{repo}/pulls/{number}/commits", {"per_page": _PER_PAGE}
        )

    async def list_pr_reviews(self, repo: str, number: int) -> list[dict[str, Any]]:
        return await self._get(
            f"/repos/{repo}/pulls/{number}/reviews", {"per_page": _PER_PAGE}
        )

    async def list_pr_review_comments(
        self, repo: str, number: int
    ) -> list[dict[str, Any]]:
        return await self._get(
            f"/repos/{repo}/pulls/{number}/comments", {"per_page": _PER_PAGE}
        )

    # -----------------------------------------------------------------
    # Contents
    # -----------------------------------------------------------------

    async def get_file_content(
        self, repo: str, path: str, ref: str | None = None
    ) -> str:
        """Return the decoded text of a file from the contents API.

        Raises:
            ValueError: *path* names a directory or a non-base64 payload.
        """
        params = {"ref": ref} if ref else None
        payload = await self._get(f"/repos/{repo}/contents/{path.lstrip('/')}", params)
        if isinstance(payload, list):
            raise ValueError(f"'{path}' is a directory, not a file")
        if payload.get("encoding") != "base64":
            raise ValueError(
                f"Unsupported content encoding: {payload.get('encoding')!r}"
            )
        raw = base64.b64decode(payload.get("content", ""))
        return raw.decode("utf-8", errors="replace")

    async def aclose(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Lifespan dependency
# ---------------------------------------------------------------------------


async def build_github_client(
    app: Annotated[FastAPI, Depends(get_app)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> AsyncGenerator[None, None]:
    """Create the shared ``GitHubClient``, attach to ``app.state``."""
    client = GitHubClient(config.third_party)
    app.state.github_client = client
    logger.info(
        "GitHub client ready (%s, %s)",
        config.third_party.github_api_url,
        "authenticated" if config.third_party.github_token else "anonymous",
    )
    yield
    await client.aclose()


def get_github_client(request: Request) -> GitHubClient:
    """Return the ``GitHubClient`` stored on ``app.state``."""
    return request.app.state.github_client
