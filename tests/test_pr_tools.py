"""Tests for the on-demand pull request tools against a mocked GitHub API."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from repostalker.configs.system import ChatConfig, ThirdPartyConfig
from repostalker.core.errors import ToolExecutionError
from repostalker.core.tools import ToolCallRequest, ToolContext, build_pr_tools
from repostalker.core.tools.pr_tools import (
    FileContentArgs,
    NoArgs,
    get_file_content,
    get_pr_comments,
    get_pr_commits,
    get_pr_files,
    truncate,
)
from repostalker.infra.github import GitHubClient

REPO = "acme/widgets"
PR = 12


def _github(routes: dict[str, object], seen: list[httpx.Request] | None = None):
    """GitHubClient whose transport answers from *routes* keyed by URL path."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        body = routes.get(request.url.path)
        if body is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, json=body)

    config = ThirdPartyConfig(github_token="ghp_test")
    return GitHubClient(config, transport=httpx.MockTransport(handler))


def _ctx(github: GitHubClient | None, **limits) -> ToolContext:
    return ToolContext(
        repo=REPO,
        pr_number=PR,
        github=github,
        limits=ChatConfig(**limits),
    )


# =========================================================================
# truncate
# =========================================================================


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("abc", 3) == "abc"

    def test_long_text_marked(self):
        assert truncate("abcdef", 3) == "abc..."

    def test_none_passthrough(self):
        assert truncate(None, 3) is None


# =========================================================================
# get_pr_files
# =========================================================================


class TestGetPrFiles:
    @pytest.mark.asyncio
    async def test_projects_and_truncates(self):
        files = [
            {
                "filename": f"src/f{n}.py",
                "status": "modified",
                "additions": n,
                "deletions": 1,
                "changes": n + 1,
                "patch": "x" * 600,
                "sha": "ignored",
            }
            for n in range(35)
        ]
        seen: list[httpx.Request] = []
        github = _github({f"/repos/{REPO}/pulls/{PR}/files": files}, seen)
        try:
            result = await get_pr_files(NoArgs(), _ctx(github))
        finally:
            await github.aclose()

        assert len(result) == 30
        assert result[0] == {
            "filename": "src/f0.py",
            "status": "modified",
            "additions": 0,
            "deletions": 1,
            "changes": 1,
            "patch": "x" * 500 + "...",
        }
        assert seen[0].headers["Authorization"] == "Bearer ghp_test"
        assert seen[0].url.params["per_page"] == "100"

    @pytest.mark.asyncio
    async def test_binary_file_has_no_patch(self):
        files = [{"filename": "logo.png", "status": "added"}]
        github = _github({f"/repos/{REPO}/pulls/{PR}/files": files})
        try:
            result = await get_pr_files(NoArgs(), _ctx(github))
        finally:
            await github.aclose()
        assert result[0]["patch"] is None
        assert result[0]["additions"] == 0

    @pytest.mark.asyncio
    async def test_requires_coordinates(self):
        with pytest.raises(ToolExecutionError):
            await get_pr_files(NoArgs(), ToolContext())


# =========================================================================
# get_pr_commits
# =========================================================================


class TestGetPrCommits:
    @pytest.mark.asyncio
    async def test_short_sha_and_first_line(self):
        commits = [
            {
                "sha": "0123456789abcdef",
                "commit": {
                    "message": "Fix login\n\nLonger explanation",
                    "author": {"name": "Alice", "date": "2024-05-01T10:00:00Z"},
                },
                "author": {"login": "alice"},
            },
            {
                "sha": "fedcba9876543210",
                "commit": {
                    "message": "Tidy",
                    "author": {"date": "2024-05-02T10:00:00Z"},
                },
                "author": {"login": "bob"},
            },
        ]
        github = _github({f"/repos/{REPO}/pulls/{PR}/commits": commits})
        try:
            result = await get_pr_commits(NoArgs(), _ctx(github))
        finally:
            await github.aclose()

        assert result == [
            {
                "sha": "0123456",
                "message": "Fix login",
                "author": "Alice",
                "date": "2024-05-01T10:00:00Z",
            },
            {
                "sha": "fedcba9",
                "message": "Tidy",
                "author": "bob",
                "date": "2024-05-02T10:00:00Z",
            },
        ]


# =========================================================================
# get_pr_comments
# =========================================================================


class TestGetPrComments:
    @pytest.mark.asyncio
    async def test_collects_three_sources(self):
        routes = {
            f"/repos/{REPO}/pulls/{PR}/reviews": [
                {
                    "user": {"login": "carol"},
                    "state": "APPROVED",
                    "body": "LGTM",
                    "submitted_at": "2024-05-03T00:00:00Z",
                }
            ],
            f"/repos/{REPO}/pulls/{PR}/comments": [
                {
                    "user": {"login": "dave"},
                    "path": "src/app.py",
                    "line": 10,
                    "body": "y" * 20,
                    "created_at": "2024-05-03T01:00:00Z",
                }
            ],
            f"/repos/{REPO}/issues/{PR}/comments": [
                {"user": None, "body": "ping", "created_at": "2024-05-04T00:00:00Z"}
            ]
            * 12,
        }
        github = _github(routes)
        try:
            result = await get_pr_comments(NoArgs(), _ctx(github, patch_char_budget=10))
        finally:
            await github.aclose()

        assert result["reviews"][0]["state"] == "APPROVED"
        assert result["reviews"][0]["author"] == "carol"
        assert result["review_comments"][0]["body"] == "y" * 10 + "..."
        assert result["review_comments"][0]["path"] == "src/app.py"
        assert len(result["comments"]) == 10
        assert result["comments"][0]["author"] is None


# =========================================================================
# get_file_content
# =========================================================================


class TestGetFileContent:
    @pytest.mark.asyncio
    async def test_decodes_and_truncates(self):
        text = "print('hi')\n" * 400
        payload = {
            "type": "file",
            "encoding": "base64",
            "content": base64.b64encode(text.encode()).decode(),
        }
        seen: list[httpx.Request] = []
        github = _github({f"/repos/{REPO}/contents/src/main.py": payload}, seen)
        try:
            result = await get_file_content(
                FileContentArgs(path="src/main.py", ref="feature"), _ctx(github)
            )
        finally:
            await github.aclose()

        assert result["truncated"] is True
        assert result["content"] == text[:3000] + "..."
        assert result["ref"] == "feature"
        assert seen[0].url.params["ref"] == "feature"

    @pytest.mark.asyncio
    async def test_directory_is_an_error_result(self):
        github = _github({f"/repos/{REPO}/contents/src": [{"name": "main.py"}]})
        try:
            result = await build_pr_tools().dispatch(
                ToolCallRequest(
                    id="c1", name="get_file_content", arguments={"path": "src"}
                ),
                _ctx(github),
            )
        finally:
            await github.aclose()
        assert "is a directory" in json.loads(result)["error"]

    @pytest.mark.asyncio
    async def test_missing_file_is_an_error_result(self):
        github = _github({})
        try:
            result = await build_pr_tools().dispatch(
                ToolCallRequest(
                    id="c1", name="get_file_content", arguments={"path": "nope.py"}
                ),
                _ctx(github),
            )
        finally:
            await github.aclose()
        assert json.loads(result)["error"].startswith("Tool 'get_file_content' failed:")


class TestPrToolDefinitions:
    def test_names(self):
        assert build_pr_tools().names == [
            "get_pr_files",
            "get_pr_commits",
            "get_pr_comments",
            "get_file_content",
        ]

    def test_no_arg_tool_schema(self):
        definition = build_pr_tools().definitions[0].to_openai()
        assert definition["function"]["parameters"] == {
            "type": "object",
            "properties": {},
            "required": [],
        }
