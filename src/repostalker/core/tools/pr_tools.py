"""On-demand GitHub tools for a single pull request.

Nothing here is pre-fetched: each call hits the GitHub REST API through
``ctx.github`` and projects the response down to the fields a reviewer
needs.  Long text (patches, comment bodies, file bodies) is cut to the
character budgets in ``ChatConfig``.
"""

from __future__ import annotations

import asyncio
from typing import Any

from pydantic import BaseModel

from repostalker.core.errors import ToolExecutionError
from repostalker.infra.github import GitHubClient

from .model import (
    FunctionDefinition,
    ParametersDefinition,
    PropertyDefinition,
    RegisteredTool,
    ToolContext,
    ToolDefinition,
)
from .registry import ToolRegistry

SHORT_SHA_LENGTH = 7
TRUNCATION_SUFFIX = "..."


def truncate(text: str | None, budget: int) -> str | None:
    """Cut *text* to *budget* characters, marking the cut with ``...``."""
    if text is None or len(text) <= budget:
        return text
    return text[:budget] + TRUNCATION_SUFFIX


def _login(user: dict[str, Any] | None) -> str | None:
    return user.get("login") if user else None


def _require_pr(ctx: ToolContext) -> tuple[GitHubClient, str, int]:
    if ctx.github is None or ctx.repo is None or ctx.pr_number is None:
        raise ToolExecutionError("Pull request coordinates are not available")
    return ctx.github, ctx.repo, ctx.pr_number


# ---------------------------------------------------------------------------
# Argument models
# ---------------------------------------------------------------------------


class NoArgs(BaseModel):
    pass


class FileContentArgs(BaseModel):
    path: str
    ref: str | None = None


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def get_pr_files(args: NoArgs, ctx: ToolContext) -> list[dict[str, Any]]:
    github, repo, number = _require_pr(ctx)
    files = await github.list_pr_files(repo, number)
    budget = ctx.limits.patch_char_budget
    return [
        {
            "filename": f.get("filename"),
            "status": f.get("status"),
            "additions": f.get("additions", 0),
            "deletions": f.get("deletions", 0),
            "changes": f.get("changes", 0),
            "patch": truncate(f.get("patch"), budget),
        }
        for f in files[: ctx.limits.max_pr_files]
    ]


async def get_pr_commits(args: NoArgs, ctx: ToolContext) -> list[dict[str, Any]]:
    github, repo, number = _require_pr(ctx)
    commits = await github.list_pr_commits(repo, number)
    result = []
    for entry in commits:
        commit = entry.get("commit") or {}
        author = commit.get("author") or {}
        message = commit.get("message") or ""
        result.append(
            {
                "sha": (entry.get("sha") or "")[:SHORT_SHA_LENGTH],
                "message": message.split("\n", 1)[0],
                "author": author.get("name") or _login(entry.get("author")),
                "date": author.get("date"),
            }
        )
    return result


async def get_pr_comments(args: NoArgs, ctx: ToolContext) -> dict[str, Any]:
    """Reviews, diff comments and conversation comments, fetched concurrently."""
    github, repo, number = _require_pr(ctx)
    reviews, review_comments, comments = await asyncio.gather(
        github.list_pr_reviews(repo, number),
        github.list_pr_review_comments(repo, number),
        github.list_issue_comments(repo, number),
    )
    budget = ctx.limits.patch_char_budget
    cap = ctx.limits.list_result_cap
    return {
        "reviews": [
            {
                "author": _login(r.get("user")),
                "state": r.get("state"),
                "body": truncate(r.get("body"), budget),
                "submitted_at": r.get("submitted_at"),
            }
            for r in reviews[:cap]
        ],
        "review_comments": [
            {
                "author": _login(c.get("user")),
                "path": c.get("path"),
                "line": c.get("line"),
                "body": truncate(c.get("body"), budget),
                "created_at": c.get("created_at"),
            }
            for c in review_comments[:cap]
        ],
        "comments": [
            {
                "author": _login(c.get("user")),
                "body": truncate(c.get("body"), budget),
                "created_at": c.get("created_at"),
            }
            for c in comments[:cap]
        ],
    }


async def get_file_content(args: FileContentArgs, ctx: ToolContext) -> dict[str, Any]:
    github, repo, _ = _require_pr(ctx)
    content = await github.get_file_content(repo, args.path, args.ref)
    budget = ctx.limits.file_char_budget
    return {
        "path": args.path,
        "ref": args.ref,
        "content": truncate(content, budget),
        "truncated": len(content) > budget,
    }


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------

GET_PR_FILES = ToolDefinition(
    function=FunctionDefinition(
        name="get_pr_files",
        description=(
            "List the files changed in this pull request with additions, "
            "deletions and a truncated diff patch"
        ),
    )
)

GET_PR_COMMITS = ToolDefinition(
    function=FunctionDefinition(
        name="get_pr_commits",
        description=(
            "List the commits in this pull request "
            "(short sha, message, author, date)"
        ),
    )
)

GET_PR_COMMENTS = ToolDefinition(
    function=FunctionDefinition(
        name="get_pr_comments",
        description=(
            "Get the reviews, inline review comments and discussion comments "
            "on this pull request"
        ),
    )
)

GET_FILE_CONTENT = ToolDefinition(
    function=FunctionDefinition(
        name="get_file_content",
        description="Read a file from the repository (truncated for long files)",
        parameters=ParametersDefinition(
            properties={
                "path": PropertyDefinition(
                    type="string",
                    description="Path of the file relative to the repository root",
                ),
                "ref": PropertyDefinition(
                    type="string",
                    description=(
                        "Branch, tag or commit sha; default branch when omitted"
                    ),
                ),
            },
            required=["path"],
        ),
    )
)


def build_pr_tools() -> ToolRegistry:
    """Registry of the PR-chat tools."""
    return ToolRegistry(
        [
            RegisteredTool(GET_PR_FILES, NoArgs, get_pr_files),
            RegisteredTool(GET_PR_COMMITS, NoArgs, get_pr_commits),
            RegisteredTool(GET_PR_COMMENTS, NoArgs, get_pr_comments),
            RegisteredTool(GET_FILE_CONTENT, FileContentArgs, get_file_content),
        ]
    )
