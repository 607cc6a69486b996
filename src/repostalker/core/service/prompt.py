"""System and user prompt builders for the three chat surfaces."""

from __future__ import annotations

from collections.abc import Sequence

from repostalker.core.items import (
    UNKNOWN_AUTHOR,
    ItemType,
    RepoItem,
    item_noun,
    item_type_label,
)

NO_DESCRIPTION = "No description provided"
NO_LABELS = "no labels"

# ---------------------------------------------------------------------------
# PR chat
# ---------------------------------------------------------------------------

_PR_SYSTEM = """\
You are an expert code reviewer and GitHub assistant. You're helping a developer understand a GitHub pull request or issue.

Title: {title}
{location}
Context/Description:
{context}

Your job is to:
- Answer questions about the PR/issue clearly and concisely
- Explain technical concepts in an accessible way
- Provide insights about potential impacts, risks, or benefits
- Help the developer quickly understand what's happening
{tools}
Keep responses focused and practical."""

_PR_TOOLS = """
You can use tools to look at the pull request itself:
- get_pr_files: changed files with a truncated diff of each
- get_pr_commits: the commit list
- get_pr_comments: reviews, inline review comments and discussion
- get_file_content: the contents of a file in the repository

Use them when the description is not enough to answer.
"""


def build_pr_system_prompt(
    title: str | None,
    context: str | None,
    *,
    repo: str | None = None,
    pr_number: int | None = None,
    with_tools: bool = False,
) -> str:
    location = ""
    if repo and pr_number is not None:
        location = f"Repository: {repo}\nPull request: #{pr_number}\n"
    elif repo:
        location = f"Repository: {repo}\n"
    return _PR_SYSTEM.format(
        title=title or "Untitled",
        location=location,
        context=context or NO_DESCRIPTION,
        tools=_PR_TOOLS if with_tools else "",
    )


# ---------------------------------------------------------------------------
# Repo chat
# ---------------------------------------------------------------------------

_REPO_SYSTEM = """\
You are a helpful assistant that helps developers understand and analyze GitHub {label}.

You have access to {count} {label}. Here's the complete list with details:
{listing}
{summary}
You can use tools to:
- Search items by keyword in title or body
- Filter by state (open/closed)
- Filter by label (e.g., "bug", "enhancement", "documentation")
- Get detailed information about specific items
- Analyze activity patterns

When responding:
- Answer questions directly using the context above when possible
- Use tools only when you need to search, filter, or get additional details
- For questions like "show me bug reports", filter the context above for items with "bug" label
- Be concise and relevant
- ALWAYS include GitHub URLs when discussing specific {plural}
- Reference specific {noun} numbers with their links (e.g., "#123: Title - https://github.com/...")
- Summarize findings clearly"""


def _preview(body: str, limit: int) -> str:
    if len(body) <= limit:
        return body
    return body[:limit] + "..."


def render_item(item: RepoItem, preview_chars: int) -> str:
    labels = ", ".join(item.label_names) or NO_LABELS
    lines = [
        f"#{item.number}: {item.title}",
        f"- State: {item.state}",
        f"- Author: {item.author or UNKNOWN_AUTHOR}",
        f"- Created: {item.created_at}",
        f"- Comments: {item.comments}",
        f"- Labels: {labels}",
        f"- URL: {item.html_url}",
    ]
    if item.body and preview_chars > 0:
        lines.append(f"- Description: {_preview(item.body, preview_chars)}")
    return "\n".join(lines)


def build_repo_system_prompt(
    items: Sequence[RepoItem],
    item_type: ItemType,
    *,
    summary: str | None = None,
    preview_chars: int = 300,
) -> str:
    listing = "\n\n".join(render_item(item, preview_chars) for item in items)
    summary_block = f"\nCurrent summary of these items:\n{summary}\n" if summary else ""
    return _REPO_SYSTEM.format(
        label=item_type_label(item_type),
        count=len(items),
        listing=f"\n{listing}\n" if listing else "",
        summary=summary_block,
        plural="PRs" if item_type == "pr" else "issues",
        noun=item_noun(item_type),
    )


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

_SUMMARY_SYSTEM = """\
You are an AI assistant that creates concise, insightful summaries of GitHub {label}.
Focus on:
- Overall status distribution (open/closed)
- Key themes or patterns
- Notable items that need attention
- Any trends in activity

Keep the summary brief (3-5 sentences) and actionable."""


def build_summary_system_prompt(item_type: ItemType) -> str:
    return _SUMMARY_SYSTEM.format(label=item_type_label(item_type).lower())


def build_summary_user_prompt(items: Sequence[RepoItem], item_type: ItemType) -> str:
    rendered = "\n\n".join(
        f"{idx}. [{item.state.upper()}] {item.title}\n"
        f"   Author: {item.author or 'Unknown'}\n"
        f"   Created: {item.created_at}\n"
        f"   Comments: {item.comments}"
        for idx, item in enumerate(items, start=1)
    )
    label = item_type_label(item_type).lower()
    return f"Please summarize these {len(items)} {label}:\n\n{rendered}"
