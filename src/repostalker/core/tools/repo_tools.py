"""Tools over the caller-supplied list of pull requests or issues.

Every handler reads ``ctx.items`` and never mutates it: sorting always
goes through ``sorted``, which is stable, so ties keep the order the
caller sent.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Literal

from pydantic import BaseModel

from repostalker.core.items import (
    UNKNOWN_AUTHOR,
    ItemType,
    RepoItem,
    item_noun,
    item_type_label,
)

from .model import (
    FunctionDefinition,
    ParametersDefinition,
    PropertyDefinition,
    RegisteredTool,
    ToolContext,
    ToolDefinition,
)
from .registry import ToolRegistry

TOP_ACTIVITY = 5
TOP_AUTHORS = 10

# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------


def _summary(item: RepoItem) -> dict[str, Any]:
    return {
        "number": item.number,
        "title": item.title,
        "state": item.state,
        "comments": item.comments,
        "url": item.html_url,
        "labels": item.label_names,
    }


def _search_hit(item: RepoItem) -> dict[str, Any]:
    return {
        "number": item.number,
        "title": item.title,
        "state": item.state,
        "author": item.author,
        "comments": item.comments,
        "url": item.html_url,
        "labels": item.label_names,
    }


def _details(item: RepoItem) -> dict[str, Any]:
    return {
        "number": item.number,
        "title": item.title,
        "state": item.state,
        "body": item.body,
        "author": item.author,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
        "comments": item.comments,
        "url": item.html_url,
    }


# ---------------------------------------------------------------------------
# Argument models
# ---------------------------------------------------------------------------


class SearchArgs(BaseModel):
    keyword: str


class StateArgs(BaseModel):
    state: Literal["open", "closed", "all"]


class LabelArgs(BaseModel):
    label: str


class DetailsArgs(BaseModel):
    number: int


class ActivityArgs(BaseModel):
    metric: Literal["most_commented", "most_recent", "oldest", "by_author"]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def search_items(args: SearchArgs, ctx: ToolContext) -> list[dict[str, Any]]:
    """Case-insensitive substring match over title and body."""
    keyword = args.keyword.lower()
    hits = [
        item
        for item in ctx.items
        if keyword in item.title.lower() or keyword in (item.body or "").lower()
    ]
    return [_search_hit(item) for item in hits[: ctx.limits.list_result_cap]]


async def filter_by_state(args: StateArgs, ctx: ToolContext) -> list[dict[str, Any]]:
    matches = [
        item for item in ctx.items if args.state == "all" or item.state == args.state
    ]
    return [_summary(item) for item in matches[: ctx.limits.list_result_cap]]


async def filter_by_label(args: LabelArgs, ctx: ToolContext) -> list[dict[str, Any]]:
    """Items carrying any label whose name contains *label* (case-insensitive)."""
    needle = args.label.lower()
    matches = [
        item
        for item in ctx.items
        if any(needle in name.lower() for name in item.label_names)
    ]
    return [_summary(item) for item in matches[: ctx.limits.list_result_cap]]


async def get_item_details(
    args: DetailsArgs, ctx: ToolContext
) -> dict[str, Any] | None:
    """Details from the snapshot, else from GitHub when coordinates are known.

    Returns ``None`` for an item that exists in neither.
    """
    for item in ctx.items:
        if item.number == args.number:
            return _details(item)

    if ctx.repo is None or ctx.github is None:
        return None
    raw = await ctx.github.get_issue(ctx.repo, args.number)
    if raw is None:
        return None
    return _details(RepoItem.model_validate(raw))


async def analyze_activity(
    args: ActivityArgs, ctx: ToolContext
) -> list[dict[str, Any]]:
    items = list(ctx.items)
    match args.metric:
        case "most_commented":
            ranked = sorted(items, key=lambda i: i.comments, reverse=True)
            return [
                {"number": i.number, "title": i.title, "comments": i.comments}
                for i in ranked[:TOP_ACTIVITY]
            ]
        case "most_recent" | "oldest":
            ranked = sorted(
                items,
                key=RepoItem.created_sort_key,
                reverse=args.metric == "most_recent",
            )
            return [
                {"number": i.number, "title": i.title, "created_at": i.created_at}
                for i in ranked[:TOP_ACTIVITY]
            ]
        case "by_author":
            counts = Counter(item.author or UNKNOWN_AUTHOR for item in items)
            ranked_authors = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
            return [
                {"author": author, "count": count}
                for author, count in ranked_authors[:TOP_AUTHORS]
            ]
    raise ValueError(f"Unsupported metric: {args.metric}")


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


def _definitions(item_type: ItemType) -> dict[str, ToolDefinition]:
    label = item_type_label(item_type)
    noun = item_noun(item_type)

    def define(
        name: str, description: str, prop: str, schema: PropertyDefinition
    ) -> ToolDefinition:
        return ToolDefinition(
            function=FunctionDefinition(
                name=name,
                description=description,
                parameters=ParametersDefinition(
                    properties={prop: schema}, required=[prop]
                ),
            )
        )

    return {
        "search_items": define(
            "search_items",
            f"Search through the {label} by keyword in title or body",
            "keyword",
            PropertyDefinition(
                type="string",
                description="Keyword to search for in titles and descriptions",
            ),
        ),
        "filter_by_state": define(
            "filter_by_state",
            f"Filter {label} by state (open/closed)",
            "state",
            PropertyDefinition(
                type="string",
                enum=["open", "closed", "all"],
                description="State to filter by",
            ),
        ),
        "filter_by_label": define(
            "filter_by_label",
            f"Filter {label} by label (e.g., bug, enhancement, documentation)",
            "label",
            PropertyDefinition(
                type="string",
                description="Label name to filter by (case-insensitive)",
            ),
        ),
        "get_item_details": define(
            "get_item_details",
            f"Get full details of a specific {noun} by number",
            "number",
            PropertyDefinition(type="number", description=f"The {noun} number"),
        ),
        "analyze_activity": define(
            "analyze_activity",
            f"Get statistics about {label} activity (most commented, most recent, etc)",
            "metric",
            PropertyDefinition(
                type="string",
                enum=["most_commented", "most_recent", "oldest", "by_author"],
                description="What metric to analyze",
            ),
        ),
    }


def build_repo_tools(item_type: ItemType) -> ToolRegistry:
    """Registry of the repo-chat tools, worded for *item_type*."""
    defs = _definitions(item_type)
    return ToolRegistry(
        [
            RegisteredTool(defs["search_items"], SearchArgs, search_items),
            RegisteredTool(defs["filter_by_state"], StateArgs, filter_by_state),
            RegisteredTool(defs["filter_by_label"], LabelArgs, filter_by_label),
            RegisteredTool(defs["get_item_details"], DetailsArgs, get_item_details),
            RegisteredTool(defs["analyze_activity"], ActivityArgs, analyze_activity),
        ]
    )
