"""Projection of the GitHub issue / pull-request JSON the browser sends.

Only the fields the prompts and tools read are declared; everything else
GitHub returns is ignored on validation.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ItemType = Literal["pr", "issue"]

UNKNOWN_AUTHOR = "unknown"

_REPO_FROM_URL = re.compile(r"github\.com/([^/]+/[^/]+)")
_PR_FROM_URL = re.compile(r"/pull/(\d+)")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class ItemUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str | None = None


class ItemLabel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""


class RepoItem(BaseModel):
    """One issue or pull request as listed by the GitHub issues API."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    number: int
    title: str
    body: str | None = None
    state: str = "open"
    user: ItemUser | None = None
    created_at: str = ""
    updated_at: str | None = None
    comments: int = 0
    labels: list[ItemLabel] = Field(default_factory=list)
    html_url: str = ""

    @field_validator("comments", mode="before")
    @classmethod
    def _null_comments(cls, value: object) -> object:
        return 0 if value is None else value

    @field_validator("labels", mode="before")
    @classmethod
    def _null_labels(cls, value: object) -> object:
        return [] if value is None else value

    @property
    def author(self) -> str | None:
        return self.user.login if self.user else None

    @property
    def label_names(self) -> list[str]:
        return [label.name for label in self.labels]

    def created_sort_key(self) -> datetime:
        """Creation time for ordering; unparseable timestamps sort first."""
        try:
            parsed = datetime.fromisoformat(self.created_at)
        except ValueError:
            return _EPOCH
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


def item_type_label(item_type: ItemType) -> str:
    """``"Pull Requests"`` or ``"Issues"``."""
    return "Pull Requests" if item_type == "pr" else "Issues"


def item_noun(item_type: ItemType) -> str:
    """``"PR"`` or ``"Issue"``."""
    return "PR" if item_type == "pr" else "Issue"


def repo_slug_from_url(url: str | None) -> str | None:
    """Extract ``owner/name`` from a github.com HTML URL."""
    if not url:
        return None
    match = _REPO_FROM_URL.search(url)
    return match.group(1) if match else None


def pr_number_from_url(url: str | None) -> int | None:
    """Extract the number from a ``.../pull/<n>`` URL."""
    if not url:
        return None
    match = _PR_FROM_URL.search(url)
    return int(match.group(1)) if match else None
