from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import AliasChoices, Field

from teamkb.schemas.base import CamelModel


class ArticleCreate(CamelModel):
    title: str
    content: str
    metadata: Optional[Dict[str, Any]] = None
    team_id: Optional[int] = None


class ArticleUpdate(CamelModel):
    title: str
    content: str
    metadata: Optional[Dict[str, Any]] = None


class ArticleOut(CamelModel):
    id: int
    title: str
    content: str
    # ORM rows expose the JSON column as ``meta``
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )
    created_at: datetime
    updated_at: datetime
    author_id: uuid.UUID
    team_id: Optional[int] = None
