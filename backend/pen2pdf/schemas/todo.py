"""
Pen2PDF Backend: Todo Schemas
===============================

API contract for /api/todos and /api/todos/{id}/subtodos.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from pen2pdf.schemas.common import CamelModel


class TodoCardCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)


class TodoCardUpdate(CamelModel):
    title: str = Field(min_length=1, max_length=255)


class SubTodoCreate(CamelModel):
    text: str = Field(min_length=1, max_length=1000)


class SubTodoUpdate(CamelModel):
    """Either field may be sent alone (rename or toggle)."""

    text: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    completed: Optional[bool] = None


class SubTodoOut(CamelModel):
    id: str
    text: str
    completed: bool = False
    created_at: datetime


class TodoCardOut(CamelModel):
    id: uuid.UUID
    title: str
    sub_todos: List[SubTodoOut]
    created_at: datetime
    updated_at: datetime


class TodoCardResponse(CamelModel):
    success: bool = True
    data: TodoCardOut


class TodoCardListResponse(CamelModel):
    success: bool = True
    data: List[TodoCardOut]
