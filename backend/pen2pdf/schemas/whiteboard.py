"""
Pen2PDF Backend: Whiteboard Schemas
=====================================

The canvas elements are opaque JSON owned by the frontend drawing library.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field

from pen2pdf.schemas.common import CamelModel


class WhiteboardSave(CamelModel):
    elements: List[Any] = Field(default_factory=list)


class WhiteboardOut(CamelModel):
    id: uuid.UUID
    elements: List[Any]
    updated_at: datetime


class WhiteboardResponse(CamelModel):
    success: bool = True
    data: WhiteboardOut
    message: Optional[str] = None
