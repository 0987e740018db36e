"""
aceops/schemas/files.py

Purpose: Inline HTML document bodies (binary uploads arrive as multipart)
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class DocumentCreate(BaseModel):
    fileName: str = Field(..., min_length=1)
    documentContent: str = ""
    accessibleRoles: List[str] = []
    description: Optional[str] = ""


class DocumentUpdate(BaseModel):
    fileName: Optional[str] = None
    documentContent: Optional[str] = None
    accessibleRoles: Optional[List[str]] = None
    description: Optional[str] = None
