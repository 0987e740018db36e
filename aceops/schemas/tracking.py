"""
aceops/schemas/tracking.py

Purpose: Location sample posted by the Android app
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class LocationCreate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    placeName: Optional[str] = ""
    timestamp: Optional[datetime] = None
