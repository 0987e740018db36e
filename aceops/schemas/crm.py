"""
aceops/schemas/crm.py

Purpose: Potential-client (lead) and CRM event request bodies
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class LeadContact(BaseModel):
    clientName: str = Field(..., min_length=1)
    designation: Optional[str] = None
    source: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    location: Optional[str] = None
    assignedTo: Optional[str] = None


class PotentialClientCreate(BaseModel):
    companyName: str = Field(..., min_length=1)
    contacts: List[LeadContact] = []


class PotentialClientUpdate(BaseModel):
    companyName: Optional[str] = None
    contacts: Optional[List[LeadContact]] = None


class Schedule(BaseModel):
    scheduledOn: Optional[datetime] = None
    action: Optional[Literal["Call", "Msg", "Mail", "Meet", "Assign to CRM"]] = None
    assignedTo: Optional[str] = None
    discussion: Optional[datetime] = None
    status: Optional[Literal["", "Done", "Not done"]] = None
    reschedule: Optional[datetime] = None
    remarks: Optional[str] = None


class EventCreate(BaseModel):
    company: Optional[str] = None
    companyType: Optional[Literal["Company", "Vendor", "PotentialClient"]] = None
    potentialClient: Optional[str] = None
    schedules: List[Schedule] = []


class EventUpdate(BaseModel):
    schedules: List[Schedule] = []
