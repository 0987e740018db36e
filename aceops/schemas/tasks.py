"""
aceops/schemas/tasks.py

Purpose: Task (ticket) request bodies
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Schedule = Literal["None", "Daily", "Weekly", "Monthly", "AlternateDays", "SelectedDates"]
Completion = Literal["Done", "Not Done"]


class TaskCreate(BaseModel):
    ticketName: str = Field(..., min_length=1)
    toBeClosedBy: str
    opportunityId: Optional[str] = None
    assignedTo: Optional[str] = None
    fromDate: Optional[str] = None
    toDate: Optional[str] = None
    completedOn: Completion = "Not Done"
    schedule: Schedule = "None"
    selectedDates: List[str] = []


class TaskUpdate(BaseModel):
    ticketName: Optional[str] = None
    toBeClosedBy: Optional[str] = None
    opportunityId: Optional[str] = None
    assignedTo: Optional[str] = None
    fromDate: Optional[str] = None
    toDate: Optional[str] = None
    completedOn: Optional[Completion] = None
    schedule: Optional[Schedule] = None
    selectedDates: Optional[List[str]] = None
