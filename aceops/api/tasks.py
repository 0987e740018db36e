"""
aceops/api/tasks.py

Purpose: Task manager endpoints (admin only)
"""

from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Request

from aceops.core.security import client_ip, require_admin
from aceops.schemas.tasks import TaskCreate, TaskUpdate
from aceops.services import task_service
from aceops.services.audit import to_json

router = APIRouter(prefix="/admin")


@router.post("/tasks", status_code=201)
async def create_tasks(
    body: Union[List[TaskCreate], TaskCreate], request: Request, admin: dict = Depends(require_admin)
):
    """Accepts one task or an array; duplicates (same name and due day) are skipped."""
    items = body if isinstance(body, list) else [body]
    result = await task_service.create_tasks([t.model_dump() for t in items], admin, client_ip(request))
    return to_json(result)


@router.get("/tasks")
async def list_tasks(searchTerm: Optional[str] = None, admin: dict = Depends(require_admin)):
    return to_json(await task_service.list_tasks(admin, searchTerm))


@router.get("/tasks/calendar")
async def calendar(admin: dict = Depends(require_admin)):
    return to_json(await task_service.calendar(admin))


@router.get("/tasks/opportunities")
async def opportunities(searchTerm: Optional[str] = None, admin: dict = Depends(require_admin)):
    return to_json(await task_service.open_opportunities(searchTerm))


@router.put("/tasks/{task_id}")
async def update_task(task_id: str, body: TaskUpdate, request: Request, admin: dict = Depends(require_admin)):
    result = await task_service.update_task(
        task_id, body.model_dump(exclude_unset=True), admin, client_ip(request)
    )
    return to_json(result)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, admin: dict = Depends(require_admin)):
    return await task_service.delete_task(task_id, admin)
