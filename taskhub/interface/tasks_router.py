"""Task REST routes."""

from fastapi import APIRouter, Depends, Query, status

from taskhub.domain.task import Task, TaskCreate, TaskPriority, TaskStatus, TaskStatusUpdate, TaskUpdate
from taskhub.domain.user import User
from taskhub.interface.dependencies import get_current_user, get_task_service
from taskhub.services.task_service import TaskService


router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("")
async def list_tasks(
    status_filter: TaskStatus | None = Query(default=None, alias="status"),
    priority: TaskPriority | None = None,
    assigned_to: str | None = None,
    created_by: str | None = None,
    search: str | None = None,
    _user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
) -> list[Task]:
    return await tasks.list_tasks(
        status=status_filter,
        priority=priority,
        assigned_to=assigned_to,
        created_by=created_by,
        search=search,
    )


@router.get("/{task_id}")
async def get_task(
    task_id: str,
    _user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
) -> Task:
    return await tasks.get_task(task_id=task_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    data: TaskCreate,
    user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
) -> Task:
    return await tasks.create_task(data=data, created_by=user.id)


@router.put("/{task_id}")
async def update_task(
    task_id: str,
    data: TaskUpdate,
    user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
) -> Task:
    return await tasks.update_task(task_id=task_id, data=data, user=user)


@router.patch("/{task_id}")
async def update_task_status(
    task_id: str,
    data: TaskStatusUpdate,
    user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
) -> Task:
    return await tasks.update_status(task_id=task_id, status=data.status, user=user)


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
) -> dict[str, str]:
    await tasks.delete_task(task_id=task_id, user=user)
    return {"message": "Task deleted successfully"}
