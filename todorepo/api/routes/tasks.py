"""Task service routes."""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict

from ...domain.errors import SourceUnavailableError
from ...domain.models import Task
from ...domain.protocols import TaskDataSource


class TaskPayload(BaseModel):
    """Task representation on the wire."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str = ""
    description: str = ""
    is_completed: bool = False

    def to_task(self) -> Task:
        return Task(
            id=self.id,
            title=self.title,
            description=self.description,
            is_completed=self.is_completed,
        )


class TaskListResponse(BaseModel):
    """Task list response model."""

    tasks: list[TaskPayload]
    total: int


def verify_api_key(request: Request) -> None:
    """Reject requests without the configured bearer token."""
    api_key = request.app.state.api_key
    if not api_key:
        return
    if request.headers.get("Authorization") != f"Bearer {api_key}":
        raise HTTPException(401, "Invalid or missing API key")


router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(verify_api_key)])


def get_data_source(request: Request) -> TaskDataSource:
    """Get the data source the application serves."""
    return request.app.state.data_source


def unavailable(e: SourceUnavailableError) -> HTTPException:
    return HTTPException(503, str(e))


@router.get("", response_model=TaskListResponse)
async def list_tasks(source: TaskDataSource = Depends(get_data_source)) -> TaskListResponse:
    """List all tasks."""
    try:
        tasks = await source.get_tasks()
    except SourceUnavailableError as e:
        raise unavailable(e)
    return TaskListResponse(
        tasks=[TaskPayload.model_validate(t) for t in tasks],
        total=len(tasks),
    )


@router.delete("", status_code=204)
async def delete_tasks(
    completed: bool = False,
    source: TaskDataSource = Depends(get_data_source),
) -> None:
    """Delete all tasks, or only the completed ones with ?completed=true."""
    try:
        if completed:
            await source.clear_completed_tasks()
        else:
            await source.delete_all_tasks()
    except SourceUnavailableError as e:
        raise unavailable(e)


# Task ids may contain "/"; the path converter keeps them in one parameter
@router.get("/{task_id:path}", response_model=TaskPayload)
async def get_task(task_id: str, source: TaskDataSource = Depends(get_data_source)) -> TaskPayload:
    """Get task by ID."""
    try:
        task = await source.get_task(task_id)
    except SourceUnavailableError as e:
        raise unavailable(e)

    if task is None:
        raise HTTPException(404, f"Task not found: {task_id}")

    return TaskPayload.model_validate(task)


@router.put("/{task_id:path}", response_model=TaskPayload)
async def save_task(
    task_id: str,
    payload: TaskPayload,
    source: TaskDataSource = Depends(get_data_source),
) -> TaskPayload:
    """Create or replace a task."""
    if payload.id != task_id:
        raise HTTPException(400, f"Task id mismatch: {payload.id} != {task_id}")
    try:
        await source.save_task(payload.to_task())
    except SourceUnavailableError as e:
        raise unavailable(e)
    return payload


@router.post("/{task_id:path}/complete", status_code=204)
async def complete_task(task_id: str, source: TaskDataSource = Depends(get_data_source)) -> None:
    """Mark a task as completed."""
    try:
        await source.complete_task(task_id)
    except SourceUnavailableError as e:
        raise unavailable(e)


@router.post("/{task_id:path}/activate", status_code=204)
async def activate_task(task_id: str, source: TaskDataSource = Depends(get_data_source)) -> None:
    """Mark a task as active."""
    try:
        await source.activate_task(task_id)
    except SourceUnavailableError as e:
        raise unavailable(e)


@router.delete("/{task_id:path}", status_code=204)
async def delete_task(task_id: str, source: TaskDataSource = Depends(get_data_source)) -> None:
    """Delete a task."""
    try:
        await source.delete_task(task_id)
    except SourceUnavailableError as e:
        raise unavailable(e)
