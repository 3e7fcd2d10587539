"""CLI commands for the to-do list."""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional, TypeVar

import click

from .. import __version__
from ..config.settings import get_settings
from ..container import Container, build_container
from ..domain.errors import TaskDataError
from ..domain.models import Task, TasksFilterType
from ..logging_setup import configure_logging
from ..services.tasks_repository import TasksRepository


T = TypeVar("T")


def run_async(coro: Awaitable[T]) -> T:
    """Run async coroutine in sync context."""
    return asyncio.run(coro)


def with_repository(
    container: Container, action: Callable[[TasksRepository], Awaitable[T]]
) -> T:
    """Open the data sources, run an action against the repository, close them."""

    async def run() -> T:
        await container.start()
        try:
            return await action(container.tasks_repository)
        finally:
            await container.stop()

    try:
        return run_async(run())
    except TaskDataError as e:
        raise click.ClickException(str(e)) from e


def task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "is_completed": task.is_completed,
    }


def format_task_line(task: Task) -> str:
    status_icon = "✅" if task.is_completed else "📋"
    return f"{status_icon} [{task.id[:8]}] {task.title_for_list}"


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING...)")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]):
    """To-do list backed by a cached tasks repository."""
    settings = get_settings()
    configure_logging(log_level or settings.log_level)
    if ctx.obj is None:
        ctx.obj = build_container(settings)


@cli.command("list")
@click.option(
    "--filter",
    "-f",
    "filter_name",
    type=click.Choice([f.value for f in TasksFilterType]),
    default=TasksFilterType.ALL.value,
    help="Which tasks to show",
)
@click.option("--refresh", "-r", is_flag=True, help="Reload tasks from the remote")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def list_tasks(container: Container, filter_name: str, refresh: bool, output_json: bool):
    """List tasks."""
    filter_type = TasksFilterType(filter_name)
    tasks = with_repository(
        container, lambda repo: repo.get_filtered_tasks(filter_type, force_update=refresh)
    )

    if output_json:
        output = {
            "tasks": [task_to_dict(t) for t in tasks],
            "total": len(tasks),
        }
        click.echo(json.dumps(output, indent=2, ensure_ascii=False))
        return

    if not tasks:
        click.echo("No tasks found.")
        return

    click.echo(f"Found {len(tasks)} task(s):\n")
    for task in tasks:
        click.echo(format_task_line(task))


@cli.command("show")
@click.argument("task_id")
@click.option("--refresh", "-r", is_flag=True, help="Ask the remote first")
@click.pass_obj
def show_task(container: Container, task_id: str, refresh: bool):
    """Show task details."""
    task = with_repository(container, lambda repo: repo.get_task(task_id, force_update=refresh))

    if task is None:
        raise click.ClickException(f"Task not found: {task_id}")

    click.echo(f"ID: {task.id}")
    click.echo(f"Title: {task.title}")
    if task.description:
        click.echo(f"Description: {task.description}")
    click.echo(f"Status: {'completed' if task.is_completed else 'active'}")


@cli.command("add")
@click.argument("title", default="")
@click.option("--description", "-d", default="", help="Task description")
@click.pass_obj
def add_task(container: Container, title: str, description: str):
    """Add a new task."""
    task = Task(title=title, description=description)
    if task.is_empty:
        raise click.UsageError("Tasks cannot be empty")

    with_repository(container, lambda repo: repo.save_task(task))
    click.echo(f"Added task [{task.id[:8]}] {task.title_for_list}")
    click.echo(f"ID: {task.id}")


@cli.command("complete")
@click.argument("task_id")
@click.pass_obj
def complete_task(container: Container, task_id: str):
    """Mark a task as completed."""
    task = with_repository(container, lambda repo: repo.complete_task(task_id))
    click.echo(f"✅ Task completed: {task.title_for_list}")


@cli.command("activate")
@click.argument("task_id")
@click.pass_obj
def activate_task(container: Container, task_id: str):
    """Mark a task as active again."""
    task = with_repository(container, lambda repo: repo.activate_task(task_id))
    click.echo(f"📋 Task activated: {task.title_for_list}")


@cli.command("delete")
@click.argument("task_id")
@click.pass_obj
def delete_task(container: Container, task_id: str):
    """Delete a task."""
    with_repository(container, lambda repo: repo.delete_task(task_id))
    click.echo(f"Deleted task {task_id}")


@cli.command("clear-completed")
@click.pass_obj
def clear_completed(container: Container):
    """Delete all completed tasks."""
    with_repository(container, lambda repo: repo.clear_completed_tasks())
    click.echo("Completed tasks cleared.")


@cli.command("delete-all")
@click.confirmation_option(prompt="Delete every task?")
@click.pass_obj
def delete_all(container: Container):
    """Delete every task."""
    with_repository(container, lambda repo: repo.delete_all_tasks())
    click.echo("All tasks deleted.")


@cli.command("stats")
@click.option("--refresh", "-r", is_flag=True, help="Reload tasks from the remote")
@click.pass_obj
def stats(container: Container, refresh: bool):
    """Show active/completed statistics."""
    statistics = with_repository(container, lambda repo: repo.get_statistics(refresh))

    if statistics.is_empty:
        click.echo("You have no tasks.")
        return

    click.echo(f"Active tasks: {statistics.active} ({statistics.active_percent:.1f}%)")
    click.echo(
        f"Completed tasks: {statistics.completed} ({statistics.completed_percent:.1f}%)"
    )


@cli.command("serve")
@click.option("--host", "-h", default=None, help="Host to bind to")
@click.option("--port", "-p", default=None, type=int, help="Port to bind to")
def serve(host: Optional[str], port: Optional[int]):
    """Start the task service API (the remote)."""
    import uvicorn

    from ..api.app import create_app
    from ..datasources import InMemoryTaskDataSource, SqliteTaskDataSource

    server_settings = get_settings().server
    if server_settings.database_path:
        data_source = SqliteTaskDataSource(server_settings.database_path, name="service")
    else:
        data_source = InMemoryTaskDataSource(name="service", latency=server_settings.latency)

    api_key = server_settings.api_key
    app = create_app(data_source, api_key=api_key.get_secret_value() if api_key else None)

    host = host or server_settings.host
    port = port or server_settings.port
    click.echo(f"Starting task service at http://{host}:{port}")
    click.echo("Press Ctrl+C to stop")

    uvicorn.run(app, host=host, port=port)


def main():
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
