from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Callable, Mapping, Sequence

from devshed_client.config import AppSettings, ConfigurationError
from devshed_client.context import NoConfigError, PersistenceError, get_context_store
from devshed_client.identifiers import entity_id, normalize_id
from devshed_client.logging_utils import configure_logging
from devshed_client.models import TASK_STATUSES, status_label
from devshed_client.selection import Selector
from devshed_client.services import DevShedService, FlowError

logger = logging.getLogger(__name__)

Prompt = Callable[[str], str]

_DEFAULT_API_URL = "https://api.devshed.dev"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="devshed", description="DevShed terminal client")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init", help="Initialize or reconfigure the client")

    context = commands.add_parser("context", help="Show or switch the current context")
    context_commands = context.add_subparsers(dest="action")
    context_commands.add_parser("show", help="Show current context")
    switch = context_commands.add_parser("switch", help="Switch context permanently")
    switch.add_argument("target", choices=["project", "org"])
    switch.add_argument("target_id")

    projects = commands.add_parser("projects", help="Manage projects")
    project_commands = projects.add_subparsers(dest="action", required=True)
    project_commands.add_parser("list", help="List all accessible projects")
    create_project = project_commands.add_parser("create", help="Create a new project")
    create_project.add_argument("name")
    create_project.add_argument("-d", "--description")
    project_commands.add_parser("switch", help="Pick the current project")
    read_project = project_commands.add_parser("read", aliases=["get"], help="Show a project")
    read_project.add_argument("project_id", nargs="?")

    statuses = [option.value for option in TASK_STATUSES]
    status_help = "; ".join(
        f"{option.value} = {option.label}: {option.description}" for option in TASK_STATUSES
    )
    tasks = commands.add_parser("tasks", help="Manage tasks")
    task_commands = tasks.add_subparsers(dest="action", required=True)
    list_tasks = task_commands.add_parser("list", help="List tasks for a project")
    list_tasks.add_argument("project_id", nargs="?")
    create_task = task_commands.add_parser("create", help="Create a task")
    create_task.add_argument("title")
    create_task.add_argument("-p", "--project", dest="project_id")
    create_task.add_argument("-s", "--status", choices=statuses, default="todo", help=status_help)
    create_task.add_argument("-d", "--description")
    switch_task = task_commands.add_parser("switch", help="Pick the current task")
    switch_task.add_argument("project_id", nargs="?")
    read_task = task_commands.add_parser("read", aliases=["get"], help="Show a task")
    read_task.add_argument("task_id", nargs="?")
    update_task = task_commands.add_parser("update", help="Update title, description or status")
    update_task.add_argument("task_id", nargs="?")
    update_task.add_argument("--title")
    update_task.add_argument("--description")
    update_task.add_argument("--status", choices=statuses, help=status_help)
    task_commands.add_parser("clear", help="Forget the current task")

    return parser


def run_init(service: DevShedService, prompt: Prompt = input) -> None:
    print("Welcome to DevShed! Let's set up your configuration.\n")
    api_url = prompt(f"DevShed API URL [{_DEFAULT_API_URL}]: ").strip() or _DEFAULT_API_URL
    api_key = prompt("API Key: ")
    user_id = prompt("User ID: ")
    organization_id = prompt("Default Organization ID: ")
    project_id = prompt("Current Project ID (optional): ")

    service.initialize_config(api_url, api_key, user_id, organization_id, project_id)
    print(f"\nConfiguration saved to {service.store.config_path}")


def _show_context(service: DevShedService) -> None:
    snapshot = service.context()
    config = snapshot.config
    if config is None:
        print("No configuration found")
        return
    print("Current Context")
    print(f"  API URL: {config.api_url}")
    print(f"  User ID: {config.user_id}")
    print(f"  Organization: {config.default_organization_id}")
    print(f"  Current Project: {config.current_project_id or 'None set'}")
    print(f"  Current Task: {config.current_task_id or 'None set'}")
    print(f"\nConfig: {snapshot.config_path}")


def _describe(entity: Mapping[str, Any], fields: Sequence[tuple[str, str]]) -> None:
    for key, label in fields:
        value = entity.get(key)
        if value in (None, "", []):
            continue
        if key.endswith("_id"):
            value = normalize_id(value)
        elif key == "status":
            value = status_label(str(value))
        print(f"  {label}: {value}")


def _print_collection(items: Sequence[Any], heading: str, label_key: str, empty_hint: str) -> None:
    if not items:
        print(f"No {heading.lower()} found. {empty_hint}")
        return
    print(f"{heading} ({len(items)})")
    for item in items:
        if not isinstance(item, Mapping):
            print(f"  - {item}")
            continue
        status = f" ({status_label(str(item['status']))})" if item.get("status") else ""
        print(f"  - {item.get(label_key, '<untitled>')}{status} [ID: {entity_id(item)}]")


def _choose(
    selector: Selector,
    label_key: str,
    prompt: Prompt,
    allow_clear: bool = False,
) -> str | None:
    """Ask for a row. Returns "select", "clear" (only when allowed) or None to quit."""
    if not selector.items:
        return None
    print(f"{selector.title} ({len(selector)} available)")
    for index, item in enumerate(selector.items):
        marker = ">" if index == selector.selected_index else " "
        name = item.get(label_key, "<untitled>") if isinstance(item, Mapping) else item
        print(f" {marker} {index + 1}. {name}")

    hint = "Number or ID to select (Enter keeps the marked one"
    hint += ", c clears the current one, q to quit): " if allow_clear else ", q to quit): "
    answer = prompt(hint).strip()
    if answer.lower() == "q":
        return None
    if allow_clear and answer.lower() == "c":
        return "clear"
    if answer:
        try:
            selector.select_key(answer)
        except KeyError as exc:
            raise FlowError(f"No {selector.kind} matches: {answer}") from exc
        except IndexError as exc:
            raise FlowError(str(exc)) from exc
    return "select"


def _run_context(service: DevShedService, args: argparse.Namespace) -> None:
    if args.action in (None, "show"):
        _show_context(service)
    elif args.target == "project":
        service.switch_project(args.target_id)
        print(f"Switched to project: {args.target_id}")
    else:
        service.switch_organization(args.target_id)
        print(f"Switched to organization: {args.target_id}")


def _run_projects(service: DevShedService, args: argparse.Namespace, prompt: Prompt) -> None:
    if args.action == "list":
        _print_collection(
            service.list_projects(),
            "Projects",
            "name",
            'Create your first project with: devshed projects create "My Project"',
        )
    elif args.action == "create":
        print(f"Creating project: {args.name}...")
        project = service.create_project(args.name, args.description)
        print("Project created successfully!")
        print(f"  ID: {entity_id(project)}")
        _describe(project, [("name", "Name")])
    elif args.action == "switch":
        selector = service.project_selector()
        if not selector.items:
            print('No projects found. Create one with: devshed projects create "My Project"')
        elif _choose(selector, "name", prompt) == "select":
            project = service.select_project(selector)
            if project is not None:
                print("Switched to project:")
                _describe(project, [("name", "Name")])
                print(f"  ID: {entity_id(project)}")
                print(f"  Status: {project.get('status') or 'Unknown'}")
    else:
        project = service.read_project(args.project_id)
        print(f"Project: {project.get('name', '<untitled>')}")
        print(f"  ID: {entity_id(project)}")
        _describe(
            project,
            [
                ("description", "Description"),
                ("status", "Status"),
                ("priority", "Priority"),
                ("key", "Key"),
                ("start_date", "Start"),
                ("end_date", "End"),
                ("url", "URL"),
                ("created_at", "Created"),
                ("updated_at", "Updated"),
            ],
        )


def _run_tasks(service: DevShedService, args: argparse.Namespace, prompt: Prompt) -> None:
    if args.action == "list":
        _print_collection(
            service.list_tasks(args.project_id),
            "Tasks",
            "title",
            'Create your first task with: devshed tasks create "My Task"',
        )
    elif args.action == "create":
        task = service.create_task(
            args.title,
            args.project_id,
            status=args.status,
            description=args.description,
        )
        print("Task created successfully!")
        print(f"  ID: {entity_id(task)}")
        _describe(task, [("title", "Title"), ("status", "Status"), ("project_id", "Project")])
    elif args.action == "switch":
        selector = service.task_selector(args.project_id)
        if not selector.items:
            print('No tasks found. Create your first task with: devshed tasks create "My Task"')
        else:
            choice = _choose(selector, "title", prompt, allow_clear=True)
            if choice == "clear":
                if service.clear_task(selector) is not None:
                    print("Cleared current task")
            elif choice == "select":
                task = service.select_task(selector)
                if task is not None:
                    print(f"Switched to task: {task.get('title', '<untitled>')} [ID: {entity_id(task)}]")
    elif args.action == "clear":
        service.clear_task()
        print("Cleared current task")
    elif args.action == "update":
        service.update_task(
            args.task_id,
            title=args.title,
            description=args.description,
            status=args.status,
        )
        print("Task updated successfully!")
    else:
        task = service.read_task(args.task_id)
        current = service.context().config
        is_current = current is not None and entity_id(task) == current.current_task_id
        print(f"Task: {task.get('title', '<untitled>')}{' (current)' if is_current else ''}")
        print(f"  ID: {entity_id(task)}")
        _describe(
            task,
            [
                ("description", "Description"),
                ("status", "Status"),
                ("priority", "Priority"),
                ("project_id", "Project"),
                ("assignee_id", "Assignee"),
                ("due_date", "Due"),
                ("created_at", "Created"),
                ("updated_at", "Updated"),
                ("completed_at", "Completed"),
            ],
        )


def main(argv: Sequence[str] | None = None, prompt: Prompt = input) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = AppSettings.from_env()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    configure_logging(settings.log_level)

    store = get_context_store(settings)
    service = DevShedService(store, request_timeout_seconds=settings.timeout_seconds)

    try:
        if args.command == "init":
            run_init(service, prompt)
            return 0

        if service.needs_setup():
            if store.exists():
                print("Config file exists but is invalid. Re-initializing...\n")
            run_init(service, prompt)

        if args.command == "context":
            _run_context(service, args)
        elif args.command == "projects":
            _run_projects(service, args, prompt)
        else:
            _run_tasks(service, args, prompt)
    except (FlowError, NoConfigError, PersistenceError, ConfigurationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except (EOFError, KeyboardInterrupt):
        print("\nCancelled.", file=sys.stderr)
        return 1
    except Exception as exc:
        logger.exception("Unexpected error")
        print(f"Error: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    return 0


def run_app() -> None:
    sys.exit(main())
