from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

from .config import TodoApiConfig, load_config
from .constants import CONFIG_ENV_VAR
from .errors import TodoApiError
from .logging_utils import configure_logging
from .server import create_app
from .task_engine.model import SortKey, SortOrder
from .task_engine.query import QueryOptions
from .task_engine.repository import TaskRepository

APP_FACTORY = "todo_api.server.api:create_app_from_env"


def _config(args: argparse.Namespace) -> TodoApiConfig:
    config, error = load_config(Path(args.config).expanduser() if args.config else None)
    if error:
        sys.stderr.write(f"Ignoring config: {error}\n")
    if args.data_dir:
        config = config.merged({"data_dir": args.data_dir})
    return config


def _repo(args: argparse.Namespace) -> TaskRepository:
    return TaskRepository(_config(args).data_dir)


def _emit(payload: Any) -> int:
    sys.stdout.write(json.dumps(payload, indent=2) + '\n')
    return 0


def _server(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("Install uvicorn to run the server: pip install uvicorn\n")
        return 1

    config = _config(args)
    host = args.host or config.host
    port = args.port or config.port
    configure_logging(config.log_level)
    if args.reload:
        # The reloader re-imports the app in a child process, so settings
        # travel through the environment.
        os.environ["TODO_API_DATA_DIR"] = str(config.data_dir.resolve())
        if args.config:
            os.environ[CONFIG_ENV_VAR] = str(Path(args.config).expanduser().resolve())
        uvicorn.run(
            APP_FACTORY,
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_level=config.log_level.lower(),
        )
        return 0
    app = create_app(config=config)
    uvicorn.run(app, host=host, port=port, log_level=config.log_level.lower())
    return 0


def _task_create(args: argparse.Namespace) -> int:
    task = _repo(args).create_task({'text': args.text.strip(), 'completed': args.completed})
    return _emit({'task': task.to_dict()})


def _task_list(args: argparse.Namespace) -> int:
    completed: Optional[bool] = None
    if args.completed is not None:
        completed = args.completed == 'true'
    options = QueryOptions(
        page=args.page,
        limit=args.limit,
        search=args.search or '',
        completed=completed,
        sort_by=SortKey.parse(args.sort_by),
        sort_order=SortOrder.parse(args.sort_order),
    )
    return _emit(_repo(args).get_all_tasks(options).to_dict())


def _task_toggle(args: argparse.Namespace) -> int:
    task = _repo(args).toggle_task_completion(args.task_id)
    if task is None:
        sys.stderr.write(f"Task {args.task_id} not found\n")
        return 1
    return _emit({'task': task.to_dict()})


def _task_delete(args: argparse.Namespace) -> int:
    if not _repo(args).delete_task(args.task_id):
        sys.stderr.write(f"Task {args.task_id} not found\n")
        return 1
    return _emit({'deleted': args.task_id})


def _task_clear_completed(args: argparse.Namespace) -> int:
    return _emit(_repo(args).delete_completed_tasks())


def _task_stats(args: argparse.Namespace) -> int:
    return _emit(_repo(args).get_task_stats())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Todo API server and task CLI')
    parser.add_argument('--data-dir', default=None, help='Directory holding tasks.json (default: ./data or $TODO_API_DATA_DIR)')
    parser.add_argument('--config', default=None, help='Optional YAML config file (default: $TODO_API_CONFIG)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    server = subparsers.add_parser('server', help='Start the HTTP API server')
    server.add_argument('--host', default=None)
    server.add_argument('--port', default=None, type=int)
    server.add_argument('--reload', action='store_true')
    server.set_defaults(func=_server)

    task = subparsers.add_parser('task', help='Manage tasks directly in the data directory')
    task_sub = task.add_subparsers(dest='task_cmd', required=True)
    tcreate = task_sub.add_parser('create', help='Create a task')
    tcreate.add_argument('text')
    tcreate.add_argument('--completed', action='store_true')
    tcreate.set_defaults(func=_task_create)
    tlist = task_sub.add_parser('list', help='List tasks')
    tlist.add_argument('--search', default=None)
    tlist.add_argument('--completed', default=None, choices=['true', 'false'])
    tlist.add_argument('--page', default=1, type=int)
    tlist.add_argument('--limit', default=10, type=int)
    tlist.add_argument('--sort-by', default='createdAt', choices=[k.value for k in SortKey])
    tlist.add_argument('--sort-order', default='desc', choices=[o.value for o in SortOrder])
    tlist.set_defaults(func=_task_list)
    ttoggle = task_sub.add_parser('toggle', help='Toggle task completion')
    ttoggle.add_argument('task_id')
    ttoggle.set_defaults(func=_task_toggle)
    tdelete = task_sub.add_parser('delete', help='Delete a task')
    tdelete.add_argument('task_id')
    tdelete.set_defaults(func=_task_delete)
    tclear = task_sub.add_parser('clear-completed', help='Delete all completed tasks')
    tclear.set_defaults(func=_task_clear_completed)
    tstats = task_sub.add_parser('stats', help='Show task statistics')
    tstats.set_defaults(func=_task_stats)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return int(handler(args) or 0)
    except TodoApiError as exc:
        sys.stderr.write(json.dumps(exc.to_dict()) + '\n')
        return 1


if __name__ == '__main__':
    raise SystemExit(main())
