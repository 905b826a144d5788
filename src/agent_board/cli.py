from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import yaml
from loguru import logger

from .config import resolve_data_dir
from .constants import ANONYMOUS_ACTOR
from .domain.models import COLUMN_VALUES
from .errors import BoardError
from .service import BoardService


def _ctx(data_dir: Optional[str]) -> BoardService:
    return BoardService.open(resolve_data_dir(data_dir))


def _emit(payload: Any) -> int:
    sys.stdout.write(json.dumps(payload, indent=2) + '\n')
    return 0


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format='{time:HH:mm:ss} | {level: <7} | {message}')


def _project_list(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    projects = board.list_projects(status=args.status, owner=args.owner)
    return _emit({'projects': [p.to_dict() for p in projects]})


def _project_create(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    project = asyncio.run(board.create_project(
        args.name,
        owner=args.owner,
        description=args.description,
        client_view_enabled=args.client_view,
        actor_id=args.actor,
    ))
    return _emit({'project': project.to_dict()})


def _project_show(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    project, tasks = board.get_project(args.project_id)
    return _emit({'project': project.to_dict(), 'tasks': [t.to_dict() for t in tasks]})


def _project_delete(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    removed = asyncio.run(board.delete_project(args.project_id, actor_id=args.actor))
    return _emit({'deleted': args.project_id, 'tasks_removed': removed})


def _changes(args: argparse.Namespace, fields: dict[str, str]) -> dict[str, Any]:
    return {field: getattr(args, attr) for attr, field in fields.items() if getattr(args, attr) is not None}


def _project_update(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    changes = _changes(args, {
        'name': 'name',
        'owner': 'owner',
        'description': 'description',
        'status': 'status',
        'client_view': 'client_view_enabled',
    })
    if not changes:
        sys.stderr.write('Nothing to update\n')
        return 1
    project = asyncio.run(board.update_project(args.project_id, changes, actor_id=args.actor))
    return _emit({'project': project.to_dict()})


def _project_client_view(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    return _emit(board.client_view(args.project_id))


def _project_apply_template(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    try:
        raw = yaml.safe_load(Path(args.file).read_text(encoding='utf-8'))
    except (OSError, yaml.YAMLError) as exc:
        sys.stderr.write(f'Unable to read template file {args.file}: {exc}\n')
        return 1
    if isinstance(raw, dict):
        raw = raw.get('tasks')
    if not isinstance(raw, list):
        sys.stderr.write(f'Template file must hold a list of tasks: {args.file}\n')
        return 1
    created = asyncio.run(board.apply_template(args.project_id, raw, actor_id=args.actor))
    return _emit({'created': len(created), 'tasks': [t.to_dict() for t in created]})


def _task_list(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    tasks = board.list_tasks(
        project_id=args.project,
        assignee=args.assignee,
        column=args.column,
        tag=args.tag,
        search=args.search,
    )
    return _emit({'tasks': [t.to_dict() for t in tasks]})


def _task_create(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    task = asyncio.run(board.create_task(
        args.project_id,
        args.title,
        args.assignee,
        description=args.description,
        created_by=args.actor,
        priority=args.priority,
        column=args.column,
        tags=args.tag,
        dependencies=args.depends_on,
        requires_review=args.requires_review,
        max_retries=args.max_retries,
        actor_id=args.actor,
    ))
    return _emit({'task': task.to_dict()})


def _task_show(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    task, dependencies, blocked_by = board.task_dependencies(args.task_id)
    _, dependents = board.task_dependents(args.task_id)
    return _emit({
        'task': task.to_dict(),
        'dependencies': [d.id for d in dependencies],
        'blocked_by': [d.id for d in blocked_by],
        'dependents': [d.id for d in dependents],
    })


def _task_move(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    result = asyncio.run(board.move_task(args.task_id, args.column, actor_id=args.actor))
    return _emit(result.to_dict())


def _task_comment(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    task = asyncio.run(board.add_comment(args.task_id, args.author, args.text, actor_id=args.actor))
    return _emit({'task': task.to_dict()})


def _task_update(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    changes = _changes(args, {
        'title': 'title',
        'description': 'description',
        'assignee': 'assignee',
        'priority': 'priority',
        'tag': 'tags',
        'depends_on': 'dependencies',
        'requires_review': 'requires_review',
        'max_retries': 'max_retries',
    })
    if args.clear_dependencies:
        changes['dependencies'] = []
    if not changes:
        sys.stderr.write('Nothing to update\n')
        return 1
    task = asyncio.run(board.update_task(args.task_id, changes, actor_id=args.actor))
    return _emit({'task': task.to_dict()})


def _task_comments(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    return _emit({'comments': [c.to_dict() for c in board.list_comments(args.task_id)]})


def _task_delete(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    unblocked = asyncio.run(board.delete_task(args.task_id, actor_id=args.actor))
    return _emit({'deleted': args.task_id, 'updated_dependents': unblocked})


def _agent_list(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    agents = board.list_agents(status=args.status, role=args.role, capability=args.capability)
    return _emit({'agents': [a.to_dict() for a in agents]})


def _agent_register(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    agent = asyncio.run(board.register_agent(
        args.agent_id,
        args.name,
        role=args.role,
        capabilities=args.capability,
        actor_id=args.actor,
    ))
    return _emit({'agent': agent.to_dict()})


def _audit(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    entries = board.audit(task_id=args.task, actor_id=args.agent, limit=args.limit)
    return _emit({'entries': [e.to_dict() for e in entries]})


def _stats(args: argparse.Namespace) -> int:
    board = _ctx(args.data_dir)
    return _emit(board.stats())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Agent board: file-backed task board for AI agents')
    parser.add_argument('--data-dir', default=None, help='Board data directory (default: $AGENT_BOARD_DATA_DIR or ./data)')
    parser.add_argument('--actor', default=ANONYMOUS_ACTOR, help='Actor id recorded in the audit log')
    parser.add_argument('--log-level', default='WARNING', help='Log level for stderr output')
    subparsers = parser.add_subparsers(dest='command', required=True)

    project = subparsers.add_parser('project', help='Manage projects')
    project_sub = project.add_subparsers(dest='project_cmd', required=True)
    plist = project_sub.add_parser('list', help='List projects')
    plist.add_argument('--status', default=None, choices=['active', 'archived'])
    plist.add_argument('--owner', default=None)
    plist.set_defaults(func=_project_list)
    pcreate = project_sub.add_parser('create', help='Create a project')
    pcreate.add_argument('name')
    pcreate.add_argument('--owner', default=None)
    pcreate.add_argument('--description', default='')
    pcreate.add_argument('--client-view', action='store_true', help='Enable the sanitized client view')
    pcreate.set_defaults(func=_project_create)
    pshow = project_sub.add_parser('show', help='Show a project and its tasks')
    pshow.add_argument('project_id')
    pshow.set_defaults(func=_project_show)
    pupdate = project_sub.add_parser('update', help='Update project fields')
    pupdate.add_argument('project_id')
    pupdate.add_argument('--name', default=None)
    pupdate.add_argument('--owner', default=None)
    pupdate.add_argument('--description', default=None)
    pupdate.add_argument('--status', default=None, choices=['active', 'archived'])
    pupdate.add_argument('--client-view', default=None, action=argparse.BooleanOptionalAction)
    pupdate.set_defaults(func=_project_update)
    pview = project_sub.add_parser('client-view', help='Show the sanitized client view of a project')
    pview.add_argument('project_id')
    pview.set_defaults(func=_project_client_view)
    pdelete = project_sub.add_parser('delete', help='Delete a project and its tasks')
    pdelete.add_argument('project_id')
    pdelete.set_defaults(func=_project_delete)
    ptemplate = project_sub.add_parser('apply-template', help='Create tasks from a YAML template file')
    ptemplate.add_argument('project_id')
    ptemplate.add_argument('file')
    ptemplate.set_defaults(func=_project_apply_template)

    task = subparsers.add_parser('task', help='Manage tasks')
    task_sub = task.add_subparsers(dest='task_cmd', required=True)
    tlist = task_sub.add_parser('list', help='List tasks')
    tlist.add_argument('--project', default=None)
    tlist.add_argument('--assignee', default=None)
    tlist.add_argument('--column', default=None, choices=COLUMN_VALUES)
    tlist.add_argument('--tag', default=None)
    tlist.add_argument('--search', default=None)
    tlist.set_defaults(func=_task_list)
    tcreate = task_sub.add_parser('create', help='Create a task')
    tcreate.add_argument('project_id')
    tcreate.add_argument('title')
    tcreate.add_argument('--assignee', required=True)
    tcreate.add_argument('--description', default='')
    tcreate.add_argument('--priority', default='medium', choices=['low', 'medium', 'high', 'urgent'])
    tcreate.add_argument('--column', default='backlog', choices=COLUMN_VALUES)
    tcreate.add_argument('--tag', action='append', default=[])
    tcreate.add_argument('--depends-on', action='append', default=[])
    tcreate.add_argument('--requires-review', action='store_true')
    tcreate.add_argument('--max-retries', type=int, default=None)
    tcreate.set_defaults(func=_task_create)
    tshow = task_sub.add_parser('show', help='Show a task with its dependency view')
    tshow.add_argument('task_id')
    tshow.set_defaults(func=_task_show)
    tmove = task_sub.add_parser('move', help='Move a task to another column')
    tmove.add_argument('task_id')
    tmove.add_argument('column')
    tmove.set_defaults(func=_task_move)
    tcomment = task_sub.add_parser('comment', help='Comment on a task')
    tcomment.add_argument('task_id')
    tcomment.add_argument('author')
    tcomment.add_argument('text')
    tcomment.set_defaults(func=_task_comment)
    tupdate = task_sub.add_parser('update', help='Update task fields (dependency edits are checked for cycles)')
    tupdate.add_argument('task_id')
    tupdate.add_argument('--title', default=None)
    tupdate.add_argument('--description', default=None)
    tupdate.add_argument('--assignee', default=None)
    tupdate.add_argument('--priority', default=None, choices=['low', 'medium', 'high', 'urgent'])
    tupdate.add_argument('--tag', action='append', default=None, help='Replace the tag list (repeatable)')
    tupdate.add_argument('--depends-on', action='append', default=None, help='Replace the dependency list (repeatable)')
    tupdate.add_argument('--clear-dependencies', action='store_true')
    tupdate.add_argument('--requires-review', default=None, action=argparse.BooleanOptionalAction)
    tupdate.add_argument('--max-retries', type=int, default=None)
    tupdate.set_defaults(func=_task_update)
    tcomments = task_sub.add_parser('comments', help='List comments on a task')
    tcomments.add_argument('task_id')
    tcomments.set_defaults(func=_task_comments)
    tdelete = task_sub.add_parser('delete', help='Delete a task')
    tdelete.add_argument('task_id')
    tdelete.set_defaults(func=_task_delete)

    agent = subparsers.add_parser('agent', help='Manage agents')
    agent_sub = agent.add_subparsers(dest='agent_cmd', required=True)
    alist = agent_sub.add_parser('list', help='List agents')
    alist.add_argument('--status', default=None, choices=['online', 'offline'])
    alist.add_argument('--role', default=None)
    alist.add_argument('--capability', default=None)
    alist.set_defaults(func=_agent_list)
    aregister = agent_sub.add_parser('register', help='Register a new agent')
    aregister.add_argument('agent_id')
    aregister.add_argument('name')
    aregister.add_argument('--role', default=None)
    aregister.add_argument('--capability', action='append', default=[])
    aregister.set_defaults(func=_agent_register)

    audit = subparsers.add_parser('audit', help='Show audit entries, newest first')
    audit.add_argument('--task', default=None)
    audit.add_argument('--agent', default=None)
    audit.add_argument('--limit', type=int, default=None)
    audit.set_defaults(func=_audit)

    stats = subparsers.add_parser('stats', help='Show board statistics')
    stats.set_defaults(func=_stats)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return int(handler(args) or 0)
    except BoardError as exc:
        sys.stderr.write(json.dumps(exc.to_dict()) + '\n')
        return 1
