DATA_DIR_ENV = "AGENT_BOARD_DATA_DIR"
MAX_BACKUPS_ENV = "AGENT_BOARD_MAX_BACKUPS"
DEFAULT_DATA_DIR = "data"

CONFIG_FILE = "board.yaml"
AUDIT_FILE = "audit.jsonl"
BACKUP_DIR = "backups"

PROJECTS = "projects"
TASKS = "tasks"
AGENTS = "agents"
STORE_VERSION = 1

MAX_BACKUPS = 50
DEFAULT_MAX_RETRIES = 2
DEFAULT_AUDIT_LIMIT = 100

SYSTEM_AUTHOR = "system"
ANONYMOUS_ACTOR = "anonymous"

MISSING_DEPS_IGNORE = "ignore"
MISSING_DEPS_BLOCK = "block"
MISSING_DEPENDENCY_POLICIES = (MISSING_DEPS_IGNORE, MISSING_DEPS_BLOCK)
