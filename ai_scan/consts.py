from pathlib import Path

# Batch organization
DEFAULT_BATCH_SIZE = 100  # Jobs per outer batch (checkpoint granularity)
DEFAULT_MINI_BATCH_SIZE = 5  # Jobs per agent invocation
MIN_MINI_BATCH_SIZE = 1
MAX_MINI_BATCH_SIZE = 10

# Execution pacing
DEFAULT_DELAY_SECONDS = 5.0  # Pause between mini-batches
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_SECONDS = 180  # 3 minutes per invocation

# Backoff bases (seconds), doubled on every retry
RATE_LIMIT_BACKOFF_BASE = 60.0  # 60s, 120s, 240s, ...
DEFAULT_BACKOFF_BASE = 5.0  # 5s, 10s, 20s, ...

# Persistent state files
CHECKPOINT_FILENAME = ".ai-scan-checkpoint.json"
LOCK_FILENAME = ".ai-scan.lock"
STALE_LOCK_MAX_AGE_SECONDS = 24 * 3600  # Locks older than a day are reported stale

# Directory mode layout
PROCESSED_DIRNAME = "processed"
FAILED_DIRNAME = "failed"
INPUT_FILE_EXTENSION = ".csv"

# External agent
AGENT_BINARY = "claude"
AI_MODEL = "claude-opus-4-5-20251101"

# Output
DEFAULT_OUTPUT_PATH = Path(".")
OUTPUT_FILE_MODE = 0o644
TOKEN_ESTIMATE_BASE = 2000  # Approximate prompt size
TOKEN_ESTIMATE_CHARS_PER_TOKEN = 4
DEFAULT_PROCESSING_TIME_SECONDS = 60  # Used when an invocation duration was not tracked

# Prompt generation
TEMPLATES_DIR = Path(__file__).parent / "templates"
DEFAULT_PROMPT_TEMPLATE = TEMPLATES_DIR / "default-prompt.j2"

# CLI exit codes
EXIT_SUCCESS = 0
EXIT_USAGE_ERROR = 1
EXIT_PARTIAL_FAILURE = 2
EXIT_COMPLETE_FAILURE = 3
EXIT_LOCK_HELD = 4
EXIT_INTERRUPTED = 130
