"""Central configuration for paths and constants."""

import os
from pathlib import Path

# Data directory — override with CHATTHREADS_DATA_DIR env var
DATA_DIR = Path(
    os.environ.get("CHATTHREADS_DATA_DIR", str(Path.home() / ".chatthreads"))
)

# Stored messages read by the MCP server
STORE_PATH = DATA_DIR / "messages.json"

# Thread segmentation: consecutive messages further apart than this start a new thread
GAP_THRESHOLD_MINUTES = float(os.environ.get("CHATTHREADS_GAP_MINUTES", "30"))
GAP_THRESHOLD_MS = GAP_THRESHOLD_MINUTES * 60 * 1000

# Identity keys
FINGERPRINT_LENGTH = 60  # Characters of content kept in a fingerprint
NO_CONTENT = "no-content"
NO_CONVERSATION = "no-conversation"
NO_TIMESTAMP = "no-timestamp"

# Fields tried, in order, when a message has no usable content
CONTENT_FALLBACK_FIELDS = ("message", "text", "body", "answer", "summary")

# Display limits
MESSAGE_HISTORY_DAYS = 30
MAX_DISPLAYED_THREADS = 10
MAX_TRANSCRIPT_CHARS = 50_000

# Roles to include in chat history sent to a completion API
INCLUDED_ROLES = {"user", "assistant"}
