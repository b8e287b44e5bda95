"""Constants used throughout gba."""


# Project layout
DATA_DIR_NAME = ".gba"
CONFIG_FILE_NAME = "config.yml"
TEMPLATES_DIR_NAME = "templates"
FEATURES_DIR_NAME = "features"

# Per-feature files, relative to .gba/features/<feature_id>/
STATE_FILE_NAME = "state.yml"
LOCK_FILE_NAME = "state.lock"
PLAN_FILE_NAME = "plan.md"
HISTORY_DIR_NAME = "history"

FEATURES_README = """# Features Directory

This directory contains state files for each feature being developed.

State files track the progress of task execution and are excluded from git.
"""

GITIGNORE_ENTRY = ".gba/features/"

# Template names
RESUME_TEMPLATE = "resume"
TEMPLATE_SUFFIX = ".md"

# Default budget when a template's front matter omits maxTurns
DEFAULT_MAX_TURNS = 100

# Feature ids are zero-padded to this many digits
FEATURE_ID_WIDTH = 4

# Agent executable
CLAUDE_EXECUTABLE = "claude"
CLAUDE_PATH_ENV = "GBA_CLAUDE_PATH"
LOG_LEVEL_ENV = "GBA_LOG_LEVEL"

# Status message written when a run is interrupted
INTERRUPTED_MESSAGE = "interrupted"

# USD per million (input, output) tokens, used to estimate the running cost
# of a session until the agent's result reports the billed total
TOKEN_PRICES_USD = {
    "opus": (15.0, 75.0),
    "sonnet": (3.0, 15.0),
    "haiku": (0.80, 4.0),
}
DEFAULT_TOKEN_PRICES_USD = TOKEN_PRICES_USD["sonnet"]
