"""Shared constants for onboarding workflows."""

from __future__ import annotations

# Workflow statuses
WORKFLOW_NOT_STARTED = "not_started"
WORKFLOW_IN_PROGRESS = "in_progress"
WORKFLOW_COMPLETED = "completed"
WORKFLOW_CANCELLED = "cancelled"
TERMINAL_WORKFLOW_STATUSES = frozenset({WORKFLOW_COMPLETED, WORKFLOW_CANCELLED})

# Step statuses
STEP_PENDING = "pending"
STEP_BLOCKED = "blocked"
STEP_IN_PROGRESS = "in-progress"
STEP_COMPLETED = "completed"
STEP_SKIPPED = "skipped"
STEP_FAILED = "failed"
FINISHED_STEP_STATUSES = frozenset({STEP_COMPLETED, STEP_SKIPPED})

# Stages, in order. COMPLETED_STAGE is the terminal marker.
PRE_BOARDING = "pre-boarding"
DAY_1 = "day-1"
WEEK_1 = "week-1"
MONTH_1 = "month-1"
COMPLETED_STAGE = "completed"
STAGES = (PRE_BOARDING, DAY_1, WEEK_1, MONTH_1)

# Progress recorded when a workflow enters each stage.
STAGE_CHECKPOINTS = {
    PRE_BOARDING: 0,
    DAY_1: 25,
    WEEK_1: 50,
    MONTH_1: 75,
    COMPLETED_STAGE: 100,
}

# Integration types
DOCUSIGN = "docusign"
BACKGROUND_CHECK = "background-check"
DOC_SEARCH = "doc-search"
INTEGRATION_TYPES = (DOCUSIGN, BACKGROUND_CHECK, DOC_SEARCH)

# Integration record statuses
INTEGRATION_PENDING = "pending"
INTEGRATION_IN_PROGRESS = "in-progress"
INTEGRATION_COMPLETED = "completed"
INTEGRATION_FAILED = "failed"

DEFAULT_MAX_RETRIES = 3
DEFAULT_SEARCH_LIMIT = 10
DEFAULT_EXPECTED_DURATION_DAYS = 30
DEFAULT_TEMPLATE = "generic"

# Exceptions
EXCEPTION_OPEN = "open"
EXCEPTION_IN_PROGRESS = "in-progress"
EXCEPTION_RESOLVED = "resolved"
INTEGRATION_FAILURE = "integration_failure"
