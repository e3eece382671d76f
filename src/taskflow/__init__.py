"""TaskFlow: task list with priorities, subtasks, semantic search and AI subtask suggestions."""

__version__ = "0.1.0"
