"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Subtask, drafts, MutationResult)
- derive.py: filter/sort pipeline and filter counts
- task_store.py: identity-scoped task collection synced with the backend
- subtask_store.py: the same for the subtasks of one parent task
"""
