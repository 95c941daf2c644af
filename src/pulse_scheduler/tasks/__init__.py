"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskDraft, FiringRecord, enums)
- recurrence.py: next-occurrence arithmetic
- task_store.py: in-memory task collection with debounced persistence
- task_persistence.py: JSON file load/save
- task_scheduler.py: ticking scheduler that claims, fires and re-arms due tasks
- task_api.py: small high-level helpers used by connectors/commands
"""
