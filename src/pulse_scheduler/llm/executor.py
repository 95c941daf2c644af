# src/pulse_scheduler/llm/executor.py

from __future__ import annotations

import asyncio
import logging

from ..core.ports import LLMClient
from ..tasks.task_models import Task, TaskType
from .client import LLMNotConfiguredError, friendly_llm_error_message

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a background assistant that carries out scheduled tasks and reports the outcome."

ERROR_TEXT = "Error during background task execution."
NO_OUTPUT_TEXT = "Task executed with no output."


def build_execution_prompt(task: Task) -> str:
    return (
        f"Task Execution context: {task.description}. \n"
        "If it's news related, search for and list the latest 10 items. \n"
        "Return a detailed report in clear Markdown format."
    )


class LLMActionExecutor:
    """
    Action executor backed by the LLM.

    Never raises: every failure comes back as descriptive text so the scheduler
    can still settle (and re-arm) the task.

    REMINDER tasks are deliberately answered locally ("Reminder: <description>")
    instead of being sent to the model like the other task types, so reminders
    keep working without LLM credentials and cost no API call.
    """

    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm

    async def execute(self, task: Task) -> str:
        if task.type == TaskType.REMINDER:
            return f"Reminder: {task.description}"

        try:
            text = await asyncio.to_thread(
                self.llm.complete,
                [{"role": "user", "content": build_execution_prompt(task)}],
                SYSTEM_PROMPT,
            )
        except LLMNotConfiguredError as e:
            logger.info("Task %s: LLM not configured", task.id)
            return friendly_llm_error_message(e)
        except Exception:
            logger.exception("Task execution failed task_id=%s", task.id)
            return ERROR_TEXT

        return text.strip() or NO_OUTPUT_TEXT
