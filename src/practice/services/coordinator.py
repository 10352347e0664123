"""Request orchestration: upstream calls, then activity logging."""

from typing import Any, Dict, Optional

from fastapi import Request
from starlette.background import BackgroundTasks

from practice.clients.advice import AdviceClient
from practice.clients.execution import ExecutionClient
from practice.services.activity_log import ActivityLogStore, BackgroundAppender
from practice.services.context import Context
from practice.services.envelopes import EnvelopeBuilder
from practice.services.prompts import build_advice_prompt


class Coordinator:
    """Runs a student action and records it.

    Run and advice results are returned before their envelope is written;
    the append is queued on ``background`` and its failure never reaches
    the caller.
    """

    def __init__(
        self,
        log_store: ActivityLogStore,
        appender: Optional[BackgroundAppender] = None,
        builder: Optional[EnvelopeBuilder] = None,
        execution: Optional[ExecutionClient] = None,
        advice: Optional[AdviceClient] = None,
    ):
        self.log_store = log_store
        self.appender = appender or BackgroundAppender(log_store)
        self.builder = builder or EnvelopeBuilder()
        self.execution = execution or ExecutionClient()
        self.advice = advice or AdviceClient()

    async def run_code(
        self,
        context: Context,
        code: str,
        language: str,
        stdin: Optional[str],
        background: BackgroundTasks,
    ) -> Dict[str, Any]:
        result = await self.execution.execute(language, code, stdin)

        run = result.get("run") or {}
        envelope = self.builder.build_run_envelope(
            context, code, run.get("stdout"), run.get("stderr")
        )
        background.add_task(self.appender.append, envelope)
        return result

    async def request_advice(
        self,
        context: Context,
        task: str,
        student_code: str,
        hints_used: Optional[int],
        background: BackgroundTasks,
    ) -> Dict[str, Any]:
        # Raises before anything is queued if the advice is malformed
        advice = await self.advice.get_advice(build_advice_prompt(task, student_code))

        envelope = self.builder.build_advice_envelope(
            context, student_code, advice, hints_used
        )
        background.add_task(self.appender.append, envelope)
        return advice

    async def save(self, context: Context, key: Optional[str], body: Any) -> str:
        """Explicit save; the write is the action, so its failure propagates."""
        envelope = self.builder.build_save_envelope(context, key, body)
        return await self.log_store.append(envelope)

    async def load_latest(self, context: Context, task_number: Optional[int] = None) -> str:
        return await self.log_store.resolve_latest(
            context.user_id, task_number or context.task_number
        )


def get_coordinator(request: Request) -> Coordinator:
    return request.app.state.coordinator
