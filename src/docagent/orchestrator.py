# orchestrator.py
# Task state machine for one documentation run.
#
# The DocumentationTask is the kernel. The model is a passive responder; this
# class picks the next prompt and decides whether the document the tools
# produced is kept or rolled back.
#
# Control flow:
#   INIT → EXECUTING → classify reply
#     TOKEN_LIMIT_HIT → RETRY_TOKEN_LIMIT (section prompt)
#     ERROR_LIKE      → FAILED (unattended) | RETRY_ERROR on user request
#     SUCCESS         → ACCEPTED if written (unattended, with escalating retries)
#                     → AWAITING_USER_DECISION (interactive)
#
# The document sits in a transaction for the whole run: only ACCEPTED keeps
# the agent's changes; every other exit, exceptions included, restores it.
# All terminal output is delegated to display.py. No formatting here.

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol, Sequence

from docagent import display
from docagent.agent import TransportError
from docagent.bridge import ProviderError
from docagent.classifier import Classification, ResponseClassifier, classify
from docagent.document import ManagedDocument
from docagent.interaction import Prompter, UserCancelled
from docagent.models import TaskResult
from docagent.prompts import PromptBuilder
from docagent.regions import validate_preservation
from docagent.render import render_document

logger = logging.getLogger(__name__)

# Unattended: the first execution plus escalating write directives.
MAX_WRITE_ATTEMPTS = 3
# Interactive: section-based retries before the reply is presented as-is.
MAX_TOKEN_LIMIT_RETRIES = 3

ACCEPT = "Accept and finalize"
REQUEST_CHANGES = "Request changes"
CANCEL = "Cancel"
TRY_AGAIN = "Try again"
EXIT = "Exit"
EXIT_ANYWAY = "Exit anyway"

Renderer = Callable[[str, Path], tuple[str | None, bool]]


# ---------------------------------------------------------------------------
# States and results
# ---------------------------------------------------------------------------


class TaskState(str, Enum):
    INIT = "init"
    EXECUTING = "executing"
    RETRY_TOKEN_LIMIT = "retry_token_limit"
    RETRY_ERROR = "retry_error"
    AWAITING_USER_DECISION = "awaiting_user_decision"
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"
    FAILED = "failed"


class TaskOutcome(str, Enum):
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class TaskReport:
    outcome: TaskOutcome
    warnings: list[str] = field(default_factory=list)
    attempts: int = 0
    detail: str = ""


class TaskFailed(Exception):
    """Raised when a run ends in FAILED. The document has already been restored."""

    def __init__(self, message: str, report: TaskReport) -> None:
        super().__init__(message)
        self.report = report


class TaskExecutor(Protocol):
    def execute_task(self, prompt: str) -> TaskResult: ...


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------


class DocumentationTask:
    """
    Drives one agent over one managed document until a terminal state.

    Example:
        task = DocumentationTask(agent, ManagedDocument(root), prompts, root, prompter=ConsolePrompter())
        report = task.run(unattended=False)
    """

    def __init__(
        self,
        agent: TaskExecutor,
        document: ManagedDocument,
        prompts: PromptBuilder,
        package_root: Path,
        classifier: ResponseClassifier = classify,
        prompter: Prompter | None = None,
        renderer: Renderer = render_document,
    ) -> None:
        self._agent = agent
        self._document = document
        self._prompts = prompts
        self._package_root = Path(package_root)
        self._classifier = classifier
        self._prompter = prompter
        self._renderer = renderer
        self._attempts = 0
        self.state = TaskState.INIT

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, unattended: bool = False) -> TaskReport:
        """
        Run to a terminal state.

        Returns the report for ACCEPTED and CANCELLED. Raises TaskFailed for
        FAILED; TransportError and ProviderError propagate. In every case but
        ACCEPTED the document is back to its state before the run.
        """
        if not unattended and self._prompter is None:
            raise ValueError("An interactive run needs a prompter.")
        if self.state is not TaskState.INIT:
            raise RuntimeError("A DocumentationTask runs once.")

        with self._document.transaction() as txn:
            display.backup_taken(self._document.original)
            prompt = self._prompts.initial()
            try:
                if unattended:
                    report = self._run_unattended(prompt)
                else:
                    report = self._run_interactive(prompt)
            except (TransportError, ProviderError) as exc:
                self._transition(TaskState.FAILED)
                logger.error("Task aborted: %s", exc)
                raise
            if report.outcome is TaskOutcome.ACCEPTED:
                txn.commit()

        if report.outcome is TaskOutcome.FAILED:
            display.halt(report.detail)
            raise TaskFailed(report.detail, report)
        if report.outcome is TaskOutcome.CANCELLED:
            display.cancelled(report.detail)
        else:
            display.accepted()
        return report

    # ------------------------------------------------------------------
    # Unattended flow
    # ------------------------------------------------------------------

    def _run_unattended(self, prompt: str) -> TaskReport:
        result, verdict = self._execute(prompt)

        if verdict is Classification.TOKEN_LIMIT_HIT:
            self._transition(TaskState.RETRY_TOKEN_LIMIT)
            display.token_limit_hit()
            self._execute(self._prompts.section())
            if self._updated():
                return self._accept()

        if verdict is Classification.ERROR_LIKE:
            display.error_detected(unattended=True)
            return self._fail(f"The agent reported an error: {result.final_content}")

        if self._updated():
            return self._accept()

        for attempt in range(1, MAX_WRITE_ATTEMPTS):
            self._transition(TaskState.RETRY_ERROR)
            display.retrying(attempt, MAX_WRITE_ATTEMPTS - 1)
            self._execute(self._prompts.write_directive(attempt))
            if self._updated():
                return self._accept()

        return self._fail(f"README.md was not written after {MAX_WRITE_ATTEMPTS} attempts.")

    # ------------------------------------------------------------------
    # Interactive flow
    # ------------------------------------------------------------------

    def _run_interactive(self, prompt: str) -> TaskReport:
        token_retries = 0

        while True:
            result, verdict = self._execute(prompt)

            if verdict is Classification.TOKEN_LIMIT_HIT and token_retries < MAX_TOKEN_LIMIT_RETRIES:
                token_retries += 1
                self._transition(TaskState.RETRY_TOKEN_LIMIT)
                display.token_limit_hit()
                prompt = self._prompts.section()
                continue

            if verdict is Classification.ERROR_LIKE:
                display.error_detected(unattended=False)
                choice = self._select("What would you like to do?", (TRY_AGAIN, EXIT), TRY_AGAIN)
                if choice == CANCEL:
                    return self._cancel()
                if choice == EXIT:
                    return self._fail(f"Exited after an agent error: {result.final_content}")
                self._transition(TaskState.RETRY_ERROR)
                prompt = self._prompts.error_retry()
                continue

            self._transition(TaskState.AWAITING_USER_DECISION)
            updated = self._preview()
            decision = self._decide(updated)
            if isinstance(decision, TaskReport):
                return decision
            prompt = decision

    def _preview(self) -> bool:
        """Show the current document. Returns whether it counts as updated."""
        if not self._updated():
            display.document_not_updated()
            return False

        content = self._document.read() or ""
        rendered, applicable = self._renderer(content, self._package_root)
        if applicable and rendered is not None:
            display.preview(rendered)
        else:
            display.render_failed()
        return True

    def _decide(self, updated: bool) -> TaskReport | str:
        """Ask until the user picks a terminal action or provides the next prompt."""
        while True:
            choice = self._select("What would you like to do?", (ACCEPT, REQUEST_CHANGES, CANCEL), ACCEPT)

            if choice == CANCEL:
                return self._cancel()

            if choice == ACCEPT:
                if updated:
                    return self._accept()
                follow_up = self._select(
                    "README.md file wasn't updated. What would you like to do?",
                    (TRY_AGAIN, EXIT_ANYWAY),
                    TRY_AGAIN,
                )
                if follow_up == CANCEL:
                    return self._cancel()
                if follow_up == EXIT_ANYWAY:
                    return self._cancel("Exiting without creating README.md.")
                return self._prompts.not_written()

            try:
                changes = self._prompter.ask_text("What changes would you like to make to the documentation?")
            except UserCancelled:
                display.note("Changes request cancelled.")
                continue
            if not changes.strip():
                display.note("No changes specified. Please try again.")
                continue
            return self._prompts.revision(changes)

    def _select(self, message: str, choices: Sequence[str], default: str) -> str:
        """A cancelled selection reads as CANCEL."""
        try:
            choice = self._prompter.select(message, choices, default)
        except UserCancelled:
            return CANCEL
        logger.debug("User chose %r", choice)
        return choice

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _transition(self, state: TaskState) -> None:
        logger.debug("Task state %s -> %s", self.state.value, state.value)
        self.state = state

    def _execute(self, prompt: str) -> tuple[TaskResult, Classification]:
        self._transition(TaskState.EXECUTING)
        self._attempts += 1

        with display.AnimatedStatus("Agent is working") as status:
            try:
                result = self._agent.execute_task(prompt)
            except (TransportError, ProviderError):
                status.error("Agent task failed")
                raise
            status.finish("Task completed")

        logger.debug(
            "Agent reply: %d characters, %d conversation entries, truncated=%s",
            len(result.final_content),
            len(result.conversation),
            result.truncated,
        )
        logger.debug("Agent reply content: %s", result.final_content)
        display.agent_response(result.final_content)

        verdict = self._classifier(result.final_content, result.conversation, result.truncated)
        logger.debug("Reply classified as %s", verdict.value)
        return result, verdict

    def _updated(self) -> bool:
        return self._document.has_changed() and bool(self._document.read())

    def _accept(self) -> TaskReport:
        self._transition(TaskState.ACCEPTED)
        content = self._document.read() or ""
        display.document_updated(content)

        warnings: list[str] = []
        if self._document.original is not None:
            warnings = validate_preservation(self._document.original, content)
        for warning in warnings:
            logger.warning(warning)
        display.preservation_warnings(warnings)

        return TaskReport(TaskOutcome.ACCEPTED, warnings, self._attempts, f"README.md updated ({len(content)} characters)")

    def _cancel(self, message: str = "Documentation update cancelled.") -> TaskReport:
        self._transition(TaskState.CANCELLED)
        return TaskReport(TaskOutcome.CANCELLED, attempts=self._attempts, detail=message)

    def _fail(self, detail: str) -> TaskReport:
        self._transition(TaskState.FAILED)
        return TaskReport(TaskOutcome.FAILED, attempts=self._attempts, detail=detail)
