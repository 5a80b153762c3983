# agent.py
# Tool-calling model loop.
#
# The Agent owns the message history for one task and routes every tool call
# the model emits through the ToolRegistry. The model never touches the
# filesystem or a provider directly; it only sees tool results.
#
# Control flow per execute_task():
#   user prompt → model → tool calls? → registry → results appended → model …
#   until the model answers without tool calls or the round budget runs out.
#
# All terminal output is delegated to display.py. No formatting here.

import logging

import openai
from openai import OpenAI

from docagent import display
from docagent.config import Settings
from docagent.models import ConversationEntry, EntryKind, TaskResult, ToolCall
from docagent.prompts import SYSTEM_PROMPT
from docagent.tools import ToolRegistry

logger = logging.getLogger(__name__)

MAX_ITERATIONS_REPLY = "Task did not complete within maximum iterations"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TransportError(Exception):
    """Raised when the model endpoint cannot be reached or rejects a request. Task-fatal."""


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class Agent:
    """
    Conversation with one model, equipped with one tool registry.

    The history persists across execute_task() calls, so a revision prompt
    sees everything the model did before.

    Example:
        agent = Agent.from_settings(settings, registry)
        result = agent.execute_task("Write the README.")
    """

    def __init__(
        self,
        model: str,
        registry: ToolRegistry,
        client: OpenAI,
        max_iterations: int = 25,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self._model = model
        self._registry = registry
        self._client = client
        self._max_iterations = max_iterations
        self._messages: list[dict] = [{"role": "system", "content": system_prompt}]
        self._conversation: list[ConversationEntry] = []

    @classmethod
    def from_settings(cls, settings: Settings, registry: ToolRegistry) -> "Agent":
        try:
            client = OpenAI(
                base_url=settings.base_url,
                api_key=settings.api_key,
                timeout=settings.request_timeout,
            )
        except openai.OpenAIError as exc:
            raise TransportError(f"cannot create model client: {exc}") from exc
        return cls(settings.model, registry, client, settings.max_iterations)

    @property
    def model(self) -> str:
        return self._model

    @property
    def conversation(self) -> list[ConversationEntry]:
        return list(self._conversation)

    # ------------------------------------------------------------------
    # Low-level model calls
    # ------------------------------------------------------------------

    def _call_model(self):
        kwargs = {"model": self._model, "messages": list(self._messages)}
        definitions = self._registry.definitions()
        if definitions:
            kwargs["tools"] = definitions

        try:
            response = self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            raise TransportError(f"model request failed: {exc}") from exc

        if not response.choices:
            raise TransportError("model returned no choices")
        return response.choices[0]

    def _record(self, kind: EntryKind, content: str, tool_name: str | None = None) -> None:
        self._conversation.append(ConversationEntry(kind=kind, content=content, tool_name=tool_name))

    # ------------------------------------------------------------------
    # Tool routing
    # ------------------------------------------------------------------

    def _run_tool(self, call: ToolCall) -> None:
        display.tool_call(call.name, call.arguments)
        self._record(EntryKind.TOOL_CALL, call.arguments, call.name)

        result = self._registry.invoke(call.name, call.arguments)
        text = result.as_text()

        display.tool_result(text, result.is_error)
        self._record(EntryKind.TOOL_RESULT, text, call.name)
        self._messages.append({"role": "tool", "tool_call_id": call.id, "content": text})

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def execute_task(self, prompt: str) -> TaskResult:
        """
        Send `prompt` and drive tool rounds until the model stops calling tools.

        Tool errors go back to the model as results. TransportError and
        ProviderError propagate.
        """
        self._messages.append({"role": "user", "content": prompt})

        for iteration in range(self._max_iterations):
            choice = self._call_model()
            message = choice.message
            text = (message.content or "").strip()
            calls = [
                ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "{}")
                for tc in (message.tool_calls or [])
            ]
            logger.debug(
                "Model round %d: finish_reason=%s, %d characters, %d tool calls",
                iteration + 1,
                choice.finish_reason,
                len(text),
                len(calls),
            )

            if text:
                self._record(EntryKind.MODEL_TEXT, text)

            assistant: dict = {"role": "assistant", "content": text or None}
            if calls:
                assistant["tool_calls"] = [
                    {"id": c.id, "type": "function", "function": {"name": c.name, "arguments": c.arguments}}
                    for c in calls
                ]
            self._messages.append(assistant)

            if not calls:
                return TaskResult(
                    final_content=text,
                    conversation=self.conversation,
                    truncated=choice.finish_reason == "length",
                )

            for call in calls:
                self._run_tool(call)

        logger.warning("Model did not finish within %d rounds", self._max_iterations)
        self._record(EntryKind.MODEL_TEXT, MAX_ITERATIONS_REPLY)
        return TaskResult(final_content=MAX_ITERATIONS_REPLY, conversation=self.conversation)
