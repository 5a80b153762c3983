# classifier.py
# Decides what a model reply means for the orchestrator.
#
# Length-limit replies are recoverable and are checked first, so a truncated
# reply is never mistaken for a failure. Failure phrases are overridden when
# the recent tool history shows the work actually landed: the model's summary
# can misdescribe a run whose side effects completed.
#
# Phrase matching is a heuristic. A structured truncation signal from the
# transport is honoured alongside it.

from enum import Enum
from typing import Protocol, Sequence

from docagent.models import ConversationEntry, EntryKind


class Classification(str, Enum):
    SUCCESS = "success"
    TOKEN_LIMIT_HIT = "token_limit_hit"
    ERROR_LIKE = "error_like"


TOKEN_LIMIT_PHRASES = (
    "i reached the maximum response length",
    "maximum response length",
    "reached the token limit",
    "response is too long",
    "breaking this into smaller tasks",
    "due to length constraints",
    "response length limit",
    "token limit reached",
    "output limit exceeded",
    "maximum length exceeded",
)

FAILURE_PHRASES = (
    "i encountered an error",
    "i'm experiencing an error",
    "i cannot complete",
    "i'm unable to complete",
    "something went wrong",
    "there was an error",
    "i'm having trouble",
    "i failed to",
    "error occurred",
    "task did not complete within maximum iterations",
)

TOOL_SUCCESS_PHRASES = ("✅ success", "successfully wrote", "completed successfully")
TOOL_FAILURE_PHRASES = ("❌ error", "failed:", "access denied")

# How many trailing conversation entries are inspected for tool outcomes.
RECENT_ENTRIES = 5


def _contains_any(text: str, phrases: Sequence[str]) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in phrases)


def is_token_limit_message(reply: str) -> bool:
    return _contains_any(reply, TOKEN_LIMIT_PHRASES)


def has_recent_successful_tools(conversation: Sequence[ConversationEntry]) -> bool:
    """
    True when, scanning the last few entries newest first, a tool result
    reporting success is met before one reporting failure.
    """
    for entry in reversed(conversation[-RECENT_ENTRIES:]):
        if entry.kind is not EntryKind.TOOL_RESULT:
            continue
        if _contains_any(entry.content, TOOL_SUCCESS_PHRASES):
            return True
        if _contains_any(entry.content, TOOL_FAILURE_PHRASES):
            return False
    return False


def classify(
    reply: str,
    conversation: Sequence[ConversationEntry] = (),
    truncated: bool = False,
) -> Classification:
    if truncated or is_token_limit_message(reply):
        return Classification.TOKEN_LIMIT_HIT

    # An empty reply usually just means the turn ended on a tool call.
    if not reply.strip():
        return Classification.SUCCESS

    if _contains_any(reply, FAILURE_PHRASES) and not has_recent_successful_tools(conversation):
        return Classification.ERROR_LIKE

    return Classification.SUCCESS


class ResponseClassifier(Protocol):
    def __call__(
        self,
        reply: str,
        conversation: Sequence[ConversationEntry] = (),
        truncated: bool = False,
    ) -> Classification: ...
