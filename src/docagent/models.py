# models.py
# Data contracts for the documentation agent.
# No business logic lives here: pure schema and validation.

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EntryKind(str, Enum):
    MODEL_TEXT = "model_text"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"


class ConversationEntry(BaseModel):
    """One step of the running conversation. Never mutated once appended."""

    model_config = ConfigDict(frozen=True)

    kind: EntryKind
    content: str = ""
    tool_name: str | None = Field(default=None, description="Set for tool_call and tool_result entries.")


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: str = Field(default="{}", description="Raw JSON object as emitted by the model.")


class ToolResult(BaseModel):
    """Outcome of a tool invocation: a content payload or an error message, never both."""

    content: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "ToolResult":
        if (self.content is None) == (self.error is None):
            raise ValueError("ToolResult needs exactly one of 'content' or 'error'.")
        return self

    @classmethod
    def ok(cls, content: str) -> "ToolResult":
        return cls(content=content)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(error=error)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def as_text(self) -> str:
        """Text fed back to the model and recorded in the conversation."""
        if self.error is not None:
            return f"❌ Error: {self.error}"
        return self.content or ""


class TaskResult(BaseModel):
    """What one model execution hands back to the orchestrator."""

    final_content: str = ""
    conversation: list[ConversationEntry] = Field(default_factory=list)
    truncated: bool = Field(default=False, description="Transport reported a length stop reason.")


class PackageManifest(BaseModel):
    """The subset of manifest.yml used to describe the package to the model."""

    model_config = ConfigDict(extra="ignore")

    name: str
    title: str = ""
    type: str = ""
    version: str = ""
    description: str = ""
