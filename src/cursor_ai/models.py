# models.py
# Data contracts for the conversation driver and the file-tree tools.
# Pure schema and validation.

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

DEFAULT_EXCLUDE_DIRS = ["node_modules", ".git", ".vscode", ".idea"]
DEFAULT_REPLACE_TYPES = [".js", ".ts", ".jsx", ".tsx", ".json", ".md", ".py", ".txt"]


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


class UserStep(BaseModel):
    """The request that seeds a conversation."""

    type: Literal["user"] = "user"
    prompt: str


class PlanStep(BaseModel):
    """Conversational reasoning. No side effect."""

    type: Literal["plan"] = "plan"
    plan: str


class ActionStep(BaseModel):
    """Names a registered tool and supplies its input."""

    type: Literal["action"] = "action"
    function: str = Field(..., description="Tool name, looked up in the registry.")
    input: Any = None


class ObservationStep(BaseModel):
    """Result or error text of the most recent action. Never produced by the model."""

    type: Literal["observation"] = "observation"
    observation: str


class OutputStep(BaseModel):
    """Terminal step. Signals the task is complete."""

    type: Literal["output"] = "output"
    output: str
    summary: str | None = None


# The model may only emit these three; user and observation steps are
# synthesized by the driver.
ModelStep = Annotated[PlanStep | ActionStep | OutputStep, Field(discriminator="type")]
Step = Annotated[
    UserStep | PlanStep | ActionStep | ObservationStep | OutputStep,
    Field(discriminator="type"),
]

MODEL_STEP_ADAPTER: TypeAdapter = TypeAdapter(ModelStep)


class TerminalState(str, Enum):
    COMPLETED = "completed"
    PARSE_ERROR = "parse_error"
    BUDGET_EXHAUSTED = "budget_exhausted"
    FAILED = "failed"


class ConversationResult(BaseModel):
    """Typed terminal outcome of one ConversationDriver.run()."""

    state: TerminalState
    steps_taken: int
    output: str | None = None
    summary: str | None = None
    error: str | None = None
    history: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is TerminalState.COMPLETED


# ---------------------------------------------------------------------------
# Registry outcomes
# ---------------------------------------------------------------------------


class ToolOutcome(BaseModel):
    """Result of ToolRegistry.dispatch. Returned, never raised."""

    status: Literal["ok", "not_found", "invalid_input", "failed"]
    text: str
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"


# ---------------------------------------------------------------------------
# File tree records
# ---------------------------------------------------------------------------


class FileEntry(BaseModel):
    name: str
    path: str = Field(..., description="Path relative to the walk root.")
    size: int = 0
    modified: datetime | None = None
    depth: int
    kind: Literal["file", "directory"]
    extension: str = ""


class WalkConfig(BaseModel):
    """Fixed parameters of a single walk() call."""

    root: Path
    recursive: bool = False
    max_depth: int = Field(3, ge=0)
    include_hidden: bool = False
    file_types: list[str] = Field(default_factory=list)
    exclude_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    sort_by: Literal["name", "size", "modified"] = "name"
    order: Literal["asc", "desc"] = "asc"


class WalkResult(BaseModel):
    root: Path
    files: list[FileEntry] = Field(default_factory=list)
    directories: list[FileEntry] = Field(default_factory=list)
    total_files: int = 0
    total_dirs: int = 0
    total_size: int = 0


class FileChange(BaseModel):
    file: str
    match_count: int
    was_replaced: bool


class ReplaceResult(BaseModel):
    files_processed: int = 0
    matches_found: int = 0
    replacements: int = 0
    dry_run: bool = True
    changes: list[FileChange] = Field(default_factory=list)


class SearchHit(BaseModel):
    file: str
    line: int
    content: str


# ---------------------------------------------------------------------------
# Tool inputs
# ---------------------------------------------------------------------------


class ToolInput(BaseModel):
    """
    Base for validated action inputs.

    Accepts the camelCase keys the model emits as well as snake_case.
    Tools whose wire contract is a bare string name the field it maps to
    in primary_field.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    primary_field: ClassVar[str | None] = None


class EmptyInput(ToolInput):
    pass


class BrowseInput(ToolInput):
    path: str = "."
    recursive: bool = False
    max_depth: int = Field(3, ge=0)
    include_hidden: bool = False
    file_types: list[str] = Field(default_factory=list)
    exclude_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    sort_by: Literal["name", "size", "modified"] = "name"
    order: Literal["asc", "desc"] = "asc"


class FindInput(ToolInput):
    pattern: str = Field(..., min_length=1)
    directory: str = "."
    file_types: list[str] = Field(default_factory=list)
    exclude_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    max_depth: int = Field(5, ge=0)
    include_hidden: bool = False


class SearchInput(ToolInput):
    pattern: str = Field(..., min_length=1)
    directory: str = "."
    file_extension: str | None = None


class ReplaceInput(ToolInput):
    search_text: str = Field(..., min_length=1)
    replace_text: str | None = None
    directory: str = "."
    file_types: list[str] = Field(default_factory=lambda: list(DEFAULT_REPLACE_TYPES))
    exclude_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    dry_run: bool = True


class ReadFileInput(ToolInput):
    primary_field: ClassVar[str | None] = "path"

    path: str = Field(..., min_length=1)


class WriteFileInput(ToolInput):
    path: str = Field(..., min_length=1)
    content: str


class ListFilesInput(ToolInput):
    primary_field: ClassVar[str | None] = "path"

    path: str = "."


class CommandInput(ToolInput):
    primary_field: ClassVar[str | None] = "command"

    command: str = Field(..., min_length=1)
    timeout: float | None = Field(None, gt=0)


class AnalyzeErrorInput(ToolInput):
    primary_field: ClassVar[str | None] = "error_text"

    error_text: str


class CreateProjectInput(ToolInput):
    name: str = Field(..., min_length=1)
    type: str = "node"
    template: str = "basic"
    directory: str = "."


class BackupInput(ToolInput):
    backup_path: str | None = None
    include_node_modules: bool = False
    compression: bool = False


class ConfigGetInput(ToolInput):
    primary_field: ClassVar[str | None] = "path"

    path: str = ""


class ConfigSetInput(ToolInput):
    path: str = Field(..., min_length=1)
    value: Any = None


class TemplateAddInput(ToolInput):
    type: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    template: dict[str, Any]


class TemplateRemoveInput(ToolInput):
    type: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
