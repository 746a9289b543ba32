# errors.py
# Exception taxonomy for the conversation driver, the tool registry and the
# settings store. Traversal I/O errors have no class here: the walker
# absorbs them.


class StepParseError(Exception):
    """Raised when a model response is not a valid step. Fatal to the turn."""

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


class ToolNotFoundError(Exception):
    """Raised when an action names a tool absent from the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool '{name}' not found")
        self.name = name


class InvalidInputError(Exception):
    """Raised when an action input does not match the tool's input schema."""


class ToolExecutionError(Exception):
    """Raised when a registered tool ran and itself failed."""

    def __init__(self, name: str, cause: BaseException, detail: str = "") -> None:
        super().__init__(str(cause) or type(cause).__name__)
        self.name = name
        self.cause = cause
        self.detail = detail


class RegistryError(Exception):
    """Raised on duplicate registration or a failed completeness check."""


class SettingsError(Exception):
    """Raised when settings are used before load() or the file is corrupt."""
