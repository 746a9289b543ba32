# registry.py
# Name → operation map consumed by action steps.
#
# invoke() raises distinct exceptions for a missing tool, a malformed input
# and a tool that ran and failed. dispatch() folds the same three cases
# into a ToolOutcome so the driver never has to catch anything.

import time
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from loguru import logger
from pydantic import ValidationError

from cursor_ai.errors import (
    InvalidInputError,
    RegistryError,
    ToolExecutionError,
    ToolNotFoundError,
)
from cursor_ai.models import EmptyInput, ToolInput, ToolOutcome

SLOW_MS = 1000


@dataclass(frozen=True)
class ToolDescriptor:
    """A registered tool. name is the exact-match lookup key."""

    name: str
    operation: Callable[[Any], str]
    description: str = ""
    input_model: type[ToolInput] = EmptyInput


def _format_validation_error(name: str, exc: ValidationError) -> str:
    first = exc.errors()[0]
    loc = ".".join(str(part) for part in first.get("loc", ())) or "input"
    return f"Invalid input for {name}: {loc}: {first.get('msg', 'invalid value')}"


class ToolRegistry:
    """In-process tool registry. No retry and no timeout at this layer."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            raise RegistryError(f"Tool '{descriptor.name}' is already registered")
        self._tools[descriptor.name] = descriptor
        logger.debug("Registered tool '{}'", descriptor.name)

    def verify(self, required: Iterable[str]) -> None:
        """Fail fast at startup if any required tool is missing."""
        missing = [name for name in required if name not in self._tools]
        if missing:
            raise RegistryError(f"Missing required tool(s): {', '.join(missing)}")

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def describe(self) -> str:
        """One line per tool, in registration order, for the system prompt."""
        return "\n".join(
            f"{index}. {descriptor.name}: {descriptor.description}"
            for index, descriptor in enumerate(self._tools.values(), 1)
        )

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def parse_input(self, descriptor: ToolDescriptor, payload: Any) -> ToolInput:
        model = descriptor.input_model
        if payload is None:
            payload = {}
        elif isinstance(payload, (str, int, float, bool)) and model.primary_field:
            payload = {model.primary_field: payload}
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise InvalidInputError(_format_validation_error(descriptor.name, exc)) from exc

    def invoke(self, name: str, payload: Any = None) -> str:
        descriptor = self.get(name)
        if descriptor is None:
            raise ToolNotFoundError(name)

        args = self.parse_input(descriptor, payload)
        logger.info("→ {} args={}", name, args.model_dump(exclude_defaults=True))

        t0 = time.perf_counter()
        try:
            result = descriptor.operation(args)
        except Exception as exc:
            dur_ms = (time.perf_counter() - t0) * 1000.0
            logger.error("✗ {} failed in {:.0f}ms: {}", name, dur_ms, exc)
            raise ToolExecutionError(name, exc, detail=traceback.format_exc()) from exc

        dur_ms = (time.perf_counter() - t0) * 1000.0
        if dur_ms >= SLOW_MS:
            logger.warning("✓ {} done in {:.0f}ms (SLOW)", name, dur_ms)
        else:
            logger.info("✓ {} done in {:.0f}ms", name, dur_ms)
        return str(result)

    def dispatch(self, name: str, payload: Any = None) -> ToolOutcome:
        if not self.has(name):
            logger.warning("dispatch: tool '{}' not found", name)
            return ToolOutcome(status="not_found", text=str(ToolNotFoundError(name)))
        try:
            text = self.invoke(name, payload)
        except InvalidInputError as exc:
            return ToolOutcome(status="invalid_input", text=str(exc))
        except ToolExecutionError as exc:
            return ToolOutcome(status="failed", text=str(exc), detail=exc.detail)
        return ToolOutcome(status="ok", text=text)
