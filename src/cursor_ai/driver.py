# driver.py
# Plan / Action / Observation / Output conversation loop.
#
# The driver owns the message history and all control flow. The model is a
# passive responder: each call returns exactly one step, and the driver
# decides what happens next.
#
# Control flow per iteration:
#   budget check → model call → parse → append raw response
#   → plan: loop | action: dispatch → observation → loop | output: done
#
# Strictly serial: the next model call is never issued before the current
# action's observation is in the history.
#
# All terminal output is delegated to display.py.

import json
import re

from loguru import logger
from pydantic import ValidationError

from cursor_ai import display
from cursor_ai.errors import StepParseError
from cursor_ai.gateway import ModelGateway
from cursor_ai.models import (
    MODEL_STEP_ADAPTER,
    ActionStep,
    ConversationResult,
    ObservationStep,
    OutputStep,
    PlanStep,
    TerminalState,
    UserStep,
)
from cursor_ai.registry import ToolRegistry

DEFAULT_MAX_STEPS = 20


# ---------------------------------------------------------------------------
# System Prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """\
You are an AI assistant for file system operations, project management and \
code work. You operate in the following states: USER, PLAN, ACTION, \
OBSERVATION, OUTPUT.

- USER: the request you must fulfil.
- PLAN: explain the next step. No side effect.
- ACTION: execute exactly one tool.
- OBSERVATION: the result of your last action, supplied by the system.
- OUTPUT: the final response, ending the task.

AVAILABLE TOOLS:
{tools}

RESPONSE FORMAT:
Every response must be exactly ONE JSON object, with no other text:

Plan:   {{"type": "plan", "plan": "<what you will do next and why>"}}
Action: {{"type": "action", "function": "<toolName>", "input": <tool input>}}
Output: {{"type": "output", "output": "<final response>", "summary": "<brief summary>"}}

RULES:
- Return ONLY ONE step at a time.
- After an action, wait for the observation before continuing.
- Read relevant files before changing them.
- Prefer dryRun before a real globalSearchReplace.
- Never emit observation or user steps yourself.

You receive the full conversation so far and return the next step.\
"""


def build_system_prompt(registry: ToolRegistry) -> str:
    return SYSTEM_PROMPT.format(tools=registry.describe())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_step(raw: str) -> PlanStep | ActionStep | OutputStep:
    """
    Validate one model response as a plan, action or output step.
    Raises StepParseError on anything else, including invalid JSON.
    """
    text = raw.strip()

    # Strip a markdown code fence if the model wrapped its JSON in one
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise StepParseError(f"Response is not valid JSON: {exc}", raw) from exc

    try:
        return MODEL_STEP_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise StepParseError(f"Response is not a valid step: {exc.errors()[0]['msg']}", raw) from exc


def observe(registry: ToolRegistry, action: ActionStep) -> ObservationStep:
    """Run one action through the registry. Tool failures become observations."""
    outcome = registry.dispatch(action.function, action.input)
    if outcome.ok:
        return ObservationStep(observation=f"Success: {outcome.text}")

    text = f"Error: {outcome.text}"
    if outcome.detail:
        text += f"\n{outcome.detail.rstrip()}"
    return ObservationStep(observation=text)


# ---------------------------------------------------------------------------
# ConversationDriver
# ---------------------------------------------------------------------------


class ConversationDriver:
    """
    Bounded step loop between a model gateway and a tool registry.

    Example:
        driver = ConversationDriver(gateway, build_registry(settings), max_steps=20)
        result = driver.run("Rename fooBar to foo_bar across src/")
    """

    def __init__(
        self,
        gateway: ModelGateway,
        registry: ToolRegistry,
        max_steps: int = DEFAULT_MAX_STEPS,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self._gateway = gateway
        self._registry = registry
        self.max_steps = max_steps

    def run(self, request: str | UserStep) -> ConversationResult:
        """
        Drive one conversation to a terminal state.

        Returns a ConversationResult in all cases: completed on an output
        step, parse_error on an unparseable response, budget_exhausted when
        max_steps model calls produced no output, failed when the gateway
        itself raised.
        """
        user = request if isinstance(request, UserStep) else UserStep(prompt=request)
        history: list[str] = [user.model_dump_json()]
        display.prompt_received(user.prompt)
        logger.info("Conversation started (max_steps={}): '{}'", self.max_steps, user.prompt[:200])

        for step_number in range(1, self.max_steps + 1):
            # ── Model call ────────────────────────────────────────────
            try:
                raw = self._gateway.generate(list(history))
            except Exception as exc:
                logger.exception("Model call failed on step {}", step_number)
                display.halt(f"Model call failed: {exc}")
                return ConversationResult(
                    state=TerminalState.FAILED,
                    steps_taken=step_number,
                    error=str(exc),
                    history=history,
                )

            # ── Parse ─────────────────────────────────────────────────
            try:
                step = parse_step(raw)
            except StepParseError as exc:
                logger.error("Step {}: unparseable response: {}", step_number, exc)
                display.parse_failure(exc.raw)
                return ConversationResult(
                    state=TerminalState.PARSE_ERROR,
                    steps_taken=step_number,
                    error=str(exc),
                    history=history,
                )

            display.step(step, step_number)
            history.append(raw)

            # ── Dispatch ──────────────────────────────────────────────
            if isinstance(step, ActionStep):
                logger.info("Step {}: action '{}'", step_number, step.function)
                observation = observe(self._registry, step)
                if observation.observation.startswith("Error:"):
                    display.action_failed(step.function)
                display.step(observation)
                history.append(observation.model_dump_json())
                continue

            if isinstance(step, OutputStep):
                logger.info("Step {}: output, conversation complete", step_number)
                display.task_complete()
                return ConversationResult(
                    state=TerminalState.COMPLETED,
                    steps_taken=step_number,
                    output=step.output,
                    summary=step.summary,
                    history=history,
                )

            logger.debug("Step {}: plan", step_number)

        logger.warning("Step budget of {} exhausted without an output step", self.max_steps)
        display.budget_exhausted(self.max_steps)
        return ConversationResult(
            state=TerminalState.BUDGET_EXHAUSTED,
            steps_taken=self.max_steps,
            error="Maximum steps reached. Task may be incomplete.",
            history=history,
        )
