"""Interactive task generation for player actions.

A task is a small hands-on exercise (edit a config line, spot an error in a
log, finish a shell command...) shown while a mitigating action runs.  Replies
from the model are parsed into a discriminated union on ``type`` and then
checked for internal consistency before being handed to the UI.
"""

from __future__ import annotations

import logging
from typing import Annotated, List, Literal, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .llm import ChatClient, clean_json_text

logger = logging.getLogger(__name__)


class _Data(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class ConfigData(_Data):
    filename: str
    content: str
    target_key: str = Field(alias="targetKey")
    current_value: str = Field(alias="currentValue")
    target_value: str = Field(alias="targetValue")


class LogData(_Data):
    logs: List[str]
    target_error: str = Field(alias="targetError")


class TerminalData(_Data):
    prompt: str
    command: str
    placeholder: str = ""
    expected_completion: str = Field(alias="expectedCompletion")


class CodeData(_Data):
    filename: str
    code: str
    issue: str = ""
    fix_hint: str = Field(default="", alias="fixHint")
    expected_fix: str = Field(alias="expectedFix")
    bug_pattern: str = Field(alias="bugPattern")


class SequenceStep(_Data):
    label: str
    button_text: str = Field(alias="buttonText")
    correct: bool


class ButtonSequenceData(_Data):
    title: str
    description: str = ""
    steps: List[SequenceStep]


class DragItem(_Data):
    id: str
    label: str
    correct_target: str = Field(alias="correctTarget")


class DropTarget(_Data):
    id: str
    label: str
    accepts: List[str] = Field(default_factory=list)


class DragDropData(_Data):
    title: str
    description: str = ""
    items: List[DragItem]
    targets: List[DropTarget]


class ChoiceOption(_Data):
    id: str
    text: str
    correct: bool
    explanation: str = ""


class MultiChoiceData(_Data):
    question: str
    options: List[ChoiceOption]


class DiagramNode(_Data):
    id: str
    label: str
    type: str = "component"
    x: float = 0.0
    y: float = 0.0
    status: str = "normal"
    required_action: str | None = Field(default=None, alias="requiredAction")
    correct_action: str | None = Field(default=None, alias="correctAction")


class DiagramData(_Data):
    title: str
    description: str = ""
    nodes: List[DiagramNode]


class MonitorMetric(_Data):
    name: str
    current: float
    target: float
    unit: str = ""
    threshold: Literal["above", "below"] = "above"


class MonitorData(_Data):
    title: str
    description: str = ""
    metrics: List[MonitorMetric]


class ConfigTask(BaseModel):
    type: Literal["config"]
    data: ConfigData


class LogTask(BaseModel):
    type: Literal["log"]
    data: LogData


class TerminalTask(BaseModel):
    type: Literal["terminal"]
    data: TerminalData


class CodeTask(BaseModel):
    type: Literal["code"]
    data: CodeData


class ButtonSequenceTask(BaseModel):
    type: Literal["button-sequence"]
    data: ButtonSequenceData


class DragDropTask(BaseModel):
    type: Literal["drag-drop"]
    data: DragDropData


class MultiChoiceTask(BaseModel):
    type: Literal["multi-choice"]
    data: MultiChoiceData


class DiagramTask(BaseModel):
    type: Literal["diagram"]
    data: DiagramData


class MonitorTask(BaseModel):
    type: Literal["monitor"]
    data: MonitorData


Task = Annotated[
    Union[
        ConfigTask,
        LogTask,
        TerminalTask,
        CodeTask,
        ButtonSequenceTask,
        DragDropTask,
        MultiChoiceTask,
        DiagramTask,
        MonitorTask,
    ],
    Field(discriminator="type"),
]

TASK_ADAPTER: TypeAdapter[Task] = TypeAdapter(Task)


def _config_line_present(data: ConfigData) -> bool:
    key, value = data.target_key, data.current_value
    for prefix in ("", "_"):
        for sep in ("=", ": ", " "):
            if f"{prefix}{key}{sep}{value}" in data.content:
                return True
    return False


def validate_task(task: Task) -> str | None:
    """Return the first internal inconsistency in ``task``, or ``None``."""

    match task:
        case ConfigTask(data=data):
            if not _config_line_present(data):
                return f"config content lacks {data.target_key}={data.current_value}"
            if data.current_value == data.target_value:
                return "config current value equals target value"
        case LogTask(data=data):
            if not any(data.target_error in line for line in data.logs):
                return f"target error {data.target_error!r} not in logs"
        case TerminalTask(data=data):
            if not data.expected_completion.strip():
                return "terminal task has no expected completion"
        case CodeTask(data=data):
            if not data.bug_pattern or data.bug_pattern not in data.code:
                return "bug pattern missing from code"
            if data.bug_pattern in data.expected_fix:
                return "bug pattern still present in expected fix"
        case ButtonSequenceTask(data=data):
            if not any(step.correct for step in data.steps):
                return "button sequence has no correct step"
        case DragDropTask(data=data):
            target_ids = {target.id for target in data.targets}
            missing = sorted({item.correct_target for item in data.items} - target_ids)
            if missing:
                return f"drag-drop items point at unknown targets {missing}"
        case MultiChoiceTask(data=data):
            if not any(option.correct for option in data.options):
                return "multi-choice has no correct option"
        case DiagramTask(data=data):
            if not data.nodes:
                return "diagram has no nodes"
        case MonitorTask(data=data):
            if not data.metrics:
                return "monitor has no metrics"
    return None


def parse_task(text: str) -> Task | None:
    try:
        task = TASK_ADAPTER.validate_json(clean_json_text(text))
    except ValidationError as exc:
        logger.warning("discarding malformed task reply: %s", exc)
        return None
    problem = validate_task(task)
    if problem is not None:
        logger.warning("rejecting inconsistent %s task: %s", task.type, problem)
        return None
    return task


TASK_SYSTEM_PROMPT = """You are a DevOps task generator for the game "UPTIME 99.99".

Given an incident and the action the player is taking to fix it, generate ONE
interactive technical task. Types: config, log, terminal, code, button-sequence,
drag-drop, multi-choice, diagram, monitor.

Pick the type from the action wording:
- restart, deploy, rollback, scale -> terminal or button-sequence
- configure, set, adjust, update config -> config
- find, debug, investigate, search logs -> log
- fix leak, patch, optimize code, fix query -> code
- categorize, match, assign -> drag-drop
- choose, select, which approach -> multi-choice
- architecture, infrastructure -> diagram
- monitor, watch, threshold -> monitor

Use real tools (systemctl, docker, kubectl, nginx, redis, postgres) and real
metrics. Consistency rules:
- config: "content" contains "{targetKey} {currentValue}", "{targetKey}={currentValue}"
  or "{targetKey}: {currentValue}", and currentValue differs from targetValue
- log: "targetError" appears in one of 50-100 realistic lines
- code: "bugPattern" appears in "code" and not in "expectedFix"

Respond with JSON only: {"type": "...", "data": {...}} using camelCase field
names (targetKey, currentValue, targetValue, targetError, expectedCompletion,
expectedFix, bugPattern, buttonText, correctTarget, requiredAction,
correctAction)."""


class TaskGenerator:
    def __init__(self, chat: ChatClient):
        self.chat = chat

    async def generate(
        self,
        incident_name: str,
        incident_description: str,
        action_name: str,
        action_description: str,
        target_node: str,
    ) -> Task | None:
        prompt = (
            f'Incident: "{incident_name}" - {incident_description}\n'
            f'Action: "{action_name}" - {action_description}\n'
            f"Target Node: {target_node}\n\n"
            "Generate ONE appropriate interactive task. Respond with JSON only."
        )
        messages = [
            {"role": "system", "content": TASK_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        try:
            reply = await self.chat.complete(messages, temperature=self.chat.config.task_temperature)
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as exc:
            logger.warning("task generation failed: %s", exc)
            return None
        return parse_task(reply)


__all__ = [
    "ButtonSequenceTask",
    "CodeTask",
    "ConfigTask",
    "DiagramTask",
    "DragDropTask",
    "LogTask",
    "MonitorTask",
    "MultiChoiceTask",
    "TASK_ADAPTER",
    "Task",
    "TaskGenerator",
    "TerminalTask",
    "parse_task",
    "validate_task",
]
