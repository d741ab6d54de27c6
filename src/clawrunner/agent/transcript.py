# src/clawrunner/agent/transcript.py

"""
Stream transcript decoder.

The backend writes newline-delimited JSON records to stdout. Each record has a
"type"; we only care about three of them:

  {"type": "message", "role": "assistant", "content": "..."}
  {"type": "tool_use", "tool_name": "...", "parameters": {"command": "..."}}
  {"type": "tool_result", "output": "..."}

Everything else (other types, other roles, garbage lines) is skipped so newer
agent versions never break decoding.

Folding is a pure function over the event list. Streamed assistant tokens are
glued back into paragraphs; tool activity is set apart by blank lines:

  Hi there

  [TOOL_USE]shell (ls)

  [TOOL_RESULT]file.txt[END_RESULT]
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

TOOL_USE_MARKER = "[TOOL_USE]"
TOOL_RESULT_MARKER = "[TOOL_RESULT]"
END_RESULT_MARKER = "[END_RESULT]"

SEPARATOR = "\n\n"


@dataclass(slots=True, frozen=True)
class AssistantText:
    fragment: str


@dataclass(slots=True, frozen=True)
class ToolInvocation:
    name: str
    command: str | None = None


@dataclass(slots=True, frozen=True)
class ToolOutput:
    payload: str


TranscriptEvent = AssistantText | ToolInvocation | ToolOutput


class UnitKind(str, Enum):
    NONE = "none"
    TEXT = "text"
    MARKER = "marker"


@dataclass(slots=True, frozen=True)
class TranscriptAccumulator:
    text: str = ""
    last_unit: UnitKind = UnitKind.NONE

    def _separated(self) -> str:
        if not self.text or self.text.endswith(SEPARATOR):
            return self.text
        return self.text + SEPARATOR

    def push_text(self, fragment: str) -> TranscriptAccumulator:
        if self.last_unit == UnitKind.MARKER:
            return TranscriptAccumulator(self._separated() + fragment, UnitKind.TEXT)
        return TranscriptAccumulator(self.text + fragment, UnitKind.TEXT)

    def push_marker(self, marker: str) -> TranscriptAccumulator:
        return TranscriptAccumulator(self._separated() + marker, UnitKind.MARKER)


def format_tool_use(event: ToolInvocation) -> str:
    if event.command is not None:
        return f"{TOOL_USE_MARKER}{event.name} ({event.command})"
    return f"{TOOL_USE_MARKER}{event.name}"


def format_tool_result(event: ToolOutput) -> str:
    return f"{TOOL_RESULT_MARKER}{event.payload}{END_RESULT_MARKER}"


def event_from_record(record: dict[str, Any]) -> TranscriptEvent | None:
    kind = record.get("type")

    if kind == "message":
        if record.get("role") != "assistant":
            return None
        content = record.get("content")
        if not isinstance(content, str):
            return None
        return AssistantText(content)

    if kind == "tool_use":
        name = record.get("tool_name")
        if not isinstance(name, str) or not name:
            name = "unknown"
        params = record.get("parameters")
        command = params.get("command") if isinstance(params, dict) else None
        return ToolInvocation(name=name, command=command if isinstance(command, str) else None)

    if kind == "tool_result":
        output = record.get("output")
        if output is None:
            output = ""
        if not isinstance(output, str):
            output = json.dumps(output, ensure_ascii=False)
        return ToolOutput(output)

    return None


def parse_event(line: str) -> TranscriptEvent | None:
    """One NDJSON line -> event, or None for anything we don't understand."""
    line = line.strip()
    if not line:
        return None
    try:
        record = json.loads(line)
    except ValueError:
        return None
    if not isinstance(record, dict):
        return None
    return event_from_record(record)


def fold_events(
    events: Iterable[TranscriptEvent],
    acc: TranscriptAccumulator | None = None,
) -> TranscriptAccumulator:
    acc = acc or TranscriptAccumulator()
    for event in events:
        if isinstance(event, AssistantText):
            acc = acc.push_text(event.fragment)
        elif isinstance(event, ToolInvocation):
            acc = acc.push_marker(format_tool_use(event))
        elif isinstance(event, ToolOutput):
            acc = acc.push_marker(format_tool_result(event))
    return acc


def decode_transcript(events: Iterable[TranscriptEvent]) -> str:
    return fold_events(events).text.strip()


def decode_stream(lines: Iterable[str]) -> str:
    """Decode raw NDJSON lines (e.g. a backend's stdout) into the final transcript."""
    events = (parse_event(line) for line in lines)
    return decode_transcript(e for e in events if e is not None)
