# tests/test_transcript.py

from __future__ import annotations

from clawrunner.agent.transcript import (
    AssistantText,
    ToolInvocation,
    ToolOutput,
    TranscriptAccumulator,
    UnitKind,
    decode_stream,
    decode_transcript,
    fold_events,
    parse_event,
)

from .fakes import ndjson


def test_reference_stream_decodes_to_paragraphs_and_markers() -> None:
    lines = ndjson(
        [
            {"type": "message", "role": "assistant", "content": "Hi "},
            {"type": "message", "role": "assistant", "content": "there"},
            {"type": "tool_use", "tool_name": "shell", "parameters": {"command": "ls"}},
            {"type": "tool_result", "output": "file.txt"},
        ]
    )
    assert decode_stream(lines) == "Hi there\n\n[TOOL_USE]shell (ls)\n\n[TOOL_RESULT]file.txt[END_RESULT]"


def test_empty_sequence_is_empty_transcript() -> None:
    assert decode_transcript([]) == ""
    assert decode_stream([]) == ""


def test_lone_tool_result_is_still_bounded() -> None:
    assert decode_transcript([ToolOutput("42")]) == "[TOOL_RESULT]42[END_RESULT]"


def test_text_after_a_marker_starts_a_new_paragraph() -> None:
    events = [
        ToolInvocation("read_file"),
        AssistantText("The file "),
        AssistantText("is empty."),
    ]
    assert decode_transcript(events) == "[TOOL_USE]read_file\n\nThe file is empty."


def test_consecutive_markers_are_separated_once() -> None:
    events = [ToolInvocation("a"), ToolInvocation("b", "echo hi"), ToolOutput("hi")]
    assert decode_transcript(events) == "[TOOL_USE]a\n\n[TOOL_USE]b (echo hi)\n\n[TOOL_RESULT]hi[END_RESULT]"


def test_accumulator_tracks_last_unit_kind() -> None:
    acc = TranscriptAccumulator()
    assert acc.last_unit == UnitKind.NONE

    acc = fold_events([AssistantText("x")], acc)
    assert acc.last_unit == UnitKind.TEXT

    acc = fold_events([ToolOutput("y")], acc)
    assert acc.last_unit == UnitKind.MARKER
    assert acc.text == "x\n\n[TOOL_RESULT]y[END_RESULT]"


def test_marker_does_not_double_an_existing_blank_line() -> None:
    acc = fold_events([AssistantText("para\n\n"), ToolInvocation("shell")])
    assert acc.text == "para\n\n[TOOL_USE]shell"


def test_garbage_and_unknown_records_are_skipped() -> None:
    lines = [
        "not json at all",
        "",
        "[1, 2, 3]",
        '{"type": "init", "session_id": "abc"}',
        '{"type": "message", "role": "user", "content": "my prompt"}',
        '{"type": "message", "role": "assistant", "content": "answer"}',
        '{"type": "result", "status": "success"}',
        '{"type": "tool_use"',
    ]
    assert decode_stream(lines) == "answer"


def test_parse_event_fills_defaults() -> None:
    assert parse_event('{"type": "tool_use"}') == ToolInvocation("unknown", None)
    assert parse_event('{"type": "tool_use", "tool_name": "shell", "parameters": {"path": "x"}}') == ToolInvocation(
        "shell", None
    )
    assert parse_event('{"type": "tool_use", "tool_name": "shell", "parameters": {"command": 3}}') == ToolInvocation(
        "shell", None
    )
    assert parse_event('{"type": "tool_result"}') == ToolOutput("")
    assert parse_event('{"type": "tool_result", "output": {"ok": true}}') == ToolOutput('{"ok": true}')


def test_surrounding_whitespace_is_trimmed() -> None:
    assert decode_transcript([AssistantText("\n  hello  \n")]) == "hello"


def test_empty_command_is_still_shown() -> None:
    event = parse_event('{"type": "tool_use", "tool_name": "shell", "parameters": {"command": ""}}')
    assert event == ToolInvocation("shell", "")
    assert decode_transcript([event]) == "[TOOL_USE]shell ()"
