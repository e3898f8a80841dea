"""Tests for the event filter and history."""

import pytest

from miow.stream.events import (
    DoneEvent,
    EventKind,
    StatusMarker,
    StepEvent,
    TerminalResult,
    ThoughtEvent,
    ToolCallEvent,
)
from miow.stream.history import EventFilter, EventHistory


def test_all_kinds_enabled_by_default():
    assert EventFilter().enabled == set(EventKind)


def test_toggle_and_membership():
    event_filter = EventFilter()
    assert event_filter.toggle(EventKind.THOUGHT) is False
    assert EventKind.THOUGHT not in event_filter
    assert event_filter.toggle("Thought") is True
    assert event_filter.is_enabled("thought")


def test_disabled_kind_is_not_recorded():
    event_filter = EventFilter()
    event_filter.disable(EventKind.THOUGHT)
    history = EventHistory()

    assert history.record(StepEvent(step=1, max_steps=3, seq=1), event_filter)
    assert not history.record(ThoughtEvent(content="skip me", seq=2), event_filter)
    assert len(history) == 1


def test_markers_and_results_never_enter_history():
    event_filter = EventFilter()
    history = EventHistory()

    assert not history.record(StatusMarker(text="Indexing...", seq=1), event_filter)
    assert not history.record(TerminalResult(text="done", seq=2), event_filter)
    assert len(history) == 0


def test_filter_change_does_not_touch_recorded_history():
    event_filter = EventFilter()
    history = EventHistory()
    events = [
        StepEvent(step=1, max_steps=2, seq=1),
        ThoughtEvent(content="a", seq=2),
        ToolCallEvent(tool="grep", seq=3),
    ]
    for event in events:
        history.record(event, event_filter)

    event_filter.set_enabled([EventKind.DONE])

    assert list(history) == events
    assert history.record(DoneEvent(seq=4), event_filter)
    assert not history.record(StepEvent(step=2, max_steps=2, seq=5), event_filter)
    assert [e.seq for e in history] == [1, 2, 3, 4]


def test_history_queries():
    event_filter = EventFilter()
    history = EventHistory()
    history.record(StepEvent(step=1, max_steps=2, seq=1), event_filter)
    history.record(ThoughtEvent(content="a", seq=2), event_filter)
    history.record(StepEvent(step=2, max_steps=2, seq=3), event_filter)

    assert [e.step for e in history.of_kind(EventKind.STEP)] == [1, 2]
    assert history.last.seq == 3
    assert history[1].content == "a"
    assert EventHistory().last is None


def test_parse_filter_list():
    event_filter = EventFilter.parse("Step, toolcall,TOOL_OUTPUT")
    assert event_filter.enabled == {EventKind.STEP, EventKind.TOOL_CALL, EventKind.TOOL_OUTPUT}


@pytest.mark.parametrize("text", [None, "", "   "])
def test_parse_empty_list_enables_everything(text):
    assert EventFilter.parse(text).enabled == set(EventKind)


def test_parse_rejects_unknown_kind():
    with pytest.raises(ValueError, match="Unknown event kind 'Plan'"):
        EventFilter.parse("Step,Plan")
