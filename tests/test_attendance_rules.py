from types import SimpleNamespace

from yggdrasil.rules.attendance import (
    CONSECUTIVE_ABSENCES, LOW_ATTENDANCE, WorkflowConfig,
    attendance_rate, attendance_trend, consecutive_absences, evaluate_student
)


def records(*attended):
    """Attendance history, newest first."""
    return [SimpleNamespace(attended=value) for value in attended]


def test_rate_without_records_is_full_attendance():
    assert attendance_rate([]) == 100.0


def test_rate_counts_attended_share():
    assert attendance_rate(records(True, False, True, True)) == 75.0


def test_consecutive_absences_stop_at_first_attended():
    assert consecutive_absences(records(False, False, True, False)) == 2
    assert consecutive_absences(records(True, False, False)) == 0
    assert consecutive_absences(records(False, False, False, False), lookback=3) == 3


def test_student_without_records_produces_no_alert():
    assert evaluate_student("s1", "p1", "CS 2030", [], WorkflowConfig()) == []


def test_three_recent_absences_raise_one_medium_alert():
    history = records(False, False, False, *([True] * 10))
    alerts = evaluate_student("s1", "p1", "CS 2030", history, WorkflowConfig())

    assert [alert.type for alert in alerts] == [CONSECUTIVE_ABSENCES]
    assert alerts[0].severity == "medium"
    assert alerts[0].current_value == 3
    assert alerts[0].student_id == "s1"


def test_five_absences_are_high_severity():
    history = records(*([False] * 5), *([True] * 20))
    alerts = evaluate_student("s1", "p1", "CS 2030", history, WorkflowConfig())
    assert [(a.type, a.severity) for a in alerts] == [(CONSECUTIVE_ABSENCES, "high")]


def test_low_attendance_severity_follows_the_rate():
    config = WorkflowConfig(enabled_alerts=[LOW_ATTENDANCE])

    medium = evaluate_student("s1", "p1", "CS", records(True, True, False, True, False), config)
    assert [(a.type, a.severity) for a in medium] == [(LOW_ATTENDANCE, "medium")]

    high = evaluate_student("s1", "p1", "CS", records(False, True, False, False), config)
    assert [(a.type, a.severity) for a in high] == [(LOW_ATTENDANCE, "high")]
    assert high[0].current_value == 25.0


def test_disabled_alert_types_are_skipped():
    config = WorkflowConfig(enabled_alerts=[])
    assert evaluate_student("s1", "p1", "CS", records(False, False, False), config) == []


def test_trend_severity_bands():
    steep = attendance_trend(records(True, True, True, True), records(True, False, False, False))
    assert steep.is_decreasing
    assert steep.decline_rate == 75.0
    assert steep.severity == "high"

    mild = attendance_trend(records(*([True] * 10)), records(*([True] * 9), False))
    assert mild.is_decreasing
    assert mild.severity == "low"

    flat = attendance_trend([], [])
    assert not flat.is_decreasing
    assert flat.decline_rate == 0
