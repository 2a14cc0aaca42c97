from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from casewatch.app.models import Case, CaseReminder, Communication
from casewatch.app.services import alerts_service, case_service
from casewatch.tests.factories import (
    auth_for,
    enroll,
    make_case,
    make_course,
    make_user,
    record_attendance,
    record_partial,
    record_report_card,
)


def _seed_staff(db):
    coordinator = make_user(db, "coordinator")
    teacher = make_user(db, "teacher")
    db.commit()
    return coordinator, teacher


def _absent_student(db, course):
    student = make_user(db, "student")
    enroll(db, course, student)
    record_attendance(db, course, student, ["A", "A", "A"])
    return student


def test_run_counts_created_cases_across_rules(sqlite_session):
    coordinator, teacher = _seed_staff(sqlite_session)
    course = make_course(sqlite_session, teacher=teacher)
    student = _absent_student(sqlite_session, course)
    record_partial(sqlite_session, course, student, speaking="E")
    record_report_card(sqlite_session, course, student, final_oral=2)
    sqlite_session.commit()

    result = alerts_service.run_alerts(sqlite_session, auth_for(coordinator), course_id=course.id)
    sqlite_session.commit()

    assert result.scanned == 1
    assert result.created == 3
    assert result.reminders_sent == 0
    rule_ids = {case.rule_id for case in sqlite_session.query(Case).filter(Case.student_id == student.id)}
    assert rule_ids == {
        alerts_service.RULE_ATTENDANCE_ABSENCES,
        alerts_service.RULE_PARTIALS_LOW,
        alerts_service.RULE_REPORT_CARD_EXAM,
    }

    again = alerts_service.run_alerts(sqlite_session, auth_for(coordinator), course_id=course.id)
    assert again.created == 0
    assert sqlite_session.query(Case).count() == 3


def test_unknown_course_raises_not_found_and_creates_nothing(sqlite_session):
    coordinator, teacher = _seed_staff(sqlite_session)
    course = make_course(sqlite_session, teacher=teacher)
    _absent_student(sqlite_session, course)
    sqlite_session.commit()

    with pytest.raises(HTTPException) as exc:
        alerts_service.run_alerts(sqlite_session, auth_for(coordinator), course_id="missing-course")

    assert exc.value.status_code == 404
    assert sqlite_session.query(Case).count() == 0


def test_default_scope_is_current_year_courses(sqlite_session):
    coordinator, teacher = _seed_staff(sqlite_session)
    now = datetime.now(timezone.utc)
    current = make_course(sqlite_session, teacher=teacher, year=now.year, name="Current")
    previous = make_course(sqlite_session, teacher=teacher, year=now.year - 1, name="Previous")
    current_student = _absent_student(sqlite_session, current)
    previous_student = _absent_student(sqlite_session, previous)
    sqlite_session.commit()

    result = alerts_service.run_alerts(sqlite_session, auth_for(coordinator), now=now)
    sqlite_session.commit()

    assert result.scanned == 1
    assert result.created == 1
    assert sqlite_session.query(Case).filter(Case.student_id == current_student.id).count() == 1
    assert sqlite_session.query(Case).filter(Case.student_id == previous_student.id).count() == 0


def test_commit_per_course_keeps_earlier_courses_on_failure(sqlite_session, monkeypatch):
    coordinator, teacher = _seed_staff(sqlite_session)
    first = make_course(sqlite_session, teacher=teacher, name="A first")
    second = make_course(sqlite_session, teacher=teacher, name="B second")
    first_student = _absent_student(sqlite_session, first)
    _absent_student(sqlite_session, second)
    sqlite_session.commit()

    original = alerts_service.rule_partials

    def _failing_partials(db, course_id, created_by):
        if course_id == second.id:
            raise RuntimeError("store unavailable")
        return original(db, course_id, created_by)

    monkeypatch.setattr(alerts_service, "rule_partials", _failing_partials)

    with pytest.raises(RuntimeError):
        alerts_service.run_alerts(sqlite_session, auth_for(coordinator), commit=True)
    sqlite_session.rollback()

    rows = sqlite_session.query(Case).all()
    assert [row.student_id for row in rows] == [first_student.id]


def test_resolved_automated_case_allows_a_new_one(sqlite_session):
    coordinator, teacher = _seed_staff(sqlite_session)
    course = make_course(sqlite_session, teacher=teacher)
    student = _absent_student(sqlite_session, course)
    sqlite_session.commit()

    alerts_service.rule_attendance(sqlite_session, course.id, coordinator.id)
    sqlite_session.commit()
    case = sqlite_session.query(Case).one()
    case_service.update_case(sqlite_session, auth_for(coordinator), case.id, {"status": "RESOLVED"})
    sqlite_session.commit()

    assert case.open_rule_key is None
    assert alerts_service.rule_attendance(sqlite_session, course.id, coordinator.id) == 1
    sqlite_session.commit()

    statuses = sorted(row.status for row in sqlite_session.query(Case).filter(Case.student_id == student.id))
    assert statuses == ["OPEN", "RESOLVED"]


def test_ensure_automated_case_recovers_from_lost_insert_race(sqlite_session, monkeypatch):
    coordinator, teacher = _seed_staff(sqlite_session)
    course = make_course(sqlite_session, teacher=teacher)
    student = make_user(sqlite_session, "student")
    sqlite_session.commit()

    kwargs = dict(
        student_id=student.id,
        course_id=course.id,
        title="Attendance",
        description="",
        category="ATTENDANCE",
        severity="MEDIUM",
        rule_id=alerts_service.RULE_ATTENDANCE_ABSENCES,
        created_by=coordinator.id,
    )
    winner, created = alerts_service.ensure_automated_case(sqlite_session, **kwargs)
    sqlite_session.commit()
    assert created is True

    # the second caller's lookup runs before the winner is visible
    original = alerts_service._find_open_automated_case
    calls = {"count": 0}

    def _stale_lookup(db, **lookup):
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return original(db, **lookup)

    monkeypatch.setattr(alerts_service, "_find_open_automated_case", _stale_lookup)

    again, created_again = alerts_service.ensure_automated_case(sqlite_session, **kwargs)
    sqlite_session.commit()

    assert created_again is False
    assert again.id == winner.id
    assert sqlite_session.query(Case).count() == 1


def test_reminder_goes_to_first_watcher_without_assignee(sqlite_session):
    coordinator, teacher = _seed_staff(sqlite_session)
    watcher_a = make_user(sqlite_session, "teacher", name="watcher-a")
    watcher_b = make_user(sqlite_session, "teacher", name="watcher-b")
    student = make_user(sqlite_session, "student")
    course = make_course(sqlite_session, teacher=teacher)
    now = datetime.now(timezone.utc)
    case = make_case(
        sqlite_session,
        student=student,
        creator=teacher,
        course=course,
        watchers=[watcher_a.id, watcher_b.id],
        updated_at=now - timedelta(days=10),
        title="Missing homework",
    )
    sqlite_session.commit()
    before = case.updated_at

    sent = alerts_service.rule_reminders(sqlite_session, coordinator.id, now=now)
    sqlite_session.commit()

    assert sent == 1
    message = sqlite_session.query(Communication).one()
    assert message.recipient_id == watcher_a.id
    assert message.student_id == student.id
    assert message.category == "ADMIN"
    assert message.title == 'Reminder: open case "Missing homework"'
    assert "7 days" in message.body
    reminder = sqlite_session.query(CaseReminder).one()
    assert reminder.target_user_id == watcher_a.id
    sqlite_session.refresh(case)
    assert case.updated_at == before


def test_reminder_prefers_assignee_and_skips_cases_without_target(sqlite_session):
    coordinator, teacher = _seed_staff(sqlite_session)
    assignee = make_user(sqlite_session, "coordinator", name="assignee")
    student = make_user(sqlite_session, "student")
    stale = datetime.now(timezone.utc) - timedelta(days=8)
    make_case(sqlite_session, student=student, creator=teacher, assignee=assignee, updated_at=stale)
    make_case(sqlite_session, student=student, creator=teacher, watchers=[], updated_at=stale)
    sqlite_session.commit()

    sent = alerts_service.rule_reminders(sqlite_session, coordinator.id)
    sqlite_session.commit()

    assert sent == 1
    message = sqlite_session.query(Communication).one()
    assert message.recipient_id == assignee.id
    # course-less case
    assert message.course_id is None


def test_reminders_ignore_fresh_and_closed_cases(sqlite_session):
    coordinator, teacher = _seed_staff(sqlite_session)
    student = make_user(sqlite_session, "student")
    now = datetime.now(timezone.utc)
    make_case(sqlite_session, student=student, creator=teacher, updated_at=now - timedelta(days=2))
    make_case(sqlite_session, student=student, creator=teacher, status="IN_PROGRESS", updated_at=now - timedelta(days=30))
    make_case(sqlite_session, student=student, creator=teacher, status="RESOLVED", updated_at=now - timedelta(days=30))
    sqlite_session.commit()

    assert alerts_service.rule_reminders(sqlite_session, coordinator.id, now=now) == 0


def test_reminders_repeat_without_cooldown_and_stop_with_it(sqlite_session):
    coordinator, teacher = _seed_staff(sqlite_session)
    student = make_user(sqlite_session, "student")
    now = datetime.now(timezone.utc)
    make_case(sqlite_session, student=student, creator=teacher, updated_at=now - timedelta(days=9))
    sqlite_session.commit()

    assert alerts_service.rule_reminders(sqlite_session, coordinator.id, now=now) == 1
    assert alerts_service.rule_reminders(sqlite_session, coordinator.id, now=now) == 1
    sqlite_session.commit()
    assert sqlite_session.query(Communication).count() == 2

    later = now + timedelta(hours=1)
    assert alerts_service.rule_reminders(sqlite_session, coordinator.id, cooldown_days=7, now=later) == 0


def test_run_sends_reminders_once_per_invocation(sqlite_session):
    coordinator, teacher = _seed_staff(sqlite_session)
    make_course(sqlite_session, teacher=teacher, name="One")
    make_course(sqlite_session, teacher=teacher, name="Two")
    student = make_user(sqlite_session, "student")
    make_case(sqlite_session, student=student, creator=teacher, updated_at=datetime.now(timezone.utc) - timedelta(days=14))
    sqlite_session.commit()

    result = alerts_service.run_alerts(sqlite_session, auth_for(coordinator), include_reminders=True)
    sqlite_session.commit()

    assert result.scanned == 2
    assert result.reminders_sent == 1
    message = sqlite_session.query(Communication).one()
    assert message.sender_id == coordinator.id
    assert message.sender_role == "coordinator"
