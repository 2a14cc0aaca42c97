from datetime import datetime, timedelta, timezone

from casewatch.app.models import Case
from casewatch.app.services import alerts_service
from casewatch.tests.factories import (
    enroll,
    make_course,
    make_user,
    record_attendance,
    record_communication,
    record_partial,
    record_report_card,
)


def _seed_course_with_student(db):
    coordinator = make_user(db, "coordinator")
    teacher = make_user(db, "teacher")
    student = make_user(db, "student")
    course = make_course(db, teacher=teacher)
    enroll(db, course, student)
    db.commit()
    return course, student, coordinator


def _cases_for(db, student, rule_id=None):
    query = db.query(Case).filter(Case.student_id == student.id)
    if rule_id:
        query = query.filter(Case.rule_id == rule_id)
    return query.all()


def test_three_consecutive_absences_opens_one_case_when_run_twice(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    record_attendance(sqlite_session, course, student, ["A", "A", "A", "P"])
    sqlite_session.commit()

    first = alerts_service.rule_attendance(sqlite_session, course.id, coordinator.id)
    second = alerts_service.rule_attendance(sqlite_session, course.id, coordinator.id)
    sqlite_session.commit()

    cases = _cases_for(sqlite_session, student, alerts_service.RULE_ATTENDANCE_ABSENCES)
    assert first == 1
    assert second == 0
    assert len(cases) == 1
    case = cases[0]
    assert case.status == "OPEN"
    assert case.source == "AUTOMATION"
    assert case.category == "ATTENDANCE"
    assert case.severity == "MEDIUM"
    assert case.watchers == [coordinator.id]
    assert case.assignee_id is None
    assert case.checklist == []


def test_consecutive_absences_short_circuit_percentage_rule(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    # 2 of 5 present: 40%, but the three latest are absences
    record_attendance(sqlite_session, course, student, ["A", "A", "A", "P", "P"])
    sqlite_session.commit()

    alerts_service.rule_attendance(sqlite_session, course.id, coordinator.id)
    sqlite_session.commit()

    rule_ids = {case.rule_id for case in _cases_for(sqlite_session, student)}
    assert rule_ids == {alerts_service.RULE_ATTENDANCE_ABSENCES}


def test_attendance_exactly_80_percent_does_not_fire(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    record_attendance(sqlite_session, course, student, ["P", "A", "P", "P", "P"])
    sqlite_session.commit()

    created = alerts_service.rule_attendance(sqlite_session, course.id, coordinator.id)

    assert created == 0
    assert _cases_for(sqlite_session, student) == []


def test_attendance_percentage_needs_five_records(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    # 25% present, but only four records
    record_attendance(sqlite_session, course, student, ["A", "P", "A", "T"])
    sqlite_session.commit()

    created = alerts_service.rule_attendance(sqlite_session, course.id, coordinator.id)

    assert created == 0
    assert _cases_for(sqlite_session, student) == []


def test_attendance_below_80_title_rounds_half_up(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    # 5 present of 8 = 62.5%; late and justified do not count as present
    record_attendance(sqlite_session, course, student, ["P", "T", "P", "J", "P", "A", "P", "P"])
    sqlite_session.commit()

    created = alerts_service.rule_attendance(sqlite_session, course.id, coordinator.id)
    sqlite_session.commit()

    cases = _cases_for(sqlite_session, student, alerts_service.RULE_ATTENDANCE_BELOW_80)
    assert created == 1
    assert len(cases) == 1
    assert cases[0].severity == "LOW"
    assert cases[0].title == "Low attendance: 63%"
    assert "8 records" in cases[0].description


def test_attendance_window_only_uses_ten_latest_records(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    # ten latest all present, older history full of absences
    record_attendance(sqlite_session, course, student, ["P"] * 10 + ["A"] * 10)
    sqlite_session.commit()

    assert alerts_service.rule_attendance(sqlite_session, course.id, coordinator.id) == 0


def test_inactive_enrollment_is_not_evaluated(sqlite_session):
    coordinator = make_user(sqlite_session, "coordinator")
    student = make_user(sqlite_session, "student")
    course = make_course(sqlite_session)
    enroll(sqlite_session, course, student, status="inactive")
    record_attendance(sqlite_session, course, student, ["A", "A", "A"])
    sqlite_session.commit()

    assert alerts_service.rule_attendance(sqlite_session, course.id, coordinator.id) == 0


def test_partial_with_low_writing_grade_opens_case(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    record_partial(sqlite_session, course, student, writing="D")
    sqlite_session.commit()

    created = alerts_service.rule_partials(sqlite_session, course.id, coordinator.id)
    sqlite_session.commit()

    cases = _cases_for(sqlite_session, student, alerts_service.RULE_PARTIALS_LOW)
    assert created == 1
    assert len(cases) == 1
    assert cases[0].category == "ACADEMIC_DIFFICULTY"
    assert cases[0].severity == "MEDIUM"


def test_partials_with_passing_grades_open_nothing(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    record_partial(sqlite_session, course, student, term="MAY", reading="C", writing="B")
    # attendance/commitment grades are not skills
    record_partial(sqlite_session, course, student, term="OCT", attendance="E", commitment="D")
    sqlite_session.commit()

    assert alerts_service.rule_partials(sqlite_session, course.id, coordinator.id) == 0
    assert _cases_for(sqlite_session, student) == []


def test_behavior_rule_boundary(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    now = datetime.now(timezone.utc)
    record_communication(sqlite_session, course, student, coordinator, created_at=now - timedelta(days=2))
    # outside the window and wrong category: both ignored
    record_communication(sqlite_session, course, student, coordinator, created_at=now - timedelta(days=31))
    record_communication(sqlite_session, course, student, coordinator, category="TASK", created_at=now)
    sqlite_session.commit()

    assert alerts_service.rule_behavior(sqlite_session, course.id, coordinator.id, now=now) == 0

    record_communication(sqlite_session, course, student, coordinator, created_at=now - timedelta(days=20))
    sqlite_session.commit()

    assert alerts_service.rule_behavior(sqlite_session, course.id, coordinator.id, now=now) == 1
    sqlite_session.commit()
    cases = _cases_for(sqlite_session, student, alerts_service.RULE_BEHAVIOR_30D)
    assert len(cases) == 1
    assert cases[0].category == "BEHAVIOR"
    assert "2 behavior communications" in cases[0].description


def test_report_card_exam_equal_to_five_does_not_fire(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    record_report_card(sqlite_session, course, student, exam_oral=5)
    sqlite_session.commit()

    assert alerts_service.rule_report_cards(sqlite_session, course.id, coordinator.id) == 0


def test_report_card_exam_below_five_fires_high(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    record_report_card(sqlite_session, course, student, exam_oral=4.9, final_written=90)
    sqlite_session.commit()

    assert alerts_service.rule_report_cards(sqlite_session, course.id, coordinator.id) == 1
    sqlite_session.commit()
    cases = _cases_for(sqlite_session, student, alerts_service.RULE_REPORT_CARD_EXAM)
    assert len(cases) == 1
    assert cases[0].severity == "HIGH"


def test_report_card_without_scores_opens_nothing(sqlite_session):
    course, student, coordinator = _seed_course_with_student(sqlite_session)
    record_report_card(sqlite_session, course, student)
    sqlite_session.commit()

    assert alerts_service.rule_report_cards(sqlite_session, course.id, coordinator.id) == 0
    assert _cases_for(sqlite_session, student) == []
