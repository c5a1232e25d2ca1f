# app/services/dashboard.py
"""
Agregaciones de solo lectura para el dashboard y reportes.

Ámbito: uuid de institución => solo usuarios de esa institución;
None => global (administrador general).
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.answer import Answer
from app.models.assignment import SurveyAssignment, AssignmentStatus
from app.models.group import Group, GroupMember, GroupSurvey
from app.models.institution import Institution
from app.models.survey import Survey, Question
from app.models.user import User, Role
from app.services import windows
from app.services.completion import completions_by_survey, question_counts, total_completions
from app.services.groups import visible_groups
from app.services.surveys import active_assignments

TOP_SURVEYS = 10
TOP_STUDENT_SURVEYS = 5


def _ratio(part: int, whole: int) -> float:
    return round(part / whole, 4) if whole else 0.0


def _assignments_query(db: Session, institution_id: Optional[UUID]):
    q = db.query(SurveyAssignment)
    if institution_id is not None:
        q = q.join(User, User.id == SurveyAssignment.user_id).filter(User.institution_id == institution_id)
    return q


# -------------------- estadísticas -------------------- #

def staff_stats(db: Session, institution_id: Optional[UUID]) -> dict:
    students = db.query(func.count(User.id)).filter(User.role == Role.STUDENT)
    groups = db.query(func.count(Group.id))
    surveys = db.query(func.count(Survey.id))
    if institution_id is not None:
        students = students.filter(User.institution_id == institution_id)
        groups = groups.filter(Group.institution_id == institution_id)
        surveys = surveys.filter(Survey.institution_id == institution_id)

    assignments = _assignments_query(db, institution_id).count()
    pending = _assignments_query(db, institution_id).filter(
        SurveyAssignment.status == AssignmentStatus.PENDING
    ).count()
    completed = total_completions(db, institution_id=institution_id)

    return {
        "scope": "institution" if institution_id is not None else "global",
        "institution_id": institution_id,
        "students": students.scalar() or 0,
        "groups": groups.scalar() or 0,
        "surveys": surveys.scalar() or 0,
        "assignments": assignments,
        "pending": pending,
        "completed": completed,
        "completion_rate": _ratio(completed, assignments),
    }


def student_stats(db: Session, user: User) -> dict:
    memberships = [
        gid for (gid,) in db.query(GroupMember.group_id).filter(GroupMember.user_id == user.id).all()
    ]
    left = user.deactivated_group_ids
    active = active_assignments(db, user)
    answers = db.query(func.count(Answer.id)).filter(Answer.user_id == user.id).scalar() or 0
    return {
        "groups": len(memberships),
        "active_groups": len([g for g in memberships if g not in left]),
        "surveys": len(active),
        "pending": sum(1 for a in active if a.status == AssignmentStatus.PENDING),
        "completed": sum(1 for a in active if a.status == AssignmentStatus.COMPLETED),
        "answers": answers,
    }


# -------------------- por encuesta -------------------- #

def completion_by_survey(db: Session, institution_id: Optional[UUID], window: windows.Window) -> list[dict]:
    sq = db.query(Survey)
    if institution_id is not None:
        sq = sq.filter((Survey.institution_id == institution_id) | (Survey.institution_id.is_(None)))
    surveys = sq.order_by(Survey.created_at.desc()).all()
    if not surveys:
        return []
    ids = [s.id for s in surveys]

    aq = db.query(SurveyAssignment.survey_id, func.count(SurveyAssignment.id)).filter(
        SurveyAssignment.survey_id.in_(ids)
    )
    if institution_id is not None:
        aq = aq.join(User, User.id == SurveyAssignment.user_id).filter(User.institution_id == institution_id)
    assigned = {sid: int(n) for sid, n in aq.group_by(SurveyAssignment.survey_id).all()}

    done = completions_by_survey(
        db, survey_ids=ids, institution_id=institution_id, start=window.start, end=window.end
    )
    qcounts = question_counts(db, ids)

    return [
        {
            "survey_id": s.id,
            "title": s.title,
            "question_count": qcounts.get(s.id, 0),
            "assigned": assigned.get(s.id, 0),
            "completed": done.get(s.id, 0),
            "completion_rate": _ratio(done.get(s.id, 0), assigned.get(s.id, 0)),
        }
        for s in surveys
    ]


def _completed_in_window(q, window: windows.Window):
    q = q.filter(SurveyAssignment.status == AssignmentStatus.COMPLETED)
    if window.start is not None:
        q = q.filter(SurveyAssignment.completed_at >= window.start)
    if window.end is not None:
        q = q.filter(SurveyAssignment.completed_at <= window.end)
    return q


def submissions_by_survey(db: Session, institution_id: Optional[UUID], window: windows.Window) -> list[dict]:
    """Top de encuestas por envíos completos en la ventana."""
    q = db.query(Survey.id, Survey.title, func.count(SurveyAssignment.id).label("n")).join(
        SurveyAssignment, SurveyAssignment.survey_id == Survey.id
    )
    if institution_id is not None:
        q = q.join(User, User.id == SurveyAssignment.user_id).filter(User.institution_id == institution_id)
    q = _completed_in_window(q, window)
    rows = q.group_by(Survey.id, Survey.title).order_by(func.count(SurveyAssignment.id).desc()).limit(TOP_SURVEYS).all()
    return [{"survey_id": sid, "title": title, "submissions": int(n)} for sid, title, n in rows]


# -------------------- por institución -------------------- #

def institution_summary(db: Session, institution_id: Optional[UUID], window: windows.Window) -> list[dict]:
    iq = db.query(Institution)
    if institution_id is not None:
        iq = iq.filter(Institution.id == institution_id)
    out = []
    for inst in iq.order_by(Institution.name).all():
        students = db.query(func.count(User.id)).filter(
            User.institution_id == inst.id, User.role == Role.STUDENT
        ).scalar() or 0
        assignments = _assignments_query(db, inst.id).count()
        completed = total_completions(db, institution_id=inst.id, start=window.start, end=window.end)
        out.append({
            "institution_id": inst.id,
            "name": inst.name,
            "students": students,
            "assignments": assignments,
            "completed": completed,
            "completion_rate": _ratio(completed, assignments),
        })
    return out


# -------------------- por grupo -------------------- #

def assignment_summary(db: Session, user: User, window: windows.Window) -> list[dict]:
    """Envíos completos de los miembros de cada grupo para cada encuesta vinculada."""
    groups = visible_groups(db, user)
    if not user.is_staff:
        left = user.deactivated_group_ids
        groups = [g for g in groups if g.id not in left]

    out = []
    for g in groups:
        links = (
            db.query(GroupSurvey, Survey)
            .join(Survey, Survey.id == GroupSurvey.survey_id)
            .filter(GroupSurvey.group_id == g.id)
            .order_by(GroupSurvey.linked_at)
            .all()
        )
        if not links:
            continue
        members = db.query(GroupMember.user_id).filter(GroupMember.group_id == g.id)
        for _link, survey in links:
            q = db.query(func.count(SurveyAssignment.id)).filter(
                SurveyAssignment.survey_id == survey.id, SurveyAssignment.user_id.in_(members)
            )
            n = _completed_in_window(q, window).scalar() or 0
            out.append({
                "group_id": g.id,
                "survey_id": survey.id,
                "name": f"{survey.title} ({g.name})",
                "submissions": int(n),
            })
    return out


def student_summary(db: Session, user: User) -> list[dict]:
    rows = (
        db.query(Survey.id, Survey.title, func.count(Answer.id))
        .join(Question, Question.survey_id == Survey.id)
        .join(Answer, Answer.question_id == Question.id)
        .filter(Answer.user_id == user.id)
        .group_by(Survey.id, Survey.title)
        .order_by(func.count(Answer.id).desc())
        .limit(TOP_STUDENT_SURVEYS)
        .all()
    )
    return [{"survey_id": sid, "title": title, "submissions": int(n)} for sid, title, n in rows]


# -------------------- calendarios -------------------- #

def weekly_progress(db: Session, user: User) -> list[dict]:
    stamps = [ts for (ts,) in db.query(Answer.created_at).filter(Answer.user_id == user.id).all()]
    return windows.weekly_activity(stamps)


def _activity_user_filter(db: Session, user: User):
    """Staff ve a los estudiantes de su institución (o todos si no tiene); el resto, a sí mismo."""
    if not user.is_staff:
        return Answer.user_id == user.id
    students = db.query(User.id).filter(User.role == Role.STUDENT)
    if user.institution_id is not None:
        students = students.filter(User.institution_id == user.institution_id)
    elif user.role != Role.ADMIN:
        return Answer.user_id == user.id
    return Answer.user_id.in_(students)


def monthly_progress(db: Session, user: User, month: int, year: int) -> dict:
    start, end = windows.month_bounds(month, year)
    stamps = [
        ts for (ts,) in db.query(Answer.created_at)
        .filter(_activity_user_filter(db, user), Answer.created_at >= start, Answer.created_at <= end)
        .all()
    ]
    return windows.monthly_calendar(month, year, stamps)


# -------------------- reportes -------------------- #

def submissions_of_day(db: Session, institution_id: Optional[UUID], day: date) -> list[dict]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    q = (
        db.query(SurveyAssignment, User.name, Survey.title)
        .join(User, User.id == SurveyAssignment.user_id)
        .join(Survey, Survey.id == SurveyAssignment.survey_id)
        .filter(
            SurveyAssignment.status == AssignmentStatus.COMPLETED,
            SurveyAssignment.completed_at >= start,
            SurveyAssignment.completed_at < end,
        )
    )
    if institution_id is not None:
        q = q.filter(User.institution_id == institution_id)
    rows = q.order_by(SurveyAssignment.completed_at.desc()).all()
    return [
        {"student_name": name, "survey_name": title, "submitted_at": a.completed_at}
        for a, name, title in rows
    ]
