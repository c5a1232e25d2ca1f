# app/services/groups.py
"""
Grupos: creación con código de invitación, unión por código,
abandono (baja lógica) y administración de miembros.
"""
from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from typing import Literal, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import Conflict, Forbidden, InvalidInput, NotFound
from app.models.assignment import SurveyAssignment
from app.models.group import Group, GroupMember, GroupSurvey, DeactivatedGroup
from app.models.process import ProcessGroup
from app.models.user import User, Role
from app.services.access import (
    get_group_or_404, get_institution_or_404, ensure_can_manage_group, ensure_group_creator,
)
from app.services.assignments import fan_out

logger = logging.getLogger(__name__)

CODE_PREFIX = "PRO-"
CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 50


@dataclass
class JoinResult:
    status: Literal["joined", "rejoined", "already_member"]
    group: Group
    assignments_created: int


# -------------------- códigos -------------------- #

def generate_invitation_code() -> str:
    return CODE_PREFIX + "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def unique_invitation_code(db: Session) -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_invitation_code()
        if not db.query(Group.id).filter(Group.invitation_code == code).first():
            return code
    raise RuntimeError("No se pudo generar un código de invitación único")


# -------------------- consultas -------------------- #

def member_counts(db: Session, group_ids: list[UUID]) -> dict[UUID, int]:
    if not group_ids:
        return {}
    rows = (
        db.query(GroupMember.group_id, func.count(GroupMember.user_id))
        .filter(GroupMember.group_id.in_(group_ids))
        .group_by(GroupMember.group_id)
        .all()
    )
    return {gid: int(n) for gid, n in rows}


def is_member(db: Session, group_id: UUID, user_id: UUID) -> bool:
    return db.get(GroupMember, {"group_id": group_id, "user_id": user_id}) is not None


def visible_groups(db: Session, user: User, institution_id: Optional[UUID] = None) -> list[Group]:
    q = db.query(Group)
    if user.role == Role.ADMIN:
        if institution_id is not None:
            q = q.filter(Group.institution_id == institution_id)
    elif user.role == Role.INSTITUTION_ADMIN:
        q = q.filter((Group.institution_id == user.institution_id) | (Group.created_by == user.id))
    else:
        q = q.join(GroupMember, GroupMember.group_id == Group.id).filter(GroupMember.user_id == user.id)
    return q.order_by(Group.created_at.desc()).all()


def ensure_can_view_group(db: Session, user: User, group: Group) -> None:
    if is_member(db, group.id, user.id):
        return
    try:
        ensure_can_manage_group(user, group)
    except Forbidden:
        raise Forbidden("No perteneces a este grupo")


def members_of(db: Session, group_id: UUID) -> list[tuple[GroupMember, User, bool]]:
    left = {
        uid for (uid,) in db.query(DeactivatedGroup.user_id).filter(DeactivatedGroup.group_id == group_id).all()
    }
    rows = (
        db.query(GroupMember, User)
        .join(User, User.id == GroupMember.user_id)
        .filter(GroupMember.group_id == group_id)
        .order_by(GroupMember.joined_at)
        .all()
    )
    return [(m, u, u.id not in left) for m, u in rows]


# -------------------- escrituras -------------------- #

def create_group(
    db: Session,
    actor: User,
    *,
    name: str,
    description: Optional[str] = None,
    institution_id: Optional[UUID] = None,
) -> Group:
    if institution_id is not None:
        get_institution_or_404(db, institution_id)
        if actor.role != Role.ADMIN and institution_id != actor.institution_id:
            raise Forbidden("Solo puedes crear grupos en tu institución")
    else:
        institution_id = actor.institution_id

    group = Group(
        name=name.strip(),
        description=description,
        invitation_code=unique_invitation_code(db),
        created_by=actor.id,
        institution_id=institution_id,
    )
    db.add(group)
    db.flush()
    # el creador es miembro desde el inicio
    db.add(GroupMember(group_id=group.id, user_id=actor.id))
    db.flush()
    logger.info("Group %s created by %s with code %s", group.id, actor.id, group.invitation_code)
    return group


def update_group(db: Session, group_id: UUID, actor: User, *, name: Optional[str], description: Optional[str]) -> Group:
    group = get_group_or_404(db, group_id)
    ensure_group_creator(actor, group)
    if name is not None:
        group.name = name.strip()
    if description is not None:
        group.description = description
    db.flush()
    return group


def delete_group(db: Session, group_id: UUID, actor: User) -> None:
    group = get_group_or_404(db, group_id)
    ensure_group_creator(actor, group)

    # las asignaciones sobreviven; solo pierden la referencia al grupo
    db.query(SurveyAssignment).filter(SurveyAssignment.group_id == group.id).update(
        {SurveyAssignment.group_id: None}, synchronize_session=False
    )
    db.query(DeactivatedGroup).filter(DeactivatedGroup.group_id == group.id).delete(synchronize_session=False)
    db.query(ProcessGroup).filter(ProcessGroup.group_id == group.id).delete(synchronize_session=False)
    db.delete(group)  # members y survey_links caen por cascade
    db.flush()
    logger.info("Group %s deleted by %s", group_id, actor.id)


def join_group(db: Session, user: User, invitation_code: str) -> JoinResult:
    code = normalize_code(invitation_code)
    if not code:
        raise InvalidInput("El código de invitación es obligatorio")

    group = db.query(Group).filter(Group.invitation_code == code).first()
    if not group:
        raise NotFound("Código de invitación inválido")

    deactivated = next((d for d in user.deactivated_groups if d.group_id == group.id), None)

    if is_member(db, group.id, user.id):
        if deactivated is None:
            return JoinResult(status="already_member", group=group, assignments_created=0)
        user.deactivated_groups.remove(deactivated)
        status = "rejoined"
    else:
        db.add(GroupMember(group_id=group.id, user_id=user.id))
        if deactivated is not None:
            user.deactivated_groups.remove(deactivated)
        status = "joined"

    if user.institution_id is None and group.institution_id is not None:
        user.institution_id = group.institution_id
    db.flush()

    created = 0
    for link in group.survey_links:
        created += fan_out(
            db, link.survey, [user.id], target=f"group:{group.id}", group_id=group.id
        ).created

    logger.info("User %s %s group %s (%d assignments created)", user.id, status, group.id, created)
    return JoinResult(status=status, group=group, assignments_created=created)


def leave_group(db: Session, user: User, group_id: UUID) -> None:
    group = get_group_or_404(db, group_id)
    if not is_member(db, group.id, user.id):
        raise NotFound("No eres miembro de este grupo")
    if group.id in user.deactivated_group_ids:
        raise Conflict("Ya abandonaste este grupo")
    user.deactivated_groups.append(DeactivatedGroup(group_id=group.id))
    db.flush()
    logger.info("User %s left group %s", user.id, group.id)


def remove_member(db: Session, group_id: UUID, member_id: UUID, actor: User) -> None:
    group = get_group_or_404(db, group_id)
    ensure_group_creator(actor, group)
    if member_id == actor.id:
        raise InvalidInput("El creador no puede eliminarse del grupo")

    membership = db.get(GroupMember, {"group_id": group.id, "user_id": member_id})
    if not membership:
        raise NotFound("El usuario no es miembro del grupo")
    db.delete(membership)
    db.query(DeactivatedGroup).filter(
        DeactivatedGroup.group_id == group.id, DeactivatedGroup.user_id == member_id
    ).delete(synchronize_session=False)
    db.flush()


def linked_surveys(db: Session, group_id: UUID) -> list:
    links = (
        db.query(GroupSurvey)
        .filter(GroupSurvey.group_id == group_id)
        .order_by(GroupSurvey.linked_at)
        .all()
    )
    return [link.survey for link in links]
