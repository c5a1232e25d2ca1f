import os

# La configuración se lee al importar app.core.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.passwords import hash_password  # noqa: E402
from app.core.security import token_for  # noqa: E402
from app.core.timeutils import utcnow  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models.assignment import SurveyAssignment, AssignmentStatus  # noqa: E402
from app.models.group import Group, GroupMember, GroupSurvey  # noqa: E402
from app.models.institution import Institution  # noqa: E402
from app.models.survey import Survey, Question, QuestionType  # noqa: E402
from app.models.user import User, Role  # noqa: E402

PASSWORD = "secret123"
# bcrypt es lento a propósito: un solo hash para todos los usuarios de prueba
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope="session", autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db():
    """Sesión para pruebas de servicios (sin pasar por HTTP)."""
    session = SessionLocal(expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


class Factory:
    """
    Crea filas en sesiones cortas y devuelve objetos desacoplados
    para no dejar transacciones abiertas entre peticiones.
    """

    def _save(self, *objs):
        with SessionLocal(expire_on_commit=False) as s:
            s.add_all(objs)
            s.commit()
        return objs[0] if len(objs) == 1 else objs

    def institution(self, name="Colegio Central", owner=None):
        return self._save(Institution(name=name, owner_id=owner.id if owner else None))

    def user(self, name="Ana", email=None, role=Role.STUDENT, institution=None, institution_id=None):
        email = email or f"{name.lower().replace(' ', '.')}@example.com"
        if institution is not None:
            institution_id = institution.id
        return self._save(User(
            name=name,
            email=email,
            password_hash=PASSWORD_HASH,
            role=role,
            institution_id=institution_id,
        ))

    def survey(self, title="Encuesta", creator=None, institution=None, questions=(), days=30):
        now = utcnow()
        survey = self._save(Survey(
            title=title,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=days),
            institution_id=institution.id if institution else None,
            created_by=creator.id if creator else None,
        ))
        created = []
        for i, item in enumerate(questions):
            text, qtype, options = item if len(item) == 3 else (item[0], item[1], [])
            created.append(self._save(Question(
                survey_id=survey.id,
                text=text,
                type=qtype,
                options=options,
                created_at=now + timedelta(microseconds=i),
            )))
        return survey, created

    def group(self, creator, name="Grupo A", code="PRO-TEST01", institution=None, members=()):
        group = self._save(Group(
            name=name,
            invitation_code=code,
            created_by=creator.id,
            institution_id=institution.id if institution else creator.institution_id,
        ))
        self._save(*[GroupMember(group_id=group.id, user_id=u.id) for u in (creator, *members)])
        return group

    def link(self, group, survey):
        return self._save(GroupSurvey(group_id=group.id, survey_id=survey.id))

    def assign(self, survey, *users, group=None):
        return self._save(*[
            SurveyAssignment(
                user_id=u.id,
                survey_id=survey.id,
                group_id=group.id if group else None,
                status=AssignmentStatus.PENDING,
                due_date=survey.end_date,
            )
            for u in users
        ])


@pytest.fixture
def factory():
    return Factory()


def auth(user) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


TEXT = QuestionType.TEXT
SINGLE = QuestionType.SINGLE_CHOICE
MULTI = QuestionType.MULTIPLE_CHOICE
