import csv
import io
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from openpyxl import load_workbook

from app.db.session import SessionLocal
from app.models.answer import Answer
from app.models.assignment import SurveyAssignment
from app.models.audit import AuditLog
from app.models.group import GroupSurvey
from app.models.survey import Question, Survey
from app.models.user import Role

from conftest import auth

API = "/api/v1"


def _dates(days=30):
    start = datetime.now(timezone.utc)
    return {"startDate": start.isoformat(), "endDate": (start + timedelta(days=days)).isoformat()}


@pytest.fixture
def staff(factory):
    inst = factory.institution("Colegio Central")
    profe = factory.user("Profesora", role=Role.INSTITUTION_ADMIN, institution=inst)
    return inst, profe


def _create_survey(client, user, title="Clima escolar", questions=()):
    r = client.post(f"{API}/surveys", json={"title": title, "description": "Anual", **_dates()}, headers=auth(user))
    assert r.status_code == 201, r.text
    survey = r.json()
    qids = []
    for q in questions:
        rq = client.post(f"{API}/surveys/{survey['id']}/questions", json=q, headers=auth(user))
        assert rq.status_code == 201, rq.text
        qids.append(rq.json()["id"])
    return survey, qids


class TestSurveyCrud:
    def test_creator_is_assigned_automatically(self, client, staff):
        inst, profe = staff
        survey, _ = _create_survey(client, profe)
        assert survey["institutionId"] == str(inst.id)
        assert survey["questionCount"] == 0

        assigned = client.get(f"{API}/surveys/assigned", headers=auth(profe)).json()
        assert len(assigned) == 1
        assert assigned[0]["status"] == "PENDING"
        assert assigned[0]["survey"]["title"] == "Clima escolar"
        assert assigned[0]["dueDate"] is not None

        with SessionLocal() as s:
            assert s.query(AuditLog).filter(AuditLog.action == "survey.create").count() == 1

    def test_student_cannot_create(self, client, factory):
        student = factory.user("Alumno")
        r = client.post(f"{API}/surveys", json={"title": "X", **_dates()}, headers=auth(student))
        assert r.status_code == 403

    def test_end_before_start_is_rejected(self, client, staff):
        _, profe = staff
        d = _dates()
        r = client.post(
            f"{API}/surveys",
            json={"title": "X", "startDate": d["endDate"], "endDate": d["startDate"]},
            headers=auth(profe),
        )
        assert r.status_code == 400

    def test_new_end_date_moves_assignment_deadlines(self, client, staff):
        _, profe = staff
        survey, _ = _create_survey(client, profe)
        new_end = "2030-01-31T12:00:00+00:00"

        r = client.put(f"{API}/surveys/{survey['id']}", json={"endDate": new_end}, headers=auth(profe))
        assert r.status_code == 200
        assert r.json()["endDate"].startswith("2030-01-31T12:00:00")

        assigned = client.get(f"{API}/surveys/assigned", headers=auth(profe)).json()
        assert assigned[0]["dueDate"].startswith("2030-01-31T12:00:00")

    def test_unknown_survey(self, client, staff):
        _, profe = staff
        r = client.get(f"{API}/surveys/00000000-0000-0000-0000-000000000000", headers=auth(profe))
        assert r.status_code == 404

    def test_other_institution_cannot_edit(self, client, factory, staff):
        _, profe = staff
        survey, _ = _create_survey(client, profe)
        rival = factory.user("Rival", role=Role.INSTITUTION_ADMIN, institution=factory.institution("Otro Colegio"))
        r = client.put(f"{API}/surveys/{survey['id']}", json={"title": "Mío"}, headers=auth(rival))
        assert r.status_code == 403

    def test_other_institution_cannot_read(self, client, factory, staff):
        _, profe = staff
        survey, _ = _create_survey(client, profe, questions=[{"text": "Comentario", "type": "TEXT"}])
        outsider = factory.user("Ajena", institution=factory.institution("Otro Colegio"))
        assert client.get(f"{API}/surveys/{survey['id']}", headers=auth(outsider)).status_code == 403
        assert client.get(f"{API}/surveys/{survey['id']}/questions", headers=auth(outsider)).status_code == 403

        # con asignación sí puede verla
        with SessionLocal(expire_on_commit=False) as s:
            row = s.get(Survey, uuid.UUID(survey["id"]))
        factory.assign(row, outsider)
        assert client.get(f"{API}/surveys/{survey['id']}", headers=auth(outsider)).status_code == 200
        assert client.get(f"{API}/surveys/{survey['id']}/questions", headers=auth(outsider)).status_code == 200


class TestQuestions:
    def test_questions_are_listed_in_creation_order(self, client, staff):
        _, profe = staff
        survey, _ = _create_survey(client, profe, questions=[
            {"text": "Comentario", "type": "text"},
            {"text": "Color", "type": "SINGLE_CHOICE", "options": ["Rojo", " Azul "]},
        ])
        qs = client.get(f"{API}/surveys/{survey['id']}/questions", headers=auth(profe)).json()
        assert [q["text"] for q in qs] == ["Comentario", "Color"]
        assert qs[0]["type"] == "TEXT" and qs[0]["options"] == []
        assert qs[1]["options"] == ["Rojo", "Azul"]

    @pytest.mark.parametrize("body", [
        {"text": "Color", "type": "SINGLE_CHOICE", "options": ["Rojo"]},
        {"text": "Color", "type": "MULTIPLE_CHOICE", "options": ["Rojo", "Rojo"]},
        {"text": "Color", "type": "RATING", "options": []},
        {"text": "", "type": "TEXT"},
    ])
    def test_invalid_question(self, client, staff, body):
        _, profe = staff
        survey, _ = _create_survey(client, profe)
        r = client.post(f"{API}/surveys/{survey['id']}/questions", json=body, headers=auth(profe))
        assert r.status_code == 400

    def test_update_question(self, client, staff):
        _, profe = staff
        survey, (qid,) = _create_survey(client, profe, questions=[{"text": "Color", "type": "TEXT"}])
        r = client.put(
            f"{API}/surveys/{survey['id']}/questions/{qid}",
            json={"text": "Color favorito", "type": "SINGLE_CHOICE", "options": ["Rojo", "Verde"]},
            headers=auth(profe),
        )
        assert r.status_code == 200
        assert r.json()["options"] == ["Rojo", "Verde"]

    def test_no_new_questions_once_answered(self, client, factory, staff):
        inst, profe = staff
        student = factory.user("Alumna", institution=inst)
        survey, (qid,) = _create_survey(client, profe, questions=[{"text": "Comentario", "type": "TEXT"}])
        client.post(f"{API}/surveys/{survey['id']}/assign", headers=auth(profe))
        r = client.post(
            f"{API}/surveys/{survey['id']}/answers",
            json={"answers": [{"questionId": qid, "value": "listo"}]},
            headers=auth(student),
        )
        assert r.json()["status"] == "COMPLETED"

        r = client.post(f"{API}/surveys/{survey['id']}/questions", json={"text": "P2", "type": "TEXT"}, headers=auth(profe))
        assert r.status_code == 409

        stats = client.get(f"{API}/dashboard/stats", headers=auth(profe)).json()
        assert (stats["pending"], stats["completed"]) == (1, 1)
        mine = client.get(f"{API}/dashboard/stats", headers=auth(student)).json()
        assert (mine["pending"], mine["completed"]) == (0, 1)

    def test_answered_question_keeps_type_and_options(self, client, factory, staff):
        inst, profe = staff
        student = factory.user("Alumna", institution=inst)
        survey, (qid,) = _create_survey(client, profe, questions=[
            {"text": "Color", "type": "SINGLE_CHOICE", "options": ["Rojo", "Azul"]},
        ])
        client.post(f"{API}/surveys/{survey['id']}/assign", headers=auth(profe))
        client.post(
            f"{API}/surveys/{survey['id']}/answers",
            json={"answers": [{"questionId": qid, "options": ["Azul"]}]},
            headers=auth(student),
        )
        url = f"{API}/surveys/{survey['id']}/questions/{qid}"

        r = client.put(url, json={"text": "Color", "type": "SINGLE_CHOICE", "options": ["Rojo", "Verde"]}, headers=auth(profe))
        assert r.status_code == 409
        r = client.put(url, json={"text": "Color", "type": "TEXT"}, headers=auth(profe))
        assert r.status_code == 409

        r = client.put(url, json={"text": "Color preferido", "type": "single_choice", "options": ["Rojo", "Azul"]}, headers=auth(profe))
        assert r.status_code == 200
        assert r.json()["text"] == "Color preferido"


class TestAnswersApi:
    def test_assign_submit_and_results(self, client, factory, staff):
        inst, profe = staff
        student = factory.user("Alumna", institution=inst)
        survey, (q_text, q_color) = _create_survey(client, profe, questions=[
            {"text": "Comentario", "type": "TEXT"},
            {"text": "Color", "type": "SINGLE_CHOICE", "options": ["Rojo", "Azul"]},
        ])

        r = client.post(f"{API}/surveys/{survey['id']}/assign", headers=auth(profe))
        assert r.status_code == 200, r.text
        assert r.json()["created"] == 1

        r = client.post(
            f"{API}/surveys/{survey['id']}/questions/{q_text}/answer",
            json={"value": "Me gusta"},
            headers=auth(student),
        )
        assert r.status_code == 201
        assert r.json()["status"] == "PENDING"

        r = client.post(
            f"{API}/surveys/{survey['id']}/answers",
            json={"answers": [{"questionId": q_color, "options": ["Azul"]}]},
            headers=auth(student),
        )
        assert r.status_code == 201
        assert r.json() == {
            "surveyId": survey["id"], "created": 1, "answered": 2, "totalQuestions": 2, "status": "COMPLETED",
        }

        results = client.get(f"{API}/surveys/{survey['id']}/results", headers=auth(profe)).json()
        assert results["respondents"] == 1
        by_text = {q["text"]: q for q in results["questions"]}
        assert by_text["Comentario"]["answers"] == ["Me gusta"]
        assert by_text["Color"]["optionCounts"] == {"Rojo": 0, "Azul": 1}

    def test_duplicate_answer_is_conflict(self, client, factory, staff):
        inst, profe = staff
        student = factory.user("Alumna", institution=inst)
        survey, (qid,) = _create_survey(client, profe, questions=[{"text": "Comentario", "type": "TEXT"}])
        client.post(f"{API}/surveys/{survey['id']}/assign", headers=auth(profe))
        body = {"answers": [{"questionId": qid, "value": "uno"}]}

        assert client.post(f"{API}/surveys/{survey['id']}/answers", json=body, headers=auth(student)).status_code == 201
        r = client.post(f"{API}/surveys/{survey['id']}/answers", json=body, headers=auth(student))
        assert r.status_code == 409

    def test_orphan_submission_is_not_found(self, client, factory, staff):
        _, profe = staff
        stranger = factory.user("Extraña")
        survey, (qid,) = _create_survey(client, profe, questions=[{"text": "Comentario", "type": "TEXT"}])
        r = client.post(
            f"{API}/surveys/{survey['id']}/answers",
            json={"answers": [{"questionId": qid, "value": "hola"}]},
            headers=auth(stranger),
        )
        assert r.status_code == 404

    def test_empty_submission_is_invalid(self, client, staff):
        _, profe = staff
        survey, _ = _create_survey(client, profe)
        r = client.post(f"{API}/surveys/{survey['id']}/answers", json={"answers": []}, headers=auth(profe))
        assert r.status_code == 400

    def test_my_answer_history(self, client, factory, staff):
        inst, profe = staff
        student = factory.user("Alumna", institution=inst)
        other = factory.user("Otra", institution=inst)
        survey, (q_text, q_color) = _create_survey(client, profe, questions=[
            {"text": "Comentario", "type": "TEXT"},
            {"text": "Color", "type": "SINGLE_CHOICE", "options": ["Rojo", "Azul"]},
        ])
        client.post(f"{API}/surveys/{survey['id']}/assign", headers=auth(profe))
        client.post(f"{API}/surveys/{survey['id']}/questions/{q_text}/answer", json={"value": "hola"}, headers=auth(student))
        client.post(f"{API}/surveys/{survey['id']}/questions/{q_color}/answer", json={"options": ["Rojo"]}, headers=auth(student))
        client.post(f"{API}/surveys/{survey['id']}/questions/{q_text}/answer", json={"value": "ajena"}, headers=auth(other))

        r = client.get(f"{API}/surveys/{survey['id']}/answers/me", headers=auth(student))
        assert r.status_code == 200
        history = r.json()
        assert [(h["questionText"], h["value"], h["options"]) for h in history] == [
            ("Color", None, ["Rojo"]),
            ("Comentario", "hola", []),
        ]
        assert history[0]["createdAt"] >= history[1]["createdAt"]

        assert client.get(f"{API}/surveys/{survey['id']}/answers/me", headers=auth(profe)).json() == []


class TestDeleteSurvey:
    def test_removes_everything_that_depends_on_it(self, client, factory, staff):
        inst, profe = staff
        student = factory.user("Alumna", institution=inst)
        group = factory.group(profe, code="PRO-DEL001", members=[student])
        survey, (qid,) = _create_survey(client, profe, questions=[{"text": "Comentario", "type": "TEXT"}])
        client.post(f"{API}/surveys/{survey['id']}/assign-to-group", json={"groupId": str(group.id)}, headers=auth(profe))
        client.post(
            f"{API}/surveys/{survey['id']}/answers",
            json={"answers": [{"questionId": qid, "value": "hola"}]},
            headers=auth(student),
        )

        r = client.delete(f"{API}/surveys/{survey['id']}", headers=auth(profe))
        assert r.status_code == 204

        with SessionLocal() as s:
            assert s.query(Survey).count() == 0
            assert s.query(Question).count() == 0
            assert s.query(Answer).count() == 0
            assert s.query(SurveyAssignment).count() == 0
            assert s.query(GroupSurvey).count() == 0
            assert s.query(AuditLog).filter(AuditLog.action == "survey.delete").count() == 1
        assert client.get(f"{API}/surveys/{survey['id']}", headers=auth(profe)).status_code == 404

    def test_student_cannot_delete(self, client, factory, staff):
        inst, profe = staff
        survey, _ = _create_survey(client, profe)
        student = factory.user("Alumna", institution=inst)
        assert client.delete(f"{API}/surveys/{survey['id']}", headers=auth(student)).status_code == 403


class TestExport:
    @pytest.fixture
    def answered(self, client, factory, staff):
        inst, profe = staff
        carlos = factory.user("Carlos", institution=inst)
        beatriz = factory.user("Beatriz", institution=inst)
        survey, (q_text, q_color, q_fruit) = _create_survey(client, profe, questions=[
            {"text": "Comentario", "type": "TEXT"},
            {"text": "Color", "type": "SINGLE_CHOICE", "options": ["Rojo", "Azul"]},
            {"text": "Frutas", "type": "MULTIPLE_CHOICE", "options": ["Manzana", "Pera, verde", "Uva"]},
        ])
        client.post(f"{API}/surveys/{survey['id']}/assign", headers=auth(profe))
        for user, comment, color, fruits in (
            (carlos, 'Dijo "hola", y se fue', "Rojo", ["Manzana", "Pera, verde"]),
            (beatriz, "Todo bien", "Azul", ["Uva"]),
        ):
            r = client.post(
                f"{API}/surveys/{survey['id']}/answers",
                json={"answers": [
                    {"questionId": q_text, "value": comment},
                    {"questionId": q_color, "options": [color]},
                    {"questionId": q_fruit, "options": fruits},
                ]},
                headers=auth(user),
            )
            assert r.status_code == 201, r.text
        return profe, survey, carlos, beatriz

    def test_csv_has_one_row_per_respondent(self, client, answered):
        profe, survey, carlos, beatriz = answered
        r = client.get(f"{API}/surveys/{survey['id']}/export", headers=auth(profe))
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/csv")
        assert 'filename="resultados-Clima_escolar.csv"' in r.headers["content-disposition"]

        raw = r.text
        assert '"Dijo ""hola"", y se fue"' in raw
        assert '"Manzana, Pera, verde"' in raw

        rows = list(csv.reader(io.StringIO(raw)))
        header, data = rows[0], rows[1:]
        assert len(header) == 6
        assert header[:3] == ["UserID", "Nombre", "Email"]
        assert set(header[3:]) == {"Comentario", "Color", "Frutas"}
        assert len(data) == 2

        records = [dict(zip(header, row)) for row in data]
        assert [rec["Nombre"] for rec in records] == ["Beatriz", "Carlos"]
        assert records[1]["UserID"] == str(carlos.id)
        assert records[1]["Comentario"] == 'Dijo "hola", y se fue'
        assert records[1]["Frutas"] == "Manzana, Pera, verde"
        assert records[0]["Color"] == "Azul"

    def test_xlsx_export(self, client, answered):
        profe, survey, _, _ = answered
        r = client.get(f"{API}/surveys/{survey['id']}/export.xlsx", headers=auth(profe))
        assert r.status_code == 200
        wb = load_workbook(io.BytesIO(r.content))
        assert wb.sheetnames == ["Resumen", "Respuestas"]
        rows = list(wb["Respuestas"].iter_rows(values_only=True))
        assert len(rows) == 3
        assert rows[0][:3] == ("UserID", "Nombre", "Email")
        summary = list(wb["Resumen"].iter_rows(values_only=True))
        assert summary[1][0] == "Clima escolar"
        assert summary[1][3:] == (2, 3)

    def test_students_cannot_export(self, client, answered):
        _, survey, carlos, _ = answered
        r = client.get(f"{API}/surveys/{survey['id']}/export", headers=auth(carlos))
        assert r.status_code == 403
