import pytest

from app.core.errors import Conflict, InvalidInput, NotFound
from app.models.answer import Answer
from app.models.assignment import AssignmentStatus, SurveyAssignment
from app.models.user import Role, User
from app.services.answers import AnswerItem, submit_answers
from app.services.completion import completions, completions_by_survey, user_completions

from conftest import MULTI, SINGLE, TEXT


@pytest.fixture
def setup(factory):
    inst = factory.institution()
    student = factory.user("Luis", institution=inst)
    survey, questions = factory.survey(
        "Bienestar",
        institution=inst,
        questions=[
            ("¿Cómo te sientes?", TEXT),
            ("¿Duermes bien?", SINGLE, ["Sí", "No"]),
            ("Deportes", MULTI, ["Fútbol", "Tenis", "Natación"]),
        ],
    )
    factory.assign(survey, student)
    return student, survey, questions


def _assignment(db, user_id, survey_id):
    return (
        db.query(SurveyAssignment)
        .filter(SurveyAssignment.user_id == user_id, SurveyAssignment.survey_id == survey_id)
        .one()
    )


class TestCompletionsFormula:
    @pytest.mark.parametrize(
        "answers,questions,expected",
        [(0, 3, 0), (2, 3, 0), (3, 3, 1), (7, 3, 2), (5, 0, 0)],
    )
    def test_floor_division(self, answers, questions, expected):
        assert completions(answers, questions) == expected


class TestSubmitAnswers:
    def test_assignment_completes_only_with_all_questions(self, db, setup):
        student, survey, (q_text, q_single, q_multi) = setup
        user = db.get(User, student.id)

        partial = submit_answers(db, user, survey.id, [
            AnswerItem(q_text.id, value="Bien"),
            AnswerItem(q_single.id, options=["Sí"]),
        ])
        db.commit()
        assert partial.status == AssignmentStatus.PENDING
        assert (partial.answered, partial.total_questions) == (2, 3)
        assert user_completions(db, student.id, survey.id) == 0

        done = submit_answers(db, user, survey.id, [AnswerItem(q_multi.id, options=["Fútbol", "Tenis"])])
        db.commit()
        assert done.status == AssignmentStatus.COMPLETED
        assert user_completions(db, student.id, survey.id) == 1
        assert _assignment(db, student.id, survey.id).completed_at is not None
        assert completions_by_survey(db, survey_ids=[survey.id]) == {survey.id: 1}

    def test_single_choice_accepts_value_field(self, db, setup):
        student, survey, (_, q_single, _) = setup
        user = db.get(User, student.id)

        submit_answers(db, user, survey.id, [AnswerItem(q_single.id, value="No")])
        db.commit()

        answer = db.query(Answer).filter(Answer.question_id == q_single.id).one()
        assert answer.options == ["No"]
        assert answer.value is None

    def test_answering_twice_is_a_conflict(self, db, setup):
        student, survey, (q_text, _, _) = setup
        user = db.get(User, student.id)
        submit_answers(db, user, survey.id, [AnswerItem(q_text.id, value="Bien")])
        db.commit()

        with pytest.raises(Conflict):
            submit_answers(db, user, survey.id, [AnswerItem(q_text.id, value="Otra vez")])
        db.rollback()

        assert db.query(Answer).filter(Answer.user_id == student.id).count() == 1

    def test_without_assignment_is_not_found(self, db, factory, setup):
        _, survey, (q_text, _, _) = setup
        stranger = factory.user("Sin Asignación")
        user = db.get(User, stranger.id)

        with pytest.raises(NotFound):
            submit_answers(db, user, survey.id, [AnswerItem(q_text.id, value="Hola")])

    def test_question_of_another_survey_is_rejected(self, db, factory, setup):
        student, survey, _ = setup
        _, (foreign,) = factory.survey("Otra", questions=[("Ajena", TEXT)])
        user = db.get(User, student.id)

        with pytest.raises(InvalidInput):
            submit_answers(db, user, survey.id, [AnswerItem(foreign.id, value="x")])

    def test_batch_is_all_or_nothing(self, db, setup):
        student, survey, (q_text, q_single, _) = setup
        user = db.get(User, student.id)

        with pytest.raises(InvalidInput):
            submit_answers(db, user, survey.id, [
                AnswerItem(q_text.id, value="Bien"),
                AnswerItem(q_single.id, options=["Quizás"]),
            ])
        db.rollback()

        assert db.query(Answer).filter(Answer.user_id == student.id).count() == 0

    @pytest.mark.parametrize(
        "index,item",
        [
            (0, {"value": "   "}),
            (1, {"options": ["Sí", "No"]}),
            (2, {"options": ["Tenis", "Tenis"]}),
            (2, {"options": []}),
        ],
    )
    def test_invalid_content_for_question_type(self, db, setup, index, item):
        student, survey, questions = setup
        user = db.get(User, student.id)

        with pytest.raises(InvalidInput):
            submit_answers(db, user, survey.id, [AnswerItem(questions[index].id, **item)])
        db.rollback()

    def test_repeated_question_in_batch(self, db, setup):
        student, survey, (q_text, _, _) = setup
        user = db.get(User, student.id)

        with pytest.raises(InvalidInput):
            submit_answers(db, user, survey.id, [
                AnswerItem(q_text.id, value="a"),
                AnswerItem(q_text.id, value="b"),
            ])

    def test_staff_can_answer_their_own_assignment(self, db, factory):
        admin = factory.user("Admin", role=Role.ADMIN)
        survey, (q,) = factory.survey("Propia", creator=admin, questions=[("P", TEXT)])
        factory.assign(survey, admin)
        user = db.get(User, admin.id)

        result = submit_answers(db, user, survey.id, [AnswerItem(q.id, value="ok")])
        assert result.status == AssignmentStatus.COMPLETED
