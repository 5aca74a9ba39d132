"""Read-only view of quiz definitions.

Quizzes are authored elsewhere and stored in the document shape the
authoring client writes (``question``, ``answers``, ``correctAnswers``,
``timeLimit``, ``points``). Sessions never mutate them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from gameshow import db
from gameshow.models import Quiz
from .results import QuizNotFound

POINT_VALUES = {
    'standard': 1000,
    'double': 2000,
    'noPoints': 0,
}


@dataclass(frozen=True)
class Question:
    position: int
    prompt: str
    answers: List[str]
    correct: frozenset
    time_limit: Optional[int] = None
    points: str = 'standard'
    image_url: Optional[str] = None

    @property
    def base_points(self) -> int:
        return POINT_VALUES.get(self.points, POINT_VALUES['standard'])

    @classmethod
    def from_document(cls, position: int, doc: dict) -> 'Question':
        answers = list(doc.get('answers') or [])
        flags = list(doc.get('correctAnswers') or [])
        correct = frozenset(i for i, flag in enumerate(flags) if flag and i < len(answers))
        limit = doc.get('timeLimit')
        return cls(
            position=position,
            prompt=doc.get('question') or '',
            answers=answers,
            correct=correct,
            time_limit=int(limit) if limit else None,
            points=doc.get('points') or 'standard',
            image_url=doc.get('imageUrl'),
        )


@dataclass(frozen=True)
class QuizDefinition:
    id: str
    title: str
    questions: List[Question] = field(default_factory=list)
    time_per_question: Optional[int] = None

    @property
    def num_questions(self) -> int:
        return len(self.questions)

    def time_limit_for(self, question: Question, settings, fallback: int) -> int:
        """Session override wins, then the question's own limit, then the quiz default."""
        if settings.time_per_question:
            return int(settings.time_per_question)
        return int(question.time_limit or self.time_per_question or fallback)


def load_quiz(game_id: str) -> QuizDefinition:
    quiz = db.session.get(Quiz, game_id)
    if quiz is None:
        raise QuizNotFound(game_id)
    questions = [Question.from_document(i, doc) for i, doc in enumerate(quiz.question_list())]
    return QuizDefinition(
        id=quiz.id,
        title=quiz.title,
        questions=questions,
        time_per_question=quiz.time_per_question,
    )
