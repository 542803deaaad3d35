import logging
import random
from abc import ABC, abstractmethod
from typing import List, Optional

from .config import settings
from .errors import (
    AlreadyAnsweredError,
    InvalidOptionError,
    NotAnsweredError,
    QuizFinishedError,
)
from .models import AnswerRecord, Question, QuizState, WordItem

logger = logging.getLogger(__name__)

NUM_DISTRACTORS = 3


# --- Strategy Pattern: Quiz Generators ---
class QuizGenerator(ABC):
    """Abstract Base Class for quiz generation strategies."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    @abstractmethod
    def generate(self, words: List[WordItem]) -> List[Question]:
        pass

    def _generate_options(self, item: WordItem, words: List[WordItem]) -> List[str]:
        """Correct translation plus up to three random distractors, shuffled."""
        candidates = [w.translation for w in words if w.word != item.word]
        incorrect = self.rng.sample(candidates, min(NUM_DISTRACTORS, len(candidates)))

        options = [item.translation] + incorrect
        self.rng.shuffle(options)
        return options


class RandomQuizGenerator(QuizGenerator):
    """One question per word, in the order given."""

    def generate(self, words: List[WordItem]) -> List[Question]:
        return [
            Question(
                word=item.word,
                translation=item.translation,
                options=self._generate_options(item, words),
            )
            for item in words
        ]


class QuizSession:
    """
    Multiple-choice quiz state machine.

    ``in_progress`` accepts exactly one answer for the current question and
    moves to ``answered``. ``advance`` then moves on to the next question or,
    after the last one, to ``finished``. The final score is returned from
    ``advance`` once, on the transition into ``finished``.
    """

    def __init__(
        self,
        questions: List[Question],
        feedback_delay_ms: int = settings.QUIZ_FEEDBACK_DELAY_MS,
    ):
        self.questions = questions
        self.feedback_delay_ms = feedback_delay_ms
        self.index = 0
        self.score = 0
        self.answers: List[AnswerRecord] = []
        self.selected_option: Optional[str] = None
        self.state = QuizState.IN_PROGRESS if questions else QuizState.FINISHED

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def is_finished(self) -> bool:
        return self.state == QuizState.FINISHED

    @property
    def current_question(self) -> Optional[Question]:
        if self.is_finished:
            return None
        return self.questions[self.index]

    def answer(self, option_index: int) -> AnswerRecord:
        if self.state == QuizState.FINISHED:
            raise QuizFinishedError("Quiz already finished")
        if self.state == QuizState.ANSWERED:
            raise AlreadyAnsweredError("Already answered")

        question = self.questions[self.index]
        if not (0 <= option_index < len(question.options)):
            raise InvalidOptionError("Invalid option")

        user_answer = question.options[option_index]
        is_correct = user_answer == question.translation
        if is_correct:
            self.score += 1

        record = AnswerRecord(
            word=question.word,
            user_answer=user_answer,
            correct_answer=question.translation,
            is_correct=is_correct,
        )
        self.answers.append(record)
        self.selected_option = user_answer
        self.state = QuizState.ANSWERED
        return record

    def advance(self) -> Optional[int]:
        """Moves past an answered question; returns the final score when done."""
        if self.state == QuizState.FINISHED:
            raise QuizFinishedError("Quiz already finished")
        if self.state != QuizState.ANSWERED:
            raise NotAnsweredError("Current question has not been answered")

        self.selected_option = None
        if self.index < self.total - 1:
            self.index += 1
            self.state = QuizState.IN_PROGRESS
            return None

        self.state = QuizState.FINISHED
        logger.info(f"Quiz finished: {self.score}/{self.total}")
        return self.score

    def to_dict(self) -> dict:
        question = self.current_question
        return {
            "state": self.state.value,
            "current_index": self.index,
            "total_questions": self.total,
            "score": self.score,
            "word": question.word if question else None,
            "options": question.options if question else [],
            "selected_option": self.selected_option,
            "answer_record": (
                self.answers[self.index].model_dump()
                if self.state == QuizState.ANSWERED
                else None
            ),
            "feedback_delay_ms": self.feedback_delay_ms,
        }
