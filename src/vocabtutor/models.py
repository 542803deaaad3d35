from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import settings


class AppMode(str, Enum):
    DASHBOARD = "dashboard"
    LEARN = "learn"
    FLASHCARD = "flashcard"
    QUIZ = "quiz"


class QuizState(str, Enum):
    IN_PROGRESS = "in_progress"
    ANSWERED = "answered"
    FINISHED = "finished"


class WordItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    word: str
    translation: str


class Topic(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    words: List[WordItem]


class UserProgress(BaseModel):
    """The single persisted record, stored under camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    learned_words: List[str] = Field(default_factory=list, alias="learnedWords")
    quiz_scores: Dict[str, int] = Field(default_factory=dict, alias="quizScores")
    daily_goal: int = Field(default=settings.DEFAULT_DAILY_GOAL, alias="dailyGoal")
    streak: int = Field(default=settings.DEFAULT_STREAK, alias="streak")

    @field_validator("learned_words")
    @classmethod
    def _dedupe(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


class Question(BaseModel):
    word: str
    translation: str
    options: List[str]


class AnswerRecord(BaseModel):
    word: str
    user_answer: str
    correct_answer: str
    is_correct: bool


class PronunciationResult(BaseModel):
    score: int = Field(ge=0, le=100)
    feedback: str


class Utterance(BaseModel):
    text: str
    locale: str


class TopicStats(BaseModel):
    id: str
    name: str
    learned: int
    total: int
    quiz_score: Optional[int] = None


class DashboardStats(BaseModel):
    total_learned: int
    total_words: int
    daily_goal: int
    goal_progress: int
    goal_reached: bool
    streak: int
    topics: List[TopicStats]
