import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from .config import settings
from .errors import (
    NoActiveQuizError,
    NotRecordingError,
    NoWordSelectedError,
    PermissionDeniedError,
    PersistenceError,
    UnknownWordError,
)
from .models import (
    AnswerRecord,
    AppMode,
    DashboardStats,
    PronunciationResult,
    Topic,
    TopicStats,
    Utterance,
    WordItem,
)
from .progress import KeyValueBackend, ProgressStore
from .pronunciation import PronunciationChecker
from .quiz import QuizGenerator, QuizSession, RandomQuizGenerator
from .vocabulary import VocabularyManager

logger = logging.getLogger(__name__)


class UtteranceSpeaker:
    """Speech output collaborator: queues utterances for the browser to play."""

    def __init__(self):
        self.pending: List[Utterance] = []

    def speak(self, text: str, locale: str):
        self.pending.append(Utterance(text=text, locale=locale))

    def drain(self) -> List[Utterance]:
        pending, self.pending = self.pending, []
        return pending


class SessionController:
    """
    Per-browser learning session.

    Holds the active topic and mode, the working subset of the topic
    ("daily words"), the selected word, the flashcard position, the running
    quiz and the recording flags. Progress changes go through the injected
    ProgressStore; a failed write is logged and the session carries on with
    the in-memory record.
    """

    def __init__(
        self,
        vocabulary: VocabularyManager,
        progress_store: ProgressStore,
        checker: PronunciationChecker,
        quiz_generator: Optional[QuizGenerator] = None,
        speaker: Optional[UtteranceSpeaker] = None,
        daily_word_count: int = settings.DAILY_WORD_COUNT,
    ):
        self.vocabulary = vocabulary
        self.progress_store = progress_store
        self.checker = checker
        self.quiz_generator = quiz_generator or RandomQuizGenerator()
        self.speaker = speaker or UtteranceSpeaker()
        self.daily_word_count = daily_word_count

        self.mode = AppMode.LEARN
        self.active_topic: Topic = vocabulary.first_topic()
        self.daily_words: List[WordItem] = []
        self.selected_word: Optional[WordItem] = None
        self.card_index = 0
        self.quiz: Optional[QuizSession] = None
        self.is_recording = False
        self.is_analyzing = False
        self.last_result: Optional[PronunciationResult] = None
        self._reset_working_subset()

    # --- Topic & mode ---
    def _reset_working_subset(self):
        self.daily_words = list(self.active_topic.words[: self.daily_word_count])
        self.selected_word = None
        self.last_result = None
        self.card_index = 0
        self.quiz = None

    def select_topic(self, topic_id: str) -> Topic:
        self.active_topic = self.vocabulary.get_topic(topic_id)
        self._reset_working_subset()
        if self.mode == AppMode.QUIZ:
            self._start_quiz()
        logger.info(f"Topic changed to {topic_id}")
        return self.active_topic

    def set_mode(self, mode: AppMode):
        mode = AppMode(mode)
        if mode == AppMode.FLASHCARD:
            self.card_index = 0
        if mode == AppMode.QUIZ:
            self._start_quiz()
        elif self.mode == AppMode.QUIZ:
            self.quiz = None
        self.mode = mode
        logger.info(f"Mode changed to {mode.value}")

    # --- Learn ---
    def _find_daily_word(self, word: str) -> WordItem:
        for item in self.daily_words:
            if item.word == word:
                return item
        raise UnknownWordError(f"Word not in current list: {word}")

    def select_word(self, word: str) -> WordItem:
        self.selected_word = self._find_daily_word(word)
        self.last_result = None
        return self.selected_word

    def toggle_learned(self, word: str) -> bool:
        self._find_daily_word(word)
        try:
            return self.progress_store.toggle_learned(word)
        except PersistenceError as e:
            logger.error(f"Progress not saved: {e}")
            return self.progress_store.is_learned(word)

    def set_daily_goal(self, goal: int):
        try:
            self.progress_store.set_daily_goal(goal)
        except PersistenceError as e:
            logger.error(f"Progress not saved: {e}")

    def speak(self, text: str):
        self.speaker.speak(text, settings.SPEECH_LOCALE)

    # --- Flashcards ---
    def current_card(self) -> Optional[WordItem]:
        if not self.daily_words:
            return None
        return self.daily_words[self.card_index]

    def next_card(self) -> Optional[WordItem]:
        if self.daily_words:
            self.card_index = (self.card_index + 1) % len(self.daily_words)
        return self.current_card()

    def prev_card(self) -> Optional[WordItem]:
        if self.daily_words:
            self.card_index = (self.card_index - 1) % len(self.daily_words)
        return self.current_card()

    # --- Quiz ---
    def _start_quiz(self):
        self.quiz = QuizSession(self.quiz_generator.generate(self.daily_words))

    def _require_quiz(self) -> QuizSession:
        if self.quiz is None:
            raise NoActiveQuizError("No quiz in progress")
        return self.quiz

    def answer_question(self, option_index: int) -> AnswerRecord:
        return self._require_quiz().answer(option_index)

    def advance_quiz(self) -> Optional[int]:
        """Moves the quiz on; returns the final score when it just finished."""
        final_score = self._require_quiz().advance()
        if final_score is None:
            return None

        topic_id = self.active_topic.id
        try:
            self.progress_store.record_quiz_score(topic_id, final_score)
        except PersistenceError as e:
            logger.error(f"Quiz score for {topic_id} not saved: {e}")
        logger.info(f"Quiz on {topic_id} finished with score {final_score}")
        self.mode = AppMode.LEARN
        return final_score

    # --- Pronunciation ---
    def start_recording(self, permission_granted: bool = True):
        if self.selected_word is None:
            raise NoWordSelectedError("Select a word before recording")
        if not permission_granted:
            logger.warning("Microphone access denied")
            raise PermissionDeniedError(
                "Microphone access is required for pronunciation practice."
            )
        self.is_recording = True
        self.last_result = None

    async def stop_recording(self, audio: bytes) -> PronunciationResult:
        if not self.is_recording:
            raise NotRecordingError("Not recording")
        self.is_recording = False
        if self.selected_word is None:
            raise NoWordSelectedError("Select a word before recording")

        self.is_analyzing = True
        try:
            result = await self.checker.check(audio, self.selected_word.word)
        finally:
            self.is_analyzing = False
        self.last_result = result
        return result

    # --- Dashboard ---
    def dashboard(self) -> DashboardStats:
        progress = self.progress_store.progress
        learned = set(progress.learned_words)
        topics = []
        for topic in self.vocabulary.get_topics():
            topics.append(
                TopicStats(
                    id=topic.id,
                    name=topic.name,
                    learned=sum(1 for w in topic.words if w.word in learned),
                    total=len(topic.words),
                    quiz_score=progress.quiz_scores.get(topic.id),
                )
            )
        total_learned = sum(t.learned for t in topics)
        return DashboardStats(
            total_learned=total_learned,
            total_words=sum(t.total for t in topics),
            daily_goal=progress.daily_goal,
            goal_progress=min(progress.daily_goal, total_learned),
            goal_reached=total_learned >= progress.daily_goal,
            streak=progress.streak,
            topics=topics,
        )

    def snapshot(self) -> dict:
        return {
            "mode": self.mode.value,
            "topic": {"id": self.active_topic.id, "name": self.active_topic.name},
            "daily_words": [w.model_dump() for w in self.daily_words],
            "selected_word": self.selected_word.word if self.selected_word else None,
            "card_index": self.card_index,
            "is_recording": self.is_recording,
            "is_analyzing": self.is_analyzing,
            "last_result": self.last_result.model_dump() if self.last_result else None,
        }


class SessionRegistry:
    """
    Maps browser ids to live controllers, evicting idle ones.

    Lookups run from FastAPI's threadpool, so every access to the maps
    happens under ``self.lock``.
    """

    def __init__(
        self,
        vocabulary: VocabularyManager,
        backend: KeyValueBackend,
        checker_factory: Callable[[], PronunciationChecker],
        timeout_minutes: int = settings.SESSION_TIMEOUT_MINUTES,
    ):
        self.vocabulary = vocabulary
        self.backend = backend
        self.checker_factory = checker_factory
        self.timeout = timedelta(minutes=timeout_minutes)
        self.sessions: Dict[str, SessionController] = {}
        self.last_seen: Dict[str, datetime] = {}
        self.lock = threading.RLock()

    def _evict_expired(self, now: datetime):
        expired = [
            browser_id
            for browser_id, seen in self.last_seen.items()
            if now - seen > self.timeout
        ]
        for browser_id in expired:
            self.drop(browser_id)
            logger.info(f"Session expired: {browser_id}")

    def get(self, browser_id: str) -> SessionController:
        with self.lock:
            now = datetime.now()
            self._evict_expired(now)
            controller = self.sessions.get(browser_id)
            if controller is None:
                store = ProgressStore(
                    self.backend, f"{settings.PROGRESS_KEY}:{browser_id}"
                )
                controller = SessionController(
                    self.vocabulary, store, self.checker_factory()
                )
                self.sessions[browser_id] = controller
                logger.info(f"New session: {browser_id}")
            self.last_seen[browser_id] = now
            return controller

    def drop(self, browser_id: str):
        with self.lock:
            self.sessions.pop(browser_id, None)
            self.last_seen.pop(browser_id, None)
