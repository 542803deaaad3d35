import logging
from typing import Optional, Protocol

from pydantic import ValidationError

from .errors import PersistenceError
from .models import UserProgress

logger = logging.getLogger(__name__)


class KeyValueBackend(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class ProgressStore:
    """
    Owns one user's progress record.

    Every mutation changes the in-memory record first and then overwrites the
    whole persisted record. When the write fails the PersistenceError from the
    backend propagates, but the in-memory record keeps the change and stays
    authoritative for the rest of the session.

    If the stored record cannot be read, the store works from defaults but
    refuses to write until a later read succeeds, so a transient read error
    never replaces saved progress.
    """

    def __init__(self, backend: KeyValueBackend, key: str):
        self.backend = backend
        self.key = key
        self._progress: Optional[UserProgress] = None
        self._load_failed = False

    def load(self) -> UserProgress:
        raw = self.backend.get(self.key)
        if raw is None:
            return UserProgress()
        try:
            return UserProgress.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable progress record {self.key}: {e}")
            return UserProgress()

    def save(self, progress: UserProgress):
        self.backend.set(self.key, progress.model_dump_json(by_alias=True))

    @property
    def progress(self) -> UserProgress:
        # Retried on every access until the stored record has been read once.
        if self._progress is None or self._load_failed:
            try:
                self._progress = self.load()
                self._load_failed = False
            except PersistenceError as e:
                logger.error(f"Using defaults for {self.key} until it can be read: {e}")
                if self._progress is None:
                    self._progress = UserProgress()
                self._load_failed = True
        return self._progress

    def _persist(self, progress: UserProgress):
        if self._load_failed:
            raise PersistenceError(
                f"Not overwriting {self.key}: stored record has not been read"
            )
        self.save(progress)

    def is_learned(self, word: str) -> bool:
        return word in self.progress.learned_words

    def mark_learned(self, word: str):
        if self.is_learned(word):
            return
        progress = self.progress
        progress.learned_words.append(word)
        self._persist(progress)

    def unmark_learned(self, word: str):
        if not self.is_learned(word):
            return
        progress = self.progress
        progress.learned_words.remove(word)
        self._persist(progress)

    def toggle_learned(self, word: str) -> bool:
        """Flips membership of ``word`` and returns the new membership."""
        if self.is_learned(word):
            self.unmark_learned(word)
            return False
        self.mark_learned(word)
        return True

    def record_quiz_score(self, topic_id: str, score: int):
        progress = self.progress
        progress.quiz_scores[topic_id] = score
        self._persist(progress)

    def set_daily_goal(self, goal: int):
        if goal < 1:
            raise ValueError("Daily goal must be a positive integer")
        progress = self.progress
        progress.daily_goal = goal
        self._persist(progress)
