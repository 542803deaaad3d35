import random

import pytest

from vocabtutor.database import MemoryKeyValueBackend
from vocabtutor.models import WordItem
from vocabtutor.progress import ProgressStore
from vocabtutor.pronunciation import PronunciationChecker
from vocabtutor.quiz import RandomQuizGenerator
from vocabtutor.session import SessionController
from vocabtutor.vocabulary import VocabularyManager

PETS_CSV = """word,translation
cat,con mèo
dog,con chó
book,quyển sách
pen,cây bút
"""

NUMBERS_CSV = "word,translation\n" + "".join(
    f"n{i},so {i}\n" for i in range(1, 13)
)


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stands in for a GenerativeModel; records every request."""

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate_content_async(self, contents, generation_config=None):
        self.calls.append({"contents": contents, "config": generation_config})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.text)


class FailingBackend:
    def __init__(self, stored=None):
        self.stored = stored

    def get(self, key):
        return self.stored

    def set(self, key, value):
        from vocabtutor.errors import PersistenceError

        raise PersistenceError("disk full")


@pytest.fixture
def words():
    return [
        WordItem(word="cat", translation="con mèo"),
        WordItem(word="dog", translation="con chó"),
        WordItem(word="book", translation="quyển sách"),
        WordItem(word="pen", translation="cây bút"),
    ]


@pytest.fixture
def vocab_dir(tmp_path):
    directory = tmp_path / "vocabulary"
    directory.mkdir()
    (directory / "01_pets.csv").write_text(PETS_CSV, encoding="utf-8")
    (directory / "02_numbers.csv").write_text(NUMBERS_CSV, encoding="utf-8")
    return directory


@pytest.fixture
def vocabulary(vocab_dir):
    manager = VocabularyManager(str(vocab_dir))
    manager.load_all()
    return manager


@pytest.fixture
def backend():
    return MemoryKeyValueBackend()


@pytest.fixture
def store(backend):
    return ProgressStore(backend, "user_progress:test")


@pytest.fixture
def fake_model():
    return FakeModel(text='{"score": 85, "feedback": "Tốt lắm"}')


@pytest.fixture
def checker(fake_model):
    return PronunciationChecker(
        api_key="test-key", model_factory=lambda api_key, model_name: fake_model
    )


@pytest.fixture
def controller(vocabulary, store, checker):
    return SessionController(
        vocabulary,
        store,
        checker,
        quiz_generator=RandomQuizGenerator(random.Random(7)),
    )
