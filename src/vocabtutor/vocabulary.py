import glob
import logging
import os
import re
from typing import Dict, List

import pandas as pd

from .errors import UnknownTopicError
from .models import Topic, WordItem

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("word", "translation")

DUMMY_WORDS = [
    {"word": "cat", "translation": "con mèo"},
    {"word": "dog", "translation": "con chó"},
    {"word": "book", "translation": "quyển sách"},
    {"word": "pen", "translation": "cây bút"},
    {"word": "house", "translation": "ngôi nhà"},
]


def topic_name_from_id(topic_id: str) -> str:
    """'01_daily_life' -> 'Daily Life'."""
    name = re.sub(r"^\d+_", "", topic_id)
    return name.replace("_", " ").strip().title()


class VocabularyManager:
    """Manages loading and accessing vocabulary topics."""

    def __init__(self, directory: str):
        self.directory = directory
        self.topics: Dict[str, Topic] = {}

    def load_all(self):
        self.topics = {}
        if not os.path.isdir(self.directory):
            logger.warning(f"Vocabulary directory {self.directory} not found.")
        else:
            csv_files = sorted(glob.glob(os.path.join(self.directory, "*.csv")))
            for file_path in csv_files:
                topic_id = os.path.splitext(os.path.basename(file_path))[0]
                try:
                    df = pd.read_csv(file_path, encoding="utf-8", dtype=str)
                except Exception as e:
                    logger.error(f"Failed to load {file_path}: {e}")
                    continue
                if not all(col in df.columns for col in REQUIRED_COLUMNS):
                    logger.error(f"Skipping {topic_id}: Missing columns.")
                    continue
                words = self._clean(df)
                if not words:
                    logger.warning(f"Skipping {topic_id}: no usable rows.")
                    continue
                self.topics[topic_id] = Topic(
                    id=topic_id, name=topic_name_from_id(topic_id), words=words
                )
                logger.info(f"Loaded {len(words)} words from {topic_id}")

        if not self.topics:
            logger.warning("No vocabulary files found. Loading dummy data.")
            self.topics["default_dummy"] = Topic(
                id="default_dummy",
                name="Default Dummy",
                words=[WordItem(**w) for w in DUMMY_WORDS],
            )

    @staticmethod
    def _clean(df: pd.DataFrame) -> List[WordItem]:
        df = df[list(REQUIRED_COLUMNS)].dropna().copy()
        for col in REQUIRED_COLUMNS:
            df[col] = df[col].str.strip()
        df = df[(df["word"] != "") & (df["translation"] != "")]
        # Word text is the identity within a topic.
        df = df.drop_duplicates(subset="word", keep="first")
        return [WordItem(**row) for row in df.to_dict("records")]

    def _ensure_loaded(self):
        if not self.topics:
            self.load_all()

    def get_topics(self) -> List[Topic]:
        self._ensure_loaded()
        return [self.topics[key] for key in sorted(self.topics)]

    def get_topic(self, topic_id: str) -> Topic:
        self._ensure_loaded()
        try:
            return self.topics[topic_id]
        except KeyError:
            raise UnknownTopicError(f"Unknown topic: {topic_id}") from None

    def get_words(self, topic_id: str) -> List[WordItem]:
        self._ensure_loaded()
        topic = self.topics.get(topic_id)
        return list(topic.words) if topic else []

    def first_topic(self) -> Topic:
        return self.get_topics()[0]

    def total_words(self) -> int:
        return sum(len(topic.words) for topic in self.get_topics())
