class VocabTutorError(Exception):
    """Base class for all errors raised by vocabtutor."""


class PersistenceError(VocabTutorError):
    """The progress record could not be read from or written to storage."""


class PermissionDeniedError(VocabTutorError):
    """Microphone access was refused by the user."""


class CredentialMissingError(VocabTutorError):
    """No API key is configured for the scoring model."""


class RemoteCallError(VocabTutorError):
    """The scoring call failed or its reply did not match the schema."""


class UnknownTopicError(VocabTutorError):
    pass


class UnknownWordError(VocabTutorError):
    pass


class NoWordSelectedError(VocabTutorError):
    pass


class NotRecordingError(VocabTutorError):
    pass


class QuizError(VocabTutorError):
    pass


class NoActiveQuizError(QuizError):
    pass


class AlreadyAnsweredError(QuizError):
    pass


class NotAnsweredError(QuizError):
    pass


class InvalidOptionError(QuizError):
    pass


class QuizFinishedError(QuizError):
    pass
