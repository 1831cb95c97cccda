class InterviewError(Exception):
    """Base class for failures surfaced while running an interview session."""

    default_message = "Interview error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class SessionNotInitialized(InterviewError):
    default_message = "Session not initialized"


class AISpeakingConflict(InterviewError):
    default_message = "Please wait for the interviewer to finish speaking"


class GenerationFailure(InterviewError):
    default_message = "Failed to generate response"


class SynthesisFailure(InterviewError):
    default_message = "Failed to generate interviewer audio"


class PersistenceFailure(InterviewError):
    default_message = "Failed to save interview session"


class ProtocolError(InterviewError):
    default_message = "Invalid message"


class SessionEnding(InterviewError):
    default_message = "The interview has ended"
