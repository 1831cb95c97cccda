# backend/interview_core/state.py

from enum import Enum

class SessionPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    LISTENING = "listening"
    AI_SPEAKING = "ai_speaking"
    ENDING = "ending"
    ENDED = "ended"
