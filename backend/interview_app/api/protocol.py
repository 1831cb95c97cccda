from __future__ import annotations

import base64
import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from interview_app.interview.errors import ProtocolError
from interview_app.questions.models import ALL_PROGRAMS, GENERAL_UNIVERSITY

DEFAULT_USER_ID = "guest"
DEFAULT_DURATION_MINUTES = 10


# ---------- client -> server ----------

class _ClientMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class InitMessage(_ClientMessage):
    type: Literal["init"]
    user_id: str = Field(default=DEFAULT_USER_ID, alias="userId")
    university: str = GENERAL_UNIVERSITY
    program: str = ALL_PROGRAMS
    duration: float = Field(default=DEFAULT_DURATION_MINUTES, gt=0)


class TextInputMessage(_ClientMessage):
    type: Literal["text_input"]
    text: str = ""


class SpeechInterimMessage(_ClientMessage):
    type: Literal["speech_interim"]
    text: str = ""


class UserInterruptMessage(_ClientMessage):
    type: Literal["user_interrupt"]
    text: Optional[str] = None


class AudioEndedMessage(_ClientMessage):
    type: Literal["audio_ended"]


class EndSessionMessage(_ClientMessage):
    type: Literal["end_session"]


ClientMessage = Annotated[
    Union[
        InitMessage,
        TextInputMessage,
        SpeechInterimMessage,
        UserInterruptMessage,
        AudioEndedMessage,
        EndSessionMessage,
    ],
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)
CLIENT_MESSAGE_TYPES = frozenset({
    "init",
    "text_input",
    "speech_interim",
    "user_interrupt",
    "audio_ended",
    "end_session",
})


def _is_unset(key: str, value: Any) -> bool:
    if key == "type":
        return False
    if key == "duration" and value == 0:
        return True
    return value in ("", None)


def _blank_to_none(payload: dict[str, Any]) -> dict[str, Any]:
    # clients send "" (or a zero duration) for unset init fields; treat them as missing so defaults apply
    return {key: value for key, value in payload.items() if not _is_unset(key, value)}


def parse_client_message(raw: str) -> ClientMessage:
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ProtocolError("Invalid JSON message") from exc

    if not isinstance(payload, dict):
        raise ProtocolError("Message must be a JSON object")

    msg_type = payload.get("type")
    if msg_type not in CLIENT_MESSAGE_TYPES:
        raise ProtocolError(f"Unknown message type: {msg_type}")

    try:
        return _client_message_adapter.validate_python(_blank_to_none(payload))
    except ValidationError as exc:
        fields = ",".join(str(err.get("loc", ["?"])[-1]) for err in exc.errors())
        raise ProtocolError(f"Invalid {msg_type} message: {fields}") from exc


# ---------- server -> client ----------

def session_ready(session_id: str) -> dict:
    return {"type": "session_ready", "sessionId": session_id}


def start_listening() -> dict:
    return {"type": "start_listening"}


def pause_listening(message: str = "AI is speaking, please wait...") -> dict:
    return {"type": "pause_listening", "message": message}


def interviewer_text_chunk(chunk: str) -> dict:
    return {"type": "interviewer_text_chunk", "chunk": chunk}


def interviewer_message(text: str, is_interruption: bool = False) -> dict:
    payload = {"type": "interviewer_message", "text": text}
    if is_interruption:
        payload["isInterruption"] = True
    return payload


def interviewer_audio(audio: bytes) -> dict:
    return {"type": "interviewer_audio", "audio": base64.b64encode(audio).decode("ascii")}


def interrupt(reason: str) -> dict:
    return {"type": "interrupt", "reason": reason}


def session_ended(message: str = "Interview completed. Thank you!") -> dict:
    return {"type": "session_ended", "message": message}


def error(message: str) -> dict:
    return {"type": "error", "message": message}
