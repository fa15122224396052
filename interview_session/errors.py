from __future__ import annotations  # Interview session error taxonomy


class InterviewError(RuntimeError):  # Base error for session orchestration
    user_message = "Something went wrong with the interview session."

    def __init__(self, message: str = "", *, user_message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class TransportError(InterviewError):  # Channel could not be opened or failed mid-session
    user_message = "Connection to the interviewer failed. Please start a new session."


class ProtocolError(InterviewError):  # Unparseable or unexpected event from upstream
    user_message = "Received an unexpected response from the interviewer."


class UpstreamContentError(InterviewError):  # Model returned an explicit error or nothing
    user_message = "The interviewer could not respond. Please try again."


class SessionStateError(InterviewError):  # Action not valid in the current state
    user_message = "That action is not available right now."


class TokenExpiredError(TransportError):  # Realtime credential passed its expiry
    user_message = "The live session expired. Please start a new session."


__all__ = [
    "InterviewError",
    "ProtocolError",
    "SessionStateError",
    "TokenExpiredError",
    "TransportError",
    "UpstreamContentError",
]
