from typing import Optional


class QuizAppError(Exception):
    """Base class for failures that are shown to the user and never fatal."""

    code: str = "error"
    status_code: int = 400
    user_message: str = "Something went wrong. Please try again."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(detail or self.user_message)


# --- Access Gate ---
class AuthError(QuizAppError):
    code = "auth_error"
    status_code = 401


class EmptyInput(AuthError):
    code = "empty_input"
    status_code = 400
    user_message = "Please enter your email address."


class NotFound(AuthError):
    code = "not_found"
    user_message = "No registration found for this email."


class PendingApproval(AuthError):
    code = "pending_approval"
    status_code = 403
    user_message = "Your account is under review. Please wait for approval."


class UnknownStatus(AuthError):
    code = "unknown_status"
    status_code = 403
    user_message = "Unknown account status."


class TransportError(AuthError):
    code = "transport_error"
    status_code = 503
    user_message = "Could not reach the login server. Check the configuration."


# --- Quiz Generator ---
class GenerationError(QuizAppError):
    code = "generation_error"
    status_code = 502


class EmptyTopic(GenerationError):
    code = "empty_topic"
    status_code = 400
    user_message = "Please describe a topic or paste your study material."


class InvalidQuestionCount(GenerationError):
    code = "invalid_question_count"
    status_code = 400
    user_message = "Please choose between 1 and 50 questions."


class MissingCredential(GenerationError):
    code = "missing_credential"
    status_code = 500
    user_message = "The quiz generator API key is not configured."


class InvalidFormat(GenerationError):
    code = "invalid_format"
    user_message = "The generated quiz could not be read. Please try again."


class EmptyResult(GenerationError):
    code = "empty_result"
    user_message = "No questions were generated. Try a more detailed topic."


class UpstreamError(GenerationError):
    code = "upstream_error"
    user_message = "The quiz generator is unavailable right now. Please try again."


class ContentFiltered(UpstreamError):
    code = "content_filtered"
    status_code = 422
    user_message = (
        "The topic was blocked by the content safety filter. "
        "Please rephrase it and try again."
    )


# --- Session ---
class SessionError(QuizAppError):
    code = "session_error"
    status_code = 409


class SessionExpired(SessionError):
    code = "session_invalid"
    status_code = 401
    user_message = "Your session has expired. Please log in again."


class InvalidTransition(SessionError):
    code = "invalid_transition"
    user_message = "That action is not available right now."


class OperationInProgress(SessionError):
    code = "operation_in_progress"
    user_message = "Please wait for the current request to finish."


class InvalidAnswer(SessionError):
    code = "invalid_answer"
    status_code = 400
    user_message = "Invalid option."
