"""Error taxonomy shared by the fetch, validation and generation stages."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "AccessForbiddenError",
    "ConnectionRefusedFetchError",
    "ContentFetchError",
    "ContentValidationError",
    "ERROR_MESSAGES",
    "ErrorCode",
    "FetchTimeoutError",
    "GenerationError",
    "HostNotFoundError",
    "InvalidTextError",
    "InvalidUrlError",
    "PageNotFoundError",
    "PagePersonaError",
    "PrivateUrlError",
    "classify_error",
    "format_error",
]


class ErrorCode(str, Enum):
    """Closed set of error codes handed to callers of the pipeline."""

    INVALID_URL = "INVALID_URL"
    SCRAPING_FAILED = "SCRAPING_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_TEXT = "INVALID_TEXT"
    TRANSFORMATION_FAILED = "TRANSFORMATION_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_URL: "Invalid URL format. Please provide a valid website URL.",
    ErrorCode.SCRAPING_FAILED: "We couldn't access the content from that website.",
    ErrorCode.NETWORK_ERROR: "Unable to reach the website. Please try again later.",
    ErrorCode.INVALID_TEXT: "Please enter some text to transform.",
    ErrorCode.TRANSFORMATION_FAILED: "Something went wrong while transforming your content. Please try again.",
    ErrorCode.UNKNOWN_ERROR: "An unexpected error occurred. Please try again later.",
}


class PagePersonaError(Exception):
    """Base class for errors raised by the pipeline."""

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    default_message: str | None = None

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message or ERROR_MESSAGES[self.error_code])

    @property
    def user_message(self) -> str:
        """Short, actionable message suitable for end users."""

        return str(self)


class ContentFetchError(PagePersonaError):
    """The page could not be fetched, so no transformation was attempted."""

    error_code = ErrorCode.SCRAPING_FAILED
    default_message = "Failed to scrape webpage: Unknown error"


class InvalidUrlError(ContentFetchError):
    error_code = ErrorCode.INVALID_URL
    default_message = "Invalid URL format. Please provide a valid website URL."


class PrivateUrlError(InvalidUrlError):
    default_message = "Private or internal URLs are not allowed for security reasons."


class HostNotFoundError(ContentFetchError):
    default_message = "Website not found. Please check the URL and try again."


class ConnectionRefusedFetchError(ContentFetchError):
    error_code = ErrorCode.NETWORK_ERROR
    default_message = "Connection refused. The website may be down."


class FetchTimeoutError(ContentFetchError):
    error_code = ErrorCode.NETWORK_ERROR
    default_message = "The website took too long to respond (request timed out)."


class AccessForbiddenError(ContentFetchError):
    """HTTP 403: the site deliberately blocks automated requests."""

    default_message = "Access forbidden. This website blocks automated requests."


class PageNotFoundError(ContentFetchError):
    default_message = "Page not found. Please check the URL."


class InvalidTextError(PagePersonaError):
    error_code = ErrorCode.INVALID_TEXT
    default_message = "Text is required. Please enter some text to transform."


class ContentValidationError(PagePersonaError):
    """Cleaned content is empty or too short to be worth transforming."""

    error_code = ErrorCode.TRANSFORMATION_FAILED
    default_message = "Content too short for meaningful transformation"


class GenerationError(PagePersonaError):
    """The generation API call failed or produced no content."""

    error_code = ErrorCode.TRANSFORMATION_FAILED
    default_message = "Unknown OpenAI API error"


# Ordered: the first matching rule wins.
_KEYWORD_RULES: tuple[tuple[ErrorCode, tuple[str, ...]], ...] = (
    (ErrorCode.INVALID_URL, ("invalid url", "malformed url", "private or internal")),
    (ErrorCode.INVALID_TEXT, ("text is required", "text too short", "text too long", "invalid text")),
    (
        ErrorCode.TRANSFORMATION_FAILED,
        ("openai api error", "no content received", "unknown persona", "transformation"),
    ),
    (
        ErrorCode.SCRAPING_FAILED,
        ("not found", "404", "forbidden", "403", "scraping failed", "failed to scrape", "failed to fetch"),
    ),
    (ErrorCode.NETWORK_ERROR, ("network", "connection", "timed out", "timeout")),
)


def classify_error(error: BaseException | str | None) -> ErrorCode:
    """Map an exception or error message onto :class:`ErrorCode`.

    Errors raised by the pipeline carry their own code. Anything else is
    classified by keywords in its message and falls back to
    ``UNKNOWN_ERROR``.
    """

    code = getattr(error, "error_code", None)
    if isinstance(code, ErrorCode):
        return code

    message = str(error or "").lower()
    if not message:
        return ErrorCode.UNKNOWN_ERROR

    for candidate, keywords in _KEYWORD_RULES:
        if any(keyword in message for keyword in keywords):
            return candidate

    return ErrorCode.UNKNOWN_ERROR


def format_error(error: BaseException | str | None) -> str:
    """Return the user facing message for ``error``.

    Pipeline errors already hold an actionable message. Classified foreign
    errors get the message registered for their code, while unknown errors
    surface their raw text as a last resort.
    """

    if isinstance(error, PagePersonaError):
        return error.user_message

    code = classify_error(error)
    if code is ErrorCode.UNKNOWN_ERROR:
        raw = str(error or "").strip()
        return raw or ERROR_MESSAGES[code]

    return ERROR_MESSAGES[code]
