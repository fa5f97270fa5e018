from botocore.exceptions import ClientError

# put_log_events codes meaning the stream moved on without us
APPEND_REJECTED_CODES = ("InvalidSequenceTokenException", "DataAlreadyAcceptedException")


class ConfigurationError(ValueError):
    """Backend connection details are missing or unusable."""


def error_code(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Code", "ClientError")
    return type(e).__name__


def is_append_rejected(e: Exception) -> bool:
    return isinstance(e, ClientError) and error_code(e) in APPEND_REJECTED_CODES
