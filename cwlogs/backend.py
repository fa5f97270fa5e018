from typing import Any, Dict, Protocol

import boto3
from botocore.config import Config

from .config import AppenderConfig


class LogBackend(Protocol):
    """The slice of the boto3 ``logs`` client the appender talks to."""

    def create_log_group(self, **kwargs: Any) -> Dict[str, Any]: ...

    def describe_log_groups(self, **kwargs: Any) -> Dict[str, Any]: ...

    def put_retention_policy(self, **kwargs: Any) -> Dict[str, Any]: ...

    def delete_retention_policy(self, **kwargs: Any) -> Dict[str, Any]: ...

    def create_log_stream(self, **kwargs: Any) -> Dict[str, Any]: ...

    def describe_log_streams(self, **kwargs: Any) -> Dict[str, Any]: ...

    def put_log_events(self, **kwargs: Any) -> Dict[str, Any]: ...


def make_client(config: AppenderConfig) -> LogBackend:
    return boto3.client(
        "logs",
        config=Config(retries={"max_attempts": config.max_attempts}),
        **config.aws,
    )
