import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, PositiveInt

from .errors import ConfigurationError

# ========= Env / Config =========
REGION         = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")
ENDPOINT_URL   = os.getenv("CW_ENDPOINT_URL")  # e.g. localstack
MAX_ATTEMPTS   = int(os.getenv("CW_MAX_ATTEMPTS", "5"))


class AppenderConfig(BaseModel):
    aws: Dict[str, Any]
    max_attempts: int = MAX_ATTEMPTS

    @classmethod
    def from_env(cls) -> "AppenderConfig":
        if not REGION:
            raise ConfigurationError("AWS_REGION env var is required for CloudWatch Logs")
        aws: Dict[str, Any] = {"region_name": REGION}
        if ENDPOINT_URL:
            aws["endpoint_url"] = ENDPOINT_URL
        return cls(aws=aws)

    @classmethod
    def coerce(cls, config) -> "AppenderConfig":
        if isinstance(config, cls):
            return config
        if not config or "aws" not in config or config["aws"] is None:
            raise ConfigurationError("LogAppender config 'aws' not given")
        return cls(**config)


class AppendOptions(BaseModel):
    retention_days: Optional[PositiveInt] = None  # None = never expire

    @classmethod
    def coerce(cls, options) -> "AppendOptions":
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls(**options)
