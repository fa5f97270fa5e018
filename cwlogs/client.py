import dataclasses
import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from botocore.exceptions import ClientError
from pydantic import BaseModel

from .backend import LogBackend, make_client
from .config import AppenderConfig, AppendOptions
from .errors import error_code, is_append_rejected

log = logging.getLogger(__name__)

StreamKey = Tuple[str, str]


def _structured(obj: Any) -> Any:
    # records go out as their fields
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if hasattr(obj, "__dict__"):
        return vars(obj)
    return str(obj)


def to_message(payload: Any) -> str:
    # CloudWatch only takes strings
    if isinstance(payload, str):
        return payload
    if isinstance(payload, bytes):
        return payload.decode("utf-8")
    if isinstance(payload, BaseModel):
        return payload.model_dump_json()
    return json.dumps(payload, separators=(",", ":"), default=_structured)


class LogAppender:
    """Appends log events to CloudWatch Logs, creating groups and streams on demand.

    Upload sequence tokens are tracked per (group, stream). A stream with no
    cached entry is looked up (and created if missing) before the next write;
    a failed write drops the entry so the true token is fetched again.
    """

    def __init__(
        self,
        config: Any = None,
        client: Optional[LogBackend] = None,
        clock: Callable[[], float] = time.time,
    ):
        # config is only needed to build a client
        self.config = config
        if client is None:
            self.config = AppenderConfig.coerce(config)
            client = make_client(self.config)
        self.client = client
        self.clock = clock
        self._tokens: Dict[StreamKey, Optional[str]] = {}

    # ========= Appending =========
    def append(self, payload: Any, group: str, stream: str, options=None) -> Dict[str, Any]:
        """Log one payload. See :meth:`append_batch`."""
        return self.append_batch([payload], group, stream, options)

    def append_batch(self, payloads: Iterable[Any], group: str, stream: str, options=None) -> Dict[str, Any]:
        """Log several payloads in a single put_log_events call.

        Strings are sent as-is, anything else is serialized to JSON. The
        group and stream are created if missing; ``options`` may carry
        ``retention_days`` which only applies when the group is created here.

        Returns the raw put_log_events response. Backend errors propagate
        unchanged after the cached token for this stream is dropped.
        """
        payloads = list(payloads)
        if not payloads:
            raise ValueError("append_batch needs at least one payload")

        key = (group, stream)
        if key not in self._tokens:
            existing = self.ensure_group_and_stream(group, stream, options)
            found = existing["stream"]
            self._tokens[key] = found.get("uploadSequenceToken") if found else None

        events = [
            {"message": to_message(p), "timestamp": int(self.clock() * 1000)}
            for p in payloads
        ]

        try:
            result = self.put_log_events(events, group, stream, self._tokens[key])
        except Exception as e:
            # token may be stale now, resolve it again on the next call
            self._tokens.pop(key, None)
            log.warning("put_log_events %s for %s/%s (%s), dropping cached token",
                        "rejected" if is_append_rejected(e) else "failed", group, stream, error_code(e))
            raise

        self._tokens[key] = result.get("nextSequenceToken")
        return result

    def ensure_group_and_stream(self, group: str, stream: str, options=None) -> Dict[str, Optional[Dict[str, Any]]]:
        """Create the group and stream if they don't exist yet.

        Returns the descriptors as they were before this call, ``None`` for
        anything that had to be created.
        """
        options = AppendOptions.coerce(options)

        existing_group = self.get_log_group(group)
        if existing_group is None:
            self.create_log_group(group)
            self.put_retention_policy(group, options.retention_days)

        existing_stream = self.get_log_stream(group, stream)
        if existing_stream is None:
            self.create_stream(group, stream)

        return {"group": existing_group, "stream": existing_stream}

    def cached_token(self, group: str, stream: str) -> Optional[str]:
        return self._tokens.get((group, stream))

    def forget(self, group: Optional[str] = None, stream: Optional[str] = None) -> None:
        if group is None:
            self._tokens.clear()
        elif stream is None:
            for key in [k for k in self._tokens if k[0] == group]:
                del self._tokens[key]
        else:
            self._tokens.pop((group, stream), None)

    # ========= Primitives =========
    def put_log_events(
        self,
        events: List[Dict[str, Any]],
        group: str,
        stream: str,
        sequence_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        args = {
            "logGroupName": group,
            "logStreamName": stream,
            "logEvents": events,
        }
        if sequence_token is not None:
            args["sequenceToken"] = sequence_token
        log.debug("put_log_events %s/%s: %d events, token=%s",
                  group, stream, len(events), sequence_token is not None)
        return self.client.put_log_events(**args)

    def create_log_group(self, group: str) -> Optional[Dict[str, Any]]:
        log.info("creating log group %s", group)
        try:
            return self.client.create_log_group(logGroupName=group)
        except ClientError as e:
            # another writer got there first
            if error_code(e) != "ResourceAlreadyExistsException":
                raise
            return None

    def create_stream(self, group: str, stream: str) -> Optional[Dict[str, Any]]:
        log.info("creating log stream %s/%s", group, stream)
        try:
            return self.client.create_log_stream(logGroupName=group, logStreamName=stream)
        except ClientError as e:
            if error_code(e) != "ResourceAlreadyExistsException":
                raise
            return None

    def put_retention_policy(self, group: str, retention: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Set retention in days; ``None`` means never expire."""
        if retention is not None:
            log.info("retention for %s: %d days", group, retention)
            return self.client.put_retention_policy(logGroupName=group, retentionInDays=retention)

        # never-expire is the absence of a policy
        log.info("retention for %s: never expire", group)
        try:
            return self.client.delete_retention_policy(logGroupName=group)
        except ClientError as e:
            if error_code(e) != "ResourceNotFoundException":
                raise
            return None

    def get_log_group(self, group: str) -> Optional[Dict[str, Any]]:
        kwargs = {"logGroupNamePrefix": group}
        while True:
            resp = self.client.describe_log_groups(**kwargs)
            # prefix search, "app" also lists "app-worker"
            for data in resp.get("logGroups", []):
                if data.get("logGroupName") == group:
                    return data
            if not resp.get("nextToken"):
                return None
            kwargs["nextToken"] = resp["nextToken"]

    def get_log_stream(self, group: str, stream: str) -> Optional[Dict[str, Any]]:
        kwargs = {"logGroupName": group, "logStreamNamePrefix": stream}
        while True:
            resp = self.client.describe_log_streams(**kwargs)
            for data in resp.get("logStreams", []):
                if data.get("logStreamName") == stream:
                    return data
            if not resp.get("nextToken"):
                return None
            kwargs["nextToken"] = resp["nextToken"]
