from __future__ import annotations

from typing import Any

import pytest
from botocore.exceptions import ClientError

from cwlogs import LogAppender


def client_error(code: str, operation: str = "PutLogEvents") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


class FakeLogsClient:
    """In-memory stand-in for boto3's logs client that records every call."""

    def __init__(self) -> None:
        self.groups: dict[str, dict[str, Any]] = {}
        self.streams: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.put_error: Exception | None = None
        self.page_size = 50
        self._seq = 0

    def add_group(self, name: str, **extra: Any) -> None:
        self.groups[name] = {"logGroupName": name, **extra}

    def add_stream(self, group: str, name: str, token: str | None = None) -> None:
        data: dict[str, Any] = {"logStreamName": name}
        if token is not None:
            data["uploadSequenceToken"] = token
        self.streams[(group, name)] = data

    def called(self, name: str) -> list[dict[str, Any]]:
        return [kw for n, kw in self.calls if n == name]

    def _page(self, items: list[dict[str, Any]], key: str, next_token: str | None) -> dict[str, Any]:
        start = int(next_token or 0)
        resp: dict[str, Any] = {key: items[start:start + self.page_size]}
        if start + self.page_size < len(items):
            resp["nextToken"] = str(start + self.page_size)
        return resp

    def create_log_group(self, **kw: Any) -> dict[str, Any]:
        self.calls.append(("create_log_group", kw))
        if kw["logGroupName"] in self.groups:
            raise client_error("ResourceAlreadyExistsException", "CreateLogGroup")
        self.add_group(kw["logGroupName"])
        return {}

    def describe_log_groups(self, **kw: Any) -> dict[str, Any]:
        self.calls.append(("describe_log_groups", kw))
        prefix = kw.get("logGroupNamePrefix", "")
        items = [g for n, g in self.groups.items() if n.startswith(prefix)]
        return self._page(items, "logGroups", kw.get("nextToken"))

    def put_retention_policy(self, **kw: Any) -> dict[str, Any]:
        self.calls.append(("put_retention_policy", kw))
        self.groups[kw["logGroupName"]]["retentionInDays"] = kw["retentionInDays"]
        return {}

    def delete_retention_policy(self, **kw: Any) -> dict[str, Any]:
        self.calls.append(("delete_retention_policy", kw))
        if "retentionInDays" not in self.groups[kw["logGroupName"]]:
            raise client_error("ResourceNotFoundException", "DeleteRetentionPolicy")
        del self.groups[kw["logGroupName"]]["retentionInDays"]
        return {}

    def create_log_stream(self, **kw: Any) -> dict[str, Any]:
        self.calls.append(("create_log_stream", kw))
        if (kw["logGroupName"], kw["logStreamName"]) in self.streams:
            raise client_error("ResourceAlreadyExistsException", "CreateLogStream")
        self.add_stream(kw["logGroupName"], kw["logStreamName"])
        return {}

    def describe_log_streams(self, **kw: Any) -> dict[str, Any]:
        self.calls.append(("describe_log_streams", kw))
        group = kw["logGroupName"]
        prefix = kw.get("logStreamNamePrefix", "")
        items = [s for (g, n), s in self.streams.items() if g == group and n.startswith(prefix)]
        return self._page(items, "logStreams", kw.get("nextToken"))

    def put_log_events(self, **kw: Any) -> dict[str, Any]:
        self.calls.append(("put_log_events", kw))
        if self.put_error is not None:
            raise self.put_error
        stream = self.streams[(kw["logGroupName"], kw["logStreamName"])]
        if kw.get("sequenceToken") != stream.get("uploadSequenceToken"):
            raise client_error("InvalidSequenceTokenException")
        self._seq += 1
        stream["uploadSequenceToken"] = f"N{self._seq}"
        return {"nextSequenceToken": stream["uploadSequenceToken"]}


@pytest.fixture
def backend() -> FakeLogsClient:
    return FakeLogsClient()


@pytest.fixture
def clock() -> list[float]:
    return [1700000000.123]


@pytest.fixture
def appender(backend: FakeLogsClient, clock: list[float]) -> LogAppender:
    return LogAppender(client=backend, clock=lambda: clock[0])
