"""CloudWatch Logs client."""

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from smoker.clients.aws.base import AwsServiceClient
from smoker.core.errors import ValidationError
from smoker.core.polling import wait_for


@dataclass
class CloudWatchLogEvent:
    """A log event read from a log stream."""

    timestamp: int
    message: str
    log_stream_name: str


def _now_millis() -> int:
    return int(time.time() * 1000)


class CloudWatchClient(AwsServiceClient):
    """Searches and reads one CloudWatch log group.

    Configuration:
        logGroupName: (required) Log group name
        region, endpoint, accessKeyId, secretAccessKey: see AwsServiceClient
    """

    service_name = "logs"
    component = "cloudwatch"

    def __init__(self, client_id: str = "CloudWatchClient", config=None,
                 aws_client_manager=None) -> None:
        super().__init__(client_id, config, aws_client_manager)
        self.log_group_name = ""

    def _validate_config(self) -> None:
        self.log_group_name = self.require_config("logGroupName", "CloudWatch client")

    async def search_log_stream(self, log_stream_name: str, pattern: str,
                                start_time: Optional[int] = None,
                                end_time: Optional[int] = None) -> List[str]:
        """Filter a log stream for a pattern.

        Args:
            log_stream_name: Stream to search
            pattern: CloudWatch filter pattern
            start_time: Optional start, milliseconds since epoch
            end_time: Optional end, milliseconds since epoch

        Returns:
            Messages of the matching events
        """
        if not pattern:
            raise ValidationError("CloudWatch search requires a filter pattern")

        params: Dict[str, Any] = {
            "logGroupName": self.log_group_name,
            "logStreamNames": [log_stream_name],
            "filterPattern": pattern,
        }
        if start_time is not None:
            params["startTime"] = start_time
        if end_time is not None:
            params["endTime"] = end_time

        response = await self._call(
            "filter_log_events", f"search log stream {log_stream_name}", **params
        )
        return [event.get("message", "") for event in response.get("events", [])]

    async def get_log_events(self, log_stream_name: str, start_time: Optional[int] = None,
                             end_time: Optional[int] = None,
                             limit: Optional[int] = None) -> List[CloudWatchLogEvent]:
        """Read events from a log stream."""
        params: Dict[str, Any] = {
            "logGroupName": self.log_group_name,
            "logStreamName": log_stream_name,
        }
        if start_time is not None:
            params["startTime"] = start_time
        if end_time is not None:
            params["endTime"] = end_time
        if limit is not None:
            params["limit"] = limit

        response = await self._call(
            "get_log_events", f"get log events from {log_stream_name}", **params
        )
        return [
            CloudWatchLogEvent(
                timestamp=event.get("timestamp", 0),
                message=event.get("message", ""),
                log_stream_name=log_stream_name,
            )
            for event in response.get("events", [])
        ]

    async def list_log_streams(self) -> List[str]:
        """List log stream names of the log group, most recent first."""
        response = await self._call(
            "describe_log_streams", f"list log streams of {self.log_group_name}",
            logGroupName=self.log_group_name,
            orderBy="LastEventTime",
            descending=True,
        )
        return [
            stream["logStreamName"]
            for stream in response.get("logStreams", [])
            if stream.get("logStreamName")
        ]

    async def wait_for_pattern(self, log_stream_name: str, pattern: str,
                               timeout_seconds: float = 30) -> bool:
        """Wait until a pattern appears in a log stream.

        Only events logged after the wait started are considered.

        Returns:
            True if the pattern was found within the timeout, False otherwise
        """
        self.ensure_initialized()
        start_time = _now_millis()

        async def poll() -> List[str]:
            return await self.search_log_stream(
                log_stream_name, pattern, start_time, _now_millis()
            )

        found = await wait_for(
            poll, lambda messages: len(messages) > 0, timeout_seconds, self.get_poll_interval()
        )
        return found is not None
