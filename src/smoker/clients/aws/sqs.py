"""SQS queue client."""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from smoker.clients.aws.base import AwsServiceClient
from smoker.core.errors import ValidationError
from smoker.core.polling import wait_for


@dataclass
class SqsMessage:
    """A message received from a queue."""

    message_id: str
    body: str
    receipt_handle: str
    attributes: Dict[str, str] = field(default_factory=dict)


class SqsClient(AwsServiceClient):
    """Sends to and receives from one SQS queue.

    Configuration:
        queueUrl: (required) Queue URL
        region, endpoint, accessKeyId, secretAccessKey: see AwsServiceClient
    """

    service_name = "sqs"
    component = "sqs"

    def __init__(self, client_id: str = "SqsClient", config=None, aws_client_manager=None) -> None:
        super().__init__(client_id, config, aws_client_manager)
        self.queue_url = ""

    def _validate_config(self) -> None:
        self.queue_url = self.require_config("queueUrl", "SQS client")

    async def send_message(self, message_body: str, delay_seconds: int = 0) -> str:
        """Send a message.

        Returns:
            The message ID assigned by SQS
        """
        if not message_body:
            raise ValidationError("SQS send_message requires a message body")
        response = await self._call(
            "send_message", f"send message to {self.queue_url}",
            QueueUrl=self.queue_url, MessageBody=message_body, DelaySeconds=delay_seconds,
        )
        return response.get("MessageId", "")

    async def receive_messages(self, max_messages: int = 1,
                               wait_time_seconds: int = 0) -> List[SqsMessage]:
        """Receive up to max_messages messages (1-10)."""
        if not 1 <= max_messages <= 10:
            raise ValidationError("SQS max_messages must be between 1 and 10")
        response = await self._call(
            "receive_message", f"receive messages from {self.queue_url}",
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=max_messages,
            WaitTimeSeconds=wait_time_seconds,
            AttributeNames=["All"],
        )
        return [
            SqsMessage(
                message_id=message.get("MessageId", ""),
                body=message.get("Body", ""),
                receipt_handle=message.get("ReceiptHandle", ""),
                attributes=message.get("Attributes", {}),
            )
            for message in response.get("Messages", [])
        ]

    async def delete_message(self, receipt_handle: str) -> None:
        """Delete a received message."""
        if not receipt_handle:
            raise ValidationError("SQS delete_message requires a receipt handle")
        await self._call(
            "delete_message", f"delete message from {self.queue_url}",
            QueueUrl=self.queue_url, ReceiptHandle=receipt_handle,
        )

    async def purge_queue(self) -> None:
        """Delete every message in the queue."""
        await self._call("purge_queue", f"purge {self.queue_url}", QueueUrl=self.queue_url)

    async def wait_for_message(self, matcher: Callable[[SqsMessage], bool],
                               timeout_seconds: float = 30) -> Optional[SqsMessage]:
        """Wait for a message accepted by matcher.

        Returns:
            The first matching message, or None on timeout
        """
        self.ensure_initialized()

        def first_match(messages: List[SqsMessage]) -> Optional[SqsMessage]:
            return next((message for message in messages if matcher(message)), None)

        return await wait_for(
            lambda: self.receive_messages(max_messages=10),
            first_match,
            timeout_seconds,
            self.get_poll_interval(),
        )
