"""Kinesis data stream client."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from smoker.clients.aws.base import AwsServiceClient
from smoker.core.errors import ServiceClientError, ValidationError, ERR_AWS_CALL
from smoker.core.polling import wait_for


SEQUENCE_ITERATOR_TYPES = ("AT_SEQUENCE_NUMBER", "AFTER_SEQUENCE_NUMBER")


@dataclass
class KinesisRecord:
    """A record read from a stream."""

    data: str
    partition_key: str
    sequence_number: str
    approximate_arrival_timestamp: Optional[datetime] = None


class KinesisClient(AwsServiceClient):
    """Writes to and reads from one Kinesis stream.

    Configuration:
        streamName: (required) Stream name
        region, endpoint, accessKeyId, secretAccessKey: see AwsServiceClient
    """

    service_name = "kinesis"
    component = "kinesis"

    def __init__(self, client_id: str = "KinesisClient", config=None, aws_client_manager=None) -> None:
        super().__init__(client_id, config, aws_client_manager)
        self.stream_name = ""

    def _validate_config(self) -> None:
        self.stream_name = self.require_config("streamName", "Kinesis client")

    async def put_record(self, data: Union[str, bytes], partition_key: str) -> str:
        """Put one record.

        Returns:
            Sequence number of the record
        """
        if not data:
            raise ValidationError("Kinesis put_record requires data content")
        if not partition_key:
            raise ValidationError("Kinesis put_record requires a partition key")

        response = await self._call(
            "put_record", f"put record into stream {self.stream_name}",
            StreamName=self.stream_name,
            Data=data if isinstance(data, bytes) else data.encode("utf-8"),
            PartitionKey=partition_key,
        )
        return response.get("SequenceNumber", "")

    async def get_records(self, shard_iterator: str, limit: int = 10) -> List[KinesisRecord]:
        """Read records at a shard iterator."""
        records, _ = await self._get_records_page(shard_iterator, limit)
        return records

    async def _get_records_page(self, shard_iterator: str, limit: int):
        if not shard_iterator:
            raise ValidationError("Kinesis get_records requires a shard iterator")
        response = await self._call(
            "get_records", f"get records from stream {self.stream_name}",
            ShardIterator=shard_iterator, Limit=limit,
        )
        return self._format_records(response.get("Records", [])), response.get("NextShardIterator")

    async def get_shard_iterator(self, shard_id: str, iterator_type: str = "LATEST",
                                 sequence: Optional[str] = None) -> str:
        """Get an iterator for a shard."""
        if not shard_id:
            raise ValidationError("Kinesis get_shard_iterator requires a shard ID")

        params: Dict[str, Any] = {
            "StreamName": self.stream_name,
            "ShardId": shard_id,
            "ShardIteratorType": iterator_type,
        }
        if sequence and iterator_type in SEQUENCE_ITERATOR_TYPES:
            params["StartingSequenceNumber"] = sequence

        response = await self._call(
            "get_shard_iterator", f"get shard iterator for stream {self.stream_name}", **params
        )
        shard_iterator = response.get("ShardIterator")
        if not shard_iterator:
            raise ServiceClientError(
                "Failed to get Kinesis shard iterator",
                code=ERR_AWS_CALL,
                domain="aws",
                details={"component": "kinesis", "stream": self.stream_name, "shard": shard_id},
            )
        return shard_iterator

    async def list_shards(self) -> List[str]:
        """List shard IDs of the stream."""
        response = await self._call(
            "list_shards", f"list shards for stream {self.stream_name}",
            StreamName=self.stream_name,
        )
        return [shard.get("ShardId", "") for shard in response.get("Shards", [])]

    @staticmethod
    def _format_records(aws_records: List[Dict[str, Any]]) -> List[KinesisRecord]:
        records = []
        for record in aws_records:
            data = record.get("Data", b"")
            records.append(KinesisRecord(
                data=data.decode("utf-8") if isinstance(data, bytes) else str(data),
                partition_key=record.get("PartitionKey", ""),
                sequence_number=record.get("SequenceNumber", ""),
                approximate_arrival_timestamp=record.get("ApproximateArrivalTimestamp"),
            ))
        return records

    async def wait_for_records(self, partition_key: str,
                               timeout_seconds: float = 30) -> List[KinesisRecord]:
        """Wait for records with a partition key on the first shard.

        Returns:
            Matching records, or an empty list on timeout
        """
        self.ensure_initialized()
        if not partition_key:
            raise ValidationError("Kinesis wait_for_records requires a partition key")

        shards = await self.list_shards()
        if not shards:
            return []

        iterator = {"current": await self.get_shard_iterator(shards[0], "LATEST")}

        async def poll() -> List[KinesisRecord]:
            records, next_iterator = await self._get_records_page(iterator["current"], 100)
            iterator["current"] = next_iterator or iterator["current"]
            return records

        def matching(records: List[KinesisRecord]) -> List[KinesisRecord]:
            return [record for record in records if record.partition_key == partition_key]

        matches = await wait_for(poll, matching, timeout_seconds, self.get_poll_interval())
        return matches or []
