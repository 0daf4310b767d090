"""Translate a batch of records into one list of bulk write requests."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pymongo import DeleteOne, InsertOne, UpdateOne

from stream_to_mongo.errors import MissingIndexFieldError
from stream_to_mongo.models import OperationType

WriteRequest = InsertOne | UpdateOne | DeleteOne


def _match_filter(
    record: Mapping[str, Any],
    index_name: str,
    operation_type: OperationType,
    position: int,
    batch_size: int,
) -> dict[str, Any]:
    if index_name not in record:
        raise MissingIndexFieldError(index_name, operation_type.value, position, batch_size)
    return {index_name: record[index_name]}


def build_operations(
    records: Sequence[Mapping[str, Any]],
    operation_type: OperationType,
    index_name: str | None = None,
) -> list[WriteRequest]:
    """Build the bulk write requests for a batch.

    Update and delete touch the first document whose ``index_name`` field
    equals the record's value. Updates ``$set`` every record field except
    ``_id``.

    Args:
        records: The batch, in acceptance order.
        operation_type: Mode governing what the requests do.
        index_name: Match key, required for update and delete.

    Returns:
        One request per record, in the same order.

    Raises:
        MissingIndexFieldError: If an update or delete record lacks ``index_name``.
        ValueError: If update or delete is requested without ``index_name``.
    """
    if operation_type is OperationType.INSERT:
        return [InsertOne(record) for record in records]

    if not index_name:
        raise ValueError(f"{operation_type.value} requires an index name")

    requests: list[WriteRequest] = []
    for position, record in enumerate(records):
        match = _match_filter(record, index_name, operation_type, position, len(records))
        if operation_type is OperationType.UPDATE:
            fields = {key: value for key, value in record.items() if key != "_id"}
            requests.append(UpdateOne(match, {"$set": fields}))
        else:
            requests.append(DeleteOne(match))
    return requests
