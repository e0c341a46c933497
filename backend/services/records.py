# backend/services/records.py
import logging
from typing import Any, Dict

from utils.data_client import DataClient, DataClientError, RecordNotFound

logger = logging.getLogger(__name__)


def create_record(client: DataClient, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return client.insert(table, [fields])[0]
    except DataClientError as e:
        logger.error("Error creating %s record: %s", table, e)
        raise


def update_record(client: DataClient, table: str, record_id: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
    # No version check: the last write wins
    try:
        rows = client.update(table, record_id, fields)
    except DataClientError as e:
        logger.error("Error updating %s record: %s", table, e)
        raise
    if not rows:
        raise RecordNotFound(f"{table} record {record_id} not found")
    return rows[0]


def delete_record(client: DataClient, table: str, record_id: Any) -> bool:
    try:
        client.delete(table, record_id)
    except DataClientError as e:
        logger.error("Error deleting %s record: %s", table, e)
        raise
    return True
