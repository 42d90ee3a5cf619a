"""
Table store adapters.

A minimal partition/row-keyed entity store with conditional (ETag) updates,
backed by SQLite for local use or Azure Table Storage in production.
"""

import json
import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from itertools import islice
from typing import Any, Dict, List, Optional

from azure.core import MatchConditions
from azure.core.exceptions import (
    AzureError,
    HttpResponseError,
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)
from azure.data.tables import TableServiceClient, UpdateMode

from .db import get_connection, initialize_schema

logger = logging.getLogger(__name__)

SQLITE_PREFIX = "sqlite:///"


class TableStoreError(Exception):
    """Base class for table store failures."""


class StoreUnavailable(TableStoreError):
    """The store is not configured or a call to it failed."""


class EntityNotFound(TableStoreError):
    """The addressed entity does not exist."""


class EntityExists(TableStoreError):
    """An entity with the same keys already exists."""


class ETagMismatch(TableStoreError):
    """The entity changed since it was read; the conditional write lost."""


@dataclass
class TableEntity:
    """A stored entity with the version token it was read at."""
    partition_key: str
    row_key: str
    properties: Dict[str, Any] = field(default_factory=dict)
    etag: Optional[str] = None


class TableStore(ABC):
    """Partition/row-keyed entity store supporting conditional replace."""

    @abstractmethod
    def create_table(self, table: str) -> None:
        """Create the table if it does not exist."""

    @abstractmethod
    def get_entity(self, table: str, partition_key: str, row_key: str) -> Optional[TableEntity]:
        """Return the entity, or None when it does not exist."""

    @abstractmethod
    def create_entity(self, table: str, partition_key: str, row_key: str,
                      properties: Dict[str, Any]) -> str:
        """Insert a new entity and return its etag.

        Raises:
            EntityExists: If the keys are already taken
        """

    @abstractmethod
    def update_entity(self, table: str, partition_key: str, row_key: str,
                      properties: Dict[str, Any], etag: str) -> str:
        """Replace an entity only if its etag still matches; return the new etag.

        Raises:
            EntityNotFound: If the entity was deleted or never existed
            ETagMismatch: If another writer changed the entity first
        """

    @abstractmethod
    def query_entities(self, table: str, partition_key: str,
                       limit: Optional[int] = None) -> List[TableEntity]:
        """Return a partition's entities in ascending row-key order."""


class SqliteTableStore(TableStore):
    """Table store on a local SQLite file.

    Every operation opens its own connection, so one instance can be
    shared by concurrent handler invocations.
    """

    def __init__(self, db_path: str):
        if not db_path or not db_path.strip():
            raise ValueError("db_path is required and cannot be empty")
        self.db_path = db_path

    def create_table(self, table: str) -> None:
        try:
            initialize_schema(self.db_path)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot initialize {self.db_path}: {e}") from e

    def get_entity(self, table: str, partition_key: str, row_key: str) -> Optional[TableEntity]:
        rows = self._execute(
            "SELECT partition_key, row_key, properties, etag FROM table_entity "
            "WHERE table_name = ? AND partition_key = ? AND row_key = ?",
            (table, partition_key, row_key),
        )
        if not rows:
            return None
        return self._to_entity(rows[0])

    def create_entity(self, table: str, partition_key: str, row_key: str,
                      properties: Dict[str, Any]) -> str:
        etag = uuid.uuid4().hex
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO table_entity (table_name, partition_key, row_key, properties, etag) "
                "VALUES (?, ?, ?, ?, ?)",
                (table, partition_key, row_key, json.dumps(properties), etag),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise EntityExists(f"{table}/{partition_key}/{row_key} already exists") from e
        except sqlite3.Error as e:
            raise StoreUnavailable(str(e)) from e
        finally:
            conn.close()
        return etag

    def update_entity(self, table: str, partition_key: str, row_key: str,
                      properties: Dict[str, Any], etag: str) -> str:
        new_etag = uuid.uuid4().hex
        conn = self._connect()
        try:
            cursor = conn.execute(
                "UPDATE table_entity SET properties = ?, etag = ? "
                "WHERE table_name = ? AND partition_key = ? AND row_key = ? AND etag = ?",
                (json.dumps(properties), new_etag, table, partition_key, row_key, etag),
            )
            if cursor.rowcount == 0:
                exists = conn.execute(
                    "SELECT 1 FROM table_entity "
                    "WHERE table_name = ? AND partition_key = ? AND row_key = ?",
                    (table, partition_key, row_key),
                ).fetchone()
                conn.rollback()
                if exists is None:
                    raise EntityNotFound(f"{table}/{partition_key}/{row_key} does not exist")
                raise ETagMismatch(f"{table}/{partition_key}/{row_key} was modified")
            conn.commit()
        except sqlite3.Error as e:
            raise StoreUnavailable(str(e)) from e
        finally:
            conn.close()
        return new_etag

    def query_entities(self, table: str, partition_key: str,
                       limit: Optional[int] = None) -> List[TableEntity]:
        rows = self._execute(
            "SELECT partition_key, row_key, properties, etag FROM table_entity "
            "WHERE table_name = ? AND partition_key = ? ORDER BY row_key LIMIT ?",
            (table, partition_key, -1 if limit is None else limit),
        )
        return [self._to_entity(row) for row in rows]

    def _connect(self):
        try:
            return get_connection(self.db_path)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open {self.db_path}: {e}") from e

    def _execute(self, query: str, params: tuple) -> list:
        conn = self._connect()
        try:
            return conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailable(str(e)) from e
        finally:
            conn.close()

    @staticmethod
    def _to_entity(row) -> TableEntity:
        return TableEntity(
            partition_key=row[0],
            row_key=row[1],
            properties=json.loads(row[2]),
            etag=row[3],
        )


class AzureTableStore(TableStore):
    """Table store on Azure Table Storage (or Azurite locally)."""

    def __init__(self, service: TableServiceClient):
        self.service = service

    @classmethod
    def from_connection_string(cls, connection: str) -> "AzureTableStore":
        return cls(TableServiceClient.from_connection_string(conn_str=connection))

    def create_table(self, table: str) -> None:
        try:
            self.service.create_table_if_not_exists(table_name=table)
        except AzureError as e:
            raise StoreUnavailable(f"Cannot create table {table}: {e}") from e

    def get_entity(self, table: str, partition_key: str, row_key: str) -> Optional[TableEntity]:
        client = self.service.get_table_client(table_name=table)
        try:
            entity = client.get_entity(partition_key=partition_key, row_key=row_key)
        except ResourceNotFoundError:
            return None
        except AzureError as e:
            raise StoreUnavailable(str(e)) from e
        return self._to_entity(entity)

    def create_entity(self, table: str, partition_key: str, row_key: str,
                      properties: Dict[str, Any]) -> str:
        client = self.service.get_table_client(table_name=table)
        entity = dict(properties, PartitionKey=partition_key, RowKey=row_key)
        try:
            metadata = client.create_entity(entity=entity)
        except ResourceExistsError as e:
            raise EntityExists(f"{table}/{partition_key}/{row_key} already exists") from e
        except AzureError as e:
            raise StoreUnavailable(str(e)) from e
        return metadata.get("etag")

    def update_entity(self, table: str, partition_key: str, row_key: str,
                      properties: Dict[str, Any], etag: str) -> str:
        client = self.service.get_table_client(table_name=table)
        entity = dict(properties, PartitionKey=partition_key, RowKey=row_key)
        try:
            metadata = client.update_entity(
                entity=entity,
                mode=UpdateMode.REPLACE,
                etag=etag,
                match_condition=MatchConditions.IfNotModified,
            )
        except ResourceNotFoundError as e:
            raise EntityNotFound(f"{table}/{partition_key}/{row_key} does not exist") from e
        except HttpResponseError as e:
            if isinstance(e, ResourceModifiedError) or e.status_code == 412:
                raise ETagMismatch(f"{table}/{partition_key}/{row_key} was modified") from e
            raise StoreUnavailable(str(e)) from e
        except AzureError as e:
            raise StoreUnavailable(str(e)) from e
        return metadata.get("etag")

    def query_entities(self, table: str, partition_key: str,
                       limit: Optional[int] = None) -> List[TableEntity]:
        client = self.service.get_table_client(table_name=table)
        try:
            entities = client.query_entities(
                query_filter="PartitionKey eq @pk",
                parameters={"pk": partition_key},
            )
            return [self._to_entity(entity) for entity in islice(entities, limit)]
        except AzureError as e:
            raise StoreUnavailable(str(e)) from e

    @staticmethod
    def _to_entity(entity) -> TableEntity:
        properties = {
            key: value for key, value in entity.items()
            if key not in ("PartitionKey", "RowKey")
        }
        return TableEntity(
            partition_key=entity["PartitionKey"],
            row_key=entity["RowKey"],
            properties=properties,
            etag=entity.metadata.get("etag"),
        )


def open_table_store(connection: Optional[str]) -> Optional[TableStore]:
    """Open the table store named by a connection setting.

    ``sqlite:///path`` or a ``.db`` path selects SQLite; anything else is
    treated as an Azure Storage connection string. Blank means no store.
    """
    if not connection or not connection.strip():
        return None
    connection = connection.strip()
    if connection.startswith(SQLITE_PREFIX):
        return SqliteTableStore(connection[len(SQLITE_PREFIX):])
    if connection.endswith(".db"):
        return SqliteTableStore(connection)
    logger.debug("Opening Azure table store")
    return AzureTableStore.from_connection_string(connection)
