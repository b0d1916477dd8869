"""
store.py — Persistence of Issued Codes

This module provides the code store used by the pipeline:
    - MongoCodeStore: the production store (MongoDB collection `codes`)
    - InMemoryCodeStore: a process-local store for local runs and tests

Both stores insert atomically: uniqueness of `code` and of `orderId` is
enforced by the storage layer itself (unique indexes / a locked dict), not by
a separate existence check. A taken code raises `DuplicateCodeError`, which
the code generator answers with a fresh draw.
"""

import logging
import threading
from typing import Dict, Optional

from pydantic import ValidationError
from pymongo import ASCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from .errors import DuplicateCodeError, DuplicateOrderError, StoreError
from .models import CodeRecord

log = logging.getLogger(__name__)

COLLECTION_NAME = "codes"
UNIQUE_INDEXES = (("code", "code_unique"), ("orderId", "order_unique"))
DUPLICATE_KEY_ERROR = 11000


class CodeStore:
    """
    Interface of a code store. Records are never updated or deleted.
    """

    def exists(self, code: str) -> bool:
        raise NotImplementedError

    def insert(self, order_id: str, code: str, prefix: str, product_id: Optional[str] = None) -> CodeRecord:
        """
        Stores a new code record if neither the code nor the order is taken yet.

        Raises:
            DuplicateCodeError: If the code already belongs to another record.
            DuplicateOrderError: If the order already has a code.
            StoreError: If the backend fails.
        """
        raise NotImplementedError

    def find_by_order(self, order_id: str) -> Optional[CodeRecord]:
        raise NotImplementedError

    def close(self):
        pass


class MongoCodeStore(CodeStore):
    """
    Code store backed by a MongoDB collection.

    The collection carries unique indexes on `code` and `orderId`, so
    `insert_one` is the atomic insert-if-absent operation.
    """
    def __init__(self, uri: str, db_name: str, timeout_ms: int = 5000, client: Optional[MongoClient] = None):
        """
        Creates the Mongo client. No connection is opened until the first operation.

        Args:
            uri (str): MongoDB connection string.
            db_name (str): Database holding the `codes` collection.
            timeout_ms (int): Server selection and socket timeout in milliseconds.
            client (MongoClient, optional): Pre-built client, mainly for tests.
        """
        self.client = client or MongoClient(
            uri,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
        )
        self.collection = self.client[db_name][COLLECTION_NAME]
        self._indexes_ready = False
        self.missing_indexes = []
        self._lock = threading.Lock()

    def ensure_indexes(self):
        """
        Creates the unique indexes the store relies on. Safe to call repeatedly.

        If the server rejects an index because existing records already violate
        it (duplicate `orderId`s from before the index existed), the error is
        logged as critical and the store keeps working without that index:
        uniqueness then rests on the lookups the pipeline performs before
        inserting. Remove the duplicates and restart to restore the guarantee.

        Raises:
            StoreError: If MongoDB is unreachable. Index creation is retried
                on the next call.
        """
        with self._lock:
            if self._indexes_ready:
                return
            missing = []
            for field, name in UNIQUE_INDEXES:
                try:
                    self.collection.create_index([(field, ASCENDING)], unique=True, name=name)
                except OperationFailure as e:
                    if e.code != DUPLICATE_KEY_ERROR:
                        raise StoreError(f"Could not create index '{name}' on '{COLLECTION_NAME}': {e}") from e
                    log.critical(f"Unique index '{name}' on '{COLLECTION_NAME}' rejected by MongoDB, "
                                 f"existing records violate it: {e}")
                    missing.append(name)
                except PyMongoError as e:
                    raise StoreError(f"Could not create indexes on '{COLLECTION_NAME}': {e}") from e
            self.missing_indexes = missing
            self._indexes_ready = True
            if not missing:
                log.info("MongoDB indexes on 'codes' ready.")

    def exists(self, code: str) -> bool:
        try:
            return self.collection.find_one({"code": code}, projection={"_id": 1}) is not None
        except PyMongoError as e:
            raise StoreError(f"Lookup of code {code} failed: {e}") from e

    def insert(self, order_id: str, code: str, prefix: str, product_id: Optional[str] = None) -> CodeRecord:
        self.ensure_indexes()
        record = CodeRecord(orderId=order_id, code=code, prefix=prefix, productId=product_id)
        try:
            self.collection.insert_one(record.model_dump())
        except DuplicateKeyError as e:
            key_pattern = (e.details or {}).get("keyPattern") or {}
            if "orderId" in key_pattern:
                raise DuplicateOrderError(order_id) from e
            raise DuplicateCodeError(code) from e
        except PyMongoError as e:
            raise StoreError(f"Insert of code {code} for order {order_id} failed: {e}") from e
        return record

    def find_by_order(self, order_id: str) -> Optional[CodeRecord]:
        try:
            document = self.collection.find_one({"orderId": order_id})
        except PyMongoError as e:
            raise StoreError(f"Lookup of order {order_id} failed: {e}") from e
        if document is None:
            return None
        document.pop("_id", None)
        document.setdefault("createdAt", None)
        try:
            return CodeRecord.model_validate(document)
        except ValidationError as e:
            raise StoreError(f"Unreadable code record for order {order_id}: {e}") from e

    def close(self):
        self.client.close()


class InMemoryCodeStore(CodeStore):
    """
    Thread-safe, process-local code store.

    Used with `STORE_BACKEND=memory` for local development and in tests.
    Records are lost when the process exits.
    """
    def __init__(self):
        self._by_code: Dict[str, CodeRecord] = {}
        self._by_order: Dict[str, CodeRecord] = {}
        self._lock = threading.Lock()

    def exists(self, code: str) -> bool:
        with self._lock:
            return code in self._by_code

    def insert(self, order_id: str, code: str, prefix: str, product_id: Optional[str] = None) -> CodeRecord:
        with self._lock:
            if code in self._by_code:
                raise DuplicateCodeError(code)
            if order_id in self._by_order:
                raise DuplicateOrderError(order_id)
            record = CodeRecord(orderId=order_id, code=code, prefix=prefix, productId=product_id)
            self._by_code[code] = record
            self._by_order[order_id] = record
            return record

    def find_by_order(self, order_id: str) -> Optional[CodeRecord]:
        with self._lock:
            return self._by_order.get(order_id)

    def records(self):
        """Returns a snapshot of all stored records."""
        with self._lock:
            return list(self._by_code.values())
