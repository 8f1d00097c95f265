import copy
import logging
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from models import AidRequest, DetentionCamp, Incident, Volunteer
from services.errors import RecordNotFound, WriteThroughFailure
from utils.data_loader import load_collection

logger = logging.getLogger(__name__)


INCIDENTS = "incidents"
AID_REQUESTS = "aid_requests"
DETENTION_CAMPS = "detention_camps"
VOLUNTEERS = "volunteers"

# collection -> (model, field the snapshot is ordered by, newest first)
COLLECTIONS: Dict[str, tuple] = {
    INCIDENTS: (Incident, "timestamp"),
    AID_REQUESTS: (AidRequest, "created_at"),
    DETENTION_CAMPS: (DetentionCamp, "created_at"),
    VOLUNTEERS: (Volunteer, "created_at"),
}

SnapshotCallback = Callable[[List[BaseModel]], None]
ErrorCallback = Callable[[Exception], None]


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_documents(collection: str, documents: List[Dict[str, Any]]) -> List[BaseModel]:
    """
    Turn raw store documents into records, applying field defaults once.
    Documents that cannot be parsed at all are skipped and logged.
    """
    model: Type[BaseModel] = COLLECTIONS[collection][0]
    records = []
    for doc in documents:
        try:
            records.append(model.model_validate(doc))
        except ValidationError as exc:
            logger.warning("Skipping unreadable %s document %s: %s", collection, doc.get("id"), exc)
    return records


class RecordStore(ABC):
    """
    Contract for the external document database.

    subscribe() must deliver the full ordered snapshot once on subscription and
    again after every change; there is no partial-diff contract.
    """

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        order_field: str,
        callback: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Callable[[], None]:
        raise NotImplementedError

    @abstractmethod
    def snapshot(self, collection: str, order_field: Optional[str] = None) -> List[BaseModel]:
        raise NotImplementedError

    @abstractmethod
    def update_partial(self, collection: str, record_id: str, fields: Dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def create_record(self, collection: str, record_id: str, record: Dict[str, Any]) -> None:
        raise NotImplementedError


class InMemoryRecordStore(RecordStore):
    def __init__(self, documents: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._lock = threading.RLock()
        self._docs: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in COLLECTIONS}
        self._subscribers: Dict[str, List[tuple]] = {name: [] for name in COLLECTIONS}
        for collection, docs in (documents or {}).items():
            self._check_collection(collection)
            for doc in docs:
                doc_id = str(doc["id"])
                self._docs[collection][doc_id] = copy.deepcopy(doc)

    @classmethod
    def from_directory(cls, data_dir: Path) -> "InMemoryRecordStore":
        documents = {
            name: load_collection(str(Path(data_dir) / f"{name}.json"), name)
            for name in COLLECTIONS
        }
        store = cls(documents)
        logger.info(
            "Loaded record store from %s: %s",
            data_dir,
            ", ".join(f"{name}={len(docs)}" for name, docs in documents.items()),
        )
        return store

    def _check_collection(self, collection: str) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection {collection!r}")

    def _ordered_documents(self, collection: str, order_field: str) -> List[Dict[str, Any]]:
        docs = [copy.deepcopy(d) for d in self._docs[collection].values()]
        docs.sort(key=lambda d: d.get(order_field) or 0, reverse=True)
        return docs

    def snapshot(self, collection: str, order_field: Optional[str] = None) -> List[BaseModel]:
        self._check_collection(collection)
        order_field = order_field or COLLECTIONS[collection][1]
        with self._lock:
            docs = self._ordered_documents(collection, order_field)
        return parse_documents(collection, docs)

    def subscribe(
        self,
        collection: str,
        order_field: str,
        callback: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Callable[[], None]:
        self._check_collection(collection)
        entry = (order_field, callback, on_error)
        with self._lock:
            self._subscribers[collection].append(entry)
            self._deliver(collection, entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._subscribers[collection]:
                    self._subscribers[collection].remove(entry)

        return unsubscribe

    def _deliver(self, collection: str, entry: tuple) -> None:
        order_field, callback, on_error = entry
        try:
            callback(self.snapshot(collection, order_field))
        except Exception as exc:
            logger.exception("Snapshot delivery for %s failed", collection)
            if on_error is not None:
                on_error(exc)

    def _notify(self, collection: str) -> None:
        # Pushes are taken and delivered under the lock so subscribers see them in write order
        with self._lock:
            for entry in list(self._subscribers[collection]):
                self._deliver(collection, entry)

    def update_partial(self, collection: str, record_id: str, fields: Dict[str, Any]) -> None:
        self._check_collection(collection)
        with self._lock:
            doc = self._docs[collection].get(record_id)
            if doc is None:
                raise RecordNotFound(collection, record_id)
            merged = {**doc, **copy.deepcopy(fields), "updated_at": now_ms()}
            try:
                COLLECTIONS[collection][0].model_validate(merged)
            except ValidationError as exc:
                raise WriteThroughFailure(collection, record_id, str(exc)) from exc
            # Only the listed fields (and updated_at) change
            self._docs[collection][record_id] = merged
        logger.info("Updated %s/%s fields=%s", collection, record_id, sorted(fields))
        self._notify(collection)

    def create_record(self, collection: str, record_id: str, record: Dict[str, Any]) -> None:
        self._check_collection(collection)
        doc = {**copy.deepcopy(record), "id": record_id}
        try:
            COLLECTIONS[collection][0].model_validate(doc)
        except ValidationError as exc:
            raise WriteThroughFailure(collection, record_id, str(exc)) from exc
        with self._lock:
            self._docs[collection][record_id] = doc
        logger.info("Created %s/%s", collection, record_id)
        self._notify(collection)
