import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

from models import AidRequest, DetentionCamp, Incident, Volunteer
from services.classifier import DistrictClassifier
from services.errors import RecordNotFound, SubscriptionFailure
from services.records import filter_by_district
from services.store import AID_REQUESTS, COLLECTIONS, DETENTION_CAMPS, INCIDENTS, VOLUNTEERS, RecordStore
from services.taxonomy import action_status_color, camp_status_color, urgency_color

logger = logging.getLogger(__name__)


CONNECTION_HELP = (
    "Failed to connect to database. Check the record store configuration "
    "and network access, then reload the dashboard."
)


class DashboardFeed:
    """
    Holds the latest snapshot pushed for each collection.

    Every push replaces the whole snapshot; filtering and counting are redone
    by callers on each read. A failed subscription poisons the feed until it
    is restarted.
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self._snapshots: Dict[str, List[Any]] = {}
        self._unsubscribers: List[Callable[[], None]] = []
        self._error: Optional[str] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        self._error = None
        for collection, (_, order_field) in COLLECTIONS.items():
            try:
                unsubscribe = self.store.subscribe(
                    collection,
                    order_field,
                    self._make_callback(collection),
                    on_error=self._make_error_callback(collection),
                )
            except Exception as exc:
                self._fail(collection, exc)
                continue
            self._unsubscribers.append(unsubscribe)

    def stop(self) -> None:
        while self._unsubscribers:
            self._unsubscribers.pop()()

    def _make_callback(self, collection: str) -> Callable[[List[Any]], None]:
        def on_snapshot(records: List[Any]) -> None:
            with self._lock:
                self._snapshots[collection] = records
            logger.debug("Snapshot for %s: %d records", collection, len(records))

        return on_snapshot

    def _make_error_callback(self, collection: str) -> Callable[[Exception], None]:
        def on_error(exc: Exception) -> None:
            self._fail(collection, exc)

        return on_error

    def _fail(self, collection: str, exc: Exception) -> None:
        logger.error("Subscription to %s failed: %s", collection, exc)
        self._error = f"{collection}: {exc}"

    def _snapshot(self, collection: str) -> List[Any]:
        if self._error is not None:
            raise SubscriptionFailure(CONNECTION_HELP)
        with self._lock:
            if collection not in self._snapshots:
                raise SubscriptionFailure(CONNECTION_HELP)
            return list(self._snapshots[collection])

    def incidents(self) -> List[Incident]:
        return self._snapshot(INCIDENTS)

    def aid_requests(self) -> List[AidRequest]:
        return self._snapshot(AID_REQUESTS)

    def camps(self) -> List[DetentionCamp]:
        return self._snapshot(DETENTION_CAMPS)

    def volunteers(self) -> List[Volunteer]:
        return self._snapshot(VOLUNTEERS)

    def find(self, collection: str, record_id: str) -> Any:
        for record in self._snapshot(collection):
            if record.id == record_id:
                return record
        raise RecordNotFound(collection, record_id)


def _marker(kind: str, record: Any, district: str, color: str, title: str) -> Dict[str, Any]:
    return {
        "kind": kind,
        "id": record.id,
        "lat": record.latitude,
        "lng": record.longitude,
        "district": district,
        "color": color,
        "title": title,
    }


def build_map_layers(
    classifier: DistrictClassifier,
    district: str,
    incidents: Sequence[Incident],
    aid_requests: Sequence[AidRequest],
    camps: Sequence[DetentionCamp],
) -> Dict[str, Any]:
    """Viewport for the selected district plus coloured markers for everything in scope."""
    markers = []
    for incident in filter_by_district(incidents, district, classifier):
        name = classifier.classify(incident.latitude, incident.longitude)
        markers.append(_marker("incident", incident, name, urgency_color(incident.severity), incident.type))
    for aid in filter_by_district(aid_requests, district, classifier):
        name = classifier.classify(aid.latitude, aid.longitude)
        title = ", ".join(aid.aid_types) or "Aid request"
        marker = _marker("aid_request", aid, name, action_status_color(aid.aid_status), title)
        markers.append(marker)
    for camp in filter_by_district(camps, district, classifier):
        name = classifier.classify(camp.latitude, camp.longitude)
        marker = _marker("camp", camp, name, camp_status_color(camp.camp_status), camp.name)
        marker["approved"] = camp.admin_approved
        markers.append(marker)

    return {
        "district": district,
        "viewport": classifier.gazetteer.viewport_for(district),
        "markers": markers,
    }
