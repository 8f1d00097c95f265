from typing import Any, Dict, List, Optional, Sequence, TypeVar

from models import (
    ALL_DISTRICTS,
    ActionStatus,
    ApprovalFilter,
    CampCounts,
    CampStatus,
    Counts,
    DetentionCamp,
    GeoRecord,
    Incident,
    SortKey,
    StatusBucket,
    Volunteer,
    VolunteerCounts,
)
from services.classifier import DistrictClassifier
from services.taxonomy import is_critical, status_label, urgency_color, urgency_label

R = TypeVar("R", bound=GeoRecord)


def filter_by_district(records: Sequence[R], district: str, classifier: DistrictClassifier) -> List[R]:
    if district == ALL_DISTRICTS:
        return list(records)
    return [r for r in records if classifier.classify(r.latitude, r.longitude) == district]


def filter_by_status_bucket(records: Sequence[R], bucket: StatusBucket) -> List[R]:
    bucket = StatusBucket(bucket)
    if bucket == StatusBucket.ALL:
        return list(records)
    if bucket == StatusBucket.CRITICAL:
        return [r for r in records if is_critical(r.urgency)]
    return [r for r in records if r.state == bucket.value]


def filter_by_type(incidents: Sequence[Incident], incident_type: Optional[str]) -> List[Incident]:
    if not incident_type or incident_type.lower() == "all":
        return list(incidents)
    wanted = incident_type.strip().lower()
    return [i for i in incidents if i.type.lower() == wanted]


def sort_records(records: Sequence[R], key: SortKey) -> List[R]:
    """
    Stable sort: records with equal keys keep their incoming relative order.
    Missing severities sort as 0.
    """
    key = SortKey(key)
    if key == SortKey.RECENT:
        return sorted(records, key=lambda r: r.created_ms, reverse=True)
    if key == SortKey.OLDEST:
        return sorted(records, key=lambda r: r.created_ms)
    return sorted(records, key=lambda r: r.urgency or 0, reverse=True)


def aggregate_counts(records: Sequence[GeoRecord]) -> Counts:
    return Counts(
        total=len(records),
        critical=sum(1 for r in records if is_critical(r.urgency)),
        completed=sum(1 for r in records if r.state == ActionStatus.COMPLETED.value),
        pending=sum(1 for r in records if r.state == ActionStatus.PENDING.value),
        taking_action=sum(1 for r in records if r.state == ActionStatus.TAKING_ACTION.value),
    )


def camp_counts(camps: Sequence[DetentionCamp]) -> CampCounts:
    return CampCounts(
        total=len(camps),
        operational=sum(1 for c in camps if c.camp_status == CampStatus.OPERATIONAL),
        full=sum(1 for c in camps if c.camp_status == CampStatus.FULL),
        closed=sum(1 for c in camps if c.camp_status == CampStatus.CLOSED),
        pending_approval=sum(1 for c in camps if not c.admin_approved),
        approved=sum(1 for c in camps if c.admin_approved),
    )


def filter_camps_by_approval(camps: Sequence[DetentionCamp], approval: ApprovalFilter) -> List[DetentionCamp]:
    approval = ApprovalFilter(approval)
    if approval == ApprovalFilter.ALL:
        return list(camps)
    wanted = approval == ApprovalFilter.APPROVED
    return [c for c in camps if c.admin_approved == wanted]


def sort_volunteers(volunteers: Sequence[Volunteer]) -> List[Volunteer]:
    # Pending registrations first, newest first within each group
    return sorted(volunteers, key=lambda v: (v.approved, -(v.created_at or 0)))


def volunteer_counts(volunteers: Sequence[Volunteer]) -> VolunteerCounts:
    approved = sum(1 for v in volunteers if v.approved)
    return VolunteerCounts(total=len(volunteers), pending=len(volunteers) - approved, approved=approved)


def record_view(record: GeoRecord, classifier: DistrictClassifier) -> Dict[str, Any]:
    view = record.model_dump(mode="json", by_alias=True)
    view["district"] = classifier.classify(record.latitude, record.longitude)
    view["status_label"] = status_label(record.state)
    if not isinstance(record, DetentionCamp):
        view["urgency_label"] = urgency_label(record.urgency)
        view["urgency_color"] = urgency_color(record.urgency)
    return view


def build_list_view(
    records: Sequence[R],
    classifier: DistrictClassifier,
    district: str = ALL_DISTRICTS,
    bucket: StatusBucket = StatusBucket.ALL,
    sort_key: SortKey = SortKey.RECENT,
    incident_type: Optional[str] = None,
) -> Dict[str, Any]:
    """
    District scope first, then counts, then the status bucket.
    Counts therefore describe the whole district, whatever bucket is selected.
    """
    scoped = filter_by_district(records, district, classifier)
    counts = aggregate_counts(scoped)

    visible = filter_by_status_bucket(scoped, bucket)
    if incident_type is not None:
        visible = filter_by_type(visible, incident_type)
    visible = sort_records(visible, sort_key)

    return {
        "district": district,
        "status_filter": StatusBucket(bucket).value,
        "sort": SortKey(sort_key).value,
        "counts": counts.model_dump(),
        "items": [record_view(r, classifier) for r in visible],
    }


def build_camp_view(
    camps: Sequence[DetentionCamp],
    classifier: DistrictClassifier,
    district: str = ALL_DISTRICTS,
    approval: ApprovalFilter = ApprovalFilter.ALL,
) -> Dict[str, Any]:
    scoped = filter_by_district(camps, district, classifier)
    counts = camp_counts(scoped)
    visible = sort_records(filter_camps_by_approval(scoped, approval), SortKey.RECENT)
    return {
        "district": district,
        "approval_filter": ApprovalFilter(approval).value,
        "counts": counts.model_dump(),
        "items": [record_view(c, classifier) for c in visible],
    }
