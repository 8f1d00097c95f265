from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from models import (
    ALL_DISTRICTS,
    UNKNOWN_DISTRICT,
    ActionStatus,
    AidRequest,
    CampStatus,
    DetentionCamp,
    GeoRecord,
    Incident,
)
from services.classifier import DistrictClassifier
from services.records import filter_by_district
from services.taxonomy import CRITICAL_THRESHOLD, URGENCY_LABELS

DAY_MS = 24 * 60 * 60 * 1000
TRAPPED_PATTERN = r"People trapped: (\d+)"
TOP_TYPES = 6


def start_of_day_ms(now_ms: int, tz: timezone) -> int:
    now = datetime.fromtimestamp(now_ms / 1000, tz)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000)


def _frame(records: Sequence[GeoRecord], classifier: DistrictClassifier) -> pd.DataFrame:
    rows = [
        {
            "id": r.id,
            "district": classifier.classify(r.latitude, r.longitude),
            "created": r.created_ms,
            "urgency": r.urgency,
            "state": r.state,
            "type": getattr(r, "type", None),
            "description": getattr(r, "description", None),
        }
        for r in records
    ]
    df = pd.DataFrame(rows, columns=["id", "district", "created", "urgency", "state", "type", "description"])
    df["created"] = pd.to_numeric(df["created"], errors="coerce").fillna(0)
    df["urgency"] = pd.to_numeric(df["urgency"], errors="coerce")
    return df


def _by_state(df: pd.DataFrame, states: List[str]) -> Dict[str, int]:
    counts = df["state"].value_counts()
    return {state: int(counts.get(state, 0)) for state in states}


def _by_urgency(df: pd.DataFrame) -> Dict[str, int]:
    levels = df["urgency"].dropna()
    levels = levels[(levels >= 1) & (levels <= len(URGENCY_LABELS))].astype(int)
    counts = np.bincount(levels.to_numpy(), minlength=len(URGENCY_LABELS) + 1)[1:]
    return {label: int(n) for label, n in zip(URGENCY_LABELS, counts)}


def _activity(df: pd.DataFrame, now_ms: int, tz: timezone) -> Dict[str, int]:
    return {
        "today": int((df["created"] >= start_of_day_ms(now_ms, tz)).sum()),
        "last_7_days": int((df["created"] >= now_ms - 7 * DAY_MS).sum()),
    }


def incident_stats(df: pd.DataFrame, now_ms: int, tz: timezone) -> Dict[str, Any]:
    trapped = df[df["type"] == "Trapped Civilians"]
    people = trapped["description"].dropna().astype(str).str.extract(TRAPPED_PATTERN)[0]
    people = pd.to_numeric(people, errors="coerce").dropna()
    # Counts that do not fit in int64 are dropped
    people = people[people <= np.iinfo(np.int64).max]
    top_types = df["type"].dropna().value_counts().head(TOP_TYPES)
    return {
        "total": int(len(df)),
        **_activity(df, now_ms, tz),
        "critical": int((df["urgency"] >= CRITICAL_THRESHOLD).sum()),
        "trapped_civilians": int(len(trapped)),
        "people_trapped": int(people.sum()),
        "road_blocks": int((df["type"] == "Road Block").sum()),
        "by_status": _by_state(df, [s.value for s in ActionStatus]),
        "by_severity": _by_urgency(df),
        "top_types": [{"name": name, "value": int(n)} for name, n in top_types.items()],
    }


def aid_stats(df: pd.DataFrame, now_ms: int, tz: timezone) -> Dict[str, Any]:
    return {
        "total": int(len(df)),
        **_activity(df, now_ms, tz),
        "critical": int((df["urgency"] >= CRITICAL_THRESHOLD).sum()),
        "by_status": _by_state(df, [s.value for s in ActionStatus]),
        "by_priority": _by_urgency(df),
    }


def camp_stats(camps: Sequence[DetentionCamp]) -> Dict[str, Any]:
    capacity = sum(c.capacity for c in camps)
    occupancy = sum(c.current_occupancy for c in camps)
    return {
        "total": len(camps),
        "operational": sum(1 for c in camps if c.camp_status == CampStatus.OPERATIONAL),
        "full": sum(1 for c in camps if c.camp_status == CampStatus.FULL),
        "closed": sum(1 for c in camps if c.camp_status == CampStatus.CLOSED),
        "capacity": capacity,
        "occupancy": occupancy,
        "available": capacity - occupancy,
        "occupancy_rate": round(occupancy / capacity * 100) if capacity > 0 else 0,
    }


def district_breakdown(
    classifier: DistrictClassifier,
    incidents: pd.DataFrame,
    aid_requests: pd.DataFrame,
    camps: Sequence[DetentionCamp],
) -> List[Dict[str, Any]]:
    """One row per district (table order) plus "Unknown", over the unscoped data."""
    camp_districts = pd.Series(
        [classifier.classify(c.latitude, c.longitude) for c in camps], dtype="object"
    )
    table = pd.concat(
        {
            "incidents": incidents["district"].value_counts(),
            "critical_incidents": incidents.loc[incidents["urgency"] >= CRITICAL_THRESHOLD, "district"].value_counts(),
            "aid_requests": aid_requests["district"].value_counts(),
            "camps": camp_districts.value_counts(),
        },
        axis=1,
    )
    table = table.reindex(classifier.gazetteer.names() + [UNKNOWN_DISTRICT]).fillna(0).astype(int)
    return [{"district": name, **{col: int(v) for col, v in row.items()}} for name, row in table.iterrows()]


def build_overview(
    classifier: DistrictClassifier,
    incidents: Sequence[Incident],
    aid_requests: Sequence[AidRequest],
    camps: Sequence[DetentionCamp],
    now_ms: int,
    tz: timezone,
    district: str = ALL_DISTRICTS,
) -> Dict[str, Any]:
    all_incidents = _frame(incidents, classifier)
    all_aid = _frame(aid_requests, classifier)

    if district == ALL_DISTRICTS:
        scoped_incidents, scoped_aid, scoped_camps = all_incidents, all_aid, list(camps)
    else:
        scoped_incidents = all_incidents[all_incidents["district"] == district]
        scoped_aid = all_aid[all_aid["district"] == district]
        scoped_camps = filter_by_district(camps, district, classifier)

    return {
        "district": district,
        "incidents": incident_stats(scoped_incidents, now_ms, tz),
        "aid_requests": aid_stats(scoped_aid, now_ms, tz),
        "camps": camp_stats(scoped_camps),
        "by_district": district_breakdown(classifier, all_incidents, all_aid, camps),
    }
