from typing import Dict, Optional

from models import ActionStatus, CampStatus


URGENCY_LABELS = ["Low", "Normal", "Medium", "High", "Critical"]
URGENCY_COLORS = ["#10b981", "#3b82f6", "#f59e0b", "#f97316", "#dc2626"]
# Index used when a severity/priority is missing or outside 1-5
FALLBACK_INDEX = 2

CRITICAL_THRESHOLD = 4

ACTION_STATUS_COLORS: Dict[ActionStatus, str] = {
    ActionStatus.PENDING: "#6b7280",
    ActionStatus.TAKING_ACTION: "#3b82f6",
    ActionStatus.COMPLETED: "#10b981",
}

CAMP_STATUS_COLORS: Dict[CampStatus, str] = {
    CampStatus.OPERATIONAL: "#10b981",
    CampStatus.FULL: "#f59e0b",
    CampStatus.CLOSED: "#ef4444",
}

ACTION_STATUS_LABELS: Dict[ActionStatus, str] = {
    ActionStatus.PENDING: "Pending",
    ActionStatus.TAKING_ACTION: "Taking Action",
    ActionStatus.COMPLETED: "Completed",
}

CAMP_STATUS_LABELS: Dict[CampStatus, str] = {
    CampStatus.OPERATIONAL: "Operational",
    CampStatus.FULL: "Full",
    CampStatus.CLOSED: "Closed",
}


def _urgency_index(level: Optional[int]) -> int:
    if isinstance(level, bool) or not isinstance(level, int) or not 1 <= level <= len(URGENCY_LABELS):
        return FALLBACK_INDEX
    return level - 1


def urgency_label(level: Optional[int]) -> str:
    return URGENCY_LABELS[_urgency_index(level)]


def urgency_color(level: Optional[int]) -> str:
    return URGENCY_COLORS[_urgency_index(level)]


def is_critical(level: Optional[int]) -> bool:
    return level is not None and level >= CRITICAL_THRESHOLD


def severity_alert_label(severity: Optional[int]) -> str:
    """Wording used in incident alert e-mails."""
    severity = severity or 0
    if severity >= 4:
        return "CRITICAL"
    if severity >= 3:
        return "HIGH"
    return "MODERATE"


def priority_alert_label(priority: Optional[int]) -> str:
    """Wording used in aid request alert e-mails."""
    priority = priority or 0
    if priority >= 4:
        return "URGENT"
    if priority >= 3:
        return "HIGH"
    return "NORMAL"


def action_status_color(status: ActionStatus) -> str:
    return ACTION_STATUS_COLORS[ActionStatus(status)]


def camp_status_color(status: CampStatus) -> str:
    return CAMP_STATUS_COLORS[CampStatus(status)]


def status_label(state: str) -> str:
    """Display text for an incident, aid request or camp status value."""
    for labels in (ACTION_STATUS_LABELS, CAMP_STATUS_LABELS):
        for status, label in labels.items():
            if status.value == state:
                return label
    return state.title()
