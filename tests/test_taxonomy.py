import pytest

from models import ActionStatus, CampStatus
from services.taxonomy import (
    URGENCY_COLORS,
    action_status_color,
    camp_status_color,
    is_critical,
    priority_alert_label,
    severity_alert_label,
    status_label,
    urgency_color,
    urgency_label,
)


@pytest.mark.parametrize(
    "level, label",
    [(1, "Low"), (2, "Normal"), (3, "Medium"), (4, "High"), (5, "Critical")],
)
def test_labels_for_valid_levels(level, label):
    assert urgency_label(level) == label


@pytest.mark.parametrize("level", [0, None, 6, -1, 99, True])
def test_out_of_range_levels_fall_back_to_medium(level):
    assert urgency_label(level) == "Medium"
    assert urgency_color(level) == URGENCY_COLORS[2]


def test_critical_threshold():
    assert not is_critical(None)
    assert not is_critical(3)
    assert is_critical(4)
    assert is_critical(5)


def test_alert_wording():
    assert severity_alert_label(5) == "CRITICAL"
    assert severity_alert_label(3) == "HIGH"
    assert severity_alert_label(None) == "MODERATE"
    assert priority_alert_label(4) == "URGENT"
    assert priority_alert_label(3) == "HIGH"
    assert priority_alert_label(1) == "NORMAL"


def test_every_status_has_a_colour():
    assert {action_status_color(s) for s in ActionStatus} == {"#6b7280", "#3b82f6", "#10b981"}
    assert camp_status_color("full") == "#f59e0b"
    assert len({camp_status_color(s) for s in CampStatus}) == 3


def test_status_labels():
    assert status_label("taking action") == "Taking Action"
    assert status_label("operational") == "Operational"
    assert status_label("closed") == "Closed"
