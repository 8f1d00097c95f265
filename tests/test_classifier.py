import pytest

from models import ALL_DISTRICTS, UNKNOWN_DISTRICT, BoundingBox, District
from services.classifier import DistrictClassifier
from services.errors import NoDistrictMatch
from services.gazetteer import Gazetteer


def _interior_grid(box: BoundingBox, steps: int = 12):
    for i in range(1, steps):
        for j in range(1, steps):
            lat = box.min_lat + (box.max_lat - box.min_lat) * i / steps
            lng = box.min_lng + (box.max_lng - box.min_lng) * j / steps
            yield lat, lng


def test_gazetteer_has_25_unique_districts(gazetteer):
    names = gazetteer.names()
    assert len(names) == 25
    assert len(set(names)) == 25
    assert ALL_DISTRICTS not in names
    assert UNKNOWN_DISTRICT not in names


def test_gazetteer_boxes_are_valid_degrees(gazetteer):
    for district in gazetteer:
        box = district.bounds
        assert -90 <= box.min_lat < box.max_lat <= 90
        assert -180 <= box.min_lng < box.max_lng <= 180


def test_colombo_example(classifier):
    assert classifier.classify(6.90, 79.85) == "Colombo"


def test_point_outside_every_box_is_unknown(classifier):
    assert classifier.classify(10.0, 85.0) == UNKNOWN_DISTRICT
    assert classifier.classify(0.0, 0.0) == UNKNOWN_DISTRICT
    assert classifier.classify(-6.9, -79.8) == UNKNOWN_DISTRICT


def test_box_edges_are_inclusive(classifier):
    assert classifier.classify(6.78, 79.74) == "Colombo"


def test_points_only_in_one_box_classify_to_that_district(gazetteer, classifier):
    checked = 0
    for district in gazetteer:
        others = [d for d in gazetteer if d.name != district.name]
        for lat, lng in _interior_grid(district.bounds):
            if any(o.bounds.contains(lat, lng) for o in others):
                continue
            assert classifier.classify(lat, lng) == district.name
            checked += 1
    assert checked > 0


def test_overlap_goes_to_first_listed_district(classifier):
    # Inside both the Colombo and Gampaha boxes
    point = (7.0, 79.95)
    assert classifier.classify(*point) == "Colombo"
    assert {classifier.classify(*point) for _ in range(10)} == {"Colombo"}


def test_overlap_winner_follows_table_order():
    a = District(name="A", bounds=BoundingBox(min_lat=0, min_lng=0, max_lat=2, max_lng=2), center_lat=1, center_lng=1)
    b = District(name="B", bounds=BoundingBox(min_lat=1, min_lng=1, max_lat=3, max_lng=3), center_lat=2, center_lng=2)

    forward = DistrictClassifier(Gazetteer([a, b], version="t", all_center=(0, 0), all_zoom=5))
    backward = DistrictClassifier(Gazetteer([b, a], version="t", all_center=(0, 0), all_zoom=5))

    assert forward.classify(1.5, 1.5) == "A"
    assert backward.classify(1.5, 1.5) == "B"


def test_duplicate_names_are_rejected():
    box = BoundingBox(min_lat=0, min_lng=0, max_lat=1, max_lng=1)
    d = District(name="A", bounds=box, center_lat=0.5, center_lng=0.5)
    with pytest.raises(ValueError):
        Gazetteer([d, d], version="t", all_center=(0, 0), all_zoom=5)


def test_require_district_raises_for_unknown(classifier):
    with pytest.raises(NoDistrictMatch):
        classifier.require_district(10.0, 85.0)
    assert classifier.require_district(6.90, 79.85) == "Colombo"


def test_viewport_falls_back_to_island_view(gazetteer):
    assert gazetteer.viewport_for(ALL_DISTRICTS) == {"center": [7.8731, 80.7718], "zoom": 7}
    assert gazetteer.viewport_for("Colombo") == {"center": [6.9271, 79.8612], "zoom": 11}


def test_district_model_is_immutable(gazetteer):
    district = gazetteer.get("Kandy")
    with pytest.raises(Exception):
        district.name = "Somewhere else"
