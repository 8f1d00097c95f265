import json
from typing import Any, Dict, List

from models import BoundingBox, District
from services.gazetteer import Gazetteer


def load_gazetteer(path: str) -> Gazetteer:
    with open(path) as f:
        data = json.load(f)

    districts = []
    for entry in data["districts"]:
        min_lat, min_lng, max_lat, max_lng = entry["bounds"]
        center_lat, center_lng = entry["center"]
        districts.append(
            District(
                name=entry["name"],
                bounds=BoundingBox(min_lat=min_lat, min_lng=min_lng, max_lat=max_lat, max_lng=max_lng),
                center_lat=center_lat,
                center_lng=center_lng,
                zoom=entry.get("zoom", 10),
            )
        )

    all_view = data["all_districts"]
    return Gazetteer(
        districts,
        version=data["version"],
        all_center=tuple(all_view["center"]),
        all_zoom=all_view["zoom"],
    )


def load_collection(path: str, collection: str) -> List[Dict[str, Any]]:
    """
    Read seed documents for one record-store collection.
    A missing file means the collection starts empty.
    """
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        return []
    return list(data.get(collection, []))
