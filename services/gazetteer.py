from typing import Dict, Iterator, List, Optional, Tuple

from models import ALL_DISTRICTS, District
from utils.geo import viewport


class Gazetteer:
    """
    Ordered, read-only table of district bounding boxes.

    Table order matters: the classifier returns the first district whose box
    contains a point, so overlapping boxes are resolved by position here.
    """

    def __init__(
        self,
        districts: List[District],
        version: str,
        all_center: Tuple[float, float],
        all_zoom: int,
    ):
        self._districts: Tuple[District, ...] = tuple(districts)
        self._by_name: Dict[str, District] = {d.name: d for d in self._districts}
        if len(self._by_name) != len(self._districts):
            raise ValueError("Duplicate district names in gazetteer")
        self.version = version
        self._all_center = all_center
        self._all_zoom = all_zoom

    def __iter__(self) -> Iterator[District]:
        return iter(self._districts)

    def __len__(self) -> int:
        return len(self._districts)

    def names(self) -> List[str]:
        return [d.name for d in self._districts]

    def get(self, name: str) -> Optional[District]:
        return self._by_name.get(name)

    def is_known(self, name: str) -> bool:
        return name == ALL_DISTRICTS or name in self._by_name

    def viewport_for(self, name: str) -> dict:
        district = self._by_name.get(name)
        if district is None:
            return viewport(self._all_center, self._all_zoom)
        return viewport((district.center_lat, district.center_lng), district.zoom)
