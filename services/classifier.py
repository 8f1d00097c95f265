from models import UNKNOWN_DISTRICT
from services.errors import NoDistrictMatch
from services.gazetteer import Gazetteer


class DistrictClassifier:
    """
    Point-in-rectangle lookup against a Gazetteer.

    Boxes approximate real district shapes and some of them overlap; a contested
    point goes to whichever district is listed first. Points outside every box
    are "Unknown", which is a normal outcome rather than an error.
    """

    def __init__(self, gazetteer: Gazetteer):
        self.gazetteer = gazetteer

    def classify(self, lat: float, lng: float) -> str:
        for district in self.gazetteer:
            if district.bounds.contains(lat, lng):
                return district.name
        return UNKNOWN_DISTRICT

    def require_district(self, lat: float, lng: float) -> str:
        """Like classify(), but raise NoDistrictMatch instead of returning "Unknown"."""
        district = self.classify(lat, lng)
        if district == UNKNOWN_DISTRICT:
            raise NoDistrictMatch(lat, lng)
        return district
