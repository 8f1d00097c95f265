from typing import Tuple


def maps_url(lat: float, lon: float) -> str:
    return f"https://www.google.com/maps?q={lat},{lon}"


def format_coordinates(lat: float, lon: float) -> str:
    return f"{lat:.6f}, {lon:.6f}"


def viewport(center: Tuple[float, float], zoom: int) -> dict:
    """
    Map viewport in the shape the front-end map expects: {"center": [lat, lng], "zoom": n}
    """
    return {"center": [center[0], center[1]], "zoom": zoom}
