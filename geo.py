from math import acos, cos, radians

from sqlalchemy import func

from models_db import EventDB

EARTH_RADIUS_MILES = 3959


def great_circle_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance between two points on earth in miles (spherical law of cosines)"""
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    # cos(a)cos(b)cos(dlon) + sin(a)sin(b), rearranged so identical points give exactly 1
    x = cos(lat1 - lat2) - cos(lat1) * cos(lat2) * (1 - cos(lon2 - lon1))
    return EARTH_RADIUS_MILES * acos(max(-1.0, min(1.0, x)))


def distance_expression(latitude: float, longitude: float):
    """The same formula as a SQL expression over the events table, in miles."""
    lat1, lon1 = func.radians(latitude), func.radians(longitude)
    lat2, lon2 = func.radians(EventDB.latitude), func.radians(EventDB.longitude)
    x = func.cos(lat1 - lat2) - func.cos(lat1) * func.cos(lat2) * (1 - func.cos(lon2 - lon1))
    return EARTH_RADIUS_MILES * func.acos(func.least(1.0, func.greatest(-1.0, x)))
