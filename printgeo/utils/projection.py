"""Local equirectangular projection between lat/lon and planar meters."""

import math
from dataclasses import dataclass


METERS_PER_DEGREE = 111320.0


@dataclass(frozen=True)
class BoundingBox:
    """Geographic selection in degrees."""

    north: float
    south: float
    east: float
    west: float

    @property
    def center(self):
        return ((self.north + self.south) / 2.0, (self.east + self.west) / 2.0)

    @classmethod
    def from_dict(cls, data):
        if not all(k in data for k in ('north', 'south', 'east', 'west')):
            raise ValueError("bounds must provide north, south, east and west")
        box = cls(
            north=float(data['north']),
            south=float(data['south']),
            east=float(data['east']),
            west=float(data['west']),
        )
        if box.north < box.south or box.east < box.west:
            raise ValueError("bounds must satisfy south <= north and west <= east")
        return box


class LocalProjection:
    """
    Equirectangular approximation around a fixed origin.

    x = (lon - lon0) * 111320 * cos(lat0)
    y = (lat - lat0) * 111320
    """

    def __init__(self, center_lat, center_lon):
        self.center_lat = float(center_lat)
        self.center_lon = float(center_lon)
        self._lon_scale = METERS_PER_DEGREE * math.cos(math.radians(self.center_lat))

    @classmethod
    def for_bbox(cls, bbox):
        lat, lon = bbox.center
        return cls(lat, lon)

    def project(self, lat, lon):
        x = (lon - self.center_lon) * self._lon_scale
        y = (lat - self.center_lat) * METERS_PER_DEGREE
        return x, y

    def project_bbox(self, bbox):
        """Return planar bounds (min_x, max_x, min_y, max_y) for a BoundingBox."""
        min_x, min_y = self.project(bbox.south, bbox.west)
        max_x, max_y = self.project(bbox.north, bbox.east)
        return (min_x, max_x, min_y, max_y)
