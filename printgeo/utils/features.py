"""Feature model: planar contour, building, road, water and GPX inputs."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union


Point2D = Tuple[float, float]


@dataclass
class ContourSample:
    """A polyline along which `elevation` holds."""

    elevation: float
    points: List[Point2D] = field(default_factory=list)


@dataclass
class BuildingFootprint:
    """Outer ring first, then holes. Heights are meters above ground."""

    id: str
    rings: List[List[Point2D]]
    height: float = 10.0
    min_height: float = 0.0
    centroid: Optional[Point2D] = None

    @property
    def outer_ring(self):
        return self.rings[0] if self.rings else []

    @property
    def holes(self):
        return self.rings[1:]


@dataclass
class RoadPolyline:
    id: str
    road_class: str
    points: List[Point2D] = field(default_factory=list)


@dataclass
class WaterLine:
    """River, stream, canal or ditch centerline."""

    id: str
    water_class: str
    points: List[Point2D] = field(default_factory=list)


@dataclass
class WaterPolygon:
    """Lake or pond; only the outer ring is carved."""

    id: str
    water_class: str
    rings: List[List[Point2D]] = field(default_factory=list)

    @property
    def outer_ring(self):
        return self.rings[0] if self.rings else []


WaterFeature = Union[WaterLine, WaterPolygon]


@dataclass
class GpxPoint:
    lat: float
    lon: float
    ele: Optional[float] = None
    time: Optional[str] = None


@dataclass
class GpxTrack:
    name: Optional[str] = None
    segments: List[List[GpxPoint]] = field(default_factory=list)

    def to_dict(self):
        return {
            'name': self.name,
            'segments': [
                [{'lat': p.lat, 'lon': p.lon, 'ele': p.ele, 'time': p.time} for p in segment]
                for segment in self.segments
            ],
        }


@dataclass
class FeatureSet:
    """All inputs of one generation run."""

    contours: List[ContourSample] = field(default_factory=list)
    buildings: List[BuildingFootprint] = field(default_factory=list)
    roads: List[RoadPolyline] = field(default_factory=list)
    water: List[WaterFeature] = field(default_factory=list)
    gpx_track: Optional[GpxTrack] = None

    @classmethod
    def from_dict(cls, data):
        """
        Parse the JSON feature payload.

        Points are `[x, y]` pairs. Water entries carry a `geometry` of
        `LineString` (with `points`) or `Polygon` (with `rings`).
        """
        data = data or {}
        contours = [
            ContourSample(float(c['elevation']), _points(c.get('points', [])))
            for c in data.get('contours', [])
        ]

        buildings = []
        for i, b in enumerate(data.get('buildings', [])):
            centroid = b.get('centroid')
            buildings.append(BuildingFootprint(
                id=str(b.get('id', f"building_{i}")),
                rings=[_points(r) for r in b.get('rings', [])],
                height=float(b.get('height', 10.0)),
                min_height=float(b.get('min_height', 0.0)),
                centroid=(float(centroid[0]), float(centroid[1])) if centroid else None,
            ))

        roads = [
            RoadPolyline(
                id=str(r.get('id', f"road_{i}")),
                road_class=r.get('road_class', 'unclassified'),
                points=_points(r.get('points', [])),
            )
            for i, r in enumerate(data.get('roads', []))
        ]

        water = []
        for i, w in enumerate(data.get('water', [])):
            water_id = str(w.get('id', f"water_{i}"))
            water_class = w.get('water_class', 'water')
            geometry = w.get('geometry', 'Polygon' if 'rings' in w else 'LineString')
            if geometry == 'LineString':
                water.append(WaterLine(water_id, water_class, _points(w.get('points', []))))
            elif geometry == 'Polygon':
                water.append(WaterPolygon(water_id, water_class, [_points(r) for r in w.get('rings', [])]))
            elif geometry == 'MultiPolygon':
                for j, polygon in enumerate(w.get('polygons', [])):
                    water.append(WaterPolygon(f"{water_id}:{j}", water_class, [_points(r) for r in polygon]))
            else:
                raise ValueError(f"Unsupported water geometry: {geometry!r}")

        gpx_track = None
        if data.get('gpx_track'):
            track = data['gpx_track']
            gpx_track = GpxTrack(
                name=track.get('name'),
                segments=[
                    [
                        GpxPoint(
                            lat=float(p['lat']),
                            lon=float(p['lon']),
                            ele=float(p['ele']) if p.get('ele') is not None else None,
                            time=p.get('time'),
                        )
                        for p in segment
                    ]
                    for segment in track.get('segments', [])
                ],
            )

        return cls(contours=contours, buildings=buildings, roads=roads, water=water, gpx_track=gpx_track)


def _points(raw):
    return [(float(p[0]), float(p[1])) for p in raw]
