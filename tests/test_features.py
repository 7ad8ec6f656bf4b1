import unittest

from printgeo.utils.features import FeatureSet, WaterLine, WaterPolygon
from printgeo.utils.projection import METERS_PER_DEGREE, BoundingBox, LocalProjection


class FeatureSetFromDictTests(unittest.TestCase):
    def test_parses_every_collection(self):
        features = FeatureSet.from_dict({
            "contours": [{"elevation": 120, "points": [[0, 0], [10, 0]]}],
            "buildings": [{"id": 7, "rings": [[[0, 0], [4, 0], [4, 4], [0, 4]]], "height": 12}],
            "roads": [{"id": "r", "road_class": "primary", "points": [[0, 0], [5, 5]]}],
            "water": [
                {"id": "river", "water_class": "river", "geometry": "LineString", "points": [[0, 1], [9, 1]]},
                {"id": "lake", "geometry": "Polygon", "rings": [[[0, 0], [3, 0], [3, 3]]]},
                {"id": "ponds", "geometry": "MultiPolygon", "polygons": [
                    [[[10, 10], [12, 10], [12, 12]]],
                    [[[20, 20], [22, 20], [22, 22]]],
                ]},
            ],
            "gpx_track": {"name": "Loop", "segments": [[{"lat": 1.0, "lon": 2.0, "ele": None}]]},
        })

        self.assertEqual(features.contours[0].elevation, 120.0)
        self.assertEqual(features.contours[0].points, [(0.0, 0.0), (10.0, 0.0)])
        self.assertEqual(features.buildings[0].id, "7")
        self.assertEqual(features.buildings[0].height, 12.0)
        self.assertEqual(features.buildings[0].holes, [])
        self.assertEqual(features.roads[0].road_class, "primary")
        self.assertEqual([w.id for w in features.water], ["river", "lake", "ponds:0", "ponds:1"])
        self.assertIsInstance(features.water[0], WaterLine)
        self.assertIsInstance(features.water[1], WaterPolygon)
        self.assertEqual(features.gpx_track.name, "Loop")
        self.assertIsNone(features.gpx_track.segments[0][0].ele)

    def test_empty_payload(self):
        features = FeatureSet.from_dict(None)
        self.assertEqual(features.contours, [])
        self.assertIsNone(features.gpx_track)

    def test_unknown_water_geometry_is_rejected(self):
        with self.assertRaises(ValueError):
            FeatureSet.from_dict({"water": [{"geometry": "Point", "points": [[0, 0]]}]})


class ProjectionTests(unittest.TestCase):
    def test_bbox_validation(self):
        with self.assertRaises(ValueError):
            BoundingBox.from_dict({"north": 1.0, "south": 2.0, "east": 1.0, "west": 0.0})
        with self.assertRaises(ValueError):
            BoundingBox.from_dict({"north": 1.0})

    def test_project_bbox_is_centered(self):
        bbox = BoundingBox(north=0.01, south=-0.01, east=0.02, west=-0.02)
        projection = LocalProjection.for_bbox(bbox)
        min_x, max_x, min_y, max_y = projection.project_bbox(bbox)
        self.assertAlmostEqual(max_y, 0.01 * METERS_PER_DEGREE)
        self.assertAlmostEqual(min_x, -max_x)
        x, y = projection.project(0.0, 0.0)
        self.assertAlmostEqual(x, 0.0)
        self.assertAlmostEqual(y, 0.0)


if __name__ == "__main__":
    unittest.main()
