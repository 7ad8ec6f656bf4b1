import os
import tempfile
import unittest

from printgeo.utils.gpx_parser import GpxParseError, parse_gpx, parse_gpx_file


SIMPLE_GPX = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="printgeo-tests" xmlns="http://www.topografix.com/GPX/1/1">
  <trk>
    <name>Test Track</name>
    <trkseg>
      <trkpt lat="35.0" lon="139.0">
        <ele>100.0</ele>
        <time>2024-05-01T10:00:00Z</time>
      </trkpt>
      <trkpt lat="35.1" lon="139.1">
        <ele>105.0</ele>
      </trkpt>
    </trkseg>
  </trk>
</gpx>
"""

MULTI_SEGMENT_GPX = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="printgeo-tests" xmlns="http://www.topografix.com/GPX/1/1">
  <trk>
    <trkseg>
      <trkpt lat="35.0" lon="139.0"></trkpt>
    </trkseg>
    <trkseg></trkseg>
    <trkseg>
      <trkpt lat="35.2" lon="139.2"></trkpt>
    </trkseg>
  </trk>
</gpx>
"""


class ParseGpxTests(unittest.TestCase):
    def test_simple_track(self):
        track = parse_gpx(SIMPLE_GPX)
        self.assertEqual(track.name, "Test Track")
        self.assertEqual(len(track.segments), 1)
        self.assertEqual(len(track.segments[0]), 2)

        first, second = track.segments[0]
        self.assertEqual((first.lat, first.lon, first.ele), (35.0, 139.0, 100.0))
        self.assertTrue(first.time.startswith("2024-05-01T10:00:00"))
        self.assertEqual(second.ele, 105.0)
        self.assertIsNone(second.time)

    def test_multiple_segments_skip_empty_ones(self):
        track = parse_gpx(MULTI_SEGMENT_GPX)
        self.assertIsNone(track.name)
        self.assertEqual(len(track.segments), 2)
        self.assertIsNone(track.segments[0][0].ele)
        self.assertEqual(track.segments[1][0].lat, 35.2)

    def test_bytes_input(self):
        track = parse_gpx(SIMPLE_GPX.encode("utf-8"))
        self.assertEqual(track.name, "Test Track")

    def test_invalid_xml(self):
        with self.assertRaises(GpxParseError) as ctx:
            parse_gpx("<gpx><trk><name>Unclosed Tag")
        self.assertEqual(str(ctx.exception), "Error parsing GPX file")

    def test_to_dict(self):
        data = parse_gpx(SIMPLE_GPX).to_dict()
        self.assertEqual(data["name"], "Test Track")
        self.assertEqual(data["segments"][0][1], {"lat": 35.1, "lon": 139.1, "ele": 105.0, "time": None})

    def test_parse_gpx_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "track.gpx")
            with open(path, "w", encoding="utf-8") as f:
                f.write(SIMPLE_GPX)
            track = parse_gpx_file(path)
        self.assertEqual(len(track.segments[0]), 2)


if __name__ == "__main__":
    unittest.main()
