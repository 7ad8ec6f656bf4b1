"""GPX file parsing utilities."""

import gpxpy
import gpxpy.gpx

from .features import GpxPoint, GpxTrack


class GpxParseError(ValueError):
    """Raised when GPX content is not well-formed."""


def parse_gpx(content):
    """
    Parse GPX text into a GpxTrack.

    The track name comes from the first <trk>. Every non-empty <trkseg>
    (across all tracks) becomes one segment, in document order.

    Args:
        content: GPX document as str or bytes

    Returns:
        GpxTrack

    Raises:
        GpxParseError: malformed XML or GPX
    """
    if isinstance(content, bytes):
        content = content.decode('utf-8-sig')

    try:
        gpx = gpxpy.parse(content)
    except gpxpy.gpx.GPXException as e:
        raise GpxParseError('Error parsing GPX file') from e

    name = gpx.tracks[0].name if gpx.tracks else None

    segments = []
    for track in gpx.tracks:
        for segment in track.segments:
            points = [
                GpxPoint(
                    lat=point.latitude,
                    lon=point.longitude,
                    ele=point.elevation,
                    time=point.time.isoformat() if point.time else None,
                )
                for point in segment.points
            ]
            if points:
                segments.append(points)

    return GpxTrack(name=name or None, segments=segments)


def parse_gpx_file(filepath):
    """
    Parse a GPX file from disk.

    Args:
        filepath: Path to GPX file

    Returns:
        GpxTrack
    """
    with open(filepath, 'r', encoding='utf-8') as gpx_file:
        return parse_gpx(gpx_file.read())
