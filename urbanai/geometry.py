"""
Polygon ring utilities for building-surface geometry.

The geometry service returns GeoJSON-like surfaces whose ring winding is not
guaranteed. The ArcGIS renderer expects exterior rings clockwise and holes
counter-clockwise, so rings are normalised here before layers are built.
"""

import copy
import logging
from typing import Dict, Iterable, List, Optional

import numpy as np
from shapely.geometry import MultiPoint

logger = logging.getLogger(__name__)

Ring = List[List[float]]


def _xy(ring: Ring) -> np.ndarray:
    # CityGML surfaces carry a z value; winding is judged in plan view
    return np.array([point[:2] for point in ring], dtype=float).reshape(-1, 2)


def shoelace_sum(ring: Ring) -> float:
    """Sum of (x[i+1] - x[i]) * (y[i+1] + y[i]) over consecutive point pairs."""
    points = _xy(ring)
    if len(points) < 2:
        return 0.0
    x, y = points[:, 0], points[:, 1]
    return float(np.sum((x[1:] - x[:-1]) * (y[1:] + y[:-1])))


def is_clockwise(ring: Ring) -> bool:
    """True iff the shoelace sum of the ring is positive."""
    return shoelace_sum(ring) > 0


def reverse_ring(ring: Ring) -> Ring:
    return list(reversed(ring))


def fix_ring_orientation(rings: List[Ring]) -> List[Ring]:
    """Return rings with the exterior clockwise and every hole counter-clockwise.

    The input is not modified. Applying the fix twice gives the same result
    as applying it once. Rings with zero plan-view area (vertical walls) have
    no winding to correct and are kept as they are.
    """
    fixed = []
    for index, ring in enumerate(rings):
        total = shoelace_sum(ring)
        if index == 0 and total < 0:
            fixed.append(reverse_ring(ring))
        elif index > 0 and total > 0:
            fixed.append(reverse_ring(ring))
        else:
            fixed.append(list(ring))
    return fixed


def polygon_rings(geometry: Dict) -> List[Ring]:
    """Rings of a Polygon, or the rings of every polygon of a MultiPolygon in order."""
    geom_type = geometry.get('type')
    coordinates = geometry.get('coordinates') or []
    if geom_type == 'Polygon':
        return list(coordinates)
    if geom_type == 'MultiPolygon':
        return [ring for polygon in coordinates for ring in polygon]
    raise ValueError(f"Unsupported geometry type: {geom_type}")


def fix_geometry_orientation(geometry: Dict) -> Dict:
    """Copy of a GeoJSON Polygon/MultiPolygon with each polygon's rings fixed."""
    fixed = copy.deepcopy(geometry)
    geom_type = geometry.get('type')
    if geom_type == 'Polygon':
        fixed['coordinates'] = fix_ring_orientation(geometry.get('coordinates') or [])
    elif geom_type == 'MultiPolygon':
        fixed['coordinates'] = [fix_ring_orientation(polygon) for polygon in geometry.get('coordinates') or []]
    else:
        raise ValueError(f"Unsupported geometry type: {geom_type}")
    return fixed


def _exterior_points(collection: Optional[Dict]) -> Iterable[List[float]]:
    for feature in (collection or {}).get('features') or []:
        geometry = feature.get('geometry') or {}
        coordinates = geometry.get('coordinates')
        if not coordinates:
            continue
        if geometry.get('type') == 'Polygon':
            yield from (point[:2] for point in coordinates[0])
        elif geometry.get('type') == 'MultiPolygon':
            for polygon in coordinates:
                if polygon:
                    yield from (point[:2] for point in polygon[0])


def features_extent(*collections: Optional[Dict]) -> Optional[Dict]:
    """Bounding box of the exterior rings across feature collections, or None."""
    points = [point for collection in collections for point in _exterior_points(collection)]
    if not points:
        return None
    xmin, ymin, xmax, ymax = MultiPoint(points).bounds
    return {
        'xmin': xmin, 'ymin': ymin,
        'xmax': xmax, 'ymax': ymax,
        'spatialReference': {'wkid': 4326}
    }


def camera_target(extent: Dict) -> Dict:
    """goTo target centred on an extent; small buildings get one zoom level closer."""
    center_x = (extent['xmin'] + extent['xmax']) / 2
    center_y = (extent['ymin'] + extent['ymax']) / 2
    max_extent = max(extent['xmax'] - extent['xmin'], extent['ymax'] - extent['ymin'])
    return {
        'target': {
            'type': 'point',
            'x': center_x,
            'y': center_y,
            'spatialReference': {'wkid': 4326}
        },
        'tilt': 60,
        'heading': 45,
        'zoom': 19 if max_extent < 0.001 else 18
    }
