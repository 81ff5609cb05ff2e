"""
3D scene layer definitions for the ArcGIS JavaScript SDK.

Geometry responses are turned into client-side FeatureLayer JSON (graphics,
fields, renderer, popup). Rendering itself happens in the browser.
"""

import logging
from typing import Dict, List, Optional, Tuple

from urbanai import config
from urbanai.geometry import camera_target, features_extent, fix_ring_orientation, polygon_rings

logger = logging.getLogger(__name__)

SPATIAL_REFERENCE = {'wkid': 4326}

ARCGIS_CONFIG = {
    'API_VERSION': '4.33',
    'DEFAULT_CAMERA': {
        'position': {'x': 11.5820, 'y': 48.1351, 'z': 1000},
        'tilt': 45,
        'heading': 180
    },
    'SPATIAL_REFERENCE': SPATIAL_REFERENCE
}

PROPERTY_COLORS = [
    "#fc3e5aff", "#fce138ff", "#4c81cdff", "#f1983cff",
    "#48885cff", "#a553b7ff", "#fff799ff", "#b1a9d0ff",
    "#6ecffcff", "#fc6f84ff", "#6af689ff", "#fcd27eff"
]

SURFACE_COLORS = {
    'ADIABATIC': [255, 100, 100, 0.8],
    'SHADING': [128, 128, 128, 0.7],
    'OUTLINE': [255, 255, 255, 1.0]
}

ADIABATIC_KEY = 'surfaces_adiabatic'
SHADING_KEY = 'shading_surfaces'


def _find_collection(data: Dict, key: str) -> Optional[Dict]:
    if data.get(key):
        return data[key]
    # multi-building responses are keyed by GML ID one level down
    for value in data.values():
        if isinstance(value, dict) and value.get(key):
            return value[key]
    return None


def extract_visualization_data(response: Optional[Dict]) -> Tuple[Optional[Dict], Optional[Dict]]:
    """(adiabatic, shading) feature collections of a geometry response"""
    if not response:
        return None, None
    data = response.get('results') or response
    if not isinstance(data, dict):
        return None, None
    return _find_collection(data, ADIABATIC_KEY), _find_collection(data, SHADING_KEY)


def to_graphics(collection: Optional[Dict]) -> List[Dict]:
    graphics = []
    for index, feature in enumerate((collection or {}).get('features') or []):
        geometry = feature.get('geometry') or {}
        try:
            rings = fix_ring_orientation(polygon_rings(geometry))
        except ValueError as e:
            logger.warning(f"Skipping feature {index}: {e}")
            continue
        graphics.append({
            'geometry': {
                'type': 'polygon',
                'rings': rings,
                'spatialReference': dict(SPATIAL_REFERENCE)
            },
            'attributes': {'ObjectID': index, **(feature.get('properties') or {})}
        })
    return graphics


def create_feature_layer(graphics: List[Dict], title: str, color, properties: Optional[Dict]) -> Dict:
    property_names = list((properties or {}).keys())
    return {
        'type': 'feature',
        'source': graphics,
        'objectIdField': 'ObjectID',
        'title': title,
        'fields': [{'name': 'ObjectID', 'alias': 'ObjectID', 'type': 'oid'}] + [
            {'name': name, 'alias': name, 'type': 'string'} for name in property_names
        ],
        'renderer': {
            'type': 'simple',
            'symbol': {
                'type': 'polygon-3d',
                'symbolLayers': [{
                    'type': 'fill',
                    'material': {'color': color, 'colorMixMode': 'replace'},
                    'outline': {'color': list(SURFACE_COLORS['OUTLINE']), 'size': '2px'}
                }]
            }
        },
        'popupTemplate': {
            'title': title,
            'content': [{
                'type': 'fields',
                'fieldInfos': [{'fieldName': name, 'label': name} for name in property_names]
            }]
        }
    }


def _first_properties(collection: Dict) -> Dict:
    features = collection.get('features') or []
    return (features[0].get('properties') or {}) if features else {}


def available_properties(response: Optional[Dict]) -> List[str]:
    """Property names offered for colouring the adiabatic surfaces"""
    adiabatic, _ = extract_visualization_data(response)
    return list(_first_properties(adiabatic).keys()) if adiabatic else []


def _property_layers(adiabatic: Dict, property_name: str) -> List[Dict]:
    properties = _first_properties(adiabatic)
    graphics = to_graphics(adiabatic)

    unique_values = []
    for graphic in graphics:
        value = graphic['attributes'].get(property_name)
        if value is not None and value not in unique_values:
            unique_values.append(value)

    layers = []
    for index, value in enumerate(unique_values):
        sublayer = [g for g in graphics if g['attributes'].get(property_name) == value]
        layers.append(create_feature_layer(
            sublayer, str(value), PROPERTY_COLORS[index % len(PROPERTY_COLORS)], properties
        ))
    return layers


def build_scene_layers(response: Optional[Dict], property_name: Optional[str] = None) -> List[Dict]:
    """Shading layer first, then the adiabatic surfaces (one layer per value when coloured by property)"""
    adiabatic, shading = extract_visualization_data(response)
    layers = []

    if shading and shading.get('features'):
        layers.append(create_feature_layer(
            to_graphics(shading), 'Shading Surfaces', list(SURFACE_COLORS['SHADING']), _first_properties(shading)
        ))

    if adiabatic and adiabatic.get('features'):
        if property_name:
            layers.extend(_property_layers(adiabatic, property_name))
        else:
            layers.append(create_feature_layer(
                to_graphics(adiabatic), 'Adiabatic Surfaces', list(SURFACE_COLORS['ADIABATIC']),
                _first_properties(adiabatic)
            ))

    logger.info(f"Built {len(layers)} scene layer(s)")
    return layers


def scene_view_config(api_key: Optional[str] = None) -> Dict:
    return {
        'apiKey': api_key if api_key is not None else config.get_arcgis_api_key(),
        'apiVersion': ARCGIS_CONFIG['API_VERSION'],
        'map': {'basemap': 'arcgis/topographic', 'ground': 'world-elevation'},
        'camera': ARCGIS_CONFIG['DEFAULT_CAMERA'],
        'environment': {'lighting': {'directShadowsEnabled': True}}
    }


def build_scene(response: Optional[Dict], property_name: Optional[str] = None,
                api_key: Optional[str] = None) -> Dict:
    """Everything a scene viewer needs: view config, layers, goTo target and property choices"""
    adiabatic, shading = extract_visualization_data(response)
    extent = features_extent(adiabatic, shading)
    return {
        'view': scene_view_config(api_key),
        'layers': build_scene_layers(response, property_name),
        'extent': extent,
        'goTo': camera_target(extent) if extent else None,
        'properties': available_properties(response),
        'selectedProperty': property_name
    }
