"""
2D building map: renderers, GeoJSON layers and the attribute table columns
for the overview FeatureCollection.
"""
import logging
from typing import Dict, List, Optional

from urbanai.scene import PROPERTY_COLORS, SPATIAL_REFERENCE

logger = logging.getLogger(__name__)

ZOOM_THRESHOLD = 14
DEFAULT_COLUMN_COUNT = 5


def build_color_map(values: List) -> Dict[str, str]:
    """Palette colour per value, cycled, with the alpha lowered to cc"""
    color_map = {}
    for index, value in enumerate(values):
        color = PROPERTY_COLORS[index % len(PROPERTY_COLORS)]
        color_map[str(value)] = color[:-2] + 'cc' if color.endswith('ff') else color
    return color_map


def _opaque(color: str) -> str:
    return color[:-2] + 'ff' if color.endswith('cc') else color


def create_layer_renderers(color_property: str, values: List) -> Dict:
    color_map = build_color_map(values)
    fill_renderer = {
        'type': 'unique-value',
        'field': color_property,
        'uniqueValueInfos': [{
            'value': value,
            'symbol': {
                'type': 'simple-fill',
                'color': color_map[str(value)],
                'outline': {'color': _opaque(color_map[str(value)]), 'width': 2}
            },
            'label': str(value)
        } for value in values]
    }
    point_renderer = {
        'type': 'unique-value',
        'field': color_property,
        'uniqueValueInfos': [{
            'value': value,
            'symbol': {
                'type': 'simple-marker',
                'color': color_map[str(value)],
                'size': 8,
                'outline': {'color': [255, 255, 255, 0.9], 'width': 1}
            },
            'label': str(value)
        } for value in values]
    }
    return {'fillRenderer': fill_renderer, 'pointRenderer': point_renderer}


def unique_values(features: List[Dict], property_name: str) -> List:
    values = []
    for feature in features:
        value = (feature.get('properties') or {}).get(property_name)
        if value not in values:
            values.append(value)
    return values


def filter_features(collection: Dict, property_name: Optional[str], selected_values: Optional[List]) -> List[Dict]:
    features = (collection or {}).get('features') or []
    if not property_name or not selected_values:
        return list(features)
    wanted = {str(v) for v in selected_values}
    return [f for f in features if str((f.get('properties') or {}).get(property_name)) in wanted]


def layer_visibility(zoom: Optional[float]) -> Dict[str, bool]:
    """Polygons when zoomed in, points when zoomed out"""
    if zoom is None:
        return {'detailed': True, 'overview': True}
    return {'detailed': zoom >= ZOOM_THRESHOLD, 'overview': zoom < ZOOM_THRESHOLD}


def _geojson_layer(title: str, renderer: Dict, field_names: List[str], visible: bool) -> Dict:
    return {
        'type': 'geojson',
        'title': title,
        'renderer': renderer,
        'outFields': ['*'],
        'popupTemplate': {
            'title': '{gebid}',
            'content': [{
                'type': 'fields',
                'fieldInfos': [{'fieldName': name, 'label': name} for name in field_names]
            }]
        },
        'visible': visible
    }


def build_map_layers(map_data: Dict, color_property: str, filter_property: Optional[str] = None,
                     selected_values: Optional[List] = None, zoom: Optional[float] = None) -> Optional[Dict]:
    """Filtered collection plus detailed/overview layer definitions, or None without data"""
    features = (map_data or {}).get('features') or []
    if not features or not color_property:
        logger.info('Missing map data or colour property, no layers built')
        return None

    filtered = filter_features(map_data, filter_property, selected_values)
    values = unique_values(filtered, color_property)
    renderers = create_layer_renderers(color_property, values)
    field_names = list((features[0].get('properties') or {}).keys())
    visibility = layer_visibility(zoom)

    return {
        'data': {'type': 'FeatureCollection', 'features': filtered},
        'values': values,
        'layers': [
            _geojson_layer('Detailed View', renderers['fillRenderer'], field_names, visibility['detailed']),
            _geojson_layer('Overview', renderers['pointRenderer'], field_names, visibility['overview'])
        ],
        'legend': {'title': color_property},
        'zoomThreshold': ZOOM_THRESHOLD
    }


def format_cell_value(value) -> str:
    if value is None:
        return '-'
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, float):
        text = f"{value:,.3f}".rstrip('0').rstrip('.')
        return text or '0'
    return str(value)


def create_columns(features: List[Dict]) -> List[Dict]:
    """Table columns for the first few properties of the first feature"""
    if not features:
        return []
    keys = list((features[0].get('properties') or {}).keys())[:DEFAULT_COLUMN_COUNT]
    return [{
        'id': key,
        'header': (key[:1].upper() + key[1:]).replace('_', ' '),
        'class': 'whitespace-nowrap'
    } for key in keys]


def table_rows(features: List[Dict], columns: List[Dict]) -> List[Dict]:
    return [
        {column['id']: format_cell_value((f.get('properties') or {}).get(column['id'])) for column in columns}
        for f in features
    ]


def sample_buildings() -> Dict:
    """Demo markers over Munich linking to the building analysis view"""
    buildings = [
        (1, 'Sample Building 1', 'A+', 'analyzed', 'DEBY_LOD2_4909255', 11.5820, 48.1351),
        (2, 'Sample Building 2', 'B', 'pending', 'DEBY_LOD2_4909256', 11.5850, 48.1380),
        (3, 'Sample Building 3', 'C+', 'analyzed', 'DEBY_LOD2_4909257', 11.5790, 48.1320),
    ]
    graphics = [{
        'geometry': {'type': 'point', 'x': x, 'y': y, 'spatialReference': dict(SPATIAL_REFERENCE)},
        'attributes': {'ObjectID': oid, 'Name': name, 'Efficiency': efficiency,
                       'Status': status, 'GMLID': gmlid}
    } for oid, name, efficiency, status, gmlid, x, y in buildings]

    return {
        'type': 'feature',
        'source': graphics,
        'objectIdField': 'ObjectID',
        'title': 'Buildings',
        'fields': [
            {'name': 'ObjectID', 'alias': 'ID', 'type': 'oid'},
            {'name': 'Name', 'alias': 'Building Name', 'type': 'string'},
            {'name': 'Efficiency', 'alias': 'Energy Efficiency', 'type': 'string'},
            {'name': 'Status', 'alias': 'Analysis Status', 'type': 'string'},
            {'name': 'GMLID', 'alias': 'GML ID', 'type': 'string'}
        ],
        'renderer': {
            'type': 'simple',
            'symbol': {
                'type': 'simple-marker',
                'color': [51, 51, 204, 0.8],
                'outline': {'color': [255, 255, 255], 'width': 2},
                'size': 14
            }
        },
        'popupTemplate': {
            'title': '{Name}',
            'content': (
                '<div><strong>Energy Efficiency:</strong> {Efficiency}</div>'
                '<div><strong>Status:</strong> {Status}</div>'
                '<div><strong>GML ID:</strong> {GMLID}</div>'
                '<div><a href="/building-analysis?gmlid={GMLID}" target="_blank">'
                '→ View Building Analysis</a></div>'
            )
        }
    }
