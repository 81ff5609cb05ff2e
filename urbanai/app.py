from flask import Flask, request, jsonify
from flask_cors import CORS
import logging
from datetime import datetime

from urbanai import config, __version__
from urbanai.auth import AuthSession
from urbanai.citygml_service import CityGMLService, MapDataService, surface_areas
from urbanai.construction_service import ConstructionCatalogService, ConstructionSelections
from urbanai.errors import APIError, AuthenticationRequired, PayloadError, TokenDecodeError
from urbanai.map_layers import build_map_layers, create_columns, sample_buildings, table_rows
from urbanai.metrics import MetricsCards
from urbanai.retrofit_service import RetrofitAnalysisService
from urbanai.scene import build_scene
from urbanai.session_store import SessionStore

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Shared session and service clients
auth_session = AuthSession(SessionStore())
citygml_service = CityGMLService(auth=auth_session)
map_data_service = MapDataService(auth=auth_session)
construction_service = ConstructionCatalogService(auth=auth_session)
retrofit_service = RetrofitAnalysisService(auth=auth_session)


def get_services():
    return [citygml_service, map_data_service, construction_service, retrofit_service]


def _error_response(e: Exception):
    """JSON error body and status for the exceptions our services raise"""
    if isinstance(e, AuthenticationRequired):
        return jsonify({'success': False, 'error': e.detail, 'login_required': True}), 401
    if isinstance(e, APIError):
        status = e.status if e.status and 400 <= e.status < 500 else 502
        return jsonify({'success': False, 'error': e.detail, 'upstream_status': e.status}), status
    if isinstance(e, (PayloadError, TokenDecodeError, ValueError)):
        return jsonify({'success': False, 'error': str(e)}), 400
    logger.exception('Unexpected error')
    return jsonify({'success': False, 'error': str(e)}), 500


def _restore_session():
    if auth_session.user is None and auth_session.get_token():
        auth_session.initialize_auth()


def _split(value):
    return [v.strip() for v in (value or '').split(',') if v.strip()]


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({
        'status': 'healthy',
        'version': __version__,
        'timestamp': datetime.now().isoformat(),
        'services': {
            'arcgis': 'configured' if config.get_arcgis_api_key() else 'not_configured',
            'authenticated': auth_session.is_authenticated
        }
    })


@app.route('/api/services', methods=['GET'])
def list_services():
    """External services this backend talks to"""
    return jsonify({
        'auth': {'name': 'auth', 'base_url': auth_session.base_url},
        'services': [service.describe() for service in get_services()]
    })


# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.route('/api/auth/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    password = data.get('password')
    if not username or not password:
        return jsonify({'success': False, 'error': 'Username and password are required'}), 400
    try:
        user = auth_session.login(username, password)
        return jsonify({'success': True, 'user': user})
    except Exception as e:
        return _error_response(e)


@app.route('/api/auth/logout', methods=['POST'])
def logout():
    auth_session.logout()
    return jsonify({'success': True})


@app.route('/api/auth/status', methods=['GET'])
def auth_status():
    try:
        _restore_session()
        return jsonify(auth_session.status())
    except Exception as e:
        return _error_response(e)


@app.route('/api/auth/token', methods=['POST'])
def set_token():
    """Install a bearer token obtained outside this backend"""
    data = request.get_json(silent=True) or {}
    token = data.get('token')
    if not token:
        return jsonify({'success': False, 'error': 'Token is required'}), 400
    user = auth_session.set_token(token, data.get('user'))
    return jsonify({'success': True, 'user': user})


@app.route('/api/auth/refresh', methods=['POST'])
def refresh_token():
    token = auth_session.refresh_token()
    if not token:
        auth_session.clear_credentials()
        return jsonify({'success': False, 'error': 'Authentication expired. Please login again.',
                        'login_required': True}), 401
    return jsonify({'success': True})


# ============================================================================
# GEOMETRY / MAP ENDPOINTS
# ============================================================================

@app.route('/api/geometry', methods=['GET'])
def get_geometry():
    gmlids = _split(request.args.get('gmlid') or request.args.get('gmlids'))
    if not gmlids:
        return jsonify({'success': False, 'error': 'GML ID is required'}), 400
    window_areas = request.args.get('calculate_window_areas', 'false').lower() == 'true'
    try:
        _restore_session()
        geometry = citygml_service.get_geometry(gmlids, calculate_window_areas=window_areas)
        return jsonify({
            'success': True,
            'gmlids': gmlids,
            'geometry': geometry,
            'surfaces': surface_areas(geometry)
        })
    except Exception as e:
        return _error_response(e)


@app.route('/api/scene', methods=['GET'])
def get_scene():
    """ArcGIS scene definition (layers, camera) for one or more buildings"""
    gmlids = _split(request.args.get('gmlid') or request.args.get('gmlids'))
    if not gmlids:
        return jsonify({'success': False, 'error': 'GML ID is required'}), 400
    try:
        _restore_session()
        geometry = citygml_service.get_geometry(gmlids)
        scene = build_scene(geometry, request.args.get('property') or None)
        return jsonify({'success': True, 'gmlids': gmlids, 'scene': scene})
    except Exception as e:
        return _error_response(e)


@app.route('/api/map-data', methods=['GET'])
def get_map_data():
    color_property = request.args.get('color_property')
    filter_property = request.args.get('filter_property') or color_property
    selected_values = _split(request.args.get('values'))
    zoom = request.args.get('zoom', type=float)
    try:
        _restore_session()
        if request.args.get('refresh', 'false').lower() == 'true':
            map_data_service.clear_map_data()
        map_data = map_data_service.fetch_map_data()
        features = map_data.get('features', [])
        columns = create_columns(features)
        response = {
            'success': True,
            'feature_count': len(features),
            'columns': columns,
            'rows': table_rows(features, columns),
            'available_properties': list((features[0].get('properties') or {}).keys()) if features else []
        }
        if color_property:
            response['map'] = build_map_layers(map_data, color_property, filter_property, selected_values, zoom)
        return jsonify(response)
    except Exception as e:
        return _error_response(e)


@app.route('/api/map/sample-buildings', methods=['GET'])
def get_sample_buildings():
    return jsonify({'layer': sample_buildings()})


# ============================================================================
# CONSTRUCTION CATALOG
# ============================================================================

@app.route('/api/constructions', methods=['GET'])
def get_constructions():
    construction_type = request.args.get('type')
    try:
        if construction_type:
            constructions = construction_service.fetch_construction_list(construction_type)
            return jsonify({'construction_type': construction_type, 'constructions': constructions,
                            'total_count': len(constructions)})
        return jsonify({
            'catalog': construction_service.fetch_all_construction_types(),
            'defaults': ConstructionSelections().to_dict()
        })
    except Exception as e:
        return _error_response(e)


# ============================================================================
# ANALYSIS ENDPOINTS
# ============================================================================

def _card_builder(data):
    """Card selections of an analysis request; built before the upstream call"""
    return MetricsCards(**(data.get('card_selections') or {}))


def _analysis_response(result, cards):
    return jsonify({'success': True, 'result': result, 'cards': cards.all_cards(result)})


@app.route('/api/analysis/base', methods=['POST'])
def analyze_base_scenario():
    data = request.get_json(silent=True) or {}
    try:
        cards = _card_builder(data)
        result = retrofit_service.analyze_base_scenario(
            data.get('building'), data.get('geometry'),
            data.get('co2_path_scenarios') or [], data.get('co2_cost_scenarios') or [],
            data.get('co2_reduction_scenario'), data.get('co2_cost_scenario')
        )
        if result is None:
            return jsonify({'success': False, 'error': 'CO2 scenarios not loaded yet'}), 409
        return _analysis_response(result, cards)
    except Exception as e:
        return _error_response(e)


@app.route('/api/analysis/constructions', methods=['POST'])
def analyze_with_constructions():
    data = request.get_json(silent=True) or {}
    try:
        selections = ConstructionSelections(**(data.get('selections') or {}))
        cards = _card_builder(data)
        result = retrofit_service.analyze_with_constructions(
            data.get('building'), data.get('geometry'), selections.to_dict(),
            data.get('co2_reduction_scenario'), data.get('co2_cost_scenario'),
            data.get('retrofit_scenario')
        )
        return _analysis_response(result, cards)
    except Exception as e:
        return _error_response(e)


@app.route('/api/analysis/retrofit', methods=['POST'])
def analyze_retrofit_scenario():
    data = request.get_json(silent=True) or {}
    try:
        cards = _card_builder(data)
        result = retrofit_service.analyze_retrofit_scenario(
            data.get('building'), data.get('geometry'), data.get('retrofit_scenario'),
            data.get('co2_reduction_scenario'), data.get('co2_cost_scenario'),
            data.get('hvac_options') or []
        )
        return _analysis_response(result, cards)
    except Exception as e:
        return _error_response(e)


@app.route('/api/metrics/cards', methods=['POST'])
def metric_cards():
    """Card data for an analysis result already held by the client"""
    data = request.get_json(silent=True) or {}
    try:
        cards = MetricsCards(**(data.get('selections') or {}))
        return jsonify({'success': True, 'cards': cards.all_cards(data.get('result'))})
    except Exception as e:
        return _error_response(e)


def run(host=None, port=None, debug=False):
    config.configure_logging()
    auth_session.initialize_auth()
    logger.info("Starting Urban AI backend...")
    app.run(debug=debug, host=host or config.HOST, port=port or config.PORT)


if __name__ == '__main__':
    run(debug=True)
