"""Shared fixtures: a temp session store, canned HTTP responses and JWTs"""
import base64
import json
from unittest import mock

import pytest
import requests

from urbanai.auth import AuthSession
from urbanai.session_store import SessionStore


def make_response(status=200, data=None, text=None, url='https://api.test/endpoint'):
    response = requests.Response()
    response.status_code = status
    response.url = url
    if text is not None:
        response._content = text.encode('utf-8')
    else:
        response._content = json.dumps(data if data is not None else {}).encode('utf-8')
        response.headers['Content-Type'] = 'application/json'
    return response


def make_jwt(claims):
    def segment(obj):
        raw = base64.urlsafe_b64encode(json.dumps(obj).encode('utf-8')).decode('ascii')
        return raw.rstrip('=')
    return f"{segment({'alg': 'RS256', 'kid': 'test'})}.{segment(claims)}.signature"


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / 'session')


@pytest.fixture
def http():
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def auth(store, http, clock):
    return AuthSession(store, base_url='https://api.test', session=http, clock=clock)


@pytest.fixture
def logged_in(auth, store):
    """Auth session holding a valid token and user"""
    token = make_jwt({'sub': 'user-1', 'cognito:username': 'jdoe', 'email': 'jdoe@example.com'})
    auth.set_token(token, {'id': 'user-1', 'username': 'jdoe', 'email': 'jdoe@example.com', 'name': 'jdoe'})
    return auth


@pytest.fixture
def geometry_response():
    """Geometry service payload keyed by GML ID, as returned for multi-building lookups"""
    return {
        'results': {
            'DEBY_LOD2_4909255': {
                'surfaces_adiabatic': {
                    'type': 'FeatureCollection',
                    'features': [
                        {
                            'type': 'Feature',
                            'geometry': {
                                'type': 'Polygon',
                                'coordinates': [[[0, 0], [0, 1], [1, 1], [1, 0], [0, 0]]]
                            },
                            'properties': {'surface_type': 'wall', 'area': 12.5}
                        },
                        {
                            'type': 'Feature',
                            'geometry': {
                                'type': 'MultiPolygon',
                                'coordinates': [[[[2, 0], [3, 0], [3, 1], [2, 1], [2, 0]]]]
                            },
                            'properties': {'surface_type': 'roof', 'area': 30.0}
                        }
                    ]
                },
                'shading_surfaces': {
                    'type': 'FeatureCollection',
                    'features': [
                        {
                            'type': 'Feature',
                            'geometry': {
                                'type': 'Polygon',
                                'coordinates': [[[5, 5], [6, 5], [6, 6], [5, 6], [5, 5]]]
                            },
                            'properties': {'source': 'neighbour'}
                        }
                    ]
                }
            }
        },
        'summed_surface_areas': {'Grundfläche': 125.5, 'Dachfläche': '130.0'}
    }


@pytest.fixture
def building():
    return {
        'buildings_assumptions': {
            'gebid': '80331 12345',
            'gebplz': '80331',
            'building_id': 'B-1',
            'enob_category': 'Bürogebäude',
            'epl': '1965',
            'construction_year': 1972,
            'current_system_type': 'Fernwärme'
        },
        'gmlid_gebid_mapping': [
            {'gmlid': 'DEBY_LOD2_4909255', 'gebid': '80331 12345'},
            {'gmlid': 'DEBY_LOD2_4909256', 'gebid': '80331 12345'}
        ]
    }
