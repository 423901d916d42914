"""
Smoke tests for the Admin Panel API.
These tests use FastAPI's TestClient and need no backend: they only touch
public endpoints and the auth gate in front of the proxied collections.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fastapi.testclient import TestClient

# Import the app
from api.main import app

client = TestClient(app)


# ── Public endpoints ──────────────────────────────────────────────────────────

def test_health():
    res = client.get('/api/health')
    assert res.status_code == 200
    data = res.json()
    assert data['status'] == 'ok'
    assert data['version'] == '0.1.0'
    assert data['uptime_seconds'] >= 0


def test_version():
    res = client.get('/api/version')
    assert res.status_code == 200
    assert res.json() == {'version': '0.1.0', 'service': 'Admin Panel API'}


def test_root_lists_entities():
    res = client.get('/api')
    assert res.status_code == 200
    assert res.json()['entities'] == ['employees', 'leaves', 'users']


def test_security_headers():
    res = client.get('/api/health')
    assert res.headers['X-Content-Type-Options'] == 'nosniff'
    assert res.headers['X-Frame-Options'] == 'DENY'
    assert len(res.headers['X-Request-ID']) == 8


def test_openapi_schema():
    res = client.get('/openapi.json')
    assert res.status_code == 200
    paths = res.json()['paths']
    assert '/api/employees' in paths
    assert '/api/leaves/{record_id}' in paths
    assert '/api/auth/login' in paths


# ── Auth gate ─────────────────────────────────────────────────────────────────

@pytest.mark.parametrize('method,path', [
    ('get', '/api/employees'),
    ('get', '/api/leaves/1'),
    ('post', '/api/users'),
    ('patch', '/api/employees/1'),
    ('delete', '/api/leaves/1'),
    ('get', '/api/auth/session'),
])
def test_protected_paths_need_session(method, path):
    res = getattr(client, method)(path)
    assert res.status_code == 401
    assert res.json()['detail'] == 'Not signed in'


def test_unknown_token_rejected():
    res = client.get('/api/employees', headers={'X-Auth-Token': 'not-a-session'})
    assert res.status_code == 401


def test_logout_without_session_is_ok():
    res = client.post('/api/auth/logout')
    assert res.status_code == 200
    assert res.json() == {'ok': True}
