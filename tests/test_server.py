"""Tests for the application shell: health, CORS and static files."""

from unittest.mock import patch

import pytest

from corral.__main__ import build_parser


@pytest.fixture
def static_dir(tmp_path):
    root = tmp_path / 'frontend'
    root.mkdir()
    (root / 'index.html').write_text('<h1>Corral</h1>')
    (root / 'app.js').write_text('console.log("corral")')
    (tmp_path / 'secret.txt').write_text('do not serve')
    with patch('corral.server.STATIC_DIR', root):
        yield root


class TestHealthEndpoint:
    def test_health(self, client):
        response = client.get('/api/health')

        assert response.status_code == 200
        assert response.json()['status'] == 'ok'

    def test_cors_allows_any_origin(self, client):
        response = client.get('/api/health', headers={'Origin': 'http://example.test'})
        assert response.headers['access-control-allow-origin'] == '*'


class TestStaticFiles:
    """Tests for frontend asset serving."""

    def test_index(self, client, static_dir):
        response = client.get('/')

        assert response.status_code == 200
        assert '<h1>Corral</h1>' in response.text

    def test_asset(self, client, static_dir):
        assert client.get('/app.js').status_code == 200

    def test_missing_file(self, client, static_dir):
        assert client.get('/missing.css').status_code == 404

    def test_outside_static_dir(self, client, static_dir):
        assert client.get('/%2E%2E/secret.txt').status_code == 404

    def test_api_routes_not_shadowed(self, client, static_dir):
        assert client.get('/api/sessions').status_code == 200


class TestCommandLine:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert isinstance(args.port, int)
        assert args.log_level is None

    def test_overrides(self):
        args = build_parser().parse_args(['--host', '0.0.0.0', '--port', '8080', '--log-level', 'debug'])
        assert (args.host, args.port, args.log_level) == ('0.0.0.0', 8080, 'debug')
