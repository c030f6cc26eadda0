"""Tests for history routes."""

import json


def poll(client, engine, records):
    engine.registry_path.write_text(json.dumps(records))
    client.get('/api/sessions')


class TestGetHistoryEndpoint:
    """Tests for GET /api/history endpoint."""

    def test_empty(self, client):
        response = client.get('/api/history')

        assert response.status_code == 200
        assert response.json()['history'] == []
        assert response.json()['count'] == 0

    def test_lists_polled_sessions(self, client, api_engine):
        poll(client, api_engine, [
            {'id': 'a', 'status': 'waiting', 'repo': 'acme/one', 'createdAt': '2024-01-01T00:00:00Z'},
            {'id': 'b', 'status': 'merged', 'repo': 'acme/two', 'createdAt': '2024-01-02T00:00:00Z'},
        ])

        data = client.get('/api/history').json()

        assert data['count'] == 2
        assert [e['id'] for e in data['history']] == ['b', 'a']
        assert data['history'][1]['statusHistory'][0]['status'] == 'waiting'

    def test_filters(self, client, api_engine):
        poll(client, api_engine, [
            {'id': 'a', 'status': 'waiting', 'repo': 'acme/one'},
            {'id': 'b', 'status': 'merged', 'repo': 'acme/two'},
        ])

        assert [e['id'] for e in client.get('/api/history?active=true').json()['history']] == ['a']
        assert [e['id'] for e in client.get('/api/history?active=false').json()['history']] == ['b']
        assert [e['id'] for e in client.get('/api/history?repo=acme/two').json()['history']] == ['b']
        assert client.get('/api/history?limit=1').json()['count'] == 1

    def test_negative_limit_rejected(self, client):
        assert client.get('/api/history?limit=-1').status_code == 422
