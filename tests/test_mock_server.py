"""
Tests for SuperMockio Mock Server

Tests the FastAPI application including:
- Server initialization and configuration
- Service upload, listing, retrieval and deletion
- Ownership rules
- Collaborator management
- Mock endpoint dispatch and selection headers
- Admin API endpoints
- Error envelopes
"""

import json

import pytest
import yaml
from fastapi.testclient import TestClient

from supermockio.common.config import MockerSettings
from supermockio.mock.server import MockConfig, MockMetrics, MockServer, create_mock_server
from supermockio.mock.store import MemoryStore

ALICE = {'X-SuperMockio-User': 'alice'}
BOB = {'X-SuperMockio-User': 'bob'}


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def server(store):
    """Server with an in-memory store and AI disabled."""
    return MockServer(store=store, settings=MockerSettings(random_seed=1))


@pytest.fixture
def client(server):
    return TestClient(server.get_app())


@pytest.fixture
def petstore_yaml(petstore):
    return yaml.safe_dump(petstore, sort_keys=False)


@pytest.fixture
def uploaded(client, petstore_yaml):
    """Client with the petstore uploaded by alice."""
    response = client.post('/api/services', content=petstore_yaml, headers=ALICE)
    assert response.status_code == 201
    return client


class TestMockConfig:
    """Test MockConfig dataclass."""

    def test_default_config(self):
        """Test default configuration values."""
        config = MockConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.admin_enabled is True
        assert config.admin_prefix == "/__admin__"
        assert config.data_file is None


class TestMockMetrics:
    """Test MockMetrics dataclass."""

    def test_to_dict(self):
        """Test converting metrics to dictionary."""
        metrics = MockMetrics(total_requests=4, matched_requests=2, substituted_requests=1, unmatched_requests=1)

        data = metrics.to_dict()

        assert data['match_rate'] == 75.0
        assert data['unmatched_requests'] == 1
        assert 'uptime_seconds' in data

    def test_empty_match_rate(self):
        """Test match rate without requests."""
        assert MockMetrics().to_dict()['match_rate'] == 0


class TestServiceUpload:
    """Test POST /api/services."""

    def test_upload_yaml(self, client, petstore_yaml, store):
        """Test a YAML document is stored and ingested."""
        response = client.post('/api/services', content=petstore_yaml, headers=ALICE)

        assert response.status_code == 201
        assert response.json() == {
            'message': 'Service added successfully',
            'service': {'name': 'Petstore', 'version': '1.0.0'}
        }
        service = store.find_service_by_identity('alice', 'Petstore', '1.0.0')
        assert service.description == 'A sample pet store'
        assert len(store.find_responses(service.id)) == 8

    def test_upload_json(self, client, petstore):
        """Test JSON documents are accepted too."""
        response = client.post('/api/services', content=json.dumps(petstore), headers=ALICE)

        assert response.status_code == 201

    def test_duplicate_without_override(self, uploaded, petstore_yaml):
        """Test re-uploading is a conflict."""
        response = uploaded.post('/api/services', content=petstore_yaml, headers=ALICE)

        assert response.status_code == 409
        assert response.json()['message'] == 'Service already exists'

    def test_override(self, uploaded, petstore, store):
        """Test override replaces the service and its responses."""
        petstore['info']['description'] = 'Updated'

        response = uploaded.post('/api/services?override=1', content=json.dumps(petstore), headers=ALICE)

        assert response.status_code == 201
        assert len(store.services) == 1
        service = store.find_service_by_identity('alice', 'Petstore', '1.0.0')
        assert service.description == 'Updated'
        assert len(store.find_responses(service.id)) == 8

    def test_collaborator_cannot_override(self, uploaded, petstore_yaml, store):
        """Test only the owner can override."""
        service = store.find_service_by_identity('alice', 'Petstore', '1.0.0')
        service.collaborators.append('bob')

        response = uploaded.post('/api/services?override=1', content=petstore_yaml, headers=BOB)

        assert response.status_code == 403
        assert response.json()['message'] == 'Only the owner can override a service'

    def test_other_user_same_name(self, uploaded, petstore_yaml, store):
        """Test services are scoped by owner."""
        response = uploaded.post('/api/services', content=petstore_yaml, headers=BOB)

        assert response.status_code == 201
        assert len(store.services) == 2

    def test_invalid_document(self, client):
        """Test unusable documents are a 400."""
        response = client.post('/api/services', content='openapi: 3.0.0\npaths: {}\n', headers=ALICE)

        assert response.status_code == 400
        assert 'info.title' in response.json()['message']

    def test_missing_user(self, client, petstore_yaml):
        """Test anonymous uploads are rejected with an error envelope."""
        response = client.post('/api/services', content=petstore_yaml)

        assert response.status_code == 401
        body = response.json()
        assert set(body.keys()) == {'status', 'message', 'timestamp', 'path'}
        assert body['status'] == 401
        assert body['path'] == '/api/services'

    def test_metrics_count_ingestion(self, uploaded):
        """Test ingestion metrics."""
        metrics = uploaded.get('/__admin__/metrics').json()

        assert metrics['services_ingested'] == 1
        assert metrics['records_generated'] == 8


class TestServiceQueries:
    """Test service listing, retrieval and deletion."""

    def test_list_services(self, uploaded):
        """Test owners see their services, others don't."""
        services = uploaded.get('/api/services', headers=ALICE).json()

        assert [(s['name'], s['version']) for s in services] == [('Petstore', '1.0.0')]
        assert 'openapi' not in services[0]
        assert uploaded.get('/api/services', headers=BOB).json() == []

    def test_collaborator_sees_service(self, uploaded, store):
        """Test shared services are listed for collaborators."""
        store.find_service_by_identity('alice', 'Petstore', '1.0.0').collaborators.append('bob')

        services = uploaded.get('/api/services', headers=BOB).json()

        assert len(services) == 1

    def test_get_service_with_responses(self, uploaded):
        """Test retrieving a service includes its responses."""
        body = uploaded.get('/api/services/Petstore/1.0.0', headers=ALICE).json()

        assert body['owner'] == 'alice'
        assert len(body['responses']) == 8

    def test_get_unknown_service(self, uploaded):
        """Test strangers get a 404."""
        response = uploaded.get('/api/services/Petstore/1.0.0', headers=BOB)

        assert response.status_code == 404
        assert response.json()['message'] == 'The service cannot be found'

    def test_get_spec(self, uploaded, petstore):
        """Test the stored document is returned."""
        body = uploaded.get('/api/services/spec/Petstore/1.0.0', headers=ALICE).json()

        assert body['info'] == petstore['info']
        assert set(body['paths'].keys()) == {'/pets', '/pets/{petId}'}

    def test_collaborator_cannot_delete(self, uploaded, store):
        """Test only the owner can delete."""
        store.find_service_by_identity('alice', 'Petstore', '1.0.0').collaborators.append('bob')

        response = uploaded.delete('/api/services/Petstore/1.0.0', headers=BOB)

        assert response.status_code == 403

    def test_owner_deletes(self, uploaded, store):
        """Test deletion removes the service and its responses."""
        response = uploaded.delete('/api/services/Petstore/1.0.0', headers=ALICE)

        assert response.status_code == 200
        assert store.services == {}
        assert store.responses == []
        assert uploaded.get('/api/services/Petstore/1.0.0', headers=ALICE).status_code == 404


class TestCollaborators:
    """Test /api/services/{name}/{version}/collaborators."""

    URL = '/api/services/Petstore/1.0.0/collaborators'

    def test_add_and_list(self, uploaded, store):
        """Test the owner shares a service and both users see the grant."""
        response = uploaded.post(self.URL, json={'user_id': 'bob'}, headers=ALICE)

        assert response.status_code == 201
        assert response.json() == {'message': 'Collaborator added successfully'}
        assert store.find_service_by_identity('alice', 'Petstore', '1.0.0').collaborators == ['bob']
        assert uploaded.get(self.URL, headers=ALICE).json() == [{'user_id': 'bob'}]
        assert uploaded.get(self.URL, headers=BOB).json() == [{'user_id': 'bob'}]

    def test_collaborator_reads_service(self, uploaded):
        """Test a granted user can fetch the service and its document."""
        uploaded.post(self.URL, json={'user_id': 'bob'}, headers=ALICE)

        assert uploaded.get('/api/services/Petstore/1.0.0', headers=BOB).json()['owner'] == 'alice'
        assert uploaded.get('/api/services/spec/Petstore/1.0.0', headers=BOB).status_code == 200

    def test_stranger_cannot_list(self, uploaded):
        assert uploaded.get(self.URL, headers=BOB).status_code == 404

    def test_collaborator_cannot_add(self, uploaded):
        """Test only the owner manages collaborators."""
        uploaded.post(self.URL, json={'user_id': 'bob'}, headers=ALICE)

        response = uploaded.post(self.URL, json={'user_id': 'carol'}, headers=BOB)

        assert response.status_code == 403
        assert response.json()['message'] == 'Only the owner can add collaborators'

    def test_duplicate(self, uploaded):
        """Test adding the same user twice is a conflict."""
        uploaded.post(self.URL, json={'user_id': 'bob'}, headers=ALICE)

        response = uploaded.post(self.URL, json={'user_id': 'bob'}, headers=ALICE)

        assert response.status_code == 409
        assert response.json()['message'] == 'User is already a collaborator'

    def test_owner_cannot_be_added(self, uploaded):
        response = uploaded.post(self.URL, json={'user_id': 'alice'}, headers=ALICE)

        assert response.status_code == 409
        assert response.json()['message'] == 'Owner cannot be added as a collaborator'

    def test_remove(self, uploaded):
        """Test a removed collaborator loses access."""
        uploaded.post(self.URL, json={'user_id': 'bob'}, headers=ALICE)

        response = uploaded.request('DELETE', self.URL, json={'user_id': 'bob'}, headers=ALICE)

        assert response.status_code == 200
        assert response.json() == {'message': 'Collaborator removed successfully'}
        assert uploaded.get(self.URL, headers=ALICE).json() == []
        assert uploaded.get('/api/services/Petstore/1.0.0', headers=BOB).status_code == 404

    def test_collaborator_cannot_remove(self, uploaded):
        uploaded.post(self.URL, json={'user_id': 'bob'}, headers=ALICE)

        response = uploaded.request('DELETE', self.URL, json={'user_id': 'bob'}, headers=BOB)

        assert response.status_code == 403
        assert response.json()['message'] == 'Only the owner can remove collaborators'

    def test_remove_unknown_user(self, uploaded):
        response = uploaded.request('DELETE', self.URL, json={'user_id': 'bob'}, headers=ALICE)

        assert response.status_code == 404
        assert response.json()['message'] == 'User is not a collaborator'

    @pytest.mark.parametrize('body', [None, '{"user_id": ', '{"user_id": "  "}', '["bob"]'])
    def test_invalid_body(self, uploaded, body):
        """Test a body without a usable user_id is rejected."""
        response = uploaded.post(self.URL, content=body, headers=ALICE)

        assert response.status_code == 400
        assert 'timestamp' in response.json()

    def test_grant_survives_override(self, uploaded, petstore_yaml, store):
        """Test overriding keeps the collaborators and any non-zero flag overrides."""
        uploaded.post(self.URL, json={'user_id': 'bob'}, headers=ALICE)

        response = uploaded.post('/api/services?override=2', content=petstore_yaml, headers=ALICE)

        assert response.status_code == 201
        assert len(store.services) == 1
        assert uploaded.get(self.URL, headers=BOB).json() == [{'user_id': 'bob'}]


class TestMockEndpoints:
    """Test /mocks/{owner}/{name}/{version}/..."""

    def test_serves_example(self, uploaded):
        """Test the stored example and status are returned."""
        response = uploaded.get('/mocks/alice/Petstore/1.0.0/pets')

        assert response.status_code == 200
        assert response.json() == [{'id': 1, 'name': 'Rex'}]

    def test_status_header(self, uploaded):
        """Test X-SuperMockio-Status selects a response."""
        response = uploaded.get('/mocks/alice/Petstore/1.0.0/pets/42', headers={'X-SuperMockio-Status': '404'})

        assert response.status_code == 404
        assert response.json() == {'message': 'Pet not found'}

    def test_example_header(self, uploaded):
        """Test X-SuperMockio-Example selects a named example."""
        response = uploaded.post('/mocks/alice/Petstore/1.0.0/pets', headers={'X-SuperMockio-Example': 'cat'})

        assert response.status_code == 201
        assert response.json() == {'id': 3, 'name': 'Tom'}

    def test_template_match(self, uploaded):
        """Test any parameter value reaches the endpoint."""
        response = uploaded.get('/mocks/alice/Petstore/1.0.0/pets/7', headers={'X-SuperMockio-Status': '404'})

        assert response.status_code == 404

    def test_no_content_status(self, uploaded):
        """Test 204 responses have no body."""
        response = uploaded.delete('/mocks/alice/Petstore/1.0.0/pets/42')

        assert response.status_code == 204
        assert response.content == b''

    def test_strict_mode(self, uploaded, monkeypatch):
        """Test strict mode reports the unmatched criteria."""
        monkeypatch.setenv('MOCKER_STRICT_MODE', 'true')

        response = uploaded.get('/mocks/alice/Petstore/1.0.0/pets', headers={'X-SuperMockio-Status': '418'})

        assert response.status_code == 404
        assert response.json()['message'] == (
            "The request endpoint is not defined in this service with the following criteria: "
            "statusCode = 418, exampleName = N/A."
        )

    def test_non_strict_substitution(self, uploaded):
        """Test non-strict mode serves another response of the endpoint."""
        response = uploaded.get('/mocks/alice/Petstore/1.0.0/pets', headers={'X-SuperMockio-Status': '418'})

        assert response.status_code == 200
        metrics = uploaded.get('/__admin__/metrics').json()
        assert metrics['substituted_requests'] == 1

    def test_unknown_service(self, client):
        """Test unknown services are a 404 envelope."""
        response = client.get('/mocks/alice/Nothing/1/pets')

        assert response.status_code == 404
        assert response.json()['message'] == 'The service cannot be found'

    def test_unknown_endpoint(self, uploaded):
        """Test endpoints without responses are a 404."""
        response = uploaded.get('/mocks/alice/Petstore/1.0.0/owners')

        assert response.status_code == 404
        assert response.json()['message'] == 'No response defined for this endpoint'

    def test_request_metrics(self, uploaded):
        """Test dispatch metrics."""
        uploaded.get('/mocks/alice/Petstore/1.0.0/pets')
        uploaded.get('/mocks/alice/Petstore/1.0.0/owners')

        metrics = uploaded.get('/__admin__/metrics').json()

        assert metrics['total_requests'] == 2
        assert metrics['matched_requests'] == 1
        assert metrics['unmatched_requests'] == 1


class TestAdminAPI:
    """Test admin endpoints."""

    def test_config(self, uploaded, monkeypatch):
        """Test the configuration view never exposes the key."""
        monkeypatch.setenv('AI_API_KEY', 'secret-key')

        body = uploaded.get('/__admin__/config').json()

        assert body['total_services'] == 1
        assert body['total_responses'] == 8
        assert body['settings']['ai_api_key_set'] is True
        assert 'secret-key' not in json.dumps(body)

    def test_reset(self, uploaded):
        """Test metrics reset."""
        uploaded.get('/mocks/alice/Petstore/1.0.0/pets')

        assert uploaded.post('/__admin__/reset').json() == {'status': 'reset'}
        assert uploaded.get('/__admin__/metrics').json()['total_requests'] == 0

    def test_admin_disabled(self, store):
        """Test the admin API can be turned off."""
        server = MockServer(store=store, config=MockConfig(admin_enabled=False), settings=MockerSettings())
        client = TestClient(server.get_app())

        assert client.get('/__admin__/metrics').status_code == 404

    def test_admin_role(self, store):
        """Test a configured admin role is required on every admin route."""
        server = MockServer(store=store, config=MockConfig(admin_role='admin'), settings=MockerSettings())
        client = TestClient(server.get_app())
        admin = {**ALICE, 'X-SuperMockio-Roles': 'viewer, admin'}

        denied = client.get('/__admin__/metrics', headers=ALICE)

        assert denied.status_code == 403
        assert denied.json()['message'] == 'User does not have required roles: admin'
        assert client.get('/__admin__/config').status_code == 401
        assert client.post('/__admin__/reset', headers=ALICE).status_code == 403
        assert client.get('/__admin__/metrics', headers=admin).status_code == 200
        assert client.post('/__admin__/reset', headers=admin).status_code == 200


class TestDataFile:
    """Test JSON snapshot persistence."""

    def test_saved_and_reloaded(self, tmp_path, petstore_yaml):
        """Test uploads survive a restart."""
        data_file = tmp_path / 'data.json'
        config = MockConfig(data_file=str(data_file))

        client = TestClient(MockServer(config=config, settings=MockerSettings()).get_app())
        client.post('/api/services', content=petstore_yaml, headers=ALICE)

        assert data_file.exists()

        restarted = MockServer(config=config, settings=MockerSettings())
        assert len(restarted.store.services) == 1
        assert len(restarted.store.responses) == 8

        response = TestClient(restarted.get_app()).get('/mocks/alice/Petstore/1.0.0/pets')
        assert response.json() == [{'id': 1, 'name': 'Rex'}]

    def test_create_mock_server(self, tmp_path):
        """Test the convenience constructor."""
        server = create_mock_server(port=9000, data_file=str(tmp_path / 'missing.json'), admin_enabled=False)

        assert server.config.port == 9000
        assert server.config.admin_enabled is False
        assert isinstance(server.store, MemoryStore)
        assert server.ai_service is None
