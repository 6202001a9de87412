"""
Shared fixtures for SuperMockio tests.
"""

import copy
from unittest.mock import AsyncMock, Mock

import pytest


PETSTORE = {
    'openapi': '3.0.3',
    'info': {
        'title': 'Petstore',
        'version': '1.0.0',
        'description': 'A sample pet store'
    },
    'paths': {
        '/pets': {
            'summary': 'Pets collection',
            'get': {
                'operationId': 'listPets',
                'description': 'List all pets',
                'responses': {
                    '200': {
                        'description': 'A list of pets',
                        'content': {
                            'application/json': {
                                'schema': {
                                    'type': 'array',
                                    'items': {'$ref': '#/components/schemas/Pet'}
                                },
                                'example': [{'id': 1, 'name': 'Rex'}]
                            }
                        }
                    }
                }
            },
            'post': {
                'operationId': 'createPet',
                'responses': {
                    '201': {
                        'description': 'Created',
                        'content': {
                            'application/json': {
                                'schema': {'$ref': '#/components/schemas/Pet'},
                                'examples': {
                                    'dog': {'value': {'id': 2, 'name': 'Fido'}},
                                    'cat': {'$ref': '#/components/examples/Cat'}
                                }
                            }
                        }
                    },
                    '4XX': {'$ref': '#/components/responses/Error'}
                }
            }
        },
        '/pets/{petId}': {
            'parameters': [
                {'$ref': '#/components/parameters/PetId'}
            ],
            'get': {
                'operationId': 'showPet',
                'description': 'Info for a specific pet',
                'responses': {
                    '200': {
                        'description': 'A pet',
                        'content': {
                            'application/json': {
                                'schema': {'$ref': '#/components/schemas/Pet'}
                            }
                        }
                    },
                    '404': {
                        'description': 'Not found',
                        'content': {
                            'application/json': {
                                'example': {'message': 'Pet not found'}
                            }
                        }
                    },
                    'default': {'$ref': '#/components/responses/Error'}
                }
            },
            'delete': {
                'responses': {
                    '204': {'description': 'Deleted'}
                }
            }
        }
    },
    'components': {
        'schemas': {
            'Pet': {
                'type': 'object',
                'properties': {
                    'id': {'type': 'integer'},
                    'name': {'type': 'string'},
                    'tag': {'type': 'string', 'enum': ['dog', 'cat']}
                }
            },
            'Error': {
                'type': 'object',
                'properties': {
                    'code': {'type': 'integer'},
                    'message': {'type': 'string'}
                }
            }
        },
        'parameters': {
            'PetId': {
                'name': 'petId',
                'in': 'path',
                'required': True,
                'schema': {'type': 'integer'},
                'example': 42
            }
        },
        'examples': {
            'Cat': {
                'summary': 'A cat',
                'value': {'id': 3, 'name': 'Tom'}
            }
        },
        'responses': {
            'Error': {
                'description': 'Error',
                'content': {
                    'application/json': {
                        'schema': {'$ref': '#/components/schemas/Error'}
                    }
                }
            }
        }
    }
}


@pytest.fixture
def petstore():
    """Sample OpenAPI document (fresh copy per test)."""
    return copy.deepcopy(PETSTORE)


@pytest.fixture
def fake_ai():
    """AI service double; set `fake_ai.ask.return_value` or `side_effect` per test."""
    service = Mock()
    service.ask = AsyncMock(return_value='{}')
    return service


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep generation flags from the developer's shell out of the tests."""
    for name in (
        'AI_GENERATION_ENABLED',
        'AI_SERVICE_NAME',
        'AI_API_KEY',
        'ANTHROPIC_API_KEY',
        'AI_MODEL_NAME',
        'AI_RATE_LIMIT_TOKENS',
        'AI_TIMEOUT_SECONDS',
        'MOCKER_STRICT_MODE',
        'MOCKER_RANDOM_SEED',
    ):
        monkeypatch.delenv(name, raising=False)
