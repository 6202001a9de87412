"""
SuperMockio Mock Module

Service storage, ingestion and request-time dispatch.

This module provides:
- FastAPI-based server (management API + mock endpoints)
- Service ingestor generating responses from OpenAPI documents
- Mock dispatcher selecting stored responses
- In-memory store with JSON snapshots
"""

from .store import Principal, Service, ResponseRecord, ServiceStore, MemoryStore
from .ingestor import ServiceIngestor, parse_status_code
from .dispatcher import MockDispatcher, DispatchResult, normalize_path, path_matches_template
from .server import MockServer, MockConfig, MockMetrics, create_mock_server, get_principal

__all__ = [
    # Store
    'Principal',
    'Service',
    'ResponseRecord',
    'ServiceStore',
    'MemoryStore',

    # Ingestor
    'ServiceIngestor',
    'parse_status_code',

    # Dispatcher
    'MockDispatcher',
    'DispatchResult',
    'normalize_path',
    'path_matches_template',

    # Server
    'MockServer',
    'MockConfig',
    'MockMetrics',
    'create_mock_server',
    'get_principal',
]
