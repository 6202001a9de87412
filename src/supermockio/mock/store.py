"""
SuperMockio Service Store

Persistence for uploaded services and their generated responses.

Features:
- `ServiceStore` protocol consumed by ingestion, dispatch and the HTTP API
- In-memory implementation with JSON snapshot load/save
- Cascade delete of a service's response records
- Collaborator grants and revocations
"""

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from ..errors import CollaboratorConflict, CollaboratorNotFound, ServiceNotFound

logger = logging.getLogger("supermockio.mock")


@dataclass
class Principal:
    """Authenticated caller."""

    user_id: str
    roles: List[str] = field(default_factory=list)

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass
class Service:
    """An uploaded OpenAPI document, owned by one user."""

    name: str
    version: str
    openapi: Dict[str, Any]
    owner: str
    description: str = ''
    collaborators: List[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def is_owner(self, user_id: Optional[str]) -> bool:
        return user_id is not None and user_id == self.owner

    def can_read(self, user_id: Optional[str]) -> bool:
        """Owner or collaborator."""
        return self.is_owner(user_id) or (user_id is not None and user_id in self.collaborators)

    def summary(self) -> Dict[str, Any]:
        """Service metadata without the document."""
        return {
            'id': self.id,
            'name': self.name,
            'version': self.version,
            'description': self.description,
            'owner': self.owner,
            'collaborators': list(self.collaborators),
            'created_at': self.created_at
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Service':
        return cls(
            name=str(data['name']),
            version=str(data['version']),
            openapi=data.get('openapi') or {},
            owner=data['owner'],
            description=data.get('description') or '',
            collaborators=list(data.get('collaborators') or []),
            id=data.get('id') or uuid.uuid4().hex,
            created_at=data.get('created_at') or datetime.now().isoformat()
        )


@dataclass
class ResponseRecord:
    """One stored example for (service, path, method, status code)."""

    service_id: str
    path: str
    method: str
    status_code: int
    content: Any
    example_name: Optional[str] = None
    path_template: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResponseRecord':
        return cls(
            service_id=data['service_id'],
            path=data['path'],
            method=data['method'],
            status_code=int(data['status_code']),
            content=data.get('content'),
            example_name=data.get('example_name'),
            path_template=data.get('path_template')
        )


class ServiceStore(Protocol):
    """Storage operations used by ingestion, dispatch and the management API."""

    def find_service_by_identity(self, owner: str, name: str, version: str) -> Optional[Service]:
        ...

    def find_service_for_user(self, user_id: str, name: str, version: str) -> Optional[Service]:
        ...

    def find_services_for_user(self, user_id: str) -> List[Service]:
        ...

    def add_service(self, service: Service) -> Service:
        ...

    def delete_service(self, service_id: str) -> bool:
        ...

    def add_collaborator(self, service_id: str, user_id: str) -> Service:
        ...

    def remove_collaborator(self, service_id: str, user_id: str) -> Service:
        ...

    def persist_responses(self, records: Iterable[ResponseRecord]) -> List[ResponseRecord]:
        ...

    def find_responses(
        self,
        service_id: str,
        path: Optional[str] = None,
        method: Optional[str] = None
    ) -> List[ResponseRecord]:
        ...


class MemoryStore:
    """
    Process-local ServiceStore.

    Example:
        store = MemoryStore()
        store.add_service(service)
        store.persist_responses(records)
        store.save('supermockio-data.json')

        store = MemoryStore.load('supermockio-data.json')
    """

    def __init__(self):
        self.services: Dict[str, Service] = {}
        self.responses: List[ResponseRecord] = []

    def find_service_by_identity(self, owner: str, name: str, version: str) -> Optional[Service]:
        for service in self.services.values():
            if service.owner == owner and service.name == name and service.version == version:
                return service
        return None

    def find_service_for_user(self, user_id: str, name: str, version: str) -> Optional[Service]:
        """A service the user owns or collaborates on, by name and version."""
        owned = self.find_service_by_identity(user_id, name, version)
        if owned is not None:
            return owned

        for service in self.services.values():
            if service.name == name and service.version == version and service.can_read(user_id):
                return service
        return None

    def find_services_for_user(self, user_id: str) -> List[Service]:
        return [service for service in self.services.values() if service.can_read(user_id)]

    def add_service(self, service: Service) -> Service:
        self.services[service.id] = service
        logger.debug(f"Stored service {service.name} {service.version} ({service.id})")
        return service

    def delete_service(self, service_id: str) -> bool:
        """Delete a service and all its response records."""
        service = self.services.pop(service_id, None)
        if service is None:
            return False

        before = len(self.responses)
        self.responses = [record for record in self.responses if record.service_id != service_id]
        logger.debug(
            f"Deleted service {service.name} {service.version} "
            f"and {before - len(self.responses)} response(s)"
        )
        return True

    def _get_service(self, service_id: str) -> Service:
        service = self.services.get(service_id)
        if service is None:
            raise ServiceNotFound("Service not found")
        return service

    def add_collaborator(self, service_id: str, user_id: str) -> Service:
        """
        Give a user read access to a service.

        Raises:
            ServiceNotFound: If the service doesn't exist
            CollaboratorConflict: If the user owns or already collaborates on it
        """
        service = self._get_service(service_id)
        if service.is_owner(user_id):
            raise CollaboratorConflict("Owner cannot be added as a collaborator")
        if user_id in service.collaborators:
            raise CollaboratorConflict("User is already a collaborator")

        service.collaborators.append(user_id)
        logger.debug(f"Added collaborator {user_id} to {service.name} {service.version}")
        return service

    def remove_collaborator(self, service_id: str, user_id: str) -> Service:
        """
        Revoke a collaborator's access.

        Raises:
            ServiceNotFound: If the service doesn't exist
            CollaboratorNotFound: If the user is not a collaborator
        """
        service = self._get_service(service_id)
        if user_id not in service.collaborators:
            raise CollaboratorNotFound("User is not a collaborator")

        service.collaborators.remove(user_id)
        logger.debug(f"Removed collaborator {user_id} from {service.name} {service.version}")
        return service

    def persist_responses(self, records: Iterable[ResponseRecord]) -> List[ResponseRecord]:
        records = list(records)
        self.responses.extend(records)
        return records

    def find_responses(
        self,
        service_id: str,
        path: Optional[str] = None,
        method: Optional[str] = None
    ) -> List[ResponseRecord]:
        method = method.lower() if method else None
        return [
            record for record in self.responses
            if record.service_id == service_id
            and (path is None or record.path == path)
            and (method is None or record.method.lower() == method)
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'services': [service.to_dict() for service in self.services.values()],
            'responses': [record.to_dict() for record in self.responses]
        }

    def save(self, file_path: str):
        """
        Write a JSON snapshot of all services and records.

        Args:
            file_path: Destination file (parent directories are created)
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w', encoding='utf-8') as f:
            # YAML documents may carry dates; store them as strings
            json.dump(self.to_dict(), f, indent=2, default=str)

        logger.debug(f"Saved {len(self.services)} service(s) to {path}")

    @classmethod
    def load(cls, file_path: str) -> 'MemoryStore':
        """
        Load a JSON snapshot written by `save()`.

        Raises:
            FileNotFoundError: If the snapshot doesn't exist
            ValueError: If the JSON format is unrecognized
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Data file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict) or 'services' not in data:
            raise ValueError(
                f"Unexpected JSON format in {path}. "
                f"Expected dict with 'services' and 'responses' keys"
            )

        store = cls()
        for item in data.get('services') or []:
            store.add_service(Service.from_dict(item))
        store.persist_responses(ResponseRecord.from_dict(item) for item in data.get('responses') or [])

        logger.info(f"Loaded {len(store.services)} service(s) and {len(store.responses)} response(s) from {path}")
        return store
