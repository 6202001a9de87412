"""
SuperMockio Service Ingestor

Turns an uploaded OpenAPI document into stored mock responses.

For every path, HTTP method and declared status code the ingestor:
1. Computes a concrete request path from the path template
2. Resolves the response definition and runs the example resolution engine
3. Stores one ResponseRecord per resolved example

Operations are processed as concurrent asyncio tasks, and the status codes of
an operation as concurrent sub-tasks. Each status code stores its records as
soon as it is done; a failing status code never stops the others.
"""

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional, Tuple

from ..common.ai_service import AIService
from ..common.config import env_int
from ..engine.path_params import Parameter, PathParameterGenerator
from ..engine.resolver import ExampleResolutionEngine, create_default_engine
from ..engine.rules import ExampleResolutionContext
from ..engine.schema import SchemaWalker
from .store import ResponseRecord, Service, ServiceStore

logger = logging.getLogger("supermockio.mock")

HTTP_METHODS = ('get', 'put', 'post', 'delete', 'options', 'head', 'patch', 'trace')

FALLBACK_EXAMPLE_NAME = 'fallback'
ERROR_FALLBACK_EXAMPLE_NAME = 'error-fallback'
ERROR_FALLBACK_CONTENT = {"error": "Error generating example"}


def parse_status_code(code: Any, response_count: int = 1) -> int:
    """
    Convert an OpenAPI responses key to an HTTP status code.

    Args:
        code: Key of the responses map ('200', 200, '4XX', 'default')
        response_count: Number of responses declared by the operation

    Returns:
        Integer status code. '4XX' maps to 400; 'default' maps to 200 when
        it is the only response, 500 otherwise.

    Raises:
        ValueError: For keys that are none of the above
    """
    text = str(code).strip()

    if text.isdigit():
        return int(text)

    if len(text) == 3 and text[0].isdigit() and text[1:].upper() == 'XX':
        return int(text[0]) * 100

    if text.lower() == 'default':
        return 200 if response_count == 1 else 500

    raise ValueError(f"Unsupported status code key: {code!r}")


def create_rng(seed: Optional[int] = None) -> random.Random:
    """Random source seeded from MOCKER_RANDOM_SEED when no seed is given."""
    if seed is None:
        seed = env_int('MOCKER_RANDOM_SEED')
    return random.Random(seed)


class ServiceIngestor:
    """
    Generates and stores the mock responses of a service.

    Example:
        ingestor = ServiceIngestor(store, ai_service=get_ai_service())
        records = await ingestor.ingest(service)
        print(f"Generated {len(records)} responses")
    """

    def __init__(
        self,
        store: ServiceStore,
        ai_service: Optional[AIService] = None,
        ai_enabled: Optional[bool] = None,
        rng: Optional[random.Random] = None,
        engine: Optional[ExampleResolutionEngine] = None
    ):
        """
        Initialize service ingestor.

        Args:
            store: Where generated records are persisted
            ai_service: AI collaborator for examples and path parameters
            ai_enabled: Force AI on/off (None reads AI_GENERATION_ENABLED per call)
            rng: Random source (seeded from MOCKER_RANDOM_SEED if None)
            engine: Example resolution engine (default rule chain if None)
        """
        self.store = store
        self.ai_service = ai_service
        self.ai_enabled = ai_enabled
        self.rng = rng or create_rng()
        self.engine = engine or create_default_engine(ai_service=ai_service, ai_enabled=ai_enabled)

    async def ingest(self, service: Service) -> List[ResponseRecord]:
        """
        Generate and persist the responses of every operation of a service.

        Args:
            service: Stored service whose document is ingested

        Returns:
            All records created, in path/method/status order
        """
        openapi = service.openapi or {}
        paths = openapi.get('paths') or {}

        if not paths:
            logger.warning(f"No paths found in OpenAPI document of service {service.name} {service.version}")
            return []

        # One walker per run: its $ref cache belongs to this document only
        walker = SchemaWalker(openapi, rng=self.rng)
        path_generator = PathParameterGenerator(walker, ai_service=self.ai_service, ai_enabled=self.ai_enabled)

        operations = list(self._iter_operations(paths))
        logger.debug(f"Ingesting {len(operations)} operation(s) of service {service.name} {service.version}")

        results = await asyncio.gather(*(
            self._ingest_operation(service, walker, path_generator, template, method, path_item, operation)
            for template, method, path_item, operation in operations
        ))

        records = [record for operation_records in results for record in operation_records]
        logger.info(f"Generated {len(records)} response(s) for service {service.name} {service.version}")
        return records

    @staticmethod
    def _iter_operations(paths: Dict[str, Any]):
        for template, path_item in paths.items():
            if not isinstance(path_item, dict):
                continue
            for method, operation in path_item.items():
                if not isinstance(method, str) or method.lower() not in HTTP_METHODS:
                    continue
                if not isinstance(operation, dict):
                    continue
                yield str(template), method.lower(), path_item, operation

    async def _ingest_operation(
        self,
        service: Service,
        walker: SchemaWalker,
        path_generator: PathParameterGenerator,
        template: str,
        method: str,
        path_item: Dict[str, Any],
        operation: Dict[str, Any]
    ) -> List[ResponseRecord]:
        try:
            parameters = Parameter.list_from(
                operation.get('parameters'),
                walker,
                path_level=path_item.get('parameters')
            )
            path = await path_generator.generate_path(template, parameters)
        except Exception as e:
            logger.error(f"Path generation failed for {method.upper()} {template}, keeping template: {e}")
            path = template

        responses = operation.get('responses') or {}
        if not isinstance(responses, dict) or not responses:
            logger.debug(f"No responses declared for {method.upper()} {template}")
            return []

        units = []
        for code, definition in responses.items():
            try:
                status_code = parse_status_code(code, len(responses))
            except ValueError as e:
                logger.warning(f"Skipping response of {method.upper()} {template}: {e}")
                continue
            units.append((status_code, definition))

        operation_meta = {
            'path': template,
            'method': method,
            'operationId': operation.get('operationId'),
            'summary': operation.get('summary'),
            'description': operation.get('description')
        }

        results = await asyncio.gather(*(
            self._ingest_status(service, walker, path, template, method, operation_meta, unit)
            for unit in units
        ))

        return [record for unit_records in results for record in unit_records]

    async def _ingest_status(
        self,
        service: Service,
        walker: SchemaWalker,
        path: str,
        template: str,
        method: str,
        operation_meta: Dict[str, Any],
        unit: Tuple[int, Any]
    ) -> List[ResponseRecord]:
        status_code, definition = unit

        def record(content: Any, example_name: Optional[str]) -> ResponseRecord:
            return ResponseRecord(
                service_id=service.id,
                path=path,
                method=method,
                status_code=status_code,
                content=content,
                example_name=example_name,
                path_template=template
            )

        try:
            if isinstance(definition, dict) and '$ref' in definition:
                definition = walker.resolve_ref(definition['$ref'])

            context = ExampleResolutionContext(
                response_definition=definition,
                openapi=service.openapi,
                operation=operation_meta,
                walker=walker
            )
            result = await self.engine.resolve(context)

            if result.examples:
                records = [record(example, name) for example, name in result.pairs()]
            else:
                logger.warning(
                    f"No resolution result for {method.upper()} {template} {status_code}, "
                    f"creating fallback response"
                )
                records = [record({}, FALLBACK_EXAMPLE_NAME)]

        except Exception as e:
            logger.error(f"Error processing {method.upper()} {template} {status_code}: {e}")
            records = [record(dict(ERROR_FALLBACK_CONTENT), ERROR_FALLBACK_EXAMPLE_NAME)]

        self.store.persist_responses(records)
        logger.debug(f"Stored {len(records)} response(s) for {method.upper()} {path} {status_code}")
        return records
