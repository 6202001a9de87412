"""
SuperMockio Path Parameter Generation

Turns OpenAPI path templates such as /users/{id} into concrete request paths.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..common.ai_service import AIService
from ..common.config import ai_generation_enabled
from ..common.utils import strip_code_fences
from ..errors import ReferenceResolutionError
from .schema import SchemaWalker

logger = logging.getLogger("supermockio.engine")


@dataclass
class Parameter:
    """A path parameter after $ref resolution."""

    name: str
    schema: Dict[str, Any] = field(default_factory=dict)
    example: Any = None

    @classmethod
    def list_from(
        cls,
        parameters: Optional[List[Any]],
        walker: SchemaWalker,
        path_level: Optional[List[Any]] = None
    ) -> List['Parameter']:
        """
        Build the path parameters of an operation.

        Path-item parameters are applied first and overridden by operation
        parameters with the same name and location. Unresolvable `$ref`
        entries are skipped.

        Args:
            parameters: Operation-level parameter list
            walker: Walker for the document the parameters belong to
            path_level: Path-item-level parameter list

        Returns:
            Parameters located in the path
        """
        merged: Dict[Tuple[Any, Any], Dict[str, Any]] = {}

        for raw in list(path_level or []) + list(parameters or []):
            if not isinstance(raw, dict):
                continue
            if '$ref' in raw:
                try:
                    raw = walker.resolve_ref(raw['$ref'])
                except ReferenceResolutionError as e:
                    logger.warning(f"Skipping parameter: {e}")
                    continue
                if not isinstance(raw, dict):
                    continue
            merged[(raw.get('name'), raw.get('in'))] = raw

        return [
            cls(
                name=raw['name'],
                schema=raw.get('schema') or {},
                example=_parameter_example(raw, walker)
            )
            for raw in merged.values()
            if raw.get('in') == 'path' and raw.get('name')
        ]


def _parameter_example(raw: Dict[str, Any], walker: SchemaWalker) -> Any:
    if raw.get('example') is not None:
        return raw['example']

    # Fall back to the first entry of an `examples` map
    examples = raw.get('examples')
    if isinstance(examples, dict) and examples:
        first = next(iter(examples.values()))
        if isinstance(first, dict) and '$ref' in first:
            try:
                first = walker.resolve_ref(first['$ref'])
            except ReferenceResolutionError:
                return None
        if isinstance(first, dict) and 'value' in first:
            return first['value']
        return first

    return None


def _to_segment(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(',', ':'))
    return str(value)


class PathParameterGenerator:
    """
    Fills `{param}` placeholders of an operation path.

    Value priority per placeholder:
    1. The parameter's own example
    2. The schema default
    3. An AI-suggested value (only when AI generation is enabled)
    4. A value synthesized from the schema

    Example:
        generator = PathParameterGenerator(SchemaWalker(openapi))
        path = await generator.generate_path('/users/{id}', [Parameter('id', example='42')])
        # '/users/42'
    """

    def __init__(
        self,
        walker: SchemaWalker,
        ai_service: Optional[AIService] = None,
        ai_enabled: Optional[bool] = None
    ):
        """
        Initialize path parameter generator.

        Args:
            walker: Schema walker for the document
            ai_service: AI collaborator used when AI generation is enabled
            ai_enabled: Force AI on/off (None reads AI_GENERATION_ENABLED per call)
        """
        self.walker = walker
        self.ai_service = ai_service
        self.ai_enabled = ai_enabled

    def _ai_enabled(self) -> bool:
        if self.ai_enabled is None:
            return ai_generation_enabled()
        return self.ai_enabled

    async def generate_path(self, template: str, parameters: List[Parameter]) -> str:
        """
        Substitute path parameters into a template.

        Args:
            template: OpenAPI path template
            parameters: Path parameters of the operation

        Returns:
            Concrete path; placeholders without a parameter are kept as-is
        """
        if not parameters:
            return template

        by_name = {param.name: param for param in parameters}
        segments = template.split('/')

        for index, segment in enumerate(segments):
            if not (segment.startswith('{') and segment.endswith('}')):
                continue

            param = by_name.get(segment[1:-1])
            if param is None:
                continue

            value = await self.parameter_value(template, param)
            segments[index] = _to_segment(value)

        return '/'.join(segments)

    async def parameter_value(self, template: str, param: Parameter) -> Any:
        """Pick the value for one parameter following the priority order."""
        if param.example is not None:
            return param.example

        schema = param.schema
        if isinstance(schema, dict) and '$ref' in schema:
            try:
                schema = self.walker.resolve_ref(schema['$ref'])
            except ReferenceResolutionError as e:
                logger.warning(f"{e}, generating value without schema")
                schema = {}

        if isinstance(schema, dict) and schema.get('default') is not None:
            return schema['default']

        if self._ai_enabled():
            value = await self._ask_ai(template, param)
            if value:
                return value

        return self.walker.generate_example(schema)

    async def _ask_ai(self, template: str, param: Parameter) -> Optional[str]:
        if self.ai_service is None:
            logger.debug(f"AI enabled but no AI service configured for path param '{param.name}'")
            return None

        prompt = (
            f"I want you to generate an example value for my path param: {param.name} "
            f"used in this OpenAPI path: {template}. Return only the generated value."
        )

        try:
            reply = await self.ai_service.ask(prompt)
        except Exception as e:
            logger.error(f"AI path parameter generation failed for '{param.name}': {e}")
            return None

        lines = strip_code_fences(reply or '').strip().splitlines()
        value = lines[0].strip().strip('"\'') if lines else ''

        # A slash would change the shape of the path
        if not value or '/' in value:
            logger.warning(f"Unusable AI value for path param '{param.name}': {value!r}")
            return None

        return value
