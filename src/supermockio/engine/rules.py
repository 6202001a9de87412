"""
SuperMockio Example Rules

Strategies that decide which example(s) a response definition gets.

Rules, in precedence order:
- SingleExampleRule: literal `example` on the JSON content
- MultipleExamplesRule: named `examples` map (inline, `value`-wrapped or `$ref`)
- AIGenerationRule: AI-generated example from the schema (terminal, never defers)
"""

import json
import logging
from dataclasses import dataclass, field
from textwrap import dedent
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..common.ai_service import AIService
from ..common.config import ai_generation_enabled
from ..common.utils import preview, strip_code_fences
from ..errors import AIGenerationError, ReferenceResolutionError
from .schema import SchemaWalker

logger = logging.getLogger("supermockio.engine")

JSON_MEDIA_TYPE = 'application/json'

FALLBACK_AI_DISABLED = 'fallback-ai-disabled'
FALLBACK_AI_ERROR = 'fallback-ai-error'
FALLBACK_NO_SCHEMA = 'fallback-no-schema'
FALLBACK_ERROR = 'fallback-error'
AI_GENERATED = 'aiGenerated'
DEFAULT_EXAMPLE_NAME = 'default'


@dataclass(frozen=True)
class ExampleResolutionContext:
    """Everything a rule may look at for one response definition."""

    response_definition: Any
    openapi: Dict[str, Any]
    operation: Optional[Dict[str, Any]] = None
    walker: Optional[SchemaWalker] = None

    def get_walker(self) -> SchemaWalker:
        """The ingestion's walker, or a fresh one bound to this document."""
        return self.walker or SchemaWalker(self.openapi)

    def json_content(self) -> Optional[Dict[str, Any]]:
        """
        The JSON media type object of the response.

        Prefers application/json, then any other media type ending in
        'json' (application/problem+json, application/vnd.api+json, ...).
        """
        if not isinstance(self.response_definition, dict):
            return None

        content = self.response_definition.get('content')
        if not isinstance(content, dict):
            return None

        media = content.get(JSON_MEDIA_TYPE)
        if isinstance(media, dict):
            return media

        for media_type, media in content.items():
            if isinstance(media_type, str) and media_type.split(';')[0].strip().endswith('json'):
                if isinstance(media, dict):
                    return media

        return None

    def describe(self) -> str:
        """Short operation label for log lines."""
        operation = self.operation or {}
        method = str(operation.get('method', '?')).upper()
        path = operation.get('path', '?')
        operation_id = operation.get('operationId')
        label = f"{method} {path}"
        return f"{label} ({operation_id})" if operation_id else label


@dataclass
class ExampleResolutionResult:
    """Parallel lists of examples and their names."""

    examples: List[Any]
    example_names: List[Optional[str]] = field(default_factory=list)

    def __post_init__(self):
        # Names default to None and always line up with the examples
        names = list(self.example_names or [])
        if len(names) < len(self.examples):
            names.extend([None] * (len(self.examples) - len(names)))
        self.example_names = names[:len(self.examples)]

    def pairs(self) -> Iterator[Tuple[Any, Optional[str]]]:
        """Iterate over (example, name) pairs."""
        return zip(self.examples, self.example_names)

    @classmethod
    def single(cls, example: Any, name: Optional[str]) -> 'ExampleResolutionResult':
        return cls(examples=[example], example_names=[name])

    @classmethod
    def fallback(cls, name: str) -> 'ExampleResolutionResult':
        """A single empty-object example tagged with a fallback name."""
        return cls.single({}, name)


class ExampleRule:
    """
    Base class for example resolution strategies.

    `apply()` returns a result to commit, or None to let the next rule try.
    """

    terminal = False

    @property
    def name(self) -> str:
        return type(self).__name__

    async def apply(self, context: ExampleResolutionContext) -> Optional[ExampleResolutionResult]:
        raise NotImplementedError


class SingleExampleRule(ExampleRule):
    """Uses the literal `example` of the JSON content."""

    async def apply(self, context: ExampleResolutionContext) -> Optional[ExampleResolutionResult]:
        content = context.json_content()
        if content is not None and content.get('example') is not None:
            return ExampleResolutionResult.single(content['example'], DEFAULT_EXAMPLE_NAME)
        return None


class MultipleExamplesRule(ExampleRule):
    """Uses every entry of the JSON content's `examples` map, keeping their names."""

    async def apply(self, context: ExampleResolutionContext) -> Optional[ExampleResolutionResult]:
        content = context.json_content()
        if content is None:
            return None

        entries = content.get('examples')
        if not isinstance(entries, dict) or not entries:
            return None

        walker = context.get_walker()
        examples = []
        names = []

        for name, entry in entries.items():
            try:
                value = self._unwrap(entry, walker)
            except ReferenceResolutionError as e:
                logger.error(f"Error processing example '{name}' for {context.describe()}: {e}")
                continue

            examples.append(value)
            names.append(name)

        if not examples:
            logger.debug(f"No usable examples for {context.describe()}, delegating to next rule")
            return None

        return ExampleResolutionResult(examples=examples, example_names=names)

    @staticmethod
    def _unwrap(entry: Any, walker: SchemaWalker) -> Any:
        if isinstance(entry, dict) and '$ref' in entry:
            resolved = walker.resolve_ref(entry['$ref'])
            # Example components usually wrap the payload in `value`
            if isinstance(resolved, dict) and 'value' in resolved:
                return resolved['value']
            return resolved

        if isinstance(entry, dict) and 'value' in entry:
            return entry['value']

        return entry


def build_generation_prompt(
    schema: Any,
    api_title: str,
    api_description: str,
    operation_description: str
) -> str:
    """
    Create the prompt asking the model for one response example.

    Args:
        schema: Fully resolved response schema
        api_title: info.title of the document
        api_description: info.description of the document
        operation_description: Description of the operation

    Returns:
        Prompt string
    """
    schema_json = json.dumps(schema, indent=4, default=str)

    return dedent(f"""
    I want to generate an OpenAPI response example for an endpoint of the "{api_title}".
    Please generate an example that fits the context of this API.
    API Description: {api_description}
    Operation Description: {operation_description}
    Do not add any attributes that are not defined in the schema below.
    Here is the schema definition:
    """).strip() + f"\n{schema_json}\nProvide only the generated example as response."


def parse_ai_example(reply: str) -> Any:
    """
    Parse a model reply into an example value.

    Raises:
        AIGenerationError: If the reply is empty or not JSON
    """
    text = strip_code_fences(reply or '')
    if not text:
        raise AIGenerationError("Empty response from AI service")

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise AIGenerationError(f"AI response is not valid JSON ({e}): {preview(text)}") from e


class AIGenerationRule(ExampleRule):
    """
    Terminal rule: asks the AI service for an example matching the schema.

    Always commits a result. When AI generation is off, the AI service fails
    or its reply can't be parsed, the result is a single empty object tagged
    with a fallback name.
    """

    terminal = True

    def __init__(self, ai_service: Optional[AIService] = None, ai_enabled: Optional[bool] = None):
        """
        Args:
            ai_service: AI collaborator
            ai_enabled: Force AI on/off (None reads AI_GENERATION_ENABLED per call)
        """
        self.ai_service = ai_service
        self.ai_enabled = ai_enabled

    def _ai_enabled(self) -> bool:
        if self.ai_enabled is None:
            return ai_generation_enabled()
        return self.ai_enabled

    async def apply(self, context: ExampleResolutionContext) -> Optional[ExampleResolutionResult]:
        content = context.json_content()
        schema = content.get('schema') if content else None

        if not schema:
            logger.warning(f"No schema provided for {context.describe()}, using empty object")
            return ExampleResolutionResult.fallback(FALLBACK_NO_SCHEMA)

        if not self._ai_enabled():
            logger.warning(f"AI generation is disabled, using empty object for {context.describe()}")
            return ExampleResolutionResult.fallback(FALLBACK_AI_DISABLED)

        try:
            example = await self._generate(context, schema)
        except Exception as e:
            logger.error(f"AI generation failed for {context.describe()}: {e}")
            return ExampleResolutionResult.fallback(FALLBACK_AI_ERROR)

        logger.debug(f"Generated example with AI for {context.describe()}")
        return ExampleResolutionResult.single(example, AI_GENERATED)

    async def _generate(self, context: ExampleResolutionContext, schema: Any) -> Any:
        if self.ai_service is None:
            raise AIGenerationError("No AI service configured (set AI_SERVICE_NAME)")

        resolved_schema = context.get_walker().resolve_refs(schema)
        info = context.openapi.get('info') or {}
        operation = context.operation or {}

        prompt = build_generation_prompt(
            resolved_schema,
            api_title=info.get('title') or 'API',
            api_description=info.get('description') or '',
            operation_description=operation.get('description') or ''
        )

        reply = await self.ai_service.ask(prompt)
        return parse_ai_example(reply)
