"""
SuperMockio Schema Walker

Reference resolution and schema-driven example synthesis.

Features:
- `$ref` pointer resolution with a per-document cache
- Deep reference resolution with additive sibling merging
- Example generation for scalar, array, object, allOf and oneOf schemas
- Realistic values for date-time, email, url and uuid formats (Faker)
- Injectable random source for reproducible output
- Recursive references expand once, then stop

A walker is bound to one OpenAPI document. Create one walker per ingestion
run so cached pointers never leak between documents.
"""

import logging
import random
from datetime import timezone
from typing import Any, Dict, FrozenSet, Optional

from faker import Faker

from ..errors import ReferenceResolutionError, SchemaUnsupportedError

logger = logging.getLogger("supermockio.engine")

ARRAY_SAMPLE_SIZE = 3
DEFAULT_MAX_DEPTH = 16

SUPPORTED_FORMATS = ('date-time', 'email', 'url', 'uuid')
SCALAR_TYPES = ('string', 'number', 'integer', 'boolean')
DEFAULT_LOCALE = 'en_US'


class SchemaWalker:
    """
    Walks one OpenAPI document: resolves references and synthesizes examples.

    Example:
        walker = SchemaWalker(openapi)
        user_schema = walker.resolve_ref('#/components/schemas/User')
        example = walker.generate_example({'$ref': '#/components/schemas/User'})

        # Deterministic output for tests
        walker = SchemaWalker(openapi, rng=random.Random(42))
    """

    def __init__(
        self,
        openapi: Dict[str, Any],
        rng: Optional[random.Random] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        locale: str = DEFAULT_LOCALE
    ):
        """
        Initialize schema walker.

        Args:
            openapi: Parsed OpenAPI document (root for all pointers)
            rng: Random source for oneOf branches and synthesized values
            max_depth: Recursion limit for self-referencing schemas
            locale: Faker locale for names, emails and urls
        """
        self.openapi = openapi if openapi is not None else {}
        self.rng = rng or random.Random()
        self.max_depth = max_depth

        # Seeded from the walker's random source
        self.fake = Faker(locale)
        self.fake.seed_instance(self.rng.getrandbits(32))
        self._ref_cache: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Reference resolution
    # ------------------------------------------------------------------

    def resolve_ref(self, ref: str) -> Any:
        """
        Resolve a local JSON pointer such as '#/components/schemas/User'.

        Resolved nodes are cached per pointer string, so repeated calls
        return the identical object.

        Args:
            ref: Pointer string

        Returns:
            The node the pointer designates

        Raises:
            ReferenceResolutionError: If any segment is missing
        """
        if not isinstance(ref, str) or not ref.startswith('#'):
            raise ReferenceResolutionError(str(ref))

        if ref in self._ref_cache:
            return self._ref_cache[ref]

        segments = ref.split('/')[1:]
        current = self.openapi

        for raw_segment in segments:
            segment = raw_segment.replace('~1', '/').replace('~0', '~')

            if isinstance(current, dict) and segment in current:
                current = current[segment]
            elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
                current = current[int(segment)]
            else:
                raise ReferenceResolutionError(ref, segment)

        self._ref_cache[ref] = current
        return current

    def resolve_refs(self, node: Any) -> Any:
        """
        Return a copy of `node` with every `$ref` replaced by its target.

        A `{"$ref": ..., **siblings}` node keeps its siblings; the target only
        adds keys the siblings don't already define. Recursive references are
        left as `$ref` once they loop back on themselves.

        Raises:
            ReferenceResolutionError: If a pointer cannot be resolved
        """
        return self._resolve_refs(node, frozenset())

    def _resolve_refs(self, node: Any, chain: FrozenSet[str]) -> Any:
        if isinstance(node, list):
            return [self._resolve_refs(item, chain) for item in node]

        if not isinstance(node, dict):
            return node

        siblings = {
            key: self._resolve_refs(value, chain)
            for key, value in node.items()
            if key != '$ref'
        }

        ref = node.get('$ref')
        if not isinstance(ref, str):
            return siblings

        if ref in chain or len(chain) >= self.max_depth:
            # Recursive schema: stop expanding here
            return {'$ref': ref, **siblings}

        target = self._resolve_refs(self.resolve_ref(ref), chain | {ref})
        if not isinstance(target, dict):
            return target

        merged = dict(target)
        merged.update(siblings)
        return merged

    # ------------------------------------------------------------------
    # Example generation
    # ------------------------------------------------------------------

    def generate_example(self, schema: Any) -> Any:
        """
        Synthesize an example value for a schema node.

        Never raises: unresolvable references and unsupported types degrade
        to an empty object. A `$ref` met again inside its own expansion
        yields an empty object (an empty list for array items).

        Args:
            schema: Schema node (may contain $ref, allOf, oneOf, type, ...)

        Returns:
            Generated example value
        """
        return self._generate(schema, 0, frozenset())

    def _generate(self, schema: Any, depth: int, expanding: FrozenSet[str]) -> Any:
        if depth > self.max_depth:
            logger.debug("Maximum schema depth reached, using empty object")
            return {}

        if not isinstance(schema, dict) or not schema:
            return {}

        if '$ref' in schema:
            ref = schema['$ref']
            if isinstance(ref, str) and ref in expanding:
                logger.debug(f"Recursive reference {ref}, using empty object")
                return {}
            try:
                resolved = self.resolve_ref(ref)
            except ReferenceResolutionError as e:
                logger.warning(f"{e}, using empty object")
                return {}
            return self._generate(resolved, depth + 1, expanding | {ref})

        schema_format = schema.get('format')
        if schema_format in SUPPORTED_FORMATS:
            return self.format_value(schema_format)

        if 'allOf' in schema:
            merged: Dict[str, Any] = {}
            for branch in schema.get('allOf') or []:
                value = self._generate(branch, depth + 1, expanding)
                if isinstance(value, dict):
                    merged.update(value)
            return merged

        branches = schema.get('oneOf') or schema.get('anyOf')
        if branches:
            return self._generate(self.rng.choice(branches), depth + 1, expanding)

        try:
            return self._generate_for_type(schema, depth, expanding)
        except SchemaUnsupportedError as e:
            logger.debug(f"{e}, using empty object")
            return {}

    def _generate_for_type(self, schema: Dict[str, Any], depth: int, expanding: FrozenSet[str]) -> Any:
        schema_type = self.declared_type(schema)

        if schema_type in SCALAR_TYPES:
            enum = schema.get('enum')
            if enum:
                return enum[0]
            return self.scalar_value(schema_type)

        if schema_type == 'array':
            items = schema.get('items')
            item_ref = items.get('$ref') if isinstance(items, dict) else None
            if isinstance(item_ref, str) and item_ref in expanding:
                return []
            return [self._generate(items, depth + 1, expanding) for _ in range(ARRAY_SAMPLE_SIZE)]

        if schema_type == 'object':
            example = {
                name: self._generate(prop_schema, depth + 1, expanding)
                for name, prop_schema in (schema.get('properties') or {}).items()
            }

            additional = schema.get('additionalProperties')
            if isinstance(additional, dict) and additional:
                value = self._generate(additional, depth + 1, expanding)
                if isinstance(value, dict):
                    example.update(value)
                else:
                    example['additionalProp1'] = value

            return example

        raise SchemaUnsupportedError(schema_type)

    @staticmethod
    def declared_type(schema: Dict[str, Any]) -> Optional[str]:
        """Declared type; for list types (OpenAPI 3.1) the first non-null one."""
        schema_type = schema.get('type')
        if isinstance(schema_type, list):
            non_null = [t for t in schema_type if t != 'null']
            return non_null[0] if non_null else None
        return schema_type

    def scalar_value(self, schema_type: str) -> Any:
        """Synthesize a scalar of the given JSON type."""
        if schema_type == 'string':
            return self.fake.first_name()
        if schema_type == 'number':
            return self.fake.pyfloat(left_digits=1, right_digits=4, positive=True)
        if schema_type == 'integer':
            return self.fake.pyint(min_value=1, max_value=10000)
        if schema_type == 'boolean':
            return self.fake.pybool()
        raise SchemaUnsupportedError(schema_type)

    def format_value(self, schema_format: str) -> str:
        """Synthesize a realistic string for a known format."""
        if schema_format == 'date-time':
            moment = self.fake.date_time_between(start_date='-2d', end_date='now', tzinfo=timezone.utc)
            return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z')

        if schema_format == 'email':
            return self.fake.email()

        if schema_format == 'url':
            return self.fake.url(schemes=['https'])

        if schema_format == 'uuid':
            return self.fake.uuid4()

        raise SchemaUnsupportedError(schema_format)
