"""
SuperMockio Engine

Document-level machinery shared by ingestion:
- Schema walker (reference resolution, example synthesis)
- Path parameter generation
- Example resolution rules and engine
"""

from .schema import SchemaWalker
from .path_params import Parameter, PathParameterGenerator
from .rules import (
    ExampleResolutionContext,
    ExampleResolutionResult,
    ExampleRule,
    SingleExampleRule,
    MultipleExamplesRule,
    AIGenerationRule,
    build_generation_prompt,
    parse_ai_example
)
from .resolver import ExampleResolutionEngine, default_rules, create_default_engine

__all__ = [
    # Schema
    'SchemaWalker',

    # Path parameters
    'Parameter',
    'PathParameterGenerator',

    # Rules
    'ExampleResolutionContext',
    'ExampleResolutionResult',
    'ExampleRule',
    'SingleExampleRule',
    'MultipleExamplesRule',
    'AIGenerationRule',
    'build_generation_prompt',
    'parse_ai_example',

    # Engine
    'ExampleResolutionEngine',
    'default_rules',
    'create_default_engine',
]
