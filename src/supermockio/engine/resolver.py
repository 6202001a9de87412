"""
SuperMockio Example Resolution Engine

Runs the example rules in precedence order for one response definition.
"""

import logging
from typing import Optional, Sequence, Tuple

from ..common.ai_service import AIService
from .rules import (
    FALLBACK_ERROR,
    AIGenerationRule,
    ExampleResolutionContext,
    ExampleResolutionResult,
    ExampleRule,
    MultipleExamplesRule,
    SingleExampleRule,
)

logger = logging.getLogger("supermockio.engine")


class ExampleResolutionEngine:
    """
    Ordered chain of example rules.

    The first rule returning a non-empty result wins. A rule raising is
    logged and skipped. A terminal rule always commits, so it may only come
    last. If no rule commits, the result is a single empty object named
    'fallback-error'.

    The rule sequence is fixed at construction time.
    """

    def __init__(self, rules: Sequence[ExampleRule]):
        self.rules: Tuple[ExampleRule, ...] = tuple(rules)
        if not self.rules:
            raise ValueError("ExampleResolutionEngine needs at least one rule")

        for rule in self.rules[:-1]:
            if _is_terminal(rule):
                raise ValueError(f"Terminal rule {rule.name} must be the last rule of the chain")

    async def resolve(self, context: ExampleResolutionContext) -> ExampleResolutionResult:
        """
        Resolve the examples for a response definition.

        Args:
            context: Response definition plus document and operation

        Returns:
            Examples with their names (never empty)
        """
        for rule in self.rules:
            try:
                result = await rule.apply(context)
            except Exception as e:
                logger.error(f"Rule {rule.name} failed for {context.describe()}: {e}")
                continue

            if result is not None and result.examples:
                logger.debug(
                    f"Rule {rule.name} resolved {len(result.examples)} example(s) "
                    f"for {context.describe()}"
                )
                return result

        logger.warning(f"No rule could resolve an example for {context.describe()}")
        return ExampleResolutionResult.fallback(FALLBACK_ERROR)


def _is_terminal(rule: ExampleRule) -> bool:
    return getattr(rule, 'terminal', False) is True


def default_rules(
    ai_service: Optional[AIService] = None,
    ai_enabled: Optional[bool] = None
) -> Tuple[ExampleRule, ...]:
    """Single example, then named examples, then AI generation."""
    return (
        SingleExampleRule(),
        MultipleExamplesRule(),
        AIGenerationRule(ai_service=ai_service, ai_enabled=ai_enabled),
    )


def create_default_engine(
    ai_service: Optional[AIService] = None,
    ai_enabled: Optional[bool] = None
) -> ExampleResolutionEngine:
    """Engine with the default rule chain."""
    return ExampleResolutionEngine(default_rules(ai_service, ai_enabled))
