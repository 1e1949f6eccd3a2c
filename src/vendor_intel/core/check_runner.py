"""
Uniform failure boundary around the non-gating checkers.

A checker that raises is replaced by a neutral fallback result of the same
type (score 50, low confidence, error recorded), so one broken checker can
never stop an investigation.
"""

import logging
from typing import Awaitable, Callable, Type, TypeVar

from .context import CheckContext
from .schemas import CheckResult, Submission

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=CheckResult)

CheckFn = Callable[[Submission, CheckContext], Awaitable[R]]

FALLBACK_SCORE = 50


def fallback_result(result_cls: Type[R], error: BaseException) -> R:
    """Builds the neutral result reported in place of a crashed checker."""
    return result_cls(
        findings=[f"Agent encountered an error: {error}"],
        risk_indicators=["Unable to complete analysis"],
        score=FALLBACK_SCORE,
        confidence="low",
        error=str(error),
    )


async def run_check(
    agent: str,
    check_fn: CheckFn,
    result_cls: Type[R],
    submission: Submission,
    ctx: CheckContext,
) -> R:
    """
    Runs one checker, logging its start and completion to the side channel.

    Args:
        agent (str): The checker's display name in the event log.
        check_fn (CheckFn): The checker coroutine function.
        result_cls (Type[R]): Result type used for the fallback.
        submission (Submission): The vendor submission.
        ctx (CheckContext): The investigation context.

    Returns:
        R: The checker's result, or a fallback if it raised.
    """
    ctx.log.activity(agent, "Investigation started", status="running")
    try:
        result = await check_fn(submission, ctx)
    except Exception as e:
        logger.error("%s failed for investigation %s: %s", agent, ctx.investigation_id, e)
        ctx.log.activity(agent, f"Error: {e}", status="error")
        return fallback_result(result_cls, e)
    ctx.log.activity(
        agent, "Investigation complete", status="complete", score=result.score
    )
    return result
