"""Pre-debate provider checks.

Every model named in the ``agents`` section is pinged once before a phase
runs, so a dead key surfaces before the moderator opens the workshop
rather than halfway through a round. Roles bound to a failing model are
reported; ``build_team`` moves them to the fallback provider.
"""

import asyncio
import logging

from thinktank.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _ping(name: str, provider: AIProvider) -> tuple[str, bool, str]:
    try:
        response = await asyncio.wait_for(provider.generate(_PING_PROMPT), timeout=_TIMEOUT_SEC)
    except TimeoutError:
        return name, False, f"No response within {_TIMEOUT_SEC:.0f}s"
    except Exception as exc:
        return name, False, str(exc)
    if not response.content.strip():
        return name, False, "Empty response"
    logger.debug("Provider %s answered the ping in %.2fs", name, response.latency_sec)
    return name, True, ""


async def run_health_checks(
    providers: dict[str, AIProvider],
) -> dict[str, tuple[bool, str]]:
    """Ping all providers in parallel.

    Returns:
        Dict mapping provider name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_ping(n, p) for n, p in providers.items()))
    return {name: (ok, err) for name, ok, err in results}


def displaced_roles(agents: dict[str, str], working: set[str]) -> dict[str, str]:
    """Agent roles whose configured model is not among ``working``, mapped to that model."""
    return {role: model for role, model in sorted(agents.items()) if model not in working}
