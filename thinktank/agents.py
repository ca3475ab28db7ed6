"""Role agents: persona + prompt templates on top of an AIProvider."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from config.config_loader import AGENT_ROLES, AppConfig, GenerationConfig, PromptsConfig
from thinktank.errors import GenerationFailure
from thinktank.models import AgentContext, SolutionBrief
from thinktank.phases import PHASE_INTROS, Phase
from thinktank.providers.base import AIProvider, ProviderError
from thinktank.ratelimit import NoopRateLimiter, RateLimiter

logger = logging.getLogger(__name__)


class Agent:
    """One debate role bound to a provider, with retry, deadline and fallback."""

    def __init__(
        self,
        role: str,
        persona: str,
        provider: AIProvider,
        generation: GenerationConfig,
        fallback: AIProvider | None = None,
        rate_limiter: RateLimiter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.role = role
        self.persona = persona
        self.provider = provider
        self.fallback = fallback if fallback is not provider else None
        self._generation = generation
        self._rate_limiter = rate_limiter or NoopRateLimiter()
        self._sleep = sleep

    def build_system_prompt(self, context: AgentContext) -> str:
        prompt = self.persona
        if context.problem_statement:
            prompt += f"\n\nPROBLEM STATEMENT: {context.problem_statement}"
        if context.solutions:
            listing = "\n".join(f"- {s.describe()}" for s in context.solutions)
            prompt += f"\n\nCURRENT SOLUTIONS:\n{listing}"
        if 1 <= context.phase <= len(Phase):
            prompt += f"\n\nCURRENT PHASE: {Phase(context.phase).description}"
        return prompt

    async def _call(self, provider: AIProvider, prompt: str, system_prompt: str) -> str:
        await self._rate_limiter.acquire(self.role)
        timeout = self._generation.call_timeout_sec
        try:
            response = await asyncio.wait_for(provider.generate(prompt, system_prompt), timeout=timeout)
        except ProviderError:
            raise
        except TimeoutError as exc:
            raise ProviderError(provider.name(), f"No response within {timeout}s") from exc
        except Exception as exc:
            raise ProviderError(provider.name(), f"Unexpected error: {exc}") from exc
        if not response.content or not response.content.strip():
            raise ProviderError(provider.name(), "Empty response content")
        logger.debug(
            "%s agent: %s/%s answered in %.2fs", self.role, response.provider, response.model, response.latency_sec
        )
        return response.content

    async def respond(self, prompt: str, context: AgentContext) -> str:
        """Generate text for this role.

        Tries the primary provider up to ``max_retries + 1`` times with linear
        backoff, then the fallback provider once.

        Raises:
            GenerationFailure: every attempt failed.
        """
        system_prompt = self.build_system_prompt(context)
        max_attempts = self._generation.max_retries + 1
        attempts = 0
        last_error = "no attempt made"

        for attempt in range(1, max_attempts + 1):
            attempts += 1
            try:
                return await self._call(self.provider, prompt, system_prompt)
            except ProviderError as exc:
                last_error = str(exc)
                logger.warning("%s agent: attempt %d/%d failed: %s", self.role, attempt, max_attempts, exc)
            if attempt < max_attempts:
                delay = self._generation.backoff_sec * attempt
                if delay > 0:
                    logger.info("%s agent: retrying in %.1fs", self.role, delay)
                    await self._sleep(delay)

        if self.fallback is not None:
            attempts += 1
            logger.warning("%s agent: falling back to %s", self.role, self.fallback.name())
            try:
                return await self._call(self.fallback, prompt, system_prompt)
            except ProviderError as exc:
                last_error = str(exc)
                logger.warning("%s agent: fallback %s also failed: %s", self.role, self.fallback.name(), exc)

        raise GenerationFailure(self.role, attempts, last_error)


class AgentTeam:
    """The five workshop agents and the prompt templates they speak through."""

    def __init__(self, agents: dict[str, Agent], prompts: PromptsConfig) -> None:
        missing = [r for r in AGENT_ROLES if r not in agents]
        if missing:
            raise ValueError(f"Agent team is missing roles: {', '.join(missing)}")
        self.agents = agents
        self.prompts = prompts

    @property
    def proponent(self) -> Agent:
        return self.agents["proponent"]

    @property
    def opponent(self) -> Agent:
        return self.agents["opponent"]

    @property
    def moderator(self) -> Agent:
        return self.agents["moderator"]

    @property
    def analyst(self) -> Agent:
        return self.agents["analyst"]

    @property
    def solution(self) -> Agent:
        return self.agents["solution"]

    def providers(self) -> dict[str, AIProvider]:
        """Every distinct provider the team may call, keyed by name."""
        found: dict[str, AIProvider] = {}
        for agent in self.agents.values():
            for provider in (agent.provider, agent.fallback):
                if provider is not None:
                    found.setdefault(provider.name(), provider)
        return found

    # --- debate turns ---

    async def advocate(self, solution: SolutionBrief, context: AgentContext) -> str:
        prompt = self.prompts.render("advocate", solution=solution.describe())
        return await self.proponent.respond(prompt, context)

    async def rebut_opponent(self, argument: str, solution: SolutionBrief, context: AgentContext) -> str:
        prompt = self.prompts.render("rebut_opponent", argument=argument, solution=solution.describe())
        return await self.proponent.respond(prompt, context)

    async def challenge(self, solution: SolutionBrief, context: AgentContext) -> str:
        prompt = self.prompts.render("challenge", solution=solution.describe())
        return await self.opponent.respond(prompt, context)

    async def rebut_proponent(self, argument: str, solution: SolutionBrief, context: AgentContext) -> str:
        prompt = self.prompts.render("rebut_proponent", argument=argument, solution=solution.describe())
        return await self.opponent.respond(prompt, context)

    async def fact_check(self, claim: str, context: AgentContext) -> str:
        return await self.analyst.respond(self.prompts.render("fact_check", claim=claim), context)

    async def summarize_round(
        self, round_number: int, proponent: str, opponent: str, context: AgentContext
    ) -> str:
        prompt = self.prompts.render("round_summary", round=round_number, proponent=proponent, opponent=opponent)
        return await self.moderator.respond(prompt, context)

    # --- workshop phases ---

    async def facilitate(self, phase: Phase, context: AgentContext) -> str:
        prompt = self.prompts.render("facilitate", phase_intro=PHASE_INTROS[phase])
        return await self.moderator.respond(prompt, context)

    async def refine_problem(self, problem: str, context: AgentContext) -> str:
        return await self.moderator.respond(self.prompts.render("refine_problem", problem=problem), context)

    async def generate_solutions(self, problem: str, count: int, context: AgentContext) -> str:
        prompt = self.prompts.render("generate_solutions", problem=problem, count=count)
        return await self.solution.respond(prompt, context)

    async def summarize_debate(self, history: list[str], context: AgentContext) -> str:
        prompt = self.prompts.render("debate_summary", history="\n\n".join(history) or "(no arguments yet)")
        return await self.moderator.respond(prompt, context)


def build_team(
    config: AppConfig,
    providers: dict[str, AIProvider],
    rate_limiter: RateLimiter | None = None,
) -> AgentTeam:
    """Bind every role to its configured provider.

    A role whose provider is unavailable falls back to the configured
    fallback provider, then to any available provider.

    Raises:
        ValueError: no providers at all.
    """
    if not providers:
        raise ValueError("No providers available")

    fallback_name = config.generation.fallback_provider
    fallback = providers.get(fallback_name) if fallback_name else None
    any_provider = next(iter(providers.values()))

    agents: dict[str, Agent] = {}
    for role in AGENT_ROLES:
        wanted = config.agents.get(role)
        provider = providers.get(wanted) if wanted else None
        if provider is None:
            provider = fallback or any_provider
            logger.warning("Agent '%s' has no provider '%s', using %s", role, wanted, provider.name())
        agents[role] = Agent(
            role=role,
            persona=config.prompts.personas.get(role, ""),
            provider=provider,
            generation=config.generation,
            fallback=fallback,
            rate_limiter=rate_limiter,
        )
    return AgentTeam(agents, config.prompts)
