"""Error taxonomy for debate, voting, evidence and workflow operations."""


class ThinkTankError(Exception):
    """Base for every error the engine reports to callers."""


class ValidationError(ThinkTankError):
    """Malformed vote, evidence, debate or phase request."""


class DuplicateVoteError(ThinkTankError):
    """A user tried to vote twice on the same argument."""

    def __init__(self, user_id: str, argument_id: str) -> None:
        self.user_id = user_id
        self.argument_id = argument_id
        super().__init__(f"User {user_id} already voted on argument {argument_id}")


class NotFoundError(ThinkTankError):
    """Unknown session, solution, argument or evidence."""

    def __init__(self, kind: str, ident: str) -> None:
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind} not found: {ident}")


class GenerationFailure(ThinkTankError):
    """Text generation exhausted its retries and fallback."""

    def __init__(self, role: str, attempts: int, reason: str) -> None:
        self.role = role
        self.attempts = attempts
        self.reason = reason
        super().__init__(f"{role} generation failed after {attempts} attempts: {reason}")


class StoreError(ThinkTankError):
    """The persistent store could not complete an operation at all."""


class InvalidPhaseTransitionError(ValidationError):
    """Out-of-order, skipped or out-of-range phase transition."""

    def __init__(self, current_phase: int, requested_phase: int, reason: str) -> None:
        self.current_phase = current_phase
        self.requested_phase = requested_phase
        super().__init__(
            f"Cannot complete phase {requested_phase} (current phase {current_phase}): {reason}"
        )
