"""Tests for thinktank/phases.py."""

import pytest

from thinktank.errors import InvalidPhaseTransitionError, ValidationError
from thinktank.models import WorkflowSession
from thinktank.phases import PHASE_TRANSITIONS, Phase, complete_phase


def _session(**kwargs) -> WorkflowSession:
    return WorkflowSession(id="s1", title="Test", **kwargs)


def test_transitions_are_linear():
    assert [p.next_phase() for p in Phase] == [
        Phase.PROBLEM,
        Phase.SOLUTION_GENERATION,
        Phase.DEBATE,
        Phase.EVIDENCE,
        Phase.SUMMARY,
        None,
    ]
    assert PHASE_TRANSITIONS[Phase.SUMMARY] is None
    assert Phase.SUMMARY.is_terminal()
    assert not Phase.DEBATE.is_terminal()


def test_complete_current_phase_advances():
    session = complete_phase(_session(), 1)
    assert session.current_phase == 2
    assert session.completed_phases == {1}
    assert session.status == "in_progress"


def test_complete_phase_does_not_mutate_input():
    original = _session()
    complete_phase(original, 1)
    assert original.current_phase == 1
    assert original.completed_phases == set()


def test_walk_all_phases_to_completion():
    session = _session()
    for phase in range(1, 7):
        session = complete_phase(session, phase)
    assert session.status == "completed"
    assert session.current_phase == 6
    assert session.completed_phases == {1, 2, 3, 4, 5, 6}


@pytest.mark.parametrize("phase", [0, 7, -1])
def test_out_of_range_phase(phase):
    with pytest.raises(InvalidPhaseTransitionError):
        complete_phase(_session(), phase)


def test_skipping_a_phase_is_rejected():
    with pytest.raises(InvalidPhaseTransitionError) as exc_info:
        complete_phase(_session(current_phase=2), 3)
    assert exc_info.value.current_phase == 2
    assert exc_info.value.requested_phase == 3


def test_repeating_a_completed_phase_is_rejected():
    session = complete_phase(_session(), 1)
    with pytest.raises(InvalidPhaseTransitionError):
        complete_phase(session, 1)


def test_completed_session_is_frozen():
    session = _session(current_phase=6, completed_phases={1, 2, 3, 4, 5, 6}, status="completed")
    with pytest.raises(InvalidPhaseTransitionError):
        complete_phase(session, 6)


def test_transition_error_is_a_validation_error():
    assert issubclass(InvalidPhaseTransitionError, ValidationError)


def test_descriptions_exist_for_every_phase():
    assert Phase.DEBATE.description.startswith("Debate & Rebuttal")
    assert all(p.description for p in Phase)
