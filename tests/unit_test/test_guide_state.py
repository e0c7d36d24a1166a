import pytest

from screenpilot.agent.guide.schemas import MesoGoal, MicroInstruction
from screenpilot.agent.guide.state import SessionContext


def _goals(n):
    return [MesoGoal(id=i + 1, title=f"goal {i + 1}") for i in range(n)]


def _check_invariants(ctx):
    assert 0 <= ctx.current_meso_index <= len(ctx.current_meso_goals)
    assert ctx.completed_meso_count == sum(1 for g in ctx.current_meso_goals if g.is_completed)


def test_history_keeps_last_ten_in_order():
    ctx = SessionContext(user_goal="g")
    for i in range(1, 13):
        ctx.add_to_history(f"summary {i}")
    assert len(ctx.history_summary) == 10
    assert ctx.history_summary == [f"summary {i}" for i in range(3, 13)]


def test_blackboard_last_write_wins():
    ctx = SessionContext(user_goal="g")
    ctx.update_blackboard({"k": "v1", "other": "x"})
    ctx.update_blackboard({"k": "v2"})
    assert ctx.blackboard == {"k": "v2", "other": "x"}


def test_advance_marks_goal_and_moves_cursor_in_lock_step():
    ctx = SessionContext(user_goal="g")
    ctx.install_plan(_goals(2))
    ctx.current_instruction = MicroInstruction(instruction="Click", success_criteria="Clicked")
    _check_invariants(ctx)

    ctx.advance_to_next_meso()
    _check_invariants(ctx)
    assert ctx.completed_meso_count == ctx.current_meso_index == 1
    assert ctx.current_meso_goals[0].is_completed
    assert ctx.current_instruction is None
    assert ctx.current_meso_goal.title == "goal 2"

    ctx.advance_to_next_meso()
    _check_invariants(ctx)
    assert ctx.completed_meso_count == ctx.current_meso_index == 2
    assert ctx.current_meso_goal is None
    assert not ctx.has_more_meso_goals


def test_advance_past_the_end_is_rejected():
    ctx = SessionContext(user_goal="g")
    with pytest.raises(IndexError):
        ctx.advance_to_next_meso()
    ctx.install_plan(_goals(1))
    ctx.advance_to_next_meso()
    with pytest.raises(IndexError):
        ctx.advance_to_next_meso()
    _check_invariants(ctx)
    assert ctx.current_meso_index == 1


def test_current_meso_goal_bounds():
    ctx = SessionContext(user_goal="g")
    assert ctx.current_meso_goal is None
    assert not ctx.has_more_meso_goals
    ctx.install_plan(_goals(1))
    assert ctx.current_meso_goal.id == 1
    assert ctx.has_more_meso_goals


def test_formatted_history_and_blackboard():
    ctx = SessionContext(user_goal="g")
    assert ctx.formatted_history == "No previous actions."
    assert ctx.formatted_blackboard == "Empty"
    ctx.add_to_history("Opened browser")
    ctx.add_to_history("Logged in")
    ctx.update_blackboard({"repo": "demo"})
    assert ctx.formatted_history == "1. Opened browser\n2. Logged in"
    assert ctx.formatted_blackboard == "repo: demo"


def test_fresh_contexts_do_not_share_state():
    a = SessionContext(user_goal="a")
    a.update_blackboard({"k": "v"})
    a.add_to_history("done")
    b = SessionContext()
    assert b.blackboard == {}
    assert b.history_summary == []
    assert a.session_id != b.session_id
    assert not b.is_active
