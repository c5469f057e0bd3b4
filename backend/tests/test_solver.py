from app.models.classroom import RoomType
from app.services.scheduling.conflicts import find_conflicts
from app.services.scheduling.slots import ClassroomResource, SectionRequest, build_slot_catalog
from app.services.scheduling.solver import BacktrackingSolver


def _room(classroom_id, capacity=40, room_type=RoomType.lecture):
    return ClassroomResource(classroom_id=classroom_id, code=classroom_id.upper(), capacity=capacity, room_type=room_type)


def _section(section_id, instructor_id=None, capacity=20, room_type=None):
    return SectionRequest(section_id=section_id, instructor_id=instructor_id, capacity=capacity, room_type=room_type)


def test_empty_input_yields_empty_result():
    result = BacktrackingSolver(sections=[], classrooms=[], catalog=[]).solve()
    assert result.assignments == []
    assert result.unplaced_section_ids == []
    assert result.is_complete
    assert result.exhausted is False


def test_shared_instructor_gets_distinct_blocks():
    catalog = build_slot_catalog(["Monday"], ["09:00", "11:00"], 100)
    sections = [_section("s1", "prof"), _section("s2", "prof")]
    result = BacktrackingSolver(sections=sections, classrooms=[_room("r1"), _room("r2")], catalog=catalog).solve()

    assert result.is_complete
    starts = {item.start_time for item in result.assignments}
    assert starts == {"09:00", "11:00"}
    assert find_conflicts(result.assignments) == []


def test_shared_instructor_with_single_block_leaves_one_unplaced():
    catalog = build_slot_catalog(["Monday"], ["09:00"], 100)
    sections = [_section("s1", "prof"), _section("s2", "prof")]
    result = BacktrackingSolver(sections=sections, classrooms=[_room("r1"), _room("r2")], catalog=catalog).solve()

    assert len(result.assignments) == 1
    assert len(result.unplaced_section_ids) == 1
    assert result.exhausted is False


def test_section_larger_than_every_classroom_is_unplaced():
    catalog = build_slot_catalog(["Monday", "Tuesday"], ["09:00"], 100)
    sections = [_section("big", capacity=25), _section("small", capacity=8)]
    result = BacktrackingSolver(sections=sections, classrooms=[_room("r1", capacity=10)], catalog=catalog).solve()

    assert result.unplaced_section_ids == ["big"]
    assert [item.section_id for item in result.assignments] == ["small"]


def test_room_type_requirement_is_honoured():
    catalog = build_slot_catalog(["Monday"], ["09:00", "11:00"], 100)
    sections = [_section("chem-lab", room_type=RoomType.lab), _section("history")]
    classrooms = [_room("lecture-hall"), _room("wet-lab", room_type=RoomType.lab)]
    result = BacktrackingSolver(sections=sections, classrooms=classrooms, catalog=catalog).solve()

    placed = {item.section_id: item.classroom_id for item in result.assignments}
    assert placed["chem-lab"] == "wet-lab"
    assert "history" in placed


def test_most_constrained_section_is_searched_first():
    catalog = build_slot_catalog(["Monday"], ["09:00", "11:00"], 100)
    sections = [_section("flexible", capacity=10), _section("tight", capacity=35)]
    classrooms = [_room("small", capacity=20), _room("large", capacity=40)]
    solver = BacktrackingSolver(sections=sections, classrooms=classrooms, catalog=catalog)

    assert [item.section_id for item in solver.search_order()] == ["tight", "flexible"]


def test_tightly_constrained_section_keeps_its_only_classroom():
    catalog = build_slot_catalog(["Monday"], ["09:00"], 100)
    sections = [_section("a", capacity=10), _section("b", capacity=30)]
    classrooms = [_room("lab-room", capacity=30), _room("tiny", capacity=10)]
    result = BacktrackingSolver(sections=sections, classrooms=classrooms, catalog=catalog).solve()

    assert result.is_complete
    placed = {item.section_id: item.classroom_id for item in result.assignments}
    assert placed == {"a": "tiny", "b": "lab-room"}


def test_unsatisfiable_term_exhausts_search_space():
    catalog = build_slot_catalog(["Monday"], ["09:00", "11:00"], 100)
    sections = [_section("s1"), _section("s2"), _section("s3")]
    result = BacktrackingSolver(sections=sections, classrooms=[_room("r1")], catalog=catalog).solve()

    assert len(result.assignments) == 2
    assert len(result.unplaced_section_ids) == 1
    assert result.exhausted is False
    assert find_conflicts(result.assignments) == []


def test_step_budget_returns_partial_solution_flagged_exhausted():
    catalog = build_slot_catalog(["Monday", "Tuesday"], ["09:00", "11:00"], 100)
    sections = [_section(f"s{index}", instructor_id="prof") for index in range(3)]
    result = BacktrackingSolver(
        sections=sections,
        classrooms=[_room("r1")],
        catalog=catalog,
        step_budget=1,
    ).solve()

    assert result.exhausted is True
    assert find_conflicts(result.assignments) == []
    assert len(result.assignments) + len(result.unplaced_section_ids) == 3
    # Steps stay within the budget; the greedy fill-in is counted on its own.
    assert result.steps == 1
    assert result.topup_steps >= 2
    assert result.is_complete


def test_solver_is_deterministic():
    catalog = build_slot_catalog(["Monday", "Wednesday"], ["09:00", "11:00", "13:00"], 100)
    sections = [_section(f"s{index}", instructor_id=f"f{index % 2}", capacity=15 + index) for index in range(6)]
    classrooms = [_room("r1", capacity=20), _room("r2", capacity=30)]

    first = BacktrackingSolver(sections=sections, classrooms=classrooms, catalog=catalog).solve()
    second = BacktrackingSolver(sections=list(reversed(sections)), classrooms=classrooms, catalog=catalog).solve()

    assert first.assignments == second.assignments
    assert first.unplaced_section_ids == second.unplaced_section_ids
    assert first.is_complete


def test_backtracks_when_a_later_section_has_no_free_block():
    catalog = build_slot_catalog(["Monday"], ["09:00", "11:00"], 100)
    sections = [
        _section("w", "prof-b", capacity=30),
        _section("y", "prof-a", capacity=30),
        _section("v", "prof-c", capacity=10),
        _section("x", "prof-a", capacity=10),
    ]
    classrooms = [_room("r1", capacity=30), _room("r2", capacity=10)]
    solver = BacktrackingSolver(sections=sections, classrooms=classrooms, catalog=catalog)
    result = solver.solve()

    assert result.is_complete
    placed = {item.section_id: (item.classroom_id, item.start_time) for item in result.assignments}
    assert placed["w"] == ("r1", "09:00")
    assert placed["y"] == ("r1", "11:00")
    # "v" first took r2 at 09:00, which left "x" with nothing; the search moved it.
    assert placed["v"] == ("r2", "11:00")
    assert placed["x"] == ("r2", "09:00")
    assert find_conflicts(result.assignments) == []
