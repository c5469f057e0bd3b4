from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
import logging
from time import perf_counter

from app.core.exceptions import ConflictError
from app.services.scheduling.conflicts import (
    Assignment,
    conflicts_with_classroom,
    conflicts_with_instructor,
    find_conflicts,
)
from app.services.scheduling.slots import (
    Candidate,
    ClassroomResource,
    SectionRequest,
    Slot,
    candidates_for,
)

logger = logging.getLogger(__name__)

DEFAULT_STEP_BUDGET = 50_000


@dataclass
class SolverResult:
    assignments: list[Assignment] = field(default_factory=list)
    unplaced_section_ids: list[str] = field(default_factory=list)
    exhausted: bool = False
    steps: int = 0
    topup_steps: int = 0
    runtime_ms: int = 0

    @property
    def is_complete(self) -> bool:
        return not self.unplaced_section_ids


@dataclass
class _Frame:
    section: SectionRequest
    candidates: list[Candidate]
    next_index: int = 0
    assignment: Assignment | None = None


class BacktrackingSolver:
    """Depth-first search over (classroom, slot) candidates, most constrained section first.

    The search keeps its own stack of frames instead of recursing, so semesters
    with many sections never hit the interpreter's recursion limit. Every
    candidate test counts as one step; once ``step_budget`` steps are spent the
    solver stops and returns the deepest partial timetable it reached, topped
    up greedily, together with the sections it could not place. The greedy
    pass is tallied in ``topup_steps`` so ``steps`` never exceeds the budget.
    """

    def __init__(
        self,
        *,
        sections: Sequence[SectionRequest],
        classrooms: Sequence[ClassroomResource],
        catalog: Sequence[Slot],
        step_budget: int = DEFAULT_STEP_BUDGET,
    ) -> None:
        self.sections = list(sections)
        self.classrooms = list(classrooms)
        self.catalog = list(catalog)
        self.step_budget = max(1, step_budget)

        self.candidates = {
            section.section_id: candidates_for(section, self.classrooms, self.catalog)
            for section in self.sections
        }
        self.steps = 0
        self.topup_steps = 0
        self._budget_hit = False
        self._best: list[Assignment] = []
        self._by_classroom: dict[tuple[str, str], list[Assignment]] = defaultdict(list)
        self._by_instructor: dict[tuple[str, str], list[Assignment]] = defaultdict(list)

    def search_order(self) -> list[SectionRequest]:
        placeable = [item for item in self.sections if self.candidates[item.section_id]]
        return sorted(
            placeable,
            key=lambda item: (
                len(self.candidates[item.section_id]),  # Fewest options first
                -item.capacity,                          # Largest sections next
                item.section_id,                         # Deterministic tie-break
            ),
        )

    def solve(self) -> SolverResult:
        started = perf_counter()
        self._reset()

        unplaceable = sorted(item.section_id for item in self.sections if not self.candidates[item.section_id])
        order = self.search_order()
        if unplaceable:
            logger.warning(
                "SCHEDULE SOLVER NO CANDIDATES | sections=%s",
                ",".join(unplaceable),
            )

        placed = self._backtrack(order)
        if placed is None:
            # Either the search space is exhausted or the budget ran out.
            placed = self._complete_greedily(order)

        placed_ids = {item.section_id for item in placed}
        unplaced = unplaceable + [item.section_id for item in order if item.section_id not in placed_ids]

        clashes = find_conflicts(placed)
        if clashes:
            raise ConflictError(
                "Solver produced an assignment with overlapping bookings",
                details={"conflicts": [asdict(clash) for clash in clashes]},
            )

        result = SolverResult(
            assignments=sorted(placed, key=lambda item: item.section_id),
            unplaced_section_ids=unplaced,
            exhausted=self._budget_hit,
            steps=self.steps,
            topup_steps=self.topup_steps,
            runtime_ms=int((perf_counter() - started) * 1000),
        )
        logger.info(
            "SCHEDULE SOLVER COMPLETE | sections=%s | placed=%s | unplaced=%s | exhausted=%s | steps=%s | topup_steps=%s | runtime_ms=%s",
            len(self.sections),
            len(result.assignments),
            len(result.unplaced_section_ids),
            result.exhausted,
            result.steps,
            result.topup_steps,
            result.runtime_ms,
        )
        return result

    def _reset(self) -> None:
        self.steps = 0
        self.topup_steps = 0
        self._budget_hit = False
        self._best = []
        self._by_classroom.clear()
        self._by_instructor.clear()

    def _backtrack(self, order: list[SectionRequest]) -> list[Assignment] | None:
        if not order:
            return []

        stack = [_Frame(section=order[0], candidates=self.candidates[order[0].section_id])]
        while stack:
            frame = stack[-1]
            if frame.assignment is not None:
                # Returned here from a dead end further down; free this placement and move on.
                self._release(frame.assignment)
                frame.assignment = None

            if not self._advance(frame):
                if self._budget_hit:
                    return None
                stack.pop()
                continue

            depth = len(stack)
            if depth > len(self._best):
                self._best = [item.assignment for item in stack]
            if depth == len(order):
                return [item.assignment for item in stack]
            next_section = order[depth]
            stack.append(_Frame(section=next_section, candidates=self.candidates[next_section.section_id]))

        logger.info("SCHEDULE SOLVER SEARCH SPACE EXHAUSTED | sections=%s | best_depth=%s", len(order), len(self._best))
        return None

    def _advance(self, frame: _Frame) -> bool:
        while frame.next_index < len(frame.candidates):
            if self.steps >= self.step_budget:
                self._budget_hit = True
                return False
            self.steps += 1
            candidate = frame.candidates[frame.next_index]
            frame.next_index += 1
            assignment = self._assignment_for(frame.section, candidate)
            if self._is_free(assignment):
                self._commit(assignment)
                frame.assignment = assignment
                return True
        return False

    def _complete_greedily(self, order: list[SectionRequest]) -> list[Assignment]:
        self._by_classroom.clear()
        self._by_instructor.clear()
        placed = list(self._best)
        for assignment in placed:
            self._commit(assignment)

        placed_ids = {item.section_id for item in placed}
        for section in order:
            if section.section_id in placed_ids:
                continue
            for candidate in self.candidates[section.section_id]:
                self.topup_steps += 1
                assignment = self._assignment_for(section, candidate)
                if self._is_free(assignment):
                    self._commit(assignment)
                    placed.append(assignment)
                    break
        return placed

    @staticmethod
    def _assignment_for(section: SectionRequest, candidate: Candidate) -> Assignment:
        return Assignment(
            section_id=section.section_id,
            classroom_id=candidate.classroom.classroom_id,
            instructor_id=section.instructor_id,
            day=candidate.slot.day,
            start=candidate.slot.start,
            end=candidate.slot.end,
        )

    def _is_free(self, assignment: Assignment) -> bool:
        if conflicts_with_classroom(assignment, self._by_classroom[(assignment.classroom_id, assignment.day)]):
            return False
        if assignment.instructor_id is not None and conflicts_with_instructor(
            assignment, self._by_instructor[(assignment.instructor_id, assignment.day)]
        ):
            return False
        return True

    def _commit(self, assignment: Assignment) -> None:
        self._by_classroom[(assignment.classroom_id, assignment.day)].append(assignment)
        if assignment.instructor_id is not None:
            self._by_instructor[(assignment.instructor_id, assignment.day)].append(assignment)

    def _release(self, assignment: Assignment) -> None:
        self._by_classroom[(assignment.classroom_id, assignment.day)].remove(assignment)
        if assignment.instructor_id is not None:
            self._by_instructor[(assignment.instructor_id, assignment.day)].remove(assignment)
