"""
Quiz Runner

The run state machine that coordinates:
1. Answer validation and storage for the current node
2. Transition resolution to the next node
3. Back-tracking through visited nodes
4. Completion on reaching an end node

Each run lives in a QuizState value owned by the caller; the runner itself
holds no per-run state, so one runner can serve many concurrent runs as long
as each state is mutated by a single caller at a time.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from .config import Config, config
from .errors import InvalidOperationError
from .quiz.graph import Quiz, QuizNode
from .quiz.schema import QuestionResponse, create_response, utcnow
from .rules.answers import is_required, validate_answer
from .rules.conditions import resolve_next_node
from .rules.structure import QuizReport, ensure_valid_quiz


logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    """Status of a quiz run."""
    RUNNING = "running"
    COMPLETED = "completed"


class StepOutcome(str, Enum):
    """Result of a single run operation."""
    ACCEPTED = "accepted"  # answer stored (check response.is_valid)
    ADVANCED = "advanced"
    BACKTRACKED = "backtracked"
    COMPLETED = "completed"
    BLOCKED = "blocked"  # no transition matched, or required answers missing
    REJECTED = "rejected"  # invalid operation, state unchanged


@dataclass
class QuizState:
    """Persistent state for a quiz run."""
    quiz_id: str
    current_node_id: str
    visited_nodes: list[str] = field(default_factory=list)
    responses: dict[str, QuestionResponse] = field(default_factory=dict)
    start_time: datetime = field(default_factory=utcnow)
    last_updated: datetime = field(default_factory=utcnow)
    completed: bool = False
    end_node_id: Optional[str] = None

    @property
    def status(self) -> RunStatus:
        return RunStatus.COMPLETED if self.completed else RunStatus.RUNNING

    @property
    def answers(self) -> dict[str, Any]:
        """Plain question id -> value mapping."""
        return {qid: r.value for qid, r in self.responses.items()}

    def to_dict(self) -> dict:
        result = {
            "quizId": self.quiz_id,
            "currentNodeId": self.current_node_id,
            "visitedNodes": list(self.visited_nodes),
            "responses": {qid: r.to_dict() for qid, r in self.responses.items()},
            "startTime": self.start_time.isoformat(),
            "lastUpdated": self.last_updated.isoformat(),
            "completed": self.completed,
        }
        if self.end_node_id is not None:
            result["endNodeId"] = self.end_node_id
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "QuizState":
        return cls(
            quiz_id=data["quizId"],
            current_node_id=data["currentNodeId"],
            visited_nodes=list(data.get("visitedNodes", [])),
            responses={
                str(qid): QuestionResponse.from_dict(r)
                for qid, r in data.get("responses", {}).items()
            },
            start_time=datetime.fromisoformat(data["startTime"]),
            last_updated=datetime.fromisoformat(data["lastUpdated"]),
            completed=data.get("completed", False),
            end_node_id=data.get("endNodeId"),
        )


@dataclass
class StepResult:
    """Outcome of submit_answer / advance / go_back."""
    outcome: StepOutcome
    state: QuizState
    message: str = ""
    errors: list[str] = field(default_factory=list)
    response: Optional[QuestionResponse] = None

    @property
    def ok(self) -> bool:
        return self.outcome not in (StepOutcome.BLOCKED, StepOutcome.REJECTED)

    def raise_for_outcome(self) -> "StepResult":
        """Raise InvalidOperationError for rejected operations."""
        if self.outcome == StepOutcome.REJECTED:
            raise InvalidOperationError(self.message)
        return self

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "message": self.message,
            "errors": list(self.errors),
            "state": self.state.to_dict(),
        }


class QuizRunner:
    """
    Drives runs of one quiz.

    The quiz is checked once on construction; a runner never exists for an
    invalid quiz.
    """

    def __init__(
        self,
        quiz: Quiz,
        cfg: Optional[Config] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize runner.

        Args:
            quiz: Quiz definition
            cfg: Config override (defaults to the global config)
            clock: Source of timestamps (defaults to UTC now)

        Raises:
            SchemaError: If the quiz fails structural validation
        """
        self.report: QuizReport = ensure_valid_quiz(quiz)
        self.quiz = quiz
        self.config = cfg or config
        self.clock = clock or utcnow
        self._nodes = {n.id: n for n in quiz.nodes}

    def start(self) -> QuizState:
        """Create a new run seeded at the start node."""
        start = self.quiz.start_node
        now = self.clock()
        logger.debug(f"Starting run of quiz {self.quiz.id} at {start.id}")
        return QuizState(
            quiz_id=self.quiz.id,
            current_node_id=start.id,
            visited_nodes=[start.id],
            start_time=now,
            last_updated=now,
        )

    def current_node(self, state: QuizState) -> QuizNode:
        return self._nodes[state.current_node_id]

    def _reject(self, state: QuizState, message: str) -> StepResult:
        logger.warning(f"Run of {state.quiz_id} rejected operation: {message}")
        return StepResult(StepOutcome.REJECTED, state, message=message)

    def _check_state(self, state: QuizState) -> Optional[str]:
        if state.quiz_id != self.quiz.id:
            return f"state belongs to quiz {state.quiz_id!r}, not {self.quiz.id!r}"
        if state.current_node_id not in self._nodes:
            return f"unknown current node {state.current_node_id!r}"
        if state.completed:
            return "run is already completed"
        return None

    def submit_answer(self, state: QuizState, question_id: str, value: Any) -> StepResult:
        """
        Validate and store an answer for a question on the current node.

        Invalid answers are still stored, with is_valid=False and their errors.
        Overwrites any earlier answer to the same question. Does not advance.
        """
        problem = self._check_state(state)
        if problem:
            return self._reject(state, problem)

        node = self.current_node(state)
        question = node.get_question(question_id)
        if question is None:
            return self._reject(state, f"question {question_id!r} is not on node {node.id!r}")

        is_valid, errors = validate_answer(question, value, self.config)
        now = self.clock()
        response = create_response(question, value, is_valid, errors, timestamp=now)
        state.responses[question_id] = response
        state.last_updated = now

        if not is_valid:
            logger.debug(f"Answer to {question_id} stored as invalid: {errors}")
        return StepResult(
            StepOutcome.ACCEPTED,
            state,
            message="answer stored" if is_valid else "answer stored with validation errors",
            errors=errors,
            response=response,
        )

    def missing_required(self, state: QuizState, node: Optional[QuizNode] = None) -> list[str]:
        """Ids of required questions on a node without a valid answer."""
        node = node or self.current_node(state)
        missing = []
        for question in node.questions:
            if not is_required(question):
                continue
            response = state.responses.get(question.id)
            if response is None or not response.is_valid:
                missing.append(question.id)
        return missing

    def preview_next(self, state: QuizState) -> Optional[str]:
        """Node id advance() would move to, without changing anything."""
        return resolve_next_node(self.current_node(state), state.responses)

    def advance(self, state: QuizState) -> StepResult:
        """
        Move to the next node chosen by the current node's transitions.

        Returns:
            ADVANCED or COMPLETED on a move; BLOCKED when required answers are
            missing or no transition matches; REJECTED on a completed run
        """
        problem = self._check_state(state)
        if problem:
            return self._reject(state, problem)

        node = self.current_node(state)
        if self.config.engine.block_on_required:
            missing = self.missing_required(state, node)
            if missing:
                logger.info(f"Run of {state.quiz_id} blocked on {node.id}: missing {missing}")
                return StepResult(
                    StepOutcome.BLOCKED,
                    state,
                    message=f"required questions need a valid answer: {', '.join(missing)}",
                    errors=[f"'{qid}' is required" for qid in missing],
                )

        now = self.clock()
        if node.is_end:
            # Only reachable when the start node is also an end node
            state.completed = True
            state.end_node_id = node.id
            state.last_updated = now
            return StepResult(StepOutcome.COMPLETED, state, message=f"completed at {node.id}")

        next_id = resolve_next_node(node, state.responses)
        if next_id is None:
            logger.info(f"Run of {state.quiz_id} blocked on {node.id}: no transition matched")
            return StepResult(
                StepOutcome.BLOCKED,
                state,
                message=f"no transition matched on node {node.id!r}",
            )

        target = self._nodes[next_id]
        state.visited_nodes.append(target.id)
        state.current_node_id = target.id
        state.last_updated = now

        if target.is_end:
            state.completed = True
            state.end_node_id = target.id
            logger.debug(f"Run of {state.quiz_id} completed at {target.id}")
            return StepResult(StepOutcome.COMPLETED, state, message=f"completed at {target.id}")

        logger.debug(f"Run of {state.quiz_id} advanced {node.id} -> {target.id}")
        return StepResult(StepOutcome.ADVANCED, state, message=f"moved to {target.id}")

    def go_back(self, state: QuizState) -> StepResult:
        """
        Return to the previously visited node.

        Answers given on the node being left are kept.
        """
        problem = self._check_state(state)
        if problem:
            return self._reject(state, problem)
        if not self.quiz.settings.allow_back_tracking:
            return self._reject(state, "back-tracking is disabled for this quiz")
        if len(state.visited_nodes) <= 1:
            return self._reject(state, "already at the start of the run")

        left = state.visited_nodes.pop()
        state.current_node_id = state.visited_nodes[-1]
        state.last_updated = self.clock()
        logger.debug(f"Run of {state.quiz_id} went back {left} -> {state.current_node_id}")
        return StepResult(StepOutcome.BACKTRACKED, state, message=f"moved back to {state.current_node_id}")


def run_answers(
    quiz: Quiz,
    answers: Mapping[str, Any],
    cfg: Optional[Config] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> StepResult:
    """
    Replay a set of answers through a fresh run.

    On each node, answers for that node's questions are submitted, then the
    run advances. Stops on completion, on a blocked or rejected step, or
    after the configured step limit (cyclic graphs).

    Args:
        quiz: Quiz definition
        answers: Question id -> value
        cfg: Config override
        clock: Timestamp source

    Returns:
        The last StepResult, whose state is the final run state
    """
    cfg = cfg or config
    runner = QuizRunner(quiz, cfg=cfg, clock=clock)
    state = runner.start()
    result = StepResult(StepOutcome.ACCEPTED, state, message="run started")

    for _ in range(cfg.engine.max_replay_steps):
        if state.completed:
            return result
        for question in runner.current_node(state).questions:
            if question.id in answers:
                runner.submit_answer(state, question.id, answers[question.id])
        result = runner.advance(state)
        if not result.ok:
            return result

    if state.completed:
        return result
    return StepResult(
        StepOutcome.BLOCKED,
        state,
        message=f"stopped after {cfg.engine.max_replay_steps} steps without completing",
    )
