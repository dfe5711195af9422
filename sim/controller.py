"""
Simulation controller.

Owns the current descriptor, the solver selection and the latest
solution, decides when a recompute is needed and publishes results to
subscribers.

State machine:

    DIRTY   --request_recompute-->  SOLVING
    IDLE    --request_recompute-->  SOLVING
    FAILED  --request_recompute-->  SOLVING
    SOLVING --success-->            IDLE    (notify 'redraw')
    SOLVING --failure-->            FAILED  (notify 'error', last good solution kept)
    SOLVING --cancelled-->          DIRTY
    any     --edit_*/select_solver-> DIRTY  (SOLVING stays SOLVING; the edit
                                             is picked up by the next cycle)

At most one solve is in flight: a request issued while SOLVING is
dropped. Each solve works on a snapshot of the descriptor taken when
SOLVING begins, so edits made meanwhile never reach a running
integration.
"""

import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from core.descriptor import SystemDescriptor, set_value
from core.exceptions import DynamicsError, EvaluationError, IntegrationError, SolveCancelled
from core.variable_map import VariableMap
from models.validation import validate
from solvers.registry import CatalogEntry, solver_catalog
from .dispatch import solve
from .evaluate import evaluate
from .result import Solution

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Controller phases."""
    IDLE = 'idle'
    DIRTY = 'dirty'
    SOLVING = 'solving'
    FAILED = 'failed'


EVENTS = ('redraw', 'error')


class SimulationController:
    """
    Stateful front end to the solve dispatcher.

    Rendering and editing collaborators read the variable maps, the
    solver catalog and the latest solutions, subscribe to 'redraw' and
    'error' events, and route every change through the edit_* methods,
    select_solver() and request_recompute().

    Attributes:
        auto_recompute: Recompute after every edit and after a solve that
            finished with edits pending
        background: Run each solve on a worker thread
        solve_count: Number of dispatcher invocations so far
    """

    def __init__(self, descriptor: SystemDescriptor,
                 auto_recompute: bool = False,
                 background: bool = False,
                 rng: Optional[np.random.Generator] = None):
        """
        Initialize controller.

        Args:
            descriptor: Raw or validated system descriptor
            auto_recompute: Recompute automatically after edits
            background: Run solves on a worker thread
            rng: Random generator for SDE noise (default: fresh per solve)

        Raises:
            ValidationError: The descriptor is malformed
            NoSolverError: A declared family has no candidate solver
        """
        self._descriptor = validate(descriptor)
        self._catalog = solver_catalog(self._descriptor)
        self._layout = VariableMap.build(self._descriptor.variables)
        self._solution_map: Optional[VariableMap] = None
        self._aux_map = VariableMap.build(self._descriptor.auxdef)

        self._solver_index = 0
        self._phase = Phase.DIRTY
        self._revision = 1
        self._solved_revision = 0
        self._solution: Optional[Solution] = None
        self._aux_solution: Optional[Solution] = None
        self._error: Optional[DynamicsError] = None

        self._listeners: Dict[str, List[Callable]] = {event: [] for event in EVENTS}
        self._lock = threading.RLock()
        self._cancel = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self._rng = rng

        self.auto_recompute = auto_recompute
        self.background = background
        self.solve_count = 0

        if auto_recompute:
            self.request_recompute()

    # ------------------------------------------------------------------ state --

    @property
    def descriptor(self) -> SystemDescriptor:
        """Read-only snapshot of the current descriptor."""
        with self._lock:
            return self._descriptor.copy()

    @property
    def catalog(self) -> List[CatalogEntry]:
        return list(self._catalog)

    @property
    def variable_map(self) -> VariableMap:
        """
        Layout of the published solution.

        Before the first successful solve this is the layout of the
        current descriptor. A shape-changing edit only shows up here once
        a solution with the new layout is published.
        """
        with self._lock:
            return self._solution_map if self._solution_map is not None else self._layout

    @property
    def current_variable_map(self) -> VariableMap:
        """Layout of the current descriptor, including unsolved edits."""
        return self._layout

    @property
    def aux_map(self) -> VariableMap:
        return self._aux_map

    @property
    def solver_index(self) -> int:
        return self._solver_index

    @property
    def selected_solver(self) -> CatalogEntry:
        return self._catalog[self._solver_index]

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def dirty(self) -> bool:
        """True when the published solution no longer reflects the inputs."""
        return self._revision != self._solved_revision

    @property
    def solution(self) -> Optional[Solution]:
        """Most recent good solution (kept after a failed recompute)."""
        return self._solution

    @property
    def aux_solution(self) -> Optional[Solution]:
        return self._aux_solution

    @property
    def error(self) -> Optional[DynamicsError]:
        """Error of the last failed solve, cleared by the next success."""
        return self._error

    # ---------------------------------------------------------- subscribers --

    def subscribe(self, event: str, callback: Callable) -> Callable[[], None]:
        """
        Register a listener.

        'redraw' listeners are called as callback(controller) after a new
        solution is stored; 'error' listeners as callback(controller, error).

        Returns:
            Zero-argument function that removes the listener
        """
        if event not in self._listeners:
            raise ValueError(f"Unknown event '{event}', expected one of {EVENTS}")
        self._listeners[event].append(callback)

        def unsubscribe():
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)

        return unsubscribe

    def _notify(self, event: str, *args) -> None:
        for callback in list(self._listeners[event]):
            callback(self, *args)

    # ----------------------------------------------------------------- edits --

    def edit_parameter(self, name: str, value: Any) -> None:
        """Replace a parameter value."""
        with self._lock:
            self._descriptor.parameters = set_value(
                self._descriptor.parameters, name, _as_value(value))
            self._mark_dirty()
        self._after_edit()

    def edit_variable(self, name: str, value: Any) -> None:
        """Replace a variable's initial value; rebuilds the map on shape change."""
        with self._lock:
            variables = set_value(self._descriptor.variables, name, _as_value(value))
            self._descriptor.variables = variables
            if self._layout.needs_rebuild(variables):
                self._layout = VariableMap.build(variables)
            self._mark_dirty()
        self._after_edit()

    def edit_time_span(self, start: float, end: float) -> None:
        """Replace the integration interval; checked when the next solve runs."""
        with self._lock:
            self._descriptor.time_span = (float(start), float(end))
            self._mark_dirty()
        self._after_edit()

    def select_solver(self, index: int) -> None:
        """Select a catalog entry by position."""
        if not 0 <= index < len(self._catalog):
            raise IndexError(f"Solver index {index} out of range 0..{len(self._catalog) - 1}")
        with self._lock:
            self._solver_index = index
            self._mark_dirty()
        self._after_edit()

    def _mark_dirty(self) -> None:
        self._revision += 1
        if self._phase is not Phase.SOLVING:
            self._phase = Phase.DIRTY

    def _after_edit(self) -> None:
        if self.auto_recompute:
            self.request_recompute()

    # ------------------------------------------------------------- recompute --

    def request_recompute(self) -> bool:
        """
        Start a solve unless one is already in flight.

        Returns:
            True if a solve was started, False if the request was dropped
        """
        with self._lock:
            if self._phase is Phase.SOLVING:
                logger.debug("Recompute request coalesced with the solve in flight")
                return False
            self._phase = Phase.SOLVING
            self._cancel.clear()
            snapshot = self._descriptor.copy()
            entry = self._catalog[self._solver_index]
            revision = self._revision
            self.solve_count += 1

        if self.background:
            worker = threading.Thread(target=self._run, args=(snapshot, entry, revision),
                                      name="solve-worker", daemon=True)
            self._worker = worker
            worker.start()
        else:
            self._run(snapshot, entry, revision)
        return True

    def _run(self, snapshot: SystemDescriptor, entry: CatalogEntry, revision: int) -> None:
        try:
            solution, aux = solve(snapshot, snapshot.time_span, entry.solver, entry.family,
                                  should_stop=self._cancel.is_set, rng=self._rng)
            layout = VariableMap.build(snapshot.variables)
        except SolveCancelled:
            with self._lock:
                self._phase = Phase.DIRTY
            logger.warning("Solve with %s cancelled", entry.name)
            return
        except DynamicsError as exc:
            self._fail(entry, exc)
            return
        except Exception as exc:
            error = IntegrationError(f"Solve with {entry.name} raised {type(exc).__name__}: {exc}",
                                     {'family': entry.family.value})
            error.__cause__ = exc
            self._fail(entry, error)
            return

        with self._lock:
            self._solution = solution
            self._solution_map = layout
            self._aux_solution = aux
            self._error = None
            self._solved_revision = revision
            pending = self._revision != revision
            self._phase = Phase.DIRTY if pending else Phase.IDLE
        logger.info("Published solution from %s (%s)", entry.name, self._phase.value)
        self._notify('redraw')

        if pending and self.auto_recompute:
            self.request_recompute()

    def _fail(self, entry: CatalogEntry, error: DynamicsError) -> None:
        with self._lock:
            self._phase = Phase.FAILED
            self._error = error
        logger.warning("Solve with %s failed: %s", entry.name, error)
        self._notify('error', error)

    def cancel(self) -> None:
        """Ask the solve in flight to stop at its next step boundary."""
        self._cancel.set()

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until background solves (including follow-ups) have finished."""
        while True:
            worker = self._worker
            if worker is None or worker is threading.current_thread():
                return
            worker.join(timeout)
            if worker.is_alive() or worker is self._worker:
                return

    # ------------------------------------------------------------- consumers --

    def evaluate(self, query_times, names: Optional[Union[str, Sequence[str]]] = None,
                 auxiliary: bool = False) -> np.ndarray:
        """
        Interpolate the latest solution by variable (or auxiliary) name.

        Args:
            query_times: Scalar or 1-D sequence of times
            names: Entry name(s); None returns all rows
            auxiliary: Evaluate the auxiliary solution instead

        Returns:
            Interpolated values (n_rows x n_query_times)
        """
        with self._lock:
            result = self._aux_solution if auxiliary else self._solution
            vmap = self._aux_map if auxiliary else self.variable_map
        if result is None:
            raise EvaluationError("No solution available",
                                  {'auxiliary': auxiliary, 'phase': self._phase.value})
        indices = None if names is None else vmap.indices(names)
        return evaluate(result, query_times, indices)

    def reconfigure(self) -> Optional['SimulationController']:
        """
        Build an unrelated controller from the descriptor's self_constructor.

        Returns:
            New controller, or None if there is no constructor or it
            returned None (cancelled)
        """
        factory = self._descriptor.self_constructor
        if factory is None:
            return None
        descriptor = factory()
        if descriptor is None:
            logger.info("Reconfigure cancelled")
            return None
        return SimulationController(descriptor,
                                    auto_recompute=self.auto_recompute,
                                    background=self.background)

    def __repr__(self) -> str:
        return (f"SimulationController(phase={self._phase.value}, "
                f"solver='{self.selected_solver.name}')")


def _as_value(value: Any) -> Any:
    value = np.array(value, dtype=float)
    return float(value) if value.ndim == 0 else value
