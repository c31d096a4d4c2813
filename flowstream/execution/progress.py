"""
flowstream Progress - Iteration and step tracking for a run
"""

import time
from typing import Any, Callable, Dict, Optional


class FlowProgress:
    """
    Tracks how far a run has come.

    Progress is the current iteration over the iteration budget. Named steps
    can be timed independently of iterations.

    Example:
        progress = FlowProgress(total_iterations=10).start()
        progress.start_iteration(3)
        progress.get_progress()   # 30.0
        progress.get_summary()    # "Progress: 30.0% (3/10) - Duration: 12 ms - Step: iteration_3"
    """

    def __init__(
        self,
        total_iterations: int,
        metadata: Optional[Dict[str, Any]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.total_iterations = total_iterations
        self.current_iteration = 0
        self.current_step = "initializing"
        self._metadata: Dict[str, Any] = dict(metadata or {})
        self._steps: Dict[str, Dict[str, Optional[float]]] = {}
        self._clock = clock
        self._start_time: Optional[float] = None
        self._end_time: Optional[float] = None

    # ===== Transitions =====

    def start(self) -> "FlowProgress":
        self._start_time = self._clock()
        self.current_step = "started"
        return self

    def complete(self) -> "FlowProgress":
        self._end_time = self._clock()
        self.current_step = "completed"
        return self

    def start_iteration(self, iteration: int) -> "FlowProgress":
        self.current_iteration = iteration
        self.current_step = f"iteration_{iteration}"
        return self

    def start_step(self, name: str) -> "FlowProgress":
        self._steps[name] = {"started": self._clock(), "completed": None}
        self.current_step = name
        return self

    def complete_step(self, name: str) -> "FlowProgress":
        """Mark *name* complete; a step never started is started and completed now"""
        now = self._clock()
        step = self._steps.setdefault(name, {"started": now, "completed": None})
        step["completed"] = now
        self.current_step = name
        return self

    def update_step(self, name: str) -> "FlowProgress":
        self.current_step = name
        return self

    # ===== Queries =====

    def get_progress(self) -> float:
        """Percent complete (0-100)"""
        if self.total_iterations == 0:
            return 100.0
        return self.current_iteration / self.total_iterations * 100

    def is_started(self) -> bool:
        return self._start_time is not None

    def is_complete(self) -> bool:
        return self._end_time is not None or self.current_iteration >= self.total_iterations

    def get_duration(self) -> float:
        if self._start_time is None:
            return 0.0
        end = self._end_time if self._end_time is not None else self._clock()
        return end - self._start_time

    def get_formatted_duration(self) -> str:
        duration = self.get_duration()
        if duration < 1:
            return f"{round(duration * 1000)} ms"
        if duration < 60:
            return f"{round(duration, 1)} s"
        minutes = int(duration // 60)
        seconds = round(duration % 60, 1)
        return f"{minutes}m {seconds}s"

    def get_estimated_time_remaining(self) -> Optional[float]:
        """Seconds left at the average pace so far, None before the first iteration"""
        if self.current_iteration == 0 or not self.is_started():
            return None
        per_iteration = self.get_duration() / self.current_iteration
        return per_iteration * max(self.total_iterations - self.current_iteration, 0)

    def get_completed_steps(self) -> Dict[str, Dict[str, Optional[float]]]:
        steps = {}
        for name, times in self._steps.items():
            completed = times["completed"]
            steps[name] = {
                "started": times["started"],
                "completed": completed,
                "duration": completed - times["started"] if completed is not None else None,
            }
        return steps

    def get_step_count(self) -> int:
        return len(self._steps)

    def get_completed_step_count(self) -> int:
        return sum(1 for step in self._steps.values() if step["completed"] is not None)

    # ===== Metadata =====

    def set_metadata(self, key: str, value: Any) -> "FlowProgress":
        self._metadata[key] = value
        return self

    def get_metadata(self, key: str, default: Any = None) -> Any:
        return self._metadata.get(key, default)

    def get_all_metadata(self) -> Dict[str, Any]:
        return dict(self._metadata)

    # ===== Serialization =====

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_iteration": self.current_iteration,
            "total_iterations": self.total_iterations,
            "progress_percent": self.get_progress(),
            "current_step": self.current_step,
            "duration": self.get_duration(),
            "formatted_duration": self.get_formatted_duration(),
            "estimated_remaining": self.get_estimated_time_remaining(),
            "is_complete": self.is_complete(),
            "is_started": self.is_started(),
            "completed_steps": self.get_completed_steps(),
            "step_count": self.get_step_count(),
            "completed_step_count": self.get_completed_step_count(),
            "metadata": dict(self._metadata),
        }

    def get_summary(self) -> str:
        return (
            f"Progress: {round(self.get_progress(), 1)}% "
            f"({self.current_iteration}/{self.total_iterations}) - "
            f"Duration: {self.get_formatted_duration()} - Step: {self.current_step}"
        )

    def __repr__(self) -> str:
        return f"FlowProgress({self.get_summary()})"
