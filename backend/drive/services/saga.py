from __future__ import annotations

from typing import Any, Callable, TypeVar

from flask import current_app


T = TypeVar("T")
Compensation = Callable[[Any], Any]


class Saga:
    """Ordered steps against the blob and metadata stores.

    Each completed step may register a compensation that receives the step's
    result. When a step fails, the compensations of every earlier step run in
    reverse order and the step's error is re-raised unchanged. Compensation
    failures are logged and skipped; nothing is retried.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.completed: list[str] = []
        self._compensations: list[tuple[str, Compensation, Any]] = []

    def step(self, label: str, action: Callable[[], T], compensation: Compensation | None = None) -> T:
        try:
            result = action()
        except Exception:
            current_app.logger.warning("Saga %s failed at step %s", self.name, label)
            self.compensate()
            raise
        self._record(label, result, compensation)
        return result

    def best_effort(
        self, label: str, action: Callable[[], T], compensation: Compensation | None = None
    ) -> T | None:
        """Run a step whose failure does not abort the saga."""
        try:
            result = action()
        except Exception:
            current_app.logger.warning(
                "Saga %s skipped best-effort step %s", self.name, label, exc_info=True
            )
            return None
        self._record(label, result, compensation)
        return result

    def compensate(self) -> None:
        while self._compensations:
            label, compensation, result = self._compensations.pop()
            try:
                compensation(result)
            except Exception:
                current_app.logger.warning(
                    "Saga %s compensation for %s failed; state may be orphaned",
                    self.name,
                    label,
                    exc_info=True,
                )
            else:
                current_app.logger.info("Saga %s compensated %s", self.name, label)

    def _record(self, label: str, result: Any, compensation: Compensation | None) -> None:
        self.completed.append(label)
        if compensation is not None:
            self._compensations.append((label, compensation, result))
