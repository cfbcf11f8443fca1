from __future__ import annotations

import pytest

from drive.common.errors import CollaboratorFailure, ValidationError
from drive.services.saga import Saga


def test_failure_compensates_completed_steps_in_reverse(app):
    calls: list[str] = []

    def fail():
        raise CollaboratorFailure("blob_store", "put")

    with app.app_context():
        saga = Saga("demo")
        saga.step("one", lambda: 1, compensation=lambda result: calls.append(f"undo-one:{result}"))
        saga.step("two", lambda: 2)
        saga.step("three", lambda: 3, compensation=lambda result: calls.append(f"undo-three:{result}"))

        with pytest.raises(CollaboratorFailure):
            saga.step("four", fail, compensation=lambda result: calls.append("undo-four"))

    assert calls == ["undo-three:3", "undo-one:1"]
    assert saga.completed == ["one", "two", "three"]


def test_domain_errors_propagate_unchanged(app):
    undone: list[int] = []

    def reject():
        raise ValidationError("INVALID_NAME", "bad")

    with app.app_context():
        saga = Saga("demo")
        saga.step("insert", lambda: 7, compensation=undone.append)
        with pytest.raises(ValidationError) as excinfo:
            saga.step("validate", reject)

    assert excinfo.value.code == "INVALID_NAME"
    assert undone == [7]


def test_best_effort_failure_is_skipped(app):
    calls: list[str] = []

    def fail():
        raise CollaboratorFailure("blob_store", "put")

    with app.app_context():
        saga = Saga("demo")
        saga.step("first", lambda: "a", compensation=lambda result: calls.append("undo-first"))
        assert saga.best_effort("optional", fail, compensation=lambda result: calls.append("undo-optional")) is None
        assert saga.best_effort("also", lambda: "b", compensation=lambda result: calls.append("undo-also")) == "b"

        with pytest.raises(CollaboratorFailure):
            saga.step("last", fail)

    assert calls == ["undo-also", "undo-first"]


def test_compensation_failure_does_not_stop_the_rest(app, caplog):
    calls: list[str] = []

    def broken(result):
        raise RuntimeError("blob delete failed")

    def fail():
        raise CollaboratorFailure("metadata_store", "insert")

    with app.app_context():
        saga = Saga("demo")
        saga.step("one", lambda: None, compensation=lambda result: calls.append("undo-one"))
        saga.step("two", lambda: None, compensation=broken)

        with pytest.raises(CollaboratorFailure):
            saga.step("three", fail)

    assert calls == ["undo-one"]
    assert "compensation for two failed" in caplog.text


def test_best_effort_skips_any_error(app):
    calls: list[str] = []

    def broken():
        raise RuntimeError("version read failed")

    with app.app_context():
        saga = Saga("demo")
        saga.step("first", lambda: None, compensation=lambda result: calls.append("undo-first"))
        assert saga.best_effort("optional", broken) is None
        assert saga.step("second", lambda: 2) == 2

    assert calls == []
    assert saga.completed == ["first", "second"]
