import pytest

from storefront.services.saga import Saga, Step


class Recorder(Step):
    def __init__(self, name, log, fail=False, fail_compensation=False):
        super().__init__("ORD-TEST")
        self.name = name
        self.log = log
        self.fail = fail
        self.fail_compensation = fail_compensation

    def execute(self):
        if self.fail:
            raise RuntimeError(f"{self.name} failed")
        self.log.append(f"do:{self.name}")

    def compensate(self):
        if self.fail_compensation:
            raise RuntimeError("undo failed")
        self.log.append(f"undo:{self.name}")


def test_all_steps_run_in_order():
    log = []
    Saga("ORD-TEST", [Recorder("a", log), Recorder("b", log)]).execute()
    assert log == ["do:a", "do:b"]


def test_failure_unwinds_completed_steps_newest_first():
    log = []
    saga = Saga("ORD-TEST", [Recorder("a", log), Recorder("b", log), Recorder("c", log, fail=True), Recorder("d", log)])
    with pytest.raises(RuntimeError, match="c failed"):
        saga.execute()
    assert log == ["do:a", "do:b", "undo:b", "undo:a"]


def test_broken_compensation_does_not_stop_the_unwind(caplog):
    log = []
    steps = [Recorder("a", log), Recorder("b", log, fail_compensation=True), Recorder("c", log, fail=True)]
    with pytest.raises(RuntimeError, match="c failed"):
        Saga("ORD-TEST", steps).execute()
    assert log == ["do:a", "do:b", "undo:a"]
    assert "COMPENSATION FAILED at b" in caplog.text
