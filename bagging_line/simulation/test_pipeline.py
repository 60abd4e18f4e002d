"""
Inspection Pipeline - Checkpoint Test

Detector flags, checkweigher decides. Covers the gate ordering
(contaminant, range, tolerance) and the one-shot checkpoints.
"""

from dataclasses import replace

import pytest

from bagging_line.simulation.items import Item, Contaminant, Verdict, RejectReason, ExitDirection
from bagging_line.simulation.pipeline import InspectionPipeline, REJECT_EXIT_FACTOR
from bagging_line.simulation.profiles import LineProfile
from bagging_line.simulation.flow.events import EventDispatcher, LineEventType


class ZeroError:
    def random(self):
        return 0.99

    def uniform(self, a, b):
        return 0.0


PROFILE = LineProfile(
    name="check", base_weight=25.00, container_weight=0.010, giveaway=0.0,
    bagging_tolerance=0.015, sensor_accuracy=0.005, range_min=25.000,
    range_max=25.110, throughput_rate=30000.0,
)


def make_item(weight=None, contaminant=Contaminant.NONE, item_id=1):
    return Item(
        item_id=item_id,
        profile=PROFILE,
        simulated_weight=PROFILE.final_nominal if weight is None else weight,
        contaminant=contaminant,
        position=474.0,
    )


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def pipeline(dispatcher):
    return InspectionPipeline("line_t", ZeroError(), dispatcher, clock=lambda: 12.0)


def inspect(pipeline, item):
    pipeline.scan_checkpoint(item)
    pipeline.weigh_checkpoint(item)
    return item


def test_clean_item_on_nominal_passes(pipeline):
    item = inspect(pipeline, make_item())

    assert item.measured_weight == pytest.approx(25.010)
    assert item.verdict == Verdict.PASSED
    assert item.reject_reason == RejectReason.NONE
    assert item.exit_direction == ExitDirection.NONE


def test_contaminated_item_rejected_regardless_of_weight(pipeline):
    item = inspect(pipeline, make_item(contaminant=Contaminant.FERROUS))

    assert item.contaminant_flagged
    assert item.verdict == Verdict.REJECTED
    assert item.reject_reason == RejectReason.CONTAMINANT
    assert item.exit_direction == ExitDirection.BACKWARD


def test_contaminant_wins_over_range(pipeline):
    item = inspect(pipeline, make_item(weight=26.0, contaminant=Contaminant.STAINLESS))
    assert item.reject_reason == RejectReason.CONTAMINANT


def test_out_of_range_rejected(pipeline):
    item = inspect(pipeline, make_item(weight=25.200))

    assert item.verdict == Verdict.REJECTED
    assert item.reject_reason == RejectReason.RANGE
    assert item.exit_direction == ExitDirection.FORWARD


def test_in_range_but_off_nominal_rejected_for_tolerance(pipeline):
    item = inspect(pipeline, make_item(weight=25.030))

    assert item.verdict == Verdict.REJECTED
    assert item.reject_reason == RejectReason.TOLERANCE
    assert item.exit_direction == ExitDirection.FORWARD


def test_range_bounds_are_inclusive(pipeline):
    assert inspect(pipeline, make_item(weight=25.000)).verdict == Verdict.PASSED

    upper = make_item(weight=25.110)
    upper.profile = replace(PROFILE, bagging_tolerance=0.5)
    assert inspect(pipeline, upper).verdict == Verdict.PASSED


def test_final_tolerance_overrides_bagging_tolerance(pipeline):
    item = make_item(weight=25.030)
    item.profile = replace(PROFILE, final_tolerance=0.05)
    inspect(pipeline, item)
    assert item.verdict == Verdict.PASSED


def test_scan_is_idempotent(pipeline, dispatcher):
    item = make_item(contaminant=Contaminant.NON_FERROUS)
    pipeline.scan_checkpoint(item)
    pipeline.scan_checkpoint(item)

    flagged = [e for e in dispatcher.get_event_log() if e.type == LineEventType.SCAN_FLAGGED]
    assert len(flagged) == 1
    assert flagged[0].data["contaminant"] == "NON_FERROUS"
    assert item.verdict == Verdict.IN_TRANSIT


def test_weigh_measures_once(pipeline, dispatcher):
    item = inspect(pipeline, make_item(weight=25.030))
    first = item.measured_weight
    item.simulated_weight = 25.010
    pipeline.weigh_checkpoint(item)

    assert item.measured_weight == first
    assert item.verdict == Verdict.REJECTED
    verdicts = [e for e in dispatcher.get_event_log()
                if e.type in (LineEventType.ITEM_PASSED, LineEventType.ITEM_REJECTED)]
    assert len(verdicts) == 1


def test_events_carry_inspection_record(pipeline, dispatcher):
    inspect(pipeline, make_item(item_id=42))
    scan, verdict = dispatcher.get_event_log()

    assert scan.type == LineEventType.SCAN_CLEAR
    assert verdict.type == LineEventType.ITEM_PASSED
    assert verdict.timestamp == 12.0
    assert verdict.line_id == "line_t"
    assert verdict.data["item_id"] == 42
    assert verdict.data["verdict"] == "PASSED"
    assert verdict.data["measured_weight"] == pytest.approx(25.010)


def test_sensor_error_is_added_to_reading(dispatcher):
    class FixedError(ZeroError):
        def uniform(self, a, b):
            assert (a, b) == (-0.005, 0.005)
            return 0.004

    pipeline = InspectionPipeline("line_t", FixedError(), dispatcher)
    item = make_item()
    pipeline.weigh_checkpoint(item)
    assert item.measured_weight == pytest.approx(25.014)


def test_no_dispatcher_is_fine():
    pipeline = InspectionPipeline("line_t", ZeroError())
    assert inspect(pipeline, make_item()).verdict == Verdict.PASSED


def test_advance_moves_by_verdict(pipeline):
    moving = make_item()
    pipeline.advance(moving, 2.0)
    assert moving.position == 476.0

    backward = inspect(pipeline, make_item(contaminant=Contaminant.FERROUS))
    start = backward.position
    pipeline.advance(backward, 2.0)
    assert backward.position == pytest.approx(start - 2.0 * REJECT_EXIT_FACTOR)
    assert backward.ticks_since_verdict == 1

    forward = inspect(pipeline, make_item(weight=25.5))
    start = forward.position
    pipeline.advance(forward, 1.0)
    assert forward.position == pytest.approx(start + REJECT_EXIT_FACTOR)
