import pytest

from powerscore.models import SampleSet
from powerscore.stats import NoSamplesError, aggregate, coefficient_of_variation, median, pool


@pytest.mark.parametrize(
    ("values", "expected"),
    [
        ([5.0], 5.0),
        ([3.0, 1.0, 2.0], 2.0),
        ([4.0, 1.0, 3.0, 2.0], 2.5),
        ([0.0, 0.0, 0.0], 0.0),
    ],
)
def test_median_uses_standard_definition(values, expected) -> None:
    assert median(values) == expected


def test_median_lies_between_min_and_max() -> None:
    values = [310.0, 295.0, 330.0, 12.5, 999.0]
    assert min(values) <= median(values) <= max(values)


def test_median_of_empty_sequence_raises() -> None:
    with pytest.raises(NoSamplesError):
        median([])


def test_coefficient_of_variation_of_constant_sequence_is_zero() -> None:
    assert coefficient_of_variation([42.0, 42.0, 42.0]) == 0.0


def test_coefficient_of_variation_uses_sample_standard_deviation() -> None:
    assert coefficient_of_variation([310.0, 295.0, 330.0]) == pytest.approx(5.63, abs=0.01)


def test_coefficient_of_variation_degenerate_inputs_are_zero() -> None:
    assert coefficient_of_variation([7.0]) == 0.0
    assert coefficient_of_variation([]) == 0.0
    assert coefficient_of_variation([0.0, 0.0]) == 0.0


def test_aggregate_summarizes_sample_set() -> None:
    summary = aggregate(SampleSet(probe="disk_write_mb_s", values=[310.0, 295.0, 330.0]))
    assert summary.median == 310.0
    assert summary.minimum == 295.0
    assert summary.maximum == 330.0
    assert summary.count == 3
    assert summary.failures == 0


def test_aggregate_includes_failed_zeros_by_default() -> None:
    sample_set = SampleSet(probe="cpu", values=[9000.0, 0.0, 9100.0], failures=1)
    summary = aggregate(sample_set)
    assert summary.median == 9000.0
    assert summary.minimum == 0.0
    assert summary.count == 3
    assert summary.cv_pct > 50


def test_aggregate_can_exclude_failed_zeros() -> None:
    sample_set = SampleSet(probe="cpu", values=[9000.0, 0.0, 9100.0], failures=1)
    summary = aggregate(sample_set, exclude_failed=True)
    assert summary.median == 9050.0
    assert summary.minimum == 9000.0
    assert summary.count == 2
    assert summary.failures == 1


def test_aggregate_keeps_zeros_when_every_trial_failed() -> None:
    sample_set = SampleSet(probe="net", values=[0.0, 0.0, 0.0], failures=3)
    summary = aggregate(sample_set, exclude_failed=True)
    assert summary.median == 0.0
    assert summary.cv_pct == 0.0
    assert summary.count == 3


def test_aggregate_of_empty_sample_set_raises() -> None:
    with pytest.raises(NoSamplesError, match="never_run"):
        aggregate(SampleSet(probe="never_run"))


def test_pool_concatenates_values_and_failures() -> None:
    pooled = pool(
        "network_mb_s",
        [
            SampleSet(probe="a", values=[10.0, 0.0], failures=1),
            SampleSet(probe="b", values=[20.0]),
        ],
    )
    assert pooled.probe == "network_mb_s"
    assert pooled.values == [10.0, 0.0, 20.0]
    assert pooled.failures == 1
