"""Tests for vector and time helpers."""

import math
from datetime import UTC, datetime

import pytest

from mnemograph.utils.time import from_epoch_ms, to_epoch_ms
from mnemograph.utils.vector import cosine_similarity, normalize


class TestCosineSimilarity:
    """Tests for cosine_similarity."""

    def test_identical_vectors(self) -> None:
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self) -> None:
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_vector(self) -> None:
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_length_mismatch_raises(self) -> None:
        with pytest.raises(ValueError, match="same length"):
            cosine_similarity([1.0], [1.0, 0.0])

    def test_empty_raises(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            cosine_similarity([], [])


class TestNormalize:
    """Tests for normalize."""

    def test_unit_length(self) -> None:
        result = normalize([3.0, 4.0])
        assert result == pytest.approx([0.6, 0.8])
        assert math.sqrt(sum(x * x for x in result)) == pytest.approx(1.0)

    def test_zero_vector_unchanged(self) -> None:
        assert normalize([0.0, 0.0]) == [0.0, 0.0]


class TestEpochMillis:
    """Tests for epoch millisecond conversion."""

    def test_known_instant(self) -> None:
        instant = datetime(2024, 1, 1, tzinfo=UTC)
        assert to_epoch_ms(instant) == 1_704_067_200_000
        assert from_epoch_ms(1_704_067_200_000) == instant

    def test_naive_treated_as_utc(self) -> None:
        assert to_epoch_ms(datetime(1970, 1, 1, 0, 0, 1)) == 1000

    def test_sub_millisecond_floored(self) -> None:
        instant = datetime(2024, 1, 1, 0, 0, 0, 999, tzinfo=UTC)
        assert to_epoch_ms(instant) == 1_704_067_200_000
