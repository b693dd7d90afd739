from __future__ import annotations

import math

import pytest

from localsearch.embeddings import cosine_similarity


def test_vector_with_itself_is_one():
    vector = (0.3, -1.2, 4.0, 0.0)
    assert math.isclose(cosine_similarity(vector, vector), 1.0, rel_tol=1e-12)


def test_zero_vector_is_exactly_zero():
    assert cosine_similarity((0.0, 0.0, 0.0), (1.0, 2.0, 3.0)) == 0.0
    assert cosine_similarity((1.0, 2.0, 3.0), (0.0, 0.0, 0.0)) == 0.0


def test_orthogonal_and_opposite_vectors():
    assert cosine_similarity((1.0, 0.0), (0.0, 5.0)) == 0.0
    assert math.isclose(cosine_similarity((1.0, 1.0), (-2.0, -2.0)), -1.0)


def test_length_mismatch_raises():
    with pytest.raises(ValueError):
        cosine_similarity((1.0, 0.0), (1.0, 0.0, 0.0))
