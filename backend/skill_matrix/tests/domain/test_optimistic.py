from uuid import uuid4

from skill_matrix.domain.matrix.optimistic import ABSENT, OptimisticRatings


class TestOptimisticRatings:
    def test_revert_restores_previous_value(self):
        key = (uuid4(), uuid4())
        ratings = OptimisticRatings({key: 2})
        edit = ratings.apply(key, 4)
        assert ratings[key] == 4
        ratings.revert(edit)
        assert ratings[key] == 2

    def test_revert_removes_previously_absent_cell(self):
        """A cell that did not exist is removed, not set to None."""
        key = (uuid4(), uuid4())
        ratings = OptimisticRatings()
        edit = ratings.apply(key, 3)
        assert edit.previous is ABSENT
        ratings.revert(edit)
        assert key not in ratings
        assert len(ratings) == 0

    def test_revert_of_clear_restores_value(self):
        key = (uuid4(), uuid4())
        ratings = OptimisticRatings({key: 5})
        edit = ratings.apply(key, None)
        assert ratings[key] is None
        ratings.revert(edit)
        assert ratings[key] == 5

    def test_replace_all(self):
        key = (uuid4(), uuid4())
        ratings = OptimisticRatings({key: 1})
        ratings.replace_all({})
        assert dict(ratings) == {}
