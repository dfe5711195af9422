"""
Unit tests for trajectory evaluation.
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.descriptor import EquationFamily
from core.exceptions import EvaluationError, IntegrationError, OutOfRangeError
from models.validation import validate
from models.linear import LinearDecay
from sim.dispatch import solve
from sim.evaluate import evaluate
from sim.result import Solution


def make_solution(times, values):
    return Solution(times=np.asarray(times), values=np.asarray(values),
                    family=EquationFamily.ODE, solver='manual')


class TestEvaluate:
    """Tests for piecewise-linear evaluation."""

    def setup_method(self):
        self.sol = make_solution([0.0, 1.0, 2.0], [[0.0, 10.0, 20.0],
                                                   [1.0, 1.0, 1.0],
                                                   [5.0, 3.0, 4.0]])

    def test_sample_times_exact(self):
        """Test evaluating at the sample times returns the stored values."""
        sol, _ = solve(validate(LinearDecay().build()))

        np.testing.assert_array_equal(evaluate(sol, sol.times), sol.values)

    def test_midpoint(self):
        """Test linear interpolation halfway between samples."""
        np.testing.assert_allclose(evaluate(self.sol, 0.5), [[5.0], [1.0], [4.0]])

    def test_row_selection(self):
        """Test indices select and order the returned rows."""
        np.testing.assert_allclose(evaluate(self.sol, [0.5, 1.5], indices=[2, 0]),
                                   [[4.0, 3.5], [5.0, 15.0]])
        np.testing.assert_allclose(evaluate(self.sol, 1.5, indices=0), [[15.0]])
        np.testing.assert_allclose(evaluate(self.sol, 2.0, indices=slice(1, 3)),
                                   [[1.0], [4.0]])

    def test_end_points_inclusive(self):
        """Test both interval ends are valid queries."""
        np.testing.assert_allclose(evaluate(self.sol, [0.0, 2.0], indices=[0]),
                                   [[0.0, 20.0]])

    def test_out_of_range(self):
        """Test queries outside the interval raise every time."""
        for _ in range(2):
            with pytest.raises(OutOfRangeError):
                evaluate(self.sol, -0.1)
            with pytest.raises(OutOfRangeError):
                evaluate(self.sol, [1.0, 2.5])

    def test_out_of_range_is_evaluation_error(self):
        """Test out-of-range errors are evaluation errors."""
        with pytest.raises(EvaluationError):
            evaluate(self.sol, 3.0)

    def test_bad_index(self):
        """Test invalid row indices are rejected."""
        with pytest.raises(EvaluationError):
            evaluate(self.sol, 1.0, indices=[3])
        with pytest.raises(EvaluationError):
            evaluate(self.sol, 1.0, indices=[0.5])

    def test_pure(self):
        """Test evaluation does not modify the solution."""
        first = evaluate(self.sol, [0.25, 1.75])
        second = evaluate(self.sol, [0.25, 1.75])

        np.testing.assert_array_equal(first, second)
        np.testing.assert_array_equal(self.sol.values[0], [0.0, 10.0, 20.0])

    def test_single_sample(self):
        """Test a one-sample solution only answers its own time."""
        sol = make_solution([1.0], [[3.0]])

        np.testing.assert_array_equal(evaluate(sol, [1.0, 1.0]), [[3.0, 3.0]])
        with pytest.raises(OutOfRangeError):
            evaluate(sol, 1.5)

    def test_no_rows_selected(self):
        """Test an empty index list gives zero rows."""
        assert evaluate(self.sol, [0.5, 1.0], indices=[]).shape == (0, 2)

    def test_method_on_solution(self):
        """Test the Solution.evaluate shortcut."""
        np.testing.assert_allclose(self.sol.evaluate(1.5, [1]), [[1.0]])


class TestSolution:
    """Tests for the solution container."""

    def test_rejects_unsorted_times(self):
        """Test decreasing sample times are rejected."""
        with pytest.raises(IntegrationError):
            make_solution([0.0, 2.0, 1.0], [[1.0, 2.0, 3.0]])

    def test_rejects_column_mismatch(self):
        """Test values must have one column per sample time."""
        with pytest.raises(IntegrationError):
            make_solution([0.0, 1.0], [[1.0, 2.0, 3.0]])

    def test_vector_values_become_one_row(self):
        """Test a 1-D value array becomes a single row."""
        sol = make_solution([0.0, 1.0], [1.0, 2.0])

        assert sol.values.shape == (1, 2)
        np.testing.assert_array_equal(sol.final_values, [2.0])


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
