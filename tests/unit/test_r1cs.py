"""Tests for the rank-1 constraint system."""

import pytest

from zkpool.crypto.r1cs import ConstraintSystem, LinearCombination, P


class TestLinearCombination:
    """Tests for linear combination arithmetic."""

    def test_constant_and_variable(self):
        z = [1, 5, 7]
        assert LinearCombination.constant(3).evaluate(z) == 3
        assert LinearCombination.variable(2).evaluate(z) == 7

    def test_addition_and_subtraction(self):
        z = [1, 5, 7]
        x = LinearCombination.variable(1)
        y = LinearCombination.variable(2)
        assert (x + y).evaluate(z) == 12
        assert (x - y).evaluate(z) == (5 - 7) % P
        assert (10 - x).evaluate(z) == 5
        assert (x + 1).evaluate(z) == 6

    def test_scalar_multiplication(self):
        x = LinearCombination.variable(1)
        assert (x * 3).evaluate([1, 4]) == 12
        assert (3 * x).evaluate([1, 4]) == 12
        assert len(x * 0) == 0

    def test_cancellation_drops_terms(self):
        x = LinearCombination.variable(1)
        assert len(x - x) == 0

    def test_sum_of_combinations(self):
        terms = [LinearCombination.variable(i) for i in range(1, 4)]
        assert sum(terms).evaluate([1, 1, 2, 3]) == 6


class TestConstraintSystem:
    """Tests for variable allocation and satisfaction."""

    def test_inputs_precede_witnesses(self):
        cs = ConstraintSystem()
        cs.alloc_input(3)
        cs.alloc(4)
        with pytest.raises(RuntimeError):
            cs.alloc_input(5)

    def test_counts(self):
        cs = ConstraintSystem()
        cs.alloc_input(3)
        cs.alloc(4)
        cs.alloc(5)
        assert cs.num_instance == 2
        assert cs.num_variables == 4
        assert cs.num_witness == 2
        assert cs.instance() == [3]

    def test_multiplication_gate(self):
        cs = ConstraintSystem()
        x = cs.alloc(6)
        y = cs.alloc(7)
        product = cs.mul(x, y, "x*y")
        assert product.evaluate(cs.assignment) == 42
        assert cs.is_satisfied()

    def test_violation_reported(self):
        cs = ConstraintSystem()
        x = cs.alloc(2)
        cs.mul(x, x)
        cs.enforce_equal(x, LinearCombination.constant(3), "x == 3")
        assert cs.first_unsatisfied() == 1
        assert cs.annotations[1] == "x == 3"

    def test_shape_digest_ignores_values(self):
        def build(value):
            cs = ConstraintSystem()
            x = cs.alloc_input(value)
            w = cs.alloc(value + 1)
            cs.mul(x, w)
            return cs

        assert build(1).shape_digest() == build(99).shape_digest()

    def test_shape_digest_tracks_structure(self):
        a = ConstraintSystem()
        x = a.alloc(1)
        a.mul(x, x)

        b = ConstraintSystem()
        y = b.alloc(1)
        b.mul(y, y * 2)

        assert a.shape_digest() != b.shape_digest()

    def test_matrices(self):
        cs = ConstraintSystem()
        x = cs.alloc(3)
        cs.mul(x, x)
        a_rows, b_rows, c_rows = cs.matrices()
        assert a_rows == [{1: 1}]
        assert b_rows == [{1: 1}]
        assert c_rows == [{2: 1}]
