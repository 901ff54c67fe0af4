"""Rank-1 constraint system.

A constraint is a triple of linear combinations (a, b, c) over the BN254
scalar field asserting ``<a, z> * <b, z> == <c, z>`` for the full assignment
vector ``z``. Index 0 of ``z`` is the constant one, public inputs follow, and
private witnesses come last.
"""

import struct
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from zkpool.utils.encoding import FIELD_MODULUS
from zkpool.utils.hash import blake2s

P = FIELD_MODULUS
ONE = 0

Terms = Dict[int, int]


class LinearCombination:
    """Sparse linear combination of assignment variables."""

    __slots__ = ("terms",)

    def __init__(self, terms: Optional[Terms] = None):
        self.terms: Terms = {}
        if terms:
            for index, coeff in terms.items():
                coeff %= P
                if coeff:
                    self.terms[index] = coeff

    @classmethod
    def constant(cls, value: int) -> "LinearCombination":
        return cls({ONE: value})

    @classmethod
    def variable(cls, index: int) -> "LinearCombination":
        return cls({index: 1})

    @staticmethod
    def _coerce(other: Union["LinearCombination", int]) -> "LinearCombination":
        if isinstance(other, LinearCombination):
            return other
        if isinstance(other, int):
            return LinearCombination.constant(other)
        return NotImplemented

    def __add__(self, other):
        other = self._coerce(other)
        if other is NotImplemented:
            return other
        terms = dict(self.terms)
        for index, coeff in other.terms.items():
            value = (terms.get(index, 0) + coeff) % P
            if value:
                terms[index] = value
            else:
                terms.pop(index, None)
        result = LinearCombination()
        result.terms = terms
        return result

    __radd__ = __add__

    def __neg__(self) -> "LinearCombination":
        result = LinearCombination()
        result.terms = {index: P - coeff for index, coeff in self.terms.items()}
        return result

    def __sub__(self, other):
        other = self._coerce(other)
        if other is NotImplemented:
            return other
        return self + (-other)

    def __rsub__(self, other):
        other = self._coerce(other)
        if other is NotImplemented:
            return other
        return other + (-self)

    def __mul__(self, scalar: int) -> "LinearCombination":
        if not isinstance(scalar, int):
            return NotImplemented
        scalar %= P
        result = LinearCombination()
        if scalar:
            result.terms = {index: coeff * scalar % P for index, coeff in self.terms.items()}
        return result

    __rmul__ = __mul__

    def evaluate(self, assignment: Sequence[int]) -> int:
        return sum(assignment[index] * coeff for index, coeff in self.terms.items()) % P

    def __len__(self) -> int:
        return len(self.terms)

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        return iter(sorted(self.terms.items()))

    def __repr__(self) -> str:
        return f"LinearCombination({len(self.terms)} terms)"


Constraint = Tuple[LinearCombination, LinearCombination, LinearCombination]


class ConstraintSystem:
    """
    Collects variables and constraints while a circuit is synthesized.

    Values are always assigned; a circuit synthesized for key generation simply
    uses a placeholder witness. The constraint *shape* never depends on the
    values, which is what makes the shape digest stable.
    """

    def __init__(self):
        self.assignment: List[int] = [1]
        self.num_instance = 1
        self.constraints: List[Constraint] = []
        self.annotations: List[Optional[str]] = []

    @property
    def one(self) -> LinearCombination:
        return LinearCombination.variable(ONE)

    @property
    def num_variables(self) -> int:
        return len(self.assignment)

    @property
    def num_witness(self) -> int:
        return self.num_variables - self.num_instance

    @property
    def num_constraints(self) -> int:
        return len(self.constraints)

    def alloc_input(self, value: int) -> LinearCombination:
        """Allocate a public input. All inputs must precede any witness."""
        if self.num_variables != self.num_instance:
            raise RuntimeError("Public inputs must be allocated before witnesses")
        self.assignment.append(value % P)
        self.num_instance += 1
        return LinearCombination.variable(self.num_variables - 1)

    def alloc(self, value: int) -> LinearCombination:
        """Allocate a private witness variable."""
        self.assignment.append(value % P)
        return LinearCombination.variable(self.num_variables - 1)

    def enforce(
        self,
        a: LinearCombination,
        b: LinearCombination,
        c: LinearCombination,
        annotation: Optional[str] = None,
    ) -> None:
        self.constraints.append((a, b, c))
        self.annotations.append(annotation)

    def mul(self, a: LinearCombination, b: LinearCombination, annotation: Optional[str] = None) -> LinearCombination:
        """Allocate ``a * b`` as a new witness and constrain it."""
        product = self.alloc(a.evaluate(self.assignment) * b.evaluate(self.assignment))
        self.enforce(a, b, product, annotation)
        return product

    def enforce_equal(self, a: LinearCombination, b: LinearCombination, annotation: Optional[str] = None) -> None:
        self.enforce(a - b, self.one, LinearCombination(), annotation)

    def instance(self) -> List[int]:
        """Public inputs, without the leading constant one."""
        return self.assignment[1:self.num_instance]

    def first_unsatisfied(self) -> Optional[int]:
        """Index of the first violated constraint, or None."""
        z = self.assignment
        for row, (a, b, c) in enumerate(self.constraints):
            if a.evaluate(z) * b.evaluate(z) % P != c.evaluate(z):
                return row
        return None

    def is_satisfied(self) -> bool:
        return self.first_unsatisfied() is None

    def matrices(self) -> Tuple[List[Terms], List[Terms], List[Terms]]:
        a_rows = [dict(a.terms) for a, _, _ in self.constraints]
        b_rows = [dict(b.terms) for _, b, _ in self.constraints]
        c_rows = [dict(c.terms) for _, _, c in self.constraints]
        return a_rows, b_rows, c_rows

    def shape_digest(self) -> bytes:
        """Digest of the constraint matrices and variable layout."""
        parts = [struct.pack(">III", self.num_instance, self.num_variables, self.num_constraints)]
        for constraint in self.constraints:
            for lc in constraint:
                parts.append(struct.pack(">I", len(lc)))
                for index, coeff in lc:
                    parts.append(struct.pack(">I", index) + coeff.to_bytes(32, 'big'))
        return blake2s(b"".join(parts))
