"""Cryptographic primitives module"""

from zkpool.crypto.poseidon import FieldPermutation, PoseidonPermutation, field_hash
from zkpool.crypto.groth16 import Proof, ProvingKey, VerifyingKey
from zkpool.crypto.zk_snark import (
    WithdrawalProver,
    WithdrawalVerifier,
    load_parameters,
    save_parameters,
)

__all__ = [
    'FieldPermutation',
    'PoseidonPermutation',
    'field_hash',
    'Proof',
    'ProvingKey',
    'VerifyingKey',
    'WithdrawalProver',
    'WithdrawalVerifier',
    'load_parameters',
    'save_parameters',
]
