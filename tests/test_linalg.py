# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

import numpy as np
import pytest
from scipy import linalg as la
from scipy.sparse import csr_matrix
from numpy.testing import assert_allclose, assert_array_equal
from hypothesis import given, assume, settings, strategies as st
import hypothesis.extra.numpy as hnp
from dqmcwick import linalg

settings.load_profile("dqmcwick")

aarr = hnp.arrays(dtype=np.float64, shape=(8, 8), elements=st.floats(-10., 10))


def _random_chain(num, size, seed, scale=0.3):
    rng = np.random.default_rng(seed)
    return [np.eye(size) + scale * rng.normal(size=(size, size)) for _ in range(num)]


def _random_slice_matrices(num, size, seed, nu=0.2):
    # Hopping exponential times a random diagonal, like the DQMC time step matrices
    rng = np.random.default_rng(seed)
    ham = rng.normal(size=(size, size))
    expk = la.expm(-0.05 * (ham + ham.T))
    return [expk * np.exp(nu * rng.choice([-1, +1], size=size)) for _ in range(num)]


@given(aarr)
def test_decompose_qrp(a):
    assume(np.all(np.isfinite(a)))
    q, r, jpvt = linalg.decompose_qrp(a)
    assert_allclose(linalg.reconstruct_qrp(q, r, jpvt), a, atol=1e-8)


@given(aarr)
def test_decompose_udt(a):
    assume(np.all(np.isfinite(a)))
    u, d, t = linalg.decompose_udt(a)
    assert np.all(d > 0)
    assert_allclose(u.T @ u, np.eye(8), atol=1e-10)
    assert_allclose(linalg.reconstruct_udt(u, d, t), a, atol=1e-8)


def test_decompose_udt_complex():
    rng = np.random.default_rng(0)
    a = rng.normal(size=(6, 6)) + 1j * rng.normal(size=(6, 6))
    u, d, t = linalg.decompose_udt(a)
    assert_allclose(linalg.reconstruct_udt(u, d, t), a, atol=1e-10)


@given(st.integers(1, 12), st.integers(1, 5), st.integers(0, 100))
def test_udt_chain(num, safe_mult, seed):
    mats = _random_chain(num, 6, seed)
    expected = linalg.mdot(mats[::-1])
    u, d, t = linalg.udt_chain(mats, safe_mult)
    assert_allclose(linalg.reconstruct_udt(u, d, t), expected, rtol=1e-8, atol=1e-8)


def test_udt_chain_invalid():
    mats = _random_chain(3, 4, 0)
    with pytest.raises(ValueError):
        linalg.udt_chain(mats, 0)
    with pytest.raises(ValueError):
        linalg.udt_chain([], 1)


@given(st.integers(0, 100))
def test_udt_product(seed):
    a, b = _random_chain(2, 6, seed, scale=1.0)
    res = linalg.udt_product(*linalg.decompose_udt(a), *linalg.decompose_udt(b))
    assert_allclose(linalg.reconstruct_udt(*res), a @ b, atol=1e-8)


@given(st.integers(1, 20), st.integers(0, 100))
def test_inv_one_plus_udt(num, seed):
    mats = _random_slice_matrices(num, 6, seed)
    prod = linalg.mdot(mats[::-1])
    expected = la.inv(np.eye(6) + prod)

    u, d, t = linalg.udt_chain(mats, 4)
    out = np.zeros((6, 6))
    res = linalg.inv_one_plus_udt(u, d, t, out=out)
    assert res is out
    assert_allclose(out, expected, rtol=1e-6, atol=1e-8)


def test_vmul():
    rng = np.random.default_rng(1)
    a = rng.normal(size=(5, 5))
    b = rng.normal(size=(5, 5))
    b[b < 0.5] = 0.0
    expected = a @ b

    out = np.zeros((5, 5))
    assert linalg.vmul(out, a, b) is out
    assert_allclose(out, expected)

    out = np.zeros((5, 5))
    linalg.vmul(out, a, csr_matrix(b))
    assert_allclose(out, expected)

    out = np.zeros((5, 5))
    linalg.vmul(out, csr_matrix(b), a)
    assert_allclose(out, b @ a)


def test_block_diagonal():
    blocks = [np.full((3, 3), 1.0), np.full((3, 3), 2.0)]
    mat = linalg.BlockDiagonal(blocks)
    assert mat.shape == (6, 6)
    assert mat.num_blocks == 2
    assert mat.block_size == 3

    dense = mat.toarray()
    assert_array_equal(dense[:3, :3], blocks[0])
    assert_array_equal(dense[3:, 3:], blocks[1])
    assert_array_equal(dense[:3, 3:], 0.0)
    assert_array_equal(np.asarray(mat), dense)

    mat2 = linalg.BlockDiagonal.from_dense(dense, 2)
    assert_array_equal(mat2.toarray(), dense)


def test_block_diagonal_invalid():
    with pytest.raises(ValueError):
        linalg.BlockDiagonal([np.eye(2), np.eye(3)])
