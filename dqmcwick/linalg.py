# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Linear algebra helpers for the stabilized Green's function computation.

References
----------
.. [1] Z. Bai et al., "Stable solutions of linear systems involving long chain
       of matrix multiplications", Linear Algebra Appl. 435, 659-673 (2011)
"""

import numpy as np
from scipy import linalg as la
from scipy import sparse

__all__ = [
    "mdot", "decompose_qrp", "reconstruct_qrp", "decompose_udt", "reconstruct_udt",
    "udt_chain", "udt_product", "inv_one_plus_udt", "vmul", "BlockDiagonal"
]


def mdot(mats):
    r"""Computes the dot-product of multiple matrices.

    Parameters
    ----------
    mats : (L, N, N) array_like
        The input matrices in the order they are multiplied.

    Returns
    -------
    prod : (N, N) np.ndarray
        The dot-product of multiple matrices.
    """
    prod = mats[0]
    for mat in mats[1:]:
        prod = np.dot(prod, mat)
    return prod


def decompose_qrp(a):
    """Performs a QRP decomposition (with column pivoting) of a square matrix `A`.

    The QR decomposition with column pivoting is defined as:
    .. math:
        A = Q R P

    where `P` is the permutation matrix as a result of the column pivoting.

    Parameters
    ----------
    a : (N, N) np.ndarray
        The input matrix `A` to decompose. Can be real or complex.

    Returns
    -------
    q : (N, N) np.ndarray
        The orthogonal (unitary) matrix `Q`.
    r : (N, N) np.ndarray
        The upper triangular matrix `R`.
    jpvt : (N) np.ndarray
        The column indices which restore the original order of the columns.

    Notes
    -----
    Instead of the perumtation matrix the indices of the columns as a result of the
    pivoting are returned to reduce the memory used. To restore the original order
    of the input matrix columns these can be simply used as indices.
    """
    assert a.shape[0] == a.shape[1]
    q, r, jpvt = la.qr(a, mode="full", pivoting=True)
    # Sort pivoting indices for column pivoting
    return q, r, np.argsort(jpvt)


def reconstruct_qrp(q, r, jpvt):
    """Reconstructs the original matrix `A` from a QRP decomposition."""
    return np.dot(q, r)[:, jpvt]


def decompose_udt(a):
    r"""Performs a UDT decomposition of a square matrix `A`.

    The UDT decomposition can be constructed from the result of a QRP decomposition.
    Starting from
    .. math::
        A = Q R P

    The matrix `D` is given by the diagonal entries of the upper triangular matrix `R`:
    .. math::
        D = \diag(\abs(R))

    The definition of `D` makes the matrix `T` well-conditioned. It's columns are
    scaled by the inverse of `D`:
    .. math::
        T = D^{-1} R P

    Parameters
    ----------
    a : (N, N) np.ndarray
        The input matrix `A` to decompose.

    Returns
    -------
    u : (N, N) np.ndarray
        The orthogonal matrix `U`.
    d : (N) np.ndarray
        The diagonal entries of the matrix `D`.
    t : (N, N) np.ndarray
        The well-conditioned matrix `T`.
    """
    q, r, jpvt = decompose_qrp(a)
    # Extract diagonal entries of R
    d = np.abs(np.diag(r))
    d[d == 0.0] = 1.0
    # Scale rows of R by elements of 1/D and apply column pivoting
    t = (r / d[:, np.newaxis])[:, jpvt]
    return q, d, t


def reconstruct_udt(u, d, t):
    """Reconstructs the original matrix `A` from a UDT decomposition."""
    return np.dot(u, d[:, np.newaxis] * t)


def udt_chain(mats, safe_mult=1):
    r"""Computes the stabilized product of a chain of matrices as UDT decomposition.

    Parameters
    ----------
    mats : sequence of (N, N) np.ndarray
        The matrices :math:`B_1, B_2, ..., B_K`. The product is built in reverse
        order, i.e. :math:`B_K \cdots B_2 B_1`.
    safe_mult : int, optional
        The number of matrices multiplied explicitly before an intermediate
        UDT decomposition is performed.

    Returns
    -------
    u : (N, N) np.ndarray
    d : (N, ) np.ndarray
    t : (N, N) np.ndarray
        The UDT decomposition of the product. An empty chain results in the
        decomposition of the identity.
    """
    if safe_mult < 1:
        raise ValueError(f"`safe_mult` has to be positive, not {safe_mult}!")
    num_mats = len(mats)
    if num_mats == 0:
        raise ValueError("Can't compute the product of an empty chain!")

    n = mats[0].shape[0]
    dtype = np.result_type(*[m.dtype for m in mats])
    u = np.eye(n, dtype=dtype)
    d = np.ones(n, dtype=np.float64)
    t = np.eye(n, dtype=dtype)
    for start in range(0, num_mats, safe_mult):
        # Compute X = (B_k ... B_j U) D
        tmp = u * d
        for mat in mats[start:start + safe_mult]:
            tmp = np.dot(mat, tmp)
        # Use X to compute U_{i+1}, D_{i+1}, T and T_{i+1} = T T_i
        u, d, t_new = decompose_udt(tmp)
        t = np.dot(t_new, t)
    return u, d, t


def udt_product(u_l, d_l, t_l, u_r, d_r, t_r):
    """Computes the UDT decomposition of the product of two UDT decompositions.

    The product :math:`U_l D_l T_l U_r D_r T_r` is stabilized by the intermediate
    decomposition of :math:`D_l (T_l U_r) D_r`.
    """
    tmp = d_l[:, np.newaxis] * np.dot(t_l, u_r) * d_r
    u_c, d, t_c = decompose_udt(tmp)
    return np.dot(u_l, u_c), d, np.dot(t_c, t_r)


def inv_one_plus_udt(u, d, t, out=None):
    r"""Computes :math:`(I + U D T)^{-1}` in a numerically stable way.

    Parameters
    ----------
    u : (N, N) np.ndarray
        The orthogonal (unitary) matrix `U`.
    d : (N, ) np.ndarray
        The (non-negative) diagonal entries of `D`.
    t : (N, N) np.ndarray
        The well-conditioned matrix `T`.
    out : (N, N) np.ndarray, optional
        Output array. If not given a new array is allocated.

    Returns
    -------
    out : (N, N) np.ndarray

    Notes
    -----
    The diagonal matrix is split into :math:`D = D_b D_s` with
    :math:`D_b = \max(D, 1)` and :math:`D_s = \min(D, 1)`:
    ..math::
        (I + U D T)^{-1} = (D_b^{-1} U^† + D_s T)^{-1} D_b^{-1} U^†
    """
    db = np.maximum(d, 1.0)
    ds = np.minimum(d, 1.0)
    db_inv_uh = u.conj().T / db[:, np.newaxis]
    lhs = db_inv_uh + ds[:, np.newaxis] * t
    res = la.solve(lhs, db_inv_uh)
    if out is None:
        return res
    out[:, :] = res
    return out


def vmul(out, a, b):
    """Computes the matrix product `a @ b` and stores the result in `out`.

    Either of the two operands may be a scipy sparse matrix. The output must not
    share memory with one of the operands.
    """
    if sparse.issparse(b):
        # (A B)^T = B^T A^T, keeps the sparse matrix on the left
        out[:, :] = (b.T @ a.T).T
    elif sparse.issparse(a):
        out[:, :] = a @ b
    else:
        np.matmul(a, b, out=out)
    return out


class BlockDiagonal:
    """Block-diagonal matrix with equally sized square blocks.

    Parameters
    ----------
    blocks : sequence of (n, n) array_like
        The diagonal blocks, one for each flavor.
    """

    def __init__(self, blocks):
        blocks = [np.asarray(b) for b in blocks]
        size = blocks[0].shape
        for b in blocks:
            if b.shape != size or size[0] != size[1]:
                raise ValueError("All blocks have to be square and of the same size!")
        self.blocks = blocks

    @classmethod
    def from_dense(cls, matrix, num_blocks):
        """Extracts the diagonal blocks of a dense matrix."""
        matrix = np.asarray(matrix)
        n = matrix.shape[0] // num_blocks
        return cls([matrix[k * n:(k + 1) * n, k * n:(k + 1) * n]
                    for k in range(num_blocks)])

    @property
    def num_blocks(self):
        return len(self.blocks)

    @property
    def block_size(self):
        return self.blocks[0].shape[0]

    @property
    def shape(self):
        n = self.num_blocks * self.block_size
        return n, n

    @property
    def dtype(self):
        return np.result_type(*self.blocks)

    def toarray(self):
        return la.block_diag(*self.blocks)

    def __array__(self, dtype=None, copy=None):
        arr = self.toarray()
        return arr if dtype is None else arr.astype(dtype)

    def __repr__(self):
        return f"{self.__class__.__name__}(blocks={self.num_blocks}, size={self.block_size})"
