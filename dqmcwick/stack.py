# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Workspace of the stabilized DQMC matrix stack and the checkerboard decomposition.

Notes
-----
The symmetric Trotter decomposition
..math::
    e^{-Δτ(T + V)} ≈ e^{-Δτ T / 2} e^{-Δτ V} e^{-Δτ T / 2}

is combined with the cyclic property of the determinant, such that the stack works
with the effective time step matrices :math:'B_l = e^{-Δτ T} e^{V_l}'. The resulting
effective Green's function differs from the physical one by a conjugation with
:math:'e^{±Δτ T / 2}', which is reversed in `dqmcwick.greens`.
"""

import logging
import numpy as np
from scipy.linalg import expm
from scipy.sparse import csr_matrix
from .linalg import BlockDiagonal, udt_chain, udt_product, inv_one_plus_udt

logger = logging.getLogger("dqmcwick")


def checkerboard_groups(ham):
    """Splits the bonds of a hopping matrix into groups of non-overlapping bonds.

    Parameters
    ----------
    ham : (N, N) array_like
        The hopping matrix `T`.

    Returns
    -------
    groups : list of list of tuple
        The bond groups. Each bond `(i, j)` with `i < j` appears in exactly one
        group and no site appears twice in the same group. If the matrix has a
        non-zero diagonal it is returned as first group of onsite terms `(i, i)`.
    """
    ham = np.asarray(ham)
    n = ham.shape[0]
    groups = list()
    onsite = [(i, i) for i in range(n) if ham[i, i] != 0]
    if onsite:
        groups.append(onsite)

    bond_groups, occupied = list(), list()
    for i in range(n):
        for j in range(i + 1, n):
            if ham[i, j] == 0 and ham[j, i] == 0:
                continue
            # Greedy coloring: first group where both sites are still free
            for group, sites in zip(bond_groups, occupied):
                if i not in sites and j not in sites:
                    group.append((i, j))
                    sites.update((i, j))
                    break
            else:
                bond_groups.append([(i, j)])
                occupied.append({i, j})
    groups.extend(bond_groups)
    return groups


def build_checkerboard(ham, dtau):
    r"""Computes the checkerboard factors :math:'e^{∓Δτ T_g / 2}' of a hopping matrix.

    Parameters
    ----------
    ham : (N, N) array_like
        The hopping matrix `T`.
    dtau : float
        The imaginary time step `Δτ`.

    Returns
    -------
    chkr_hop_half : list of csr_matrix
        The factors :math:'e^{-Δτ T_g / 2}' of each group.
    chkr_hop_half_inv : list of csr_matrix
        The factors :math:'e^{+Δτ T_g / 2}' of each group.
    """
    ham = np.asarray(ham)
    groups = checkerboard_groups(ham)
    logger.debug("Checkerboard: %d groups of sizes %s", len(groups),
                 [len(g) for g in groups])

    chkr_hop_half, chkr_hop_half_inv = list(), list()
    for group in groups:
        tg = np.zeros_like(ham)
        for i, j in group:
            tg[i, j] = ham[i, j]
            tg[j, i] = ham[j, i]
        minus = expm(-0.5 * dtau * tg)
        plus = expm(+0.5 * dtau * tg)
        chkr_hop_half.append(csr_matrix(minus))
        chkr_hop_half_inv.append(csr_matrix(plus))
    return chkr_hop_half, chkr_hop_half_inv


def _factor_product(factors, size):
    # Product f_{n-1} ... f_1 f_0 as dense matrix, identity without factors
    prod = np.eye(size)
    for factor in factors:
        prod = factor @ prod
    return np.asarray(prod)


class DQMCStack:
    """Buffers and hopping exponentials shared by the Green's function routines.

    Validity of the buffers:
    - `greens`: current effective Green's function, owned by the update scheme.
    - `greens_temp`: default output of `greens_inplace`, overwritten by every call.
    - `Ul, Dl, Tl, Ur, Dr, Tr, curr_U, tmp1, tmp2`: scratch buffers, overwritten by
      `calculate_greens` and the slice-specific Green's function methods. `Ur` is
      also the default scratch buffer of the equal-time basis change.

    Parameters
    ----------
    hopping_matrix : (M, M) np.ndarray or BlockDiagonal
        The hopping matrix `T` of all flavors.
    dtau : float
        The imaginary time step `Δτ`.
    checkerboard : bool, optional
        If `True` the hopping exponentials are represented by checkerboard factors.
    dtype : np.dtype, optional
        The data type of the Green's function buffers.
    """

    def __init__(self, hopping_matrix, dtau, checkerboard=False, dtype=np.float64):
        self.hopping_matrix = hopping_matrix
        self.dtau = dtau
        self.checkerboard = checkerboard

        ham = np.asarray(hopping_matrix)
        self._dense_hopping_matrix = ham
        size = ham.shape[0]
        dtype = np.result_type(dtype, ham.dtype)

        if checkerboard:
            minus, plus = build_checkerboard(ham, dtau)
            self.chkr_hop_half = minus
            self.chkr_hop_half_inv = plus
            self.n_groups = len(minus)
            # e^{-Δτ T / 2} = f_{n-1} ... f_0 and e^{+Δτ T / 2} = f_0^{-1} ... f_{n-1}^{-1}
            eth_minus = _factor_product(minus, size)
            eth_plus = _factor_product(plus[::-1], size)
        else:
            self.chkr_hop_half = list()
            self.chkr_hop_half_inv = list()
            self.n_groups = 0
            eth_minus = expm(-0.5 * dtau * ham)
            eth_plus = expm(+0.5 * dtau * ham)

        self.hopping_matrix_exp = np.ascontiguousarray(eth_minus, dtype=dtype)
        self.hopping_matrix_exp_inv = np.ascontiguousarray(eth_plus, dtype=dtype)
        self.hopping_matrix_exp_squared = np.dot(eth_minus, eth_minus).astype(dtype)
        self.hopping_matrix_exp_inv_squared = np.dot(eth_plus, eth_plus).astype(dtype)
        logger.debug("min(e^-T/2)=%s", np.min(np.abs(eth_minus)))
        logger.debug("max(e^-T/2)=%s", np.max(np.abs(eth_minus)))

        shape = (size, size)
        self.greens = np.zeros(shape, dtype=dtype)
        self.greens_temp = np.zeros(shape, dtype=dtype)
        self.Ul = np.zeros(shape, dtype=dtype)
        self.Dl = np.zeros(size, dtype=np.float64)
        self.Tl = np.zeros(shape, dtype=dtype)
        self.Ur = np.zeros(shape, dtype=dtype)
        self.Dr = np.zeros(size, dtype=np.float64)
        self.Tr = np.zeros(shape, dtype=dtype)
        self.curr_U = np.zeros(shape, dtype=dtype)
        self.tmp1 = np.zeros(shape, dtype=dtype)
        self.tmp2 = np.zeros(shape, dtype=dtype)

    @classmethod
    def from_model(cls, model, dtau, checkerboard=False, block=False):
        """Creates the stack for a model with time step `Δτ`."""
        hop = model.hopping_matrix(block=block)
        return cls(hop, dtau, checkerboard)

    @property
    def size(self):
        return self.greens.shape[0]

    @property
    def dense_hopping_matrix(self):
        """np.ndarray: The hopping matrix `T` as dense array."""
        return self._dense_hopping_matrix

    @property
    def is_block_diagonal(self):
        return isinstance(self.hopping_matrix, BlockDiagonal)


def calculate_greens(mc, slice, output):
    r"""Computes the effective equal-time Green's function at a time slice.

    .. math::
        G(l) = [I + B_l \cdots B_1 B_L \cdots B_{l+1}]^{-1}

    Overwrites the stack buffers `Ul, Dl, Tl, Ur, Dr, Tr` and `curr_U`.

    Parameters
    ----------
    mc : DQMC
        The simulation context providing `stack`, `bmats` and `safe_mult`.
    slice : int
        The time slice index `0 <= l <= L`.
    output : (M, M) np.ndarray
        Output array of the effective Green's function.

    Returns
    -------
    output : (M, M) np.ndarray
    """
    stack = mc.stack
    bmats = mc.bmats
    num_times = len(bmats)
    if not 0 <= slice <= num_times:
        raise ValueError(f"Time slice {slice} out of range [0, {num_times}]!")

    right = bmats[:slice]
    left = bmats[slice:]
    if len(right):
        stack.Ur[:], stack.Dr[:], stack.Tr[:] = udt_chain(right, mc.safe_mult)
    else:
        stack.Ur[:] = np.eye(stack.size)
        stack.Dr[:] = 1.0
        stack.Tr[:] = np.eye(stack.size)
    if len(left):
        stack.Ul[:], stack.Dl[:], stack.Tl[:] = udt_chain(left, mc.safe_mult)
    else:
        stack.Ul[:] = np.eye(stack.size)
        stack.Dl[:] = 1.0
        stack.Tl[:] = np.eye(stack.size)

    # B_l ... B_1 B_L ... B_{l+1} = (U_r D_r T_r) (U_l D_l T_l)
    u, d, t = udt_product(stack.Ur, stack.Dr, stack.Tr, stack.Ul, stack.Dl, stack.Tl)
    stack.curr_U[:] = u
    return inv_one_plus_udt(stack.curr_U, d, t, out=output)
