# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

r"""Measurement kernels evaluating observables from Green's functions via Wick's theorem.

Every kernel is called as `kernel(mc, model, sites, G)` or, if the kernel consumes the
whole matrix, as `kernel(mc, model, G)`. The Green's function `G` is either a single
equal-time matrix or the packed tuple `(G00, G0l, Gl0, Gll)` of a time-displaced
measurement.

Notes
-----
The following relations are used throughout:
..math::
    G_{ij} = <c_i c_j^†>
    <c_i^† c_j> = δ_{ij} - G_{ji}
    G^{l0}_{ij} = <c_i(l) c_j(0)^†>
    G^{0l}_{ij} = -<c_j(l)^† c_i(0)>

The spin-up block of `G` is `G[:N, :N]`, the spin-down block `G[N:, N:]`. The
anticommutator :math:'δ_{ij}' only contributes to the mixed time matrices `G0l` and
`Gl0` if both operators act at the same time, which is the case for a single
equal-time matrix and for packed Green's functions of the time slice `0`. The kernels
of a single matrix are therefore evaluated as the packed kernels of `(G, G, G, G)`.
"""

import logging
import numpy as np
from numba import njit
from .linalg import BlockDiagonal

logger = logging.getLogger("dqmcwick")

__all__ = [
    "checkflavors", "greens_kernel", "occupation_kernel", "cdc_kernel",
    "mx_kernel", "my_kernel", "mz_kernel", "sdc_x_kernel", "sdc_y_kernel",
    "sdc_z_kernel", "pc_kernel", "pc_alt_kernel", "pc_combined_kernel",
    "pc_ref_kernel", "cc_kernel", "nonintE", "nonintE_kernel", "intE_kernel",
    "totalE_kernel"
]


def checkflavors(model, N=2):
    """Warns if the model does not have the number of flavors a kernel assumes.

    The kernels still run for a mismatching model. Site-flavor indices outside of
    the Green's function raise an `IndexError`.
    """
    if model.nflavors != N:
        logger.warning("%s flavors are required, but %s have been found",
                       N, model.nflavors)


def _unpack(G):
    """Returns the packed Green's functions and the weight of the anticommutator."""
    if isinstance(G, tuple):
        G00, G0l, Gl0, Gll = G
        slice = getattr(G, "slice", 0)
        return G00, G0l, Gl0, Gll, 1.0 if slice == 0 else 0.0
    return G, G, G, G, 1.0


def _equal_time(G):
    return G[3] if isinstance(G, tuple) else G


@njit(nogil=True, cache=True)
def _eye(a, b):
    return 1.0 if a == b else 0.0


# =========================================================================================
# Compiled Wick contractions
# =========================================================================================


@njit(nogil=True, cache=True, boundscheck=True)
def _cdc(i, j, N, G00, G0l, Gl0, Gll, id):
    dij = id * _eye(j, i)
    # <n↑(l) n↑(0)>
    res = (1 - Gll[i, i]) * (1 - G00[j, j]) + (dij - G0l[j, i]) * Gl0[i, j]
    # <n↑(l) n↓(0)>
    res += (1 - Gll[i, i]) * (1 - G00[j+N, j+N]) - G0l[j+N, i] * Gl0[i, j+N]
    # <n↓(l) n↑(0)>
    res += (1 - Gll[i+N, i+N]) * (1 - G00[j, j]) - G0l[j, i+N] * Gl0[i+N, j]
    # <n↓(l) n↓(0)>
    res += (1 - Gll[i+N, i+N]) * (1 - G00[j+N, j+N]) \
        + (dij - G0l[j+N, i+N]) * Gl0[i+N, j+N]
    return res


@njit(nogil=True, cache=True, boundscheck=True)
def _sdc_x(i, j, N, G00, G0l, Gl0, Gll, id):
    dij = id * _eye(j, i)
    res = Gll[i+N, i] * G00[j+N, j] - G0l[j+N, i] * Gl0[i+N, j]
    res += Gll[i+N, i] * G00[j, j+N] + (dij - G0l[j, i]) * Gl0[i+N, j+N]
    res += Gll[i, i+N] * G00[j+N, j] + (dij - G0l[j+N, i+N]) * Gl0[i, j]
    res += Gll[i, i+N] * G00[j, j+N] - G0l[j, i+N] * Gl0[i, j+N]
    return res


@njit(nogil=True, cache=True, boundscheck=True)
def _sdc_y(i, j, N, G00, G0l, Gl0, Gll, id):
    dij = id * _eye(j, i)
    res = -Gll[i+N, i] * G00[j+N, j] + G0l[j+N, i] * Gl0[i+N, j]
    res += Gll[i+N, i] * G00[j, j+N] + (dij - G0l[j, i]) * Gl0[i+N, j+N]
    res += Gll[i, i+N] * G00[j+N, j] + (dij - G0l[j+N, i+N]) * Gl0[i, j]
    res += -Gll[i, i+N] * G00[j, j+N] + G0l[j, i+N] * Gl0[i, j+N]
    return res


@njit(nogil=True, cache=True, boundscheck=True)
def _sdc_z(i, j, N, G00, G0l, Gl0, Gll, id):
    dij = id * _eye(j, i)
    res = (1 - Gll[i, i]) * (1 - G00[j, j]) + (dij - G0l[j, i]) * Gl0[i, j]
    res += -(1 - Gll[i, i]) * (1 - G00[j+N, j+N]) + G0l[j+N, i] * Gl0[i, j+N]
    res += -(1 - Gll[i+N, i+N]) * (1 - G00[j, j]) + G0l[j, i+N] * Gl0[i+N, j]
    res += (1 - Gll[i+N, i+N]) * (1 - G00[j+N, j+N]) \
        + (dij - G0l[j+N, i+N]) * Gl0[i+N, j+N]
    return res


@njit(nogil=True, cache=True, boundscheck=True)
def _pc(src1, trg1, src2, trg2, N, Gl0):
    # Δ(src1, trg1)(l) Δ^†(src2, trg2)(0)
    return Gl0[src1, src2] * Gl0[trg1+N, trg2+N] - Gl0[src1, trg2+N] * Gl0[trg1+N, src2]


@njit(nogil=True, cache=True, boundscheck=True)
def _pc_alt(src1, trg1, src2, trg2, N, G0l, id):
    # Δ^†(src1, trg1)(l) Δ(src2, trg2)(0)
    res = (id * _eye(trg2, trg1) - G0l[trg2+N, trg1+N]) \
        * (id * _eye(src2, src1) - G0l[src2, src1])
    # Inter-flavor elements of I - G0l carry no anticommutator
    res -= G0l[src2, trg1+N] * G0l[trg2+N, src1]
    return res


@njit(nogil=True, cache=True, boundscheck=True)
def _pc_ref(src1, trg1, src2, trg2, N, G0l, Gl0, id):
    res = Gl0[src1+N, src2+N] * Gl0[trg1, trg2] - Gl0[src1+N, trg2] * Gl0[trg1, src2+N]
    res += (id * _eye(trg2, trg1) - G0l[trg2, trg1]) \
        * (id * _eye(src2, src1) - G0l[src2+N, src1+N])
    res -= G0l[src2+N, trg1] * G0l[trg2, src1+N]
    return res


@njit(nogil=True, cache=True, boundscheck=True)
def _cc(src1, trg1, src2, trg2, N, T, G00, G0l, Gl0, Gll, id):
    res = 0.0 * G00[0, 0]
    for f1 in range(2):
        for f2 in range(2):
            s1 = src1 + f1 * N
            t1 = trg1 + f1 * N
            s2 = src2 + f2 * N
            t2 = trg2 + f2 * N
            bond2 = T[t2, s2] * (_eye(s2, t2) - Gll[s2, t2]) \
                - T[s2, t2] * (_eye(t2, s2) - Gll[t2, s2])
            bond1 = T[t1, s1] * (_eye(s1, t1) - G00[s1, t1]) \
                - T[s1, t1] * (_eye(t1, s1) - G00[t1, s1])
            # -<c_b^†(l) c_a(0)>
            g_s1t2 = G0l[s1, t2] - id * _eye(s1, t2)
            g_t1t2 = G0l[t1, t2] - id * _eye(t1, t2)
            g_s1s2 = G0l[s1, s2] - id * _eye(s1, s2)
            g_t1s2 = G0l[t1, s2] - id * _eye(t1, s2)
            res -= bond2 * bond1 \
                - T[t2, s2] * T[t1, s1] * g_s1t2 * Gl0[s2, t1] \
                + T[t2, s2] * T[s1, t1] * g_t1t2 * Gl0[s2, s1] \
                + T[s2, t2] * T[t1, s1] * g_s1s2 * Gl0[t2, t1] \
                - T[s2, t2] * T[s1, t1] * g_t1s2 * Gl0[t2, s1]
    return res


# =========================================================================================
# Kernels
# =========================================================================================


def greens_kernel(mc, model, G):
    """Returns the Green's function itself."""
    return G


def occupation_kernel(mc, model, i, G):
    r"""Occupation :math:'<n_i> = 1 - G_{ii}' of a site-flavor index."""
    G = _equal_time(G)
    return 1 - G[i, i]


def cdc_kernel(mc, model, sites, G):
    r"""Charge density correlation :math:'<n_i(l) n_j(0)>' of two sites.

    The density :math:'n_i = n_{i↑} + n_{i↓}' results in four spin combinations, each
    consisting of a disconnected and a Wick exchange contraction.
    """
    i, j = sites
    G00, G0l, Gl0, Gll, id = _unpack(G)
    return _cdc(i, j, model.num_sites, G00, G0l, Gl0, Gll, id)


def mx_kernel(mc, model, i, G):
    r"""Local magnetization :math:'<m_x> = <c_{i↑}^† c_{i↓} + c_{i↓}^† c_{i↑}>'."""
    G = _equal_time(G)
    N = model.num_sites
    return -G[i+N, i] - G[i, i+N]


def my_kernel(mc, model, i, G):
    """Local magnetization in y-direction.

    The factor `-1j` is skipped, the result has to be multiplied by `-1j`.
    """
    G = _equal_time(G)
    N = model.num_sites
    return G[i+N, i] - G[i, i+N]


def mz_kernel(mc, model, i, G):
    r"""Local magnetization :math:'<m_z> = <n_{i↑} - n_{i↓}>'."""
    G = _equal_time(G)
    N = model.num_sites
    return G[i+N, i+N] - G[i, i]


def sdc_x_kernel(mc, model, sites, G):
    r"""Spin density correlation :math:'<m_{x,i}(l) m_{x,j}(0)>' of two sites."""
    i, j = sites
    G00, G0l, Gl0, Gll, id = _unpack(G)
    return _sdc_x(i, j, model.num_sites, G00, G0l, Gl0, Gll, id)


def sdc_y_kernel(mc, model, sites, G):
    r"""Spin density correlation :math:'<m_{y,i}(l) m_{y,j}(0)>' of two sites."""
    i, j = sites
    G00, G0l, Gl0, Gll, id = _unpack(G)
    return _sdc_y(i, j, model.num_sites, G00, G0l, Gl0, Gll, id)


def sdc_z_kernel(mc, model, sites, G):
    r"""Spin density correlation :math:'<m_{z,i}(l) m_{z,j}(0)>' of two sites."""
    i, j = sites
    G00, G0l, Gl0, Gll, id = _unpack(G)
    return _sdc_z(i, j, model.num_sites, G00, G0l, Gl0, Gll, id)


def pc_kernel(mc, model, sites, G):
    r"""Pairing correlation :math:'<Δ(l) Δ^†(0)>' of the bonds `src1-trg1`, `src2-trg2`.

    ..math::
        Δ^†(i, j) = c_{i↑}^† c_{j↓}^†
    """
    src1, trg1, src2, trg2 = sites
    Gl0 = _unpack(G)[2]
    return _pc(src1, trg1, src2, trg2, model.num_sites, Gl0)


def pc_alt_kernel(mc, model, sites, G):
    r"""Hermitian conjugate pairing correlation :math:'<Δ^†(l) Δ(0)>'.

    Built from the blocks of :math:'I - G^{0l}' instead of :math:'G^{l0}'.
    """
    src1, trg1, src2, trg2 = sites
    _, G0l, _, _, id = _unpack(G)
    return _pc_alt(src1, trg1, src2, trg2, model.num_sites, G0l, id)


def pc_combined_kernel(mc, model, sites, G):
    r"""Combined pairing correlation :math:'<Δ^† Δ + Δ Δ^†>'."""
    return pc_kernel(mc, model, sites, G) + pc_alt_kernel(mc, model, sites, G)


def pc_ref_kernel(mc, model, sites, G):
    """Combined pairing correlation with spin-up and spin-down swapped."""
    src1, trg1, src2, trg2 = sites
    _, G0l, Gl0, _, id = _unpack(G)
    return _pc_ref(src1, trg1, src2, trg2, model.num_sites, G0l, Gl0, id)


def cc_kernel(mc, model, sites, G):
    r"""Current-current correlation :math:'<j_{t2-s2}(s2, l) j_{t1-s1}(s1, 0)>'.

    The current along the bond `s-t` is
    ..math::
        j_{t-s}(s) = i Σ_σ [T_{ts} c_{tσ}^† c_{sσ} - T_{st} c_{sσ}^† c_{tσ}]

    The hopping matrix of the simulation is used as weight of the bond operators.
    """
    src1, trg1, src2, trg2 = sites
    G00, G0l, Gl0, Gll, id = _unpack(G)
    T = mc.stack.dense_hopping_matrix
    return _cc(src1, trg1, src2, trg2, model.num_sites, T, G00, G0l, Gl0, Gll, id)


def nonintE(T, G):
    r"""Computes the non-interacting energy :math:'Σ_{ij} T_{ji} (δ_{ij} - G_{ij})'.

    Parameters
    ----------
    T : (M, M) np.ndarray or BlockDiagonal
        The hopping matrix. If `T` is block-diagonal only the corresponding diagonal
        blocks of `G` are contracted.
    G : (M, M) np.ndarray or BlockDiagonal
        The equal-time Green's function.
    """
    if isinstance(T, BlockDiagonal):
        n = T.block_size
        res = 0.0
        for k, t in enumerate(T.blocks):
            if isinstance(G, BlockDiagonal):
                g = G.blocks[k]
            else:
                g = G[k*n:(k+1)*n, k*n:(k+1)*n]
            res += np.sum(t.T * (np.eye(n) - g))
        return res
    T = np.asarray(T)
    G = np.asarray(G)
    return np.sum(T.T * (np.eye(G.shape[0]) - G))


def nonintE_kernel(mc, model, G):
    """Non-interacting energy of all physical flavors."""
    G = _equal_time(G)
    return model.degeneracy * nonintE(mc.stack.hopping_matrix, G)


def intE_kernel(mc, model, G):
    """Interaction energy of the model."""
    return model.interaction_energy(_equal_time(G))


def totalE_kernel(mc, model, G):
    return nonintE_kernel(mc, model, G) + intE_kernel(mc, model, G)
