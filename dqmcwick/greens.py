# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

r"""Physical equal-time Green's functions.

The matrix stack works with the effective Green's function
..math::
    G_{eff}(l) = [I + B_l \cdots B_1 B_L \cdots B_{l+1}]^{-1}

of the effective time step matrices :math:'B_l = e^{-Δτ T} e^{V_l}'. The physical
Green's function of the symmetric Trotter decomposition is recovered by
..math::
    G(l) = e^{+Δτ T / 2} G_{eff}(l) e^{-Δτ T / 2}
"""

import numpy as np
from .linalg import vmul
from .stack import calculate_greens

__all__ = ["greens", "greens_inplace"]


def _greens_dense(mc, target, source, temp):
    stack = mc.stack
    vmul(temp, source, stack.hopping_matrix_exp)
    vmul(target, stack.hopping_matrix_exp_inv, temp)
    return target


def _greens_checkerboard(mc, target, source, temp):
    stack = mc.stack
    np.copyto(target, source)
    # Right multiplication with e^{-Δτ T / 2} = f_{n-1} ... f_0
    for factor in reversed(stack.chkr_hop_half):
        vmul(temp, target, factor)
        np.copyto(target, temp)
    # Left multiplication with e^{+Δτ T / 2} = f_0^{-1} ... f_{n-1}^{-1}
    for factor in reversed(stack.chkr_hop_half_inv):
        vmul(temp, factor, target)
        np.copyto(target, temp)
    return target


def _greens(mc, target=None, source=None, temp=None):
    """Transforms an effective Green's function into the physical basis.

    `target` defaults to `stack.greens_temp`, `source` to `stack.greens` and the
    scratch buffer `temp` to `stack.Ur`. `target` and `temp` must be distinct from
    `source` and from each other.
    """
    stack = mc.stack
    if target is None:
        target = stack.greens_temp
    if source is None:
        source = stack.greens
    if temp is None:
        temp = stack.Ur
    if mc.checkerboard:
        return _greens_checkerboard(mc, target, source, temp)
    return _greens_dense(mc, target, source, temp)


def _greens_slice(mc, slice, output=None, temp1=None, temp2=None):
    """Computes the physical Green's function of a time slice from scratch.

    Overwrites the stack buffers used by `calculate_greens` and both scratch buffers.
    """
    stack = mc.stack
    if output is None:
        output = stack.greens_temp
    if temp1 is None:
        temp1 = stack.tmp1
    if temp2 is None:
        temp2 = stack.tmp2
    calculate_greens(mc, slice, temp1)
    return _greens(mc, output, temp1, temp2)


def greens_inplace(mc, slice=None, *, output=None, input=None, temp=None,
                   temp1=None, temp2=None):
    """Computes the physical equal-time Green's function into a buffer.

    Parameters
    ----------
    mc : DQMC
        The simulation context.
    slice : int, optional
        The time slice `0 <= l <= L`. If not given the Green's function of the
        current slice is transformed from `stack.greens`.
    output : np.ndarray, optional
        The output buffer. Defaults to `stack.greens_temp`, which is overwritten by
        every call using the default.
    input : np.ndarray, optional
        The effective Green's function used if no slice is given.
    temp, temp1, temp2 : np.ndarray, optional
        Scratch buffers.

    Returns
    -------
    output : np.ndarray
        The buffer containing the result. It is not a copy.
    """
    if slice is None:
        return _greens(mc, output, input, temp)
    return _greens_slice(mc, slice, output, temp1, temp2)


def greens(mc, slice=None):
    """Returns a copy of the physical equal-time Green's function.

    Parameters
    ----------
    mc : DQMC
        The simulation context.
    slice : int, optional
        The time slice `0 <= l <= L`. Defaults to the current time slice.

    Returns
    -------
    gf : (M, M) np.ndarray
    """
    return np.copy(greens_inplace(mc, slice))
