# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

r"""Iterators yielding the Green's functions required by a measurement.

A Green's function iterator is called as `iterator(mc, model)` and yields pairs of
`(weight, G)`. The weight is used for integrating the measurement over the imaginary
time, i.e. it is `1` for equal-time measurements and `Δτ` for time-displaced ones.

The time-displaced Green's functions are propagated from the equal-time Green's
function of the first time slice:
..math::
    G(l, 0) = B_l G(l-1, 0)
    G(0, l) = G(0, l-1) B_l^{-1}

with :math:'G(0, 0) = G(0)' and :math:'G(0, 0^+) = G(0) - I'.
"""

import numpy as np
from scipy import linalg as la
from .greens import greens

__all__ = ["PackedGreens", "Greens", "CombinedGreensIterator"]


class PackedGreens(tuple):
    """The packed Green's functions `(G00, G0l, Gl0, Gll)` of a time slice.

    Unpacks like a tuple of four matrices. The time slice `slice` determines whether
    the anticommutator contributes to the mixed time matrices `G0l` and `Gl0`, which
    is only the case for `slice == 0`.
    """

    def __new__(cls, G00, G0l, Gl0, Gll, slice=0):
        self = super().__new__(cls, (G00, G0l, Gl0, Gll))
        self.slice = slice
        return self

    @property
    def G00(self):
        return self[0]

    @property
    def G0l(self):
        return self[1]

    @property
    def Gl0(self):
        return self[2]

    @property
    def Gll(self):
        return self[3]

    def __repr__(self):
        return f"{self.__class__.__name__}(slice={self.slice})"


class Greens:
    """Yields the equal-time Green's function of the current time slice once."""

    def __init__(self, mc, model):
        self.mc = mc

    def __len__(self):
        return 1

    def __iter__(self):
        yield 1.0, greens(self.mc)


class CombinedGreensIterator:
    """Yields the packed Green's functions of all time slices `0 <= l < L`.

    The equal-time Green's functions `Gll` are computed from scratch for every slice,
    the mixed time Green's functions are propagated with the physical time step
    matrices.
    """

    def __init__(self, mc, model):
        self.mc = mc

    def __len__(self):
        return self.mc.num_times

    def __iter__(self):
        mc = self.mc
        g00 = greens(mc, 0)
        yield mc.dtau, PackedGreens(g00, g00, g00, g00, slice=0)

        gl0 = np.copy(g00)
        g0l = g00 - np.eye(g00.shape[0])
        for l in range(1, mc.num_times):
            bmat = mc.physical_slice_matrix(l)
            gl0 = np.dot(bmat, gl0)
            g0l = np.dot(g0l, la.inv(bmat))
            gll = greens(mc, l)
            yield mc.dtau, PackedGreens(g00, g0l, gl0, gll, slice=l)


def iter_greens(greens_iterator, mc, model):
    """Instantiates a Green's function iterator, `None` yields no Green's function."""
    if greens_iterator is None:
        return iter([(1.0, None)])
    return iter(greens_iterator(mc, model))
