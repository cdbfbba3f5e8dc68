# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Lattice iterators enumerating the site indices passed to a measurement kernel.

A lattice iterator is called as `iterator(mc, model)`. Iterating over it yields pairs
`(slot, sites)`, where `slot` is the index of the output array of shape `shape` the
kernel value is added to.
"""

import logging
import numpy as np

logger = logging.getLogger("dqmcwick")

__all__ = [
    "EachSite", "EachSiteAndFlavor", "EachSitePairByDistance",
    "EachLocalQuadByDistance", "EachLocalQuadBySyncedDistance", "Sum", "Fourier",
    "SuperfluidDensity"
]


def default_num_directions(model):
    """The onsite direction and all nearest neighbor directions."""
    return 1 + model.num_nearest_neighbors


class LatticeIterator:

    def __init__(self, mc, model):
        self.mc = mc
        self.model = model

    @property
    def shape(self):
        raise NotImplementedError()

    def __iter__(self):
        raise NotImplementedError()

    def __len__(self):
        return sum(1 for _ in self)

    def accumulate(self, kernel, mc, model, G, out):
        """Adds the kernel values of all site tuples to the slots of `out`."""
        for slot, sites in self:
            out[slot] += kernel(mc, model, sites, G)
        return out


class EachSite(LatticeIterator):
    """Yields `(i, i)` for every site `i`."""

    @property
    def shape(self):
        return (self.model.num_sites, )

    def __iter__(self):
        for i in range(self.model.num_sites):
            yield i, i


class EachSiteAndFlavor(LatticeIterator):
    """Yields `(i, i)` for every site-flavor index `i`."""

    @property
    def shape(self):
        return (self.model.num_sites * self.model.nflavors, )

    def __iter__(self):
        for i in range(self.model.num_sites * self.model.nflavors):
            yield i, i


class EachSitePairByDistance(LatticeIterator):
    """Yields all site pairs `(i, j)`, binned by the direction from `i` to `j`."""

    @property
    def shape(self):
        return (len(self.model.site_directions), )

    def __iter__(self):
        dir_index = self.model.dir_index
        n = self.model.num_sites
        for i in range(n):
            for j in range(n):
                yield dir_index[i, j], (i, j)


class EachLocalQuadByDistance(LatticeIterator):
    """Yields site quadruples `(src1, trg1, src2, trg2)` of two local bonds.

    The bonds start at `src1` and `src2` and point along the first `K` directions
    (`trg = src` for the onsite direction). The output is binned by the direction
    from `src1` to `src2` and both bond directions. Bonds leaving the lattice are
    skipped.
    """

    def __init__(self, mc, model, K=None):
        super().__init__(mc, model)
        self.K = default_num_directions(model) if K is None else K
        self._trg = None

    @property
    def shape(self):
        return len(self.model.site_directions), self.K, self.K

    def _targets(self):
        if self._trg is None:
            model = self.model
            trg = np.zeros((model.num_sites, self.K), dtype=np.int64)
            for src in range(model.num_sites):
                for k in range(self.K):
                    trg[src, k] = model.shifted(src, k)
            self._trg = trg
        return self._trg

    def __iter__(self):
        dir_index = self.model.dir_index
        trg = self._targets()
        n = self.model.num_sites
        for src1 in range(n):
            for src2 in range(n):
                d = dir_index[src1, src2]
                for k1 in range(self.K):
                    trg1 = trg[src1, k1]
                    if trg1 < 0:
                        continue
                    for k2 in range(self.K):
                        trg2 = trg[src2, k2]
                        if trg2 < 0:
                            continue
                        yield (d, k1, k2), (src1, int(trg1), src2, int(trg2))


class EachLocalQuadBySyncedDistance(EachLocalQuadByDistance):
    """Like `EachLocalQuadByDistance`, but both bonds point in the same direction."""

    @property
    def shape(self):
        return len(self.model.site_directions), self.K

    def __iter__(self):
        dir_index = self.model.dir_index
        trg = self._targets()
        n = self.model.num_sites
        for src1 in range(n):
            for src2 in range(n):
                d = dir_index[src1, src2]
                for k in range(self.K):
                    trg1, trg2 = trg[src1, k], trg[src2, k]
                    if trg1 < 0 or trg2 < 0:
                        continue
                    yield (d, k), (src1, int(trg1), src2, int(trg2))


class Sum(LatticeIterator):
    """Wraps a lattice iterator and sums all kernel values into a scalar.

    Parameters
    ----------
    mc : DQMC
    model : HubbardModel
    iterator : type
        The wrapped lattice iterator class.
    **kwargs
        Keyword arguments of the wrapped lattice iterator.
    """

    def __init__(self, mc, model, iterator=EachSite, **kwargs):
        super().__init__(mc, model)
        self.iterator = iterator(mc, model, **kwargs)

    @property
    def shape(self):
        return ()

    def __iter__(self):
        for _, sites in self.iterator:
            yield (), sites


def _distance_sites(sites):
    # Pairs `(i, j)` and bond quadruples `(src1, trg1, src2, trg2)`
    if len(sites) == 4:
        return sites[0], sites[2]
    return sites[0], sites[1]


class Fourier(LatticeIterator):
    r"""Wraps a distance binned lattice iterator and Fourier transforms the distance.

    The kernel value of each site tuple is weighted by :math:'\cos(q \cdot (r_i - r_j))',
    where `i, j` are the two sites of a pair or the two source sites of a bond
    quadruple. The leading distance slot of the wrapped iterator is replaced by the
    index of the wave vector `q`. The sine part vanishes for correlations symmetric
    under inversion and is not computed.

    Parameters
    ----------
    mc : DQMC
    model : HubbardModel
    iterator : type, optional
        The wrapped lattice iterator class. The default is `EachSitePairByDistance`.
    qs : (Q, D) array_like, optional
        The wave vectors. Defaults to the single vector `q = 0`.
    **kwargs
        Keyword arguments of the wrapped lattice iterator.
    """

    def __init__(self, mc, model, iterator=EachSitePairByDistance, qs=None, **kwargs):
        super().__init__(mc, model)
        self.iterator = iterator(mc, model, **kwargs)
        dim = model.site_positions.shape[1]
        if qs is None:
            qs = np.zeros((1, dim))
        qs = np.atleast_2d(np.asarray(qs, dtype=np.float64))
        if qs.shape[1] != dim:
            raise ValueError(f"Wave vectors must have {dim} components, "
                             f"not {qs.shape[1]}!")
        self.qs = qs

    @property
    def shape(self):
        return (len(self.qs), ) + tuple(self.iterator.shape[1:])

    def __iter__(self):
        for slot, sites in self.iterator:
            rest = slot[1:] if isinstance(slot, tuple) else ()
            for iq in range(len(self.qs)):
                yield (iq, ) + rest, sites

    def accumulate(self, kernel, mc, model, G, out):
        pos = model.site_positions
        for slot, sites in self.iterator:
            rest = slot[1:] if isinstance(slot, tuple) else ()
            i, j = _distance_sites(sites)
            phases = np.cos(self.qs @ (pos[i] - pos[j]))
            value = kernel(mc, model, sites, G)
            for iq in range(len(self.qs)):
                out[(iq, ) + rest] += phases[iq] * value
        return out


class SuperfluidDensity(LatticeIterator):
    r"""Fourier weights of the current-current correlation of nearest neighbor bonds.

    Both bonds of a quadruple point along the same nearest neighbor direction. For a
    bond along the axis `a` the longitudinal wave vector :math:'q_L' is the smallest
    non-zero momentum along `a`, the transverse wave vector :math:'q_T' the smallest
    non-zero momentum along the next axis. The kernel values are summed with
    ..math::
        w = [\cos(q_L \cdot Δr) - \cos(q_T \cdot Δr)] / N,   Δr = r_{src1} - r_{src2}

    which results in :math:'Λ_L - Λ_T'. The superfluid density is given by
    :math:'ρ_s = (Λ_L - Λ_T) / 4'.

    Parameters
    ----------
    mc : DQMC
    model : HubbardModel
    Ls : sequence of int, optional
        The number of sites along each axis. Defaults to the grid shape of the model.
    K : int, optional
        The number of bond directions including the onsite direction.
    """

    def __init__(self, mc, model, Ls=None, K=None):
        super().__init__(mc, model)
        self.iterator = EachLocalQuadBySyncedDistance(mc, model, K)
        if self.iterator.K <= 1:
            raise ValueError("At least one bond direction is required, got K="
                             f"{self.iterator.K}!")
        if Ls is None:
            Ls = model.grid_shape
        if Ls is None:
            raise ValueError("The system size `Ls` is required!")
        Ls = tuple(int(x) for x in np.atleast_1d(Ls))
        dim = len(Ls)
        if dim < 2:
            raise ValueError("The superfluid density requires at least two dimensions!")

        self.Ls = Ls
        self.dir_idxs = list()
        self.longs = list()
        self.trans = list()
        for k in range(1, self.iterator.K):
            vec = np.asarray(model.site_directions[k])
            axes = np.nonzero(vec)[0]
            if len(axes) != 1 or abs(vec[axes[0]]) != 1:
                logger.warning("Skipping %s - not a nearest neighbor", vec)
                continue
            ax = int(axes[0])
            other = (ax + 1) % dim
            long = np.zeros(dim)
            long[ax] = 2 * np.pi / Ls[ax]
            trans = np.zeros(dim)
            trans[other] = 2 * np.pi / Ls[other]
            self.dir_idxs.append(k)
            self.longs.append(long)
            self.trans.append(trans)
        self._dir_map = {k: i for i, k in enumerate(self.dir_idxs)}

    @property
    def shape(self):
        return ()

    def __iter__(self):
        for (_, k), sites in self.iterator:
            if k in self._dir_map:
                yield (), sites

    def accumulate(self, kernel, mc, model, G, out):
        pos = model.site_positions
        norm = 1 / model.num_sites
        for (_, k), sites in self.iterator:
            i = self._dir_map.get(k)
            if i is None:
                continue
            src1, _, src2, _ = sites
            dr = pos[src1] - pos[src2]
            w = np.cos(self.longs[i] @ dr) - np.cos(self.trans[i] @ dr)
            out[()] += norm * w * kernel(mc, model, sites, G)
        return out
