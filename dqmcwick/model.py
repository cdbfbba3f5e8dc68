# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

import math
import numpy as np
from scipy.sparse import csr_matrix
from lattpy import Lattice
from .linalg import BlockDiagonal

__all__ = ["HubbardModel", "AttractiveHubbardModel", "hubbard_hypercube"]


class HubbardModel(Lattice):
    """Repulsive Hubbard lattice model with two spin flavors.

    Parameters
    ----------
    vectors : (D, D) array_like or float
        The vectors that span the basis of the `D`-dimensional lattice.
    u : float, optional
        The onsite interaction energy `U`. The default value is `2.0`.
    eps : float, optional
        The onsite energy `ε`. The default value is `0.0`.
    hop : float, optional
        The absolut value of the hopping parameter `t`. The default value is `1.0`.
        Note that the Hamiltonian is built using the negative of the hopping parameter.
    mu : float, optional
        The chemical chemical potential `μ`. The default is `0`.
        The chemical potential is subtracted from the on-site energy.
    beta : float, optional
        The inverse of the temperature `β=1/T`
    """

    # Number of fermion flavors represented in the Green's function
    nflavors = 2
    # Number of physical flavors described by one flavor of the Green's function
    degeneracy = 1

    def __init__(self, vectors, u=2.0, eps=0.0, hop=1.0, mu=0.0, beta=5.0):
        super().__init__(vectors)
        self.u = u
        self.hop = hop
        self.eps = eps
        self.mu = mu
        self.beta = beta
        self.grid_shape = None
        self.grid_periodic = ()
        self._coords = None
        self._directions = None
        self._dir_index = None

    def set_beta(self, beta):
        """Set's the inverse temperature `β=1/T`."""
        self.beta = beta

    def set_temperature(self, temp):
        """Set's the temperature `T` by computing the inverse temperature `β=1/T`."""
        self.beta = 1 / temp

    def hamiltonian_kinetic(self):
        r"""Builds the kinetic (tight-binding) Hamiltonian for the Hubbard model.

        The tight binding hamiltonian includes the hopping `t`, the on-site energy `ε`
        and the chemical potential `μ`:
        .. math::

            H = - \mathtt{t} Σ_{i,j} c^†_i c_j + Σ_i (\mathtt{ε} - \mathtt{μ}) c^†_i c_i

        Retrurns
        --------
        ham : (N, N) np.ndarray
            The Hamiltonian matrix, where `N` is the number of lattice sites.
        """
        hop = -self.hop
        onsite = self.eps - self.mu

        dmap = self.data.map()
        data = np.zeros(dmap.size, dtype=np.float64)
        data[dmap.onsite()] = onsite
        data[dmap.hopping()] = hop
        n = self.num_sites
        return csr_matrix((data, dmap.indices), shape=(n, n)).toarray()

    def hopping_matrix(self, block=False):
        """Builds the hopping matrix `T` of all flavors.

        Parameters
        ----------
        block : bool, optional
            If `True` a `BlockDiagonal` matrix with one block per flavor is returned,
            otherwise a dense `(F N, F N)` array.
        """
        ham = self.hamiltonian_kinetic()
        if block:
            return BlockDiagonal([ham] * self.nflavors)
        return np.kron(np.eye(self.nflavors), ham)

    def hs_coupling(self, dtau):
        r"""Returns the Hubbard-Stratonovich coupling `ν` defined by :math:'\cosh(ν) = e^{|U| Δτ / 2}'."""
        return math.acosh(math.exp(abs(self.u) * dtau / 2.0)) if self.u else 0.0

    def interaction_exp(self, nu, field):
        r"""Returns the diagonal of :math:'e^{V(h)}' for one column of the HS-field.

        The spin-up block couples with :math:'+ν h_i', the spin-down block with
        :math:'-ν h_i'.
        """
        field = np.asarray(field, dtype=np.float64)
        return np.exp(nu * np.concatenate([field, -field]))

    def interaction_energy(self, gf):
        r"""Computes the interaction energy :math:'U Σ_i <(n_{i↑} - 1/2)(n_{i↓} - 1/2)>'.

        Notes
        -----
        Using Wick's theorem
        ..math::
            <(n_↑ - 1/2)(n_↓ - 1/2)> = (G_{↑↑} - 1/2)(G_{↓↓} - 1/2) - G_{↓↑} G_{↑↓}
        """
        n = self.num_sites
        gf = np.asarray(gf)
        g_uu = np.diag(gf[:n, :n])
        g_dd = np.diag(gf[n:, n:])
        g_ud = np.diag(gf[:n, n:])
        g_du = np.diag(gf[n:, :n])
        return self.u * np.sum((g_uu - 0.5) * (g_dd - 0.5) - g_du * g_ud)

    # ---------------------------------------------------------------------------------
    # Geometry
    # ---------------------------------------------------------------------------------

    def _site_coords(self):
        if self._coords is None:
            pos = np.asarray(self.data.positions, dtype=np.float64)
            coords = np.rint(pos).astype(np.int64)
            self._coords = coords - coords.min(axis=0)
        return self._coords

    def _displacement(self, i, j):
        coords = self._site_coords()
        delta = coords[j] - coords[i]
        if self.grid_shape is not None:
            for ax in self.grid_periodic:
                size = self.grid_shape[ax]
                delta[ax] = (delta[ax] + size // 2) % size - size // 2
        return delta

    def _build_directions(self):
        n = self.num_sites
        vectors = set()
        dir_index = np.zeros((n, n), dtype=np.int64)
        pairs = list()
        for i in range(n):
            for j in range(n):
                vec = tuple(int(x) for x in self._displacement(i, j))
                vectors.add(vec)
                pairs.append((i, j, vec))
        # Sort directions by length, then lexicographically
        dirs = sorted(vectors, key=lambda v: (np.dot(v, v), tuple(-x for x in v)))
        order = {vec: k for k, vec in enumerate(dirs)}
        for i, j, vec in pairs:
            dir_index[i, j] = order[vec]
        self._directions = [np.array(v) for v in dirs]
        self._dir_index = dir_index

    @property
    def site_directions(self):
        """list of np.ndarray: The displacement vectors between sites sorted by length."""
        if self._directions is None:
            self._build_directions()
        return self._directions

    @property
    def dir_index(self):
        """(N, N) np.ndarray: Index of the direction pointing from site `i` to `j`."""
        if self._dir_index is None:
            self._build_directions()
        return self._dir_index

    @property
    def site_positions(self):
        """(N, D) np.ndarray: The integer grid coordinates of the sites."""
        return self._site_coords()

    @property
    def num_nearest_neighbors(self):
        """int: The number of directions of length one."""
        return sum(1 for v in self.site_directions if np.dot(v, v) == 1)

    def shifted(self, site, direction):
        """Returns the site reached from `site` along a direction or `-1`."""
        row = self.dir_index[site]
        matches = np.where(row == direction)[0]
        return int(matches[0]) if len(matches) else -1


class AttractiveHubbardModel(HubbardModel):
    """Attractive Hubbard model where one Green's function describes both spins.

    The interaction `U` is interpreted as attractive, i.e. the Hamiltonian contains
    the term :math:`-|U| Σ_i (n_{i↑} - 1/2)(n_{i↓} - 1/2)`. Due to the spin symmetry
    the Green's function of the spin-up and spin-down sector are identical.
    """

    nflavors = 1
    degeneracy = 2

    def interaction_exp(self, nu, field):
        return np.exp(nu * np.asarray(field, dtype=np.float64))

    def interaction_energy(self, gf):
        r"""Computes :math:'-|U| Σ_i (G_{ii} - 1/2)^2'."""
        gf = np.asarray(gf)
        return -abs(self.u) * np.sum((np.diag(gf) - 0.5) ** 2)


def hubbard_hypercube(shape, u=0.0, eps=0.0, hop=1.0, mu=0.0, beta=0.0, periodic=None,
                      attractive=False):
    """Construct a `d`-dimensional Hubbard model.

    Parameters
    ----------
    shape : array_like or int
        The shape of the model. If a sequence is passed the length determines
        the dimensionality of the lattice. In case of an integer a 1D lattice
        is constructed.
    u : float, optional
        The onsite interaction energy `U`. The default value is `0.0`.
    eps : float, optional
        The onsite energy `ε`. The default value is `0.0`.
    hop : float, optional
        The absolut value of the hopping parameter `t`. The default value is `1.0`.
        Note that the Hamiltonian is built using the negative of the hopping parameter.
    mu : float, optional
        The chemical chemical potential `μ`. The default is `0`.
        The chemical potential is subtracted from the on-site energy.
    beta : float, optional
        The inverse of the temperature `β=1/T`
    periodic : sequence or integer or bool, optional
        Periodic boundary conditions. An integer or a sequence of integers is
        interpreted as the periodic axes to set, a boolean enables or disables
        all axes to be periodic.
    attractive : bool, optional
        If `True` a single-flavor `AttractiveHubbardModel` is constructed.

    Returns
    -------
    model : HubbardModel
        The fully initializes hyper-rectanlge Hubbard model.
    """
    shape = (shape, ) if isinstance(shape, int) else tuple(shape)
    dim = len(shape)
    if isinstance(periodic, bool):
        if periodic:
            periodic = np.arange(dim)
        else:
            periodic = None
    elif isinstance(periodic, int):
        periodic = [periodic]
    cls = AttractiveHubbardModel if attractive else HubbardModel
    model = cls(np.eye(dim), u, eps, hop, mu, beta)
    model.add_atom()
    model.add_connections(1)
    model.build(shape, primitive=True, periodic=periodic)
    model.grid_shape = shape
    model.grid_periodic = () if periodic is None else tuple(int(ax) for ax in periodic)
    return model
