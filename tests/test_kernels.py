# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

import logging
import itertools
import numpy as np
import pytest
from scipy import linalg as la
from numpy.testing import assert_allclose
from hypothesis import given, settings, strategies as st
from dqmcwick import DQMC, hubbard_hypercube, PackedGreens, BlockDiagonal
from dqmcwick import kernels

settings.load_profile("dqmcwick")

PAIR_KERNELS = [
    kernels.cdc_kernel, kernels.sdc_x_kernel, kernels.sdc_y_kernel, kernels.sdc_z_kernel
]
QUAD_KERNELS = [
    kernels.pc_kernel, kernels.pc_alt_kernel, kernels.pc_combined_kernel,
    kernels.pc_ref_kernel, kernels.cc_kernel
]


def _init(num_sites=3, attractive=False):
    model = hubbard_hypercube(num_sites, u=2.0, eps=0.0, hop=1.0, mu=0.5, beta=0.5,
                              periodic=False, attractive=attractive)
    mc = DQMC(model, 4, seed=0)
    return mc, model


def _random_greens(size, seed):
    rng = np.random.default_rng(seed)
    return rng.normal(size=(size, size))


@pytest.fixture(scope="module")
def chain():
    return _init(3)


@pytest.fixture(scope="module")
def dimer():
    return _init(2)


@given(st.integers(0, 100))
@settings(max_examples=10)
def test_pair_kernels_single_equals_packed(seed):
    mc, model = _init(3)
    n = model.num_sites
    G = _random_greens(2 * n, seed)
    for kernel in PAIR_KERNELS:
        for sites in itertools.product(range(n), repeat=2):
            single = kernel(mc, model, sites, G)
            assert single == kernel(mc, model, sites, (G, G, G, G))
            assert single == kernel(mc, model, sites, PackedGreens(G, G, G, G, slice=0))


@given(st.integers(0, 100))
@settings(max_examples=10)
def test_quad_kernels_single_equals_packed(seed):
    mc, model = _init(3)
    n = model.num_sites
    G = _random_greens(2 * n, seed)
    for kernel in QUAD_KERNELS:
        for sites in itertools.product(range(n), repeat=4):
            single = kernel(mc, model, sites, G)
            assert single == kernel(mc, model, sites, (G, G, G, G))


def test_pc_combined_is_sum(chain):
    mc, model = chain
    n = model.num_sites
    rng = np.random.default_rng(0)
    packed = PackedGreens(*[rng.normal(size=(2 * n, 2 * n)) for _ in range(4)], slice=2)
    for sites in itertools.product(range(n), repeat=4):
        for G in (packed[0], packed):
            expected = kernels.pc_kernel(mc, model, sites, G) \
                + kernels.pc_alt_kernel(mc, model, sites, G)
            assert kernels.pc_combined_kernel(mc, model, sites, G) == expected


def test_cdc_anticommutator_only_at_equal_times(chain):
    mc, model = chain
    n = model.num_sites
    G = _random_greens(2 * n, 1)
    for i, j in itertools.product(range(n), repeat=2):
        equal = kernels.cdc_kernel(mc, model, (i, j), PackedGreens(G, G, G, G, slice=0))
        displ = kernels.cdc_kernel(mc, model, (i, j), PackedGreens(G, G, G, G, slice=1))
        expected = G[i, i] + G[i + n, i + n] if i == j else 0.0
        assert_allclose(equal - displ, expected, atol=1e-12)


def test_packed_greens():
    a, b, c, d = [np.full((2, 2), x) for x in range(4)]
    packed = PackedGreens(a, b, c, d, slice=3)
    G00, G0l, Gl0, Gll = packed
    assert G00 is a and G0l is b and Gl0 is c and Gll is d
    assert packed.G00 is a and packed.Gll is d
    assert packed.slice == 3
    assert PackedGreens(a, b, c, d).slice == 0


def test_occupation(chain):
    mc, model = chain
    size = 2 * model.num_sites
    for i in range(size):
        assert kernels.occupation_kernel(mc, model, i, np.zeros((size, size))) == 1.0
        assert kernels.occupation_kernel(mc, model, i, np.eye(size)) == 0.0

    G = _random_greens(size, 0)
    packed = PackedGreens(np.eye(size), np.eye(size), np.eye(size), G, slice=1)
    assert kernels.occupation_kernel(mc, model, 2, packed) == 1 - G[2, 2]


def test_magnetization(chain):
    mc, model = chain
    n = model.num_sites
    G = np.zeros((2 * n, 2 * n))
    for i in range(n):
        G[i, i] = 0.2
        G[i + n, i + n] = 0.7
        G[i + n, i] = 0.1
        G[i, i + n] = 0.4
    for i in range(n):
        assert_allclose(kernels.mx_kernel(mc, model, i, G), -0.5)
        assert_allclose(kernels.my_kernel(mc, model, i, G), -0.3)
        assert_allclose(kernels.mz_kernel(mc, model, i, G), 0.5)


def test_half_filled_infinite_temperature(dimer):
    mc, model = dimer
    G = 0.5 * np.eye(4)
    # Charge density correlation
    assert_allclose(kernels.cdc_kernel(mc, model, (0, 0), G), 1.5)
    assert_allclose(kernels.cdc_kernel(mc, model, (0, 1), G), 1.0)
    # <(n↑ - n↓)^2> = 1/2 on the same site, uncorrelated otherwise
    assert_allclose(kernels.sdc_z_kernel(mc, model, (0, 0), G), 0.5)
    assert_allclose(kernels.sdc_z_kernel(mc, model, (0, 1), G), 0.0)
    assert_allclose(kernels.sdc_x_kernel(mc, model, (1, 1), G), 0.5)
    assert_allclose(kernels.sdc_y_kernel(mc, model, (1, 1), G), 0.5)
    assert_allclose(kernels.sdc_x_kernel(mc, model, (0, 1), G), 0.0)
    # Local magnetization vanishes
    for i in range(2):
        assert kernels.mx_kernel(mc, model, i, G) == 0.0
        assert kernels.my_kernel(mc, model, i, G) == 0.0
        assert kernels.mz_kernel(mc, model, i, G) == 0.0
    # Onsite pairing <n↑ n↓> = 1/4
    onsite = (0, 0, 0, 0)
    assert_allclose(kernels.pc_kernel(mc, model, onsite, G), 0.25)
    assert_allclose(kernels.pc_alt_kernel(mc, model, onsite, G), 0.25)
    assert_allclose(kernels.pc_combined_kernel(mc, model, onsite, G), 0.5)
    assert_allclose(kernels.pc_ref_kernel(mc, model, onsite, G), 0.5)
    # Current along the bond: <j^2> = 2 t^2 <n_t (1 - n_s)>, summed over spins
    assert_allclose(kernels.cc_kernel(mc, model, (0, 1, 0, 1), G), 1.0)


def test_energies_half_filled_infinite_temperature(dimer):
    mc, model = dimer
    G = 0.5 * np.eye(4)
    # 1/2 tr(T) with T_ii = -μ = -0.5
    assert_allclose(kernels.nonintE_kernel(mc, model, G), -1.0)
    assert_allclose(kernels.intE_kernel(mc, model, G), 0.0)
    assert_allclose(kernels.totalE_kernel(mc, model, G), -1.0)


def test_total_energy_decomposition(chain):
    mc, model = chain
    G = _random_greens(6, 3)
    total = kernels.totalE_kernel(mc, model, G)
    expected = kernels.nonintE_kernel(mc, model, G) + kernels.intE_kernel(mc, model, G)
    assert total == expected


@given(st.integers(0, 100))
def test_nonintE_block_diagonal(seed):
    model = hubbard_hypercube(4, eps=0.3, mu=0.1, periodic=True)
    dense = model.hopping_matrix()
    block = model.hopping_matrix(block=True)
    G = _random_greens(8, seed)
    expected = kernels.nonintE(dense, G)
    assert_allclose(kernels.nonintE(block, G), expected, rtol=1e-12, atol=1e-12)

    G_block = BlockDiagonal.from_dense(G, 2)
    expected = kernels.nonintE(dense, G_block.toarray())
    assert_allclose(kernels.nonintE(block, G_block), expected, rtol=1e-12, atol=1e-12)
    assert_allclose(kernels.nonintE(dense, G_block), expected, rtol=1e-12, atol=1e-12)


def test_nonintE_degeneracy():
    mc, model = _init(2, attractive=True)
    G = 0.5 * np.eye(2)
    # Both spin species are described by the single flavor
    assert_allclose(kernels.nonintE_kernel(mc, model, G), -1.0)
    assert_allclose(kernels.nonintE(mc.stack.hopping_matrix, G), -0.5)


def test_checkflavors(caplog):
    _, model = _init(2, attractive=True)
    with caplog.at_level(logging.WARNING, logger="dqmcwick"):
        kernels.checkflavors(model)
    assert "2 flavors are required, but 1 have been found" in caplog.text

    caplog.clear()
    _, model = _init(2)
    with caplog.at_level(logging.WARNING, logger="dqmcwick"):
        kernels.checkflavors(model)
    assert caplog.text == ""


def test_kernels_raise_outside_greens(caplog):
    mc, model = _init(2, attractive=True)
    G = np.full((2, 2), 0.5)
    with caplog.at_level(logging.WARNING, logger="dqmcwick"):
        kernels.checkflavors(model)
    for kernel in PAIR_KERNELS:
        with pytest.raises(IndexError):
            kernel(mc, model, (1, 1), G)
    for kernel in QUAD_KERNELS:
        with pytest.raises(IndexError):
            kernel(mc, model, (1, 0, 1, 0), G)
    for kernel in (kernels.mx_kernel, kernels.my_kernel, kernels.mz_kernel):
        with pytest.raises(IndexError):
            kernel(mc, model, 1, G)


# =========================================================================================
# Exact diagonalization of a free dimer
# =========================================================================================


def _fock_operators(num_modes):
    """Jordan-Wigner annihilation operators of `num_modes` fermion modes."""
    a = np.array([[0.0, 1.0], [0.0, 0.0]])
    z = np.diag([1.0, -1.0])
    ops = list()
    for m in range(num_modes):
        factors = [z] * m + [a] + [np.eye(2)] * (num_modes - m - 1)
        op = factors[0]
        for f in factors[1:]:
            op = np.kron(op, f)
        ops.append(op)
    return ops


class ExactCorrelator:
    """Time-displaced correlations of two quadratic Hamiltonians in Fock space.

    The system evolves with `h1` from `0` to `τ` and with `h2` from `τ` to `β`:
    ..math::
        <A(τ) B(0)> = Tr[e^{-(β-τ) H_2} A e^{-τ H_1} B] / Tr[e^{-(β-τ) H_2} e^{-τ H_1}]
    """

    def __init__(self, h1, h2, beta, tau):
        self.c = _fock_operators(h1.shape[0])
        self.cd = [op.T for op in self.c]
        self.u1 = la.expm(-tau * self.quadratic(h1))
        self.u2 = la.expm(-(beta - tau) * self.quadratic(h2))
        self.z = np.trace(self.u2 @ self.u1)
        self.eye = np.eye(self.u1.shape[0])

    def quadratic(self, h):
        n = h.shape[0]
        return sum(h[a, b] * self.cd[a] @ self.c[b] for a in range(n) for b in range(n))

    def __call__(self, A, B):
        return np.trace(self.u2 @ A @ self.u1 @ B) / self.z

    def greens(self):
        n = len(self.c)
        G00, G0l, Gl0, Gll = [np.zeros((n, n)) for _ in range(4)]
        for a, b in itertools.product(range(n), repeat=2):
            G00[a, b] = self(self.eye, self.c[a] @ self.cd[b])
            Gll[a, b] = self(self.c[a] @ self.cd[b], self.eye)
            Gl0[a, b] = self(self.c[a], self.cd[b])
            G0l[a, b] = -self(self.cd[b], self.c[a])
        return G00, G0l, Gl0, Gll


def _dimer_hamiltonians(mc):
    T = mc.stack.dense_hopping_matrix
    # Spin mixing terms make the inter-flavor blocks of G finite
    h1 = np.array(T, dtype=np.float64)
    h1[0, 2] = h1[2, 0] = 0.3
    h2 = T + np.diag([0.2, -0.1, 0.4, 0.0])
    h2[1, 3] = h2[3, 1] = -0.25
    return h1, h2


@pytest.mark.parametrize("tau", [0.0, 0.35])
def test_kernels_exact_dimer(dimer, tau):
    mc, model = dimer
    n = model.num_sites
    T = mc.stack.dense_hopping_matrix
    h1, h2 = _dimer_hamiltonians(mc)
    exact = ExactCorrelator(h1, h2, model.beta, tau)
    c, cd = exact.c, exact.cd
    G00, G0l, Gl0, Gll = exact.greens()
    if tau == 0.0:
        assert_allclose(G00, Gll, atol=1e-12)
        G = G00
    else:
        assert not np.allclose(G00, Gll)
        G = PackedGreens(G00, G0l, Gl0, Gll, slice=1)

    def density(i):
        return cd[i] @ c[i] + cd[i+n] @ c[i+n]

    def spin_z(i):
        return cd[i] @ c[i] - cd[i+n] @ c[i+n]

    def spin_flip(i, sign):
        return cd[i] @ c[i+n] + sign * cd[i+n] @ c[i]

    def current(s, t):
        return sum(T[t+f, s+f] * cd[t+f] @ c[s+f] - T[s+f, t+f] * cd[s+f] @ c[t+f]
                   for f in (0, n))

    for i in range(n):
        assert_allclose(kernels.occupation_kernel(mc, model, i, G),
                        exact(cd[i] @ c[i], exact.eye), atol=1e-10)
        assert_allclose(kernels.mz_kernel(mc, model, i, G),
                        exact(spin_z(i), exact.eye), atol=1e-10)
        assert_allclose(kernels.mx_kernel(mc, model, i, G),
                        exact(spin_flip(i, +1), exact.eye), atol=1e-10)
        assert_allclose(kernels.my_kernel(mc, model, i, G),
                        -exact(spin_flip(i, -1), exact.eye), atol=1e-10)

    for i, j in itertools.product(range(n), repeat=2):
        sites = (i, j)
        assert_allclose(kernels.cdc_kernel(mc, model, sites, G),
                        exact(density(i), density(j)), atol=1e-10)
        assert_allclose(kernels.sdc_z_kernel(mc, model, sites, G),
                        exact(spin_z(i), spin_z(j)), atol=1e-10)
        assert_allclose(kernels.sdc_x_kernel(mc, model, sites, G),
                        exact(spin_flip(i, +1), spin_flip(j, +1)), atol=1e-10)
        # m_y = ±i (c↑^† c↓ - c↓^† c↑)
        assert_allclose(kernels.sdc_y_kernel(mc, model, sites, G),
                        -exact(spin_flip(i, -1), spin_flip(j, -1)), atol=1e-10)

    for s1, t1, s2, t2 in itertools.product(range(n), repeat=4):
        sites = (s1, t1, s2, t2)
        # Δ(s, t) = c_{t↓} c_{s↑}
        pair = exact(c[t1+n] @ c[s1], cd[s2] @ cd[t2+n])
        pair_alt = exact(cd[s1] @ cd[t1+n], c[t2+n] @ c[s2])
        assert_allclose(kernels.pc_kernel(mc, model, sites, G), pair, atol=1e-10)
        assert_allclose(kernels.pc_alt_kernel(mc, model, sites, G), pair_alt, atol=1e-10)
        assert_allclose(kernels.pc_combined_kernel(mc, model, sites, G),
                        pair + pair_alt, atol=1e-10)
        pair_ref = exact(c[t1] @ c[s1+n], cd[s2+n] @ cd[t2]) \
            + exact(cd[s1+n] @ cd[t1], c[t2] @ c[s2+n])
        assert_allclose(kernels.pc_ref_kernel(mc, model, sites, G), pair_ref, atol=1e-10)
        # j = i K, so <j j> = -<K K>
        assert_allclose(kernels.cc_kernel(mc, model, sites, G),
                        -exact(current(s2, t2), current(s1, t1)), atol=1e-10)
