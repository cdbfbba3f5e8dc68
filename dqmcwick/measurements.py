# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Measurements combining a Green's function iterator, a lattice iterator and a kernel.

A measurement evaluates its kernel for every Green's function yielded by the Green's
function iterator and every site tuple yielded by the lattice iterator:
..math::
    O[slot] = Σ_l w_l Σ_{(slot, sites)} K(mc, model, sites, G_l)

The result of each measurement is pushed to an observable accumulating the mean.
"""

from functools import partial
import numpy as np
from . import kernels
from .iterators import Greens, CombinedGreensIterator, iter_greens
from .lattice import (
    EachSite, EachSiteAndFlavor, EachSitePairByDistance, EachLocalQuadByDistance,
    EachLocalQuadBySyncedDistance, SuperfluidDensity
)

__all__ = [
    "Observable", "Measurement", "greens_measurement", "occupation",
    "charge_density", "charge_density_correlation", "charge_density_susceptibility",
    "magnetization", "spin_density", "spin_density_correlation",
    "spin_density_susceptibility", "pairing", "pairing_correlation",
    "pairing_susceptibility", "current_current_susceptibility", "superfluid_density",
    "noninteracting_energy", "interacting_energy", "total_energy"
]


class Observable:
    """Accumulates the mean of a scalar or array valued observable."""

    def __init__(self, shape=(), dtype=np.float64):
        self.shape = shape
        self.dtype = dtype
        self.count = 0
        self._sum = np.zeros(shape, dtype=dtype)

    def reset(self):
        self.count = 0
        self._sum = np.zeros(self.shape, dtype=self.dtype)

    def push(self, value):
        value = np.asarray(value)
        if self.count == 0 and value.dtype != self._sum.dtype:
            self._sum = self._sum.astype(np.result_type(self._sum, value))
        self._sum += value
        self.count += 1

    @property
    def mean(self):
        if self.count == 0:
            raise ValueError("No values have been pushed to the observable!")
        return self._sum / self.count

    def __len__(self):
        return self.count

    def __repr__(self):
        return f"{self.__class__.__name__}(shape={self.shape}, count={self.count})"


class Measurement:
    """Measurement of an observable using a kernel function.

    Parameters
    ----------
    mc : DQMC
        The simulation context.
    model : HubbardModel
        The lattice model.
    greens_iterator : type or None
        Called as `greens_iterator(mc, model)`, yields `(weight, G)`. `None` if the
        kernel does not require a Green's function.
    lattice_iterator : type or callable or None
        Called as `lattice_iterator(mc, model)` once per measurement, yields
        `(slot, sites)` and adds kernel values via `accumulate`. If `None`
        the kernel is called as `kernel(mc, model, G)`.
    kernel : callable
        The kernel function.
    obs : Observable, optional
        The observable accumulating the measured values.
    """

    def __init__(self, mc, model, greens_iterator, lattice_iterator, kernel, obs=None):
        self.model = model
        self.greens_iterator = greens_iterator
        self.lattice_iterator = lattice_iterator
        self.kernel = kernel
        if lattice_iterator is None:
            shape = None
        else:
            shape = tuple(lattice_iterator(mc, model).shape)
        if obs is None:
            if shape is None:
                n = model.num_sites * model.nflavors
                shape = (n, n) if kernel is kernels.greens_kernel else ()
            obs = Observable(shape, dtype=mc.stack.greens.dtype)
        self.obs = obs

    def __repr__(self):
        name = getattr(self.kernel, "__name__", str(self.kernel))
        return f"{self.__class__.__name__}({name})"

    def measure(self, mc):
        """Evaluates the kernel for the current configuration and pushes the result.

        Returns
        -------
        value : np.ndarray or float
            The measured value of the current configuration.
        """
        model = self.model
        li = None
        if self.lattice_iterator is not None:
            li = self.lattice_iterator(mc, model)
        value = None
        for weight, G in iter_greens(self.greens_iterator, mc, model):
            if li is None:
                res = weight * np.asarray(self.kernel(mc, model, G))
            else:
                res = np.zeros(self.obs.shape, dtype=self.obs.dtype)
                li.accumulate(self.kernel, mc, model, G, res)
                res *= weight
            value = res if value is None else value + res
        self.obs.push(value)
        return value

    @property
    def mean(self):
        return self.obs.mean


def _with_directions(lattice_iterator, K):
    # Only bond iterators take the number of directions
    if K is None:
        return lattice_iterator
    return partial(lattice_iterator, K=K)


def _wrap(lattice_iterator, wrapper):
    if wrapper is None:
        return lattice_iterator
    return partial(wrapper, iterator=lattice_iterator)


def greens_measurement(mc, model, greens_iterator=Greens, obs=None):
    """Measures the full equal-time Green's function."""
    return Measurement(mc, model, greens_iterator, None, kernels.greens_kernel, obs)


def occupation(mc, model, wrapper=None, **kwargs):
    """Measures the occupation of every site-flavor index."""
    li = _wrap(EachSiteAndFlavor, wrapper)
    return Measurement(mc, model, Greens, li, kernels.occupation_kernel, **kwargs)


def charge_density(mc, model, greens_iterator, wrapper=None,
                   lattice_iterator=EachSitePairByDistance, **kwargs):
    """Measures the charge density correlation binned by the distance of two sites."""
    kernels.checkflavors(model)
    li = _wrap(lattice_iterator, wrapper)
    return Measurement(mc, model, greens_iterator, li, kernels.cdc_kernel, **kwargs)


def charge_density_correlation(mc, model, **kwargs):
    return charge_density(mc, model, Greens, **kwargs)


def charge_density_susceptibility(mc, model, **kwargs):
    return charge_density(mc, model, CombinedGreensIterator, **kwargs)


def _select_direction(dir, choices):
    try:
        return choices[dir]
    except KeyError:
        raise ValueError(f"`dir` must be 'x', 'y' or 'z', but is {dir!r}") from None


def magnetization(mc, model, dir, wrapper=None, lattice_iterator=EachSite, **kwargs):
    """Measures the local magnetization in the direction `dir`.

    The factor `-1j` of the y-magnetization is skipped. To get the correct result
    the measured value has to be multiplied by `-1j`.
    """
    kernels.checkflavors(model)
    kernel = _select_direction(dir, {
        "x": kernels.mx_kernel, "y": kernels.my_kernel, "z": kernels.mz_kernel
    })
    li = _wrap(lattice_iterator, wrapper)
    return Measurement(mc, model, Greens, li, kernel, **kwargs)


def spin_density(mc, model, dir, greens_iterator, wrapper=None,
                 lattice_iterator=EachSitePairByDistance, **kwargs):
    """Measures the spin density correlation in the direction `dir`."""
    kernels.checkflavors(model)
    kernel = _select_direction(dir, {
        "x": kernels.sdc_x_kernel, "y": kernels.sdc_y_kernel, "z": kernels.sdc_z_kernel
    })
    li = _wrap(lattice_iterator, wrapper)
    return Measurement(mc, model, greens_iterator, li, kernel, **kwargs)


def spin_density_correlation(mc, model, dir, **kwargs):
    return spin_density(mc, model, dir, Greens, **kwargs)


def spin_density_susceptibility(mc, model, dir, **kwargs):
    return spin_density(mc, model, dir, CombinedGreensIterator, **kwargs)


def pairing(mc, model, greens_iterator, K=None, wrapper=None,
            lattice_iterator=EachLocalQuadByDistance, kernel=kernels.pc_kernel,
            **kwargs):
    """Measures the pairing correlation between local bonds.

    Parameters
    ----------
    K : int, optional
        The number of bond directions. Defaults to the onsite direction plus all
        nearest neighbor directions.
    kernel : callable, optional
        The pairing kernel, for example `pc_combined_kernel`.
    """
    li = _wrap(_with_directions(lattice_iterator, K), wrapper)
    return Measurement(mc, model, greens_iterator, li, kernel, **kwargs)


def pairing_correlation(mc, model, **kwargs):
    return pairing(mc, model, Greens, **kwargs)


def pairing_susceptibility(mc, model, **kwargs):
    return pairing(mc, model, CombinedGreensIterator, **kwargs)


def current_current_susceptibility(mc, model, K=None,
                                   greens_iterator=CombinedGreensIterator,
                                   wrapper=None,
                                   lattice_iterator=EachLocalQuadBySyncedDistance,
                                   **kwargs):
    """Measures the current-current correlation of nearest neighbor bonds."""
    li = _wrap(_with_directions(lattice_iterator, K), wrapper)
    return Measurement(mc, model, greens_iterator, li, kernels.cc_kernel, **kwargs)



def superfluid_density(mc, model, Ls=None, K=None, greens_iterator=CombinedGreensIterator,
                       **kwargs):
    r"""Measures the superfluid stiffness :math:'Λ_L - Λ_T' of the current correlation.

    The current-current correlation of nearest neighbor bonds is Fourier transformed
    with the smallest longitudinal and transverse momenta of each bond direction,
    see `SuperfluidDensity`. The superfluid density is one quarter of the measured
    value. Requires a lattice with at least two dimensions.
    """
    li = partial(SuperfluidDensity, Ls=Ls, K=K)
    return Measurement(mc, model, greens_iterator, li, kernels.cc_kernel, **kwargs)


def noninteracting_energy(mc, model, **kwargs):
    return Measurement(mc, model, Greens, None, kernels.nonintE_kernel, **kwargs)


def interacting_energy(mc, model, **kwargs):
    return Measurement(mc, model, Greens, None, kernels.intE_kernel, **kwargs)


def total_energy(mc, model, **kwargs):
    return Measurement(mc, model, Greens, None, kernels.totalE_kernel, **kwargs)


