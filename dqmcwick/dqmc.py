# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""DQMC simulation context used by the Green's function and measurement routines.

The context holds the Hubbard-Stratonovich configuration, the (effective) time step
matrices and the matrix stack. The Monte Carlo updates themselves are not part of
this package: any callable updating the configuration can be passed to `DQMC.run`.

Notes
-----
The time slice index is called `l`. The time step matrices :math:'B_1, ..., B_L' are
stored in a zero-based array, i.e. `bmats[l - 1]` is the matrix :math:'B_l'.

References
----------
.. [1] Z. Bai et al., “Numerical Methods for Quantum Monte Carlo Simulations
       of the Hubbard Model”, in Series in Contemporary Applied Mathematics,
       Vol. 12 (June 2009), p. 1.
"""

import time
import logging
import numpy as np
from tqdm import tqdm
from .stack import DQMCStack, calculate_greens

logger = logging.getLogger("dqmcwick")


def init_configuration(num_sites: int, num_timesteps: int, rng=None) -> np.ndarray:
    """Initializes the configuration array with a random distribution of `-1` and `+1`.

    Parameters
    ----------
    num_sites : int
        The number of sites `N` of the lattice model.
    num_timesteps : int
        The number of time steps `L` used in the Monte Carlo simulation.
    rng : np.random.Generator, optional
        The random number generator used for sampling the configuration.

    Returns
    -------
    config : (N, L) np.ndarray
        The array representing the configuration or Hubbard-Stratonovich field.
    """
    if rng is None:
        rng = np.random.default_rng()
    return rng.choice([-1, +1], size=(num_sites, num_timesteps)).astype(np.int8)


def compute_timestep_mats(expk, model, nu, config):
    r"""Computes the effective time step matrices :math:'B_l' for all time slices.

    Parameters
    ----------
    expk : (M, M) np.ndarray
        The matrix exponential :math:'e^{-Δτ T}' of the hopping matrix of all flavors.
    model : HubbardModel
        The model defining the interaction term.
    nu : float
        The parameter ν defined by :math:'\cosh(ν) = e^{|U| Δτ / 2}'
    config : (N, L) np.ndarray
        The configuration or Hubbard-Stratonovich field.

    Returns
    -------
    bmats : (L, M, M) np.ndarray
        The time step matrices.

    Notes
    -----
    The time step matrix :math:'B_l' is defined as
    ..math::
        B_l = e^{-Δτ T} e^{V_l(h_l)}

    Simply multiplying the matrix exponential of the hopping matrix with the diagonal
    elements of the second matrix yields the same result as using `np.dot` with `np.diag`.
    """
    num_times = config.shape[1]
    size = expk.shape[0]
    bmats = np.zeros((num_times, size, size), dtype=expk.dtype)
    for t in range(num_times):
        bmats[t] = expk * model.interaction_exp(nu, config[:, t])
    return bmats


class DQMC:
    """DQMC context holding the configuration, time step matrices and matrix stack.

    Parameters
    ----------
    model : HubbardModel
        The lattice model. The inverse temperature is taken from `model.beta`.
    num_times : int
        The number of imaginary time slices `L`.
    checkerboard : bool, optional
        If `True` the hopping exponentials use the checkerboard decomposition.
    safe_mult : int, optional
        Number of time step matrices multiplied explicitly before stabilizing.
    seed : int, optional
        Seed of the random number generator used for the initial configuration.
    block : bool, optional
        If `True` the hopping matrix is stored as `BlockDiagonal`.
    """

    def __init__(self, model, num_times, checkerboard=False, safe_mult=10, seed=None,
                 block=False):
        if num_times <= 0:
            raise ValueError(f"Number of time slices must be positive, not {num_times}!")
        if safe_mult < 1:
            raise ValueError(f"`safe_mult` must be positive, not {safe_mult}!")

        self.model = model
        self.num_times = num_times
        self.safe_mult = safe_mult
        self.rng = np.random.default_rng(seed)

        self.dtau = model.beta / num_times
        check = abs(model.u) * model.hop * self.dtau ** 2
        if check > 0.1:
            logger.warning(
                "Increase number of time steps: Check-value %.2f should be <0.1!", check
            )
        else:
            logger.debug("Check-value %.4f is <0.1!", check)

        self.nu = model.hs_coupling(self.dtau)
        logger.debug("nu=%s", self.nu)

        self.stack = DQMCStack.from_model(model, self.dtau, checkerboard, block)
        self.config = init_configuration(model.num_sites, num_times, self.rng)
        self.bmats = None
        self.current_slice = 0
        self._update_slice_matrices()

    @property
    def checkerboard(self):
        return self.stack.checkerboard

    @property
    def beta(self):
        return self.model.beta

    def _update_slice_matrices(self):
        expk = self.stack.hopping_matrix_exp_squared
        self.bmats = compute_timestep_mats(expk, self.model, self.nu, self.config)
        calculate_greens(self, self.current_slice, self.stack.greens)

    def set_configuration(self, config):
        """Sets the Hubbard-Stratonovich field and recomputes the matrix stack."""
        config = np.asarray(config, dtype=np.int8)
        if config.shape != self.config.shape:
            raise ValueError(f"Configuration shape {config.shape} does not match "
                             f"{self.config.shape}!")
        self.config = config
        self._update_slice_matrices()

    def slice_matrix(self, slice):
        r"""Returns the effective time step matrix :math:'B_l = e^{-Δτ T} e^{V_l}'."""
        return self.bmats[slice - 1]

    def physical_slice_matrix(self, slice):
        r"""Returns the time step matrix :math:'e^{-Δτ T/2} e^{V_l} e^{-Δτ T/2}'."""
        stack = self.stack
        tmp = np.dot(self.bmats[slice - 1], stack.hopping_matrix_exp)
        return np.dot(stack.hopping_matrix_exp_inv, tmp)

    def run(self, measurements, num_sampl, update=None, progress=False):
        """Performs measurements for a number of samples.

        Parameters
        ----------
        measurements : dict or sequence of Measurement
            The measurements to perform after each update.
        num_sampl : int
            The number of samples.
        update : callable, optional
            Update scheme called as `update(mc)` before each sample, for example
            a Monte Carlo sweep over the configuration.
        progress : bool, optional
            If `True` a progressbar is printed.

        Returns
        -------
        measurements : dict or sequence of Measurement
            The input measurements containing the accumulated observables.
        """
        items = measurements.values() if isinstance(measurements, dict) else measurements
        t0 = time.perf_counter()
        for _ in tqdm(range(num_sampl), desc="Sample", disable=not progress):
            if update is not None:
                update(self)
            for meas in items:
                meas.measure(self)
        t = time.perf_counter() - t0
        logger.info("%s samples completed in %.1fs", num_sampl, t)
        return measurements
