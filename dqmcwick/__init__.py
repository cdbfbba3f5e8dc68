# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

from .logging import logger
from .linalg import BlockDiagonal
from .model import HubbardModel, AttractiveHubbardModel, hubbard_hypercube
from .stack import DQMCStack, calculate_greens
from .dqmc import DQMC
from .greens import greens, greens_inplace
from .iterators import PackedGreens, Greens, CombinedGreensIterator
from .lattice import (
    EachSite, EachSiteAndFlavor, EachSitePairByDistance, EachLocalQuadByDistance,
    EachLocalQuadBySyncedDistance, Sum, Fourier, SuperfluidDensity
)
from .kernels import (
    checkflavors, greens_kernel, occupation_kernel, cdc_kernel, mx_kernel, my_kernel,
    mz_kernel, sdc_x_kernel, sdc_y_kernel, sdc_z_kernel, pc_kernel, pc_alt_kernel,
    pc_combined_kernel, pc_ref_kernel, cc_kernel, nonintE, nonintE_kernel,
    intE_kernel, totalE_kernel
)
from .measurements import (
    Observable, Measurement, greens_measurement, occupation, charge_density,
    charge_density_correlation, charge_density_susceptibility, magnetization,
    spin_density, spin_density_correlation, spin_density_susceptibility, pairing,
    pairing_correlation, pairing_susceptibility, current_current_susceptibility,
    superfluid_density, noninteracting_energy, interacting_energy, total_energy
)
from .params import Parameters, parse, init_simulator, log_parameters

__version__ = "0.1.0"
