# coding: utf-8
#
# This code is part of dqmcwick.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""DQMC Parameter object and helper methods."""

import logging
from typing import Union
from dataclasses import dataclass, asdict
from .model import hubbard_hypercube
from .dqmc import DQMC

logger = logging.getLogger("dqmcwick")


def _to_bool(value):
    value = value.lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Can't interpret '{value}' as boolean!")


# maps label to attribute name and types
ATTR_LABEL_MAP = {
    "shape": [("shape", ), int, 5],
    "u": [("u", ), float, 0.0],
    "eps": [("eps", ), float, 0.0],
    "t": [("t", "hop"), float, 1.0],
    "mu": [("mu", ), float, 0.0],
    "dt": [("dt", ), float, 0.1],
    "beta": [("beta",), float],
    "temp": [("temp",), float],
    "num_times": [("l", "num_times"), int, 40],
    "num_sampl": [("nsampl", "num_sampl"), int, 512],
    "safe_mult": [("safemult", "safe_mult"), int, 10],
    "checkerboard": [("checkerboard", "chkr"), _to_bool, False],
    "periodic": [("periodic", ), _to_bool, True],
    "attractive": [("attractive", ), _to_bool, False],
    "seed": [("seed", ), int, 0],
}


@dataclass
class Parameters:

    shape: Union[int, tuple]
    u: float = 0.0
    eps: float = 0.0
    t: float = 1.0
    mu: float = 0.
    dt: float = 0.1
    num_times: int = 40
    num_sampl: int = 512
    safe_mult: int = 10
    checkerboard: bool = False
    periodic: bool = True
    attractive: bool = False
    seed: int = 0

    def copy(self, **kwargs):
        # Copy parameters
        p = Parameters(**asdict(self))
        # Update new parameters with given kwargs
        for key, val in kwargs.items():
            setattr(p, key, val)
        return p

    @property
    def beta(self):
        return self.num_times * self.dt

    @beta.setter
    def beta(self, beta):
        self.dt = beta / self.num_times

    @property
    def temp(self):
        return 1 / (self.num_times * self.dt)

    @temp.setter
    def temp(self, temp):
        self.dt = 1 / (temp * self.num_times)


def _build_attribute_map():
    attr_map = dict()
    for attr, info in ATTR_LABEL_MAP.items():
        keys = info[0]
        attr_type = info[1]
        default = None if len(info) == 2 else info[2]
        for key in keys:
            if key in attr_map:
                raise ValueError(f"Key {key} already registered in attribute map!")
            attr_map[key] = [attr, attr_type, default]
    return attr_map


def _read_param_file(file):
    # Initialize attribute map
    attr_map = _build_attribute_map()
    # Fill items with default values
    items = dict()
    for (attr, _, default) in attr_map.values():
        if default is not None:
            items[attr] = default
    # Read file content
    with open(file, "r") as fh:
        text = fh.read()
    # Parse lines of file
    for num, line in enumerate(text.splitlines(keepends=False)):
        # Strip comments
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        parts = line.split(maxsplit=1)
        if len(parts) < 2:
            raise ValueError(f"No value given for parameter '{parts[0]}' "
                             f"in line {num + 1} of file '{file}'!")
        label, data = parts
        label = label.lower()
        if label not in attr_map:
            logger.warning("Parameter %s of file '%s' not recognized!", label, file)
            continue
        # Parse value and cast to type
        key, datatype, _ = attr_map[label]
        values = [datatype(x) for x in data.replace(",", " ").split()]
        # Store values in dictionary
        items[key] = tuple(values) if len(values) > 1 else values[0]
    return items


def parse(file):
    """Parses an input text file and extracts the DQMC parameters.

    The file contains one parameter per line as `label value`. Sequences, like the
    shape of the lattice, are separated by commas. Text after a `#` is ignored.
    If the inverse temperature `beta` (or the temperature `temp`) is given, the time
    step is derived from the number of time slices. If the number of time slices is
    `0` it is derived from the time step instead.

    Parameters
    ----------
    file : str
        The path of the input file.
    Returns
    -------
    p : Parameters
        The parsed parameters of the input file.
    """
    items = _read_param_file(file)
    temp = items.pop("temp", None)
    beta = items.pop("beta", None)
    if temp is not None:
        beta = 1 / temp
    if beta is not None:
        if items["num_times"] == 0:
            items["num_times"] = int(round(beta / items["dt"]))
        else:
            items["dt"] = beta / items["num_times"]
    return Parameters(**items)


def init_simulator(p, block=False):
    """Constructs the Hubbard model and the DQMC context of the parameters."""
    model = hubbard_hypercube(p.shape, p.u, p.eps, p.t, p.mu, p.beta,
                              periodic=p.periodic, attractive=p.attractive)
    return DQMC(model, p.num_times, p.checkerboard, p.safe_mult, p.seed, block)


def log_parameters(p):
    logger.info("_" * 60)
    logger.info("Simulation parameters")
    logger.info("")
    logger.info("     Shape: %s", p.shape)
    logger.info("         U: %s", p.u)
    logger.info("         t: %s", p.t)
    logger.info("       eps: %s", p.eps)
    logger.info("        mu: %s", p.mu)
    logger.info("      beta: %s", p.beta)
    logger.info("      temp: %s", p.temp)
    logger.info(" time-step: %s", p.dt)
    logger.info("         L: %s", p.num_times)
    logger.info("    nsampl: %s", p.num_sampl)
    logger.info("  safemult: %s", p.safe_mult)
    logger.info("      chkr: %s", p.checkerboard)
    logger.info("      seed: %s", p.seed)
    logger.info("")
