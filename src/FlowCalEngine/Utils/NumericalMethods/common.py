# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Tuple, Union
from dataclasses import dataclass
import numpy as np
import numba as nb
from FlowCalEngine.basic_structures import Vec, CscMat


@nb.njit(cache=True)
def max_abs(x: Vec) -> float:
    """
    Compute max abs efficiently
    :param x:
    :return:
    """
    max_val = 0.0
    for x_val in x:
        x_abs = abs(x_val)
        if x_abs > max_val:
            max_val = x_abs

    return max_val


@nb.njit(cache=True)
def norm(x: Vec) -> float:
    """
    Compute the euclidean norm efficiently
    :param x:
    :return:
    """
    x_sum = 0.0
    for x_val in x:
        x_sum += x_val * x_val

    return np.sqrt(x_sum)


@nb.njit(cache=True)
def find_closest_number(arr: Vec, target: float) -> Tuple[int, float]:
    """
    Find the closest number that exists in array
    :param arr: Array to be searched (must be strictly monotonic, increasing or decreasing)
    :param target: Value to search for
    :return: index in the array, closest value
    """
    if len(arr) == 0:
        # nothing to do
        return -1, target

    best_i = 0
    best_d = abs(arr[0] - target)
    for i in range(1, len(arr)):
        d = abs(arr[i] - target)
        if d < best_d:
            best_d = d
            best_i = i

    return best_i, arr[best_i]


@nb.njit(cache=True)
def has_nan(x: Vec) -> bool:
    """
    Check if any value is NaN (or infinite)
    :param x:
    :return:
    """
    for x_val in x:
        if not np.isfinite(x_val):
            return True
    return False


@dataclass
class ConvexFunctionResult:
    """
    Result of the function evaluated iteratively by a numerical method
    """
    f: Vec  # function increment of the equalities
    J: Union[CscMat, None]  # Jacobian matrix (None when not requested)

    def compute_f_error(self) -> float:
        """
        Compute the euclidean norm of the increments f
        :return: |f|
        """
        return norm(self.f)
