"""
Матрица Q для C-SVC: Q[i, j] = y_i * y_j * K(x_i, x_j).

Строки считаются по требованию и хранятся в KernelCache.
"""

import numpy as np

from .kernel_cache import KernelCache
from .kernels import Kernel


class SVCQMatrix:
    """
    Адаптер Kernel + KernelCache + знаки меток для солвера.

    Args:
        x: Матрица признаков (n_samples, n_features)
        y: Метки {-1, +1} (n_samples,)
        cache_bytes: Бюджет кэша в байтах
    """

    def __init__(self, x: np.ndarray, y: np.ndarray, cache_bytes: int):
        self.kernel = Kernel(x)
        self.y = np.array(y, dtype=np.float64, copy=True)
        self.cache = KernelCache(len(self.y), cache_bytes)

    def get_Q(self, i: int, length: int) -> np.ndarray:
        """Первые length элементов строки i матрицы Q."""
        data, start = self.cache.get(i, length)
        if start < length:
            K = self.kernel.kernel_row(i, start, length)
            data[start:length] = self.y[i] * self.y[start:length] * K
        return data

    def swap_index(self, i: int, j: int) -> None:
        self.cache.swap_index(i, j)
        self.kernel.swap_index(i, j)
        self.y[i], self.y[j] = self.y[j], self.y[i]
