"""
Вычисление ядра.

Поддерживается только линейное ядро K(x_i, x_j) = x_i^T x_j.
Другие ядра (полиномиальное, RBF, сигмоидальное) не реализованы:
check_parameter отклоняет любой kernel_type, кроме "linear".

Kernel хранит собственную копию обучающей выборки, порядок строк которой
следует перестановкам солвера (swap_index).
"""

import numpy as np
from numba import njit


# =============================================================================
# Numba-оптимизированные функции ядра
# =============================================================================

@njit(fastmath=True, cache=True)
def linear_kernel_single(x_i: np.ndarray, x_j: np.ndarray) -> float:
    """Линейное ядро для двух векторов: K(x_i, x_j) = x_i^T x_j"""
    s = 0.0
    for k in range(x_i.shape[0]):
        s += x_i[k] * x_j[k]
    return s


@njit(fastmath=True, cache=True)
def linear_kernel_row(X: np.ndarray, idx: int, start: int, end: int) -> np.ndarray:
    """
    Вычисляет часть строки матрицы ядра: K[idx, start:end].

    Args:
        X: Матрица данных (n_samples, n_features)
        idx: Индекс строки
        start, end: Границы диапазона столбцов

    Returns:
        K_row: Значения ядра (end - start,)
    """
    n_features = X.shape[1]
    K_row = np.empty(end - start, dtype=np.float64)
    for j in range(start, end):
        s = 0.0
        for k in range(n_features):
            s += X[idx, k] * X[j, k]
        K_row[j - start] = s
    return K_row


@njit(fastmath=True, cache=True)
def linear_kernel_values(SV: np.ndarray, x: np.ndarray) -> np.ndarray:
    """Значения ядра между вектором x и всеми опорными векторами."""
    n_sv = SV.shape[0]
    n_features = SV.shape[1]
    values = np.empty(n_sv, dtype=np.float64)
    for i in range(n_sv):
        s = 0.0
        for k in range(n_features):
            s += SV[i, k] * x[k]
        values[i] = s
    return values


def _as_vector(x) -> np.ndarray:
    return np.ascontiguousarray(np.asarray(x, dtype=np.float64).reshape(-1))


class Kernel:
    """
    Вычислитель ядра для обучающей выборки.

    Args:
        x: Матрица признаков (n_samples, n_features)
    """

    def __init__(self, x: np.ndarray):
        self.x = np.array(x, dtype=np.float64, order="C", copy=True)

    def kernel_function(self, i: int, j: int) -> float:
        return linear_kernel_single(self.x[i], self.x[j])

    def kernel_row(self, i: int, start: int, end: int) -> np.ndarray:
        return linear_kernel_row(self.x, i, start, end)

    def swap_index(self, i: int, j: int) -> None:
        self.x[[i, j]] = self.x[[j, i]]

    @staticmethod
    def k_function(x, y) -> float:
        """
        Ядро для произвольной пары векторов (используется при предсказании).

        Raises:
            ValueError: если длины векторов различаются
        """
        x = _as_vector(x)
        y = _as_vector(y)
        if x.shape[0] != y.shape[0]:
            raise ValueError(
                f"Kernel between vectors of different length: {x.shape[0]} != {y.shape[0]}"
            )
        return linear_kernel_single(x, y)

    @staticmethod
    def k_values(SV: np.ndarray, x) -> np.ndarray:
        """Значения ядра вектора x со всеми строками SV."""
        x = _as_vector(x)
        if SV.shape[1] != x.shape[0]:
            raise ValueError(
                f"Kernel between vectors of different length: {x.shape[0]} != {SV.shape[1]}"
            )
        return linear_kernel_values(SV, x)
