"""
Случайная перестановка и разбиение на фолды.

Используется глобальный генератор np.random: для воспроизводимости
достаточно вызвать np.random.seed(...) перед обучением.
"""

import numpy as np
from typing import Iterator, Tuple


def random_permutation(n: int) -> np.ndarray:
    """Перестановка Фишера-Йетса: perm[i] меняется с perm[j], j ∈ [i, n)."""
    perm = np.arange(n, dtype=np.int64)
    for i in range(n):
        j = i + int(np.random.random() * (n - i))
        perm[i], perm[j] = perm[j], perm[i]
    return perm


def fold_bounds(n: int, nr_fold: int) -> Iterator[Tuple[int, int]]:
    """Границы [begin, end) непрерывных блоков для каждого фолда."""
    for i in range(nr_fold):
        yield i * n // nr_fold, (i + 1) * n // nr_fold
