"""
Маппинг меток классов в индексы классов.

Каждой различной метке присваивается индекс в порядке первого появления:
    y = [0, 3, 3, 2, 1, 1, 1]
    label = [0, 3, 2, 1], count = [1, 2, 1, 3]
    start = [0, 1, 3, 4]  (начало группы каждого класса после перегруппировки)
"""

import numpy as np
from dataclasses import dataclass


# Начальная ёмкость таблицы классов (удваивается по мере необходимости)
INITIAL_MAX_CLASSES = 16


@dataclass
class ClassGrouping:
    """Результат группировки примеров по классам."""
    label: np.ndarray     # Метки классов в порядке первого появления (nr_class,)
    count: np.ndarray     # Число примеров каждого класса (nr_class,)
    start: np.ndarray     # Начало группы класса в перегруппированной выборке (nr_class,)
    index: np.ndarray     # Индекс класса каждого примера (n_samples,)
    perm: np.ndarray      # Перестановка: перегруппированная позиция -> исходный индекс

    @property
    def nr_class(self) -> int:
        return len(self.label)


def group_classes(y: np.ndarray) -> ClassGrouping:
    """
    Группирует примеры по классам (стабильно, в порядке первого появления меток).

    Args:
        y: Метки (n_samples,); приводятся к int

    Returns:
        ClassGrouping
    """
    l = len(y)
    max_nr_class = INITIAL_MAX_CLASSES
    nr_class = 0
    label = np.zeros(max_nr_class, dtype=np.int64)
    count = np.zeros(max_nr_class, dtype=np.int64)
    index = np.empty(l, dtype=np.int64)
    slot_of = {}

    for i in range(l):
        this_label = int(y[i])
        j = slot_of.get(this_label)
        if j is None:
            if nr_class == max_nr_class:
                max_nr_class *= 2
                label = np.resize(label, max_nr_class)
                count = np.resize(count, max_nr_class)
            j = nr_class
            slot_of[this_label] = j
            label[j] = this_label
            count[j] = 0
            nr_class += 1
        count[j] += 1
        index[i] = j

    label = label[:nr_class].copy()
    count = count[:nr_class].copy()

    start = np.zeros(nr_class, dtype=np.int64)
    if nr_class > 0:
        start[1:] = np.cumsum(count)[:-1]

    # Стабильная перегруппировка по индексу класса
    perm = np.argsort(index, kind="stable")

    return ClassGrouping(label=label, count=count, start=start, index=index, perm=perm)


def class_index_of(grouping: ClassGrouping, label: float) -> int:
    """Индекс класса для метки или -1, если метка не встречалась."""
    hits = np.nonzero(grouping.label == int(label))[0]
    if len(hits) == 0:
        return -1
    return int(hits[0])
