"""
LRU-кэш строк матрицы ядра.

Для каждого обучающего примера хранится префикс строки Q[i, 0:len).
Записи связаны в кольцевой двусвязный список по давности использования:
голова списка - наименее недавно использованная запись.

Список интрузивный и индексный: next/prev хранятся в массивах индексов,
слот self._sentinel (= l) играет роль головы кольца.
"""

import numpy as np
from typing import List, Optional, Tuple

from .parameters import SVMParameterError, cache_capacity


class KernelCache:
    """
    Кэш строк ядра с ограничением по памяти.

    Args:
        l: Число обучающих примеров
        size_bytes: Бюджет памяти в байтах
    """

    def __init__(self, l: int, size_bytes: int):
        self.l = l
        self.capacity = cache_capacity(size_bytes, l)
        if self.capacity <= 0:
            raise SVMParameterError(
                f"Kernel cache of {size_bytes} bytes is too small for {l} entries"
            )

        # Свободное место (в числах float64)
        self._size = self.capacity

        self._data: List[Optional[np.ndarray]] = [None] * l
        self._len = np.zeros(l, dtype=np.int64)

        # Кольцо: слоты 0..l-1 - записи, слот l - голова
        self._sentinel = l
        self._next = np.full(l + 1, -1, dtype=np.int64)
        self._prev = np.full(l + 1, -1, dtype=np.int64)
        self._next[l] = l
        self._prev[l] = l

        self.hits = 0
        self.misses = 0

    def _lru_delete(self, h: int) -> None:
        self._next[self._prev[h]] = self._next[h]
        self._prev[self._next[h]] = self._prev[h]
        self._next[h] = -1
        self._prev[h] = -1

    def _lru_insert(self, h: int) -> None:
        # В конец кольца (самая свежая запись)
        head = self._sentinel
        self._next[h] = head
        self._prev[h] = self._prev[head]
        self._next[self._prev[h]] = h
        self._prev[head] = h

    def _evict(self, h: int) -> None:
        self._lru_delete(h)
        self._size += int(self._len[h])
        self._data[h] = None
        self._len[h] = 0

    def get(self, index: int, length: int) -> Tuple[np.ndarray, int]:
        """
        Запрашивает данные [0, length) для примера index.

        Returns:
            (buffer, start): буфер длины не меньше length и позиция start,
            начиная с которой вызывающий должен заполнить [start, length).
            Если start >= length, всё уже закэшировано.
        """
        if length > self.capacity:
            raise SVMParameterError(
                f"Kernel row of length {length} does not fit into cache "
                f"capacity of {self.capacity} values"
            )

        h = index
        old_len = int(self._len[h])
        if old_len > 0:
            self._lru_delete(h)

        more = length - old_len
        start = length

        if more > 0:
            # Освобождаем самые старые записи
            while self._size < more:
                self._evict(int(self._next[self._sentinel]))

            new_data = np.empty(length, dtype=np.float64)
            if self._data[h] is not None:
                new_data[:old_len] = self._data[h][:old_len]
            self._data[h] = new_data
            self._size -= more
            self._len[h] = length
            start = old_len
            self.misses += 1
        else:
            self.hits += 1

        if self._len[h] > 0:
            self._lru_insert(h)

        buffer = self._data[h]
        if buffer is None:
            buffer = np.empty(0, dtype=np.float64)
        return buffer, start

    def swap_index(self, i: int, j: int) -> None:
        """
        Меняет местами записи i и j и переставляет значения в столбцах i, j
        у всех закэшированных строк.
        """
        if i == j:
            return

        if self._len[i] > 0:
            self._lru_delete(i)
        if self._len[j] > 0:
            self._lru_delete(j)

        self._data[i], self._data[j] = self._data[j], self._data[i]
        self._len[i], self._len[j] = self._len[j], self._len[i]

        if self._len[i] > 0:
            self._lru_insert(i)
        if self._len[j] > 0:
            self._lru_insert(j)

        if i > j:
            i, j = j, i

        h = int(self._next[self._sentinel])
        while h != self._sentinel:
            nxt = int(self._next[h])
            if self._len[h] > i:
                if self._len[h] > j:
                    data = self._data[h]
                    data[i], data[j] = data[j], data[i]
                else:
                    # Строка покрывает только i: значения после перестановки неверны
                    self._evict(h)
            h = nxt

    def cached_length(self, index: int) -> int:
        return int(self._len[index])

    def cached_values(self) -> int:
        """Суммарное число закэшированных значений."""
        return int(self._len.sum())

    def lru_order(self) -> List[int]:
        """Индексы записей от наименее к наиболее недавно использованной."""
        order = []
        h = int(self._next[self._sentinel])
        while h != self._sentinel:
            order.append(h)
            h = int(self._next[h])
        return order
