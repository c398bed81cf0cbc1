"""
Тесты для LRU-кэша строк ядра и матрицы Q.

Проверяет:
1. Бюджет памяти и выдачу префиксов строк
2. Порядок вытеснения LRU
3. swap_index: перестановка значений и вытеснение частичных строк
4. Корректность строк Q после перестановок солвера
5. Ошибки конфигурации и размерности
"""

import numpy as np

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ovo_svm.kernel_cache import KernelCache
from ovo_svm.kernels import Kernel
from ovo_svm.parameters import SVMParameterError, CACHE_ENTRY_OVERHEAD, FLOAT_SIZE
from ovo_svm.q_matrix import SVCQMatrix


def budget(l, n_values):
    """Бюджет в байтах, вмещающий ровно n_values чисел для l записей."""
    return l * CACHE_ENTRY_OVERHEAD + n_values * FLOAT_SIZE


# =============================================================================
# KernelCache
# =============================================================================

def test_get_and_extend():
    """Новая строка заполняется с нуля, продление сохраняет префикс."""
    print("\n" + "="*60)
    print("Test: Get and Extend")
    print("="*60)

    cache = KernelCache(10, budget(10, 25))
    assert cache.capacity == 25, f"Wrong capacity: {cache.capacity}"

    data, start = cache.get(3, 5)
    assert start == 0, f"New row should start at 0, got {start}"
    data[:5] = np.arange(5)

    data, start = cache.get(3, 5)
    assert start == 5, f"Cached row should be complete, got start={start}"
    assert cache.hits == 1 and cache.misses == 1

    data, start = cache.get(3, 8)
    print(f"  Extended row: start={start}, prefix={data[:5]}")
    assert start == 5, f"Extension should start at old length, got {start}"
    assert np.array_equal(data[:5], np.arange(5)), "Prefix lost on extension"
    assert cache.cached_length(3) == 8

    print("\n[PASS] Get/extend test passed!")


def test_budget_invariant():
    """Суммарный объём закэшированных значений не превышает бюджет."""
    print("\n" + "="*60)
    print("Test: Budget Invariant")
    print("="*60)

    np.random.seed(0)
    l = 20
    cache = KernelCache(l, budget(l, 50))

    for _ in range(500):
        index = np.random.randint(l)
        length = np.random.randint(1, l + 1)
        data, start = cache.get(index, length)
        data[start:length] = index
        assert len(data) >= length
        assert cache.cached_values() <= cache.capacity, \
            f"Budget exceeded: {cache.cached_values()} > {cache.capacity}"

    print(f"  Cached values: {cache.cached_values()} / {cache.capacity}")
    print(f"  Hits: {cache.hits}, misses: {cache.misses}")

    print("\n[PASS] Budget invariant test passed!")


def test_lru_eviction_order():
    """Вытесняется наименее недавно использованная строка."""
    print("\n" + "="*60)
    print("Test: LRU Eviction Order")
    print("="*60)

    cache = KernelCache(4, budget(4, 10))

    cache.get(0, 4)
    cache.get(1, 4)
    assert cache.lru_order() == [0, 1]

    # Обращение к 0 делает её самой свежей
    cache.get(0, 4)
    assert cache.lru_order() == [1, 0]

    # Для строки 2 не хватает места: вытесняется 1
    cache.get(2, 4)
    print(f"  LRU order: {cache.lru_order()}")
    assert cache.lru_order() == [0, 2], f"Wrong order: {cache.lru_order()}"
    assert cache.cached_length(1) == 0, "Row 1 should be evicted"
    assert cache.cached_length(0) == 4, "Row 0 should survive"

    print("\n[PASS] LRU eviction test passed!")


def test_swap_index():
    """Перестановка записей и столбцов; частичные строки вытесняются."""
    print("\n" + "="*60)
    print("Test: Cache swap_index")
    print("="*60)

    cache = KernelCache(4, budget(4, 100))

    data, _ = cache.get(0, 4)
    data[:4] = [0.0, 1.0, 2.0, 3.0]
    data, _ = cache.get(1, 2)
    data[:2] = [10.0, 11.0]
    data, _ = cache.get(3, 4)
    data[:4] = [30.0, 31.0, 32.0, 33.0]

    cache.swap_index(1, 3)

    row0, start = cache.get(0, 4)
    assert start == 4
    print(f"  Row 0 after swap: {row0[:4]}")
    assert np.array_equal(row0[:4], [0.0, 3.0, 2.0, 1.0]), f"Row 0 columns not swapped: {row0[:4]}"

    row1, start = cache.get(1, 4)
    assert start == 4
    assert np.array_equal(row1[:4], [30.0, 33.0, 32.0, 31.0]), f"Row 1 wrong: {row1[:4]}"

    # Бывшая строка 1 покрывала столбец 1, но не столбец 3
    assert cache.cached_length(3) == 0, "Partial row should be evicted"

    print("\n[PASS] swap_index test passed!")


def test_cache_errors():
    """Слишком маленький бюджет и слишком длинная строка."""
    print("\n" + "="*60)
    print("Test: Cache Errors")
    print("="*60)

    try:
        KernelCache(10, 100)
        assert False, "Should raise SVMParameterError for tiny budget"
    except SVMParameterError as e:
        print(f"  Correctly rejected tiny budget: {e}")

    cache = KernelCache(4, budget(4, 10))
    try:
        cache.get(0, 11)
        assert False, "Should raise SVMParameterError for oversized row"
    except SVMParameterError as e:
        print(f"  Correctly rejected oversized row: {e}")

    print("\n[PASS] Cache errors test passed!")


# =============================================================================
# Kernel и SVCQMatrix
# =============================================================================

def test_kernel_dimension_mismatch():
    """Ядро для векторов разной длины."""
    print("\n" + "="*60)
    print("Test: Kernel Dimension Mismatch")
    print("="*60)

    assert Kernel.k_function([1.0, 2.0], [3.0, 4.0]) == 11.0

    try:
        Kernel.k_function([1.0, 2.0], [1.0, 2.0, 3.0])
        assert False, "Should raise ValueError"
    except ValueError as e:
        print(f"  Correctly rejected: {e}")

    try:
        Kernel.k_values(np.ones((3, 2)), [1.0, 2.0, 3.0])
        assert False, "Should raise ValueError"
    except ValueError as e:
        print(f"  Correctly rejected: {e}")

    print("\n[PASS] Kernel dimension test passed!")


def test_q_matrix_after_swaps():
    """Строки Q остаются верными после перестановок и вытеснений."""
    print("\n" + "="*60)
    print("Test: Q Rows After Swaps")
    print("="*60)

    np.random.seed(1)
    l = 6
    X = np.random.randn(l, 3)
    y = np.array([1.0, -1.0, 1.0, 1.0, -1.0, -1.0])

    # Маленький кэш: помещается две полные строки
    Qm = SVCQMatrix(X, y, budget(l, 15))
    perm = np.arange(l)

    def expected_row(i):
        p = perm
        return y[p[i]] * y[p] * np.dot(X[p], X[p[i]])

    for i in range(l):
        Qm.get_Q(i, l)

    for i, j in [(0, 5), (2, 3), (1, 5), (0, 4)]:
        Qm.swap_index(i, j)
        perm[[i, j]] = perm[[j, i]]
        for k in (i, j, 3):
            row = Qm.get_Q(k, l)
            assert np.allclose(row[:l], expected_row(k)), f"Row {k} wrong after swap ({i}, {j})"

    # Короткие префиксы
    for k in range(l):
        row = Qm.get_Q(k, 3)
        assert np.allclose(row[:3], expected_row(k)[:3]), f"Prefix of row {k} wrong"

    print(f"  Final permutation: {perm}")
    print(f"  Cache hits: {Qm.cache.hits}, misses: {Qm.cache.misses}")

    print("\n[PASS] Q matrix swap test passed!")


def run_all_tests():
    """Запуск всех тестов."""
    print("\n" + "="*70)
    print("  Kernel Cache Test Suite")
    print("="*70)

    tests = [
        ("Get and Extend", test_get_and_extend),
        ("Budget Invariant", test_budget_invariant),
        ("LRU Eviction Order", test_lru_eviction_order),
        ("Cache swap_index", test_swap_index),
        ("Cache Errors", test_cache_errors),
        ("Kernel Dimension Mismatch", test_kernel_dimension_mismatch),
        ("Q Rows After Swaps", test_q_matrix_after_swaps),
    ]

    passed = 0
    failed = 0

    for name, test_func in tests:
        try:
            test_func()
            passed += 1
        except AssertionError as e:
            failed += 1
            print(f"\n[FAIL] {name}: {e}")

    print(f"\nTotal: {passed} passed, {failed} failed")
    return passed, failed


if __name__ == "__main__":
    run_all_tests()
