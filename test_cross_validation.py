"""
Тесты кросс-валидации и метрик.
"""

import warnings
import numpy as np
from sklearn.metrics import accuracy_score, f1_score, recall_score

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ovo_svm import (
    SVMParameter,
    SVMParameterError,
    SVMProblem,
    svm_cross_validation,
    cross_validation_accuracy,
    accuracy,
    per_class_accuracy,
    macro_f1,
    agreement,
    compute_all_metrics,
)
from ovo_svm.shuffle import random_permutation, fold_bounds


def create_blobs(n_per_class=15, seed=42):
    np.random.seed(seed)
    centers = [(0, 0), (4, 0), (0, 4)]
    X = np.vstack([np.random.randn(n_per_class, 2) * 0.5 + np.array(c) for c in centers])
    y = np.repeat([3.0, 1.0, 2.0], n_per_class)
    return SVMProblem(X, y)


def test_shuffle_and_folds():
    """Перестановка и непрерывные фолды."""
    print("\n" + "="*60)
    print("Test: Shuffle and Fold Bounds")
    print("="*60)

    np.random.seed(0)
    perm = random_permutation(10)
    assert sorted(perm.tolist()) == list(range(10)), f"Not a permutation: {perm}"

    bounds = list(fold_bounds(10, 3))
    print(f"  perm = {perm}, folds = {bounds}")
    assert bounds == [(0, 3), (3, 6), (6, 10)]

    bounds = list(fold_bounds(7, 7))
    assert all(end - begin == 1 for begin, end in bounds)

    print("\n[PASS] Shuffle test passed!")


def test_deterministic_with_seed():
    """Одинаковый seed - одинаковые предсказания."""
    print("\n" + "="*60)
    print("Test: Cross-Validation Determinism")
    print("="*60)

    problem = create_blobs()
    param = SVMParameter()

    np.random.seed(123)
    first = svm_cross_validation(problem, param, 5)
    np.random.seed(123)
    second = svm_cross_validation(problem, param, 5)

    assert first.shape == (problem.l,)
    assert np.array_equal(first, second), "Cross-validation should be deterministic"
    assert set(first.tolist()) <= {1.0, 2.0, 3.0}, f"Unexpected labels: {set(first.tolist())}"

    acc = np.mean(first == problem.y)
    print(f"  CV accuracy: {acc:.4f}")
    assert acc >= 0.9, f"CV accuracy too low: {acc}"

    print("\n[PASS] Determinism test passed!")


def test_leave_one_out():
    """nr_fold > l сводится к leave-one-out с предупреждением."""
    print("\n" + "="*60)
    print("Test: Leave-One-Out")
    print("="*60)

    problem = create_blobs(n_per_class=4)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        np.random.seed(0)
        target = svm_cross_validation(problem, SVMParameter(), 100)

    messages = [str(w.message) for w in caught]
    print(f"  Warnings: {messages}")
    assert any("greater than number of samples" in m for m in messages)
    assert np.array_equal(target, problem.y), f"LOO on separated blobs should be exact: {target}"

    print("\n[PASS] Leave-one-out test passed!")


def test_invalid_folds_and_params():
    """nr_fold < 2 и неверные параметры."""
    print("\n" + "="*60)
    print("Test: Invalid Cross-Validation Arguments")
    print("="*60)

    problem = create_blobs(n_per_class=4)

    try:
        svm_cross_validation(problem, SVMParameter(), 1)
        assert False, "Should raise ValueError for nr_fold < 2"
    except ValueError as e:
        assert not isinstance(e, SVMParameterError)
        print(f"  Correctly rejected: {e}")

    try:
        svm_cross_validation(problem, SVMParameter(C=0.0), 3)
        assert False, "Should raise SVMParameterError"
    except SVMParameterError as e:
        assert str(e) == "C <= 0"
        print(f"  Correctly rejected: {e}")

    print("\n[PASS] Invalid arguments test passed!")


def test_cross_validation_accuracy_and_probability():
    """Доля верных предсказаний; режим с вероятностями."""
    print("\n" + "="*60)
    print("Test: Cross-Validation Accuracy")
    print("="*60)

    problem = create_blobs()

    np.random.seed(5)
    acc = cross_validation_accuracy(problem, SVMParameter(), 3)
    print(f"  Accuracy: {acc:.4f}")
    assert acc >= 0.9

    np.random.seed(5)
    target = svm_cross_validation(problem, SVMParameter(probability=1), 3)
    acc_prob = np.mean(target == problem.y)
    print(f"  Accuracy (probability): {acc_prob:.4f}")
    assert acc_prob >= 0.9

    print("\n[PASS] Accuracy test passed!")


def test_metrics():
    """Метрики совпадают со sklearn."""
    print("\n" + "="*60)
    print("Test: Metrics")
    print("="*60)

    y_true = np.array([0, 0, 1, 1, 2, 2, 2, 1])
    y_pred = np.array([0, 1, 1, 1, 2, 0, 2, 2])

    assert abs(accuracy(y_true, y_pred) - accuracy_score(y_true, y_pred)) < 1e-12
    assert abs(macro_f1(y_true, y_pred) - f1_score(y_true, y_pred, average="macro")) < 1e-12

    per_class = per_class_accuracy(y_true, y_pred)
    assert sorted(per_class) == [0.0, 1.0, 2.0]
    assert np.allclose([per_class[0.0], per_class[1.0], per_class[2.0]], [0.5, 2 / 3, 2 / 3]), \
        f"Wrong per-class accuracy: {per_class}"
    assert np.allclose(list(per_class.values()), recall_score(y_true, y_pred, average=None))

    # Класс, которого нет в истинной разметке, не учитывается в macro-F1
    y_pred_extra = np.array([0, 3, 1, 1, 2, 0, 2, 2])
    expected = f1_score(y_true, y_pred_extra, labels=[0, 1, 2], average="macro")
    assert abs(macro_f1(y_true, y_pred_extra) - expected) < 1e-12

    assert agreement(y_pred, y_pred) == 1.0
    assert accuracy([], []) == 0.0
    assert macro_f1([], []) == 0.0

    results = compute_all_metrics(y_true, y_pred, y_reference=y_true)
    print(f"  {results}")
    assert results["agreement"] == results["accuracy"]
    assert "class_2_accuracy" in results

    print("\n[PASS] Metrics test passed!")


def run_all_tests():
    """Запуск всех тестов."""
    tests = [
        ("Shuffle and Folds", test_shuffle_and_folds),
        ("Determinism", test_deterministic_with_seed),
        ("Leave-One-Out", test_leave_one_out),
        ("Invalid Arguments", test_invalid_folds_and_params),
        ("Accuracy", test_cross_validation_accuracy_and_probability),
        ("Metrics", test_metrics),
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
