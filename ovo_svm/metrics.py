"""
Метрики многоклассовой классификации для отчётов кросс-валидации:
- Accuracy
- Per-class accuracy (recall каждого класса)
- Macro-F1
- Agreement (доля совпадающих предсказаний двух моделей)
"""

import numpy as np
from typing import Dict, Optional
from sklearn.metrics import accuracy_score, f1_score, recall_score


def accuracy(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Доля верных предсказаний (0.0 для пустой выборки)."""
    if len(y_true) == 0:
        return 0.0
    return float(accuracy_score(y_true, y_pred))


def per_class_accuracy(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[float, float]:
    """Доля верных предсказаний внутри каждого истинного класса."""
    labels = np.unique(y_true)
    recalls = recall_score(y_true, y_pred, labels=labels, average=None, zero_division=0)
    return {float(label): float(r) for label, r in zip(labels, recalls)}


def macro_f1(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Macro-F1 по классам истинной разметки."""
    if len(y_true) == 0:
        return 0.0
    return float(f1_score(y_true, y_pred, labels=np.unique(y_true), average="macro", zero_division=0))


def agreement(y_pred_a: np.ndarray, y_pred_b: np.ndarray) -> float:
    """Доля примеров, на которых две модели предсказали одно и то же."""
    return accuracy(y_pred_a, y_pred_b)


def compute_all_metrics(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    y_reference: Optional[np.ndarray] = None
) -> dict:
    """
    Вычисляет все метрики. Если передано y_reference (предсказания
    другой модели), добавляется agreement.
    """
    results = {
        "accuracy": accuracy(y_true, y_pred),
        "macro_f1": macro_f1(y_true, y_pred),
    }

    for label, value in per_class_accuracy(y_true, y_pred).items():
        results[f"class_{label:g}_accuracy"] = value

    if y_reference is not None:
        results["agreement"] = agreement(y_pred, y_reference)

    return results
