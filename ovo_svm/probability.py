"""
Вероятностные оценки для SVM.

- sigmoid_train: калибровка Платта P(y=1|f) = 1 / (1 + exp(A·f + B))
  (вариант Lin, Lin & Weng, 2007: регуляризованные цели, метод Ньютона
  с демпфированием гессиана и поиском шага)
- multiclass_probability: объединение попарных вероятностей
  (метод 2 из Wu, Lin & Weng, 2004)
"""

import warnings
import numpy as np
from typing import Tuple

from .smo_solver import ConvergenceWarning


def sigmoid_train(
    dec_values: np.ndarray,
    labels: np.ndarray,
    max_iter: int = 100,
    min_step: float = 1e-10,
    sigma: float = 1e-3,
    eps: float = 1e-5
) -> Tuple[float, float]:
    """
    Подбор параметров сигмоиды по решающим значениям.

    Args:
        dec_values: Решающие значения f(x_i) (n_samples,)
        labels: Метки, положительный класс - labels > 0 (n_samples,)
        max_iter: Максимум итераций Ньютона
        min_step: Минимальный шаг поиска
        sigma: Добавка к диагонали гессиана (строгая положительная определённость)
        eps: Допуск по градиенту

    Returns:
        (A, B)
    """
    dec_values = np.asarray(dec_values, dtype=np.float64)
    labels = np.asarray(labels, dtype=np.float64)

    prior1 = float(np.sum(labels > 0))
    prior0 = float(len(labels) - prior1)

    hiTarget = (prior1 + 1.0) / (prior1 + 2.0)
    loTarget = 1 / (prior0 + 2.0)
    t = np.where(labels > 0, hiTarget, loTarget)

    def objective(A, B):
        fApB = dec_values * A + B
        pos = fApB >= 0
        return float(np.sum(np.where(
            pos,
            t * fApB + np.log1p(np.exp(-np.abs(fApB))),
            (t - 1) * fApB + np.log1p(np.exp(-np.abs(fApB)))
        )))

    # Начальная точка
    A = 0.0
    B = np.log((prior0 + 1.0) / (prior1 + 1.0))
    fval = objective(A, B)

    for iteration in range(max_iter):
        # Градиент и гессиан (H' = H + sigma·I)
        fApB = dec_values * A + B
        e = np.exp(-np.abs(fApB))
        p = np.where(fApB >= 0, e / (1.0 + e), 1.0 / (1.0 + e))
        q = 1.0 - p
        d2 = p * q
        h11 = sigma + np.sum(dec_values * dec_values * d2)
        h22 = sigma + np.sum(d2)
        h21 = np.sum(dec_values * d2)
        d1 = t - p
        g1 = np.sum(dec_values * d1)
        g2 = np.sum(d1)

        # Критерий остановки
        if abs(g1) < eps and abs(g2) < eps:
            break

        # Направление Ньютона: -inv(H') * g
        det = h11 * h22 - h21 * h21
        dA = -(h22 * g1 - h21 * g2) / det
        dB = -(-h21 * g1 + h11 * g2) / det
        gd = g1 * dA + g2 * dB

        stepsize = 1.0
        while stepsize >= min_step:
            newA = A + stepsize * dA
            newB = B + stepsize * dB
            newf = objective(newA, newB)

            # Достаточное убывание
            if newf < fval + 0.0001 * stepsize * gd:
                A, B, fval = newA, newB, newf
                break
            stepsize /= 2.0

        if stepsize < min_step:
            warnings.warn("Line search fails in two-class probability estimates", ConvergenceWarning)
            break
    else:
        warnings.warn("Reaching maximal iterations in two-class probability estimates", ConvergenceWarning)

    return float(A), float(B)


def sigmoid_predict(decision_value: float, A: float, B: float) -> float:
    """P(y=1|f) = 1 / (1 + exp(A·f + B)) в численно устойчивой форме."""
    fApB = decision_value * A + B
    if fApB >= 0:
        return float(np.exp(-fApB) / (1.0 + np.exp(-fApB)))
    return float(1.0 / (1 + np.exp(fApB)))


def multiclass_probability(k: int, r: np.ndarray, max_iter: int = 100, eps: float = 0.001) -> np.ndarray:
    """
    Вероятности классов по попарным оценкам r[i][j] ≈ P(y=i | y ∈ {i, j}).

    Решает min_p 1/2 p^T Q p при Σ p = 1 покоординатными обновлениями.

    Args:
        k: Число классов
        r: Матрица попарных вероятностей (k, k), r[j][i] = 1 - r[i][j]

    Returns:
        p: Вероятности классов (k,)
    """
    r = np.asarray(r, dtype=np.float64)
    p = np.full(k, 1.0 / k)
    Q = np.zeros((k, k), dtype=np.float64)

    for t in range(k):
        for j in range(t):
            Q[t, t] += r[j, t] * r[j, t]
            Q[t, j] = Q[j, t]
        for j in range(t + 1, k):
            Q[t, t] += r[j, t] * r[j, t]
            Q[t, j] = -r[j, t] * r[t, j]

    for iteration in range(max_iter):
        # Пересчитываем Qp и pQp для точности
        Qp = Q @ p
        pQp = float(p @ Qp)
        max_error = float(np.max(np.abs(Qp - pQp)))
        if max_error < eps:
            break

        for t in range(k):
            diff = (-Qp[t] + pQp) / Q[t, t]
            p[t] += diff
            pQp = (pQp + diff * (diff * Q[t, t] + 2 * Qp[t])) / (1 + diff) / (1 + diff)
            Qp = (Qp + diff * Q[t]) / (1 + diff)
            p /= (1 + diff)
    else:
        warnings.warn("Exceeds max_iter in multiclass_prob", ConvergenceWarning)

    return p
