"""
Предсказание по обученной one-vs-one модели.

Решающие значения считаются для всех nr_class·(nr_class-1)/2 пар в порядке
(0,1), (0,2), ..., (0,k-1), (1,2), ..., (k-2,k-1).
"""

import numpy as np
from typing import Optional, Tuple

from .kernels import Kernel
from .probability import multiclass_probability, sigmoid_predict

# Границы попарных вероятностей перед объединением
MIN_PROB = 1e-7


def svm_predict_values(model, x) -> np.ndarray:
    """
    Решающие значения всех попарных классификаторов для вектора x.

    Raises:
        ValueError: если размерность x не совпадает с размерностью опорных векторов
    """
    nr_class = model.nr_class
    kvalue = Kernel.k_values(model.SV, x)

    start = np.zeros(nr_class, dtype=np.int64)
    if nr_class > 1:
        start[1:] = np.cumsum(model.n_sv)[:-1]

    dec_values = np.empty(nr_class * (nr_class - 1) // 2, dtype=np.float64)
    p = 0
    for i in range(nr_class):
        for j in range(i + 1, nr_class):
            si, sj = start[i], start[j]
            ci, cj = model.n_sv[i], model.n_sv[j]

            coef1 = model.sv_coef[j - 1]
            coef2 = model.sv_coef[i]
            total = np.dot(coef1[si:si + ci], kvalue[si:si + ci])
            total += np.dot(coef2[sj:sj + cj], kvalue[sj:sj + cj])
            dec_values[p] = total - model.rho[p]
            p += 1

    return dec_values


def vote_counts(nr_class: int, dec_values: np.ndarray) -> np.ndarray:
    """
    Голоса one-vs-one: положительное значение пары (i, j) - голос за i,
    иначе за j.

    Returns:
        Число голосов каждого класса (nr_class,)
    """
    votes = np.zeros(nr_class, dtype=np.int64)
    p = 0
    for i in range(nr_class):
        for j in range(i + 1, nr_class):
            if dec_values[p] > 0:
                votes[i] += 1
            else:
                votes[j] += 1
            p += 1
    return votes


def vote(nr_class: int, dec_values: np.ndarray) -> int:
    """Индекс класса-победителя; при равенстве голосов - меньший индекс."""
    return int(np.argmax(vote_counts(nr_class, dec_values)))


def svm_predict(model, x) -> float:
    """Метка класса для вектора x (голосованием)."""
    dec_values = svm_predict_values(model, x)
    return float(model.label[vote(model.nr_class, dec_values)])


def pairwise_probability(model, dec_values: np.ndarray) -> np.ndarray:
    """Матрица попарных вероятностей r[i][j] по откалиброванным сигмоидам."""
    nr_class = model.nr_class
    r = np.zeros((nr_class, nr_class), dtype=np.float64)
    p = 0
    for i in range(nr_class):
        for j in range(i + 1, nr_class):
            prob = sigmoid_predict(dec_values[p], model.probA[p], model.probB[p])
            r[i, j] = min(max(prob, MIN_PROB), 1 - MIN_PROB)
            r[j, i] = 1 - r[i, j]
            p += 1
    return r


def svm_predict_probability(model, x) -> Tuple[float, Optional[np.ndarray]]:
    """
    Метка класса и вероятности классов для вектора x.

    Если модель обучена без калибровки, возвращает результат svm_predict
    и None вместо вероятностей.

    Returns:
        (label, prob_estimates)
    """
    if not svm_check_probability_model(model):
        return svm_predict(model, x), None

    dec_values = svm_predict_values(model, x)
    r = pairwise_probability(model, dec_values)
    prob_estimates = multiclass_probability(model.nr_class, r)

    return float(model.label[int(np.argmax(prob_estimates))]), prob_estimates


def svm_check_probability_model(model) -> bool:
    return model.probA is not None and model.probB is not None
