"""
Кросс-валидация one-vs-one SVM.

Выборка перемешивается (np.random), делится на nr_fold непрерывных блоков;
каждый блок предсказывается моделью, обученной на остальных.
"""

import warnings
import numpy as np
from tqdm.auto import tqdm

from .multiclass import svm_train
from .parameters import SVMParameter, SVMProblem
from .predict import svm_predict, svm_predict_probability
from .shuffle import fold_bounds, random_permutation


def svm_cross_validation(problem: SVMProblem, param: SVMParameter, nr_fold: int) -> np.ndarray:
    """
    Предсказания кросс-валидации для каждого примера.

    Args:
        problem: Обучающая выборка
        param: Параметры обучения
        nr_fold: Число фолдов (>= 2; если больше числа примеров - уменьшается)

    Returns:
        target: Предсказанная метка для каждого примера в исходном порядке (l,)
    """
    if nr_fold < 2:
        raise ValueError(f"nr_fold must be at least 2, got {nr_fold}")

    l = problem.l
    if nr_fold > l:
        warnings.warn(f"nr_fold ({nr_fold}) is greater than number of samples ({l}), using {l}")
        nr_fold = l

    perm = random_permutation(l)
    target = np.zeros(l, dtype=np.float64)

    folds = list(fold_bounds(l, nr_fold))
    iterator = tqdm(folds, desc="Cross-validation") if param.verbose else folds

    for begin, end in iterator:
        train_idx = np.concatenate([perm[:begin], perm[end:]])
        submodel = svm_train(problem.subset(train_idx), param)

        for k in perm[begin:end]:
            if param.probability == 1:
                target[k], _ = svm_predict_probability(submodel, problem.x[k])
            else:
                target[k] = svm_predict(submodel, problem.x[k])

    return target


def cross_validation_accuracy(problem: SVMProblem, param: SVMParameter, nr_fold: int) -> float:
    """Доля верно предсказанных меток при кросс-валидации."""
    target = svm_cross_validation(problem, param, nr_fold)
    if problem.l == 0:
        return 0.0
    return float(np.mean(target == problem.y))
