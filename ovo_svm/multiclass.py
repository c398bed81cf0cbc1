"""
Обучение многоклассового C-SVC по схеме one-vs-one.

Для k классов обучается k·(k-1)/2 бинарных классификаторов, по одному на
каждую пару классов (i, j), i < j: примеры класса i получают метку +1,
класса j - метку -1. Опорные векторы всех пар объединяются без повторов.

Хранение коэффициентов (как в libsvm), классификатор (i, j):
    коэффициенты примеров класса i лежат в sv_coef[j-1][nz_start[i] ...]
    коэффициенты примеров класса j лежат в sv_coef[i][nz_start[j] ...]
"""

import warnings
import numpy as np
from dataclasses import dataclass
from typing import List, Optional, Tuple
from tqdm.auto import tqdm

from .label_mapping import class_index_of, group_classes
from .parameters import SVMParameter, SVMParameterError, SVMProblem, check_parameter
from .predict import svm_predict_values
from .probability import sigmoid_train
from .q_matrix import SVCQMatrix
from .shuffle import fold_bounds, random_permutation
from .smo_solver import SMOResult, Solver

# Число фолдов для калибровки вероятностей
PROBABILITY_FOLDS = 5


@dataclass
class DecisionFunction:
    """Бинарный классификатор: знаковые коэффициенты α_i·y_i и смещение rho."""
    alpha: np.ndarray
    rho: float
    n_sv: int = 0
    n_bsv: int = 0
    converged: bool = True


@dataclass
class SVMModel:
    """
    Обученная one-vs-one модель.

    Attributes:
        param: Параметры обучения
        nr_class: Число классов
        label: Метки классов (nr_class,)
        n_sv: Число опорных векторов каждого класса (nr_class,)
        SV: Опорные векторы, сгруппированные по классам (l, n_features)
        sv_coef: Коэффициенты (nr_class-1, l)
        rho: Смещения попарных классификаторов (nr_class·(nr_class-1)/2,)
        probA, probB: Параметры сигмоид Платта или None
    """
    param: SVMParameter
    nr_class: int
    label: np.ndarray
    n_sv: np.ndarray
    SV: np.ndarray
    sv_coef: np.ndarray
    rho: np.ndarray
    probA: Optional[np.ndarray] = None
    probB: Optional[np.ndarray] = None

    @property
    def l(self) -> int:
        """Общее число опорных векторов."""
        return self.SV.shape[0]


class SVCoefBuilder:
    """
    Накопитель коэффициентов опорных векторов.

    Собирает тройки (позиция опорного вектора, строка, коэффициент)
    и один раз строит плотную матрицу sv_coef.
    """

    def __init__(self, nr_class: int, n_sv_total: int):
        self.shape = (max(nr_class - 1, 0), n_sv_total)
        self._slots: List[np.ndarray] = []
        self._rows: List[np.ndarray] = []
        self._coefs: List[np.ndarray] = []

    def add(self, slots: np.ndarray, row: int, coefs: np.ndarray) -> None:
        slots = np.asarray(slots, dtype=np.int64)
        self._slots.append(slots)
        self._rows.append(np.full(len(slots), row, dtype=np.int64))
        self._coefs.append(np.asarray(coefs, dtype=np.float64))

    def build(self) -> np.ndarray:
        sv_coef = np.zeros(self.shape, dtype=np.float64)
        if self._slots:
            sv_coef[np.concatenate(self._rows), np.concatenate(self._slots)] = np.concatenate(self._coefs)
        return sv_coef


# =============================================================================
# Бинарная задача
# =============================================================================

def solve_c_svc(
    x: np.ndarray,
    truth: np.ndarray,
    param: SVMParameter,
    Cp: float,
    Cn: float
) -> Tuple[np.ndarray, SMOResult]:
    """
    Решает бинарную задачу C-SVC с линейным членом -1.

    Returns:
        (alpha, result): alpha уже умножены на y_i
    """
    l = len(truth)
    y = np.where(truth > 0, 1.0, -1.0)
    minus_ones = -np.ones(l, dtype=np.float64)

    solver = Solver(verbose=param.verbose)
    result = solver.solve(
        l, SVCQMatrix(x, y, param.cache_bytes), minus_ones, y,
        np.zeros(l, dtype=np.float64), Cp, Cn, param.eps, param.shrinking
    )

    return result.alpha * y, result


def svm_train_one(
    x: np.ndarray,
    truth: np.ndarray,
    param: SVMParameter,
    Cp: float,
    Cn: float
) -> DecisionFunction:
    """Обучает один бинарный классификатор (метки truth > 0 - положительный класс)."""
    alpha, result = solve_c_svc(x, truth, param, Cp, Cn)

    abs_alpha = np.abs(alpha)
    is_sv = abs_alpha > 0
    upper = np.where(truth > 0, result.upper_bound_p, result.upper_bound_n)
    n_sv = int(np.sum(is_sv))
    n_bsv = int(np.sum(is_sv & (abs_alpha >= upper)))

    if param.verbose:
        print(f"  obj = {result.obj:.6f}, rho = {result.rho:.6f}")
        print(f"  nSV = {n_sv}, nBSV = {n_bsv}")

    return DecisionFunction(
        alpha=alpha,
        rho=result.rho,
        n_sv=n_sv,
        n_bsv=n_bsv,
        converged=result.converged
    )


def svm_binary_svc_probability(
    x: np.ndarray,
    truth: np.ndarray,
    param: SVMParameter,
    Cp: float,
    Cn: float
) -> Tuple[float, float]:
    """
    Параметры сигмоиды Платта по решающим значениям, полученным
    внутренней кросс-валидацией на PROBABILITY_FOLDS фолдах.

    Returns:
        (A, B)
    """
    l = len(truth)
    perm = random_permutation(l)
    dec_values = np.zeros(l, dtype=np.float64)

    for begin, end in fold_bounds(l, PROBABILITY_FOLDS):
        train_idx = np.concatenate([perm[:begin], perm[end:]])
        test_idx = perm[begin:end]

        sub_truth = truth[train_idx]
        p_count = int(np.sum(sub_truth > 0))
        n_count = len(sub_truth) - p_count

        if p_count == 0 and n_count == 0:
            dec_values[test_idx] = 0
        elif p_count > 0 and n_count == 0:
            dec_values[test_idx] = 1
        elif p_count == 0 and n_count > 0:
            dec_values[test_idx] = -1
        else:
            subparam = param.copy(probability=0, C=1.0, weight={1: Cp, -1: Cn}, verbose=False)
            submodel = svm_train(SVMProblem(x[train_idx], sub_truth), subparam)
            for k in test_idx:
                # Порядок +1/-1 зависит от первой метки подвыборки
                dec_values[k] = svm_predict_values(submodel, x[k])[0] * submodel.label[0]

    return sigmoid_train(dec_values, truth)


# =============================================================================
# One-vs-one
# =============================================================================

def svm_train(problem: SVMProblem, param: SVMParameter) -> SVMModel:
    """
    Обучает многоклассовую модель.

    Raises:
        SVMParameterError: если параметры не прошли check_parameter
    """
    error = check_parameter(problem, param)
    if error is not None:
        raise SVMParameterError(error)
    if problem.l == 0:
        raise ValueError("Training set is empty")

    l = problem.l
    grouping = group_classes(problem.y)
    nr_class = grouping.nr_class
    label, count, start = grouping.label, grouping.count, grouping.start

    # Примеры, перегруппированные по классам
    x = problem.x[grouping.perm]

    weighted_C = np.full(nr_class, param.C, dtype=np.float64)
    for weight_label, weight in param.weight.items():
        j = class_index_of(grouping, weight_label)
        if j < 0:
            warnings.warn(f"class label {weight_label} specified in weight is not found")
        else:
            weighted_C[j] *= weight

    if param.verbose:
        print(f"Training one-vs-one SVM: {l} samples, {nr_class} classes, "
              f"{nr_class * (nr_class - 1) // 2} binary problems")

    nonzero = np.zeros(l, dtype=bool)
    pairs = [(i, j) for i in range(nr_class) for j in range(i + 1, nr_class)]
    n_pairs = len(pairs)
    f: List[DecisionFunction] = []

    probA = probB = None
    if param.probability == 1:
        probA = np.zeros(n_pairs, dtype=np.float64)
        probB = np.zeros(n_pairs, dtype=np.float64)

    iterator = tqdm(pairs, desc="One-vs-one") if param.verbose else pairs

    for p, (i, j) in enumerate(iterator):
        si, sj = start[i], start[j]
        ci, cj = count[i], count[j]

        sub_x = np.concatenate([x[si:si + ci], x[sj:sj + cj]])
        sub_truth = np.concatenate([np.ones(ci), -np.ones(cj)])

        if param.probability == 1:
            probA[p], probB[p] = svm_binary_svc_probability(
                sub_x, sub_truth, param, weighted_C[i], weighted_C[j]
            )

        fp = svm_train_one(sub_x, sub_truth, param, weighted_C[i], weighted_C[j])
        nonzero[si:si + ci] |= fp.alpha[:ci] != 0
        nonzero[sj:sj + cj] |= fp.alpha[ci:] != 0
        f.append(fp)

        if not fp.converged:
            warnings.warn(f"Binary problem ({label[i]}, {label[j]}) did not converge")

    # Сборка модели
    nz_count = np.array(
        [int(np.sum(nonzero[start[i]:start[i] + count[i]])) for i in range(nr_class)],
        dtype=np.int64
    )
    nnz = int(nz_count.sum())

    nz_start = np.zeros(nr_class, dtype=np.int64)
    if nr_class > 1:
        nz_start[1:] = np.cumsum(nz_count)[:-1]

    builder = SVCoefBuilder(nr_class, nnz)
    for p, (i, j) in enumerate(pairs):
        si, sj = start[i], start[j]
        ci, cj = count[i], count[j]

        kept_i = np.nonzero(nonzero[si:si + ci])[0]
        builder.add(nz_start[i] + np.arange(len(kept_i)), j - 1, f[p].alpha[kept_i])

        kept_j = np.nonzero(nonzero[sj:sj + cj])[0]
        builder.add(nz_start[j] + np.arange(len(kept_j)), i, f[p].alpha[ci + kept_j])

    model = SVMModel(
        param=param,
        nr_class=nr_class,
        label=label.copy(),
        n_sv=nz_count,
        SV=x[nonzero].copy(),
        sv_coef=builder.build(),
        rho=np.array([fp.rho for fp in f], dtype=np.float64),
        probA=probA,
        probB=probB
    )

    if param.verbose:
        print(f"Total nSV = {nnz}")

    return model


def svm_get_nr_class(model: SVMModel) -> int:
    return model.nr_class


def svm_get_labels(model: SVMModel) -> np.ndarray:
    return model.label.copy()
