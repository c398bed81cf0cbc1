"""
Sequential Minimal Optimization (SMO) солвер для двойственной задачи C-SVC.

Обобщённый алгоритм SMO + SVMlight (декомпозиция с рабочим множеством из двух
переменных), как в libsvm:
- Platt, J. (1998). "Sequential Minimal Optimization: A Fast Algorithm for Training SVMs"
- Chang, C.-C., Lin, C.-J. "LIBSVM: A Library for Support Vector Machines"

Решаемая задача:
    min_α 1/2 α^T Q α + b^T α

    s.t. y^T α = 0
         0 ≤ α_i ≤ Cp   ; y_i = +1
         0 ≤ α_i ≤ Cn   ; y_i = -1

Оптимизации:
- Строки Q считаются по требованию и хранятся в LRU-кэше (SVCQMatrix)
- Shrinking: переменные на границе, которые вряд ли изменятся, уходят
  за границу активного множества active_size (перестановкой, без удаления)
- G_bar: градиент от переменных на верхней границе, позволяет восстановить
  полный градиент после shrinking
- Numba JIT для выбора рабочего множества и вычисления rho
"""

import warnings
import numpy as np
from typing import Optional, Tuple
from dataclasses import dataclass
from numba import njit


LOWER_BOUND = 0
UPPER_BOUND = 1
FREE = 2

# Жёсткий предел числа итераций
MAX_ITER = 10000

# Нижняя граница знаменателя при обновлении пары
TAU = 1e-12


class ConvergenceWarning(RuntimeWarning):
    """Оптимизация остановлена до достижения критерия сходимости."""


@dataclass
class SMOResult:
    """Результат работы SMO солвера."""
    alpha: np.ndarray          # Множители Лагранжа (в исходном порядке примеров)
    rho: float                 # Смещение решающей функции f(x) = Σ α_i y_i K(x_i, x) - rho
    obj: float                 # Значение целевой функции
    n_iterations: int          # Количество итераций
    n_support_vectors: int     # Количество опорных векторов
    converged: bool            # Сходимость достигнута
    upper_bound_p: float       # Cp
    upper_bound_n: float       # Cn


# =============================================================================
# Numba-оптимизированные функции
# =============================================================================

@njit(cache=True)
def select_working_set_maximal_violation(
    y: np.ndarray,
    G: np.ndarray,
    alpha_status: np.ndarray,
    active_size: int
) -> Tuple[int, int, float]:
    """
    Выбор пары (i, j), максимально нарушающей условия KKT.

    i = argmax { -y_i·G_i : α_i может увеличиваться (по направлению y_i·d = +1) }
    j = argmax {  y_j·G_j : α_j может уменьшаться (по направлению y_j·d = -1) }

    Returns:
        (i, j, gap): индексы пары и суммарное нарушение Gmax1 + Gmax2
    """
    Gmax1 = -np.inf
    Gmax1_idx = -1
    Gmax2 = -np.inf
    Gmax2_idx = -1

    for t in range(active_size):
        if y[t] > 0:
            if alpha_status[t] != UPPER_BOUND:
                if -G[t] > Gmax1:
                    Gmax1 = -G[t]
                    Gmax1_idx = t
            if alpha_status[t] != LOWER_BOUND:
                if G[t] > Gmax2:
                    Gmax2 = G[t]
                    Gmax2_idx = t
        else:
            if alpha_status[t] != UPPER_BOUND:
                if -G[t] > Gmax2:
                    Gmax2 = -G[t]
                    Gmax2_idx = t
            if alpha_status[t] != LOWER_BOUND:
                if G[t] > Gmax1:
                    Gmax1 = G[t]
                    Gmax1_idx = t

    return Gmax1_idx, Gmax2_idx, Gmax1 + Gmax2


@njit(cache=True)
def calculate_rho(
    y: np.ndarray,
    G: np.ndarray,
    alpha_status: np.ndarray,
    active_size: int
) -> float:
    """
    Смещение rho из условий KKT.

    Если есть свободные переменные - среднее y_i·G_i по ним,
    иначе середина интервала [lb, ub], заданного граничными переменными.
    """
    ub = np.inf
    lb = -np.inf
    nr_free = 0
    sum_free = 0.0

    for i in range(active_size):
        yG = y[i] * G[i]

        if alpha_status[i] == LOWER_BOUND:
            if y[i] > 0:
                ub = min(ub, yG)
            else:
                lb = max(lb, yG)
        elif alpha_status[i] == UPPER_BOUND:
            if y[i] < 0:
                ub = min(ub, yG)
            else:
                lb = max(lb, yG)
        else:
            nr_free += 1
            sum_free += yG

    if nr_free > 0:
        return sum_free / nr_free
    return (ub + lb) / 2


# =============================================================================
# Основной класс солвера
# =============================================================================

class Solver:
    """
    Декомпозиционный солвер (SMO) двойственной задачи.

    Состояние (alpha, G, G_bar, alpha_status, active_set) принадлежит одному
    вызову solve() и не разделяется между солверами.
    """

    def __init__(self, max_iter: int = MAX_ITER, verbose: bool = False):
        self.max_iter = max_iter
        self.verbose = verbose

    def get_C(self, i: int) -> float:
        return self.Cp if self.y[i] > 0 else self.Cn

    def update_alpha_status(self, i: int) -> None:
        if self.alpha[i] >= self.get_C(i):
            self.alpha_status[i] = UPPER_BOUND
        elif self.alpha[i] <= 0:
            self.alpha_status[i] = LOWER_BOUND
        else:
            self.alpha_status[i] = FREE

    def is_upper_bound(self, i: int) -> bool:
        return self.alpha_status[i] == UPPER_BOUND

    def is_lower_bound(self, i: int) -> bool:
        return self.alpha_status[i] == LOWER_BOUND

    def is_free(self, i: int) -> bool:
        return self.alpha_status[i] == FREE

    def swap_index(self, i: int, j: int) -> None:
        self.Q.swap_index(i, j)
        for arr in (self.y, self.G, self.alpha_status, self.alpha,
                    self.b, self.active_set, self.G_bar):
            arr[[i, j]] = arr[[j, i]]

    def reconstruct_gradient(self) -> None:
        """Восстанавливает G для неактивных переменных из G_bar и свободных переменных."""
        l = self.l
        a = self.active_size
        if a == l:
            return

        self.G[a:l] = self.G_bar[a:l] + self.b[a:l]

        for i in range(a):
            if self.is_free(i):
                Q_i = self.Q.get_Q(i, l)
                self.G[a:l] += self.alpha[i] * Q_i[a:l]

    def select_working_set(self) -> Optional[Tuple[int, int]]:
        """
        Returns:
            (i, j) или None, если решение уже оптимально с точностью eps
        """
        i, j, gap = select_working_set_maximal_violation(
            self.y, self.G, self.alpha_status, self.active_size
        )
        if gap < self.eps:
            return None
        return i, j

    def solve(
        self,
        l: int,
        Q,
        b: np.ndarray,
        y: np.ndarray,
        alpha: np.ndarray,
        Cp: float,
        Cn: float,
        eps: float,
        shrinking: int
    ) -> SMOResult:
        """
        Решает двойственную задачу.

        Args:
            l: Число переменных
            Q: Матрица Q с методами get_Q(i, length) и swap_index(i, j)
            b: Линейный член (l,)
            y: Метки {-1, +1} (l,)
            alpha: Начальная допустимая точка (l,)
            Cp, Cn: Верхние границы для y = +1 и y = -1
            eps: Допуск критерия остановки
            shrinking: Использовать shrinking

        Returns:
            SMOResult с решением в исходном порядке примеров
        """
        self.l = l
        self.Q = Q
        self.b = np.array(b, dtype=np.float64, copy=True)
        self.y = np.array(y, dtype=np.float64, copy=True)
        self.alpha = np.array(alpha, dtype=np.float64, copy=True)
        self.Cp = Cp
        self.Cn = Cn
        self.eps = eps
        self.unshrinked = False

        self.alpha_status = np.empty(l, dtype=np.int8)
        for i in range(l):
            self.update_alpha_status(i)

        self.active_set = np.arange(l, dtype=np.int64)
        self.active_size = l

        # Начальный градиент: G = Qα + b, G_bar = Σ_{α_i = C_i} C_i Q_i
        self.G = self.b.copy()
        self.G_bar = np.zeros(l, dtype=np.float64)
        for i in range(l):
            if not self.is_lower_bound(i):
                Q_i = self.Q.get_Q(i, l)
                self.G += self.alpha[i] * Q_i[:l]
                if self.is_upper_bound(i):
                    self.G_bar += self.get_C(i) * Q_i[:l]

        if self.verbose:
            print(f"SMO solver started: {l} samples, Cp={Cp}, Cn={Cn}, eps={eps}")

        iteration = 0
        converged = False
        counter = min(l, 1000) + 1

        while True:
            if iteration >= self.max_iter:
                break

            counter -= 1
            if counter == 0:
                counter = min(l, 1000)
                if shrinking:
                    self.do_shrinking()

            working_set = self.select_working_set()
            if working_set is None:
                # Восстанавливаем полный градиент и проверяем ещё раз
                self.reconstruct_gradient()
                self.active_size = l
                working_set = self.select_working_set()
                if working_set is None:
                    converged = True
                    break
                counter = 1  # shrinking на следующей итерации

            i, j = working_set
            iteration += 1

            self._update_pair(i, j)

        if not converged:
            self.reconstruct_gradient()
            self.active_size = l
            warnings.warn(
                f"SMO solver reached max number of iterations ({self.max_iter})",
                ConvergenceWarning
            )

        rho = calculate_rho(self.y, self.G, self.alpha_status, self.active_size)
        obj = float(np.dot(self.alpha, self.G + self.b)) / 2

        # Возвращаем решение в исходном порядке
        alpha_out = np.empty(l, dtype=np.float64)
        alpha_out[self.active_set] = self.alpha

        n_sv = int(np.sum(alpha_out > 0))

        if self.verbose:
            print(f"SMO finished: {iteration} iterations, {n_sv} support vectors, converged={converged}")
            print(f"  Objective value: {obj:.6f}, rho: {rho:.6f}")

        return SMOResult(
            alpha=alpha_out,
            rho=float(rho),
            obj=obj,
            n_iterations=iteration,
            n_support_vectors=n_sv,
            converged=converged,
            upper_bound_p=Cp,
            upper_bound_n=Cn
        )

    def _update_pair(self, i: int, j: int) -> None:
        """Аналитическое обновление α_i, α_j и градиента."""
        alpha = self.alpha
        G = self.G
        a = self.active_size

        Q_i = self.Q.get_Q(i, a)
        Q_j = self.Q.get_Q(j, a)

        C_i = self.get_C(i)
        C_j = self.get_C(j)

        old_alpha_i = alpha[i]
        old_alpha_j = alpha[j]

        if self.y[i] != self.y[j]:
            # α_i - α_j = const
            quad_coef = max(Q_i[i] + Q_j[j] + 2 * Q_i[j], TAU)
            delta = (-G[i] - G[j]) / quad_coef
            diff = alpha[i] - alpha[j]
            alpha[i] += delta
            alpha[j] += delta

            if diff > 0:
                if alpha[j] < 0:
                    alpha[j] = 0
                    alpha[i] = diff
            else:
                if alpha[i] < 0:
                    alpha[i] = 0
                    alpha[j] = -diff
            if diff > C_i - C_j:
                if alpha[i] > C_i:
                    alpha[i] = C_i
                    alpha[j] = C_i - diff
            else:
                if alpha[j] > C_j:
                    alpha[j] = C_j
                    alpha[i] = C_j + diff
        else:
            # α_i + α_j = const
            quad_coef = max(Q_i[i] + Q_j[j] - 2 * Q_i[j], TAU)
            delta = (G[i] - G[j]) / quad_coef
            total = alpha[i] + alpha[j]
            alpha[i] -= delta
            alpha[j] += delta

            if total > C_i:
                if alpha[i] > C_i:
                    alpha[i] = C_i
                    alpha[j] = total - C_i
            else:
                if alpha[j] < 0:
                    alpha[j] = 0
                    alpha[i] = total
            if total > C_j:
                if alpha[j] > C_j:
                    alpha[j] = C_j
                    alpha[i] = total - C_j
            else:
                if alpha[i] < 0:
                    alpha[i] = 0
                    alpha[j] = total

        delta_alpha_i = alpha[i] - old_alpha_i
        delta_alpha_j = alpha[j] - old_alpha_j

        G[:a] += Q_i[:a] * delta_alpha_i + Q_j[:a] * delta_alpha_j

        # Обновляем статусы и G_bar
        ui = self.is_upper_bound(i)
        uj = self.is_upper_bound(j)
        self.update_alpha_status(i)
        self.update_alpha_status(j)
        l = self.l

        if ui != self.is_upper_bound(i):
            Q_i = self.Q.get_Q(i, l)
            if ui:
                self.G_bar -= C_i * Q_i[:l]
            else:
                self.G_bar += C_i * Q_i[:l]

        if uj != self.is_upper_bound(j):
            Q_j = self.Q.get_Q(j, l)
            if uj:
                self.G_bar -= C_j * Q_j[:l]
            else:
                self.G_bar += C_j * Q_j[:l]

    def _shrinkable(self, k: int, Gm1: float, Gm2: float) -> bool:
        G_k = self.G[k]
        if self.is_lower_bound(k):
            if self.y[k] > 0:
                return -G_k < Gm1
            return -G_k < Gm2
        if self.is_upper_bound(k):
            if self.y[k] > 0:
                return G_k < Gm2
            return G_k < Gm1
        return False

    def do_shrinking(self) -> None:
        working_set = self.select_working_set()
        if working_set is None:
            return

        i, j = working_set
        Gm1 = -self.y[j] * self.G[j]
        Gm2 = self.y[i] * self.G[i]

        # Shrink
        k = 0
        while k < self.active_size:
            if self._shrinkable(k, Gm1, Gm2):
                self.active_size -= 1
                self.swap_index(k, self.active_size)
                continue  # смотрим на пришедший элемент
            k += 1

        # Unshrink: перед финальными итерациями проверяем все переменные ещё раз
        if self.unshrinked or -(Gm1 + Gm2) > self.eps * 10:
            return

        self.unshrinked = True
        self.reconstruct_gradient()

        k = self.l - 1
        while k >= self.active_size:
            if self.is_free(k) or self._shrinkable(k, Gm1, Gm2):
                k -= 1
                continue
            self.swap_index(k, self.active_size)
            self.active_size += 1
