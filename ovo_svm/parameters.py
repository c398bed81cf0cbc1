"""
Контейнеры данных и параметров для обучения SVM.

- SVMProblem: матрица признаков и метки классов
- SVMParameter: гиперпараметры (C, eps, размер кэша, shrinking, вероятности, веса классов)
- check_parameter: проверка параметров до начала обучения
"""

import numpy as np
from dataclasses import dataclass, field, replace
from typing import Dict, Optional


# Поддерживается только C-SVC с линейным ядром
C_SVC = "c_svc"
LINEAR = "linear"

# Служебные байты на одну запись кэша (как в libsvm: sizeof(head_t) == 16)
CACHE_ENTRY_OVERHEAD = 16
FLOAT_SIZE = 8


class SVMParameterError(ValueError):
    """Ошибка конфигурации: обучение не запускается."""


@dataclass
class SVMProblem:
    """
    Обучающая выборка.

    Args:
        x: Матрица признаков (n_samples, n_features)
        y: Метки классов (n_samples,)
    """
    x: np.ndarray
    y: np.ndarray

    def __post_init__(self):
        x = np.ascontiguousarray(np.asarray(self.x, dtype=np.float64))
        y = np.asarray(self.y, dtype=np.float64).reshape(-1)

        if x.ndim == 1 and x.size == 0:
            x = x.reshape(0, 0)
        if x.ndim != 2:
            raise ValueError(f"x должна быть матрицей (n_samples, n_features), получено ndim={x.ndim}")
        if x.shape[0] != y.shape[0]:
            raise ValueError(
                f"Число векторов ({x.shape[0]}) не совпадает с числом меток ({y.shape[0]})"
            )

        self.x = x
        self.y = y

    @property
    def l(self) -> int:
        return self.x.shape[0]

    @property
    def n_features(self) -> int:
        return self.x.shape[1]

    def subset(self, indices) -> "SVMProblem":
        """Новая подвыборка (копия, без ссылок на исходные массивы)."""
        indices = np.asarray(indices, dtype=np.int64)
        return SVMProblem(self.x[indices].copy(), self.y[indices].copy())


@dataclass
class SVMParameter:
    """
    Гиперпараметры обучения.

    Args:
        svm_type: Тип задачи (только "c_svc")
        kernel_type: Тип ядра (только "linear")
        C: Штраф за нарушение отступа
        eps: Допуск критерия остановки
        cache_size: Размер кэша ядра в мегабайтах
        shrinking: Использовать shrinking (0 или 1)
        probability: Обучать калибровку вероятностей (0 или 1)
        weight: Множители C для отдельных меток {label: multiplier}
        verbose: Выводить отладочную информацию
    """
    svm_type: str = C_SVC
    kernel_type: str = LINEAR
    C: float = 1.0
    eps: float = 1e-3
    cache_size: float = 100.0
    shrinking: int = 1
    probability: int = 0
    weight: Dict[float, float] = field(default_factory=dict)
    verbose: bool = False

    def copy(self, **changes) -> "SVMParameter":
        """Производная копия параметров (словарь весов копируется)."""
        changes.setdefault("weight", dict(self.weight))
        return replace(self, **changes)

    @property
    def cache_bytes(self) -> int:
        return int(self.cache_size * (1 << 20))


def cache_capacity(cache_bytes: int, l: int) -> int:
    """Сколько значений float64 помещается в кэш после вычета служебных байтов."""
    return (cache_bytes - l * CACHE_ENTRY_OVERHEAD) // FLOAT_SIZE


def check_parameter(problem: SVMProblem, param: SVMParameter) -> Optional[str]:
    """
    Проверяет параметры до обучения.

    Returns:
        Текст первой найденной ошибки или None, если параметры корректны
    """
    if param.svm_type != C_SVC:
        return "unknown svm type"

    if param.kernel_type != LINEAR:
        return "unknown kernel type"

    if param.cache_size <= 0:
        return "cache_size <= 0"

    if param.eps <= 0:
        return "eps <= 0"

    if param.C <= 0:
        return "C <= 0"

    if param.shrinking not in (0, 1):
        return "shrinking != 0 and shrinking != 1"

    if param.probability not in (0, 1):
        return "probability != 0 and probability != 1"

    # Кэш должен вмещать хотя бы одну полную строку Q
    l = problem.l
    if l > 0 and cache_capacity(param.cache_bytes, l) < l:
        return f"cache_size too small for {l} training examples"

    return None
