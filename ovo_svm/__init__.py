from .parameters import (
    C_SVC,
    LINEAR,
    SVMParameter,
    SVMParameterError,
    SVMProblem,
    check_parameter,
)

from .kernel_cache import KernelCache
from .kernels import Kernel
from .q_matrix import SVCQMatrix
from .smo_solver import ConvergenceWarning, SMOResult, Solver

from .multiclass import (
    DecisionFunction,
    SVMModel,
    svm_train,
    svm_get_nr_class,
    svm_get_labels,
)

from .predict import (
    svm_predict_values,
    svm_predict,
    svm_predict_probability,
    svm_check_probability_model,
)

from .probability import sigmoid_train, sigmoid_predict, multiclass_probability
from .cross_validation import svm_cross_validation, cross_validation_accuracy

from .metrics import (
    accuracy,
    per_class_accuracy,
    macro_f1,
    agreement,
    compute_all_metrics,
)

__all__ = [
    # Parameters
    "C_SVC",
    "LINEAR",
    "SVMParameter",
    "SVMParameterError",
    "SVMProblem",
    "check_parameter",
    # Solver internals
    "KernelCache",
    "Kernel",
    "SVCQMatrix",
    "ConvergenceWarning",
    "SMOResult",
    "Solver",
    # Training
    "DecisionFunction",
    "SVMModel",
    "svm_train",
    "svm_get_nr_class",
    "svm_get_labels",
    # Prediction
    "svm_predict_values",
    "svm_predict",
    "svm_predict_probability",
    "svm_check_probability_model",
    # Probability
    "sigmoid_train",
    "sigmoid_predict",
    "multiclass_probability",
    # Cross-validation
    "svm_cross_validation",
    "cross_validation_accuracy",
    # Metrics
    "accuracy",
    "per_class_accuracy",
    "macro_f1",
    "agreement",
    "compute_all_metrics",
]
