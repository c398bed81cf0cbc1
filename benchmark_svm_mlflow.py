import os
import sys
import time
import numpy as np
import mlflow
import warnings
from tqdm.auto import tqdm
from sklearn.datasets import load_iris, load_wine, load_digits
from sklearn.metrics import f1_score, accuracy_score, classification_report
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from ovo_svm import (
    SVMParameter,
    SVMProblem,
    svm_train,
    svm_predict,
    svm_predict_probability,
    cross_validation_accuracy,
    compute_all_metrics,
)

# --- КОНФИГУРАЦИЯ ---
CONFIG = {
    # Датасеты sklearn; digits ограничен первыми digits_classes классами
    "datasets": ["iris", "wine", "digits"],
    "digits_classes": 5,
    "test_size": 0.3,
    "random_seed": 42,
    "use_scaler": True,

    # Параметры C-SVC
    "C": 1.0,
    "eps": 1e-3,
    "cache_size": 100.0,   # MB
    "shrinking": 1,
    "probability": 1,
    "nr_fold": 5,
    "verbose": False,

    # Baseline sklearn SVC(kernel="linear")
    "run_sklearn_baseline": True,

    # MLFLOW Settings
    "mlflow_tracking_uri": "http://localhost:5000",
    "experiment_name": "OvO_Linear_SVM_Benchmark",
}

os.environ["MLFLOW_TRACKING_URI"] = CONFIG["mlflow_tracking_uri"]


def load_dataset(name):
    """Возвращает (X, y, target_names) для датасета sklearn."""
    if name == "iris":
        ds = load_iris()
        return ds.data, ds.target, list(ds.target_names)
    if name == "wine":
        ds = load_wine()
        return ds.data, ds.target, list(ds.target_names)
    if name == "digits":
        ds = load_digits()
        mask = ds.target < CONFIG["digits_classes"]
        return ds.data[mask], ds.target[mask], [str(c) for c in range(CONFIG["digits_classes"])]
    raise ValueError(f"Unknown dataset: {name}")


def make_param():
    return SVMParameter(
        C=CONFIG["C"],
        eps=CONFIG["eps"],
        cache_size=CONFIG["cache_size"],
        shrinking=CONFIG["shrinking"],
        probability=CONFIG["probability"],
        verbose=CONFIG["verbose"],
    )


def train_sklearn_baseline(X_train, y_train, X_test, y_test, dataset_name):
    """sklearn SVC(kernel="linear") на тех же данных."""
    print(f"\n--- Training sklearn SVC for {dataset_name} ---")
    with mlflow.start_run(run_name=f"sklearn_SVC_linear_on_{dataset_name}"):
        mlflow.log_param("dataset", dataset_name)
        mlflow.log_param("classifier", "sklearn_SVC_linear")
        mlflow.log_param("C", CONFIG["C"])
        mlflow.log_param("use_scaler", CONFIG["use_scaler"])

        start = time.time()
        svc = SVC(kernel="linear", C=CONFIG["C"], tol=CONFIG["eps"], shrinking=bool(CONFIG["shrinking"]))
        svc.fit(X_train, y_train)
        train_time = time.time() - start

        y_pred = svc.predict(X_test)
        metrics = {
            "accuracy": accuracy_score(y_test, y_pred),
            "f1_macro": f1_score(y_test, y_pred, average="macro"),
            "train_time": train_time,
            "n_support_vectors": int(len(svc.support_)),
        }
        print(f"    SVC: accuracy={metrics['accuracy']:.4f}, F1_macro={metrics['f1_macro']:.4f}")
        mlflow.log_metrics(metrics)

    return y_pred, metrics


def run_dataset(name):
    """Обучение, кросс-валидация и оценка на одном датасете."""
    X, y, target_names = load_dataset(name)
    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=CONFIG["test_size"], random_state=CONFIG["random_seed"], stratify=y
    )

    if CONFIG["use_scaler"]:
        scaler = StandardScaler()
        X_train = scaler.fit_transform(X_train)
        X_test = scaler.transform(X_test)

    y_train = y_train.astype(float)
    y_test = y_test.astype(float)

    print(f"\n{'='*60}")
    print(f"Dataset: {name}  train={len(y_train)}, test={len(y_test)}, "
          f"features={X_train.shape[1]}, classes={len(np.unique(y_train))}")
    print(f"{'='*60}")

    param = make_param()
    problem = SVMProblem(X_train, y_train)
    results = {}

    reference_pred = None
    if CONFIG["run_sklearn_baseline"]:
        reference_pred, sklearn_metrics = train_sklearn_baseline(X_train, y_train, X_test, y_test, name)
        results[f"sklearn_SVC_{name}"] = sklearn_metrics

    with mlflow.start_run(run_name=f"OvO_SVM_on_{name}"):
        mlflow.log_param("dataset", name)
        mlflow.log_param("classifier", "ovo_svm")
        mlflow.log_param("C", param.C)
        mlflow.log_param("eps", param.eps)
        mlflow.log_param("cache_size", param.cache_size)
        mlflow.log_param("shrinking", param.shrinking)
        mlflow.log_param("probability", param.probability)
        mlflow.log_param("nr_fold", CONFIG["nr_fold"])
        mlflow.log_param("use_scaler", CONFIG["use_scaler"])

        np.random.seed(CONFIG["random_seed"])
        cv_acc = cross_validation_accuracy(problem, param, CONFIG["nr_fold"])
        print(f"  Cross Validation Accuracy = {cv_acc * 100:.2f}%")

        np.random.seed(CONFIG["random_seed"])
        start = time.time()
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            model = svm_train(problem, param)
        train_time = time.time() - start
        for w in caught:
            print(f"  Warning: {w.message}")

        y_pred = np.empty(len(y_test))
        for k in tqdm(range(len(y_test)), desc=f"Predict {name}"):
            if param.probability == 1:
                y_pred[k], _ = svm_predict_probability(model, X_test[k])
            else:
                y_pred[k] = svm_predict(model, X_test[k])

        metrics = compute_all_metrics(y_test, y_pred, y_reference=reference_pred)
        metrics.update({
            "cv_accuracy": cv_acc,
            "train_time": train_time,
            "n_support_vectors": model.l,
            "n_warnings": len(caught),
        })

        print(f"  Test accuracy={metrics['accuracy']:.4f}, F1_macro={metrics['macro_f1']:.4f}")
        print(f"  nSV per class: {model.n_sv.tolist()} (total {model.l})")
        if reference_pred is not None:
            print(f"  Agreement with sklearn SVC: {metrics['agreement']:.4f}")

        mlflow.log_metrics(metrics)

        np.savez(
            "ovo_svm_model.npz",
            label=model.label, n_sv=model.n_sv, SV=model.SV, sv_coef=model.sv_coef, rho=model.rho,
            probA=model.probA if model.probA is not None else np.empty(0),
            probB=model.probB if model.probB is not None else np.empty(0),
        )
        mlflow.log_artifact("ovo_svm_model.npz")

        report = classification_report(
            y_test, y_pred, labels=np.arange(len(target_names)).astype(float),
            target_names=target_names, zero_division=0
        )
        with open("classification_report.txt", "w", encoding="utf-8") as f:
            f.write(f"Dataset: {name}\n")
            f.write("Classifier: one-vs-one C-SVC, linear kernel\n\n")
            f.write(f"Parameters:\n")
            f.write(f"  C = {param.C}\n")
            f.write(f"  eps = {param.eps}\n")
            f.write(f"  shrinking = {param.shrinking}\n")
            f.write(f"  probability = {param.probability}\n")
            f.write(f"  cross validation accuracy ({CONFIG['nr_fold']} folds) = {cv_acc:.4f}\n\n")
            f.write(report)
        mlflow.log_artifact("classification_report.txt")

    results[f"OvO_SVM_{name}"] = metrics
    return results


def main():
    """Главная функция бенчмарка."""
    print("Start Benchmark: one-vs-one linear C-SVC")
    print(f"  C = {CONFIG['C']}, eps = {CONFIG['eps']}, probability = {CONFIG['probability']}")

    mlflow.set_experiment(CONFIG["experiment_name"])

    all_results = {}
    for name in CONFIG["datasets"]:
        try:
            all_results.update(run_dataset(name))
        except Exception as e:
            print(f"Error processing {name}: {e}")
            import traceback
            traceback.print_exc()
            continue

    print("\n" + "="*80)
    print("SUMMARY - All Results")
    print("="*80)
    print(f"{'Model':<35} {'Accuracy':<10} {'F1_macro':<10} {'Train, s':<10}")
    print("-"*65)
    for name, m in all_results.items():
        f1 = m.get("macro_f1", m.get("f1_macro", 0))
        print(f"{name:<35} {m['accuracy']:<10.4f} {f1:<10.4f} {m['train_time']:<10.3f}")


if __name__ == "__main__":
    main()
