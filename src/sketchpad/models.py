"""
Classifiers for the Sketchpad Character Classifier
Implements CNN, SVM, and Random Forest models over 784-value feature vectors
"""

import numpy as np
# TensorFlow is optional for SVM/RF; guard its import to support environments
# where TensorFlow is unavailable. The CNN model will raise a clear error when
# used without TensorFlow.
try:
    import tensorflow as tf  # type: ignore
    from tensorflow import keras  # type: ignore
    from tensorflow.keras import layers  # type: ignore
    _TF_AVAILABLE = True
    _TF_IMPORT_ERROR = None
except Exception as _e:  # pragma: no cover - environment dependent
    tf = None  # type: ignore
    keras = None  # type: ignore
    layers = None  # type: ignore
    _TF_AVAILABLE = False
    _TF_IMPORT_ERROR = _e
from sklearn.svm import SVC
from sklearn.ensemble import RandomForestClassifier
from sklearn.metrics import classification_report, confusion_matrix, accuracy_score
import pickle
from typing import Dict, Any, Optional
import matplotlib.pyplot as plt
import seaborn as sns

from .constants import FEATURE_LENGTH, TARGET_SIZE


def tensorflow_available() -> bool:
    return _TF_AVAILABLE


def _as_label_indices(y) -> np.ndarray:
    """Accept integer labels or one-hot rows."""
    y = np.asarray(y)
    if y.ndim == 2:
        return np.argmax(y, axis=1)
    return y.astype(np.int64)


def _as_feature_matrix(X) -> np.ndarray:
    X = np.asarray(X, dtype=np.float32)
    if X.ndim == 1:
        X = X.reshape(1, -1)
    elif X.ndim > 2:
        X = X.reshape(X.shape[0], -1)
    if X.shape[1] != FEATURE_LENGTH:
        raise ValueError(f"Expected {FEATURE_LENGTH} features per sample, got {X.shape[1]}")
    return X


def _evaluation_report(y_true, y_pred, y_pred_proba) -> Dict[str, Any]:
    return {
        'accuracy': accuracy_score(y_true, y_pred),
        'predictions': y_pred,
        'probabilities': y_pred_proba,
        'classification_report': classification_report(y_true, y_pred, zero_division=0),
        'confusion_matrix': confusion_matrix(y_true, y_pred),
    }


class CNNModel:
    """Convolutional Neural Network over flattened 28x28 glyphs"""

    def __init__(self, num_classes=10):
        self.input_shape = (FEATURE_LENGTH,)
        self.num_classes = int(num_classes)
        self.model = None
        self.history = None

    def _ensure_tf(self):
        """Ensure TensorFlow is available before using CNN features."""
        if not _TF_AVAILABLE:
            raise ImportError(
                "TensorFlow is not available. The CNN model requires TensorFlow. "
                "Install a compatible version (pip install tensorflow) "
                f"or switch to SVM/Random Forest. Original import error: {_TF_IMPORT_ERROR}"
            )

    def build_model(self):
        """Build a small CNN: two conv/pool blocks and a dense head"""
        self._ensure_tf()
        self.model = keras.Sequential([
            layers.Input(shape=self.input_shape),
            layers.Reshape((TARGET_SIZE, TARGET_SIZE, 1)),
            layers.Conv2D(32, (3, 3), activation='relu'),
            layers.MaxPooling2D((2, 2)),
            layers.Conv2D(64, (3, 3), activation='relu'),
            layers.MaxPooling2D((2, 2)),
            layers.Flatten(),
            layers.Dense(128, activation='relu'),
            layers.Dropout(0.2),
            layers.Dense(self.num_classes, activation='softmax')
        ])

        self.model.compile(
            optimizer='adam',
            loss='categorical_crossentropy',
            metrics=['accuracy']
        )

        return self.model

    def train(self, X_train, y_train, epochs=5, batch_size=32, verbose=0):
        """Train the CNN model on features and integer or one-hot labels"""
        self._ensure_tf()
        if self.model is None:
            self.build_model()

        X_train = _as_feature_matrix(X_train)
        y_onehot = np.eye(self.num_classes, dtype=np.float32)[_as_label_indices(y_train)]

        self.history = self.model.fit(
            X_train, y_onehot,
            batch_size=batch_size,
            epochs=epochs,
            verbose=verbose
        )

        return self.history

    def evaluate(self, X_test, y_test):
        """Evaluate model performance"""
        y_pred, y_pred_proba = self.predict(X_test)
        return _evaluation_report(_as_label_indices(y_test), y_pred, y_pred_proba)

    def save_model(self, filepath):
        """Save trained model"""
        self._ensure_tf()
        if self.model is None:
            raise ValueError("No model to save!")
        self.model.save(filepath)

    def load_model(self, filepath):
        """Load trained model"""
        self._ensure_tf()
        self.model = keras.models.load_model(filepath)

    def predict(self, X):
        """Make predictions on input data"""
        self._ensure_tf()
        if self.model is None:
            raise ValueError("Model not trained or loaded yet!")

        X = _as_feature_matrix(X)
        predictions = np.asarray(self.model.predict(X, verbose=0))
        return np.argmax(predictions, axis=1), predictions

    def predict_proba(self, features) -> np.ndarray:
        """Probability vector for a single feature vector"""
        _, probabilities = self.predict(features)
        return probabilities[0]

    def plot_training_history(self, title: Optional[str] = None):
        """Per-epoch accuracy and loss curves from the last ``train`` call"""
        if self.history is None:
            print("No training history available!")
            return None

        curves = self.history.history
        fig, axes = plt.subplots(1, 2, figsize=(12, 4))
        for ax, key in zip(axes, ('accuracy', 'loss')):
            values = curves.get(key, [])
            epochs = np.arange(1, len(values) + 1)
            ax.plot(epochs, values, marker='o', label=f'Training {key.title()}')
            ax.set_title(key.title())
            ax.set_xlabel('Epoch')
            ax.set_xticks(epochs)
            ax.legend()

        if title:
            fig.suptitle(title)
        plt.tight_layout()
        plt.show()
        return fig


class _SklearnModel:
    """Shared fit/predict plumbing for the scikit-learn classifiers"""

    name = "sklearn"

    def __init__(self, num_classes=10):
        self.num_classes = int(num_classes)
        self.model = None

    def _build(self):
        raise NotImplementedError

    def train(self, X_train, y_train, **_unused):
        """Train on features and integer or one-hot labels"""
        X_train_flat = _as_feature_matrix(X_train)
        labels = _as_label_indices(y_train)

        self.model = self._build()

        print(f"Training {self.name} with {X_train_flat.shape[0]} samples...")
        self.model.fit(X_train_flat, labels)
        print(f"{self.name} training completed!")

        return self.model

    def _full_proba(self, X_flat) -> np.ndarray:
        """predict_proba expanded to every class, including ones unseen in training"""
        raw = self.model.predict_proba(X_flat)
        full = np.zeros((X_flat.shape[0], self.num_classes), dtype=np.float64)
        full[:, self.model.classes_.astype(np.int64)] = raw
        return full

    def evaluate(self, X_test, y_test):
        y_pred, y_pred_proba = self.predict(X_test)
        return _evaluation_report(_as_label_indices(y_test), y_pred, y_pred_proba)

    def save_model(self, filepath):
        if self.model is None:
            raise ValueError("No model to save!")
        with open(filepath, 'wb') as f:
            pickle.dump(self.model, f)

    def load_model(self, filepath):
        with open(filepath, 'rb') as f:
            self.model = pickle.load(f)

    def predict(self, X):
        """Make predictions on input data"""
        if self.model is None:
            raise ValueError("Model not trained or loaded yet!")

        X_flat = _as_feature_matrix(X)
        probabilities = self._full_proba(X_flat)
        return np.argmax(probabilities, axis=1), probabilities

    def predict_proba(self, features) -> np.ndarray:
        _, probabilities = self.predict(features)
        return probabilities[0]


class SVMModel(_SklearnModel):
    """Support Vector Machine classifier"""

    name = "SVM"

    def __init__(self, num_classes=10, kernel='rbf', C=1.0, gamma='scale'):
        super().__init__(num_classes)
        self.kernel = kernel
        self.C = C
        self.gamma = gamma

    def _build(self):
        return SVC(
            kernel=self.kernel,
            C=self.C,
            gamma=self.gamma,
            probability=True,  # Enable probability estimates
            random_state=42
        )


class RandomForestModel(_SklearnModel):
    """Random Forest classifier"""

    name = "Random Forest"

    def __init__(self, num_classes=10, n_estimators=100, max_depth=None, random_state=42):
        super().__init__(num_classes)
        self.n_estimators = n_estimators
        self.max_depth = max_depth
        self.random_state = random_state

    def _build(self):
        return RandomForestClassifier(
            n_estimators=self.n_estimators,
            max_depth=self.max_depth,
            random_state=self.random_state,
            n_jobs=-1  # Use all available cores
        )


MODEL_CLASSES = {
    "cnn": CNNModel,
    "svm": SVMModel,
    "rf": RandomForestModel,
}

MODEL_FILE_EXTENSIONS = {
    "cnn": ".keras",
    "svm": ".pkl",
    "rf": ".pkl",
}


def create_model(model_type: str, num_classes: int):
    """Instantiate a classifier by short name ('cnn', 'svm' or 'rf')"""
    key = model_type.lower().strip()
    if key not in MODEL_CLASSES:
        raise ValueError(f"Unknown model type {model_type!r}; choose from {sorted(MODEL_CLASSES)}")
    return MODEL_CLASSES[key](num_classes=num_classes)


class ModelComparison:
    """Compare performance of different models"""

    def __init__(self):
        self.results = {}

    def add_result(self, model_name, evaluation_result):
        """Add evaluation result for a model"""
        self.results[model_name] = evaluation_result

    def best_model(self):
        if not self.results:
            return None
        return max(self.results.items(), key=lambda x: x[1]['accuracy'])[0]

    def compare_accuracies(self):
        """Compare accuracies of all models"""
        if not self.results:
            print("No results to compare!")
            return

        print("\n" + "="*50)
        print("MODEL ACCURACY COMPARISON")
        print("="*50)

        for model_name, result in self.results.items():
            print(f"{model_name:15}: {result['accuracy']:.4f}")

        best = self.best_model()
        print(f"\nBest Model: {best} ({self.results[best]['accuracy']:.4f})")

    def plot_confusion_matrices(self):
        """Plot confusion matrices for all models"""
        if not self.results:
            print("No results to plot!")
            return

        n_models = len(self.results)
        fig, axes = plt.subplots(1, n_models, figsize=(5*n_models, 4))

        if n_models == 1:
            axes = [axes]

        for idx, (model_name, result) in enumerate(self.results.items()):
            sns.heatmap(
                result['confusion_matrix'],
                annot=True,
                fmt='d',
                ax=axes[idx],
                cmap='Blues'
            )
            axes[idx].set_title(f'{model_name}\nAccuracy: {result["accuracy"]:.4f}')
            axes[idx].set_xlabel('Predicted')
            axes[idx].set_ylabel('Actual')

        plt.tight_layout()
        plt.show()
