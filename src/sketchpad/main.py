"""
Main Entry Point for the Sketchpad Character Classifier
Provides a command-line interface over the drawing pipeline
"""

import os
import sys
import argparse

import numpy as np

from .constants import MODEL_DISPLAY_NAMES, RecognitionMode, TrainingConfig, mode_config, parse_mode
from .glyph_generation import GENERATORS, create_generator, generate_training_data, write_dataset
from .image_preprocessing import find_bounding_box, preprocess_drawing, preview_image, visualize_pipeline
from .models import ModelComparison, create_model, tensorflow_available
from .predictions import runner_ups, top_prediction
from .raster import RasterImage
from .recognizer import Recognizer
from .session import SketchSession


def print_predictions(ranked):
    top = top_prediction(ranked)
    if top is None:
        print("No predictions")
        return
    print(f"Prediction: {top.label} (confidence: {top.confidence:.3f})")
    for pred in runner_ups(ranked):
        print(f"  {pred.label}: {pred.confidence:.3f}")


def build_recognizer(config: TrainingConfig, mode: RecognitionMode, model_dir=None) -> Recognizer:
    """Load saved models when available, otherwise train on synthetic data"""
    recognizer = Recognizer(config)
    if model_dir and recognizer.load(model_dir, [mode]):
        print(f"Loaded {MODEL_DISPLAY_NAMES.get(config.model_type, config.model_type)} from {model_dir}")
        return recognizer

    recognizer.train([mode])
    if model_dir:
        for path in recognizer.save(model_dir):
            print(f"Saved model to {path}")
    return recognizer


def classify_drawing(drawing: RasterImage, recognizer: Recognizer, mode: RecognitionMode, preview_path=None):
    """Run the full pipeline on one drawing and print the ranked labels"""
    box = find_bounding_box(drawing)
    if box.is_empty:
        print("Canvas is blank")
    else:
        print(f"Bounding box: left={box.left} top={box.top} right={box.right} bottom={box.bottom}")

    canonical, features = preprocess_drawing(drawing)
    if preview_path:
        preview_image(canonical).save(preview_path)
        print(f"Saved preview to {preview_path}")

    ranked = recognizer.classify(features, mode)
    print_predictions(ranked)
    return ranked


def evaluate_models(mode: RecognitionMode, config: TrainingConfig, plot: bool = False) -> ModelComparison:
    """Train each model type on synthetic data and compare on a held-out synthetic set"""
    rng = np.random.default_rng(config.seed)
    generator = create_generator(config.generator, mode, rng=rng)
    X_train, y_train = generate_training_data(mode, generator, config.num_samples, rng=rng)
    X_test, y_test = generate_training_data(mode, generator, max(1, config.num_samples // 5), rng=rng)

    comparison = ModelComparison()
    num_classes = mode_config(mode).num_classes
    for model_type, display in MODEL_DISPLAY_NAMES.items():
        if model_type == "cnn" and not tensorflow_available():
            print(f"Skipping {display}: TensorFlow is not installed")
            continue
        model = create_model(model_type, num_classes)
        model.train(X_train, y_train, epochs=config.epochs, batch_size=config.batch_size)
        comparison.add_result(display, model.evaluate(X_test, y_test))
        if plot and model_type == "cnn":
            model.plot_training_history(f"{display} ({mode.value}s)")

    comparison.compare_accuracies()
    if plot:
        comparison.plot_confusion_matrices()
    return comparison


def make_dataset(out_root, mode: RecognitionMode, generator_name: str, per_class: int, seed=None) -> int:
    """Write train and test image folders; the test split gets a fifth of the train count"""
    generator = create_generator(generator_name, mode, rng=np.random.default_rng(seed))
    per_class_test = max(1, per_class // 5)

    print(f"Creating dataset at: {out_root}")
    print(f"Train per class: {per_class} | Test per class: {per_class_test}")
    count = write_dataset(out_root, generator, per_class, "train")
    count += write_dataset(out_root, generator, per_class_test, "test")
    print(f"Wrote {count} images to {out_root}")
    return count


def main(argv=None):
    """Main function with command line interface"""
    parser = argparse.ArgumentParser(description="Sketchpad Character Classifier")
    parser.add_argument('--image', type=str, help='Classify a drawing stored as an image file')
    parser.add_argument('--stroke', type=float, nargs=4, metavar=('X0', 'Y0', 'X1', 'Y1'),
                        help='Draw one straight stroke on a blank canvas and classify it')
    parser.add_argument('--mode', choices=['digit', 'letter'], default='digit',
                        help='Label alphabet to classify against')
    parser.add_argument('--model', choices=sorted(MODEL_DISPLAY_NAMES), default='cnn',
                        help='Classifier to train or load')
    parser.add_argument('--generator', choices=sorted(GENERATORS), default='pattern',
                        help='Synthetic training glyph generator')
    parser.add_argument('--samples', type=int, default=1000, help='Synthetic training samples per mode')
    parser.add_argument('--epochs', type=int, default=5, help='CNN training epochs')
    parser.add_argument('--seed', type=int, default=None, help='Random seed for synthetic data')
    parser.add_argument('--model-dir', type=str, help='Load models from here, or save freshly trained ones')
    parser.add_argument('--preview', type=str, help='Save the upscaled 28x28 preview to this path')
    parser.add_argument('--show', action='store_true', help='Plot the drawing, crop region and canonical image')
    parser.add_argument('--evaluate', action='store_true', help='Compare all model types on synthetic data')
    parser.add_argument('--plot', action='store_true', help='With --evaluate, show confusion matrices and CNN training curves')
    parser.add_argument('--make-dataset', type=str, metavar='OUT',
                        help='Write a synthetic image-folder dataset and exit')
    parser.add_argument('--per-class', type=int, default=100, help='Images per class for --make-dataset')

    args = parser.parse_args(argv)
    mode = parse_mode(args.mode)
    config = TrainingConfig(
        model_type=args.model,
        num_samples=args.samples,
        epochs=args.epochs,
        generator=args.generator,
        seed=args.seed,
    )

    if args.make_dataset:
        make_dataset(args.make_dataset, mode, args.generator, args.per_class, args.seed)
        return 0

    if args.evaluate:
        evaluate_models(mode, config, plot=args.plot)
        return 0

    if args.image:
        if not os.path.exists(args.image):
            print(f"Error: Image file {args.image} not found")
            return 1
        drawing = RasterImage.load(args.image)
    elif args.stroke:
        x0, y0, x1, y1 = args.stroke
        session = SketchSession(mode=mode)
        session.draw_stroke([(x0, y0), (x1, y1)])
        drawing = session.drawing()
    else:
        parser.print_help()
        return 0

    if args.show:
        visualize_pipeline(drawing)

    try:
        recognizer = build_recognizer(config, mode, args.model_dir)
    except ImportError as e:
        print(f"Error: {e}")
        return 1

    classify_drawing(drawing, recognizer, mode, args.preview)
    return 0


if __name__ == "__main__":
    sys.exit(main())
