"""
idx_loader.py
~~~~~~~~~~~~~

Loaders for datasets stored in the IDX format (as used by MNIST).

Image files start with the big-endian header ``magic=2051, count, rows,
cols`` followed by ``count * rows * cols`` unsigned bytes. Label files start
with ``magic=2049, count`` followed by ``count`` unsigned bytes. Files may be
gzip compressed.

Images become ``rows*cols x 1`` column matrices scaled to [0, 1]; labels
become one-hot column matrices.
"""

import gzip
import logging
import os
from typing import Any, List, Sequence, Tuple

import numpy as np

from fixednet.matrix import Matrix
from fixednet.network import Sample

# Configure module logger
logger = logging.getLogger(__name__)

IMAGES_MAGIC = 2051
LABELS_MAGIC = 2049
NUM_CLASSES = 10

TRAIN_IMAGES = 'train-images-idx3-ubyte'
TRAIN_LABELS = 'train-labels-idx1-ubyte'
TEST_IMAGES = 't10k-images-idx3-ubyte'
TEST_LABELS = 't10k-labels-idx1-ubyte'

_HEADER_DTYPE = np.dtype('>u4')


class IdxFormatError(ValueError):
    """Raised when a dataset file does not match the IDX layout."""


def read_bytes(path: str) -> bytes:
    """Read a whole file, transparently decompressing ``.gz`` files."""
    opener = gzip.open if path.endswith('.gz') else open
    with opener(path, 'rb') as f:
        return f.read()


def _parse_header(raw: bytes, fields: int, magic: int, path: str) -> Tuple[int, ...]:
    header_size = fields * _HEADER_DTYPE.itemsize
    if len(raw) < header_size:
        raise IdxFormatError(
            f"{path}: truncated header ({len(raw)} bytes, need {header_size})"
        )

    header = tuple(int(v) for v in np.frombuffer(raw, dtype=_HEADER_DTYPE, count=fields))
    if header[0] != magic:
        raise IdxFormatError(
            f"{path}: bad magic number {header[0]}, expected {magic}"
        )
    return header[1:]


def parse_images(raw: bytes, path: str = '<bytes>') -> np.ndarray:
    """
    Parse the bytes of an IDX image file.

    Returns:
        np.ndarray: uint8 array of shape ``(count, rows * cols)``
    """
    count, rows, cols = _parse_header(raw, 4, IMAGES_MAGIC, path)
    pixels = count * rows * cols
    payload = np.frombuffer(raw, dtype=np.uint8, offset=16)

    if payload.size < pixels:
        raise IdxFormatError(
            f"{path}: expected {pixels} pixel bytes for {count} images, "
            f"found {payload.size}"
        )
    return payload[:pixels].reshape(count, rows * cols)


def parse_labels(raw: bytes, num_classes: int = NUM_CLASSES, path: str = '<bytes>') -> np.ndarray:
    """
    Parse the bytes of an IDX label file.

    Returns:
        np.ndarray: uint8 array of class indices

    Raises:
        IdxFormatError: On a bad header, short payload or out-of-range label
    """
    (count,) = _parse_header(raw, 2, LABELS_MAGIC, path)
    payload = np.frombuffer(raw, dtype=np.uint8, offset=8)

    if payload.size < count:
        raise IdxFormatError(
            f"{path}: expected {count} labels, found {payload.size}"
        )
    labels = payload[:count]

    if labels.size and int(labels.max()) >= num_classes:
        raise IdxFormatError(
            f"{path}: label {int(labels.max())} outside [0, {num_classes})"
        )
    return labels


def images_to_matrices(images: np.ndarray, dtype: Any = np.float32) -> List[Matrix]:
    """Turn ``(count, pixels)`` uint8 rows into normalized column vectors."""
    scaled = images.astype(dtype) / 255.0
    return [Matrix.from_array(row.reshape(-1, 1), dtype=dtype) for row in scaled]


def labels_to_matrices(
    labels: np.ndarray,
    num_classes: int = NUM_CLASSES,
    dtype: Any = np.float32
) -> List[Matrix]:
    """Turn class indices into one-hot column vectors."""
    one_hot = []
    for label in labels:
        m = Matrix.zeros(num_classes, 1, dtype=dtype)
        m.set(int(label), 0, 1.0)
        one_hot.append(m)
    return one_hot


def load_images(path: str, dtype: Any = np.float32) -> List[Matrix]:
    """
    Load an IDX image file.

    Args:
        path: Path to the file, optionally ending in ``.gz``
        dtype: Element dtype of the returned matrices

    Returns:
        list: One ``rows*cols x 1`` Matrix per image, values in [0, 1]
    """
    images = parse_images(read_bytes(path), path=path)
    logger.info(f"Loaded {len(images)} images from {path}")
    return images_to_matrices(images, dtype=dtype)


def load_labels(
    path: str,
    num_classes: int = NUM_CLASSES,
    dtype: Any = np.float32
) -> List[Matrix]:
    """
    Load an IDX label file.

    Returns:
        list: One one-hot ``num_classes x 1`` Matrix per label
    """
    labels = parse_labels(read_bytes(path), num_classes=num_classes, path=path)
    logger.info(f"Loaded {len(labels)} labels from {path}")
    return labels_to_matrices(labels, num_classes=num_classes, dtype=dtype)


def pair_samples(images: Sequence[Matrix], labels: Sequence[Matrix]) -> List[Sample]:
    """
    Zip aligned image and label sequences into ``(x, y)`` samples.

    Raises:
        IdxFormatError: If the sequences differ in length
    """
    if len(images) != len(labels):
        raise IdxFormatError(
            f"Got {len(images)} images but {len(labels)} labels"
        )
    return list(zip(images, labels))


def resolve_path(data_dir: str, name: str) -> str:
    """Find ``name`` in ``data_dir``, falling back to ``name.gz``."""
    path = os.path.join(data_dir, name)
    if os.path.exists(path):
        return path
    gz_path = path + '.gz'
    if os.path.exists(gz_path):
        return gz_path
    raise FileNotFoundError(f"Neither {path} nor {gz_path} exists")


def load_dataset(
    data_dir: str = 'data',
    num_classes: int = NUM_CLASSES,
    dtype: Any = np.float32
) -> Tuple[List[Sample], List[Sample]]:
    """
    Load the training and test splits from a directory of IDX files.

    Args:
        data_dir: Directory holding the four standard MNIST file names
        num_classes: Width of the one-hot label vectors
        dtype: Element dtype of the returned matrices

    Returns:
        tuple: ``(training_data, test_data)``, lists of ``(x, y)`` samples
    """
    training_data = pair_samples(
        load_images(resolve_path(data_dir, TRAIN_IMAGES), dtype=dtype),
        load_labels(resolve_path(data_dir, TRAIN_LABELS), num_classes, dtype=dtype)
    )
    test_data = pair_samples(
        load_images(resolve_path(data_dir, TEST_IMAGES), dtype=dtype),
        load_labels(resolve_path(data_dir, TEST_LABELS), num_classes, dtype=dtype)
    )
    logger.info(
        f"Dataset loaded: {len(training_data)} training, {len(test_data)} test"
    )
    return training_data, test_data


def load_npz(
    path: str,
    num_classes: int = NUM_CLASSES,
    dtype: Any = np.float32
) -> Tuple[List[Sample], List[Sample]]:
    """
    Load both splits from an ``.npz`` cache written by
    ``scripts/convert_idx_to_npz.py``.

    The archive holds uint8 arrays ``train_images``/``test_images`` of shape
    ``(count, pixels)`` and ``train_labels``/``test_labels`` of class indices.
    """
    with np.load(path) as data:
        missing = {'train_images', 'train_labels', 'test_images', 'test_labels'} - set(data.files)
        if missing:
            raise IdxFormatError(f"{path}: missing arrays {sorted(missing)}")

        splits = []
        for prefix in ('train', 'test'):
            labels = data[f'{prefix}_labels']
            if labels.size and int(labels.max()) >= num_classes:
                raise IdxFormatError(
                    f"{path}: label {int(labels.max())} outside [0, {num_classes})"
                )
            splits.append(pair_samples(
                images_to_matrices(data[f'{prefix}_images'], dtype=dtype),
                labels_to_matrices(labels, num_classes, dtype=dtype)
            ))

    logger.info(
        f"Dataset loaded from {path}: {len(splits[0])} training, {len(splits[1])} test"
    )
    return splits[0], splits[1]
