#!/usr/bin/env python3
"""
Convert a directory of IDX dataset files into a single NPZ cache.

Parsing four IDX files (often gzip compressed) on every run is slow; the
resulting .npz can be passed to ``fixednet-train --npz``.

Usage:
    python scripts/convert_idx_to_npz.py [DATA_DIR] [OUTPUT]

The script will:
1. Parse the train/test image and label files in DATA_DIR (default: data)
2. Save them as OUTPUT (default: DATA_DIR/mnist.npz)
3. Verify the archive matches the parsed arrays
"""

import os
import sys
from typing import Dict

import numpy as np

from fixednet import idx_loader


def parse_idx_directory(data_dir: str) -> Dict[str, np.ndarray]:
    """
    Parse the four standard IDX files into raw uint8 arrays.

    Parameters:
    -----------
    data_dir : str
        Directory holding the IDX files (plain or .gz)

    Returns:
    --------
    dict
        ``train_images``, ``train_labels``, ``test_images``, ``test_labels``
    """
    print(f"📂 Reading IDX files from: {data_dir}")

    files = {
        'train_images': (idx_loader.TRAIN_IMAGES, idx_loader.parse_images),
        'train_labels': (idx_loader.TRAIN_LABELS, idx_loader.parse_labels),
        'test_images': (idx_loader.TEST_IMAGES, idx_loader.parse_images),
        'test_labels': (idx_loader.TEST_LABELS, idx_loader.parse_labels),
    }

    arrays = {}
    for key, (name, parse) in files.items():
        path = idx_loader.resolve_path(data_dir, name)
        arrays[key] = parse(idx_loader.read_bytes(path), path=path)
        print(f"   - {key}: {arrays[key].shape}")

    return arrays


def verify_conversion(npz_filepath: str, arrays: Dict[str, np.ndarray]) -> bool:
    """Check that the archive holds exactly the parsed arrays."""
    print(f"\n🔍 Verifying conversion...")

    with np.load(npz_filepath) as data:
        for key, array in arrays.items():
            assert np.array_equal(data[key], array), f"{key} doesn't match!"

    print("✅ Verification passed! Data is identical.")
    return True


def main():
    """Main conversion function."""
    print("=" * 60)
    print("IDX → NPZ converter")
    print("=" * 60)

    data_dir = sys.argv[1] if len(sys.argv) > 1 else 'data'
    npz_path = sys.argv[2] if len(sys.argv) > 2 else os.path.join(data_dir, 'mnist.npz')

    try:
        arrays = parse_idx_directory(data_dir)

        print(f"\n💾 Writing: {npz_path}")
        np.savez_compressed(npz_path, **arrays)
        print(f"✅ Saved (size: {os.path.getsize(npz_path) / (1024 * 1024):.2f} MB)")

        verify_conversion(npz_path, arrays)
    except (OSError, ValueError) as e:
        print(f"\n❌ Error during conversion: {e}")
        sys.exit(1)

    print(f"\n📝 Train with: fixednet-train --npz {npz_path}")


if __name__ == '__main__':
    main()
