"""
matrix.py
~~~~~~~~~

Fixed-dimension matrix container and the linear-algebra operators
the network is built from.

A ``Matrix`` gets its row and column extents when it is created and keeps
them for its whole life. Every operator checks operand shapes on entry and
raises ``ShapeMismatchError`` before any arithmetic runs.
"""

import numbers
import operator
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

DEFAULT_DTYPE = np.float64


class ShapeMismatchError(ValueError):
    """Raised when operand shapes are incompatible for an operation."""


def _extent(value: Any, name: str) -> int:
    """Validate a row/column extent and return it as an int."""
    extent = operator.index(value)
    if extent <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value}")
    return extent


class Matrix:
    """
    A rows x cols matrix of numeric elements stored row-major.

    Instances own their storage exclusively. Operators that are not
    in-place always return a new matrix; ``+=`` and ``-=`` mutate the
    receiver only.
    """

    __slots__ = ('_data',)

    # Make numpy scalars defer to our reflected operators.
    __array_ufunc__ = None

    def __init__(self, rows: int, cols: int, dtype: Any = DEFAULT_DTYPE):
        """
        Create a zero-filled matrix.

        Args:
            rows: Number of rows (positive)
            cols: Number of columns (positive)
            dtype: numpy dtype of the elements
        """
        self._data = np.zeros(
            (_extent(rows, 'rows'), _extent(cols, 'cols')), dtype=dtype
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def _wrap(cls, data: np.ndarray) -> 'Matrix':
        # Takes ownership of ``data``; callers pass freshly allocated arrays.
        obj = cls.__new__(cls)
        obj._data = data
        return obj

    @classmethod
    def zeros(cls, rows: int, cols: int, dtype: Any = DEFAULT_DTYPE) -> 'Matrix':
        return cls(rows, cols, dtype=dtype)

    @classmethod
    def filled(
        cls,
        rows: int,
        cols: int,
        value: Any,
        dtype: Any = DEFAULT_DTYPE
    ) -> 'Matrix':
        """Create a matrix with every element set to ``value``."""
        data = np.full(
            (_extent(rows, 'rows'), _extent(cols, 'cols')), value, dtype=dtype
        )
        return cls._wrap(data)

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Sequence[Any]],
        dtype: Any = DEFAULT_DTYPE
    ) -> 'Matrix':
        """
        Create a matrix from literal row data.

        Args:
            rows: Non-empty sequence of equally long, non-empty rows
            dtype: numpy dtype of the elements

        Returns:
            Matrix: A new matrix holding a copy of the data

        Raises:
            ValueError: If the data is empty or ragged
        """
        try:
            data = np.array(rows, dtype=dtype)
        except ValueError as e:
            raise ValueError(f"Rows must all have the same length: {e}") from e

        if data.ndim != 2 or data.shape[0] == 0 or data.shape[1] == 0:
            raise ValueError(
                f"Expected non-empty two-dimensional row data, got shape {data.shape}"
            )
        return cls._wrap(data)

    @classmethod
    def from_array(cls, array: np.ndarray, dtype: Any = None) -> 'Matrix':
        """Create a matrix from a 2-D numpy array (the array is copied)."""
        data = np.array(array, dtype=dtype, copy=True)
        if data.ndim != 2 or data.size == 0:
            raise ValueError(
                f"Expected a non-empty two-dimensional array, got shape {data.shape}"
            )
        return cls._wrap(data)

    @classmethod
    def column(cls, values: Iterable[Any], dtype: Any = DEFAULT_DTYPE) -> 'Matrix':
        """Create an N x 1 column vector."""
        data = np.array(list(values), dtype=dtype).reshape(-1, 1)
        if data.size == 0:
            raise ValueError("A column vector needs at least one element")
        return cls._wrap(data)

    @classmethod
    def random(
        cls,
        rows: int,
        cols: int,
        rng: Optional[np.random.Generator] = None,
        dtype: Any = DEFAULT_DTYPE
    ) -> 'Matrix':
        """
        Create a matrix with elements drawn i.i.d. from uniform [0, 1).

        Args:
            rows: Number of rows
            cols: Number of columns
            rng: Random generator; a freshly seeded one is used when omitted
            dtype: numpy dtype of the elements

        Returns:
            Matrix: A new random matrix
        """
        if rng is None:
            rng = np.random.default_rng()
        shape = (_extent(rows, 'rows'), _extent(cols, 'cols'))
        dtype = np.dtype(dtype)

        if dtype in (np.float32, np.float64):
            data = rng.random(shape, dtype=dtype)
        else:
            data = rng.random(shape)

        if data.dtype != dtype:
            data = data.astype(dtype)
            if np.issubdtype(dtype, np.floating):
                # Rounding into a narrower type can land exactly on 1.0.
                below_one = np.nextafter(dtype.type(1), dtype.type(0))
                np.minimum(data, below_one, out=data)
        return cls._wrap(data)

    # ------------------------------------------------------------------
    # Shape and element access
    # ------------------------------------------------------------------

    @property
    def shape(self) -> Tuple[int, int]:
        return self._data.shape

    @property
    def rows(self) -> int:
        return self._data.shape[0]

    @property
    def cols(self) -> int:
        return self._data.shape[1]

    @property
    def size(self) -> int:
        return self._data.size

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    def _in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.rows and 0 <= col < self.cols

    def get(self, row: int, col: int) -> Optional[Any]:
        """
        Read one element.

        Returns:
            The element, or None if either index is out of range
        """
        row, col = operator.index(row), operator.index(col)
        if not self._in_bounds(row, col):
            return None
        return self._data[row, col]

    def get_mut(self, row: int, col: int) -> Optional[np.ndarray]:
        """
        Get a writable view of one element.

        Assigning through the view (``view[...] = value``) updates this
        matrix.

        Returns:
            A zero-dimensional view, or None if either index is out of range
        """
        row, col = operator.index(row), operator.index(col)
        if not self._in_bounds(row, col):
            return None
        return self._data[row, col, ...]

    def set(self, row: int, col: int, value: Any) -> None:
        """
        Write one element.

        Raises:
            IndexError: If either index is out of range
        """
        row, col = operator.index(row), operator.index(col)
        if not self._in_bounds(row, col):
            raise IndexError(
                f"Index ({row}, {col}) out of range for {self.rows}x{self.cols} matrix"
            )
        self._data[row, col] = value

    def __iter__(self) -> Iterator[Any]:
        """Iterate over elements in row-major order."""
        return iter(self._data.ravel())

    def iter_rows(self) -> Iterator[Iterator[Any]]:
        return (iter(row) for row in self._data)

    def iter_cols(self) -> Iterator[Iterator[Any]]:
        return (iter(col) for col in self._data.T)

    def to_numpy(self) -> np.ndarray:
        """Return an independent copy of the storage."""
        return self._data.copy()

    def tolist(self) -> List[List[Any]]:
        return self._data.tolist()

    def copy(self) -> 'Matrix':
        return self._wrap(self._data.copy())

    def __copy__(self) -> 'Matrix':
        return self.copy()

    def __deepcopy__(self, memo: dict) -> 'Matrix':
        return self.copy()

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def _require_same_shape(self, other: 'Matrix', op: str) -> None:
        if not isinstance(other, Matrix):
            raise TypeError(
                f"{op} expects a Matrix operand, got {type(other).__name__}"
            )
        if self.shape != other.shape:
            raise ShapeMismatchError(
                f"Cannot {op} {self.rows}x{self.cols} and "
                f"{other.rows}x{other.cols} matrices"
            )

    def __matmul__(self, other: 'Matrix') -> 'Matrix':
        if not isinstance(other, Matrix):
            return NotImplemented
        if self.cols != other.rows:
            raise ShapeMismatchError(
                f"Cannot multiply {self.rows}x{self.cols} by "
                f"{other.rows}x{other.cols}: inner extents differ"
            )
        return self._wrap(self._data @ other._data)

    def __add__(self, other: 'Matrix') -> 'Matrix':
        if not isinstance(other, Matrix):
            return NotImplemented
        self._require_same_shape(other, 'add')
        return self._wrap(self._data + other._data)

    def __sub__(self, other: 'Matrix') -> 'Matrix':
        if not isinstance(other, Matrix):
            return NotImplemented
        self._require_same_shape(other, 'subtract')
        return self._wrap(self._data - other._data)

    def __iadd__(self, other: 'Matrix') -> 'Matrix':
        self._require_same_shape(other, 'add')
        self._data += other._data
        return self

    def __isub__(self, other: 'Matrix') -> 'Matrix':
        self._require_same_shape(other, 'subtract')
        self._data -= other._data
        return self

    def __mul__(self, scalar: Any) -> 'Matrix':
        if isinstance(scalar, Matrix):
            raise TypeError(
                "Use '@' for matrix multiplication or hadamard() "
                "for the elementwise product"
            )
        if not isinstance(scalar, numbers.Number):
            return NotImplemented
        return self._wrap((self._data * scalar).astype(self.dtype, copy=False))

    __rmul__ = __mul__

    def __truediv__(self, scalar: Any) -> 'Matrix':
        if not isinstance(scalar, numbers.Number):
            return NotImplemented
        return self._wrap((self._data / scalar).astype(self.dtype, copy=False))

    def hadamard(self, other: 'Matrix') -> 'Matrix':
        """Elementwise product of two equally shaped matrices."""
        self._require_same_shape(other, 'take the Hadamard product of')
        return self._wrap(self._data * other._data)

    def transpose(self) -> 'Matrix':
        return self._wrap(self._data.T.copy())

    @property
    def T(self) -> 'Matrix':
        return self.transpose()

    def outer(self, other: 'Matrix') -> 'Matrix':
        """
        Outer product of two column vectors.

        Args:
            other: An S x 1 column vector

        Returns:
            Matrix: R x S matrix with ``result[i][j] = self[i] * other[j]``

        Raises:
            ShapeMismatchError: If either operand has more than one column
        """
        if not isinstance(other, Matrix):
            raise TypeError(
                f"outer expects a Matrix operand, got {type(other).__name__}"
            )
        if self.cols != 1 or other.cols != 1:
            raise ShapeMismatchError(
                f"Outer product needs two column vectors, got "
                f"{self.rows}x{self.cols} and {other.rows}x{other.cols}"
            )
        return self._wrap(np.outer(self._data, other._data))

    def apply(self, func: Callable[[Any], Any], vectorized: bool = False) -> 'Matrix':
        """
        Apply a scalar function to every element.

        Args:
            func: Function of one element. numpy ufuncs, and any callable
                passed with ``vectorized=True``, receive the whole array
                at once and must act elementwise.
            vectorized: Whether ``func`` already works on arrays

        Returns:
            Matrix: A new matrix of the same shape and dtype
        """
        if vectorized or isinstance(func, np.ufunc):
            result = np.asarray(func(self._data))
        else:
            result = np.vectorize(func, otypes=[self.dtype])(self._data)

        if result.shape != self.shape:
            raise ShapeMismatchError(
                f"Function changed shape {self.shape} to {result.shape}; "
                f"apply() needs an elementwise function"
            )
        if np.shares_memory(result, self._data):
            result = result.copy()
        return self._wrap(result.astype(self.dtype, copy=False))

    def max(self) -> Any:
        """Return the greatest element."""
        return self._data.max()

    def argmax(self) -> int:
        """
        Return the flat row-major index of the greatest element.

        When several elements share the maximum, the last of them wins.
        """
        flat = self._data.ravel()
        return flat.size - 1 - int(np.argmax(flat[::-1]))

    # ------------------------------------------------------------------
    # Comparison and rendering
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self._data, other._data))

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return f"Matrix({self.rows}x{self.cols}, {self.dtype})"

    def __str__(self) -> str:
        return '\n'.join(
            ' '.join(str(value) for value in row) for row in self._data
        )


__all__ = ['Matrix', 'ShapeMismatchError', 'DEFAULT_DTYPE']
