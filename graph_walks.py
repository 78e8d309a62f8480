# -*- coding: utf-8 -*-
from __future__ import annotations

import math
import sys
import time
import traceback
import unittest
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    Any,
    Callable,
    Final,
    Literal,
    TypeAlias,
    Tuple,
    Union,
)

try:
    import numpy as np
    import numpy.typing as npt
    import matplotlib
    import matplotlib.figure
    import matplotlib.pyplot as plt
    import scipy.linalg
except ImportError as import_error:
    print(
        f"Error: Missing dependencies -> {import_error}. "
        "Please run: pip install numpy scipy matplotlib"
    )
    sys.exit(1)


Edge: TypeAlias = Tuple[int, int]
HalfEdge: TypeAlias = Tuple[int, int]
Adjacency: TypeAlias = Tuple[Tuple[int, ...], ...]
NDArrayF64: TypeAlias = npt.NDArray[np.float64]
NDArrayC128: TypeAlias = npt.NDArray[np.complex128]
NDArrayInt: TypeAlias = npt.NDArray[np.int_]
CorrectionKind: TypeAlias = Literal["none", "scalar", "non_scalar"]
WalkMode: TypeAlias = Literal["classical", "quantum"]
CoinName: TypeAlias = Literal["grover", "fourier"]

DEFAULT_UNITARY_TOLERANCE: Final[float] = 1e-10
DEFAULT_STOCHASTIC_TOLERANCE: Final[float] = 1e-12
DEFAULT_OUTPUT_DIR: Final[Path] = Path("./simulation_outputs").resolve()
VALID_MODES: Final[frozenset[str]] = frozenset({"classical", "quantum"})
VALID_COINS: Final[frozenset[str]] = frozenset({"grover", "fourier"})


class WalkEngineError(Exception):
    pass


class StructuralError(WalkEngineError):
    pass


class DimensionMismatchError(WalkEngineError):
    pass


class NumericalInvalidityError(WalkEngineError):
    pass


class VisualizationError(Exception):
    pass


class ConfigError(ValueError):
    pass


def _create_unique_filename(prefix: str, suffix: str) -> str:
    timestamp = time.strftime("%Y%m%d_%H%M%S")
    unique_id = uuid.uuid4().hex[:6]
    return f"{prefix}_{timestamp}_{unique_id}.{suffix}"


def _ensure_output_dir(file_path: Path) -> Path | None:
    output_dir = file_path.parent
    try:
        resolved_path = file_path.resolve()
        output_dir = resolved_path.parent
        output_dir.mkdir(parents=True, exist_ok=True)
        return resolved_path
    except OSError as e:
        print(
            f"Warning: Directory access error for {output_dir}: {e}",
            file=sys.stderr,
        )
        return None


def _validate_positive_ints(*named_values: Tuple[str, Any]) -> None:
    for name, value in named_values:
        if not isinstance(value, int) or value <= 0:
            raise ConfigError(
                f"Configuration error: '{name}' must be a positive integer, got {value}."
            )


def _validate_non_negative_ints(*named_values: Tuple[str, Any]) -> None:
    for name, value in named_values:
        if not isinstance(value, int) or value < 0:
            raise ConfigError(
                f"Configuration error: '{name}' must be a non-negative integer, got {value}."
            )


def _validate_floats_exclusive_0_1(*named_values: Tuple[str, Any]) -> None:
    for name, value in named_values:
        if not isinstance(value, float) or not (0.0 < value <= 1.0):
            raise ConfigError(
                f"Configuration error: '{name}' must be a float between 0.0 (exclusive) and 1.0 (inclusive), got {value}."
            )


def _validate_node_index(node: Any, node_count: int, name: str = "Node") -> int:
    if not isinstance(node, (int, np.integer)) or isinstance(node, bool):
        raise StructuralError(f"{name} index must be an integer, got {node!r}.")
    if not 0 <= node < node_count:
        raise StructuralError(
            f"{name} index {node} out of range for {node_count} nodes."
        )
    return int(node)


def _as_square_matrix(data: Any, dtype: type, name: str) -> np.ndarray:
    try:
        matrix = np.array(data, dtype=dtype)
    except (ValueError, TypeError) as e:
        raise StructuralError(f"Invalid data type for {name}: {e}") from e

    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise StructuralError(
            f"{name} must be square, but got shape {matrix.shape}."
        )
    return matrix


@dataclass(frozen=True)
class WalkConfig:
    START_NODE: int = 0
    TARGET_NODES: tuple[int, ...] = ()
    UNITARY_TOLERANCE: float = DEFAULT_UNITARY_TOLERANCE
    STOCHASTIC_TOLERANCE: float = DEFAULT_STOCHASTIC_TOLERANCE
    DEFAULT_COIN: CoinName = "grover"
    DEMO_STEPS: int = 12
    REPORT_CORRECTIONS: bool = True

    def __post_init__(self) -> None:
        _validate_non_negative_ints(
            ("START_NODE", self.START_NODE),
            ("DEMO_STEPS", self.DEMO_STEPS),
        )
        _validate_non_negative_ints(
            *(
                (f"TARGET_NODES[{i}]", node)
                for i, node in enumerate(self.TARGET_NODES)
            )
        )
        if len(set(self.TARGET_NODES)) != len(self.TARGET_NODES):
            raise ConfigError(
                f"TARGET_NODES must not contain duplicate nodes, got {self.TARGET_NODES}."
            )
        _validate_floats_exclusive_0_1(
            ("UNITARY_TOLERANCE", self.UNITARY_TOLERANCE),
            ("STOCHASTIC_TOLERANCE", self.STOCHASTIC_TOLERANCE),
        )
        if self.DEFAULT_COIN not in VALID_COINS:
            raise ConfigError(
                f"Invalid coin '{self.DEFAULT_COIN}'. Must be one of {sorted(VALID_COINS)}."
            )


@dataclass(frozen=True)
class VisConfig:
    FIGSIZE: tuple[int, int] = (12, 7)
    DPI: int = 150
    LINE_ALPHA: float = 0.9
    LINE_WIDTH: float = 1.5
    BAR_ALPHA: float = 0.8
    GRID_ALPHA: float = 0.3
    COLORMAP: str = "viridis"
    MAX_LEGEND_ENTRIES: int = 12
    DEFAULT_HISTORY_PLOT_FILENAME: Final[str] = field(
        default_factory=lambda: _create_unique_filename("walk_history", "png")
    )
    DEFAULT_DISTRIBUTION_PLOT_FILENAME: Final[str] = field(
        default_factory=lambda: _create_unique_filename(
            "node_distribution", "png"
        )
    )

    def __post_init__(self) -> None:
        _validate_positive_ints(
            ("FIGSIZE width", self.FIGSIZE[0]),
            ("FIGSIZE height", self.FIGSIZE[1]),
            ("DPI", self.DPI),
            ("MAX_LEGEND_ENTRIES", self.MAX_LEGEND_ENTRIES),
        )
        _validate_floats_exclusive_0_1(
            ("LINE_ALPHA", self.LINE_ALPHA),
            ("BAR_ALPHA", self.BAR_ALPHA),
            ("GRID_ALPHA", self.GRID_ALPHA),
        )
        if self.LINE_WIDTH <= 0:
            raise ConfigError(
                f"Configuration error: 'LINE_WIDTH' must be positive, got {self.LINE_WIDTH}."
            )
        if self.COLORMAP not in matplotlib.colormaps:
            raise ConfigError(
                f"Unknown matplotlib colormap '{self.COLORMAP}'."
            )


@dataclass(frozen=True, eq=False)
class CorrectionReport:
    """Outcome of a normalisation pass.

    ``kind`` is ``"none"`` when the matrix was already valid, ``"scalar"``
    when one uniform correction was applied (``value`` is a float) and
    ``"non_scalar"`` when the correction differed per column or singular
    value (``value`` is a read-only vector).
    """

    kind: CorrectionKind = "none"
    value: float | NDArrayF64 | None = None

    def __post_init__(self) -> None:
        if self.kind not in ("none", "scalar", "non_scalar"):
            raise ValueError(f"Unknown correction kind '{self.kind}'.")

    @classmethod
    def none(cls) -> CorrectionReport:
        return cls("none", None)

    @classmethod
    def scalar(cls, factor: float) -> CorrectionReport:
        return cls("scalar", float(factor))

    @classmethod
    def non_scalar(cls, values: Any) -> CorrectionReport:
        vector = np.array(values, dtype=np.float64).flatten()
        vector.setflags(write=False)
        return cls("non_scalar", vector)

    @property
    def is_none(self) -> bool:
        return self.kind == "none"

    @property
    def is_scalar(self) -> bool:
        return self.kind == "scalar"

    @property
    def is_non_scalar(self) -> bool:
        return self.kind == "non_scalar"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CorrectionReport):
            return NotImplemented
        if self.kind != other.kind:
            return False
        if self.kind == "non_scalar":
            return bool(np.array_equal(self.value, other.value))
        return self.value == other.value

    __hash__ = None

    def __str__(self) -> str:
        if self.kind == "none":
            return "none"
        if self.kind == "scalar":
            return f"scalar {self.value}"
        return f"non_scalar {np.array2string(self.value, precision=6)}"


def build_adjacency(node_count: int, edges: Iterable[Edge]) -> Adjacency:
    if not isinstance(node_count, int) or node_count < 0:
        raise StructuralError(
            f"Node count must be a non-negative integer, got {node_count}."
        )

    neighbours: list[set[int]] = [set() for _ in range(node_count)]
    for edge in edges:
        try:
            a, b = edge
        except (TypeError, ValueError) as e:
            raise StructuralError(
                f"Edge must be a pair of node indices, got {edge!r}."
            ) from e
        a = _validate_node_index(a, node_count, "Edge endpoint")
        b = _validate_node_index(b, node_count, "Edge endpoint")
        neighbours[a].add(b)
        neighbours[b].add(a)

    return tuple(tuple(sorted(node_neighbours)) for node_neighbours in neighbours)


class LabelSet:
    """Ordered ``(from, to)`` labels indexing a walk's state space.

    Labels are grouped by their ``from`` node, so every node owns one
    contiguous run of indices.  Both the classical node-pair encoding and
    the quantum half-edge encoding are instances of this class.
    """

    _SE = StructuralError

    def __init__(self, labels: Iterable[HalfEdge], node_count: int) -> None:
        if not isinstance(node_count, int) or node_count < 0:
            raise self._SE(
                f"Node count must be a non-negative integer, got {node_count}."
            )
        label_tuple = tuple((int(a), int(b)) for a, b in labels)
        for a, b in label_tuple:
            if not (0 <= a < node_count and 0 <= b < node_count):
                raise self._SE(
                    f"Label {(a, b)} references a node outside 0..{node_count - 1}."
                )

        from_nodes = np.array([a for a, _ in label_tuple], dtype=np.int64)
        if from_nodes.size > 1 and np.any(np.diff(from_nodes) < 0):
            raise self._SE("Labels must be grouped by ascending 'from' node.")

        index = {label: i for i, label in enumerate(label_tuple)}
        if len(index) != len(label_tuple):
            raise self._SE("Labels must be unique.")

        self._labels: Final = label_tuple
        self._node_count: Final = node_count
        self._index: Final = index
        self._from_nodes: Final[NDArrayInt] = from_nodes
        self._from_nodes.setflags(write=False)

    @classmethod
    def from_adjacency(cls, adjacency: Sequence[Sequence[int]]) -> LabelSet:
        node_count = len(adjacency)
        neighbour_sets = [set(neighbours) for neighbours in adjacency]
        for a, neighbours in enumerate(neighbour_sets):
            for b in neighbours:
                if not 0 <= b < node_count:
                    raise cls._SE(
                        f"Neighbour {b} of node {a} is out of range for {node_count} nodes."
                    )
                if a not in neighbour_sets[b]:
                    raise cls._SE(
                        f"Adjacency list is not symmetric: {b} is a neighbour of {a} but not vice versa."
                    )
        labels = [
            (a, b)
            for a, neighbours in enumerate(adjacency)
            for b in sorted(set(neighbours))
        ]
        return cls(labels, node_count)

    @classmethod
    def node_pairs(cls, node_count: int) -> LabelSet:
        labels = [
            (j, i) for j in range(node_count) for i in range(node_count)
        ]
        return cls(labels, node_count)

    @property
    def labels(self) -> tuple[HalfEdge, ...]:
        return self._labels

    @property
    def node_count(self) -> int:
        return self._node_count

    @property
    def from_nodes(self) -> NDArrayInt:
        return self._from_nodes

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self):
        return iter(self._labels)

    def __getitem__(self, index: int) -> HalfEdge:
        return self._labels[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LabelSet):
            return NotImplemented
        return (
            self._node_count == other._node_count
            and self._labels == other._labels
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"LabelSet(node_count={self._node_count}, size={len(self._labels)})"

    def index_of(self, label: HalfEdge) -> int:
        try:
            return self._index[(int(label[0]), int(label[1]))]
        except KeyError:
            raise self._SE(f"Label {label} is not part of this label set.") from None

    def indices_from(self, node: int) -> NDArrayInt:
        node = _validate_node_index(node, self._node_count)
        return np.flatnonzero(self._from_nodes == node)

    def degrees(self) -> NDArrayInt:
        return np.bincount(self._from_nodes, minlength=self._node_count)

    def reverse_permutation(self) -> NDArrayInt:
        reverse = np.empty(len(self._labels), dtype=np.int64)
        for i, (a, b) in enumerate(self._labels):
            reverse_index = self._index.get((b, a))
            if reverse_index is None:
                raise self._SE(
                    f"Label {(a, b)} has no reverse label {(b, a)}."
                )
            reverse[i] = reverse_index
        return reverse

    def aggregate(self, values: npt.ArrayLike) -> NDArrayF64:
        vector = np.asarray(values, dtype=np.float64)
        if vector.shape != (len(self._labels),):
            raise DimensionMismatchError(
                f"Cannot aggregate vector of shape {vector.shape} over {len(self._labels)} labels."
            )
        return np.bincount(
            self._from_nodes, weights=vector, minlength=self._node_count
        ).astype(np.float64)


def expand_weight_matrix(weights: Any) -> NDArrayF64:
    matrix = _as_square_matrix(weights, np.float64, "Weight matrix")
    n = matrix.shape[0]
    operator = np.zeros((n * n, n * n), dtype=np.float64)
    rows = np.arange(n)
    for col_offset in range(n):
        for j in range(n):
            operator[rows + (j % n) * n, j + col_offset * n] = matrix[:, j]
    return operator


def normalize_stochastic(
    matrix: NDArrayF64, tolerance: float = DEFAULT_STOCHASTIC_TOLERANCE
) -> CorrectionReport:
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise StructuralError(
            f"Matrix must be square, but got shape {matrix.shape}."
        )

    column_sums = matrix.sum(axis=0)
    touched = (column_sums != 0.0) & (np.abs(column_sums - 1.0) > tolerance)

    corrected = matrix.copy()
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        corrected[:, touched] /= column_sums[touched]

    if not np.all(np.isfinite(corrected)):
        bad_columns = np.where(~np.all(np.isfinite(corrected), axis=0))[0]
        raise NumericalInvalidityError(
            f"Stochastic normalisation produced non-finite values in columns {bad_columns}."
        )
    matrix[...] = corrected

    if not np.any(touched):
        return CorrectionReport.none()

    factors = np.ones(matrix.shape[1], dtype=np.float64)
    factors[touched] = 1.0 / column_sums[touched]
    touched_factors = factors[touched]
    if np.allclose(touched_factors, touched_factors[0], rtol=0.0, atol=tolerance):
        return CorrectionReport.scalar(touched_factors[0])
    return CorrectionReport.non_scalar(factors)


def normalize_unitary(
    matrix: NDArrayC128, tolerance: float = DEFAULT_UNITARY_TOLERANCE
) -> CorrectionReport:
    """Clamp every singular value of ``matrix`` to 1, in place.

    The deviations ``1 - sigma`` decide the report: a spread wider than
    ``tolerance`` is non-scalar, a uniform deviation larger than
    ``tolerance`` is scalar, anything else leaves the matrix untouched.
    """
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise StructuralError(
            f"Matrix must be square, but got shape {matrix.shape}."
        )
    if matrix.size == 0:
        return CorrectionReport.none()

    try:
        u, singular_values, vh = scipy.linalg.svd(matrix, full_matrices=True)
    except (ValueError, np.linalg.LinAlgError) as e:
        raise NumericalInvalidityError(
            f"Singular value decomposition failed: {e}"
        ) from e

    deviations = 1.0 - singular_values
    spread = float(deviations.max() - deviations.min())
    largest_deviation = float(np.abs(deviations).max())

    if spread > tolerance:
        report = CorrectionReport.non_scalar(deviations)
    elif largest_deviation > tolerance:
        report = CorrectionReport.scalar(largest_deviation)
    else:
        return CorrectionReport.none()

    corrected = u @ vh
    if not np.all(np.isfinite(corrected)):
        raise NumericalInvalidityError(
            "Unitary recomposition produced non-finite values."
        )
    matrix[...] = corrected
    return report


def grover_coin(degree: int) -> NDArrayC128:
    _validate_non_negative_ints(("degree", degree))
    if degree == 0:
        return np.zeros((0, 0), dtype=np.complex128)
    return (2.0 / degree) * np.ones(
        (degree, degree), dtype=np.complex128
    ) - np.identity(degree, dtype=np.complex128)


def fourier_coin(degree: int) -> NDArrayC128:
    _validate_non_negative_ints(("degree", degree))
    if degree == 0:
        return np.zeros((0, 0), dtype=np.complex128)
    k = np.arange(degree)
    return np.exp(2j * np.pi * np.outer(k, k) / degree) / math.sqrt(degree)


def hadamard_coin() -> NDArrayC128:
    return np.array([[1, 1], [1, -1]], dtype=np.complex128) / math.sqrt(2)


COIN_FACTORIES: Final[dict[str, Callable[[int], NDArrayC128]]] = {
    "grover": grover_coin,
    "fourier": fourier_coin,
}


def make_coin(name: str, degree: int) -> NDArrayC128:
    try:
        factory = COIN_FACTORIES[name]
    except KeyError:
        raise ConfigError(
            f"Invalid coin '{name}'. Must be one of {sorted(COIN_FACTORIES)}."
        ) from None
    return factory(degree)


def default_scatter(labels: LabelSet, coin: str = "grover") -> NDArrayC128:
    m = len(labels)
    scatter = np.zeros((m, m), dtype=np.complex128)
    for node, degree in enumerate(labels.degrees()):
        if degree:
            indices = labels.indices_from(node)
            scatter[np.ix_(indices, indices)] = make_coin(coin, int(degree))
    return scatter


def resize_weight_matrix(weights: Any, size: int) -> NDArrayF64:
    matrix = _as_square_matrix(weights, np.float64, "Weight matrix")
    _validate_non_negative_ints(("size", size))
    resized = np.zeros((size, size), dtype=np.float64)
    keep = min(size, matrix.shape[0])
    resized[:keep, :keep] = matrix[:keep, :keep]
    return resized


def remove_nodes_from_matrix(
    weights: Any, node_indices: Iterable[int]
) -> NDArrayF64:
    matrix = _as_square_matrix(weights, np.float64, "Weight matrix")
    n = matrix.shape[0]
    removed = {_validate_node_index(i, n) for i in node_indices}
    keep = [i for i in range(n) if i not in removed]
    return matrix[np.ix_(keep, keep)].copy()


def sync_weights_with_edges(weights: Any, edges: Iterable[Edge]) -> NDArrayF64:
    matrix = _as_square_matrix(weights, np.float64, "Weight matrix").copy()
    n = matrix.shape[0]
    canvas_edges: set[Edge] = set()
    for a, b in edges:
        a = _validate_node_index(a, n, "Edge endpoint")
        b = _validate_node_index(b, n, "Edge endpoint")
        if a != b:
            canvas_edges.add((a, b))

    for i in range(n):
        for j in range(i + 1, n):
            matrix_edge_exists = matrix[i, j] != 0.0 or matrix[j, i] != 0.0
            canvas_edge_exists = (i, j) in canvas_edges or (j, i) in canvas_edges
            if matrix_edge_exists and not canvas_edge_exists:
                matrix[i, j] = 0.0
                matrix[j, i] = 0.0
            elif canvas_edge_exists and not matrix_edge_exists:
                matrix[i, j] = 1.0
                matrix[j, i] = 1.0
    return matrix


class ClassicalTransitionOperator:
    _SE = StructuralError

    def __init__(
        self,
        matrix: NDArrayF64,
        correction: CorrectionReport | None = None,
    ) -> None:
        matrix = _as_square_matrix(matrix, np.float64, "Classical operator")
        dimension = matrix.shape[0]
        node_count = math.isqrt(dimension)
        if node_count * node_count != dimension:
            raise self._SE(
                f"Classical operator dimension {dimension} is not a perfect square."
            )
        self._matrix: Final[NDArrayF64] = matrix
        self._labels: Final = LabelSet.node_pairs(node_count)
        self._correction: Final = correction or CorrectionReport.none()

    @classmethod
    def from_weights(
        cls,
        weights: Any,
        tolerance: float = DEFAULT_STOCHASTIC_TOLERANCE,
    ) -> ClassicalTransitionOperator:
        matrix = expand_weight_matrix(weights)
        correction = normalize_stochastic(matrix, tolerance)
        return cls(matrix, correction)

    @property
    def matrix(self) -> NDArrayF64:
        return self._matrix

    @property
    def labels(self) -> LabelSet:
        return self._labels

    @property
    def correction(self) -> CorrectionReport:
        return self._correction

    @property
    def node_count(self) -> int:
        return self._labels.node_count

    @property
    def dimension(self) -> int:
        return self._matrix.shape[1]

    def __repr__(self) -> str:
        return (
            f"ClassicalTransitionOperator(node_count={self.node_count}, "
            f"correction={self._correction})"
        )

    def get_initial_state(self, start_node: int | None = None) -> NDArrayF64:
        state = np.zeros(self.dimension, dtype=np.float64)
        if state.size == 0:
            return state
        node = 0 if start_node is None else start_node
        node = _validate_node_index(node, self.node_count, "Start node")
        state[self._labels.index_of((node, node))] = 1.0
        return state

    def apply(self, state: NDArrayF64) -> NDArrayF64:
        if state.ndim != 1 or state.shape[0] != self.dimension:
            raise DimensionMismatchError(
                f"Matrix dimensions do not match: operator has {self.dimension} columns, "
                f"state has shape {state.shape}."
            )
        return self._matrix @ state

    def aggregate(self, state: NDArrayF64) -> NDArrayF64:
        return self._labels.aggregate(state)


def build_classical(
    weight_matrix: Any, tolerance: float = DEFAULT_STOCHASTIC_TOLERANCE
) -> ClassicalTransitionOperator:
    return ClassicalTransitionOperator.from_weights(weight_matrix, tolerance)


def build_quantum(
    adjacency: Sequence[Sequence[int]],
) -> tuple[NDArrayC128, NDArrayC128, LabelSet]:
    labels = LabelSet.from_adjacency(adjacency)
    m = len(labels)
    propagation = np.zeros((m, m), dtype=np.complex128)
    if m:
        propagation[np.arange(m), labels.reverse_permutation()] = 1.0
    scatter = np.zeros((m, m), dtype=np.complex128)
    return scatter, propagation, labels


def quantum_initial_state(
    start_node: int | None, labels: LabelSet
) -> NDArrayC128:
    state = np.zeros(len(labels), dtype=np.complex128)
    if labels.node_count == 0:
        return state
    node = 0 if start_node is None else start_node
    indices = labels.indices_from(node)
    if indices.size == 0:
        print(
            f"Warning: Start node {node} has no incident edges. Initial state is empty.",
            file=sys.stderr,
        )
        return state
    state[indices] = math.sqrt(1.0 / indices.size)
    return state


class QuantumTransitionOperator:
    _SE = StructuralError

    def __init__(
        self,
        adjacency: Sequence[Sequence[int]],
        tolerance: float = DEFAULT_UNITARY_TOLERANCE,
    ) -> None:
        self._adjacency: Final[Adjacency] = tuple(
            tuple(sorted(set(int(b) for b in neighbours)))
            for neighbours in adjacency
        )
        scatter, propagation, labels = build_quantum(self._adjacency)
        self._scatter: NDArrayC128 = scatter
        self._propagation: Final[NDArrayC128] = propagation
        self._labels: Final[LabelSet] = labels
        self._tolerance: Final = tolerance
        self._combined: NDArrayC128 = scatter @ propagation
        self._correction = CorrectionReport.none()

    @classmethod
    def from_edges(
        cls,
        node_count: int,
        edges: Iterable[Edge],
        tolerance: float = DEFAULT_UNITARY_TOLERANCE,
    ) -> QuantumTransitionOperator:
        return cls(build_adjacency(node_count, edges), tolerance)

    @property
    def adjacency(self) -> Adjacency:
        return self._adjacency

    @property
    def labels(self) -> LabelSet:
        return self._labels

    @property
    def scatter(self) -> NDArrayC128:
        return self._scatter

    @property
    def propagation(self) -> NDArrayC128:
        return self._propagation

    @property
    def combined(self) -> NDArrayC128:
        return self._combined

    @property
    def correction(self) -> CorrectionReport:
        return self._correction

    @property
    def node_count(self) -> int:
        return self._labels.node_count

    @property
    def dimension(self) -> int:
        return len(self._labels)

    def __repr__(self) -> str:
        return (
            f"QuantumTransitionOperator(node_count={self.node_count}, "
            f"half_edges={self.dimension}, correction={self._correction})"
        )

    def set_scatter(self, scatter: Any) -> None:
        matrix = _as_square_matrix(scatter, np.complex128, "Scatter operator")
        if matrix.shape[0] != self.dimension:
            raise self._SE(
                f"Scatter operator must be {self.dimension}x{self.dimension}, got {matrix.shape}."
            )
        self._scatter = matrix

    def set_node_coin(self, node: int, coin: Any) -> None:
        indices = self._labels.indices_from(node)
        block = np.array(coin, dtype=np.complex128)
        degree = indices.size
        if block.shape != (degree, degree):
            raise self._SE(
                f"Coin for node {node} must be {degree}x{degree}, got shape {block.shape}."
            )
        self._scatter[np.ix_(indices, indices)] = block

    def combine(self) -> CorrectionReport:
        combined = self._scatter @ self._propagation
        correction = normalize_unitary(combined, self._tolerance)
        self._combined = combined
        self._correction = correction
        return correction

    def get_initial_state(self, start_node: int | None = None) -> NDArrayC128:
        return quantum_initial_state(start_node, self._labels)

    def apply(self, state: NDArrayC128) -> NDArrayC128:
        if state.ndim != 1 or state.shape[0] != self.dimension:
            raise DimensionMismatchError(
                f"Matrix dimensions do not match: operator has {self.dimension} columns, "
                f"state has shape {state.shape}."
            )
        return self._combined @ state

    def aggregate(self, state: NDArrayC128) -> NDArrayF64:
        return self._labels.aggregate(np.abs(state) ** 2)


TransitionOperator: TypeAlias = Union[
    ClassicalTransitionOperator, QuantumTransitionOperator
]

_INCOMPATIBLE_MESSAGE: Final[str] = (
    "Transition matrix incompatible with the current state "
    "({operator} columns, state length {state}), rebuild the transition matrix from the editor."
)


class ClassicalStateManager:
    def __init__(
        self,
        operator: ClassicalTransitionOperator,
        start_node: int | None = None,
    ) -> None:
        self._operator = operator
        self._start_node = start_node
        self._labels = operator.labels
        self._state = operator.get_initial_state(start_node)
        self._step = 0

    @classmethod
    def from_weights(
        cls, weights: Any, start_node: int | None = None
    ) -> ClassicalStateManager:
        return cls(ClassicalTransitionOperator.from_weights(weights), start_node)

    @property
    def operator(self) -> ClassicalTransitionOperator:
        return self._operator

    @property
    def state(self) -> NDArrayF64:
        return self._state.copy()

    @property
    def step(self) -> int:
        return self._step

    @property
    def start_node(self) -> int | None:
        return self._start_node

    def step_forward(self) -> None:
        if self._operator.dimension != self._state.shape[0]:
            raise DimensionMismatchError(
                _INCOMPATIBLE_MESSAGE.format(
                    operator=self._operator.dimension, state=self._state.shape[0]
                )
            )
        self._state = self._operator.apply(self._state)
        self._step += 1

    def reset(self) -> None:
        self._labels = self._operator.labels
        self._state = self._operator.get_initial_state(self._start_node)
        self._step = 0

    def get_state_data(self) -> NDArrayF64:
        return self._labels.aggregate(self._state)

    def get_target_accumulation(self) -> NDArrayF64:
        return np.zeros(self._labels.node_count, dtype=np.float64)

    def set_operator(self, operator: ClassicalTransitionOperator) -> None:
        self._operator = operator

    def make_transition_matrix_compatible(
        self, operator: ClassicalTransitionOperator
    ) -> None:
        self._operator = operator
        if operator.dimension != self._state.shape[0]:
            self.reset()
        else:
            self._labels = operator.labels

    def set_transition_matrix_from(self, weights: Any) -> CorrectionReport:
        operator = ClassicalTransitionOperator.from_weights(weights)
        self.make_transition_matrix_compatible(operator)
        return operator.correction

    def is_transition_matrix_sized_correctly(self, node_count: int) -> bool:
        return node_count**2 == self._operator.dimension

    def set_start_node(self, start_node: int | None) -> None:
        if start_node is not None:
            _validate_node_index(start_node, self._operator.node_count, "Start node")
        self._start_node = start_node


class QuantumStateManager:
    def __init__(
        self,
        operator: QuantumTransitionOperator,
        start_node: int | None = None,
        target_nodes: Iterable[int] = (),
    ) -> None:
        self._operator = operator
        self._start_node = start_node
        self._target_nodes = self._validated_targets(target_nodes)
        self._reset_state()

    @classmethod
    def from_edges(
        cls,
        node_count: int,
        edges: Iterable[Edge],
        coin: CoinName = "grover",
        start_node: int | None = None,
        target_nodes: Iterable[int] = (),
    ) -> QuantumStateManager:
        operator = QuantumTransitionOperator.from_edges(node_count, edges)
        operator.set_scatter(default_scatter(operator.labels, coin))
        operator.combine()
        return cls(operator, start_node, target_nodes)

    def _validated_targets(self, target_nodes: Iterable[int]) -> frozenset[int]:
        return frozenset(
            _validate_node_index(node, self._operator.node_count, "Target node")
            for node in target_nodes
        )

    def _reset_state(self) -> None:
        self._labels = self._operator.labels
        self._state = self._operator.get_initial_state(self._start_node)
        self._step = 0
        self._accumulation = np.zeros(self._labels.node_count, dtype=np.float64)
        self._total_removed = 0.0

    @property
    def operator(self) -> QuantumTransitionOperator:
        return self._operator

    @property
    def state(self) -> NDArrayC128:
        return self._state.copy()

    @property
    def step(self) -> int:
        return self._step

    @property
    def start_node(self) -> int | None:
        return self._start_node

    @property
    def target_nodes(self) -> frozenset[int]:
        return self._target_nodes

    @property
    def total_removed(self) -> float:
        return self._total_removed

    def live_probability(self) -> float:
        norm_squared = float(np.sum(np.abs(self._state) ** 2))
        return (1.0 - self._total_removed) * norm_squared

    def step_forward(self) -> None:
        if self._operator.dimension != self._state.shape[0]:
            raise DimensionMismatchError(
                _INCOMPATIBLE_MESSAGE.format(
                    operator=self._operator.dimension, state=self._state.shape[0]
                )
            )
        state = self._operator.apply(self._state)
        accumulation = self._accumulation
        total_removed = self._total_removed
        if self._target_nodes:
            state, accumulation, total_removed = self._apply_target_nodes(state)

        self._state = state
        self._accumulation = accumulation
        self._total_removed = total_removed
        self._step += 1

    def _apply_target_nodes(
        self, state: NDArrayC128
    ) -> tuple[NDArrayC128, NDArrayF64, float]:
        state = state.copy()
        accumulation = self._accumulation.copy()
        remaining = 1.0 - self._total_removed

        from_nodes = self._labels.from_nodes
        absorbed = np.isin(from_nodes, sorted(self._target_nodes))
        np.add.at(
            accumulation,
            from_nodes[absorbed],
            remaining * np.abs(state[absorbed]) ** 2,
        )
        state[absorbed] = 0.0

        remaining_norm_squared = float(np.sum(np.abs(state) ** 2))
        total_removed = self._total_removed + remaining * (
            1.0 - remaining_norm_squared
        )
        total_removed = min(1.0, max(0.0, total_removed))
        if remaining_norm_squared > 0.0:
            state /= math.sqrt(remaining_norm_squared)
        return state, accumulation, total_removed

    def reset(self) -> None:
        self._reset_state()

    def get_state_data(self) -> NDArrayF64:
        node_probabilities = self._labels.aggregate(np.abs(self._state) ** 2)
        total_accumulated = float(self._accumulation.sum())
        return node_probabilities * (1.0 - total_accumulated) + self._accumulation

    def get_target_accumulation(self) -> NDArrayF64:
        return self._accumulation.copy()

    def set_operator(self, operator: QuantumTransitionOperator) -> None:
        self._operator = operator

    def make_transition_matrix_compatible(
        self, operator: QuantumTransitionOperator
    ) -> None:
        self._operator = operator
        if (
            operator.dimension != self._state.shape[0]
            or operator.node_count != self._labels.node_count
        ):
            self._target_nodes = frozenset(
                node for node in self._target_nodes if node < operator.node_count
            )
            if self._start_node is not None and self._start_node >= operator.node_count:
                self._start_node = None
            self._reset_state()
        else:
            self._labels = operator.labels

    def is_transition_matrix_sized_correctly(self, half_edge_count: int) -> bool:
        return half_edge_count == self._operator.dimension

    def set_start_node(self, start_node: int | None) -> None:
        if start_node is not None:
            _validate_node_index(start_node, self._operator.node_count, "Start node")
        self._start_node = start_node

    def set_target_nodes(self, target_nodes: Iterable[int]) -> None:
        self._target_nodes = self._validated_targets(target_nodes)


StateManager: TypeAlias = Union[ClassicalStateManager, QuantumStateManager]


class WalkSession:
    _SE = StructuralError

    def __init__(
        self, config: WalkConfig | None = None, mode: WalkMode = "classical"
    ) -> None:
        if mode not in VALID_MODES:
            raise ConfigError(
                f"Invalid walk mode '{mode}'. Must be one of {sorted(VALID_MODES)}."
            )
        self.config = config or WalkConfig()
        self._mode: WalkMode = mode
        self._node_count = 0
        self._edges: tuple[Edge, ...] = ()
        self._weights: NDArrayF64 = np.zeros((0, 0), dtype=np.float64)
        self._coins: dict[int, NDArrayC128] = {}
        self._start_node: int = self.config.START_NODE
        self._target_nodes: frozenset[int] = frozenset(self.config.TARGET_NODES)
        self._operator: TransitionOperator | None = None
        self._state_manager: StateManager | None = None
        self._history: list[NDArrayF64] = []

    @property
    def mode(self) -> WalkMode:
        return self._mode

    @property
    def node_count(self) -> int:
        return self._node_count

    @property
    def edges(self) -> tuple[Edge, ...]:
        return self._edges

    @property
    def weights(self) -> NDArrayF64:
        return self._weights.copy()

    @property
    def operator(self) -> TransitionOperator | None:
        return self._operator

    @property
    def state_manager(self) -> StateManager | None:
        return self._state_manager

    @property
    def is_ready(self) -> bool:
        return self._state_manager is not None

    @property
    def step_count(self) -> int:
        return 0 if self._state_manager is None else self._state_manager.step

    @property
    def correction(self) -> CorrectionReport:
        if self._operator is None:
            return CorrectionReport.none()
        return self._operator.correction

    @property
    def history(self) -> NDArrayF64:
        if not self._history:
            return np.zeros((0, self._node_count), dtype=np.float64)
        return np.vstack(self._history)

    def switch_mode(self, mode: WalkMode) -> None:
        if mode not in VALID_MODES:
            raise ConfigError(
                f"Invalid walk mode '{mode}'. Must be one of {sorted(VALID_MODES)}."
            )
        if mode == self._mode:
            return
        self._mode = mode
        self._operator = None
        self._state_manager = None
        self._history = []
        if self._node_count:
            self.rebuild()

    def set_topology(self, node_count: int, edges: Iterable[Edge]) -> None:
        adjacency = build_adjacency(node_count, edges)
        self._edges = tuple(
            sorted(
                {
                    (a, b)
                    for a, neighbours in enumerate(adjacency)
                    for b in neighbours
                    if a <= b
                }
            )
        )
        self._node_count = node_count
        self._weights = sync_weights_with_edges(
            resize_weight_matrix(self._weights, node_count), self._edges
        )
        self._coins = {
            node: coin
            for node, coin in self._coins.items()
            if node < node_count and coin.shape == (len(adjacency[node]),) * 2
        }
        self.rebuild(reset_state=True)

    def remove_nodes(self, node_indices: Iterable[int]) -> None:
        removed = {
            _validate_node_index(i, self._node_count) for i in node_indices
        }
        remap = {
            old: new
            for new, old in enumerate(
                i for i in range(self._node_count) if i not in removed
            )
        }
        self._weights = remove_nodes_from_matrix(self._weights, removed)
        self._coins = {}
        self._target_nodes = frozenset(
            remap[node] for node in self._target_nodes if node in remap
        )
        self._start_node = remap.get(self._start_node, 0)
        edges = [
            (remap[a], remap[b])
            for a, b in self._edges
            if a in remap and b in remap
        ]
        self.set_topology(len(remap), edges)

    def set_weights(self, weights: Any) -> None:
        matrix = _as_square_matrix(weights, np.float64, "Weight matrix")
        if matrix.shape[0] != self._node_count:
            raise self._SE(
                f"Weight matrix must be {self._node_count}x{self._node_count}, got {matrix.shape}."
            )
        self._weights = matrix.copy()
        if self._mode == "classical":
            self.rebuild()

    def set_node_coin(self, node: int, coin: Any) -> None:
        node = _validate_node_index(node, self._node_count)
        block = np.array(coin, dtype=np.complex128)
        degree = sum(1 for a, b in self._edges if node in (a, b))
        if block.shape != (degree, degree):
            raise self._SE(
                f"Coin for node {node} must be {degree}x{degree}, got shape {block.shape}."
            )
        self._coins[node] = block
        if self._mode == "quantum":
            self.rebuild()

    def set_start_node(self, start_node: int) -> None:
        _validate_node_index(start_node, self._node_count, "Start node")
        self._start_node = start_node
        if self._state_manager is not None:
            self._state_manager.set_start_node(start_node)

    def set_target_nodes(self, target_nodes: Iterable[int]) -> None:
        targets = frozenset(
            _validate_node_index(node, self._node_count, "Target node")
            for node in target_nodes
        )
        self._target_nodes = targets
        if isinstance(self._state_manager, QuantumStateManager):
            self._state_manager.set_target_nodes(targets)

    def _effective_start_node(self) -> int | None:
        if self._node_count == 0:
            return None
        if self._start_node >= self._node_count:
            print(
                f"Warning: Start node {self._start_node} no longer exists. Using node 0.",
                file=sys.stderr,
            )
            self._start_node = 0
        return self._start_node

    def _build_operator(self) -> TransitionOperator:
        operator: TransitionOperator
        if self._mode == "classical":
            operator = ClassicalTransitionOperator.from_weights(
                self._weights, self.config.STOCHASTIC_TOLERANCE
            )
        else:
            operator = QuantumTransitionOperator.from_edges(
                self._node_count, self._edges, self.config.UNITARY_TOLERANCE
            )
            operator.set_scatter(
                default_scatter(operator.labels, self.config.DEFAULT_COIN)
            )
            degrees = operator.labels.degrees()
            for node, coin in self._coins.items():
                degree = int(degrees[node])
                if coin.shape == (degree, degree):
                    operator.set_node_coin(node, coin)
            operator.combine()

        if self.config.REPORT_CORRECTIONS and not operator.correction.is_none:
            print(
                f"Warning: {self._mode.title()} transition matrix corrected ({operator.correction}).",
                file=sys.stderr,
            )
        return operator

    def rebuild(self, reset_state: bool = False) -> CorrectionReport:
        operator = self._build_operator()
        self._operator = operator
        start_node = self._effective_start_node()

        if self._state_manager is None:
            if isinstance(operator, ClassicalTransitionOperator):
                self._state_manager = ClassicalStateManager(operator, start_node)
            else:
                self._state_manager = QuantumStateManager(
                    operator,
                    start_node,
                    (n for n in self._target_nodes if n < self._node_count),
                )
        else:
            state_manager = self._state_manager
            state_manager.set_operator(operator)
            state_manager.set_start_node(start_node)
            if isinstance(state_manager, QuantumStateManager):
                state_manager.set_target_nodes(
                    n for n in self._target_nodes if n < self._node_count
                )
            state_manager.make_transition_matrix_compatible(operator)
            if reset_state:
                state_manager.reset()

        if self._state_manager.step == 0:
            self._history = [self._state_manager.get_state_data()]
        return operator.correction

    def _require_state_manager(self) -> StateManager:
        if self._state_manager is None:
            raise WalkEngineError(
                "No state manager found, build the walk from the editor first."
            )
        return self._state_manager

    def step(self, count: int = 1) -> NDArrayF64:
        _validate_non_negative_ints(("count", count))
        state_manager = self._require_state_manager()
        for _ in range(count):
            state_manager.step_forward()
            self._history.append(state_manager.get_state_data())
        return state_manager.get_state_data()

    def reset(self) -> None:
        state_manager = self._require_state_manager()
        state_manager.reset()
        self._history = [state_manager.get_state_data()]

    def get_state_data(self) -> NDArrayF64:
        if self._state_manager is None:
            return np.zeros(0, dtype=np.float64)
        return self._state_manager.get_state_data()

    def get_target_accumulation(self) -> NDArrayF64:
        if self._state_manager is None:
            return np.zeros(self._node_count, dtype=np.float64)
        return self._state_manager.get_target_accumulation()


def _default_node_labels(node_count: int) -> list[str]:
    return [f"Node {i}" for i in range(node_count)]


class Visualizer:
    def __init__(self, config: VisConfig) -> None:
        self.config = config

    def _save_or_show(
        self,
        fig: matplotlib.figure.Figure,
        show_plot: bool,
        save_path: Path | None,
    ) -> None:
        try:
            if save_path:
                target_path = _ensure_output_dir(save_path)
                if target_path:
                    try:
                        fig.savefig(
                            target_path,
                            dpi=self.config.DPI,
                            bbox_inches="tight",
                        )
                    except (OSError, ValueError) as e:
                        print(
                            f"Warning: Failed to save plot to {target_path}: {e}",
                            file=sys.stderr,
                        )
                else:
                    print(
                        f"Warning: Plot not saved due to directory issue for path: {save_path}",
                        file=sys.stderr,
                    )

            if show_plot:
                plt.show()
        finally:
            plt.close(fig)

    def plot_distribution_history(
        self,
        history: NDArrayF64,
        node_labels: Sequence[str] | None = None,
        title: str = "Node Distribution Over Time",
        show_plot: bool = True,
        save_path: Path | None = None,
    ) -> None:
        if history.ndim != 2 or history.size == 0:
            print("Info: No distribution history provided to plot.")
            return

        num_steps_plus_1, node_count = history.shape
        labels = list(node_labels or _default_node_labels(node_count))
        if len(labels) != node_count:
            raise VisualizationError(
                f"Got {len(labels)} node labels for {node_count} nodes."
            )

        fig: matplotlib.figure.Figure | None = None
        try:
            fig, ax = plt.subplots(figsize=self.config.FIGSIZE)
            cmap = matplotlib.colormaps[self.config.COLORMAP]
            colors = cmap(np.linspace(0.0, 1.0, node_count))
            steps_axis = np.arange(num_steps_plus_1)

            for node in range(node_count):
                ax.plot(
                    steps_axis,
                    history[:, node],
                    color=colors[node],
                    alpha=self.config.LINE_ALPHA,
                    linewidth=self.config.LINE_WIDTH,
                    marker="o",
                    markersize=3,
                    label=labels[node],
                )

            ax.set_title(title, fontsize=14)
            ax.set_xlabel("Step Number")
            ax.set_ylabel("Probability")
            ax.set_ylim(-0.02, 1.02)
            ax.grid(True, alpha=self.config.GRID_ALPHA, linestyle=":")
            ax.margins(x=0.02)
            if node_count <= self.config.MAX_LEGEND_ENTRIES:
                ax.legend(fontsize="small")

            self._save_or_show(fig, show_plot, save_path)
            fig = None

        except Exception as e:
            if fig:
                plt.close(fig)
            raise VisualizationError(
                f"Failed to plot distribution history: {e}"
            ) from e

    def plot_node_distribution(
        self,
        distribution: NDArrayF64,
        accumulation: NDArrayF64 | None = None,
        step: int | None = None,
        node_labels: Sequence[str] | None = None,
        show_plot: bool = True,
        save_path: Path | None = None,
    ) -> None:
        if distribution.ndim != 1 or distribution.size == 0:
            print("Info: No node distribution provided to plot.")
            return

        node_count = distribution.size
        absorbed = (
            np.zeros(node_count)
            if accumulation is None
            else np.asarray(accumulation, dtype=np.float64)
        )
        if absorbed.shape != distribution.shape:
            raise VisualizationError(
                f"Accumulation shape {absorbed.shape} does not match distribution shape {distribution.shape}."
            )
        labels = list(node_labels or _default_node_labels(node_count))

        fig: matplotlib.figure.Figure | None = None
        try:
            fig, ax = plt.subplots(figsize=self.config.FIGSIZE)
            positions = np.arange(node_count)
            live = np.clip(distribution - absorbed, 0.0, None)

            ax.bar(
                positions,
                live,
                alpha=self.config.BAR_ALPHA,
                color="skyblue",
                label="Walking",
            )
            if np.any(absorbed > 0):
                ax.bar(
                    positions,
                    absorbed,
                    bottom=live,
                    alpha=self.config.BAR_ALPHA,
                    color="salmon",
                    label="Absorbed",
                )
                ax.legend(fontsize="small")

            step_label = "" if step is None else f" (step {step})"
            ax.set_title(f"Node Distribution{step_label}", fontsize=14)
            ax.set_xticks(positions)
            ax.set_xticklabels(labels)
            ax.set_ylabel("Probability")
            ax.set_ylim(0.0, 1.05)
            ax.grid(True, axis="y", alpha=self.config.GRID_ALPHA, linestyle=":")

            self._save_or_show(fig, show_plot, save_path)
            fig = None

        except Exception as e:
            if fig:
                plt.close(fig)
            raise VisualizationError(
                f"Failed to plot node distribution: {e}"
            ) from e


class SimulationRunner:
    DEFAULT_CLASSICAL_WEIGHTS: Final[NDArrayF64] = np.array(
        [
            [0.3, 0.0, 0.7],
            [0.5, 0.0, 0.3],
            [0.2, 1.0, 0.0],
        ]
    )
    DEFAULT_QUANTUM_NODE_COUNT: Final[int] = 4
    DEFAULT_QUANTUM_EDGES: Final[tuple[Edge, ...]] = (
        (0, 1),
        (1, 2),
        (2, 3),
        (3, 0),
        (0, 2),
    )
    DEFAULT_QUANTUM_TARGETS: Final[tuple[int, ...]] = (3,)

    def __init__(
        self,
        walk_config: WalkConfig | None = None,
        vis_config: VisConfig | None = None,
    ) -> None:
        try:
            self.w_cfg = walk_config or WalkConfig()
            self.v_cfg = vis_config or VisConfig()
        except ConfigError as e:
            raise ConfigError(
                f"Configuration initialization failed: {e}"
            ) from e

        self.visualizer = Visualizer(self.v_cfg)
        self.results: dict[WalkMode, NDArrayF64] = {}

    def _run_task(
        self,
        task_name: str,
        task_func: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> bool:
        print(f"\n--- Running {task_name} ---")
        start_time = time.monotonic()
        success = False
        try:
            task_func(*args, **kwargs)
            success = True
        except (
            WalkEngineError,
            VisualizationError,
            ConfigError,
            OSError,
        ) as e:
            print(
                f"ERROR during {task_name}: {type(e).__name__}: {e}",
                file=sys.stderr,
            )
        except Exception as e:
            print(
                f"UNEXPECTED ERROR during {task_name}: {type(e).__name__}: {e}",
                file=sys.stderr,
            )
            traceback.print_exc(file=sys.stderr)
        finally:
            elapsed_time = time.monotonic() - start_time
            status = "OK" if success else "FAILED"
            print(
                f"--- {task_name} {status} (Duration: {elapsed_time:.2f}s) ---"
            )
        return success

    def _plot_paths(self, mode: WalkMode, save: bool) -> tuple[Path | None, Path | None]:
        if not save:
            return None, None
        return (
            DEFAULT_OUTPUT_DIR / f"{mode}_{self.v_cfg.DEFAULT_HISTORY_PLOT_FILENAME}",
            DEFAULT_OUTPUT_DIR / f"{mode}_{self.v_cfg.DEFAULT_DISTRIBUTION_PLOT_FILENAME}",
        )

    def _visualize_session(
        self, session: WalkSession, show: bool, save: bool
    ) -> None:
        history_path, distribution_path = self._plot_paths(session.mode, save)
        self.visualizer.plot_distribution_history(
            session.history,
            title=f"{session.mode.title()} Walk: Node Distribution Over Time",
            show_plot=show,
            save_path=history_path,
        )
        self.visualizer.plot_node_distribution(
            session.get_state_data(),
            accumulation=session.get_target_accumulation(),
            step=session.step_count,
            show_plot=show,
            save_path=distribution_path,
        )
        for path in (history_path, distribution_path):
            if path and path.exists():
                print(f"Plot saved: {path.resolve()}")
            elif path:
                print(f"Plot FAILED to save to: {path.resolve()}")

    def run_classical_walk(
        self, show_plots: bool = True, save_plots: bool = True
    ) -> bool:
        def task(show: bool, save: bool):
            weights = self.DEFAULT_CLASSICAL_WEIGHTS
            node_count = weights.shape[0]
            edges = [
                (i, j)
                for i in range(node_count)
                for j in range(i + 1, node_count)
                if weights[i, j] != 0.0 or weights[j, i] != 0.0
            ]
            session = WalkSession(self.w_cfg, mode="classical")
            session.set_topology(node_count, edges)
            session.set_weights(weights)
            print(
                f"Stepping classical walk on {node_count} nodes for {self.w_cfg.DEMO_STEPS} steps..."
            )
            session.step(self.w_cfg.DEMO_STEPS)
            self.results["classical"] = session.get_state_data()
            self._display_distribution_table(
                "Classical Walk Node Distribution", session
            )
            self._visualize_session(session, show, save)

        return self._run_task(
            "Classical Walk Simulation", task, show_plots, save_plots
        )

    def run_quantum_walk(
        self, show_plots: bool = True, save_plots: bool = True
    ) -> bool:
        def task(show: bool, save: bool):
            node_count = self.DEFAULT_QUANTUM_NODE_COUNT
            targets = self.w_cfg.TARGET_NODES or self.DEFAULT_QUANTUM_TARGETS
            session = WalkSession(self.w_cfg, mode="quantum")
            session.set_topology(node_count, self.DEFAULT_QUANTUM_EDGES)
            session.set_target_nodes(t for t in targets if t < node_count)
            session.reset()
            print(
                f"Stepping quantum walk on {node_count} nodes "
                f"({len(session.operator.labels) if session.operator else 0} half-edges, "
                f"coin: {self.w_cfg.DEFAULT_COIN}) for {self.w_cfg.DEMO_STEPS} steps..."
            )
            session.step(self.w_cfg.DEMO_STEPS)
            self.results["quantum"] = session.get_state_data()
            self._display_distribution_table(
                "Quantum Walk Node Distribution", session
            )
            self._visualize_session(session, show, save)

        return self._run_task(
            "Quantum Walk Simulation", task, show_plots, save_plots
        )

    def _display_distribution_table(
        self, title: str, session: WalkSession
    ) -> None:
        max_table_width = 78
        header_separator = "=" * max_table_width
        print(
            f"\n{header_separator}\n{title:^{max_table_width}}\n{header_separator}"
        )

        distribution = session.get_state_data()
        if distribution.size == 0:
            print("\nNo distribution available for display.")
            print(header_separator + "\n")
            return

        accumulation = session.get_target_accumulation()
        node_col_width = 15
        data_col_width = 20
        header_line = (
            f"{'Node':<{node_col_width}}"
            f"{'Probability':>{data_col_width}}"
            f"{'Absorbed':>{data_col_width}}"
        )
        table_separator = "-" * len(header_line)
        print(f"\n{header_line}\n{table_separator}")
        for label, probability, absorbed in zip(
            _default_node_labels(distribution.size), distribution, accumulation
        ):
            print(
                f"{label:<{node_col_width}}"
                f"{probability:>{data_col_width}.6f}"
                f"{absorbed:>{data_col_width}.6f}"
            )
        print(table_separator)
        print(
            f"{'Total':<{node_col_width}}"
            f"{np.sum(distribution):>{data_col_width}.6f}"
            f"{np.sum(accumulation):>{data_col_width}.6f}"
        )
        print(table_separator)
        print(f"(After {session.step_count} steps, correction: {session.correction})")
        print(header_separator + "\n")

    def run_all(
        self,
        run_classical: bool = True,
        run_quantum: bool = True,
        show_plots: bool = True,
        save_outputs: bool = True,
    ) -> bool:
        max_width = 78
        title = "Classical & Quantum Graph Walk Run"
        print(
            f"\n{'*' * max_width}\n{title:^{max_width}}\n{'*' * max_width}"
        )
        overall_start_time = time.monotonic()
        task_results: list[bool] = []

        tasks_to_run = [
            (run_classical, self.run_classical_walk),
            (run_quantum, self.run_quantum_walk),
        ]
        for should_run, task_func in tasks_to_run:
            if should_run:
                task_results.append(task_func(show_plots, save_outputs))

        overall_elapsed_time = time.monotonic() - overall_start_time
        overall_success = all(task_results) if task_results else True

        print("\n--- Walk Suite Summary ---")
        print(f"Total execution time: {overall_elapsed_time:.2f} seconds.")
        status_message = (
            "All selected tasks completed successfully"
            if overall_success
            else "One or more tasks FAILED"
        )
        print(f"Overall status: {status_message}")
        print("*" * max_width + "\n")

        return overall_success


def main_simulation_runner() -> int:
    plt.ioff()
    exit_code = 0

    try:
        print("Initializing Simulation Runner with default configurations...")
        runner = SimulationRunner()
        print("Initialization complete. Starting walk suite execution...")
        success = runner.run_all(show_plots=False, save_outputs=True)
        exit_code = 0 if success else 1

    except ConfigError as e:
        print(
            f"\nCRITICAL CONFIGURATION ERROR: {e}\nAborting simulation.",
            file=sys.stderr,
        )
        exit_code = 2
    except Exception as e:
        print(
            f"\nCRITICAL UNHANDLED ERROR: {type(e).__name__}: {e}",
            file=sys.stderr,
        )
        traceback.print_exc(file=sys.stderr)
        exit_code = 3
    finally:
        plt.close("all")

    print(f"\nSimulation run finished. Exiting with code {exit_code}.")
    return exit_code


def run_tests(verbosity_level: int = 2) -> int:
    print("\n--- Running Unit Tests ---")
    try:
        import test_graph_walks
    except ImportError as e:
        print(
            f"ERROR: Could not import the test module 'test_graph_walks': {e}",
            file=sys.stderr,
        )
        return 1

    loader = unittest.TestLoader()
    loader.sortTestMethodsUsing = None
    suite = loader.loadTestsFromModule(test_graph_walks)
    runner = unittest.TextTestRunner(
        verbosity=verbosity_level, failfast=False, buffer=True
    )
    result = runner.run(suite)

    print("\n--- Unit Tests Complete ---")
    print(f"Total Tests Run: {result.testsRun}")
    print(f"Failures: {len(result.failures)}")
    print(f"Errors: {len(result.errors)}")
    print(f"Skipped: {len(result.skipped)}")

    return 0 if result.wasSuccessful() else 1


def display_help() -> None:
    script_name = Path(__file__).name
    help_text = f"""
Usage: python {script_name} [options]

Graph Walk Engine: classical (stochastic) and quantum (unitary) walks on graphs.

Options:
  --test [-v N] : Run the unit test suite.
                  Optional verbosity level N can be 0 (quiet), 1 (default),
                  or 2 (verbose). Default is 2 if -v is omitted.
  --help, -h    : Display this help message and exit.
  (no options)  : Run the demo walks (classical 3-node walk, quantum 4-node
                  walk with an absorbing node) with default parameters.

Description:
  - Classical walk: a weight matrix is embedded into a node-pair operator,
    columns are normalised to sum to 1 and probability is stepped forward.
  - Quantum walk: half-edges of the graph carry complex amplitudes; a coin
    (scatter) operator and a shift (propagation) operator are combined and
    corrected to be unitary. Target nodes absorb amplitude every step.
  Output: console tables and PNG plots of the per-node distribution.

Default Output Directory:
  Generated files are saved to: {DEFAULT_OUTPUT_DIR.resolve()}
"""
    print(help_text)


if __name__ == "__main__":
    exit_code: int = 0
    command_args = sys.argv[1:]

    if "--test" in command_args:
        test_verbosity = 2
        if "-v" in command_args:
            v_index = command_args.index("-v")
            if v_index + 1 < len(command_args) and command_args[
                v_index + 1
            ].isdigit():
                level = int(command_args[v_index + 1])
                if level in [0, 1, 2]:
                    test_verbosity = level
                else:
                    print(
                        "Warning: Invalid verbosity level specified after -v. Must be 0, 1, or 2. Using default (2).",
                        file=sys.stderr,
                    )
            else:
                print(
                    "Warning: Missing or non-integer verbosity level after -v. Using default (2).",
                    file=sys.stderr,
                )
        exit_code = run_tests(verbosity_level=test_verbosity)

    elif "--help" in command_args or "-h" in command_args:
        display_help()
        exit_code = 0

    elif not command_args:
        exit_code = main_simulation_runner()

    else:
        print(
            f"Error: Unknown or invalid arguments provided: {' '.join(command_args)}",
            file=sys.stderr,
        )
        display_help()
        exit_code = 4

    sys.exit(exit_code)
