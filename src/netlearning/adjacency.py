"""Relational structures over entities.

An ``Adjacency`` wraps a square sparse matrix of non-negative edge weights,
one per relation. It is the only graph representation the relational
learners and the collective inferers need: neighbor enumeration, weighted
degrees, and symmetric restriction to an entity subset.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import numpy as np
import scipy.sparse as sp

from netlearning.exceptions import ShapeMismatchError


class Adjacency:
    """Weighted relation over ``n_entities`` entities.

    Args:
        matrix: Dense array or scipy sparse matrix, shape (n, n).
        name: Optional relation name, used in log events.
    """

    def __init__(
        self,
        matrix: np.ndarray | sp.spmatrix | sp.sparray,
        name: str | None = None,
    ) -> None:
        if sp.issparse(matrix):
            csr = sp.csr_matrix(matrix, dtype=float, copy=True)
        else:
            dense = np.asarray(matrix, dtype=float)
            if dense.ndim != 2:
                raise ShapeMismatchError("adjacency", "a 2-dimensional matrix", dense.shape)
            csr = sp.csr_matrix(dense)
        if csr.shape[0] != csr.shape[1]:
            raise ShapeMismatchError("adjacency", "a square matrix", csr.shape)
        csr.eliminate_zeros()
        csr.sort_indices()
        self._matrix = csr
        self.name = name

    @classmethod
    def from_edges(
        cls,
        n: int,
        edges: Iterable[tuple[int, int]],
        weights: Sequence[float] | None = None,
        symmetric: bool = True,
        name: str | None = None,
    ) -> Adjacency:
        """Build an adjacency from an edge list.

        Duplicate edges have their weights summed. With ``symmetric`` every
        edge (i, j) also yields (j, i).
        """
        edges = list(edges)
        if weights is None:
            w = np.ones(len(edges), dtype=float)
        else:
            w = np.asarray(weights, dtype=float)
            if w.shape[0] != len(edges):
                raise ShapeMismatchError("weights", len(edges), w.shape[0])
        if edges:
            rows, cols = (np.asarray(x, dtype=int) for x in zip(*edges))
        else:
            rows = cols = np.empty(0, dtype=int)
        if symmetric:
            # self-loops must not be doubled
            off = rows != cols
            rows, cols, w = (
                np.concatenate([rows, cols[off]]),
                np.concatenate([cols, rows[off]]),
                np.concatenate([w, w[off]]),
            )
        matrix = sp.coo_matrix((w, (rows, cols)), shape=(n, n)).tocsr()
        return cls(matrix, name=name)

    @property
    def matrix(self) -> sp.csr_matrix:
        """The CSR weight matrix (read-only by convention)."""
        return self._matrix

    @property
    def n_entities(self) -> int:
        return self._matrix.shape[0]

    def __len__(self) -> int:
        return self.n_entities

    def neighbors(self, i: int) -> tuple[np.ndarray, np.ndarray]:
        """Return the neighbor indices of entity ``i`` and the edge weights."""
        start, stop = self._matrix.indptr[i], self._matrix.indptr[i + 1]
        return self._matrix.indices[start:stop].copy(), self._matrix.data[start:stop].copy()

    def degree(self) -> np.ndarray:
        """Weighted degree (row sums) of every entity."""
        return np.asarray(self._matrix.sum(axis=1)).ravel()

    def neighbor_counts(self) -> np.ndarray:
        """Number of neighbors of every entity."""
        return np.diff(self._matrix.indptr)

    def binarized(self) -> sp.csr_matrix:
        """Unweighted copy of the matrix (every edge has weight 1)."""
        out = self._matrix.copy()
        out.data = np.ones_like(out.data)
        return out

    def subset(self, selector: np.ndarray | Sequence[int] | Sequence[bool]) -> Adjacency:
        """Restrict the relation to a subset of entities (rows and columns).

        Args:
            selector: Boolean mask of length ``n_entities`` or integer indices.
        """
        idx = np.asarray(selector)
        if idx.dtype == bool:
            if idx.shape[0] != self.n_entities:
                raise ShapeMismatchError("selector", self.n_entities, idx.shape[0])
            idx = np.flatnonzero(idx)
        else:
            idx = idx.astype(int)
        sub = self._matrix[idx][:, idx]
        return Adjacency(sub, name=self.name)

    def is_symmetric(self, atol: float = 1e-12) -> bool:
        diff = abs(self._matrix - self._matrix.T)
        return diff.nnz == 0 or bool(diff.max() <= atol)

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        return f"Adjacency{label}: {self.n_entities} entities, {self._matrix.nnz} edges"
