"""File-backed clause index for vector retrieval.

The index is a JSON file holding clauses with precomputed embeddings:

    {
      "clauses": [
        {
          "clause_id": "motor_policy_001",
          "policy_type": "Motor",
          "text": "Collision damage is covered up to $50,000 ...",
          "coverage_type": "Collision",
          "tags": ["coverage"],
          "embedding": [0.012, -0.034, ...]
        }
      ]
    }

Retrieval ranks clauses of the requested policy type by cosine
similarity and returns the top ``top_k`` above ``min_score``.  Each
policy type's embedding matrix is built on first use and reused.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np

from claim_validation.schemas.claim import PolicyClause, PolicyType

logger = logging.getLogger(__name__)


def cosine_similarity(query: Sequence[float], matrix: Any) -> np.ndarray:
    """Cosine similarity of ``query`` against every row of ``matrix``.

    Rows of a different width, and zero-norm rows or queries, score 0.
    """
    query = np.asarray(query, dtype=float)
    matrix = np.atleast_2d(np.asarray(matrix, dtype=float))
    if query.size == 0 or matrix.shape[1] != query.size:
        return np.zeros(matrix.shape[0])
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.where(norms > 0, dots / norms, 0.0)


class LocalClauseIndex:
    """In-memory cosine search over a JSON clause index."""

    def __init__(self, entries: List[Dict[str, Any]], top_k: int = 5, min_score: float = 0.0) -> None:
        self.entries = entries
        self.top_k = top_k
        self.min_score = min_score
        # (policy_type, width) -> (entries, embedding matrix)
        self._matrices: Dict[Tuple[PolicyType, int], Tuple[List[Dict[str, Any]], np.ndarray]] = {}

    @classmethod
    def from_file(cls, path: Path, top_k: int = 5, min_score: float = 0.0) -> "LocalClauseIndex":
        """Load an index file.

        Raises:
            FileNotFoundError: If the index file does not exist.
            ValueError: If the file has no ``clauses`` list.
        """
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        entries = data.get("clauses") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise ValueError(f"Clause index {path} has no 'clauses' list")
        logger.info(f"Loaded {len(entries)} clauses from {path}")
        return cls(entries, top_k=top_k, min_score=min_score)

    def _matrix_for(self, policy_type: PolicyType, width: int) -> Tuple[List[Dict[str, Any]], np.ndarray]:
        key = (policy_type, width)
        if key not in self._matrices:
            rows = [
                entry for entry in self.entries
                if PolicyType(entry.get("policy_type", policy_type.value)) == policy_type
            ]
            # Embeddings of another width stay zero rows
            matrix = np.zeros((len(rows), width))
            for i, entry in enumerate(rows):
                embedding = entry.get("embedding") or []
                if len(embedding) == width:
                    matrix[i] = embedding
            self._matrices[key] = (rows, matrix)
            logger.debug(f"Built {policy_type.value} clause matrix {matrix.shape}")
        return self._matrices[key]

    def retrieve(self, vector: Sequence[float], policy_type: PolicyType) -> List[PolicyClause]:
        query = np.asarray(vector, dtype=float)
        rows, matrix = self._matrix_for(policy_type, query.size)
        if not rows or self.top_k <= 0:
            return []

        scores = cosine_similarity(query, matrix)
        clauses: List[PolicyClause] = []
        for i in np.argsort(-scores, kind="stable"):
            score = float(scores[i])
            if score < self.min_score:
                break
            entry = rows[i]
            clauses.append(PolicyClause(
                clause_id=entry["clause_id"],
                text=entry.get("text", ""),
                coverage_type=entry.get("coverage_type", ""),
                tags=list(entry.get("tags") or []),
                score=max(0.0, min(1.0, score)),
            ))
            if len(clauses) >= self.top_k:
                break
        return clauses
