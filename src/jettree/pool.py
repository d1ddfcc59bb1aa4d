# src/jettree/pool.py
from enum import IntEnum
from typing import NamedTuple

import numpy as np


# -------------------------
# Source kinds / provenance
# -------------------------
class SourceKind(IntEnum):
    TRACK = 0
    FLOW = 1
    ECAL = 2
    IHCAL = 3
    OHCAL = 4
    PARTICLE = 5


class Provenance(NamedTuple):
    kind: SourceKind
    source_id: int


class CandidateParticle(NamedTuple):
    px: float
    py: float
    pz: float
    e: float
    kind: SourceKind
    source_id: int

    @property
    def p4(self):
        return np.array([self.px, self.py, self.pz, self.e], dtype=float)


# -------------------------
# Particle pool (arena + index)
# -------------------------
class ParticlePool:
    """
    Event-local clustering input. Four-momenta are stored as (px, py, pz, E)
    rows; provenance lives in parallel arrays addressed by the same pool index,
    so an index handed to the clustering engine resolves in O(1).
    """

    def __init__(self):
        self._p4 = []
        self._kind = []
        self._source_id = []

    def __len__(self) -> int:
        return len(self._p4)

    def append(self, cand: CandidateParticle) -> int:
        index = len(self._p4)
        self._p4.append((float(cand.px), float(cand.py), float(cand.pz), float(cand.e)))
        self._kind.append(SourceKind(cand.kind))
        self._source_id.append(int(cand.source_id))
        return index

    def clear(self):
        self._p4.clear()
        self._kind.clear()
        self._source_id.clear()

    @property
    def p4(self) -> np.ndarray:
        if not self._p4:
            return np.zeros((0, 4), dtype=float)
        return np.asarray(self._p4, dtype=float)

    @property
    def kinds(self) -> np.ndarray:
        return np.asarray(self._kind, dtype=int)

    @property
    def source_ids(self) -> np.ndarray:
        return np.asarray(self._source_id, dtype=np.int64)

    def provenance(self, index: int) -> Provenance:
        return Provenance(self._kind[index], self._source_id[index])

    def candidate(self, index: int) -> CandidateParticle:
        px, py, pz, e = self._p4[index]
        return CandidateParticle(px, py, pz, e, self._kind[index], self._source_id[index])

    def count(self, kind: SourceKind) -> int:
        return sum(1 for k in self._kind if k == kind)
