# src/jettree/sources.py
"""
Boundary objects handed to the collectors.

The host framework's data store is modelled as an ``EventStore``: a mapping of
node name to container. A node that is absent (or a vertex node that is empty)
raises ``MissingSourceError`` when a collector asks for it. The record types
below only carry what the collectors consume.
"""
from dataclasses import dataclass

import numpy as np
import awkward as ak

from jettree.utils import load_arrays

# node names
VERTEX = "vertex"
TRUTH_VERTEX = "truth_vertex"
TRACKS = "tracks"
FLOW = "flow"
EMCAL_CLUSTERS = "emcal_clusters"
IHCAL_CLUSTERS = "ihcal_clusters"
OHCAL_CLUSTERS = "ohcal_clusters"
PARTICLES = "particles"


class MissingSourceError(RuntimeError):
    def __init__(self, node, reason="node is missing"):
        super().__init__(f"{node}: {reason}")
        self.node = node
        self.reason = reason


# -------------------------
# Raw per-event records
# -------------------------
@dataclass(frozen=True)
class Track:
    id: int
    px: float
    py: float
    pz: float
    quality: float = 0.0
    n_mvtx: int = 0
    n_intt: int = 0
    n_tpc: int = 0


@dataclass(frozen=True)
class FlowElement:
    id: int
    e: float
    px: float
    py: float
    pz: float


@dataclass(frozen=True)
class CaloCluster:
    """Cluster energy and position; the momentum direction depends on the vertex."""
    id: int
    e: float
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class GenParticle:
    barcode: int
    status: int
    pid: int
    px: float
    py: float
    pz: float
    e: float
    from_outgoing_parton: bool = False


# -------------------------
# External evaluators
# -------------------------
class TrackEvaluator:
    """
    Quality score and hit-layer counts for a track. The default reads them from
    the track record; a detector-specific evaluator can be dropped in.
    """

    def quality(self, track) -> float:
        return float(track.quality)

    def hit_counts(self, track):
        return int(track.n_mvtx), int(track.n_intt), int(track.n_tpc)


def correct_cluster(cluster, vertex):
    """
    Vertex-corrected cluster 3-vector: |v| = cluster energy, direction from the
    primary vertex to the cluster position.
    """
    pos = np.array([cluster.x, cluster.y, cluster.z], dtype=float) - np.asarray(vertex, dtype=float)
    norm = float(np.sqrt(np.sum(pos*pos)))
    if norm <= 0.0:
        return np.zeros(3, dtype=float)
    return float(cluster.e) * pos / norm


# -------------------------
# Event store
# -------------------------
class EventStore(dict):
    def require(self, node):
        if node not in self or self[node] is None:
            raise MissingSourceError(node)
        return self[node]

    def vertex(self, node=VERTEX):
        vtx = self.require(node)
        vtx = np.asarray(vtx, dtype=float).reshape(-1)
        if vtx.size < 3:
            raise MissingSourceError(node, "vertex map is empty")
        return vtx[:3]


# -------------------------
# Flat ntuple reader (uproot)
# -------------------------
_RECORD_FIELDS = {
    TRACKS: (Track, ("id", "px", "py", "pz", "quality", "n_mvtx", "n_intt", "n_tpc")),
    FLOW: (FlowElement, ("id", "e", "px", "py", "pz")),
    EMCAL_CLUSTERS: (CaloCluster, ("id", "e", "x", "y", "z")),
    IHCAL_CLUSTERS: (CaloCluster, ("id", "e", "x", "y", "z")),
    OHCAL_CLUSTERS: (CaloCluster, ("id", "e", "x", "y", "z")),
    PARTICLES: (GenParticle, ("barcode", "status", "pid", "px", "py", "pz", "e", "from_outgoing_parton")),
}

_REQUIRED_FIELDS = {
    Track: 4,
    FlowElement: 5,
    CaloCluster: 5,
    GenParticle: 7,
}


def _as_numpy(x):
    if isinstance(x, ak.Array):
        return ak.to_numpy(x)
    return np.asarray(x)


def branch_list(branches):
    bl = []
    for _, bmap in branches.items():
        if not bmap:
            continue
        for _, br in bmap.items():
            if br:
                bl.append(br)
    return sorted(set(bl))


class RootEventReader:
    """
    Serves one ``EventStore`` per entry of a flat ROOT tree.

    ``branches`` maps node name -> {field: branch}; a node mapped to ``None``
    (or whose branches are absent from the file) is simply not put in the
    store, which the collectors report as a missing source.
    """

    def __init__(self, path, tree_name, branches):
        self.path = path
        self.tree_name = tree_name
        self.branches = {k: v for k, v in branches.items() if v}
        self.data = load_arrays(path, tree_name, branch_list(self.branches), library="ak")
        self.n_events = len(self.data) if len(self.data.fields) else 0

    def __len__(self) -> int:
        return self.n_events

    def _field(self, bmap, key, ievt):
        br = bmap.get(key)
        if not br or br not in self.data.fields:
            return None
        return self.data[br][ievt]

    def _records(self, node, bmap, ievt):
        cls, fields = _RECORD_FIELDS[node]
        cols = [self._field(bmap, f, ievt) for f in fields]
        n_required = _REQUIRED_FIELDS[cls]
        if any(c is None for c in cols[:n_required]):
            return None
        cols = {f: _as_numpy(c) for f, c in zip(fields, cols) if c is not None}
        n = len(cols[fields[0]])
        return [cls(**{f: c[i].item() for f, c in cols.items()}) for i in range(n)]

    def _vertex(self, bmap, ievt):
        vals = [self._field(bmap, k, ievt) for k in ("x", "y", "z")]
        if any(v is None for v in vals):
            return None
        vals = [np.asarray(_as_numpy(v), dtype=float).reshape(-1) for v in vals]
        if any(v.size == 0 for v in vals):
            return np.array([], dtype=float)
        return np.array([v[0] for v in vals], dtype=float)

    def event(self, ievt: int) -> EventStore:
        store = EventStore()
        for node, bmap in self.branches.items():
            if node in (VERTEX, TRUTH_VERTEX):
                vtx = self._vertex(bmap, ievt)
                if vtx is not None:
                    store[node] = vtx
            elif node in _RECORD_FIELDS:
                recs = self._records(node, bmap, ievt)
                if recs is not None:
                    store[node] = recs
        return store

    def __iter__(self):
        for ievt in range(self.n_events):
            yield self.event(ievt)
