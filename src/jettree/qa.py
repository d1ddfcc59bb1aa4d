# src/jettree/qa.py
import os
from dataclasses import dataclass
from enum import IntEnum

import numpy as np

from jettree.pool import SourceKind
from jettree.utils import ensure_dir


class ObjectKind(IntEnum):
    TRACK = 0
    ECLUST = 1
    HCLUST = 2
    FLOW = 3
    PART = 4
    TJET = 5
    RJET = 6
    TCST = 7
    RCST = 8


OBJECT_FOR_SOURCE = {
    SourceKind.TRACK: ObjectKind.TRACK,
    SourceKind.FLOW: ObjectKind.FLOW,
    SourceKind.ECAL: ObjectKind.ECLUST,
    SourceKind.IHCAL: ObjectKind.HCLUST,
    SourceKind.OHCAL: ObjectKind.HCLUST,
    SourceKind.PARTICLE: ObjectKind.PART,
}

INFO = ("pt", "eta", "phi", "ene")

DEFAULT_BINS = {
    "pt": np.linspace(0.0, 100.0, 201),
    "eta": np.linspace(-5.0, 5.0, 201),
    "phi": np.linspace(-np.pi, np.pi, 361),
    "ene": np.linspace(0.0, 100.0, 201),
    "num": np.arange(0.0, 501.0, 1.0),
    "sum_ene": np.linspace(0.0, 500.0, 501),
    "area": np.linspace(0.0, 2.0, 201),
    "ncst": np.arange(0.0, 101.0, 1.0),
}


# -------------------------
# Fixed-binning histogram with under/overflow
# -------------------------
class Hist1D:
    def __init__(self, edges):
        self.edges = np.asarray(edges, dtype=float)
        self.counts = np.zeros(len(self.edges) - 1, dtype=float)
        self.underflow = 0.0
        self.overflow = 0.0
        self.entries = 0

    def fill(self, values):
        values = np.atleast_1d(np.asarray(values, dtype=float))
        values = values[np.isfinite(values)]
        if values.size == 0:
            return
        self.entries += int(values.size)
        self.underflow += float(np.sum(values < self.edges[0]))
        self.overflow += float(np.sum(values > self.edges[-1]))
        self.counts += np.histogram(values, bins=self.edges)[0]

    @property
    def total(self) -> float:
        return float(np.sum(self.counts) + self.underflow + self.overflow)


@dataclass
class ObjectCounters:
    seen: int = 0
    accepted: int = 0
    energy_sum: float = 0.0


# -------------------------
# QA aggregator
# -------------------------
class QAAggregator:
    """
    Run-wide QA state. Owned by the caller, handed to every event's pipeline
    and finalized once at the end of the run. Single-threaded; if events are
    ever processed in parallel this object needs per-worker copies merged at
    the end (see ``merge``).
    """

    def __init__(self, bins=None):
        self.bins = dict(DEFAULT_BINS)
        if bins:
            self.bins.update({k: np.asarray(v, dtype=float) for k, v in bins.items()})

        self.counters = {kind: ObjectCounters() for kind in ObjectKind}
        self.object_qa = {
            kind: {info: Hist1D(self.bins[info]) for info in INFO}
            for kind in ObjectKind
        }
        self.num_object = {kind: Hist1D(self.bins["num"]) for kind in ObjectKind}
        self.num_seen = {kind: Hist1D(self.bins["num"]) for kind in SourceKind}
        self.num_accepted = {kind: Hist1D(self.bins["num"]) for kind in SourceKind}
        self.sum_cst_ene = {kind: Hist1D(self.bins["sum_ene"]) for kind in SourceKind}
        self.jet_area = {view: Hist1D(self.bins["area"]) for view in ("truth", "reco")}
        self.jet_ncst = {view: Hist1D(self.bins["ncst"]) for view in ("truth", "reco")}

        self.events_seen = 0
        self.events_accepted = 0
        self.views_committed = {"truth": 0, "reco": 0}
        self.views_truncated = {"truth": 0, "reco": 0}
        self.finalized = False

    # ---- per object
    def count_seen(self, kind: ObjectKind, n=1):
        self.counters[kind].seen += int(n)

    def count_accepted(self, kind: ObjectKind, pt, eta, phi, e):
        c = self.counters[kind]
        c.accepted += 1
        c.energy_sum += float(e)
        self.fill(kind, pt, eta, phi, e)

    def fill(self, kind: ObjectKind, pt, eta, phi, e):
        h = self.object_qa[kind]
        h["pt"].fill(pt)
        h["eta"].fill(eta)
        h["phi"].fill(phi)
        h["ene"].fill(e)

    # ---- per event
    def fill_collection(self, source: SourceKind, n_seen, n_accepted, e_sum):
        self.num_seen[source].fill(n_seen)
        self.num_accepted[source].fill(n_accepted)
        self.sum_cst_ene[source].fill(e_sum)

    def fill_num_objects(self, kind: ObjectKind, n):
        self.num_object[kind].fill(n)

    def fill_jet(self, view, area, ncst):
        self.jet_area[view].fill(area)
        self.jet_ncst[view].fill(ncst)

    # ---- run end
    def merge(self, other):
        for kind in ObjectKind:
            a, b = self.counters[kind], other.counters[kind]
            a.seen += b.seen
            a.accepted += b.accepted
            a.energy_sum += b.energy_sum
        for mine, theirs in self._hist_pairs(other):
            mine.counts += theirs.counts
            mine.underflow += theirs.underflow
            mine.overflow += theirs.overflow
            mine.entries += theirs.entries
        self.events_seen += other.events_seen
        self.events_accepted += other.events_accepted
        for view in self.views_committed:
            self.views_committed[view] += other.views_committed[view]
            self.views_truncated[view] += other.views_truncated[view]

    def _hist_pairs(self, other):
        for kind in ObjectKind:
            for info in INFO:
                yield self.object_qa[kind][info], other.object_qa[kind][info]
            yield self.num_object[kind], other.num_object[kind]
        for kind in SourceKind:
            yield self.num_seen[kind], other.num_seen[kind]
            yield self.num_accepted[kind], other.num_accepted[kind]
            yield self.sum_cst_ene[kind], other.sum_cst_ene[kind]
        for view in ("truth", "reco"):
            yield self.jet_area[view], other.jet_area[view]
            yield self.jet_ncst[view], other.jet_ncst[view]

    def histograms(self):
        out = {}
        for kind in ObjectKind:
            for info in INFO:
                out[f"hObjectQA__{kind.name}__{info}"] = self.object_qa[kind][info]
            out[f"hNumObject__{kind.name}"] = self.num_object[kind]
        for kind in SourceKind:
            out[f"hNumCstSeen__{kind.name}"] = self.num_seen[kind]
            out[f"hNumCstAccept__{kind.name}"] = self.num_accepted[kind]
            out[f"hSumCstEne__{kind.name}"] = self.sum_cst_ene[kind]
        for view in ("truth", "reco"):
            out[f"hJetArea__{view}"] = self.jet_area[view]
            out[f"hJetNumCst__{view}"] = self.jet_ncst[view]
        return out

    def summary(self) -> dict:
        return {
            "events_seen": self.events_seen,
            "events_accepted": self.events_accepted,
            "views_committed": dict(self.views_committed),
            "views_truncated": dict(self.views_truncated),
            "objects": {
                kind.name: {"seen": c.seen, "accepted": c.accepted, "energy_sum": c.energy_sum}
                for kind, c in self.counters.items()
            },
        }

    def report(self) -> str:
        lines = [
            f"events: seen={self.events_seen} accepted={self.events_accepted}",
            "views: " + ", ".join(
                f"{v} committed={self.views_committed[v]} truncated={self.views_truncated[v]}"
                for v in ("truth", "reco")
            ),
        ]
        for kind, c in self.counters.items():
            if c.seen == 0:
                continue
            frac = 100.0 * c.accepted / c.seen
            lines.append(f"  {kind.name:<7s} seen={c.seen:<9d} accepted={c.accepted:<9d} "
                         f"({frac:5.1f}%)  sumE={c.energy_sum:.2f}")
        return "\n".join(lines)

    def finalize(self, outdir=None, fname="qa_histograms.npz"):
        """Freeze the aggregates and optionally write them to ``outdir``."""
        self.finalized = True
        summary = self.summary()
        if outdir is None:
            return summary

        ensure_dir(outdir)
        arrays = {}
        for name, h in self.histograms().items():
            arrays[f"{name}__edges"] = h.edges
            arrays[f"{name}__counts"] = h.counts
            arrays[f"{name}__flow"] = np.array([h.underflow, h.overflow], dtype=float)
        kinds = list(ObjectKind)
        arrays["counter_kind"] = np.array([k.name for k in kinds])
        arrays["counter_seen"] = np.array([self.counters[k].seen for k in kinds], dtype=np.int64)
        arrays["counter_accepted"] = np.array([self.counters[k].accepted for k in kinds], dtype=np.int64)
        arrays["counter_energy_sum"] = np.array([self.counters[k].energy_sum for k in kinds], dtype=float)
        arrays["events"] = np.array([self.events_seen, self.events_accepted], dtype=np.int64)
        np.savez_compressed(os.path.join(outdir, fname), **arrays)
        return summary
