# src/jettree/collectors.py
from dataclasses import dataclass

import numpy as np

from jettree import sources
from jettree.acceptance import particle_charge
from jettree.clustering_algorithms import p4_eta, p4_phi, p4_pt
from jettree.pool import CandidateParticle, SourceKind
from jettree.qa import OBJECT_FOR_SOURCE

MASS_PION = 0.13957


@dataclass
class CollectionStats:
    kind: SourceKind
    seen: int = 0
    accepted: int = 0
    energy_seen: float = 0.0
    energy_accepted: float = 0.0
    charged_seen: int = 0


# -------------------------
# Four-momentum builders (px, py, pz, E)
# -------------------------
def track_p4(track, mass=MASS_PION):
    px, py, pz = float(track.px), float(track.py), float(track.pz)
    e = np.sqrt(px*px + py*py + pz*pz + mass*mass)
    return np.array([px, py, pz, e], dtype=float)

def flow_p4(flow):
    return np.array([flow.px, flow.py, flow.pz, flow.e], dtype=float)

def cluster_p4(evec):
    """
    Massless deposit from a vertex-corrected 3-vector: E = |v|, transverse
    components from |v_T| and azimuth, pz taken as the non-negative root of
    E^2 = px^2 + py^2 + pz^2.
    """
    evec = np.asarray(evec, dtype=float)
    e = float(np.sqrt(np.sum(evec*evec)))
    pt = float(np.hypot(evec[0], evec[1]))
    phi = float(np.arctan2(evec[1], evec[0]))
    px = pt * np.cos(phi)
    py = pt * np.sin(phi)
    pz = np.sqrt(max(e*e - px*px - py*py, 0.0))
    return np.array([px, py, pz, e], dtype=float)

def particle_p4(par):
    return np.array([par.px, par.py, par.pz, par.e], dtype=float)


# -------------------------
# Generic collector
# -------------------------
class SourceCollector:
    """
    One collector per source kind, parameterized by capabilities:
      prepare(event)          -> per-event context (e.g. the primary vertex)
      is_candidate(raw)       -> object considered at all (e.g. final state)
      four_momentum(raw, ctx) -> (px, py, pz, E)
      is_accepted(raw, p4)    -> acceptance decision
      source_id(raw)          -> provenance id
    """

    def __init__(self, kind, node, four_momentum, is_accepted, source_id,
                 prepare=None, is_candidate=None, is_charged=None, debug=False):
        self.kind = SourceKind(kind)
        self.node = node
        self.four_momentum = four_momentum
        self.is_accepted = is_accepted
        self.source_id = source_id
        self.prepare = prepare
        self.is_candidate = is_candidate
        self.is_charged = is_charged
        self.debug = debug

    def fetch(self, event):
        return event.require(self.node)

    def collect(self, event, pool, qa=None) -> CollectionStats:
        """
        Append accepted objects to ``pool``. Raises MissingSourceError when the
        node (or its per-event context) is absent; nothing is appended then.
        """
        objects = self.fetch(event)
        ctx = self.prepare(event) if self.prepare is not None else None

        qa_kind = OBJECT_FOR_SOURCE[self.kind]
        stats = CollectionStats(kind=self.kind)

        for raw in objects:
            if raw is not None and self.is_candidate is not None and not self.is_candidate(raw):
                continue

            stats.seen += 1
            if qa is not None:
                qa.count_seen(qa_kind)
            if raw is None:
                continue

            if self.is_charged is not None and self.is_charged(raw):
                stats.charged_seen += 1

            p4 = self.four_momentum(raw, ctx)
            if p4 is None or not np.all(np.isfinite(p4)):
                continue
            stats.energy_seen += float(p4[3])

            if not self.is_accepted(raw, p4):
                continue

            pool.append(CandidateParticle(p4[0], p4[1], p4[2], p4[3], self.kind, int(self.source_id(raw))))
            stats.accepted += 1
            stats.energy_accepted += float(p4[3])
            if qa is not None:
                qa.count_accepted(qa_kind, p4_pt(p4), p4_eta(p4), p4_phi(p4), p4[3])

        if qa is not None:
            qa.fill_collection(self.kind, stats.seen, stats.accepted, stats.energy_accepted)
        if self.debug:
            print(f"[collect] {self.kind.name}: seen={stats.seen} accepted={stats.accepted} "
                  f"E_acc={stats.energy_accepted:.3f} pool={len(pool)}")
        return stats


# -------------------------
# Per-kind instances
# -------------------------
def make_track_collector(acc, evaluator=None, debug=False):
    evaluator = evaluator or sources.TrackEvaluator()

    def accept(trk, p4):
        return acc.accepts_track(p4_pt(p4), p4_eta(p4), evaluator.quality(trk), evaluator.hit_counts(trk))

    return SourceCollector(
        SourceKind.TRACK, sources.TRACKS,
        four_momentum=lambda trk, _ctx: track_p4(trk),
        is_accepted=accept,
        source_id=lambda trk: trk.id,
        debug=debug,
    )


def make_flow_collector(acc, debug=False):
    return SourceCollector(
        SourceKind.FLOW, sources.FLOW,
        four_momentum=lambda pf, _ctx: flow_p4(pf),
        is_accepted=lambda pf, p4: acc.accepts(p4_pt(p4), p4_eta(p4)),
        source_id=lambda pf: pf.id,
        debug=debug,
    )


def make_cluster_collector(kind, node, acc, correction=None, debug=False):
    correction = correction or sources.correct_cluster

    return SourceCollector(
        kind, node,
        prepare=lambda event: event.vertex(sources.VERTEX),
        four_momentum=lambda clus, vtx: cluster_p4(correction(clus, vtx)),
        is_accepted=lambda clus, p4: acc.accepts(p4_pt(p4), p4_eta(p4)),
        source_id=lambda clus: clus.id,
        debug=debug,
    )


def make_particle_collector(acc, charge_of=particle_charge, debug=False):
    def accept(par, p4):
        return acc.accepts_particle(
            p4_pt(p4), p4_eta(p4), par.pid,
            from_outgoing_parton=getattr(par, "from_outgoing_parton", False),
            charge_of=charge_of,
        )

    return SourceCollector(
        SourceKind.PARTICLE, sources.PARTICLES,
        is_candidate=lambda par: int(par.status) == 1,
        is_charged=lambda par: charge_of(par.pid) != 0.0,
        four_momentum=lambda par, _ctx: particle_p4(par),
        is_accepted=accept,
        source_id=lambda par: par.barcode,
        debug=debug,
    )
