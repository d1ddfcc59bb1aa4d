# src/jettree/driver.py
from dataclasses import replace
from enum import Enum

import numpy as np

from jettree import sources
from jettree.acceptance import particle_charge
from jettree.clustering_algorithms import JetFinder, p4_eta, p4_phi, p4_pt
from jettree.collectors import (
    make_cluster_collector, make_flow_collector, make_particle_collector,
    make_track_collector,
)
from jettree.features import UNSET, EventRecord, build_jet_records
from jettree.pool import ParticlePool, SourceKind
from jettree.qa import OBJECT_FOR_SOURCE, QAAggregator
from jettree.sources import MissingSourceError
from jettree.utils import ListSink, match_reco_to_gen

N_PARTONS = 2


class DriverState(Enum):
    IDLE = "idle"
    COLLECTING_TRUTH = "collecting_truth"
    CLUSTERING_TRUTH = "clustering_truth"
    COLLECTING_DETECTOR = "collecting_detector"
    CLUSTERING_DETECTOR = "clustering_detector"
    COMMITTED = "committed"


class EventDriver:
    """
    Runs the truth view (MC only) and the detector view for one event at a
    time and commits one record per view to its sink.

    A missing source abandons the view it belongs to; the other view is still
    committed. The pool and all per-event arrays are rebuilt for every view,
    so the QA aggregator is the only state carried between events.
    """

    def __init__(self, config, qa=None, truth_sink=None, reco_sink=None,
                 evaluator=None, correction=None, charge_of=particle_charge):
        self.config = config
        self.qa = qa if qa is not None else QAAggregator(config.qa_bins)
        self.truth_sink = truth_sink if truth_sink is not None else ListSink()
        self.reco_sink = reco_sink if reco_sink is not None else ListSink()
        self.debug = bool(config.debug)

        jets = config.jets
        self.finder = JetFinder(jets.algorithm, jets.R, jets.scheme, jets.backend)

        acc = config.acceptance
        par_acc = acc.particles
        if config.charged_jets and not par_acc.charged_only:
            par_acc = replace(par_acc, charged_only=True)
        self.truth_collectors = [make_particle_collector(par_acc, charge_of=charge_of, debug=self.debug)]
        self.reco_collectors = self._detector_collectors(evaluator, correction)

        self.state = DriverState.IDLE
        if self.debug:
            print(f"[driver] {self.finder} | detector sources: "
                  f"{[c.kind.name for c in self.reco_collectors]}")

    def _detector_collectors(self, evaluator, correction):
        acc = self.config.acceptance
        out = []
        for name in self.config.enabled_sources:
            if name == "flow":
                out.append(make_flow_collector(acc.flow, debug=self.debug))
            elif name == "tracks":
                out.append(make_track_collector(acc.tracks, evaluator=evaluator, debug=self.debug))
            elif name == "ecal":
                out.append(make_cluster_collector(SourceKind.ECAL, sources.EMCAL_CLUSTERS, acc.ecal,
                                                  correction=correction, debug=self.debug))
            elif name == "hcal":
                out.append(make_cluster_collector(SourceKind.IHCAL, sources.IHCAL_CLUSTERS, acc.hcal,
                                                  correction=correction, debug=self.debug))
                out.append(make_cluster_collector(SourceKind.OHCAL, sources.OHCAL_CLUSTERS, acc.hcal,
                                                  correction=correction, debug=self.debug))
        return out

    def _enter(self, state):
        if self.debug:
            print(f"[driver] {self.state.value} -> {state.value}")
        self.state = state

    def _truncate(self, view, ievt, err):
        print(f"[driver] event {ievt}: {view} view abandoned ({err})")
        self.qa.views_truncated[view] += 1

    def _fill_num_objects(self, stats):
        per_kind = {}
        for st in stats:
            okind = OBJECT_FOR_SOURCE[st.kind]
            per_kind[okind] = per_kind.get(okind, 0) + st.accepted
        for okind, n in per_kind.items():
            self.qa.fill_num_objects(okind, n)

    # -------------------------
    # Event entry point
    # -------------------------
    def process_event(self, store, ievt=0) -> dict:
        """
        Returns {"truth": EventRecord or None, "reco": EventRecord or None};
        an event rejected by the vertex cut returns both as None.
        """
        out = {"truth": None, "reco": None}
        self.qa.events_seen += 1

        try:
            vertex = store.vertex(sources.VERTEX)
        except MissingSourceError:
            vertex = None
        if vertex is not None and not self.config.acceptance.event.accepts(vertex):
            if self.debug:
                print(f"[driver] event {ievt}: vertex {tuple(np.round(vertex, 3))} outside acceptance")
            return out
        self.qa.events_accepted += 1

        if self.config.is_mc:
            out["truth"] = self._truth_view(store, ievt)
        out["reco"] = self._detector_view(store, ievt, out["truth"])

        self._enter(DriverState.COMMITTED)
        self._enter(DriverState.IDLE)
        return out

    # -------------------------
    # Truth view
    # -------------------------
    def _truth_view(self, store, ievt):
        self._enter(DriverState.COLLECTING_TRUTH)
        pool = ParticlePool()
        try:
            stats = [c.collect(store, pool, self.qa) for c in self.truth_collectors]
        except MissingSourceError as err:
            self._truncate("truth", ievt, err)
            return None
        self._fill_num_objects(stats)

        self._enter(DriverState.CLUSTERING_TRUTH)
        jets = self.finder.find(pool)
        records = build_jet_records(jets, pool, "truth", qa=self.qa)

        try:
            vertex = tuple(store.vertex(sources.TRUTH_VERTEX))
        except MissingSourceError:
            vertex = (UNSET, UNSET, UNSET)

        scalars = {
            "SumPar": float(sum(st.energy_accepted for st in stats)),
            "NumChrgPars": int(sum(st.charged_seen for st in stats)),
        }
        # parton information is not available from the generator record here
        for i in range(1, N_PARTONS + 1):
            scalars[f"PartonID{i}"] = UNSET
            scalars[f"PartonMomX{i}"] = float(UNSET)
            scalars[f"PartonMomY{i}"] = float(UNSET)
            scalars[f"PartonMomZ{i}"] = float(UNSET)

        rec = EventRecord(view="truth", event=ievt, vertex=vertex, scalars=scalars, jets=records)
        self.truth_sink.commit(rec)
        self.qa.views_committed["truth"] += 1
        return rec

    # -------------------------
    # Detector view
    # -------------------------
    def _detector_view(self, store, ievt, truth=None):
        self._enter(DriverState.COLLECTING_DETECTOR)
        pool = ParticlePool()
        try:
            vertex = tuple(store.vertex(sources.VERTEX))
            stats = [c.collect(store, pool, self.qa) for c in self.reco_collectors]
        except MissingSourceError as err:
            self._truncate("reco", ievt, err)
            return None
        self._fill_num_objects(stats)

        self._enter(DriverState.CLUSTERING_DETECTOR)
        jets = self.finder.find(pool)

        match_ids = None
        if self.config.matching.get("enabled", False) and truth is not None and jets:
            jp4 = np.array([j.p4 for j in jets], dtype=float)
            match_ids = match_reco_to_gen(
                p4_pt(jp4), p4_eta(jp4), p4_phi(jp4),
                [j.pt for j in truth.jets], [j.eta for j in truth.jets], [j.phi for j in truth.jets],
                dR=float(self.config.matching.get("dR_match", 0.3)),
                pt_reco_min=float(self.config.matching.get("pt_reco_min", 0.0)),
                pt_gen_min=float(self.config.matching.get("pt_gen_min", 0.0)),
            )
            match_ids = {ir: truth.jets[ig].jet_id for ir, ig in match_ids.items()}

        records = build_jet_records(jets, pool, "reco", qa=self.qa, match_ids=match_ids)

        scalars = {
            "SumECal": float(sum(st.energy_accepted for st in stats if st.kind == SourceKind.ECAL)),
            "SumHCal": float(sum(st.energy_accepted for st in stats
                                 if st.kind in (SourceKind.IHCAL, SourceKind.OHCAL))),
            "NumTrks": int(sum(st.seen for st in stats if st.kind == SourceKind.TRACK)),
        }

        rec = EventRecord(view="reco", event=ievt, vertex=vertex, scalars=scalars, jets=records)
        self.reco_sink.commit(rec)
        self.qa.views_committed["reco"] += 1
        return rec
