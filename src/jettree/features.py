# src/jettree/features.py
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from jettree.clustering_algorithms import p4_eta, p4_p, p4_phi, p4_pt
from jettree.pool import Provenance
from jettree.qa import ObjectKind
from jettree.utils import safe_ratio

NO_MATCH = 99999
UNSET = -9999


@dataclass(frozen=True)
class ConstituentRecord:
    provenance: Provenance
    z: float
    dr: float
    e: float
    jt: float
    eta: float
    phi: float

    @property
    def cst_id(self) -> int:
        return int(self.provenance.source_id)


@dataclass
class JetRecord:
    jet_id: int
    match_id: int
    e: float
    pt: float
    eta: float
    phi: float
    area: float
    constituents: List[ConstituentRecord] = field(default_factory=list)

    @property
    def n_constituents(self) -> int:
        return len(self.constituents)


@dataclass
class EventRecord:
    view: str
    event: int
    vertex: tuple = (UNSET, UNSET, UNSET)
    scalars: dict = field(default_factory=dict)
    jets: List[JetRecord] = field(default_factory=list)

    @property
    def n_jets(self) -> int:
        return len(self.jets)

    def to_columns(self) -> dict:
        """
        Flat same-length sequences: jet columns indexed by jet, constituent
        columns indexed by jet then constituent.
        """
        cols = {
            "Event": int(self.event),
            "NumJets": self.n_jets,
            "VtxX": float(self.vertex[0]),
            "VtxY": float(self.vertex[1]),
            "VtxZ": float(self.vertex[2]),
        }
        for k, v in self.scalars.items():
            cols[k] = v

        cols["JetNCst"] = [j.n_constituents for j in self.jets]
        cols["JetID"] = [j.jet_id for j in self.jets]
        cols["JetMatchID"] = [j.match_id for j in self.jets]
        cols["JetE"] = [j.e for j in self.jets]
        cols["JetPt"] = [j.pt for j in self.jets]
        cols["JetEta"] = [j.eta for j in self.jets]
        cols["JetPhi"] = [j.phi for j in self.jets]
        cols["JetArea"] = [j.area for j in self.jets]

        cols["CstID"] = [[c.cst_id for c in j.constituents] for j in self.jets]
        cols["CstSource"] = [[int(c.provenance.kind) for c in j.constituents] for j in self.jets]
        cols["CstZ"] = [[c.z for c in j.constituents] for j in self.jets]
        cols["CstDr"] = [[c.dr for c in j.constituents] for j in self.jets]
        cols["CstE"] = [[c.e for c in j.constituents] for j in self.jets]
        cols["CstJt"] = [[c.jt for c in j.constituents] for j in self.jets]
        cols["CstEta"] = [[c.eta for c in j.constituents] for j in self.jets]
        cols["CstPhi"] = [[c.phi for c in j.constituents] for j in self.jets]
        return cols


# -------------------------
# Constituent / jet features
# -------------------------
def constituent_features(cst_p4, jet_p4, jet_eta, jet_phi, provenance) -> ConstituentRecord:
    jet_p = float(p4_p(jet_p4))
    cst_p = float(p4_p(cst_p4))
    cst_eta = float(p4_eta(cst_p4))
    cst_phi = float(p4_phi(cst_p4))

    # NOTE: |p_cst|^2 / |p_jet|, not the momentum fraction |p_cst| / |p_jet|
    z = safe_ratio(cst_p * cst_p, jet_p)

    # no azimuthal wraparound
    dphi = cst_phi - jet_phi
    deta = cst_eta - jet_eta
    dr = float(np.sqrt(dphi*dphi + deta*deta))

    return ConstituentRecord(
        provenance=provenance,
        z=z,
        dr=dr,
        e=float(cst_p4[3]),
        jt=float(p4_pt(cst_p4)),
        eta=cst_eta,
        phi=cst_phi,
    )


def build_jet_records(jets, pool, view, qa=None, match_ids: Optional[dict] = None) -> List[JetRecord]:
    """
    Jets in engine output order; ``jet_id`` is the position in that order and
    carries no physical meaning.
    """
    jet_kind = ObjectKind.TJET if view == "truth" else ObjectKind.RJET
    cst_kind = ObjectKind.TCST if view == "truth" else ObjectKind.RCST
    match_ids = match_ids or {}

    records = []
    n_cst_total = 0
    for ijet, jet in enumerate(jets):
        jet_pt = float(p4_pt(jet.p4))
        jet_eta = float(p4_eta(jet.p4))
        jet_phi = float(p4_phi(jet.p4))
        jet_e = float(jet.p4[3])
        jet_area = 0.0

        csts = []
        for index, cst_p4 in zip(jet.constituents, jet.constituent_p4):
            rec = constituent_features(cst_p4, jet.p4, jet_eta, jet_phi, pool.provenance(int(index)))
            csts.append(rec)
            if qa is not None:
                qa.count_seen(cst_kind)
                qa.count_accepted(cst_kind, rec.jt, rec.eta, rec.phi, rec.e)

        records.append(JetRecord(
            jet_id=ijet,
            match_id=int(match_ids.get(ijet, NO_MATCH)),
            e=jet_e,
            pt=jet_pt,
            eta=jet_eta,
            phi=jet_phi,
            area=jet_area,
            constituents=csts,
        ))
        n_cst_total += len(csts)

        if qa is not None:
            qa.count_seen(jet_kind)
            qa.count_accepted(jet_kind, jet_pt, jet_eta, jet_phi, jet_e)
            qa.fill_jet(view, jet_area, len(csts))

    if qa is not None:
        qa.fill_num_objects(jet_kind, len(records))
        qa.fill_num_objects(cst_kind, n_cst_total)
    return records
