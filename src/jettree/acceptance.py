# src/jettree/acceptance.py
from dataclasses import dataclass, field

import numpy as np
from particle import pdgid


# -------------------------
# Closed intervals
# -------------------------
@dataclass(frozen=True)
class Range:
    lo: float
    hi: float

    def contains(self, x) -> bool:
        x = float(x)
        if not np.isfinite(x):
            return False
        return (x >= self.lo) and (x <= self.hi)

    @classmethod
    def from_value(cls, value, default=None):
        if value is None:
            return default
        if isinstance(value, Range):
            return value
        lo, hi = value
        return cls(float(lo), float(hi))


# -------------------------
# Species -> electric charge (units of e)
# -------------------------
def particle_charge(pid) -> float:
    """Charge for a PDG code; invalid or unknown species are treated as neutral."""
    q = pdgid.charge(int(pid))
    if q is None or not np.isfinite(q):
        return 0.0
    return float(q)


# -------------------------
# Per-kind acceptance
# -------------------------
@dataclass(frozen=True)
class KinematicAcceptance:
    pt: Range = Range(0.0, 9999.0)
    eta: Range = Range(-1.1, 1.1)

    def accepts(self, pt, eta) -> bool:
        return self.pt.contains(pt) and self.eta.contains(eta)


@dataclass(frozen=True)
class TrackAcceptance(KinematicAcceptance):
    pt: Range = Range(0.1, 100.0)
    quality: Range = Range(-1.0, 10.0)
    n_mvtx: Range = Range(2.0, 100.0)
    n_intt: Range = Range(1.0, 100.0)
    n_tpc: Range = Range(35.0, 100.0)

    def accepts_track(self, pt, eta, quality, hits) -> bool:
        """hits: (n_mvtx, n_intt, n_tpc) as returned by the track evaluator."""
        if not self.accepts(pt, eta):
            return False
        if not self.quality.contains(quality):
            return False
        n_mvtx, n_intt, n_tpc = hits
        return (self.n_mvtx.contains(n_mvtx)
                and self.n_intt.contains(n_intt)
                and self.n_tpc.contains(n_tpc))


@dataclass(frozen=True)
class ParticleAcceptance(KinematicAcceptance):
    pt: Range = Range(0.1, 9999.0)
    charged_only: bool = False
    exclude_outgoing_partons: bool = True

    def accepts_particle(self, pt, eta, pid, from_outgoing_parton=False, charge_of=particle_charge) -> bool:
        if not self.accepts(pt, eta):
            return False
        if self.exclude_outgoing_partons and bool(from_outgoing_parton):
            return False
        if self.charged_only and charge_of(pid) == 0.0:
            return False
        return True


@dataclass(frozen=True)
class EventAcceptance:
    vz: Range = Range(-10.0, 10.0)
    vxy: Range = Range(-5.0, 5.0)
    enabled: bool = True

    def accepts(self, vertex) -> bool:
        if not self.enabled:
            return True
        vx, vy, vz = vertex
        return self.vxy.contains(vx) and self.vxy.contains(vy) and self.vz.contains(vz)


@dataclass(frozen=True)
class AcceptanceSet:
    tracks: TrackAcceptance = field(default_factory=TrackAcceptance)
    flow: KinematicAcceptance = field(default_factory=KinematicAcceptance)
    ecal: KinematicAcceptance = field(default_factory=KinematicAcceptance)
    hcal: KinematicAcceptance = field(default_factory=KinematicAcceptance)
    particles: ParticleAcceptance = field(default_factory=ParticleAcceptance)
    event: EventAcceptance = field(default_factory=EventAcceptance)
