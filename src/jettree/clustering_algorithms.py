# src/jettree/clustering_algorithms.py
from dataclasses import dataclass
from enum import Enum

import numpy as np

MAX_RAP = 1.0e5


# -------------------------
# Geometry helpers
# -------------------------
def delta_phi(a, b):
    return np.mod(a - b + np.pi, 2*np.pi) - np.pi


# -------------------------
# utility: (px, py, pz, E) kinematics
# -------------------------
def p4_pt(p4):
    p4 = np.asarray(p4, dtype=float)
    return np.hypot(p4[..., 0], p4[..., 1])

def p4_p(p4):
    p4 = np.asarray(p4, dtype=float)
    return np.sqrt(p4[..., 0]**2 + p4[..., 1]**2 + p4[..., 2]**2)

def p4_eta(p4):
    p4 = np.asarray(p4, dtype=float)
    pt = p4_pt(p4)
    return np.arcsinh(p4[..., 2] / np.maximum(pt, 1e-6))

def p4_phi(p4):
    p4 = np.asarray(p4, dtype=float)
    phi = np.arctan2(p4[..., 1], p4[..., 0])
    return np.where(phi <= -np.pi, phi + 2*np.pi, phi)

def p4_rap(p4):
    p4 = np.asarray(p4, dtype=float)
    e = p4[..., 3]
    pz = p4[..., 2]
    num = e + np.abs(pz)
    den = e - np.abs(pz)
    with np.errstate(divide="ignore", invalid="ignore"):
        rap = 0.5 * np.log(num / den)
    rap = np.where((den > 0) & np.isfinite(rap), rap, MAX_RAP + np.abs(pz))
    return np.where(pz >= 0, rap, -rap)

def p4_et(p4):
    p4 = np.asarray(p4, dtype=float)
    pt2 = p4[..., 0]**2 + p4[..., 1]**2
    pz = p4[..., 2]
    with np.errstate(divide="ignore", invalid="ignore"):
        et = p4[..., 3] / np.sqrt(1.0 + pz*pz / pt2)
    return np.where(pt2 > 0, et, 0.0)

def p4_from_pt_rap_phi(pt, rap, phi):
    """Massless four-vector from (pt, y, phi)."""
    return np.array([pt*np.cos(phi), pt*np.sin(phi), pt*np.sinh(rap), pt*np.cosh(rap)], dtype=float)


# -------------------------
# Algorithm / recombination choices
# -------------------------
class JetAlgorithm(Enum):
    ANTIKT = "antikt"
    KT = "kt"
    CAMBRIDGE = "cambridge"

    @property
    def power(self) -> int:
        return {JetAlgorithm.ANTIKT: -1, JetAlgorithm.KT: 1, JetAlgorithm.CAMBRIDGE: 0}[self]


class RecombScheme(Enum):
    E = "E"
    PT = "pt"
    PT2 = "pt2"
    ET = "Et"
    ET2 = "Et2"


# -------------------------
# Engine output
# -------------------------
@dataclass
class ClusteredJet:
    p4: np.ndarray              # (px, py, pz, E)
    constituents: np.ndarray    # pool indices, ascending
    constituent_p4: np.ndarray  # (ncst, 4), as seen by the engine (after scheme preprocessing)

    @property
    def n_constituents(self) -> int:
        return int(len(self.constituents))


# -------------------------
# Scheme preprocessing / recombination (generalized kt)
# -------------------------
def preprocess(p4, scheme):
    p4 = np.array(p4, dtype=float, copy=True)
    if p4.size == 0:
        return p4.reshape(0, 4)
    if scheme in (RecombScheme.PT, RecombScheme.PT2):
        p4[:, 3] = p4_p(p4)
    elif scheme in (RecombScheme.ET, RecombScheme.ET2):
        p = p4_p(p4)
        scale = np.where(p > 0, p4[:, 3] / np.where(p > 0, p, 1.0), 0.0)
        p4[:, 0:3] *= scale[:, None]
    return p4

def _scheme_weight(p4, scheme):
    if scheme == RecombScheme.PT:
        return float(p4_pt(p4))
    if scheme == RecombScheme.PT2:
        return float(p4_pt(p4))**2
    if scheme == RecombScheme.ET:
        return float(p4_et(p4))
    return float(p4_et(p4))**2

def recombine(pa, pb, scheme):
    if scheme == RecombScheme.E:
        return pa + pb

    if scheme in (RecombScheme.PT, RecombScheme.PT2):
        perp_ab = float(p4_pt(pa) + p4_pt(pb))
    else:
        perp_ab = float(p4_et(pa) + p4_et(pb))

    if perp_ab == 0.0:
        return p4_from_pt_rap_phi(0.0, 0.0, 0.0)

    wa = _scheme_weight(pa, scheme)
    wb = _scheme_weight(pb, scheme)
    phia = float(p4_phi(pa))
    phib = float(p4_phi(pb))
    if phib - phia > np.pi:
        phib -= 2*np.pi
    if phib - phia < -np.pi:
        phib += 2*np.pi

    wsum = wa + wb
    rap_ab = (wa*float(p4_rap(pa)) + wb*float(p4_rap(pb))) / wsum
    phi_ab = (wa*phia + wb*phib) / wsum
    return p4_from_pt_rap_phi(perp_ab, rap_ab, phi_ab)


def _kt2_weight(p4, power):
    pt2 = p4[:, 0]**2 + p4[:, 1]**2
    if power == 0:
        return np.ones_like(pt2)
    if power > 0:
        return pt2
    return np.where(pt2 > 1e-300, 1.0 / np.maximum(pt2, 1e-300), 1e300)


# -------------------------
# Algorithm 1: native sequential recombination (numpy)
# -------------------------
def cluster_native(p4, algorithm=JetAlgorithm.ANTIKT, R=0.4, scheme=RecombScheme.E):
    """
    Inclusive generalized-kt clustering.
      d_ij = min(kt_i^2p, kt_j^2p) * dR_ij^2 / R^2 (dR in rapidity-azimuth)
      d_iB = kt_i^2p
    The pair with the smallest d_ij is merged when it is strictly below the
    smallest d_iB; otherwise that entity is declared a final jet.
    """
    R = float(R)
    if R <= 0.0:
        raise ValueError(f"Jet radius must be positive, got {R}")

    inputs = preprocess(np.asarray(p4, dtype=float).reshape(-1, 4), scheme)
    N = len(inputs)
    if N == 0:
        return []

    power = algorithm.power
    R2 = R * R

    mom = inputs.copy()
    members = [[i] for i in range(N)]
    active = np.ones(N, dtype=bool)

    rap = p4_rap(mom)
    phi = p4_phi(mom)
    kt2 = _kt2_weight(mom, power)

    deta = rap[:, None] - rap[None, :]
    dphi = delta_phi(phi[:, None], phi[None, :])
    dr2 = deta*deta + dphi*dphi
    dij = np.minimum(kt2[:, None], kt2[None, :]) * dr2 / R2
    np.fill_diagonal(dij, np.inf)

    jets = []
    while np.any(active):
        diB = np.where(active, kt2, np.inf)
        ib = int(np.argmin(diB))

        flat = int(np.argmin(dij))
        i, j = divmod(flat, N)
        dmin = dij[i, j]

        if dmin < diB[ib]:
            i, j = min(i, j), max(i, j)
            mom[i] = recombine(mom[i], mom[j], scheme)
            members[i].extend(members[j])
            members[j] = []
            active[j] = False
            dij[j, :] = np.inf
            dij[:, j] = np.inf

            rap[i] = p4_rap(mom[i])
            phi[i] = p4_phi(mom[i])
            kt2[i] = _kt2_weight(mom[i:i + 1], power)[0]

            others = np.where(active)[0]
            others = others[others != i]
            if others.size:
                de = rap[others] - rap[i]
                dp = delta_phi(phi[others], phi[i])
                d = np.minimum(kt2[others], kt2[i]) * (de*de + dp*dp) / R2
                dij[i, others] = d
                dij[others, i] = d
            continue

        idx = np.sort(np.asarray(members[ib], dtype=int))
        jets.append(ClusteredJet(p4=mom[ib].copy(), constituents=idx, constituent_p4=inputs[idx].copy()))
        active[ib] = False
        dij[ib, :] = np.inf
        dij[:, ib] = np.inf

    return jets


# -------------------------
# Algorithm 2: sequential recombination via FastJet
# -------------------------
def cluster_fastjet(p4, algorithm=JetAlgorithm.ANTIKT, R=0.4, scheme=RecombScheme.E):
    import fastjet

    R = float(R)
    if R <= 0.0:
        raise ValueError(f"Jet radius must be positive, got {R}")

    p4 = np.asarray(p4, dtype=float).reshape(-1, 4)
    if len(p4) == 0:
        return []

    algo_map = {
        JetAlgorithm.ANTIKT: fastjet.antikt_algorithm,
        JetAlgorithm.KT: fastjet.kt_algorithm,
        JetAlgorithm.CAMBRIDGE: fastjet.cambridge_algorithm,
    }
    scheme_map = {
        RecombScheme.E: fastjet.E_scheme,
        RecombScheme.PT: fastjet.pt_scheme,
        RecombScheme.PT2: fastjet.pt2_scheme,
        RecombScheme.ET: fastjet.Et_scheme,
        RecombScheme.ET2: fastjet.Et2_scheme,
    }

    constituents = [
        fastjet.PseudoJet(float(x), float(y), float(z), float(e))
        for (x, y, z, e) in p4
    ]
    for i, c in enumerate(constituents):
        c.set_user_index(i)

    jetdef = fastjet.JetDefinition(algo_map[algorithm], R, scheme_map[scheme])
    cluster = fastjet.ClusterSequence(constituents, jetdef)

    jets = []
    for jet in cluster.inclusive_jets():
        csts = sorted(jet.constituents(), key=lambda c: int(c.user_index()))
        idx = np.array([int(c.user_index()) for c in csts], dtype=int)
        cst_p4 = np.array([[c.px(), c.py(), c.pz(), c.E()] for c in csts], dtype=float).reshape(-1, 4)
        jets.append(ClusteredJet(
            p4=np.array([jet.px(), jet.py(), jet.pz(), jet.E()], dtype=float),
            constituents=idx,
            constituent_p4=cst_p4,
        ))
    return jets


ALGO_REGISTRY = {
    "native": cluster_native,
    "fastjet": cluster_fastjet,
}


# -------------------------
# Jet finder (configured engine)
# -------------------------
class JetFinder:
    def __init__(self, algorithm=JetAlgorithm.ANTIKT, R=0.4, scheme=RecombScheme.E, backend="fastjet"):
        if float(R) <= 0.0:
            raise ValueError(f"Jet radius must be positive, got {R}")
        if backend not in ALGO_REGISTRY:
            raise ValueError(f"Unknown clustering backend '{backend}' (known: {sorted(ALGO_REGISTRY)})")
        self.algorithm = algorithm
        self.R = float(R)
        self.scheme = scheme
        self.backend = backend
        self._fn = ALGO_REGISTRY[backend]

    def find(self, pool):
        """Cluster the pool's four-vectors; returns jets in engine output order."""
        if len(pool) == 0:
            return []
        return self._fn(pool.p4, algorithm=self.algorithm, R=self.R, scheme=self.scheme)

    def __repr__(self):
        return f"JetFinder({self.algorithm.value}, R={self.R}, {self.scheme.value}-scheme, backend={self.backend})"
