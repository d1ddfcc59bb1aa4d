# src/jettree/config.py
import os
import importlib.util
from dataclasses import dataclass, field

from jettree.acceptance import (
    AcceptanceSet, EventAcceptance, KinematicAcceptance, ParticleAcceptance,
    Range, TrackAcceptance,
)
from jettree.clustering_algorithms import ALGO_REGISTRY, JetAlgorithm, RecombScheme

SOURCE_NAMES = ("flow", "tracks", "ecal", "hcal")

_ALGO_ALIASES = {
    "antikt": JetAlgorithm.ANTIKT, "anti-kt": JetAlgorithm.ANTIKT, "anti_kt": JetAlgorithm.ANTIKT,
    "kt": JetAlgorithm.KT,
    "cambridge": JetAlgorithm.CAMBRIDGE, "ca": JetAlgorithm.CAMBRIDGE, "cambridge/aachen": JetAlgorithm.CAMBRIDGE,
}

_SCHEME_ALIASES = {
    "e": RecombScheme.E, "e_scheme": RecombScheme.E,
    "pt": RecombScheme.PT, "pt_scheme": RecombScheme.PT,
    "pt2": RecombScheme.PT2, "pt2_scheme": RecombScheme.PT2,
    "et": RecombScheme.ET, "et_scheme": RecombScheme.ET,
    "et2": RecombScheme.ET2, "et2_scheme": RecombScheme.ET2,
}


# -------------------------
# Config loading
# -------------------------
def load_cfg_from_path(cfg_path: str):
    cfg_path = os.path.abspath(cfg_path)
    if not os.path.exists(cfg_path):
        raise FileNotFoundError(f"Config not found: {cfg_path}")
    spec = importlib.util.spec_from_file_location("user_cfg", cfg_path)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Could not load config: {cfg_path}")
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


def config_tag_from_path(cfg_path: str) -> str:
    base = os.path.basename(cfg_path)
    if base.endswith(".py"):
        base = base[:-3]
    return base


# -------------------------
# Enum parsing (unknown values fall back to a default, with a diagnostic)
# -------------------------
def parse_algorithm(value) -> JetAlgorithm:
    if isinstance(value, JetAlgorithm):
        return value
    algo = _ALGO_ALIASES.get(str(value).strip().lower())
    if algo is None:
        print(f"[config] unrecognized jet algorithm '{value}', using anti-kt")
        return JetAlgorithm.ANTIKT
    return algo


def parse_scheme(value) -> RecombScheme:
    if isinstance(value, RecombScheme):
        return value
    scheme = _SCHEME_ALIASES.get(str(value).strip().lower())
    if scheme is None:
        print(f"[config] unrecognized recombination scheme '{value}', using E-scheme")
        return RecombScheme.E
    return scheme


def parse_jet_type(value) -> str:
    value = str(value).strip().lower()
    if value in ("charged", "chrg", "1"):
        return "charged"
    if value not in ("all", "full", "0"):
        print(f"[config] unrecognized jet type '{value}', using 'all'")
    return "all"


def parse_backend(value) -> str:
    value = str(value).strip().lower()
    if value not in ALGO_REGISTRY:
        print(f"[config] unrecognized clustering backend '{value}', using 'fastjet'")
        return "fastjet"
    return value


# -------------------------
# Typed configuration
# -------------------------
@dataclass
class JetConfig:
    R: float = 0.4
    jet_type: str = "all"
    algorithm: JetAlgorithm = JetAlgorithm.ANTIKT
    scheme: RecombScheme = RecombScheme.PT
    backend: str = "fastjet"


@dataclass
class JetTreeConfig:
    is_mc: bool = True
    debug: bool = False
    jets: JetConfig = field(default_factory=JetConfig)
    sources: dict = field(default_factory=lambda: {"flow": False, "tracks": True, "ecal": False, "hcal": False})
    source_order: tuple = SOURCE_NAMES
    acceptance: AcceptanceSet = field(default_factory=AcceptanceSet)
    matching: dict = field(default_factory=lambda: {"enabled": False, "dR_match": 0.3})
    qa_bins: dict = field(default_factory=dict)
    output: dict = field(default_factory=dict)

    @property
    def charged_jets(self) -> bool:
        return self.jets.jet_type == "charged"

    @property
    def enabled_sources(self):
        return [s for s in self.source_order if self.sources.get(s, False)]

    @classmethod
    def from_module(cls, cfg):
        jets_cfg = dict(getattr(cfg, "JETS", {}))
        jets = JetConfig(
            R=float(jets_cfg.get("R", 0.4)),
            jet_type=parse_jet_type(jets_cfg.get("type", "all")),
            algorithm=parse_algorithm(jets_cfg.get("algorithm", "antikt")),
            scheme=parse_scheme(jets_cfg.get("recomb", "pt")),
            backend=parse_backend(jets_cfg.get("backend", "fastjet")),
        )
        if not jets.R > 0.0:
            print(f"[config] jet radius must be positive, got {jets.R}; using R=0.4")
            jets.R = 0.4

        src_cfg = dict(getattr(cfg, "SOURCES", {}))
        order = tuple(src_cfg.get("order", SOURCE_NAMES))
        unknown = [s for s in order if s not in SOURCE_NAMES]
        if unknown:
            print(f"[config] ignoring unknown sources in SOURCES['order']: {unknown}")
            order = tuple(s for s in order if s in SOURCE_NAMES)
        sources = {s: bool(src_cfg.get(s, s == "tracks")) for s in SOURCE_NAMES}

        out = cls(
            is_mc=bool(getattr(cfg, "IS_MC", True)),
            debug=bool(getattr(cfg, "DEBUG", False)),
            jets=jets,
            sources=sources,
            source_order=order,
            acceptance=acceptance_from_dict(getattr(cfg, "ACCEPTANCE", {}), getattr(cfg, "PARTICLES", {}),
                                            getattr(cfg, "EVENT", {})),
            matching={"enabled": False, "dR_match": 0.3, **dict(getattr(cfg, "MATCHING", {}))},
            qa_bins=dict(getattr(cfg, "QA", {}).get("bins", {})),
            output=dict(getattr(cfg, "OUTPUT", {})),
        )

        if out.charged_jets:
            neutral = [s for s in ("flow", "ecal", "hcal") if out.sources[s]]
            if neutral:
                print(f"[config] warning: adding {neutral} to charged jets")
        return out


def _kin(d, default):
    return KinematicAcceptance(
        pt=Range.from_value(d.get("pt"), default.pt),
        eta=Range.from_value(d.get("eta"), default.eta),
    )


def acceptance_from_dict(acc, particles=None, event=None) -> AcceptanceSet:
    acc = dict(acc or {})
    particles = dict(particles or {})
    event = dict(event or {})

    trk = dict(acc.get("tracks", {}))
    tdef = TrackAcceptance()
    tracks = TrackAcceptance(
        pt=Range.from_value(trk.get("pt"), tdef.pt),
        eta=Range.from_value(trk.get("eta"), tdef.eta),
        quality=Range.from_value(trk.get("quality"), tdef.quality),
        n_mvtx=Range.from_value(trk.get("n_mvtx"), tdef.n_mvtx),
        n_intt=Range.from_value(trk.get("n_intt"), tdef.n_intt),
        n_tpc=Range.from_value(trk.get("n_tpc"), tdef.n_tpc),
    )

    par = dict(acc.get("particles", {}))
    pdef = ParticleAcceptance()
    parts = ParticleAcceptance(
        pt=Range.from_value(par.get("pt"), pdef.pt),
        eta=Range.from_value(par.get("eta"), pdef.eta),
        charged_only=bool(particles.get("charged_only", pdef.charged_only)),
        exclude_outgoing_partons=bool(particles.get("exclude_outgoing_partons", pdef.exclude_outgoing_partons)),
    )

    edef = EventAcceptance()
    evt = EventAcceptance(
        vz=Range.from_value(event.get("vz"), edef.vz),
        vxy=Range.from_value(event.get("vxy"), edef.vxy),
        enabled=bool(event.get("enabled", edef.enabled)),
    )

    kdef = KinematicAcceptance()
    return AcceptanceSet(
        tracks=tracks,
        flow=_kin(dict(acc.get("flow", {})), kdef),
        ecal=_kin(dict(acc.get("ecal", {})), kdef),
        hcal=_kin(dict(acc.get("hcal", {})), kdef),
        particles=parts,
        event=evt,
    )
