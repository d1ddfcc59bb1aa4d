"""Shared builders for the jettree tests.

Objects are specified by (pt, eta, phi) and converted to the record types the
collectors consume.
"""

import numpy as np
import pytest

from jettree.clustering_algorithms import RecombScheme
from jettree.config import JetConfig, JetTreeConfig
from jettree.sources import CaloCluster, EventStore, FlowElement, GenParticle, Track

MASS_PION = 0.13957


def make_track(tid, pt, eta, phi, quality=1.0, hits=(3, 2, 40)):
    return Track(
        id=tid,
        px=pt * np.cos(phi), py=pt * np.sin(phi), pz=pt * np.sinh(eta),
        quality=quality, n_mvtx=hits[0], n_intt=hits[1], n_tpc=hits[2],
    )


def make_flow(fid, pt, eta, phi, mass=0.0):
    px, py, pz = pt * np.cos(phi), pt * np.sin(phi), pt * np.sinh(eta)
    e = np.sqrt(px*px + py*py + pz*pz + mass*mass)
    return FlowElement(id=fid, e=e, px=px, py=py, pz=pz)


def make_cluster(cid, e, eta, phi, radius=100.0, vertex=(0.0, 0.0, 0.0)):
    """Cluster whose position, seen from ``vertex``, points along (eta, phi)."""
    vx, vy, vz = vertex
    return CaloCluster(
        id=cid, e=e,
        x=vx + radius * np.cos(phi),
        y=vy + radius * np.sin(phi),
        z=vz + radius * np.sinh(eta),
    )


def make_particle(barcode, pt, eta, phi, pid=211, status=1, mass=MASS_PION, from_outgoing_parton=False):
    px, py, pz = pt * np.cos(phi), pt * np.sin(phi), pt * np.sinh(eta)
    e = np.sqrt(px*px + py*py + pz*pz + mass*mass)
    return GenParticle(
        barcode=barcode, status=status, pid=pid,
        px=px, py=py, pz=pz, e=e,
        from_outgoing_parton=from_outgoing_parton,
    )


@pytest.fixture(name="event_store")
def fixture_event_store():
    """One event with a central vertex, two close tracks and a distant one,
    matching particles, and one cluster per calorimeter."""
    store = EventStore()
    store["vertex"] = np.array([0.0, 0.0, 1.0])
    store["truth_vertex"] = np.array([0.0, 0.0, 1.0])
    store["tracks"] = [
        make_track(11, 10.0, 0.0, 0.0),
        make_track(12, 9.0, 0.0, 0.1),
        make_track(13, 1.0, 0.5, 2.0),
    ]
    store["emcal_clusters"] = [make_cluster(21, 2.0, 0.2, -1.0, vertex=(0.0, 0.0, 1.0))]
    store["ihcal_clusters"] = [make_cluster(31, 1.0, -0.3, 1.0, vertex=(0.0, 0.0, 1.0))]
    store["ohcal_clusters"] = [make_cluster(41, 1.5, 0.4, -2.5, vertex=(0.0, 0.0, 1.0))]
    store["flow"] = [make_flow(51, 3.0, 0.1, 0.5)]
    store["particles"] = [
        make_particle(101, 10.0, 0.0, 0.0),
        make_particle(102, 9.0, 0.0, 0.1, pid=-211),
        make_particle(103, 1.0, 0.5, 2.0, pid=22, mass=0.0),
        make_particle(104, 5.0, 0.0, 1.0, status=2),
    ]
    return store


@pytest.fixture(name="jet_config")
def fixture_jet_config():
    """Native backend, anti-kt R=0.4 E-scheme, tracks and calorimeters enabled."""
    return JetTreeConfig(
        is_mc=True,
        jets=JetConfig(R=0.4, backend="native", scheme=RecombScheme.E),
        sources={"flow": False, "tracks": True, "ecal": True, "hcal": True},
    )
