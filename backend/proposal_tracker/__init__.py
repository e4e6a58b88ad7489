"""Proposal approval workflow tracker (BDM -> estimation -> pricing -> director -> client)."""

__version__ = "1.0.0"
