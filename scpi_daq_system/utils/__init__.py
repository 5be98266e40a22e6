"""Utility helpers for the SCPI DAQ System."""
