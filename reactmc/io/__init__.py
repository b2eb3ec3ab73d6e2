"""I/O module: HDF5 event output."""

from reactmc.io.hdf5 import read_events, write_events

__all__ = ["write_events", "read_events"]
