"""Serial SCPI control, settings and a live readout window for the OWON XDM-1041 multimeter."""

__version__ = "1.0.0"

__all__ = ["__version__"]