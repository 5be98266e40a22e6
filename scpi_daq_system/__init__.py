"""
SCPI Instrument Data Acquisition System.

Speaks the line-based SCPI command set to measurement instruments over raw
TCP and samples them continuously on behalf of running experiments.
Subpackages are imported explicitly by callers; nothing heavy happens at
package import time.
"""

__version__ = "1.0.0"
