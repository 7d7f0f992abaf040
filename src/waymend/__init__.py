"""
Waymend: Wayback Mirror Normalizer

A utility for turning a locally mirrored, Wayback-Machine-archived copy of a
documentation site back into a clean offline site: archive markup is stripped,
links are rewritten to relative local paths, dead bundle assets are pruned and
local links are verified.
"""

__version__ = "1.0"
__author__ = "Waymend Project"
__description__ = "Wayback Mirror Normalizer"
