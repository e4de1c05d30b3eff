"""Test package for NeuroKinetic.

Core engines are driven with a fake clock; the UI smoke tests run
headlessly using pygame's dummy video driver. Run ``pytest`` from the
project root.
"""
