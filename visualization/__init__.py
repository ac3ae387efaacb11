"""raytra — Visualization Package.

Diagnostic matplotlib figures for rendered buffers.
"""
