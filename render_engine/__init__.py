"""raytra — Render Engine Package.

Bounding boxes, surfaces, median-split BVH, Phong / dielectric materials,
lights, camera and the recursive ray tracer.
"""
