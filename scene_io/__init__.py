"""raytra — Scene I/O Package.

Scene-file parsing, OBJ mesh loading, and image / metadata output.
"""
