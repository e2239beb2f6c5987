"""
Place Registry Module.

Static mapping from caller-facing context keys to upstream place ids.
"""
