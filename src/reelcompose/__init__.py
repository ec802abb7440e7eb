"""reelcompose — two-clip timeline compositing.

Map timeline time onto two trimmed clips joined by a transition, run each
clip through pan/zoom, chroma key and color filters, layer animated and
masked text/image overlays on top, and export the result frame by frame.
Projects are declared in YAML; see project.py for the schema.
"""
