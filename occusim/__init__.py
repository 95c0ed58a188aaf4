"""
occusim: simulate spatially and temporally structured occupancy data and fit
Bayesian hierarchical occupancy models to it.

- config:   scenario presets and sampler settings
- grid:     square grid over the study domain
- fields:   Matérn (SPDE) random fields, projection, AR(1) in time
- simulate: occupancy states and detection counts
- io:       CSV / GeoTIFF persistence and loading for model fitting
- models:   PyMC occupancy models (spatial, spatio-temporal, SVC)
- summary:  posterior summaries
- plotting: maps and diagnostics
"""

__version__ = "1.0.0"
