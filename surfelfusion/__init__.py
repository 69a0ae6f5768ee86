"""Camera models, surfel layout, odometry helpers and deformation-graph optimisation for surfel-based RGB-D mapping."""

__version__ = "0.1.0"