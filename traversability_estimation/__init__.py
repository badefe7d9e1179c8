"""Traversability Estimation - How safely can a robot cross this terrain?

Turns elevation grid maps into traversability maps and answers safety queries:
- Filter chain of terrain filters (slope, step, roughness, robot slope)
- Conservative combination of the filter layers into one traversability layer
- Footprint queries (mean traversability inside a polygon)
- Inclination checks of straight-line motions
- Footprint path checks for sequences of robot poses

Modules:
    core: Grid map, filters, filter chain, queries and the estimation engine
    model: Data records (parameters, poses, query results, snapshots)

Example:
    from traversability_estimation.core import GridMap, TraversabilityEstimation
    from traversability_estimation.model import Pose2D
"""
