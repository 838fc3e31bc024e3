"""
Core adaptation engine.

This package contains the fetch loop that drives a playback session. The
`FetchLoop` asks the `ThroughputEstimator` for the current rate, lets
`select_track` pick a quality and publishes every fetched segment on a
bounded output queue.
"""
