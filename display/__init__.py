"""
Display/publish collaborators: overlays and result sinks.

The recognizer core never draws; these are attached as sinks.
"""
