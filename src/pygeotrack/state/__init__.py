"""State layer.

Tracker states, observer events, and the reconciliation store that merges
incoming readings into one current-location record per device.
"""
