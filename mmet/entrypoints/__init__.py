"""
Command-line entrypoints (mmet-score, mmet-calibrate).
"""
