"""
Aitas: adaptive task intelligence.

Tasks are ranked for display, enriched in the background (sanctuary
detection, category inference, weighted review) and balanced against a
wellness score with a temporary care mode.
"""
