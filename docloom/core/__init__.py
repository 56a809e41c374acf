# Subpackages are imported explicitly, e.g.
# `from docloom.core.ast_parser import analyze_source`
# or `from docloom.core.placement import PlacementEngine`.
