"""
Deep Transfer

Bulk export/import of hierarchical records:
- composition-graph resolver producing depth-bounded projection plans
- deep JSON and flat CSV export streams
- streaming JSON-array import with precise partial-failure reporting
"""
