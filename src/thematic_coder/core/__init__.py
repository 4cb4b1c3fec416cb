"""
Core ingestion and reconciliation layer.

This package contains:
- tabular_parser: strict CSV scanner (headers + row mappings)
- column_roles: heuristic detection of the free-text response column
- row_codec: CSV export with correct escaping
- models: categories, annotation results and the running result set
- taxonomy_store: named codebooks and their category rules
- reconciler: match returned annotations back to uploaded rows
- suggestions: approval workflow for service-proposed categories
- classifier: Gemini client for classification, reports and chat
- report: aggregates and chat history for the report page
- persistence: load-or-default JSON state file
- session: the explicit session object tying it all together
"""
