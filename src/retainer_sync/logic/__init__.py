"""
Business Logic Layer Module.

Validation rules, the versioned metafield mapping tables, error translation and
the per-endpoint workflows that coordinate the data access layer.
"""
