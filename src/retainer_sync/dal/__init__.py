"""
Data access layer: the Shopify API client, staged file uploads and the record store.
"""
