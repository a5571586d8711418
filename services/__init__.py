"""
Upstream service clients.

- feature_service_client: ArcGIS REST feature service transport
"""
