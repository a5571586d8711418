# ============================================================================
# MODULE CONTEXT - BUILT-IN LAYER CATALOG
# ============================================================================
# STATUS: Configuration data - layers available without a catalog file
# PURPOSE: LayerConfig definitions for public ArcGIS feature services
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: BUILTIN_LAYERS
# ============================================================================

"""
Built-in layer catalog.

Each entry is the full description of one adapter: where the service lives,
its geometry family, the radius cap, and the alias table that normalizes
its attribute names. Additional layers are loaded from the JSON file named
by LAYER_CATALOG_PATH (see registry.py).
"""

from typing import Any, Dict, List

BUILTIN_LAYERS: List[Dict[str, Any]] = [
    {
        "key": "ca-state-parks",
        "title": "California State Parks Boundaries",
        "service_url": "https://services2.arcgis.com/AhxrK3F6WM8ECvDi/arcgis/rest/services/ParkBoundaries/FeatureServer",
        "layer_id": 0,
        "geometry_kind": "polygon",
        "radius_cap_miles": 25.0,
        "id_fields": ["FID", "fid", "OBJECTID", "objectid", "GlobalID"],
        "field_aliases": {
            "unit_name": ["UNITNAME", "unitName", "UnitName"],
            "gis_id": ["GISID", "gisId", "GisId"],
            "sub_type": ["SUBTYPE", "subType", "SubType"],
            "unit_number": ["UNITNBR", "unitNbr", "UnitNbr"],
        },
    },
    {
        "key": "houston-neighborhoods",
        "title": "Houston Neighborhoods (2021)",
        "service_url": "https://services.arcgis.com/NummVBqZSIJKUeVR/ArcGIS/rest/services/Neighborhood_2021/FeatureServer",
        "layer_id": 0,
        "geometry_kind": "polygon",
        "radius_cap_miles": 10.0,
        "id_fields": ["FID", "OBJECTID"],
        "field_aliases": {
            "name": ["OBJ_NAME"],
            "type": ["OBJ_TYP"],
            "subtype": ["OBJ_SUBTYP"],
            "metro": ["METRO"],
            "area": ["OBJ_AREA"],
            "release_date": ["RELDATE"],
        },
    },
    {
        "key": "blm-acec",
        "title": "BLM Areas of Critical Environmental Concern",
        "service_url": "https://services1.arcgis.com/KbxwQRRfWyEYLgp4/arcgis/rest/services/BLM_Natl_Areas_of_Critical_Environmental_Concern/FeatureServer",
        "layer_id": 1,
        "geometry_kind": "polygon",
        "radius_cap_miles": 25.0,
        "id_fields": ["OBJECTID"],
        "field_aliases": {
            "name": ["ACEC_NAME", "Acec_Name", "acec_name"],
            "land_use_plan": ["LUP_NAME", "Lup_Name", "lup_name"],
            "nepa_number": ["NEPA_NUM", "Nepa_Num", "nepa_num"],
            "gis_acres": ["GIS_ACRES"],
            "admin_state": ["ADMIN_ST", "Admin_St", "admin_st"],
        },
    },
    {
        "key": "australia-major-roads",
        "title": "Australia Major Roads",
        "service_url": "https://services-ap1.arcgis.com/ypkPEy1AmwPKGNNv/arcgis/rest/services/MajorRoads/FeatureServer",
        "layer_id": 0,
        "geometry_kind": "polyline",
        "radius_cap_miles": 10.0,
        "id_fields": ["objectid", "OBJECTID", "ESRI_OID"],
        "field_aliases": {
            "road_id": ["road_id", "ROAD_ID"],
            "full_street_name": ["full_street_name", "FULL_STREET_NAME"],
            "street_name": ["street_name", "STREET_NAME", "street_name_label", "STREET_NAME_LABEL"],
            "hierarchy": ["hierarchy", "HIERARCHY"],
            "surface": ["surface", "SURFACE"],
            "state": ["state", "STATE"],
        },
    },
    {
        "key": "houston-transit-centers",
        "title": "Houston METRO Transit Centers",
        "service_url": "https://services.arcgis.com/NummVBqZSIJKUeVR/arcgis/rest/services/COH_Metro_Transit_Centers_view/FeatureServer",
        "layer_id": 7,
        "geometry_kind": "point",
        "radius_cap_miles": 25.0,
        "id_fields": ["OBJECTID", "GlobalID", "GLOBALID"],
        "field_aliases": {
            "name": ["NAME1"],
            "alt_name": ["NAME2"],
            "address": ["ADDRESS"],
            "zip_code": ["ZIP_CODE"],
            "bus_bays": ["B_BAYS"],
            "parking_spaces": ["PSPACES"],
            "routes_served": ["ROUTES_SER"],
        },
    },
]
