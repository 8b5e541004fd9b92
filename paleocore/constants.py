from __future__ import annotations

# Proxies averaged into a section's lab analysis
LAB_ANALYSIS_KEYS = (
    "delta18O",
    "delta13C",
    "mgCaRatio",
    "tex86",
    "alkenoneSST",
    "calculatedSST",
    "baCa",
    "srCa",
    "cdCa",
    "radiocarbonDate",
)

# Keys a CSV/ODV column may be mapped onto (value is the display label)
COMMON_DATA_KEYS: dict[str, str] = {
    "subsection": "Subsection ID",
    "depth": "Depth (cm)",
    "age": "Age (ka)",
    "delta18O": "δ¹⁸O (‰ VPDB)",
    "delta13C": "δ¹³C (‰ VPDB)",
    "mgCaRatio": "Mg/Ca (mmol/mol)",
    "tex86": "TEX₈₆",
    "alkenoneSST": "Alkenone SST (°C)",
    "calculatedSST": "Calculated SST (°C)",
    "temperature": "Temperature (°C)",
    "baCa": "Ba/Ca (µmol/mol)",
    "srCa": "Sr/Ca (mmol/mol)",
    "cdCa": "Cd/Ca (µmol/mol)",
    "radiocarbonDate": "¹⁴C age (yr BP)",
}

PROXY_LABELS = {k: v for k, v in COMMON_DATA_KEYS.items() if k not in ("subsection", "depth", "age")}

MANUAL_ENTRY_FIELDS = (
    "depth",
    "delta18O",
    "delta13C",
    "mgCaRatio",
    "tex86",
    "alkenoneSST",
    "baCa",
    "srCa",
    "cdCa",
    "radiocarbonDate",
)

# Preference order when one proxy has to stand for the whole series
PROXY_PRIORITY = ("delta18O", "temperature", "calculatedSST", "alkenoneSST", "tex86")

# Keys that describe a point's position rather than a measurement
NON_PROXY_KEYS = ("subsection", "depth", "age")

GEOLOGICAL_PERIODS = ("Glacial", "Interglacial", "Indeterminate")
ABUNDANCE_LEVELS = ("Abundant", "Common", "Few", "Rare", "Barren", "Present")
PRESERVATION_LEVELS = ("Good", "Moderate", "Poor")

MAX_IMAGE_BYTES = 4 * 1024 * 1024

# lat/lon bounding boxes; the Pacific box wraps the antimeridian
REGIONS: dict[str, dict[str, float]] = {
    "North Atlantic": {"minLat": 0.0, "maxLat": 70.0, "minLon": -80.0, "maxLon": 20.0},
    "South Atlantic": {"minLat": -60.0, "maxLat": 0.0, "minLon": -70.0, "maxLon": 20.0},
    "Pacific Ocean": {"minLat": -60.0, "maxLat": 60.0, "minLon": 120.0, "maxLon": -70.0},
    "Indian Ocean": {"minLat": -60.0, "maxLat": 30.0, "minLon": 20.0, "maxLon": 120.0},
    "Southern Ocean": {"minLat": -90.0, "maxLat": -60.0, "minLon": -180.0, "maxLon": 180.0},
    "Arctic Ocean": {"minLat": 70.0, "maxLat": 90.0, "minLon": -180.0, "maxLon": 180.0},
    "Mediterranean Sea": {"minLat": 30.0, "maxLat": 46.0, "minLon": -6.0, "maxLon": 36.0},
}
