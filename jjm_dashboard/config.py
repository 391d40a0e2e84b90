"""
Configuration: environment settings, region registry, canonical column
dictionaries, PI Vision constants.

The *_COLUMN_VARIANTS dictionaries map each canonical field name to the
header texts seen in the field spreadsheets. Dictionary order is significant:
reconciliation walks fields top to bottom and the first match wins, so the
more specific fields are listed before the generic ones. A containment match
directly preceded by a negating word ("not", "non") is ignored, so "Not Completed Villages"
never lands on fully_completed_villages.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------
API_HOST = os.getenv("JJM_API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("JJM_API_PORT", "5000"))


def database_url() -> str:
    """Connection string for PostgreSQL.

    An empty string makes libpq fall back to PGHOST, PGPORT, PGUSER,
    PGPASSWORD and PGDATABASE.
    """
    return os.getenv("DATABASE_URL", "")


def demo_mode() -> bool:
    return os.getenv("JJM_DEMO", "").lower() in ("1", "true", "yes")


# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------
LPCD_THRESHOLD = 55.0
LPCD_DAYS = 7
WATER_DAYS = 6

STATUS_FULLY_COMPLETED = "Fully-Completed"
STATUS_PARTIAL = "Partial"
STATUS_NOT_CONNECTED = "Not-Connected"
SCHEME_STATUSES = (STATUS_FULLY_COMPLETED, STATUS_PARTIAL, STATUS_NOT_CONNECTED)

# Status filter values used by the front end -> stored status
STATUS_FILTER_ALIASES: dict[str, str] = {
    "fully completed": STATUS_FULLY_COMPLETED,
    "fully-completed": STATUS_FULLY_COMPLETED,
    "completed": STATUS_FULLY_COMPLETED,
    "in progress": STATUS_PARTIAL,
    "partial": STATUS_PARTIAL,
    "not connected": STATUS_NOT_CONNECTED,
    "not-connected": STATUS_NOT_CONNECTED,
}

# ---------------------------------------------------------------------------
# Regions
# ---------------------------------------------------------------------------
REGIONS = [
    "Amravati",
    "Chhatrapati Sambhajinagar",
    "Konkan",
    "Nagpur",
    "Nashik",
    "Pune",
]

# Alias pattern -> canonical region name, matched on word boundaries
REGION_ALIASES: dict[str, str] = {
    "Amravati": "Amravati",
    "Amaravati": "Amravati",
    "Nashik": "Nashik",
    "Nagpur": "Nagpur",
    "Pune": "Pune",
    "Konkan": "Konkan",
    "Chhatrapati Sambhajinagar": "Chhatrapati Sambhajinagar",
    "Sambhajinagar": "Chhatrapati Sambhajinagar",
    "Chhatrapati": "Chhatrapati Sambhajinagar",
    "CS": "Chhatrapati Sambhajinagar",
}

DEFAULT_AGENCY = "M/S Tata Consultancy Services"
REGION_AGENCIES: dict[str, str] = {region: DEFAULT_AGENCY for region in REGIONS}

# ---------------------------------------------------------------------------
# Canonical column dictionaries
# ---------------------------------------------------------------------------
SCHEME_COLUMN_VARIANTS: dict[str, list[str]] = {
    "sr_no": ["Sr No", "Sr. No.", "Sr.No", "Sr No.", "Serial No"],
    "region": ["Region", "Region Name", "region_name"],
    "circle": ["Circle"],
    "sub_division": ["Sub Division", "Sub-Division", "SubDivision", "sub_division"],
    "division": ["Division"],
    "block": ["Block"],
    "scheme_id": ["Scheme ID", "SchemeID", "Scheme Id", "Scheme_ID", "scheme_id", "Scheme Code"],
    "scheme_name": ["Scheme Name", "SchemeName", "Scheme_Name", "scheme_name"],
    "agency": ["Agency", "Agency Name"],
    "total_villages_integrated": [
        "Total Villages Integrated",
        "Villages Integrated",
        "Villages Integrated on IoT",
        "villages_integrated",
    ],
    "no_of_functional_village": [
        "No. of Functional Village",
        "No. of Functional Villages",
        "Functional Villages",
        "Functional Village",
    ],
    "no_of_partial_village": [
        "No. of Partial Village",
        "No. of Partial Villages",
        "Partial Villages",
        "Partial Village",
    ],
    "no_of_non_functional_village": [
        "No. of Non- Functional Village",
        "No. of Non-Functional Village",
        "No. of Non Functional Village",
        "Non-Functional Villages",
        "Non Functional Villages",
        "Non-Functional Village",
    ],
    "fully_completed_villages": [
        "Fully completed Villages",
        "Fully Completed Villages",
        "Fully-Completed Villages",
        "Completed Villages",
    ],
    "number_of_village": [
        "Number of Village",
        "Number of Villages",
        "No. of Village",
        "No. of Villages",
        "Total Villages",
        "total_villages",
    ],
    "total_esr_integrated": [
        "Total ESR Integrated on IoT",
        "Total ESR Integrated",
        "ESR Integrated on IoT",
        "ESR Integrated",
        "esr_integrated_on_iot",
    ],
    "no_fully_completed_esr": [
        "No. Fully Completed ESR",
        "No. of Fully Completed ESR",
        "Fully Completed ESR",
        "Completed ESR",
        "fully_completed_esr",
    ],
    "balance_to_complete_esr": ["Balance to Complete ESR", "Balance ESR", "balance_esr"],
    "total_number_of_esr": ["Total Number of ESR", "Total ESR", "ESR Total", "total_esr"],
    "flow_meters_connected": [
        "Flow Meters Connected",
        "Flow Meters Conneted",
        "Flow Meter Connected",
        "Flow Meter Conneted",
        "FM Connected",
        "Flow Meters",
    ],
    "pressure_transmitter_connected": [
        "Pressure Transmitter Connected",
        "Pressure Transmitters Connected",
        "Pressure Transmitter Conneted",
        "PT Connected",
        "Pressure Transmitters",
        "pressure_transmitters_connected",
    ],
    "residual_chlorine_analyzer_connected": [
        "Residual Chlorine Analyzer Connected",
        "Residual Chlorine Connected",
        "Residual Chlorine Conneted",
        "RCA Connected",
        "Residual Chlorine",
        "residual_chlorine_connected",
    ],
    "scheme_functional_status": ["Scheme Functional Status", "Functional Status"],
    "scheme_status": [
        "Fully completion Scheme Status",
        "Fully Completion Scheme Status",
        "Scheme Completion Status",
        "Scheme Status",
        "Status",
    ],
    "dashboard_url": ["Dashboard URL", "dashboard_url"],
}

SCHEME_COUNT_FIELDS = [
    "number_of_village",
    "total_villages_integrated",
    "no_of_functional_village",
    "no_of_partial_village",
    "no_of_non_functional_village",
    "fully_completed_villages",
    "total_number_of_esr",
    "total_esr_integrated",
    "no_fully_completed_esr",
    "balance_to_complete_esr",
    "flow_meters_connected",
    "pressure_transmitter_connected",
    "residual_chlorine_analyzer_connected",
]

WATER_VALUE_FIELDS = [f"water_value_day{i}" for i in range(1, WATER_DAYS + 1)]
LPCD_VALUE_FIELDS = [f"lpcd_value_day{i}" for i in range(1, LPCD_DAYS + 1)]
WATER_DATE_FIELDS = [f"water_date_day{i}" for i in range(1, WATER_DAYS + 1)]
LPCD_DATE_FIELDS = [f"lpcd_date_day{i}" for i in range(1, LPCD_DAYS + 1)]
LPCD_FLAG_FIELDS = [
    "consistent_zero_lpcd_for_a_week",
    "below_55_lpcd_count",
    "above_55_lpcd_count",
]

WATER_COLUMN_VARIANTS: dict[str, list[str]] = {
    "region": ["Region"],
    "circle": ["Circle"],
    "sub_division": ["Sub Division", "Sub-Division"],
    "division": ["Division"],
    "block": ["Block"],
    "scheme_id": ["Scheme ID", "Scheme Id", "SchemeID", "scheme_id"],
    "scheme_name": ["Scheme Name", "scheme_name"],
    "village_name": ["Village Name", "Village", "village_name"],
    "population": ["Population", "Total Population"],
    "number_of_esr": ["Number of ESR", "No. of ESR", "ESR Count"],
    **{f"water_value_day{i}": [f"water value day{i}", f"water value day {i}"] for i in range(1, WATER_DAYS + 1)},
    **{f"lpcd_value_day{i}": [f"lpcd value day{i}", f"lpcd value day {i}"] for i in range(1, LPCD_DAYS + 1)},
    **{f"water_date_day{i}": [f"water date day{i}", f"water date day {i}"] for i in range(1, WATER_DAYS + 1)},
    **{f"lpcd_date_day{i}": [f"lpcd date day{i}", f"lpcd date day {i}"] for i in range(1, LPCD_DAYS + 1)},
    "consistent_zero_lpcd_for_a_week": ["Consistent Zero LPCD for a week"],
    "below_55_lpcd_count": ["Consistent <55 LPCD for a week", "Below 55 LPCD Count"],
    "above_55_lpcd_count": ["Consistent >55 LPCD for a week", "Above 55 LPCD Count"],
}

# Column order of header-less village extracts
WATER_POSITIONAL_COLUMNS = [
    "region", "circle", "division", "sub_division", "block",
    "scheme_id", "scheme_name", "village_name", "population", "number_of_esr",
    *WATER_VALUE_FIELDS,
    *LPCD_VALUE_FIELDS,
    *WATER_DATE_FIELDS,
    *LPCD_DATE_FIELDS,
    *LPCD_FLAG_FIELDS,
]

ESR_COLUMN_VARIANTS: dict[str, list[str]] = {
    "region": ["Region"],
    "circle": ["Circle"],
    "sub_division": ["Sub Division", "Sub-Division"],
    "division": ["Division"],
    "block": ["Block"],
    "scheme_id": ["Scheme ID", "Scheme Id", "scheme_id"],
    "scheme_name": ["Scheme Name", "scheme_name"],
    "village_name": ["Village Name", "Village"],
    "esr_name": ["ESR Name", "ESR"],
    "chlorine_connected": ["Chlorine - Connected or not", "Chlorine Connected", "RCA Connected"],
    "pressure_connected": ["Pressure - Connected or not", "Pressure Connected", "PT Connected"],
    "flow_meter_connected": ["Flow Meter - Connected or not", "Flow Meter Connected", "FM Connected"],
    "chlorine_status": ["Chlorine - Online or Offline", "Chlorine Status"],
    "pressure_status": ["Pressure - Online or Offline", "Pressure Status"],
    "flow_meter_status": ["Flow Meter - Online or Offline", "Flow Meter Status"],
    "overall_status": ["Overall Status", "Status"],
}

# ---------------------------------------------------------------------------
# PI Vision dashboard links
# ---------------------------------------------------------------------------
PI_VISION_BASE_URL = os.getenv("JJM_PI_VISION_BASE_URL", "https://14.99.99.166:18099/PIVision")

SCHEME_DISPLAY = "10108/CEREBULB_JJM_MAHARASHTRA_SCHEME_LEVEL_DASHBOARD"
VILLAGE_DISPLAY = "10109/CEREBULB_JJM_MAHARASHTRA_VILLAGE_LEVEL_DASHBOARD"
ESR_DISPLAY = "10086/CEREBULB_JJM_MAHARASHTRA_ESR_LEVEL_DASHBOARD"

KIOSK_PARAMS = "hidetoolbar=true&hidesidebar=true&mode=kiosk"
ESR_KIOSK_PARAMS = "mode=kiosk&hidetoolbar&hidesidebar"

PI_ROOT_PATH = "\\\\DemoAF\\JJM\\JJM\\Maharashtra"

# Region name as it appears in the PI asset tree
URL_REGION_SUBSTITUTIONS: dict[str, str] = {"Amravati": "Amaravati"}

# Regions whose asset tree joins scheme ID and name with a bare hyphen
COMPACT_SCHEME_SEPARATOR_REGIONS = {"Pune"}

# Schemes whose asset path cannot be derived from the spreadsheet values.
# Keyed by scheme_id; "match" must occur in the scheme name. "path" is used
# verbatim and every level below it is joined with "separator".
SPECIAL_SCHEME_PATHS: dict[str, dict[str, str]] = {
    "20019176": {
        "match": "Bargaonpimpri",
        "path": (
            "\\\\DemoAF\\\\JJM\\\\JJM\\\\Maharashtra\\\\Region-Nashik\\\\Circle-Nashik"
            "\\\\Division-Nashik\\\\Sub Division-Sinnar\\\\Block-Sinnar"
            "\\\\Scheme-20019176 - Retro. Bargaonpimpri & 6 VRWSS\u00a0 Tal Sinnar"
        ),
        "separator": "\\\\",
    },
}
