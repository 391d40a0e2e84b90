"""
JJM Maharashtra: water infrastructure monitoring backend

Ingests scheme status, village LPCD and ESR connectivity extracts into
PostgreSQL, recomputes per-region rollups, and serves the data through a
JSON API (jjm_dashboard.api) and a Streamlit dashboard (app.py).

To add a new spreadsheet header spelling:
    Append it to the matching *_COLUMN_VARIANTS list in config.py. Order
    within the dictionary decides ties, so put specific fields before
    generic ones.

To point dashboard links at another PI Vision server:
    Set JJM_PI_VISION_BASE_URL; paths and display IDs stay in config.py.

To run without a database:
    Set JJM_DEMO=1. The dashboard then renders simulator data built by
    jjm_dashboard.simulator.
"""
