"""
JIT Dashboard: manufacturing analytics over the jit_dw star-schema warehouse.

Read-only API and Streamlit front end for production, TRS (overall
equipment effectiveness), balanced quantities and material consumption.

To serve the API:
    uvicorn jit_dashboard.api:app
    with DATABASE_URL pointing at the warehouse. Every endpoint answers
    HTTP 500 with an explanatory body while it is unset.

To run the front end:
    streamlit run app.py
    The pages read from the API at JIT_API_URL through client.DashboardClient.

To try it without a warehouse:
    python main.py --demo
    seeds an in-memory SQLite copy from simulator.populate_warehouse and
    runs the verification checks against it.

To add a dataset:
    Add a query function to queries (parameterized, schema-qualified SQL),
    expose it as a GET route in api, then add a client method and a page
    view in dashboard.
"""
